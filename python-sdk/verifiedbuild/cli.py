"""verifiedbuild CLI: publish, close and list on-chain build attestations."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional, Sequence

from .client import create_client
from .constants import CLIENT_VERSION
from .errors import VerifiedBuildError
from .types import EndpointSelector


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="verifiedbuild",
        description="Publish and query on-chain verified-build attestations for Solana programs",
    )
    parser.add_argument("--version", action="version", version=f"verifiedbuild {CLIENT_VERSION}")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")
    verbosity.add_argument("--quiet", action="store_true", help="Suppress all non-error output.")

    url_parent = argparse.ArgumentParser(add_help=False)
    url_parent.add_argument(
        "--url",
        "-u",
        default=None,
        help="RPC endpoint: m (mainnet), d (devnet), l (localhost) or a full URL. "
        "Defaults to the Solana CLI config.",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    upload = subparsers.add_parser(
        "upload",
        help="Upload or update the verification record for a program",
        parents=[url_parent],
    )
    upload.add_argument("--program-id", required=True, help="Address of the verified program")
    upload.add_argument("--git-url", required=True, help="Repository the program was built from")
    upload.add_argument("--commit", default=None, help="Commit hash the program was built from")
    upload.add_argument("--keypair", "-k", default=None, help="Path to the signer keypair file")
    upload.add_argument("--skip-prompt", "-y", action="store_true", help="Do not ask for confirmation")
    upload.add_argument("build_args", nargs="*", help="Build arguments (pass after --)")

    close = subparsers.add_parser(
        "close",
        help="Close the verification record owned by the default CLI signer",
    )
    close.add_argument("--program-id", required=True, help="Address of the verified program")

    list_pdas = subparsers.add_parser(
        "list-program-pdas",
        help="List every verification record for a program",
        parents=[url_parent],
    )
    list_pdas.add_argument("--program-id", required=True, help="Address of the verified program")
    list_pdas.add_argument("--json", action="store_true", help="Print JSON instead of text")

    get_pda = subparsers.add_parser(
        "get-program-pda",
        help="Show the verification record a signer owns for a program",
        parents=[url_parent],
    )
    get_pda.add_argument("--program-id", required=True, help="Address of the verified program")
    get_pda.add_argument("--signer", default=None, help="Signer pubkey (defaults to the CLI keypair)")
    get_pda.add_argument("--json", action="store_true", help="Print JSON instead of text")

    return parser


def _configure_logging(args: argparse.Namespace) -> None:
    level = logging.INFO
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    _configure_logging(args)
    client = create_client()

    try:
        if args.command == "upload":
            result = client.upload(
                git_url=args.git_url,
                commit=args.commit,
                args=args.build_args,
                program_id=args.program_id,
                endpoint=EndpointSelector.parse(args.url),
                skip_prompt=args.skip_prompt,
                keypair_path=args.keypair,
            )
            if result.submitted:
                print(result.signature)
        elif args.command == "close":
            result = client.close(args.program_id)
            print(result.signature)
        elif args.command == "list-program-pdas":
            records = client.list_attestations(args.program_id, EndpointSelector.parse(args.url))
            if args.json:
                print(json.dumps([{"pda": str(addr), **rec.to_dict()} for addr, rec in records], indent=2))
            else:
                for addr, rec in records:
                    print("-" * 64)
                    print(f"PDA: {addr}")
                    print("-" * 64)
                    print(rec)
        elif args.command == "get-program-pda":
            addr, rec = client.get_attestation(args.program_id, args.signer, EndpointSelector.parse(args.url))
            if args.json:
                print(json.dumps({"pda": str(addr), **rec.to_dict()}, indent=2))
            else:
                print(f"PDA: {addr}")
                print(rec)
    except VerifiedBuildError as err:
        print(f"error[{err.kind.value}]: {err}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
