from __future__ import annotations

import logging
import os
from typing import Sequence, Union

import httpx
from nacl.signing import SigningKey

from .codec import decode_record
from .config import CliConfig, load_cli_config, load_keypair, resolve_rpc_url, signer_pubkey
from .constants import ACCOUNT_TAG_LEN, CLIENT_VERSION, TRUSTED_SIGNER, VERIFY_PROGRAM_ID
from .errors import DecodeError, NoAttestationFoundError, RpcError, SubmissionError, UpstreamLookupError
from .pda import derive_attestation_address
from .prompt import AlwaysConfirm, Confirmer, TerminalConfirmer
from .rpc import SolanaRpc, memcmp_filter
from .transaction import build_attestation_instruction, compile_message, sign_transaction
from .types import (
    AttestationRecord,
    EndpointKind,
    EndpointSelector,
    InputParams,
    InstructionKind,
    Pubkey,
    UploadResult,
)

logger = logging.getLogger(__name__)

UPLOAD_PROMPT = "Do you want to upload the program verification to the Solana Blockchain? (y/n) "
OTHER_SIGNER_PROMPT = "Program already uploaded by another signer. Do you want to upload a new program? (Y/n) "

PubkeyLike = Union[Pubkey, str]
EndpointLike = Union[EndpointSelector, str, None]


def _as_pubkey(value: PubkeyLike) -> Pubkey:
    return value if isinstance(value, Pubkey) else Pubkey.from_string(value)


def _as_selector(endpoint: EndpointLike) -> EndpointSelector:
    if isinstance(endpoint, EndpointSelector):
        return endpoint
    return EndpointSelector.parse(endpoint)


class VerifiedBuildClient:
    """Publishes, updates, closes and lists build attestations.

    Every operation resolves its own signer and RPC endpoint and opens its own
    connection; nothing is shared between calls.
    """

    def __init__(
        self,
        confirmer: Confirmer | None = None,
        http_client: httpx.Client | None = None,
        config_path: str | os.PathLike[str] | None = None,
        verify_program: PubkeyLike = VERIFY_PROGRAM_ID,
        trusted_signer: PubkeyLike = TRUSTED_SIGNER,
        poll_interval: float = 0.5,
    ):
        self.confirmer: Confirmer = confirmer or TerminalConfirmer()
        self.config_path = config_path
        self.verify_program = _as_pubkey(verify_program)
        self.trusted_signer = _as_pubkey(trusted_signer)
        self.poll_interval = poll_interval
        self._http = http_client

    def _rpc(self, url: str) -> SolanaRpc:
        return SolanaRpc(url, http_client=self._http, poll_interval=self.poll_interval)

    def _config(self) -> CliConfig:
        return load_cli_config(self.config_path)

    def upload(
        self,
        git_url: str,
        commit: str | None,
        args: Sequence[str],
        program_id: PubkeyLike,
        endpoint: EndpointLike = None,
        skip_prompt: bool = False,
        keypair_path: str | os.PathLike[str] | None = None,
    ) -> UploadResult:
        confirmer: Confirmer = AlwaysConfirm() if skip_prompt else self.confirmer
        if not confirmer.confirm(UPLOAD_PROMPT):
            logger.info("Exiting without uploading the program.")
            return UploadResult()

        logger.info("Uploading the program verification params to the Solana blockchain...")
        program = _as_pubkey(program_id)
        selector = _as_selector(endpoint)

        config = None
        if keypair_path is None or selector.kind is EndpointKind.DEFAULT:
            config = self._config()
        signing_key = load_keypair(keypair_path if keypair_path is not None else config.keypair_path)
        signer = signer_pubkey(signing_key)
        url = resolve_rpc_url(selector, config)
        logger.info("Using connection url: %s", url)

        with self._rpc(url) as rpc:
            try:
                deployed_slot = rpc.get_last_deployed_slot(program)
            except UpstreamLookupError as err:
                raise UpstreamLookupError(f"Unable to get last deployed slot: {err}", err.details) from err

            params = InputParams(
                version=CLIENT_VERSION,
                git_url=git_url,
                commit=commit or "",
                args=list(args),
                deployed_slot=deployed_slot,
            )

            # candidate A: owned by the acting signer; candidate B: owned by the trusted attestor
            candidate_a, _ = derive_attestation_address(signer, program, self.verify_program)
            candidate_b, _ = derive_attestation_address(self.trusted_signer, program, self.verify_program)

            if rpc.account_exists(candidate_a):
                logger.info("Program already uploaded by the current signer. Updating the program.")
                return self._submit(rpc, InstructionKind.UPDATE, params, candidate_a, program, signing_key)

            if rpc.account_exists(candidate_b):
                # creates a second record next to the trusted one; both may coexist
                if not confirmer.confirm(OTHER_SIGNER_PROMPT):
                    logger.info("Exiting without uploading the program.")
                    return UploadResult()

            return self._submit(rpc, InstructionKind.INITIALIZE, params, candidate_a, program, signing_key)

    def close(self, program_id: PubkeyLike) -> UploadResult:
        """Close the attestation the default CLI signer owns for ``program_id``."""
        program = _as_pubkey(program_id)
        config = self._config()
        signing_key = load_keypair(config.keypair_path)
        signer = signer_pubkey(signing_key)

        with self._rpc(config.json_rpc_url) as rpc:
            record, _ = derive_attestation_address(signer, program, self.verify_program)
            if not rpc.account_exists(record):
                raise NoAttestationFoundError(
                    f"No PDA found for signer {signer} and program address {program}. "
                    "Make sure you are providing the program address, not the PDA address. "
                    "Check that a signer exists for the program by running "
                    f"`verifiedbuild list-program-pdas --program-id {program}`"
                )
            return self._submit(rpc, InstructionKind.CLOSE, None, record, program, signing_key)

    def list_attestations(
        self, program_id: PubkeyLike, endpoint: EndpointLike = None
    ) -> list[tuple[Pubkey, AttestationRecord]]:
        """All attestation records for ``program_id``, in the order the node returns them.

        Accounts owned by the verification program that do not decode as a
        record are skipped.
        """
        program = _as_pubkey(program_id)
        url = self._resolve_url(_as_selector(endpoint))

        with self._rpc(url) as rpc:
            accounts = rpc.get_program_accounts(
                self.verify_program, [memcmp_filter(ACCOUNT_TAG_LEN, program.raw)]
            )

        records: list[tuple[Pubkey, AttestationRecord]] = []
        for address, data in accounts:
            try:
                records.append((address, decode_record(data)))
            except DecodeError as err:
                logger.debug("skipping account %s: %s", address, err)
        return records

    def get_attestation(
        self,
        program_id: PubkeyLike,
        signer: PubkeyLike | None = None,
        endpoint: EndpointLike = None,
    ) -> tuple[Pubkey, AttestationRecord]:
        """Fetch and decode the record ``signer`` (default: the CLI keypair) owns for ``program_id``."""
        program = _as_pubkey(program_id)
        selector = _as_selector(endpoint)
        config = None
        if signer is None or selector.kind is EndpointKind.DEFAULT:
            config = self._config()
        owner = _as_pubkey(signer) if signer is not None else signer_pubkey(load_keypair(config.keypair_path))
        url = resolve_rpc_url(selector, config)

        record, _ = derive_attestation_address(owner, program, self.verify_program)
        with self._rpc(url) as rpc:
            account = rpc.get_account_info(record)
        if account is None:
            raise NoAttestationFoundError(f"No PDA found for signer {owner} and program address {program}")
        return record, decode_record(account.data)

    def _resolve_url(self, selector: EndpointSelector) -> str:
        config = self._config() if selector.kind is EndpointKind.DEFAULT else None
        return resolve_rpc_url(selector, config)

    def _submit(
        self,
        rpc: SolanaRpc,
        kind: InstructionKind,
        params: InputParams | None,
        record: Pubkey,
        program: Pubkey,
        signing_key: SigningKey,
    ) -> UploadResult:
        signer = signer_pubkey(signing_key)
        instruction = build_attestation_instruction(kind, params, record, signer, program, self.verify_program)
        try:
            blockhash, last_valid_block_height = rpc.get_latest_blockhash()
            message = compile_message(instruction, signer, blockhash)
            _, wire = sign_transaction(message, signing_key)
            signature = rpc.send_transaction(wire)
            rpc.confirm_transaction(signature, last_valid_block_height)
        except (RpcError, SubmissionError) as err:
            logger.debug("%s transaction for %s failed: %r", kind.value, record, err.details)
            raise SubmissionError(f"Failed to send transaction to the network: {err}", err.details) from err

        if kind is InstructionKind.CLOSE:
            logger.info("Program verification closed successfully. Transaction ID: %s", signature)
        else:
            logger.info("Program uploaded successfully. Transaction ID: %s", signature)
        return UploadResult(kind, record, signature)


def create_client(**kwargs) -> VerifiedBuildClient:
    return VerifiedBuildClient(**kwargs)
