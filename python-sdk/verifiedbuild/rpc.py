from __future__ import annotations

import base64
import itertools
import logging
import struct
import time
from dataclasses import dataclass
from typing import Any, Callable

import base58
import httpx

from .constants import BPF_LOADER_UPGRADEABLE_ID, CLIENT_VERSION, DEFAULT_COMMITMENT
from .errors import RpcError, SubmissionError, UpstreamLookupError, VerifiedBuildError
from .types import Pubkey

logger = logging.getLogger(__name__)

# UpgradeableLoaderState enum tags (bincode, u32 little-endian)
_LOADER_PROGRAM = 2
_LOADER_PROGRAM_DATA = 3

_CONFIRMED = {"confirmed", "finalized"}


@dataclass(frozen=True)
class AccountInfo:
    owner: Pubkey
    lamports: int
    data: bytes
    executable: bool = False


def _decode_account(value: dict[str, Any]) -> AccountInfo:
    data_field = value.get("data")
    if not isinstance(data_field, list) or not data_field or data_field[-1] != "base64":
        raise RpcError("account data was not returned as base64", value)
    return AccountInfo(
        owner=Pubkey.from_string(value.get("owner", "")),
        lamports=int(value.get("lamports") or 0),
        data=base64.b64decode(data_field[0]),
        executable=bool(value.get("executable")),
    )


def memcmp_filter(offset: int, raw: bytes) -> dict[str, Any]:
    return {"memcmp": {"offset": offset, "bytes": base58.b58encode(raw).decode("ascii")}}


class SolanaRpc:
    """Minimal synchronous JSON-RPC client for the calls this package needs."""

    def __init__(
        self,
        url: str,
        http_client: httpx.Client | None = None,
        commitment: str = DEFAULT_COMMITMENT,
        poll_interval: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.url = url
        self.commitment = commitment
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client()
        self._ids = itertools.count(1)

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> SolanaRpc:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def request(self, method: str, params: list[Any], error_cls: type[VerifiedBuildError] = RpcError) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        logger.debug("rpc %s -> %s", method, self.url)
        try:
            resp = self._http.post(
                self.url,
                headers={"Content-Type": "application/json", "User-Agent": f"verifiedbuild-py/{CLIENT_VERSION}"},
                json=payload,
            )
        except httpx.TimeoutException as err:
            raise error_cls(f"{method}: request to {self.url} timed out") from err
        except httpx.HTTPError as err:
            raise error_cls(f"{method}: {err}") from err

        try:
            data = resp.json()
        except ValueError:
            data = {}

        if not resp.is_success:
            raise error_cls(f"{method}: HTTP {resp.status_code}", data)
        if not isinstance(data, dict):
            raise error_cls(f"{method}: malformed JSON-RPC response", data)

        error = data.get("error")
        if error is not None:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise error_cls(f"{method}: {message}", error)
        if "result" not in data:
            raise error_cls(f"{method}: response carries no result", data)
        return data["result"]

    def get_account_info(self, pubkey: Pubkey) -> AccountInfo | None:
        result = self.request(
            "getAccountInfo",
            [str(pubkey), {"encoding": "base64", "commitment": self.commitment}],
        )
        if not isinstance(result, dict) or "value" not in result:
            raise RpcError("getAccountInfo: malformed result", result)
        value = result["value"]
        if value is None:
            return None
        if not isinstance(value, dict):
            raise RpcError("getAccountInfo: malformed account", value)
        return _decode_account(value)

    def account_exists(self, pubkey: Pubkey) -> bool:
        return self.get_account_info(pubkey) is not None

    def get_program_accounts(
        self, program_id: Pubkey, filters: list[dict[str, Any]] | None = None
    ) -> list[tuple[Pubkey, bytes]]:
        config: dict[str, Any] = {"encoding": "base64", "commitment": self.commitment}
        if filters:
            config["filters"] = filters
        result = self.request("getProgramAccounts", [str(program_id), config])
        if not isinstance(result, list):
            raise RpcError("getProgramAccounts: expected a list of accounts", result)

        accounts: list[tuple[Pubkey, bytes]] = []
        for entry in result:
            info = _decode_account(entry["account"])
            accounts.append((Pubkey.from_string(entry["pubkey"]), info.data))
        return accounts

    def get_latest_blockhash(self) -> tuple[bytes, int]:
        result = self.request("getLatestBlockhash", [{"commitment": self.commitment}])
        value = result.get("value") if isinstance(result, dict) else None
        if not isinstance(value, dict) or "blockhash" not in value or "lastValidBlockHeight" not in value:
            raise RpcError("getLatestBlockhash: malformed result", result)
        try:
            return base58.b58decode(value["blockhash"]), int(value["lastValidBlockHeight"])
        except (TypeError, ValueError) as err:
            raise RpcError(f"getLatestBlockhash: malformed result: {err}", result) from err

    def get_block_height(self) -> int:
        return int(self.request("getBlockHeight", [{"commitment": self.commitment}]))

    def send_transaction(self, wire: bytes) -> str:
        encoded = base64.b64encode(wire).decode("ascii")
        return str(
            self.request(
                "sendTransaction",
                [encoded, {"encoding": "base64", "preflightCommitment": self.commitment}],
                error_cls=SubmissionError,
            )
        )

    def confirm_transaction(self, signature: str, last_valid_block_height: int) -> None:
        """Block until ``signature`` reaches the configured commitment.

        Raises ``SubmissionError`` if the transaction failed on chain or its
        blockhash expired before it landed. The transaction is never resent.
        """
        while True:
            result = self.request(
                "getSignatureStatuses", [[signature], {"searchTransactionHistory": True}], error_cls=SubmissionError
            )
            statuses = result.get("value") if isinstance(result, dict) else None
            status = statuses[0] if isinstance(statuses, list) and statuses else None
            if isinstance(status, dict):
                if status.get("err") is not None:
                    raise SubmissionError(f"Transaction {signature} failed: {status['err']}", status)
                if status.get("confirmationStatus") in _CONFIRMED:
                    return
            if self.get_block_height() > last_valid_block_height:
                raise SubmissionError(f"Transaction {signature} was not confirmed before its blockhash expired")
            self._sleep(self.poll_interval)

    def get_last_deployed_slot(self, program_id: Pubkey) -> int:
        """Slot at which ``program_id`` was last deployed, read from its programdata account."""
        try:
            program = self.get_account_info(program_id)
            if program is None:
                raise UpstreamLookupError(f"program account {program_id} not found")
            if str(program.owner) != BPF_LOADER_UPGRADEABLE_ID:
                raise UpstreamLookupError(f"{program_id} is not owned by the upgradeable BPF loader")
            programdata_raw = _unpack_loader_state(program.data, _LOADER_PROGRAM, 32)

            programdata = self.get_account_info(Pubkey(programdata_raw))
            if programdata is None:
                raise UpstreamLookupError(f"programdata account for {program_id} not found")
            slot_raw = _unpack_loader_state(programdata.data, _LOADER_PROGRAM_DATA, 8)
            return struct.unpack("<Q", slot_raw)[0]
        except UpstreamLookupError:
            raise
        except VerifiedBuildError as err:
            raise UpstreamLookupError(str(err), err.details) from err


def _unpack_loader_state(data: bytes, expected: int, size: int) -> bytes:
    if len(data) < 4 + size:
        raise UpstreamLookupError(f"loader account data too short ({len(data)} bytes)")
    tag = struct.unpack_from("<I", data)[0]
    if tag != expected:
        raise UpstreamLookupError(f"unexpected loader account state {tag} (wanted {expected})")
    return data[4:4 + size]
