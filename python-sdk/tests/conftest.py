from __future__ import annotations

import base64
import json
import struct
from pathlib import Path
from typing import Any

import base58
import httpx
import pytest
from nacl.signing import SigningKey

from verifiedbuild.constants import BPF_LOADER_UPGRADEABLE_ID, VERIFY_PROGRAM_ID
from verifiedbuild.types import AttestationRecord, Pubkey

NODE_URL = "http://fake-node.test"
BLOCKHASH = bytes([7] * 32)


def _decode_length(buf: bytes, offset: int) -> tuple[int, int]:
    value = shift = 0
    while True:
        byte = buf[offset]
        offset += 1
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, offset
        shift += 7


def parse_wire(wire: bytes) -> dict[str, Any]:
    """Split a single-instruction legacy transaction into its parts."""
    n_sigs, off = _decode_length(wire, 0)
    signatures = [wire[off + 64 * i: off + 64 * (i + 1)] for i in range(n_sigs)]
    off += 64 * n_sigs
    message = wire[off:]
    header = tuple(wire[off:off + 3])
    off += 3
    n_keys, off = _decode_length(wire, off)
    keys = [Pubkey(wire[off + 32 * i: off + 32 * (i + 1)]) for i in range(n_keys)]
    off += 32 * n_keys
    blockhash = wire[off:off + 32]
    off += 32
    n_ix, off = _decode_length(wire, off)
    assert n_ix == 1
    program_index = wire[off]
    off += 1
    n_accounts, off = _decode_length(wire, off)
    accounts = [keys[i] for i in wire[off:off + n_accounts]]
    off += n_accounts
    data_len, off = _decode_length(wire, off)
    data = wire[off:off + data_len]
    assert off + data_len == len(wire)
    return {
        "signatures": signatures,
        "message": message,
        "header": header,
        "keys": keys,
        "blockhash": blockhash,
        "program_id": keys[program_index],
        "accounts": accounts,
        "data": data,
    }


class FakeNode:
    """In-memory JSON-RPC node served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.accounts: dict[str, tuple[str, bytes]] = {}
        self.program_accounts: list[tuple[str, bytes]] = []
        self.calls: list[dict[str, Any]] = []
        self.sent: list[bytes] = []
        self.statuses: list[dict[str, Any] | None] = [{"confirmationStatus": "confirmed", "err": None}]
        self.send_error: dict[str, Any] | None = None
        self.block_height = 100
        self.last_valid_block_height = 250

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    def methods(self) -> list[str]:
        return [c["method"] for c in self.calls]

    def add_account(self, pubkey: Pubkey, data: bytes = b"", owner: str = VERIFY_PROGRAM_ID) -> None:
        self.accounts[str(pubkey)] = (owner, data)

    def deploy_program(self, program: Pubkey, slot: int) -> None:
        programdata = Pubkey(bytes([9] * 32))
        self.add_account(program, struct.pack("<I", 2) + programdata.raw, BPF_LOADER_UPGRADEABLE_ID)
        self.add_account(
            programdata,
            struct.pack("<I", 3) + struct.pack("<Q", slot) + b"\x00" + bytes(64),
            BPF_LOADER_UPGRADEABLE_ID,
        )

    def _account_json(self, owner: str, data: bytes) -> dict[str, Any]:
        return {
            "owner": owner,
            "lamports": 1_000_000,
            "data": [base64.b64encode(data).decode("ascii"), "base64"],
            "executable": False,
            "rentEpoch": 0,
        }

    def _result(self, method: str, params: list[Any]) -> Any:
        if method == "getAccountInfo":
            entry = self.accounts.get(params[0])
            return {"context": {"slot": 1}, "value": self._account_json(*entry) if entry else None}
        if method == "getProgramAccounts":
            return [
                {"pubkey": pubkey, "account": self._account_json(VERIFY_PROGRAM_ID, data)}
                for pubkey, data in self.program_accounts
            ]
        if method == "getLatestBlockhash":
            return {
                "context": {"slot": 1},
                "value": {
                    "blockhash": base58.b58encode(BLOCKHASH).decode("ascii"),
                    "lastValidBlockHeight": self.last_valid_block_height,
                },
            }
        if method == "sendTransaction":
            wire = base64.b64decode(params[0])
            self.sent.append(wire)
            return base58.b58encode(wire[1:65]).decode("ascii")
        if method == "getSignatureStatuses":
            status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
            return {"context": {"slot": 1}, "value": [status]}
        if method == "getBlockHeight":
            return self.block_height
        raise AssertionError(f"unexpected RPC method {method}")

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content.decode("utf-8"))
        self.calls.append(body)
        method = body["method"]
        if method == "sendTransaction" and self.send_error is not None:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": self.send_error})
        return httpx.Response(
            200, json={"jsonrpc": "2.0", "id": body["id"], "result": self._result(method, body["params"])}
        )


class ScriptedConfirmer:
    def __init__(self, *answers: bool):
        self.answers = list(answers)
        self.messages: list[str] = []

    def confirm(self, message: str) -> bool:
        self.messages.append(message)
        return self.answers.pop(0)


def _borsh_string(value: str) -> bytes:
    raw = value.encode("utf-8")
    return struct.pack("<I", len(raw)) + raw


def encode_record(record: AttestationRecord, tag: bytes = bytes(8)) -> bytes:
    """Raw account data for ``record`` as the verify program stores it."""
    return b"".join(
        [
            tag,
            record.address.raw,
            record.signer.raw,
            _borsh_string(record.version),
            _borsh_string(record.git_url),
            _borsh_string(record.commit),
            struct.pack("<I", len(record.args)),
            *(_borsh_string(arg) for arg in record.args),
            struct.pack("<Q", record.deployed_slot),
            bytes([record.bump]),
        ]
    )


def write_keypair(path: Path, key: SigningKey) -> Path:
    path.write_text(json.dumps(list(bytes(key) + bytes(key.verify_key))), encoding="utf-8")
    return path


@pytest.fixture
def node() -> FakeNode:
    return FakeNode()


@pytest.fixture
def signing_key() -> SigningKey:
    return SigningKey.generate()


@pytest.fixture
def signer(signing_key: SigningKey) -> Pubkey:
    return Pubkey(bytes(signing_key.verify_key))


@pytest.fixture
def program_id() -> Pubkey:
    return Pubkey(bytes(SigningKey.generate().verify_key))


@pytest.fixture
def keypair_path(tmp_path: Path, signing_key: SigningKey) -> Path:
    return write_keypair(tmp_path / "id.json", signing_key)


@pytest.fixture
def config_path(tmp_path: Path, keypair_path: Path) -> Path:
    path = tmp_path / "config.yml"
    path.write_text(
        "---\n"
        f"json_rpc_url: {NODE_URL}\n"
        "websocket_url: ''\n"
        f"keypair_path: {keypair_path}\n"
        "commitment: confirmed\n",
        encoding="utf-8",
    )
    return path
