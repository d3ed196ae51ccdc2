"""Borsh encoding of instruction payloads and attestation account data.

Layout (no padding, little-endian integers):

- ``u8``/``u64``: fixed width
- ``string``: ``u32`` byte length followed by UTF-8 bytes
- ``vec<string>``: ``u32`` element count followed by each string
- ``pubkey``: 32 raw bytes

Instruction payloads are ``discriminant || InputParams`` (``Close`` sends the
discriminant alone). Account data is an 8-byte account tag followed by the
``AttestationRecord`` fields in declaration order.
"""

from __future__ import annotations

import struct

from .constants import ACCOUNT_TAG_LEN
from .errors import DecodeError
from .types import AttestationRecord, InputParams, InstructionKind, Pubkey

_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")


def _encode_string(value: str) -> bytes:
    raw = value.encode("utf-8")
    return _U32.pack(len(raw)) + raw


def _encode_strings(values: list[str]) -> bytes:
    return _U32.pack(len(values)) + b"".join(_encode_string(v) for v in values)


def encode_params(params: InputParams) -> bytes:
    if params.deployed_slot < 0 or params.deployed_slot >= 1 << 64:
        raise ValueError(f"deployed_slot out of u64 range: {params.deployed_slot}")
    return b"".join(
        [
            _encode_string(params.version),
            _encode_string(params.git_url),
            _encode_string(params.commit),
            _encode_strings(params.args),
            _U64.pack(params.deployed_slot),
        ]
    )


def encode_instruction(kind: InstructionKind, params: InputParams | None = None) -> bytes:
    if kind is InstructionKind.CLOSE:
        return kind.discriminant
    if params is None:
        raise ValueError(f"{kind.value} instruction requires input params")
    return kind.discriminant + encode_params(params)


class _Reader:
    def __init__(self, data: bytes, offset: int = 0):
        self.data = data
        self.offset = offset

    def take(self, n: int, what: str) -> bytes:
        end = self.offset + n
        if end > len(self.data):
            raise DecodeError(
                f"unexpected end of data reading {what}: need {n} bytes at offset {self.offset}, "
                f"have {len(self.data) - self.offset}"
            )
        chunk = self.data[self.offset:end]
        self.offset = end
        return chunk

    def u8(self, what: str) -> int:
        return self.take(1, what)[0]

    def u32(self, what: str) -> int:
        return _U32.unpack(self.take(4, what))[0]

    def u64(self, what: str) -> int:
        return _U64.unpack(self.take(8, what))[0]

    def string(self, what: str) -> str:
        raw = self.take(self.u32(what), what)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as err:
            raise DecodeError(f"{what} is not valid UTF-8") from err

    def strings(self, what: str) -> list[str]:
        count = self.u32(what)
        # each element carries at least its own length prefix
        if count * 4 > len(self.data) - self.offset:
            raise DecodeError(f"{what} claims {count} elements but only {len(self.data) - self.offset} bytes remain")
        return [self.string(f"{what}[{i}]") for i in range(count)]

    def pubkey(self, what: str) -> Pubkey:
        return Pubkey(self.take(Pubkey.LENGTH, what))

    def finish(self) -> None:
        if self.offset != len(self.data):
            raise DecodeError(f"{len(self.data) - self.offset} trailing bytes after record")


def decode_params(data: bytes) -> InputParams:
    r = _Reader(bytes(data))
    params = InputParams(
        version=r.string("version"),
        git_url=r.string("git_url"),
        commit=r.string("commit"),
        args=r.strings("args"),
        deployed_slot=r.u64("deployed_slot"),
    )
    r.finish()
    return params


def decode_record(data: bytes) -> AttestationRecord:
    """Decode raw account data (including its 8-byte tag) into a record."""
    buf = bytes(data)
    if len(buf) < ACCOUNT_TAG_LEN:
        raise DecodeError(f"account data too short for tag: {len(buf)} bytes")
    r = _Reader(buf, ACCOUNT_TAG_LEN)
    record = AttestationRecord(
        address=r.pubkey("address"),
        signer=r.pubkey("signer"),
        version=r.string("version"),
        git_url=r.string("git_url"),
        commit=r.string("commit"),
        args=r.strings("args"),
        deployed_slot=r.u64("deployed_slot"),
        bump=r.u8("bump"),
    )
    r.finish()
    return record

