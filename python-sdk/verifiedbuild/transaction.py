"""Legacy Solana message compilation and single-signer transaction signing."""

from __future__ import annotations

from dataclasses import dataclass

from nacl.signing import SigningKey

from .codec import encode_instruction
from .constants import SYSTEM_PROGRAM_ID
from .types import InputParams, InstructionKind, Pubkey


@dataclass(frozen=True)
class AccountMeta:
    pubkey: Pubkey
    is_signer: bool
    is_writable: bool


@dataclass(frozen=True)
class Instruction:
    program_id: Pubkey
    accounts: list[AccountMeta]
    data: bytes


def encode_length(n: int) -> bytes:
    """Compact-u16 ("shortvec") length prefix."""
    if n < 0 or n > 0xFFFF:
        raise ValueError(f"length out of compact-u16 range: {n}")
    out = bytearray()
    while True:
        byte = n & 0x7F
        n >>= 7
        if n == 0:
            out.append(byte)
            return bytes(out)
        out.append(byte | 0x80)


def _ordered_keys(instruction: Instruction, payer: Pubkey) -> list[AccountMeta]:
    merged: dict[Pubkey, AccountMeta] = {payer: AccountMeta(payer, True, True)}
    for meta in [*instruction.accounts, AccountMeta(instruction.program_id, False, False)]:
        prev = merged.get(meta.pubkey)
        if prev is None:
            merged[meta.pubkey] = meta
        else:
            merged[meta.pubkey] = AccountMeta(
                meta.pubkey, prev.is_signer or meta.is_signer, prev.is_writable or meta.is_writable
            )

    def rank(meta: AccountMeta) -> int:
        if meta.is_signer:
            return 0 if meta.is_writable else 1
        return 2 if meta.is_writable else 3

    # sorted() is stable, so the payer stays first among writable signers
    return sorted(merged.values(), key=rank)


def compile_message(instruction: Instruction, payer: Pubkey, recent_blockhash: bytes) -> bytes:
    if len(recent_blockhash) != 32:
        raise ValueError("recent blockhash must be 32 bytes")
    keys = _ordered_keys(instruction, payer)
    index = {meta.pubkey: i for i, meta in enumerate(keys)}

    header = bytes(
        [
            sum(1 for m in keys if m.is_signer),
            sum(1 for m in keys if m.is_signer and not m.is_writable),
            sum(1 for m in keys if not m.is_signer and not m.is_writable),
        ]
    )
    account_indices = bytes(index[meta.pubkey] for meta in instruction.accounts)
    compiled_ix = b"".join(
        [
            bytes([index[instruction.program_id]]),
            encode_length(len(account_indices)),
            account_indices,
            encode_length(len(instruction.data)),
            instruction.data,
        ]
    )
    return b"".join(
        [
            header,
            encode_length(len(keys)),
            b"".join(m.pubkey.raw for m in keys),
            recent_blockhash,
            encode_length(1),
            compiled_ix,
        ]
    )


def sign_transaction(message: bytes, signing_key: SigningKey) -> tuple[bytes, bytes]:
    """Return ``(signature, wire_transaction)`` for a single-signer message."""
    signature = signing_key.sign(message).signature
    return signature, encode_length(1) + signature + message


def build_attestation_instruction(
    kind: InstructionKind,
    params: InputParams | None,
    record: Pubkey,
    signer: Pubkey,
    program_id: Pubkey,
    verify_program: Pubkey,
) -> Instruction:
    accounts = [
        AccountMeta(record, is_signer=False, is_writable=True),
        AccountMeta(signer, is_signer=True, is_writable=False),
        AccountMeta(program_id, is_signer=False, is_writable=False),
    ]
    if kind is not InstructionKind.CLOSE:
        accounts.append(AccountMeta(Pubkey.from_string(SYSTEM_PROGRAM_ID), is_signer=False, is_writable=False))
    return Instruction(verify_program, accounts, encode_instruction(kind, params))
