from __future__ import annotations

import hashlib
from typing import Sequence

from .constants import MAX_SEED_LEN, MAX_SEEDS, PDA_MARKER, PDA_SEED, VERIFY_PROGRAM_ID
from .errors import AddressDerivationError
from .types import Pubkey

# ed25519 field prime and curve constant d = -121665/121666
_P = 2**255 - 19
_D = (-121665 * pow(121666, _P - 2, _P)) % _P


def is_on_curve(raw: bytes) -> bool:
    """Return True if ``raw`` decompresses to a point on the ed25519 curve.

    The y coordinate is taken modulo p with the sign bit cleared; the point
    exists iff x^2 = (y^2 - 1) / (d*y^2 + 1) has a square root.
    """
    if len(raw) != 32:
        return False
    y = (int.from_bytes(raw, "little") & ((1 << 255) - 1)) % _P
    y2 = y * y % _P
    u = (y2 - 1) % _P
    v = (_D * y2 + 1) % _P
    x2 = u * pow(v, _P - 2, _P) % _P
    return x2 == 0 or pow(x2, (_P - 1) // 2, _P) == 1


def _check_seeds(seeds: Sequence[bytes]) -> None:
    if len(seeds) > MAX_SEEDS:
        raise AddressDerivationError(f"too many seeds: {len(seeds)} > {MAX_SEEDS}")
    for seed in seeds:
        if len(seed) > MAX_SEED_LEN:
            raise AddressDerivationError(f"seed exceeds {MAX_SEED_LEN} bytes: {len(seed)}")


def _hash_seeds(seeds: Sequence[bytes], program_id: Pubkey) -> bytes:
    h = hashlib.sha256()
    for seed in seeds:
        h.update(seed)
    h.update(program_id.raw)
    h.update(PDA_MARKER)
    return h.digest()


def create_program_address(seeds: Sequence[bytes], program_id: Pubkey) -> Pubkey:
    _check_seeds(seeds)
    digest = _hash_seeds(seeds, program_id)
    if is_on_curve(digest):
        raise AddressDerivationError("derived address lies on the ed25519 curve")
    return Pubkey(digest)


def find_program_address(seeds: Sequence[bytes], program_id: Pubkey) -> tuple[Pubkey, int]:
    """Search bumps from 255 down and return the first off-curve address."""
    _check_seeds([*seeds, b"\x00"])
    for bump in range(255, -1, -1):
        digest = _hash_seeds([*seeds, bytes([bump])], program_id)
        if not is_on_curve(digest):
            return Pubkey(digest), bump
    raise AddressDerivationError("unable to find a viable program address bump seed")


def verify_program_id() -> Pubkey:
    return Pubkey.from_string(VERIFY_PROGRAM_ID)


def derive_attestation_address(
    signer: Pubkey,
    program_id: Pubkey,
    verify_program: Pubkey | None = None,
) -> tuple[Pubkey, int]:
    """Address of the attestation published by ``signer`` for ``program_id``."""
    owner = verify_program or verify_program_id()
    return find_program_address([PDA_SEED, signer.raw, program_id.raw], owner)
