from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import base58

from .constants import (
    CLOSE_DISCRIMINANT,
    DEVNET_URL,
    INITIALIZE_DISCRIMINANT,
    LOCALNET_URL,
    MAINNET_URL,
    UPDATE_DISCRIMINANT,
)
from .errors import AddressDerivationError


@dataclass(frozen=True)
class Pubkey:
    """A 32-byte account address, rendered as base58."""

    raw: bytes

    LENGTH = 32

    def __post_init__(self) -> None:
        if len(self.raw) != self.LENGTH:
            raise AddressDerivationError(f"pubkey must be {self.LENGTH} bytes (got {len(self.raw)})")

    @classmethod
    def from_string(cls, text: str) -> Pubkey:
        s = str(text or "").strip()
        try:
            raw = base58.b58decode(s)
        except ValueError as err:
            raise AddressDerivationError(f"invalid base58 pubkey {s!r}: {err}") from err
        if not s or len(raw) != cls.LENGTH:
            raise AddressDerivationError(f"invalid pubkey {s!r}: expected {cls.LENGTH} bytes, got {len(raw)}")
        return cls(raw)

    def __bytes__(self) -> bytes:
        return self.raw

    def __str__(self) -> str:
        return base58.b58encode(self.raw).decode("ascii")

    def __repr__(self) -> str:
        return f"Pubkey({self})"


class InstructionKind(Enum):
    INITIALIZE = "initialize"
    UPDATE = "update"
    CLOSE = "close"

    @property
    def discriminant(self) -> bytes:
        return _DISCRIMINANTS[self]


_DISCRIMINANTS = {
    InstructionKind.INITIALIZE: INITIALIZE_DISCRIMINANT,
    InstructionKind.UPDATE: UPDATE_DISCRIMINANT,
    InstructionKind.CLOSE: CLOSE_DISCRIMINANT,
}


@dataclass
class InputParams:
    """Record fields controlled by the client, sent with Initialize and Update."""

    version: str
    git_url: str
    commit: str = ""
    args: list[str] = field(default_factory=list)
    deployed_slot: int = 0


@dataclass
class AttestationRecord:
    address: Pubkey
    signer: Pubkey
    version: str
    git_url: str
    commit: str
    args: list[str]
    deployed_slot: int
    bump: int

    def __str__(self) -> str:
        return "\n".join(
            [
                f"Program Id: {self.address}",
                f"Signer: {self.signer}",
                f"Git Url: {self.git_url}",
                f"Commit: {self.commit}",
                f"Deployed Slot: {self.deployed_slot}",
                f"Args: {self.args!r}",
                f"Version: {self.version}",
            ]
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "program_id": str(self.address),
            "signer": str(self.signer),
            "version": self.version,
            "git_url": self.git_url,
            "commit": self.commit,
            "args": list(self.args),
            "deployed_slot": self.deployed_slot,
            "bump": self.bump,
        }


class EndpointKind(Enum):
    MAINNET = "mainnet"
    DEVNET = "devnet"
    LOCALNET = "localnet"
    CUSTOM = "custom"
    DEFAULT = "default"


_ALIASES = {
    "m": EndpointKind.MAINNET,
    "d": EndpointKind.DEVNET,
    "l": EndpointKind.LOCALNET,
}

_CLUSTER_URLS = {
    EndpointKind.MAINNET: MAINNET_URL,
    EndpointKind.DEVNET: DEVNET_URL,
    EndpointKind.LOCALNET: LOCALNET_URL,
}


@dataclass(frozen=True)
class EndpointSelector:
    """Which RPC endpoint to talk to.

    ``DEFAULT`` defers to the user's CLI config; ``CUSTOM`` carries a verbatim URL.
    """

    kind: EndpointKind
    url: str | None = None

    @classmethod
    def parse(cls, text: str | None) -> EndpointSelector:
        s = (text or "").strip()
        if not s:
            return cls(EndpointKind.DEFAULT)
        kind = _ALIASES.get(s)
        if kind is not None:
            return cls(kind)
        return cls(EndpointKind.CUSTOM, s)

    def resolve(self, default_url: str | None = None) -> str | None:
        if self.kind is EndpointKind.CUSTOM:
            return self.url
        if self.kind is EndpointKind.DEFAULT:
            return default_url
        return _CLUSTER_URLS[self.kind]


@dataclass(frozen=True)
class UploadResult:
    instruction: InstructionKind | None = None
    address: Pubkey | None = None
    signature: str | None = None

    @property
    def submitted(self) -> bool:
        return self.signature is not None
