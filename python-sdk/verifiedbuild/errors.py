from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    CONFIG = "config"
    UPSTREAM_LOOKUP = "upstream_lookup"
    ADDRESS_DERIVATION = "address_derivation"
    NO_ATTESTATION_FOUND = "no_attestation_found"
    DECODE = "decode"
    RPC = "rpc"
    SUBMISSION = "submission"


class VerifiedBuildError(Exception):
    """Top-level client error tagged with an ``ErrorKind``."""

    kind: ErrorKind = ErrorKind.RPC
    retryable = False

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.details = details


class ConfigError(VerifiedBuildError):
    """Missing or unreadable local config or keypair."""

    kind = ErrorKind.CONFIG


class UpstreamLookupError(VerifiedBuildError):
    """The deployed-slot lookup failed."""

    kind = ErrorKind.UPSTREAM_LOOKUP
    retryable = True


class AddressDerivationError(VerifiedBuildError):
    kind = ErrorKind.ADDRESS_DERIVATION


class NoAttestationFoundError(VerifiedBuildError):
    kind = ErrorKind.NO_ATTESTATION_FOUND


class DecodeError(VerifiedBuildError):
    kind = ErrorKind.DECODE


class RpcError(VerifiedBuildError):
    """A read-only RPC call failed in transport or returned an error object."""

    kind = ErrorKind.RPC
    retryable = True


class SubmissionError(VerifiedBuildError):
    """The network rejected the transaction or it was not confirmed."""

    kind = ErrorKind.SUBMISSION
