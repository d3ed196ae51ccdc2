"""verifiedbuild: on-chain verified-build attestation client for Solana programs."""

from .client import VerifiedBuildClient, create_client
from .codec import decode_params, decode_record, encode_instruction, encode_params
from .constants import CLIENT_VERSION, TRUSTED_SIGNER, VERIFY_PROGRAM_ID
from .errors import (
    AddressDerivationError,
    ConfigError,
    DecodeError,
    ErrorKind,
    NoAttestationFoundError,
    RpcError,
    SubmissionError,
    UpstreamLookupError,
    VerifiedBuildError,
)
from .pda import derive_attestation_address, find_program_address
from .prompt import AlwaysConfirm, Confirmer, TerminalConfirmer
from .types import (
    AttestationRecord,
    EndpointKind,
    EndpointSelector,
    InputParams,
    InstructionKind,
    Pubkey,
    UploadResult,
)

__all__ = [
    "VerifiedBuildClient",
    "create_client",
    "VerifiedBuildError",
    "ErrorKind",
    "ConfigError",
    "UpstreamLookupError",
    "AddressDerivationError",
    "NoAttestationFoundError",
    "DecodeError",
    "RpcError",
    "SubmissionError",
    "Pubkey",
    "InputParams",
    "AttestationRecord",
    "InstructionKind",
    "EndpointKind",
    "EndpointSelector",
    "UploadResult",
    "Confirmer",
    "TerminalConfirmer",
    "AlwaysConfirm",
    "encode_params",
    "decode_params",
    "encode_instruction",
    "decode_record",
    "find_program_address",
    "derive_attestation_address",
    "VERIFY_PROGRAM_ID",
    "TRUSTED_SIGNER",
]

__version__ = CLIENT_VERSION
