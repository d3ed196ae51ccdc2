"""Network-wide constants for the on-chain verification program."""

from __future__ import annotations

CLIENT_VERSION = "0.4.0"

VERIFY_PROGRAM_ID = "verifycLy8mB96wd9wqq3WDXQwM4oU6r42Th37Db9fC"

# Attestations published by the trusted third-party attestor are derived with this signer.
TRUSTED_SIGNER = "9VWiUUhgNoRwTH5NVehYJEDwcotwYX3VgW4MChiHPAqU"

SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
BPF_LOADER_UPGRADEABLE_ID = "BPFLoaderUpgradeab1e11111111111111111111111"

PDA_SEED = b"otter_verify"
PDA_MARKER = b"ProgramDerivedAddress"
MAX_SEEDS = 16
MAX_SEED_LEN = 32

# Anchor account discriminator preceding every attestation record.
ACCOUNT_TAG_LEN = 8

INITIALIZE_DISCRIMINANT = bytes([175, 175, 109, 31, 13, 152, 155, 237])
UPDATE_DISCRIMINANT = bytes([219, 200, 88, 176, 158, 63, 253, 127])
CLOSE_DISCRIMINANT = bytes([98, 165, 201, 177, 108, 65, 206, 96])

MAINNET_URL = "https://api.mainnet-beta.solana.com"
DEVNET_URL = "https://api.devnet.solana.com"
LOCALNET_URL = "http://localhost:8899"

DEFAULT_COMMITMENT = "confirmed"
