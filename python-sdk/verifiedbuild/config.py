from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from nacl.signing import SigningKey

from .constants import MAINNET_URL
from .errors import ConfigError
from .types import EndpointSelector, Pubkey

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "solana" / "cli" / "config.yml"
DEFAULT_KEYPAIR_PATH = Path.home() / ".config" / "solana" / "id.json"


@dataclass(frozen=True)
class CliConfig:
    """The subset of the Solana CLI config file this client reads."""

    json_rpc_url: str = MAINNET_URL
    keypair_path: str = str(DEFAULT_KEYPAIR_PATH)


def config_file_path(path: str | os.PathLike[str] | None = None) -> Path:
    if path:
        return Path(path).expanduser()
    env = os.environ.get("SOLANA_CONFIG") or os.environ.get("SOLANA_CONFIG_FILE")
    if env:
        return Path(env).expanduser()
    return DEFAULT_CONFIG_PATH


def load_cli_config(path: str | os.PathLike[str] | None = None) -> CliConfig:
    cfg_path = config_file_path(path)
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except OSError as err:
        raise ConfigError(f"Unable to read config file {cfg_path}: {err}") from err
    except yaml.YAMLError as err:
        raise ConfigError(f"Config file {cfg_path} is not valid YAML: {err}") from err

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config at {cfg_path} is not a mapping")

    defaults = CliConfig()
    config = CliConfig(
        json_rpc_url=str(data.get("json_rpc_url") or defaults.json_rpc_url),
        keypair_path=str(data.get("keypair_path") or defaults.keypair_path),
    )
    logger.debug("loaded CLI config from %s (rpc=%s)", cfg_path, config.json_rpc_url)
    return config


def load_keypair(path: str | os.PathLike[str]) -> SigningKey:
    """Load a Solana JSON keypair file (64 byte values: seed then public key)."""
    kp_path = Path(path).expanduser()
    try:
        values = json.loads(kp_path.read_text(encoding="utf-8"))
    except OSError as err:
        raise ConfigError(f"Unable to get signer from path {kp_path}: {err}") from err
    except ValueError as err:
        raise ConfigError(f"Keypair file {kp_path} is not valid JSON: {err}") from err

    if not isinstance(values, list) or len(values) != 64:
        raise ConfigError(f"Keypair file {kp_path} must contain a JSON array of 64 bytes")
    try:
        raw = bytes(values)
    except (TypeError, ValueError) as err:
        raise ConfigError(f"Keypair file {kp_path} contains non-byte values") from err

    key = SigningKey(raw[:32])
    if bytes(key.verify_key) != raw[32:]:
        raise ConfigError(f"Keypair file {kp_path} public key does not match its secret key")
    return key


def signer_pubkey(key: SigningKey) -> Pubkey:
    return Pubkey(bytes(key.verify_key))


def resolve_rpc_url(selector: EndpointSelector, config: CliConfig | None) -> str:
    url = selector.resolve(config.json_rpc_url if config else None)
    if not url:
        raise ConfigError("No RPC URL given and no CLI config available")
    return url
