import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from eth_utils import is_address

from vault_tvl.errors import ConfigError


@dataclass
class ChainConfig:
    name: str
    rpc_urls: List[str]


@dataclass
class SourceConfig:
    subgraph_url: str
    page_size: int = 1000


@dataclass
class OutputConfig:
    output_path: Path
    share_token_path: Path


@dataclass
class AppConfig:
    chain: ChainConfig
    source: SourceConfig
    output: OutputConfig
    vaults: List[str] = field(default_factory=list)
    blocks: List[int] = field(default_factory=list)
    blocks_csv: Optional[Path] = None
    log_level: str = "INFO"


DEFAULT_CONFIG_PATH = Path("config.json")


def _load_config_from_file(path: Path) -> dict:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc


def _get_env_or_default(key: str, fallback: Optional[str]) -> Optional[str]:
    return os.getenv(key, fallback)


def _get_int_env(key: str, fallback: Optional[int], default: int) -> int:
    raw_value = os.getenv(key)
    if raw_value is not None:
        try:
            return int(raw_value)
        except ValueError:
            pass
    if fallback is not None:
        try:
            return int(fallback)
        except (TypeError, ValueError):
            pass
    return default


def _get_list_env(key: str, fallback: Optional[List]) -> List[str]:
    raw_value = os.getenv(key)
    if raw_value:
        return [item.strip() for item in raw_value.split(",") if item.strip()]
    return [str(item) for item in fallback or []]


def _parse_blocks(values: List[str]) -> List[int]:
    try:
        return [int(value) for value in values]
    except ValueError as exc:
        raise ConfigError(f"Invalid block number in BLOCKS: {exc}") from exc


def load_config(path: Optional[Path] = None) -> AppConfig:
    data = _load_config_from_file(path or DEFAULT_CONFIG_PATH)
    chain_data = data.get("chain", {})
    source_data = data.get("source", {})
    output_data = data.get("output", {})

    blocks_csv = _get_env_or_default("BLOCKS_CSV", data.get("blocks_csv"))
    config = AppConfig(
        chain=ChainConfig(
            name=_get_env_or_default("CHAIN_NAME", chain_data.get("name", "mode")),
            rpc_urls=_get_list_env(
                "RPC_URLS", chain_data.get("rpc_urls", ["https://mainnet.mode.network"])
            ),
        ),
        source=SourceConfig(
            subgraph_url=_get_env_or_default("SUBGRAPH_URL", source_data.get("subgraph_url", "")),
            page_size=_get_int_env("PAGE_SIZE", source_data.get("page_size"), 1000),
        ),
        output=OutputConfig(
            output_path=Path(
                _get_env_or_default("OUTPUT_PATH", output_data.get("output_path", "outputData.csv"))
            ),
            share_token_path=Path(
                _get_env_or_default(
                    "SHARE_TOKEN_PATH", output_data.get("share_token_path", "shareToken.csv")
                )
            ),
        ),
        vaults=[v.lower() for v in _get_list_env("VAULT_ADDRESSES", data.get("vaults"))],
        blocks=_parse_blocks(_get_list_env("BLOCKS", data.get("blocks"))),
        blocks_csv=Path(blocks_csv) if blocks_csv else None,
        log_level=_get_env_or_default("LOG_LEVEL", data.get("log_level", "INFO")),
    )
    validate_config(config)
    return config


def validate_config(config: AppConfig) -> None:
    if not config.chain.rpc_urls:
        raise ConfigError("RPC_URLS must be provided via environment variables or config.json")
    if not config.vaults:
        raise ConfigError("VAULT_ADDRESSES must be provided via environment variables or config.json")
    for vault in config.vaults:
        if not is_address(vault):
            raise ConfigError(f"Invalid vault address: {vault}")
    if not config.source.subgraph_url:
        raise ConfigError("SUBGRAPH_URL must be provided via environment variables or config.json")
    if config.source.page_size <= 0:
        raise ConfigError("PAGE_SIZE must be positive")
