from __future__ import annotations

import json
from pathlib import Path

import pytest

from vault_tvl.config import load_config
from vault_tvl.errors import ConfigError

VAULT = "0x" + "ab" * 20

ENV_KEYS = (
    "CHAIN_NAME",
    "RPC_URLS",
    "SUBGRAPH_URL",
    "PAGE_SIZE",
    "VAULT_ADDRESSES",
    "BLOCKS",
    "BLOCKS_CSV",
    "OUTPUT_PATH",
    "SHARE_TOKEN_PATH",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def _write(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data))
    return path


def test_config_file_values_are_loaded(tmp_path):
    path = _write(
        tmp_path,
        {
            "chain": {"name": "mode", "rpc_urls": ["https://rpc.one", "https://rpc.two"]},
            "source": {"subgraph_url": "https://subgraph", "page_size": 500},
            "vaults": [VAULT.upper().replace("0X", "0x")],
            "blocks": [1, 2],
            "blocks_csv": "blocks.csv",
        },
    )

    config = load_config(path)

    assert config.chain.rpc_urls == ["https://rpc.one", "https://rpc.two"]
    assert config.source.page_size == 500
    assert config.vaults == [VAULT]
    assert config.blocks == [1, 2]
    assert config.blocks_csv == Path("blocks.csv")
    assert config.output.output_path == Path("outputData.csv")
    assert config.output.share_token_path == Path("shareToken.csv")


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = _write(tmp_path, {"source": {"subgraph_url": "https://subgraph"}, "vaults": [VAULT]})
    monkeypatch.setenv("RPC_URLS", "https://a, https://b")
    monkeypatch.setenv("BLOCKS", "7,8")
    monkeypatch.setenv("PAGE_SIZE", "not-a-number")
    monkeypatch.setenv("OUTPUT_PATH", "/tmp/tvl.csv")

    config = load_config(path)

    assert config.chain.rpc_urls == ["https://a", "https://b"]
    assert config.blocks == [7, 8]
    assert config.source.page_size == 1000
    assert config.output.output_path == Path("/tmp/tvl.csv")


def test_missing_vaults_is_a_config_error(tmp_path):
    path = _write(tmp_path, {"source": {"subgraph_url": "https://subgraph"}})
    with pytest.raises(ConfigError, match="VAULT_ADDRESSES"):
        load_config(path)


def test_invalid_vault_address_is_rejected(tmp_path):
    path = _write(tmp_path, {"source": {"subgraph_url": "https://subgraph"}, "vaults": ["0x1234"]})
    with pytest.raises(ConfigError, match="Invalid vault address"):
        load_config(path)


def test_missing_subgraph_url_is_rejected(tmp_path):
    path = _write(tmp_path, {"vaults": [VAULT]})
    with pytest.raises(ConfigError, match="SUBGRAPH_URL"):
        load_config(path)


def test_invalid_json_is_a_config_error(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json")
    with pytest.raises(ConfigError):
        load_config(path)
