from __future__ import annotations

import os
from pathlib import Path

import pytest

from pricechain.config import (
    DEFAULT_NODE_ENDPOINT,
    load_config,
    parse_hop_pools,
    parse_token_decimals,
    print_config_summary,
)

ENV_VARS = (
    "NODE_ENDPOINT",
    "NODE_ENDPOINTS",
    "HOP_POOLS",
    "TOKEN_DECIMALS",
    "INTERMEDIATE_TOKEN",
    "FETCH_TIMEOUT",
    "MAX_RPC_CONCURRENCY",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return tmp_path / "missing.env"


def test_defaults_reproduce_the_weth_usdt_tail(clean_env: Path):
    cfg = load_config(clean_env)

    assert cfg.node_endpoint == DEFAULT_NODE_ENDPOINT
    assert cfg.hop_pools == [("0x0d4a11d5EEaaC28EC3F61d100daF4d40471f1852", "WETH/USDT")]
    assert cfg.token_decimals == {"WETH": 18, "USDT": 6}
    assert cfg.intermediate_token == "WETH"
    assert cfg.fetch_timeout == 10.0
    assert any("Only 1 node endpoint" in w for w in cfg.warnings)


def test_env_overrides(clean_env: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("NODE_ENDPOINT", "http://localhost:8545")
    monkeypatch.setenv("NODE_ENDPOINTS", "http://localhost:8545, https://rpc.example.org")
    monkeypatch.setenv("TOKEN_DECIMALS", "weth=18, usdc=6")
    monkeypatch.setenv("FETCH_TIMEOUT", "500")

    cfg = load_config(clean_env)

    assert cfg.node_endpoints == ["http://localhost:8545", "https://rpc.example.org"]
    assert cfg.token_decimals == {"WETH": 18, "USDC": 6}
    assert cfg.fetch_timeout == 120.0
    assert any("FETCH_TIMEOUT=500" in w for w in cfg.warnings)


def test_dotenv_file_is_read(clean_env: Path, tmp_path: Path):
    env_file = tmp_path / ".env"
    env_file.write_text("INTERMEDIATE_TOKEN=usdc\n")

    try:
        cfg = load_config(env_file)
    finally:
        # load_dotenv writes os.environ directly
        os.environ.pop("INTERMEDIATE_TOKEN", None)

    assert cfg.intermediate_token == "USDC"


def test_bad_node_url_exits(clean_env: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]):
    monkeypatch.setenv("NODE_ENDPOINT", "localhost:8545")

    with pytest.raises(SystemExit):
        load_config(clean_env)

    assert "FATAL: NODE_ENDPOINT" in capsys.readouterr().err


def test_parse_hop_pools():
    raw = "0x0d4a11d5EEaaC28EC3F61d100daF4d40471f1852:weth/usdt, 0xB4e16d0168e52d35CaCD2c6185b44281Ec28C9Dc:USDC/WETH"
    assert parse_hop_pools(raw) == [
        ("0x0d4a11d5EEaaC28EC3F61d100daF4d40471f1852", "WETH/USDT"),
        ("0xB4e16d0168e52d35CaCD2c6185b44281Ec28C9Dc", "USDC/WETH"),
    ]


@pytest.mark.parametrize("raw", ["0x0d4a11d5EEaaC28EC3F61d100daF4d40471f1852", "0x1234:WETH/USDT"])
def test_parse_hop_pools_rejects_malformed_entries(raw: str):
    with pytest.raises(SystemExit):
        parse_hop_pools(raw)


@pytest.mark.parametrize("raw", ["WETH", "WETH=-1", "WETH=eighteen"])
def test_parse_token_decimals_rejects_malformed_entries(raw: str):
    with pytest.raises(SystemExit):
        parse_token_decimals(raw)


def test_summary_prints_hops(clean_env: Path, capsys: pytest.CaptureFixture[str]):
    print_config_summary(load_config(clean_env))
    out = capsys.readouterr().out
    assert "WETH/USDT @ 0x0d4a11d5EEaaC28EC3F61d100daF4d40471f1852" in out
    assert "USDT=6" in out
