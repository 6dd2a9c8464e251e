"""
pricechain configuration — env vars / .env, validated, fails fast.

Nothing is read at import time: load_config() builds a PriceChainConfig that
the caller passes explicitly to the RPC pool, fetcher and route builder.

Recognised options:
  NODE_ENDPOINT        primary node RPC URL
  NODE_ENDPOINTS       optional comma list of extra RPC URLs
  HOP_POOLS            addr:TOKEN0/TOKEN1,... — chain from INTERMEDIATE to REFERENCE
  TOKEN_DECIMALS       SYMBOL=N,... — decimal exponent per token
  INTERMEDIATE_TOKEN   token the caller's first pool is paired against
  FETCH_TIMEOUT        per-fetch timeout, seconds
  MAX_RPC_CONCURRENCY  outstanding RPC calls
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv

DEFAULT_NODE_ENDPOINT = "https://eth.llamarpc.com"
# Uniswap V2 WETH/USDT on Ethereum mainnet
DEFAULT_HOP_POOLS = "0x0d4a11d5EEaaC28EC3F61d100daF4d40471f1852:WETH/USDT"
DEFAULT_TOKEN_DECIMALS = "WETH=18,USDT=6"
DEFAULT_INTERMEDIATE = "WETH"


@dataclass(frozen=True)
class PriceChainConfig:
    node_endpoints: List[str]
    hop_pools: List[Tuple[str, str]]          # (address, "TOKEN0/TOKEN1")
    token_decimals: Dict[str, int] = field(default_factory=dict)
    intermediate_token: str = DEFAULT_INTERMEDIATE
    fetch_timeout: float = 10.0
    max_rpc_concurrency: int = 4
    warnings: List[str] = field(default_factory=list, compare=False)

    @property
    def node_endpoint(self) -> str:
        return self.node_endpoints[0]


def _fatal(msg: str):
    print(f"FATAL: {msg}", file=sys.stderr)
    sys.exit(1)


def _optional(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _validate_address(addr: str, label: str) -> str:
    """0x-prefixed, 42 chars, valid hex."""
    if not addr.startswith("0x") or len(addr) != 42:
        _fatal(f"{label} is not a valid address: {addr}")
    try:
        int(addr, 16)
    except ValueError:
        _fatal(f"{label} contains invalid hex: {addr}")
    return addr


def _validate_url(url: str, label: str) -> str:
    if not url.startswith(("http://", "https://")):
        _fatal(f"{label} must start with http:// or https://: {url}")
    return url


def _int_range(name: str, raw: str, low: int, high: int, warnings: list) -> int:
    """Parse an int and clamp to [low, high] with a warning."""
    try:
        val = int(raw)
    except ValueError:
        _fatal(f"{name} must be an integer, got: {raw}")
    if val < low or val > high:
        clamped = max(low, min(val, high))
        warnings.append(f"{name}={val} out of range [{low},{high}], clamped to {clamped}")
        return clamped
    return val


def parse_hop_pools(raw: str) -> List[Tuple[str, str]]:
    """'0xabc...:WETH/USDT,0xdef...:USDT/DAI' → [(addr, 'WETH/USDT'), ...]"""
    pools = []
    for entry in (e.strip() for e in raw.split(",")):
        if not entry:
            continue
        addr, sep, pair = entry.partition(":")
        if not sep or "/" not in pair:
            _fatal(f"HOP_POOLS entry must be ADDRESS:TOKEN0/TOKEN1, got: {entry}")
        pools.append((_validate_address(addr.strip(), "HOP_POOLS entry"), pair.strip().upper()))
    return pools


def parse_token_decimals(raw: str) -> Dict[str, int]:
    """'WETH=18,USDT=6' → {'WETH': 18, 'USDT': 6}"""
    table: Dict[str, int] = {}
    for entry in (e.strip() for e in raw.split(",")):
        if not entry:
            continue
        sym, sep, digits = entry.partition("=")
        if not sep or not digits.strip().isdigit():
            _fatal(f"TOKEN_DECIMALS entry must be SYMBOL=N with N >= 0, got: {entry}")
        table[sym.strip().upper()] = int(digits)
    return table


def load_config(env_file: Optional[Path] = None) -> PriceChainConfig:
    """Read .env (if present) and the environment into a PriceChainConfig."""
    load_dotenv(env_file or Path.cwd() / ".env")
    warnings: List[str] = []

    endpoints = [_validate_url(_optional("NODE_ENDPOINT", DEFAULT_NODE_ENDPOINT), "NODE_ENDPOINT")]
    for url in _optional("NODE_ENDPOINTS").split(","):
        url = url.strip()
        if url and url not in endpoints:
            endpoints.append(_validate_url(url, "NODE_ENDPOINTS entry"))
    if len(endpoints) < 2:
        warnings.append("Only 1 node endpoint — no fallback available")

    hop_pools = parse_hop_pools(_optional("HOP_POOLS", DEFAULT_HOP_POOLS))
    if not hop_pools:
        warnings.append("HOP_POOLS is empty — the caller's pool must reach REFERENCE on its own")

    return PriceChainConfig(
        node_endpoints=endpoints,
        hop_pools=hop_pools,
        token_decimals=parse_token_decimals(_optional("TOKEN_DECIMALS", DEFAULT_TOKEN_DECIMALS)),
        intermediate_token=_optional("INTERMEDIATE_TOKEN", DEFAULT_INTERMEDIATE).upper(),
        fetch_timeout=float(_int_range("FETCH_TIMEOUT", _optional("FETCH_TIMEOUT", "10"), 1, 120, warnings)),
        max_rpc_concurrency=_int_range(
            "MAX_RPC_CONCURRENCY", _optional("MAX_RPC_CONCURRENCY", "4"), 1, 50, warnings,
        ),
        warnings=warnings,
    )


def print_config_summary(cfg: PriceChainConfig) -> None:
    """Print a config summary for startup verification."""
    print("--- pricechain config ---")
    print(f"  Node:           {cfg.node_endpoint[:40]}...")
    print(f"  Endpoints:      {len(cfg.node_endpoints)}")
    print(f"  Intermediate:   {cfg.intermediate_token}")
    for addr, pair in cfg.hop_pools:
        print(f"  Hop pool:       {pair} @ {addr}")
    decimals = ", ".join(f"{s}={d}" for s, d in sorted(cfg.token_decimals.items()))
    print(f"  Decimals:       {decimals}")
    print(f"  Fetch timeout:  {cfg.fetch_timeout:.0f}s")
    print(f"  RPC concurrency:{cfg.max_rpc_concurrency}")
    if cfg.warnings:
        print(f"  ⚠️  {len(cfg.warnings)} config warning(s):")
        for w in cfg.warnings:
            print(f"    - {w}")
    print("-" * 25)
