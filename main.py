"""
pricechain — price a token in a reference unit via a chain of V2 pools.

    TOKEN/WETH × WETH/USDT = TOKEN/USDT

Usage:
    python3 main.py --pool 0xa2107fa5b38d9bbd2c461d6edf11b11a50f6b974 --symbol LINK
    python3 main.py --pool ... --watch 15      # re-price every 15s
    python3 main.py --smoke                    # connect to node + exit
"""

import argparse
import asyncio
import sys

from pricechain.config import load_config, print_config_summary
from pricechain.errors import PriceChainError
from pricechain.pricing.fetcher import ReserveFetcher
from pricechain.pricing.models import Orientation
from pricechain.pricing.route import build_hops
from pricechain.pricing.service import PriceService, format_quote
from pricechain.rpc.pool import RPCPool


async def smoke_test(cfg):
    """Connect to the node, print chain id + block, exit."""
    print_config_summary(cfg)
    rpc_pool = RPCPool(urls=cfg.node_endpoints, max_concurrency=cfg.max_rpc_concurrency)
    try:
        chain_id = await rpc_pool.call(lambda w3: w3.eth.chain_id, timeout=cfg.fetch_timeout)
        block = await rpc_pool.call(lambda w3: w3.eth.block_number, timeout=cfg.fetch_timeout)
    except PriceChainError as e:
        print(f"[RPC] ❌ Failed to connect: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"[RPC] ✅ chain_id={chain_id} block_number={block}")
    rpc_pool.print_status()


async def run_price(cfg, args):
    pools = [(args.pool, _first_pair(args, cfg.intermediate_token))] + list(cfg.hop_pools)
    decimals = dict(cfg.token_decimals)
    decimals[args.symbol.upper()] = args.asset_decimals
    orientation = Orientation.ASSET_PER_REFERENCE if args.invert else Orientation.REFERENCE_PER_ASSET

    try:
        hops = build_hops(args.symbol, pools, decimals)
    except PriceChainError as e:
        print(f"[INIT] ❌ {type(e).__name__}: {e}", file=sys.stderr)
        sys.exit(1)

    rpc_pool = RPCPool(urls=cfg.node_endpoints, max_concurrency=cfg.max_rpc_concurrency)
    service = PriceService(ReserveFetcher(rpc_pool, timeout=cfg.fetch_timeout))

    if args.watch:
        try:
            await service.run(hops, args.watch, orientation)
        finally:
            service.stop()
            print(f"[PRICE] Stopped. {service.metrics()}")
        return

    try:
        quote = await service.price(hops, orientation)
    except PriceChainError as e:
        print(f"[PRICE] ❌ {type(e).__name__}: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"[UNI V2] {format_quote(quote)}")


def _first_pair(args, intermediate: str) -> str:
    """Label of the caller's pool: asset in slot 0 unless --asset-slot 1."""
    asset = args.symbol.upper()
    if args.asset_slot == 0:
        return f"{asset}/{intermediate}"
    return f"{intermediate}/{asset}"


def main():
    parser = argparse.ArgumentParser(description="Hop-chain AMM price")
    parser.add_argument("--pool", help="ASSET/INTERMEDIATE pool address")
    parser.add_argument("--symbol", default="TOKEN", help="Asset symbol for output (default TOKEN)")
    parser.add_argument("--asset-decimals", type=int, default=18, help="Asset decimal exponent")
    parser.add_argument("--asset-slot", type=int, choices=(0, 1), default=0,
                        help="Reserve slot holding the asset in --pool")
    parser.add_argument("--invert", action="store_true", help="Report ASSET per REFERENCE instead")
    parser.add_argument("--watch", type=float, default=0.0, help="Re-price every N seconds")
    parser.add_argument("--smoke", action="store_true", help="Smoke test only (connect + exit)")
    args = parser.parse_args()

    cfg = load_config()
    if not args.smoke and not args.pool:
        parser.error("--pool is required unless --smoke is given")
    if args.asset_decimals < 0:
        parser.error("--asset-decimals must be >= 0")

    try:
        if args.smoke:
            asyncio.run(smoke_test(cfg))
        else:
            asyncio.run(run_price(cfg, args))
    except KeyboardInterrupt:
        print("\nStopped.")


if __name__ == "__main__":
    main()
