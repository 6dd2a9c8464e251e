"""
ReserveFetcher — one read-only getReserves() call per pool.

Each fetch is self-contained; a chain's fetches run concurrently and are
joined before composition. No retries here: RpcError / Timeout / DecodeError
go straight back to the caller, tagged with the hop that failed.
"""

import asyncio
from typing import List, Sequence

from eth_abi import decode
from eth_abi.exceptions import DecodingError

from pricechain.errors import DecodeError, PriceChainError, RpcError
from pricechain.pricing.models import PoolReserves
from pricechain.pricing.route import (
    GET_RESERVES_SEL,
    GET_RESERVES_SIZE,
    GET_RESERVES_TYPES,
    checksum_pool,
)
from pricechain.rpc.pool import DEFAULT_CALL_TIMEOUT


def decode_reserves(pool_address: str, return_data: bytes) -> PoolReserves:
    """Decode getReserves() return data — exactly (uint112, uint112, uint32)."""
    if len(return_data) != GET_RESERVES_SIZE:
        raise DecodeError(
            f"getReserves() returned {len(return_data)} bytes, expected {GET_RESERVES_SIZE}",
            pool=pool_address,
        )
    try:
        reserve0, reserve1, observed_at = decode(GET_RESERVES_TYPES, bytes(return_data))
    except DecodingError as e:
        raise DecodeError(f"getReserves() response does not decode: {e}", pool=pool_address) from e
    return PoolReserves(
        pool_address=pool_address,
        reserve0=reserve0,
        reserve1=reserve1,
        observed_at=observed_at,
    )


class ReserveFetcher:
    """Reads pool reserves through an RPCPool."""

    def __init__(self, rpc_pool, timeout: float = DEFAULT_CALL_TIMEOUT):
        self.rpc_pool = rpc_pool
        self.timeout = timeout

    async def fetch(self, pool_address: str) -> PoolReserves:
        """Single eth_call of getReserves() at pool_address."""
        address = checksum_pool(pool_address)
        tx = {"to": address, "data": "0x" + GET_RESERVES_SEL.hex()}

        async def _call(w3) -> bytes:
            raw = await w3.eth.call(tx)
            # a non-bytes answer counts against the endpoint
            if not isinstance(raw, (bytes, bytearray)):
                raise RpcError(f"eth_call returned {type(raw).__name__}, expected bytes")
            return raw

        try:
            raw = await self.rpc_pool.call(
                _call,
                shard_key=address,
                timeout=self.timeout,
                retry=False,
            )
        except PriceChainError as e:
            e.pool = address
            raise
        return decode_reserves(address, raw)

    async def fetch_all(self, pool_addresses: Sequence[str]) -> List[PoolReserves]:
        """Fetch every pool concurrently; results come back in input order.

        Fail-fast: the first failing hop cancels the fetches still in flight
        and its error is raised with the hop index attached.
        """
        tasks = [
            asyncio.create_task(self._fetch_hop(i, addr))
            for i, addr in enumerate(pool_addresses)
        ]
        if not tasks:
            return []

        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            pending = [t for t in tasks if not t.done()]
            for t in pending:
                t.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        for t in tasks:
            if not t.cancelled() and t.exception() is not None:
                raise t.exception()
        return [t.result() for t in tasks]

    async def _fetch_hop(self, hop: int, pool_address: str) -> PoolReserves:
        try:
            return await self.fetch(pool_address)
        except PriceChainError as e:
            raise e.at_hop(hop)
