"""
Error taxonomy for the reserve-fetch → compose pipeline.

Every error can carry the hop index and pool address it came from, so a
caller can decide whether to retry just that hop. Nothing here is retried
internally.
"""

from typing import Optional


class PriceChainError(Exception):
    """Base class — all pipeline failures derive from this."""

    def __init__(self, message: str, hop: Optional[int] = None, pool: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hop = hop
        self.pool = pool

    def at_hop(self, hop: int, pool: Optional[str] = None) -> "PriceChainError":
        """Annotate with the hop position (and pool) that failed. Returns self."""
        self.hop = hop
        if pool is not None:
            self.pool = pool
        return self

    def __str__(self) -> str:
        where = []
        if self.hop is not None:
            where.append(f"hop {self.hop}")
        if self.pool:
            where.append(f"pool {self.pool[:10]}...")
        if where:
            return f"{self.message} ({', '.join(where)})"
        return self.message


class RpcError(PriceChainError):
    """Node unreachable, JSON-RPC error, or a malformed transport response."""


class Timeout(PriceChainError):
    """Node did not answer within the configured bound."""


class DecodeError(PriceChainError):
    """Response did not match the (reserve0, reserve1, timestamp) shape."""


class ZeroReserve(PriceChainError):
    """A pool reports an empty side — ratio would be 0 or infinite."""


class ChainMismatch(PriceChainError):
    """Malformed hop chain: no hops, bad slot/decimals, or tokens that don't link."""
