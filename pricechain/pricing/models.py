"""
Value types for one pricing invocation: raw pool snapshots, decimal-tagged
token amounts, per-hop rates and the chain they fold into.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from pricechain.errors import ChainMismatch


class Orientation(Enum):
    """Which way round the composed price is reported."""
    ASSET_PER_REFERENCE = "asset_per_reference"   # raw product of hop rates
    REFERENCE_PER_ASSET = "reference_per_asset"   # reciprocal — "1 ASSET costs X REFERENCE"


@dataclass(frozen=True)
class PoolReserves:
    """getReserves() snapshot of one pool at call time."""
    pool_address: str
    reserve0: int
    reserve1: int
    observed_at: int   # blockTimestampLast (uint32)

    def slot(self, index: int) -> int:
        if index == 0:
            return self.reserve0
        if index == 1:
            return self.reserve1
        raise ChainMismatch(f"reserve slot must be 0 or 1, got {index}", pool=self.pool_address)


@dataclass(frozen=True)
class TokenAmount:
    """Raw integer reserve plus the number of fractional digits it implies."""
    raw: int
    decimals: int

    def __post_init__(self):
        if self.decimals < 0:
            raise ChainMismatch(f"decimal exponent must be >= 0, got {self.decimals}")
        if self.raw < 0:
            raise ChainMismatch(f"reserve must be >= 0, got {self.raw}")

    @property
    def value(self) -> float:
        # int / int is correctly rounded even for 112-bit reserves
        return self.raw / (10 ** self.decimals)


@dataclass(frozen=True)
class HopSpec:
    """Caller's annotation for one hop of the chain.

    base_slot is the reserve slot holding the token nearer ASSET; the other
    slot is the token nearer REFERENCE.
    """
    pool_address: str
    base_decimals: int
    quote_decimals: int
    base_slot: int = 0
    base_symbol: Optional[str] = None
    quote_symbol: Optional[str] = None

    @property
    def quote_slot(self) -> int:
        return 1 - self.base_slot

    @property
    def label(self) -> str:
        if self.base_symbol and self.quote_symbol:
            return f"{self.base_symbol}/{self.quote_symbol}"
        return f"{self.pool_address[:10]}..."


@dataclass(frozen=True)
class HopRate:
    """base-per-quote ratio of one hop, both sides in decimal units."""
    base: TokenAmount
    quote: TokenAmount

    @property
    def rate(self) -> float:
        return self.base.value / self.quote.value


@dataclass(frozen=True)
class PriceChain:
    """Ordered hops ASSET → ... → REFERENCE."""
    hops: Tuple[HopRate, ...]

    def __post_init__(self):
        if len(self.hops) == 0:
            raise ChainMismatch("price chain needs at least one hop")

    def extend(self, other: "PriceChain") -> "PriceChain":
        return PriceChain(self.hops + other.hops)

    def product(self) -> float:
        """ASSET-per-REFERENCE: every hop rate multiplied together."""
        result = 1.0
        for hop in self.hops:
            result *= hop.rate
        return result

    def __len__(self) -> int:
        return len(self.hops)


@dataclass(frozen=True)
class PriceQuote:
    """Result of one pipeline run, as handed back to the caller."""
    price: float
    orientation: Orientation
    hops: Tuple[HopSpec, ...]
    observed_at: int   # newest blockTimestampLast across the chain
