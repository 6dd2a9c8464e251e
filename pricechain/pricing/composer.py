"""
PriceComposer — fold hop reserves into a single cross rate.

For ASSET → INTERMEDIATE → REFERENCE:

    hop rate_i  = (base_i / 10^dBase_i) / (quote_i / 10^dQuote_i)
    ASSET-per-REFERENCE = rate_0 × rate_1 × ...
    REFERENCE-per-ASSET = 1 / (ASSET-per-REFERENCE)

Precision: reserves are scaled to 64-bit floats (int / int true division, so
each conversion is correctly rounded even at 2^112 with 18 decimals). That
keeps ~15-16 significant digits through the product, which is display
precision. It is not meant for settlement maths — use the raw integers
for that.
"""

import math
from typing import Sequence, Tuple

from pricechain.errors import ChainMismatch, ZeroReserve
from pricechain.pricing.models import (
    HopRate,
    HopSpec,
    Orientation,
    PoolReserves,
    PriceChain,
    TokenAmount,
)


def to_decimal(raw: int, decimals: int) -> float:
    """Raw fixed-point integer → decimal magnitude."""
    return TokenAmount(raw, decimals).value


def from_decimal(value: float, decimals: int) -> int:
    """Decimal magnitude → raw integer (scaled by 10^decimals, truncated)."""
    if decimals < 0:
        raise ChainMismatch(f"decimal exponent must be >= 0, got {decimals}")
    return int(value * (10 ** decimals))


def _usable(x: float) -> bool:
    return x != 0.0 and math.isfinite(x)


class PriceComposer:
    """Pure: no I/O, no state between calls."""

    def hop_rate(self, reserves: PoolReserves, hop: HopSpec) -> HopRate:
        """Orient one pool's reserves as base-per-quote in decimal units."""
        if hop.base_slot not in (0, 1):
            raise ChainMismatch(f"base_slot must be 0 or 1, got {hop.base_slot}", pool=hop.pool_address)

        base_raw = reserves.slot(hop.base_slot)
        quote_raw = reserves.slot(hop.quote_slot)
        if base_raw == 0 or quote_raw == 0:
            raise ZeroReserve(
                f"pool {hop.label} has an empty side (reserve0={reserves.reserve0}, "
                f"reserve1={reserves.reserve1})",
                pool=reserves.pool_address,
            )
        rate = HopRate(
            base=TokenAmount(base_raw, hop.base_decimals),
            quote=TokenAmount(quote_raw, hop.quote_decimals),
        )
        # Non-zero raw reserves can still scale outside float range
        if rate.base.value == 0.0 or rate.quote.value == 0.0 or not _usable(rate.rate):
            raise ZeroReserve(
                f"pool {hop.label} ratio under/overflowed float range "
                f"(decimals {hop.base_decimals}/{hop.quote_decimals}); reserves are not empty",
                pool=reserves.pool_address,
            )
        return rate

    def build_chain(self, pairs: Sequence[Tuple[PoolReserves, HopSpec]]) -> PriceChain:
        if len(pairs) == 0:
            raise ChainMismatch("price chain needs at least one hop")
        rates = []
        for i, (reserves, hop) in enumerate(pairs):
            try:
                rates.append(self.hop_rate(reserves, hop))
            except (ZeroReserve, ChainMismatch) as e:
                raise e.at_hop(i, hop.pool_address)
        return PriceChain(tuple(rates))

    def compose(
        self,
        pairs: Sequence[Tuple[PoolReserves, HopSpec]],
        orientation: Orientation = Orientation.REFERENCE_PER_ASSET,
    ) -> float:
        """Reserves + hop annotations → price in the requested orientation."""
        return self.compose_chain(self.build_chain(pairs), orientation)

    def compose_chain(
        self,
        chain: PriceChain,
        orientation: Orientation = Orientation.REFERENCE_PER_ASSET,
    ) -> float:
        product = chain.product()
        if not _usable(product):
            raise ZeroReserve(
                f"product of {len(chain)} hop rates under/overflowed float range ({product}); "
                "no reserve is empty, retrying a hop will not help"
            )
        if orientation is Orientation.ASSET_PER_REFERENCE:
            return product
        return 1.0 / product
