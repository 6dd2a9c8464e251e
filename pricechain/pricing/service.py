"""
PriceService — fetch every hop, join, compose.

price() is the one-shot pipeline. run() repeats it on a fixed cadence for a
long-running caller; that loop is where per-tick failures are reported and
survived — the pipeline itself never recovers from anything.
"""

import asyncio
import time
from typing import Sequence

from pricechain.errors import PriceChainError
from pricechain.pricing.composer import PriceComposer
from pricechain.pricing.fetcher import ReserveFetcher
from pricechain.pricing.models import HopSpec, Orientation, PriceQuote
from pricechain.pricing.route import reference_symbol


class PriceService:
    """Top-level pipeline: ReserveFetcher → join → PriceComposer."""

    def __init__(self, fetcher: ReserveFetcher, composer: PriceComposer = None):
        self.fetcher = fetcher
        self.composer = composer or PriceComposer()
        self._running = False

        self._tick_count = 0
        self._tick_errors = 0
        self._total_tick_ms = 0.0
        self._max_tick_ms = 0.0
        self._last_error = ""

    async def price(
        self,
        hops: Sequence[HopSpec],
        orientation: Orientation = Orientation.REFERENCE_PER_ASSET,
    ) -> PriceQuote:
        """Fetch all hops concurrently and compose them into one quote."""
        reserves = await self.fetcher.fetch_all([h.pool_address for h in hops])
        value = self.composer.compose(list(zip(reserves, hops)), orientation)
        return PriceQuote(
            price=value,
            orientation=orientation,
            hops=tuple(hops),
            observed_at=max(r.observed_at for r in reserves),
        )

    async def run(
        self,
        hops: Sequence[HopSpec],
        interval: float,
        orientation: Orientation = Orientation.REFERENCE_PER_ASSET,
    ):
        """Price every `interval` seconds until stop() or cancellation."""
        self._running = True
        print(f"[PRICE] Watching {len(hops)}-hop chain every {interval}s")

        while self._running:
            t0 = time.monotonic()
            try:
                quote = await self.price(hops, orientation)
                print(f"[PRICE] {format_quote(quote)}")
            except asyncio.CancelledError:
                self._running = False
                raise
            except PriceChainError as e:
                self._tick_errors += 1
                self._last_error = str(e)
                print(f"[PRICE] ❌ {type(e).__name__}: {e}")

            duration_ms = (time.monotonic() - t0) * 1000
            self._tick_count += 1
            self._total_tick_ms += duration_ms
            self._max_tick_ms = max(self._max_tick_ms, duration_ms)

            if self._running:
                await asyncio.sleep(interval)

    def stop(self):
        self._running = False

    def metrics(self) -> dict:
        return {
            "ticks": self._tick_count,
            "tick_errors": self._tick_errors,
            "avg_tick_ms": round(self._total_tick_ms / max(self._tick_count, 1), 1),
            "max_tick_ms": round(self._max_tick_ms, 1),
            "last_error": self._last_error,
        }


def format_quote(quote: PriceQuote) -> str:
    """'LINK/USDT: $14.23...' style line — units are the caller's to name."""
    asset = quote.hops[0].base_symbol or "ASSET"
    ref = reference_symbol(quote.hops)
    if quote.orientation is Orientation.REFERENCE_PER_ASSET:
        return f"{asset}/{ref}: ${quote.price}"
    return f"{ref}/{asset}: {quote.price} {asset}"
