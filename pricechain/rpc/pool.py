"""
RPCPool — node endpoint manager for read-only contract calls.

Features:
  - One AsyncWeb3 client per configured node endpoint
  - Health scoring: errors, timeouts, latency per endpoint
  - Cooldown: an endpoint that just failed is skipped for a while
  - Stable hashing: same pool address → same endpoint while healthy
  - Global concurrency semaphore
  - Per-call timeout, surfaced as Timeout; everything else as RpcError

Retrying on another endpoint is opt-in (retry=True). ReserveFetcher never
asks for it — retry policy belongs to whoever calls the pipeline.
"""

import asyncio
import hashlib
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List

from web3 import AsyncWeb3, AsyncHTTPProvider

from pricechain.errors import PriceChainError, RpcError, Timeout

DEFAULT_CALL_TIMEOUT = 10.0   # seconds per RPC call
MAX_RETRY_ATTEMPTS = 2        # only when retry=True


@dataclass
class RPCEndpoint:
    """Single node endpoint with health metrics."""
    url: str
    w3: AsyncWeb3 = field(repr=False, default=None)

    calls: int = 0
    timeouts: int = 0
    errors: int = 0
    total_latency_ms: float = 0.0

    consecutive_errors: int = 0
    cooldown_until: float = 0.0

    COOLDOWN_BASE_SECONDS: float = 2.0
    COOLDOWN_MAX_SECONDS: float = 60.0

    def __post_init__(self):
        if self.w3 is None:
            self.w3 = AsyncWeb3(AsyncHTTPProvider(self.url))

    @property
    def is_cooled_down(self) -> bool:
        return time.time() < self.cooldown_until

    @property
    def avg_latency_ms(self) -> float:
        successes = self.calls - self.timeouts - self.errors
        return (self.total_latency_ms / successes) if successes > 0 else 0.0

    def score(self) -> float:
        """Health score — higher is better, -1 while cooling down."""
        if self.is_cooled_down:
            return -1.0
        penalty = self.timeouts * 10 + self.errors * 5
        latency_penalty = max(0, (self.avg_latency_ms - 200) / 50)
        return max(0, 100 - penalty - latency_penalty)

    def record_success(self, latency_ms: float):
        self.calls += 1
        self.total_latency_ms += latency_ms
        self.consecutive_errors = 0

    def record_failure(self, timed_out: bool):
        self.calls += 1
        if timed_out:
            self.timeouts += 1
        else:
            self.errors += 1
        self.consecutive_errors += 1
        # 2s, 4s, 8s, ... up to 60s
        cooldown = min(
            self.COOLDOWN_BASE_SECONDS * (2 ** (self.consecutive_errors - 1)),
            self.COOLDOWN_MAX_SECONDS,
        )
        self.cooldown_until = time.time() + cooldown


class RPCPool:
    """Health-scored pool of node endpoints with bounded concurrency."""

    def __init__(self, urls: List[str], max_concurrency: int = 4):
        if not urls:
            raise ValueError("RPCPool requires at least one URL")
        self.endpoints: List[RPCEndpoint] = [RPCEndpoint(url=url) for url in urls]
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._max_concurrency = max_concurrency
        self._created_at = time.time()

    def pick(self, shard_key: str = "") -> RPCEndpoint:
        """Pick a healthy endpoint; shard_key pins a pool to one endpoint."""
        healthy = [ep for ep in self.endpoints if not ep.is_cooled_down]
        if not healthy:
            # All cooling down — take the one that recovers first
            return min(self.endpoints, key=lambda ep: ep.cooldown_until)

        if shard_key:
            h = int(hashlib.md5(shard_key.lower().encode()).hexdigest(), 16)
            return healthy[h % len(healthy)]

        return max(healthy, key=lambda ep: ep.score())

    async def call(
        self,
        coro_factory: Callable,
        shard_key: str = "",
        timeout: float = DEFAULT_CALL_TIMEOUT,
        retry: bool = False,
    ) -> Any:
        """Run coro_factory(w3) on an endpoint under the semaphore and a timeout.

        Raises Timeout if the node does not answer in time, RpcError for any
        other transport or node failure.
        """
        attempts = MAX_RETRY_ATTEMPTS if retry else 1
        last_err: PriceChainError = RpcError("no endpoint attempted")
        tried = set()

        for _ in range(attempts):
            ep = self._pick_untried(shard_key, tried)
            tried.add(id(ep))

            async with self._semaphore:
                t0 = time.monotonic()
                try:
                    result = await asyncio.wait_for(coro_factory(ep.w3), timeout=timeout)
                except asyncio.TimeoutError:
                    ep.record_failure(timed_out=True)
                    last_err = Timeout(f"node did not respond within {timeout}s ({ep.url[:30]})")
                    continue
                except Exception as e:
                    ep.record_failure(timed_out=False)
                    last_err = RpcError(f"{type(e).__name__}: {e}")
                    continue
                ep.record_success((time.monotonic() - t0) * 1000)
                return result

        raise last_err

    def _pick_untried(self, shard_key: str, tried: set) -> RPCEndpoint:
        ep = self.pick(shard_key)
        if id(ep) not in tried:
            return ep
        for other in sorted(self.endpoints, key=lambda e: e.score(), reverse=True):
            if id(other) not in tried:
                return other
        return ep

    @property
    def healthy_count(self) -> int:
        return sum(1 for ep in self.endpoints if not ep.is_cooled_down)

    def metrics(self) -> dict:
        calls = sum(ep.calls for ep in self.endpoints)
        failures = sum(ep.errors + ep.timeouts for ep in self.endpoints)
        return {
            "endpoints": len(self.endpoints),
            "healthy": self.healthy_count,
            "uptime_sec": round(time.time() - self._created_at),
            "calls": calls,
            "failures": failures,
            "error_rate": round(failures / max(calls, 1), 4),
        }

    def summary(self) -> str:
        parts = []
        for ep in self.endpoints:
            status = "🔴" if ep.is_cooled_down else "🟢"
            parts.append(
                f"{status} {ep.url[:30]}... score={ep.score():.0f} calls={ep.calls} "
                f"timeouts={ep.timeouts} errors={ep.errors} lat={ep.avg_latency_ms:.0f}ms"
            )
        m = self.metrics()
        return (
            f"RPCPool: {m['healthy']}/{m['endpoints']} healthy, "
            f"concurrency={self._max_concurrency}, "
            f"err_rate={m['error_rate']:.1%}\n  " + "\n  ".join(parts)
        )

    def print_status(self):
        print(f"[RPC-POOL] {self.summary()}")
