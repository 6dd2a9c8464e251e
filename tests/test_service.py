from __future__ import annotations

import asyncio

import pytest

from fakes import TOKEN_WETH_POOL, WETH_USDT_POOL, make_pool, reserves_payload
from pricechain.errors import DecodeError, ZeroReserve
from pricechain.pricing.fetcher import ReserveFetcher
from pricechain.pricing.models import Orientation
from pricechain.pricing.route import build_hops
from pricechain.pricing.service import PriceService, format_quote

DECIMALS = {"TOKEN": 16, "WETH": 16, "USDT": 4}


def _hops():
    return build_hops("TOKEN", [(TOKEN_WETH_POOL, "TOKEN/WETH"), (WETH_USDT_POOL, "WETH/USDT")], DECIMALS)


def _service(responses: dict) -> PriceService:
    pool, _ = make_pool(responses)
    return PriceService(ReserveFetcher(pool, timeout=1.0))


def test_price_fetches_joins_and_composes():
    service = _service({
        TOKEN_WETH_POOL: reserves_payload(5_000_000 * 10**16, 1000 * 10**16, ts=100),
        WETH_USDT_POOL: reserves_payload(1000 * 10**16, 2_000_000 * 10**4, ts=250),
    })

    quote = asyncio.run(service.price(_hops()))

    assert quote.price == pytest.approx(0.4, rel=1e-12)
    assert quote.orientation is Orientation.REFERENCE_PER_ASSET
    assert quote.observed_at == 250
    assert format_quote(quote).startswith("TOKEN/USDT: $")


def test_price_in_asset_units():
    service = _service({
        TOKEN_WETH_POOL: reserves_payload(5_000_000 * 10**16, 1000 * 10**16),
        WETH_USDT_POOL: reserves_payload(1000 * 10**16, 2_000_000 * 10**4),
    })

    quote = asyncio.run(service.price(_hops(), Orientation.ASSET_PER_REFERENCE))

    assert quote.price == pytest.approx(2.5, rel=1e-12)
    assert format_quote(quote).startswith("USDT/TOKEN: ")


def test_any_failing_hop_aborts_the_price():
    service = _service({
        TOKEN_WETH_POOL: reserves_payload(1, 1),
        WETH_USDT_POOL: b"\x00" * 64,
    })

    with pytest.raises(DecodeError) as exc:
        asyncio.run(service.price(_hops()))
    assert exc.value.hop == 1


def test_zero_reserve_surfaces_with_hop():
    service = _service({
        TOKEN_WETH_POOL: reserves_payload(0, 1),
        WETH_USDT_POOL: reserves_payload(1, 1),
    })

    with pytest.raises(ZeroReserve) as exc:
        asyncio.run(service.price(_hops()))
    assert exc.value.hop == 0


def test_run_reports_errors_and_keeps_going(capsys: pytest.CaptureFixture[str]):
    service = _service({
        TOKEN_WETH_POOL: reserves_payload(0, 1),
        WETH_USDT_POOL: reserves_payload(1, 1),
    })

    async def _drive():
        task = asyncio.create_task(service.run(_hops(), interval=0.01))
        await asyncio.sleep(0.1)
        service.stop()
        await asyncio.wait_for(task, timeout=1.0)

    asyncio.run(_drive())

    m = service.metrics()
    assert m["ticks"] >= 2
    assert m["tick_errors"] == m["ticks"]
    assert "ZeroReserve" in capsys.readouterr().out


def test_run_can_be_cancelled():
    service = _service({
        TOKEN_WETH_POOL: (5.0, reserves_payload(1, 1)),
        WETH_USDT_POOL: reserves_payload(1, 1),
    })

    async def _drive():
        task = asyncio.create_task(service.run(_hops(), interval=0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(_drive())
    assert service.metrics()["ticks"] == 0
