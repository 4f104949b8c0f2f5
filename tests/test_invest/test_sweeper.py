"""Tests for the auto-compound sweeper."""

import asyncio
from decimal import Decimal
from unittest.mock import patch

import pytest

from roi.invest.engine import InvestmentEngine
from roi.invest.sweeper import AutoCompoundSweeper
from roi.ledger.wallets import Ledger
from roi.models import InvestmentRecord
from roi.store.repository import Store

T0 = 1_700_000_000.0
DAY = 86400


async def _invest(
    ledger: Ledger,
    investments: InvestmentEngine,
    user_id: int = 1,
    amount: str = "1000",
    auto_compound: bool = True,
) -> None:
    await ledger.credit(user_id, "USDT", Decimal(amount))
    await investments.deposit(user_id, "USDT", Decimal(amount), now=T0)
    if auto_compound:
        await investments.set_auto_compound(user_id, True, now=T0)


class TestSweepOnce:
    @pytest.mark.asyncio
    async def test_three_days_compound(
        self,
        sweeper: AutoCompoundSweeper,
        ledger: Ledger,
        investments: InvestmentEngine,
    ) -> None:
        await _invest(ledger, investments)

        report = await sweeper.sweep_once(now=T0 + 3 * DAY)

        assert report.folded == [1]
        status = await investments.status(1, now=T0 + 3 * DAY)
        assert status.principal == Decimal("1045.68")
        assert status.window_start == T0 + 3 * DAY

    @pytest.mark.asyncio
    async def test_partial_day_remainder_keeps_accruing(
        self,
        sweeper: AutoCompoundSweeper,
        ledger: Ledger,
        investments: InvestmentEngine,
    ) -> None:
        await _invest(ledger, investments)
        now = T0 + DAY + 3600

        await sweeper.sweep_once(now=now)

        status = await investments.status(1, now=now)
        assert status.principal == Decimal("1015.00")
        assert status.window_start == T0 + DAY
        assert status.seconds_to_next == DAY - 3600

    @pytest.mark.asyncio
    async def test_rerun_is_a_no_op(
        self,
        sweeper: AutoCompoundSweeper,
        ledger: Ledger,
        investments: InvestmentEngine,
    ) -> None:
        await _invest(ledger, investments)
        await sweeper.sweep_once(now=T0 + 3 * DAY)

        report = await sweeper.sweep_once(now=T0 + 3 * DAY + 10)

        assert report.folded == []
        assert report.skipped == 1
        status = await investments.status(1, now=T0 + 3 * DAY + 10)
        assert status.principal == Decimal("1045.68")

    @pytest.mark.asyncio
    async def test_less_than_a_day_is_skipped(
        self,
        sweeper: AutoCompoundSweeper,
        ledger: Ledger,
        investments: InvestmentEngine,
    ) -> None:
        await _invest(ledger, investments)

        report = await sweeper.sweep_once(now=T0 + DAY - 1)

        assert report.folded == []
        assert report.skipped == 1

    @pytest.mark.asyncio
    async def test_only_auto_compound_records_fold(
        self,
        sweeper: AutoCompoundSweeper,
        ledger: Ledger,
        investments: InvestmentEngine,
    ) -> None:
        await _invest(ledger, investments, user_id=1)
        await _invest(ledger, investments, user_id=2, auto_compound=False)

        report = await sweeper.sweep_once(now=T0 + 2 * DAY)

        assert report.folded == [1]
        status = await investments.status(2, now=T0 + 2 * DAY)
        assert status.principal == Decimal("1000.00")
        assert status.window_start == T0

    @pytest.mark.asyncio
    async def test_one_failure_does_not_abort_the_sweep(
        self,
        sweeper: AutoCompoundSweeper,
        store: Store,
        ledger: Ledger,
        investments: InvestmentEngine,
    ) -> None:
        await _invest(ledger, investments, user_id=1)
        await _invest(ledger, investments, user_id=2)

        original = AutoCompoundSweeper._fold_user

        async def flaky(self, user_id: int, now: float) -> bool:
            if user_id == 1:
                raise RuntimeError("disk on fire")
            return await original(self, user_id, now)

        with patch.object(AutoCompoundSweeper, "_fold_user", flaky):
            report = await sweeper.sweep_once(now=T0 + DAY)

        assert report.failed == [1]
        assert report.folded == [2]
        async with store.transaction(write=False) as tx:
            untouched = await tx.get_investment(1)
        assert untouched == InvestmentRecord(
            user_id=1, principal=Decimal("1000.00"), auto_compound=True, window_start=T0
        )


@pytest.mark.asyncio
async def test_background_loop_sweeps_and_stops(
    store: Store, ledger: Ledger, investments: InvestmentEngine
) -> None:
    await _invest(ledger, investments)
    sweeper = AutoCompoundSweeper(store, Decimal("0.015"), interval=3600)

    with patch("roi.invest.sweeper.time.time", return_value=T0 + DAY):
        await sweeper.start()
        for _ in range(50):
            status = await investments.status(1, now=T0 + DAY)
            if status.principal != Decimal("1000.00"):
                break
            await asyncio.sleep(0.01)
        await sweeper.stop()

    assert status.principal == Decimal("1015.00")
