"""Tests for ROI settlement and the payout audit log."""

from decimal import Decimal

import pytest
import pytest_asyncio

from roi.exceptions import InvalidInput, MissingFxRate, UserNotFound
from roi.ledger.wallets import Ledger
from roi.models import User
from roi.settlement.payouts import PayoutRecorder
from roi.settlement.settler import Settlement
from roi.users import UserDirectory


@pytest_asyncio.fixture
async def converting_user(users: UserDirectory) -> User:
    return await users.register("alice@example.com")


@pytest_asyncio.fixture
async def native_user(users: UserDirectory) -> User:
    return await users.register("bob@example.com", convert_to_usd=False)


class TestSettle:
    @pytest.mark.asyncio
    async def test_converted_payout_credits_usd(
        self,
        settlement: Settlement,
        ledger: Ledger,
        payouts: PayoutRecorder,
        converting_user: User,
    ) -> None:
        result = await settlement.settle(converting_user.id, "gold", Decimal("250"), "TRX")

        assert result.converted is True
        assert result.credited_asset == "USD"
        assert result.credited_amount == Decimal("25.00")
        assert result.rate == Decimal("0.1")
        assert await ledger.balance(converting_user.id, "USD") == Decimal("25.00")
        assert await ledger.balance(converting_user.id, "TRX") == Decimal("0")

        [payout] = await payouts.history(converting_user.id)
        assert payout.converted is True
        assert payout.original_currency == "TRX"
        assert payout.original_amount == Decimal("250")
        assert payout.fx_rate_to_usd == Decimal("0.1")
        assert payout.usd_amount == Decimal("25.00")

    @pytest.mark.asyncio
    async def test_native_payout_credits_currency(
        self,
        settlement: Settlement,
        ledger: Ledger,
        payouts: PayoutRecorder,
        native_user: User,
    ) -> None:
        result = await settlement.settle(native_user.id, "silver", Decimal("0.0005"), "BTC")

        assert result.converted is False
        assert result.credited_asset == "BTC"
        assert result.new_balance == Decimal("0.000500")
        assert result.rate is None
        assert await ledger.balance(native_user.id, "USD") == Decimal("0")

        [payout] = await payouts.history(native_user.id)
        assert payout.converted is False
        assert payout.fx_rate_to_usd is None
        assert payout.usd_amount is None

    @pytest.mark.asyncio
    async def test_native_payout_needs_no_rate(
        self, settlement: Settlement, ledger: Ledger, native_user: User
    ) -> None:
        await settlement.settle(native_user.id, "silver", Decimal("3"), "ETH")
        assert await ledger.balance(native_user.id, "ETH") == Decimal("3.000000")

    @pytest.mark.asyncio
    async def test_missing_rate_records_nothing(
        self,
        settlement: Settlement,
        ledger: Ledger,
        payouts: PayoutRecorder,
        converting_user: User,
    ) -> None:
        with pytest.raises(MissingFxRate):
            await settlement.settle(converting_user.id, "gold", Decimal("1"), "ETH")

        assert await payouts.history(converting_user.id) == []
        assert await ledger.wallets(converting_user.id) == []

    @pytest.mark.asyncio
    async def test_unknown_user(self, settlement: Settlement, payouts: PayoutRecorder) -> None:
        with pytest.raises(UserNotFound):
            await settlement.settle(404, "gold", Decimal("1"), "USD")
        assert await payouts.history(404) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("plan_id,amount", [("gold", Decimal("0")), ("", Decimal("1"))])
    async def test_invalid_input(
        self, settlement: Settlement, converting_user: User, plan_id: str, amount: Decimal
    ) -> None:
        with pytest.raises(InvalidInput):
            await settlement.settle(converting_user.id, plan_id, amount, "USD")

    @pytest.mark.asyncio
    async def test_preference_change_applies_to_next_payout(
        self,
        settlement: Settlement,
        users: UserDirectory,
        ledger: Ledger,
        converting_user: User,
    ) -> None:
        await settlement.settle(converting_user.id, "gold", Decimal("10"), "TRX")
        await users.set_convert_to_usd(converting_user.id, False)
        await settlement.settle(converting_user.id, "gold", Decimal("10"), "TRX")

        assert await ledger.balance(converting_user.id, "USD") == Decimal("1.00")
        assert await ledger.balance(converting_user.id, "TRX") == Decimal("10.000000")


class TestPayoutHistory:
    @pytest.mark.asyncio
    async def test_history_is_oldest_first_and_per_user(
        self,
        settlement: Settlement,
        payouts: PayoutRecorder,
        converting_user: User,
        native_user: User,
    ) -> None:
        await settlement.settle(converting_user.id, "p1", Decimal("1"), "USD")
        await settlement.settle(native_user.id, "p2", Decimal("2"), "USD")
        await settlement.settle(converting_user.id, "p3", Decimal("3"), "USDT")

        history = await payouts.history(converting_user.id)

        assert [p.plan_id for p in history] == ["p1", "p3"]
        assert history[0].id < history[1].id
