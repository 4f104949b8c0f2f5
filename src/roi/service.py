"""Operation contracts consumed by the API layer.

LedgerService is the single entry point for external callers. Each method
accepts either its typed request model or a raw payload dict, validates it
once via :func:`roi.requests.parse_request`, and delegates to the owning
component. Errors are the ones in :mod:`roi.exceptions`; none of them leaves
partial state behind.
"""

from decimal import Decimal
from typing import Any

import structlog

from roi.exchange.converter import ExchangeConverter
from roi.fx.oracle import FxOracle
from roi.invest.engine import InvestmentEngine
from roi.ledger.wallets import Ledger
from roi.models import (
    ConversionResult,
    FoldResult,
    InvestmentStatus,
    Payout,
    Portfolio,
    SettlementResult,
    User,
)
from roi.portfolio import PortfolioService
from roi.requests import (
    ConvertRequest,
    GetFxRateRequest,
    InvestDepositRequest,
    RegisterUserRequest,
    SetAutoCompoundRequest,
    SetFxRateRequest,
    SetRoiConversionRequest,
    SettleRequest,
    UserRequest,
    WalletDepositRequest,
    parse_request,
)
from roi.settlement.payouts import PayoutRecorder
from roi.settlement.settler import Settlement
from roi.users import UserDirectory

Payload = dict[str, Any]


class LedgerService:
    """Facade over the ledger components.

    Args:
        oracle: FX oracle.
        ledger: Wallet bookkeeping.
        converter: Asset conversion.
        settlement: ROI settlement.
        payouts: Payout audit log.
        investments: Investment accrual engine.
        portfolio: Portfolio valuation.
        users: User directory.
    """

    def __init__(
        self,
        oracle: FxOracle,
        ledger: Ledger,
        converter: ExchangeConverter,
        settlement: Settlement,
        payouts: PayoutRecorder,
        investments: InvestmentEngine,
        portfolio: PortfolioService,
        users: UserDirectory,
    ) -> None:
        self._oracle = oracle
        self._ledger = ledger
        self._converter = converter
        self._settlement = settlement
        self._payouts = payouts
        self._investments = investments
        self._portfolio = portfolio
        self._users = users

    # FX

    def get_fx_rate(self, request: GetFxRateRequest | Payload) -> Decimal:
        req = parse_request(GetFxRateRequest, request)
        return self._oracle.get_rate(req.pair)

    def list_fx_rates(self) -> dict[str, Decimal]:
        return self._oracle.rates()

    async def set_fx_rate(self, request: SetFxRateRequest | Payload) -> Decimal:
        req = parse_request(SetFxRateRequest, request)
        return await self._oracle.set_rate(req.pair, req.rate)

    # Users

    async def register_user(self, request: RegisterUserRequest | Payload) -> User:
        req = parse_request(RegisterUserRequest, request)
        return await self._users.register(req.email, req.convert_to_usd)

    async def set_roi_conversion(self, request: SetRoiConversionRequest | Payload) -> User:
        req = parse_request(SetRoiConversionRequest, request)
        return await self._users.set_convert_to_usd(req.user_id, req.enabled)

    # Wallets

    async def deposit(self, request: WalletDepositRequest | Payload) -> Decimal:
        """Signed wallet deposit (negative amount withdraws); returns the new balance."""
        req = parse_request(WalletDepositRequest, request)
        with structlog.contextvars.bound_contextvars(user_id=req.user_id):
            return await self._ledger.adjust(req.user_id, req.asset, req.amount)

    async def convert(self, request: ConvertRequest | Payload) -> ConversionResult:
        req = parse_request(ConvertRequest, request)
        with structlog.contextvars.bound_contextvars(user_id=req.user_id):
            return await self._converter.convert(
                req.user_id, req.from_asset, req.to_asset, req.amount, req.fee_pct
            )

    async def settle(self, request: SettleRequest | Payload) -> SettlementResult:
        req = parse_request(SettleRequest, request)
        with structlog.contextvars.bound_contextvars(user_id=req.user_id):
            return await self._settlement.settle(
                req.user_id, req.plan_id, req.amount, req.currency
            )

    async def get_portfolio(self, request: UserRequest | Payload) -> Portfolio:
        req = parse_request(UserRequest, request)
        return await self._portfolio.portfolio(req.user_id)

    async def get_payout_history(self, request: UserRequest | Payload) -> list[Payout]:
        req = parse_request(UserRequest, request)
        return await self._payouts.history(req.user_id)

    # Investments

    async def invest_deposit(
        self, request: InvestDepositRequest | Payload, now: float | None = None
    ) -> InvestmentStatus:
        req = parse_request(InvestDepositRequest, request)
        with structlog.contextvars.bound_contextvars(user_id=req.user_id):
            return await self._investments.deposit(req.user_id, req.asset, req.amount, now)

    async def invest_status(
        self, request: UserRequest | Payload, now: float | None = None
    ) -> InvestmentStatus:
        req = parse_request(UserRequest, request)
        return await self._investments.status(req.user_id, now)

    async def invest_reinvest(
        self, request: UserRequest | Payload, now: float | None = None
    ) -> FoldResult:
        req = parse_request(UserRequest, request)
        with structlog.contextvars.bound_contextvars(user_id=req.user_id):
            return await self._investments.reinvest(req.user_id, now)

    async def invest_claim(
        self, request: UserRequest | Payload, now: float | None = None
    ) -> FoldResult:
        req = parse_request(UserRequest, request)
        with structlog.contextvars.bound_contextvars(user_id=req.user_id):
            return await self._investments.claim(req.user_id, now)

    async def invest_set_auto_compound(
        self, request: SetAutoCompoundRequest | Payload, now: float | None = None
    ) -> InvestmentStatus:
        req = parse_request(SetAutoCompoundRequest, request)
        return await self._investments.set_auto_compound(req.user_id, req.enabled, now)
