"""Typed request models for every ledger operation.

The API layer hands raw payloads to :func:`parse_request`; validation
happens exactly once, here, and engine code only ever sees these models'
typed fields. Any validation failure becomes InvalidInput before a single
record is touched.
"""

from decimal import Decimal
from typing import Annotated, Any, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StringConstraints,
    ValidationError,
    field_validator,
)

from roi.exceptions import InvalidInput

AssetSymbol = Annotated[
    str,
    StringConstraints(strip_whitespace=True, to_upper=True, pattern=r"^[A-Za-z0-9]{2,10}$"),
]
FxPairKey = Annotated[
    str,
    StringConstraints(
        strip_whitespace=True, to_upper=True, pattern=r"^[A-Za-z0-9]{2,10}-[Uu][Ss][Dd]$"
    ),
]
UserId = Annotated[int, Field(gt=0)]
PositiveAmount = Annotated[Decimal, Field(gt=0, allow_inf_nan=False)]


class LedgerRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class UserRequest(LedgerRequest):
    """Any operation addressed to one user only (status, claim, portfolio, ...)."""

    user_id: UserId


class GetFxRateRequest(LedgerRequest):
    pair: FxPairKey


class SetFxRateRequest(LedgerRequest):
    pair: FxPairKey
    rate: PositiveAmount


class WalletDepositRequest(LedgerRequest):
    """Signed wallet deposit; a negative amount is a withdrawal."""

    user_id: UserId
    asset: AssetSymbol
    amount: Annotated[Decimal, Field(allow_inf_nan=False)]

    @field_validator("amount")
    @classmethod
    def _non_zero(cls, value: Decimal) -> Decimal:
        if value == 0:
            raise ValueError("amount must be non-zero")
        return value


class ConvertRequest(LedgerRequest):
    user_id: UserId
    from_asset: AssetSymbol
    to_asset: AssetSymbol
    amount: PositiveAmount
    fee_pct: Annotated[Decimal, Field(ge=0, lt=100, allow_inf_nan=False)] = Decimal("0")


class SettleRequest(LedgerRequest):
    user_id: UserId
    plan_id: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
    amount: PositiveAmount
    currency: AssetSymbol


class InvestDepositRequest(LedgerRequest):
    user_id: UserId
    asset: AssetSymbol
    amount: PositiveAmount


class SetAutoCompoundRequest(LedgerRequest):
    user_id: UserId
    enabled: StrictBool


class RegisterUserRequest(LedgerRequest):
    email: Annotated[
        str, StringConstraints(strip_whitespace=True, min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")
    ]
    convert_to_usd: StrictBool = True


class SetRoiConversionRequest(LedgerRequest):
    user_id: UserId
    enabled: StrictBool


RequestT = TypeVar("RequestT", bound=LedgerRequest)


def parse_request(model: type[RequestT], payload: RequestT | dict[str, Any]) -> RequestT:
    """Validate a raw payload into a typed request.

    Raises:
        InvalidInput: Missing fields, wrong types, or out-of-range values.
    """
    if isinstance(payload, model):
        return payload
    if not isinstance(payload, dict):
        raise InvalidInput(f"{model.__name__} payload must be an object")
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        fields = ", ".join(
            ".".join(str(part) for part in err["loc"]) or "body" for err in exc.errors()
        )
        raise InvalidInput(f"Invalid {model.__name__}: {fields}") from exc
