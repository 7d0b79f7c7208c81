"""
Trading value models shared by validation, execution and the caches.

Everything here is a plain value: proposals, verdicts and outcomes are
frozen, and an adjusted proposal is a new instance.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator


AssetBalance = Dict[str, Decimal]
PriceTable = Dict[str, Decimal]


class Side(str, Enum):
    BUY = "buy"
    SELL = "sell"


class OrderType(str, Enum):
    MARKET = "market"
    LIMIT = "limit"


def format_decimal(value: Decimal) -> str:
    """Plain (non-scientific) string for a decimal quantity."""
    return format(value.normalize(), "f")


class ExchangeCredentials(BaseModel):
    """Credentials passed through to the remote gateway untouched."""
    model_config = ConfigDict(frozen=True)

    api_key: str = Field(..., min_length=1)
    api_secret: SecretStr

    @property
    def cache_key(self) -> str:
        return self.api_key


class TradeProposal(BaseModel):
    """A discretionary order handed to the executor.

    `amount` is deliberately unconstrained so that malformed amounts reach
    the validator and come back as a verdict instead of a model error.
    """
    model_config = ConfigDict(frozen=True)

    pair: str
    side: Side
    amount: Decimal
    price: Optional[Decimal] = Field(None, gt=0)
    order_type: Optional[OrderType] = None

    @model_validator(mode="before")
    @classmethod
    def infer_order_type(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("order_type") is None:
            data = dict(data)
            data["order_type"] = OrderType.LIMIT if data.get("price") is not None else OrderType.MARKET
        return data

    def with_amount(self, amount: Decimal) -> "TradeProposal":
        """Return a copy carrying a different amount."""
        return self.model_copy(update={"amount": amount})


class ValidationErrorKind(str, Enum):
    NON_POSITIVE_AMOUNT = "non_positive_amount"
    BELOW_MINIMUM_SIZE = "below_minimum_size"
    INSUFFICIENT_PORTFOLIO_VALUE = "insufficient_portfolio_value"
    INSUFFICIENT_BASE_BALANCE = "insufficient_base_balance"


class ValidationVerdict(BaseModel):
    """Result of validating one proposal against one snapshot."""
    model_config = ConfigDict(frozen=True)

    valid: bool
    reason: Optional[str] = None
    error_kind: Optional[ValidationErrorKind] = None
    adjusted_amount: Optional[Decimal] = Field(None, gt=0)
    required_balance: Optional[Decimal] = None
    available_balance: Optional[Decimal] = None

    @property
    def advisory(self) -> bool:
        """Valid, but with a warning the caller should surface."""
        return self.valid and self.reason is not None

    @property
    def can_retry(self) -> bool:
        return not self.valid and self.adjusted_amount is not None


class ExchangeErrorKind(str, Enum):
    VALIDATION_FAILED = "validation_failed"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    BELOW_ORDER_MINIMUM = "below_order_minimum"
    INVALID_ARGUMENTS = "invalid_arguments"
    UNKNOWN_PAIR = "unknown_pair"
    INVALID_KEY = "invalid_key"
    PERMISSION_DENIED = "permission_denied"
    UNCLASSIFIED = "unclassified"


REJECTION_MESSAGES: Dict[ExchangeErrorKind, str] = {
    ExchangeErrorKind.VALIDATION_FAILED: "Trade validation failed",
    ExchangeErrorKind.INSUFFICIENT_FUNDS: "Insufficient funds for this trade",
    ExchangeErrorKind.BELOW_ORDER_MINIMUM: "Order size below minimum requirement",
    ExchangeErrorKind.INVALID_ARGUMENTS: "Invalid order parameters",
    ExchangeErrorKind.UNKNOWN_PAIR: "Invalid trading pair",
    ExchangeErrorKind.INVALID_KEY: "Invalid API key - check your credentials",
    ExchangeErrorKind.PERMISSION_DENIED: "API key lacks required permissions",
    ExchangeErrorKind.UNCLASSIFIED: "Exchange rejected the order",
}


class ExecutionStage(str, Enum):
    VALIDATING = "validating"
    ADJUSTING = "adjusting"
    REVALIDATING = "revalidating"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    REJECTED = "rejected"
    EXECUTION_FAILED = "execution_failed"


class OrderRequest(BaseModel):
    """Order as sent over the gateway RPC boundary."""
    model_config = ConfigDict(frozen=True)

    pair: str
    side: Side
    order_type: OrderType
    volume: str
    price: Optional[str] = None

    @classmethod
    def from_proposal(cls, proposal: TradeProposal, exchange_pair: str) -> "OrderRequest":
        return cls(
            pair=exchange_pair,
            side=proposal.side,
            order_type=proposal.order_type or OrderType.MARKET,
            volume=format_decimal(proposal.amount),
            price=format_decimal(proposal.price) if proposal.price is not None else None,
        )

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "pair": self.pair,
            "type": self.side.value,
            "ordertype": self.order_type.value,
            "volume": self.volume,
        }
        if self.price is not None:
            payload["price"] = self.price
        return payload


class Submitted(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["submitted"] = "submitted"
    transaction_id: str
    transaction_ids: List[str] = Field(default_factory=list)
    description: Optional[str] = None

    def message(self) -> str:
        return f"Order placed successfully. TxID: {self.transaction_id}"


class Rejected(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["rejected"] = "rejected"
    kind: ExchangeErrorKind
    raw_message: str
    verdict: Optional[ValidationVerdict] = None

    def message(self) -> str:
        return f"{REJECTION_MESSAGES[self.kind]}: {self.raw_message}"


class ExecutionFailed(BaseModel):
    """Order state is unconfirmed, not known to be rejected."""
    model_config = ConfigDict(frozen=True)

    status: Literal["execution_failed"] = "execution_failed"
    reason: str
    stage: ExecutionStage

    def message(self) -> str:
        return f"Order execution failed during {self.stage.value}: {self.reason}"


OrderOutcome = Annotated[Union[Submitted, Rejected, ExecutionFailed], Field(discriminator="status")]


class TrailEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    step: ExecutionStage
    detail: str
    data: Dict[str, Any] = Field(default_factory=dict)


class ExecutionReport(BaseModel):
    """Terminal outcome of one executor invocation plus its diagnostic trail."""
    model_config = ConfigDict(frozen=True)

    outcome: OrderOutcome
    proposal: TradeProposal
    submitted_proposal: Optional[TradeProposal] = None
    trail: List[TrailEntry] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return isinstance(self.outcome, Submitted)

    def message(self) -> str:
        return self.outcome.message()


class AssetHolding(BaseModel):
    model_config = ConfigDict(frozen=True)

    balance: Decimal
    usd_value: Decimal


class PortfolioSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    holdings: Dict[str, AssetHolding] = Field(default_factory=dict)
    total_usd_value: Decimal = Decimal("0")

    @field_validator("total_usd_value")
    @classmethod
    def validate_total(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("total_usd_value cannot be negative")
        return v
