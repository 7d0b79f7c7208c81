"""Shared trading models, gateway interfaces and cache state."""

from .models import (  # noqa: F401
    Side,
    OrderType,
    TradeProposal,
    ValidationVerdict,
    ValidationErrorKind,
    ExchangeErrorKind,
    ExecutionStage,
    Submitted,
    Rejected,
    ExecutionFailed,
    ExecutionReport,
)
