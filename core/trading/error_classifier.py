"""
Classification of the gateway's free-text error messages.

The gateway reports failures as prose (``"EOrder:Insufficient funds"``), so
the only structure available is substring matching. All phrases live in one
table; text that matches nothing is ``UNCLASSIFIED`` and keeps its raw form.
"""

from typing import Iterable, List, Tuple

from core.trading.models import ExchangeErrorKind

# Checked in order, case-insensitively
ERROR_PHRASES: Tuple[Tuple[str, ExchangeErrorKind], ...] = (
    ("insufficient funds", ExchangeErrorKind.INSUFFICIENT_FUNDS),
    ("order minimum not met", ExchangeErrorKind.BELOW_ORDER_MINIMUM),
    ("invalid arguments", ExchangeErrorKind.INVALID_ARGUMENTS),
    ("invalid price", ExchangeErrorKind.INVALID_ARGUMENTS),
    ("unknown asset pair", ExchangeErrorKind.UNKNOWN_PAIR),
    ("invalid key", ExchangeErrorKind.INVALID_KEY),
    ("invalid signature", ExchangeErrorKind.INVALID_KEY),
    ("permission denied", ExchangeErrorKind.PERMISSION_DENIED),
)


def classify_exchange_error(message: str) -> ExchangeErrorKind:
    lowered = (message or "").lower()
    for phrase, kind in ERROR_PHRASES:
        if phrase in lowered:
            return kind
    return ExchangeErrorKind.UNCLASSIFIED


def classify_error_list(errors: Iterable[str]) -> Tuple[ExchangeErrorKind, str]:
    """Classify a gateway `error` array.

    The kind comes from the first classifiable message; the raw message is
    every message joined, so nothing the gateway said is dropped.
    """
    messages: List[str] = [str(e) for e in errors if e is not None and str(e)]
    raw_message = "; ".join(messages)
    for message in messages:
        kind = classify_exchange_error(message)
        if kind is not ExchangeErrorKind.UNCLASSIFIED:
            return kind, raw_message
    return ExchangeErrorKind.UNCLASSIFIED, raw_message
