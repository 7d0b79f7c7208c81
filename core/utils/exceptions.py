# Structured exception hierarchy for the order guard core

from typing import Dict, Any, Optional
from datetime import datetime, timezone


class OrderGuardException(Exception):
    """Base exception for all order guard specific errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)


class TransientError(OrderGuardException):
    """Base class for transient errors that may succeed on a later attempt"""
    pass


class PermanentError(OrderGuardException):
    """Base class for errors that will not go away by retrying"""
    pass


# Configuration Errors
class ConfigurationError(PermanentError):
    """Configuration validation errors"""

    def __init__(self, message: str, config_field: str, config_value: Any = None,
                 **kwargs):
        super().__init__(message, **kwargs)
        self.config_field = config_field
        self.config_value = config_value


# Gateway Errors
class GatewayTransportError(TransientError):
    """Gateway unreachable or returned something that is not a gateway payload.

    The true state of an order submitted when this is raised is unknown.
    """

    def __init__(self, message: str, operation: str, status_code: Optional[int] = None,
                 **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation
        self.status_code = status_code


class BalanceFetchError(TransientError):
    """Balance refresh failed; no stale or empty balances are returned instead"""

    def __init__(self, message: str, kind: Any, raw_message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.kind = kind
        self.raw_message = raw_message


# Market Data Errors
class PriceFeedError(TransientError):
    """Spot price feed errors"""
    pass


def create_error_context(error: Exception, operation: str,
                         additional_context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Create structured error context for logging

    Args:
        error: The exception that occurred
        operation: The operation that failed
        additional_context: Additional context information

    Returns:
        Structured error context dictionary
    """
    context = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "operation": operation,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "transient": isinstance(error, TransientError),
    }

    if isinstance(error, OrderGuardException):
        if error.details:
            context["error_details"] = error.details
        if isinstance(error, BalanceFetchError):
            context["error_kind"] = getattr(error.kind, "value", error.kind)
            context["raw_message"] = error.raw_message
        if isinstance(error, GatewayTransportError):
            context["gateway_operation"] = error.operation
            if error.status_code is not None:
                context["status_code"] = error.status_code

    if additional_context:
        context.update(additional_context)

    return context
