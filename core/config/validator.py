"""
Configuration validation at application startup.

Checks that credentials, the gateway endpoint and the cache windows are set
to something usable before any order can be placed.
"""

import logging
from typing import List, Dict, Any
from dataclasses import dataclass
from urllib.parse import urlparse

from core.utils.exceptions import ConfigurationError
from .settings import Environment, Settings

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@dataclass
class ValidationResult:
    """Result of a configuration validation check"""
    is_valid: bool
    component: str
    message: str
    severity: str = "error"  # "error", "warning", "info"


class ConfigurationValidator:
    """Startup configuration checks; results accumulate in `validation_results`."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.validation_results: List[ValidationResult] = []

    def validate_all(self) -> bool:
        """
        Run all validation checks.

        Returns:
            bool: True if no check reported an error
        """
        self.validation_results = []
        logger.info("Starting configuration validation...")

        self._validate_credentials()
        self._validate_gateway()
        self._validate_price_feed()
        self._validate_cache_settings()
        self._validate_logging_settings()

        errors = [r for r in self.validation_results if r.severity == "error"]
        warnings = [r for r in self.validation_results if r.severity == "warning"]

        if errors:
            logger.error(f"Configuration validation failed: {len(errors)} errors, {len(warnings)} warnings")
            for result in errors:
                logger.error(f"   ERROR [{result.component}]: {result.message}")

        for result in warnings:
            logger.warning(f"   WARNING [{result.component}]: {result.message}")

        if not errors and not warnings:
            logger.info("All configuration validation checks passed")
        elif not errors:
            logger.info(f"Configuration validation passed with {len(warnings)} warnings")

        return len(errors) == 0

    def _validate_credentials(self):
        if not self.settings.has_credentials():
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Exchange",
                message="EXCHANGE__API_KEY and EXCHANGE__API_SECRET must both be set",
                severity="error"
            ))

    def _validate_gateway(self):
        parsed = urlparse(self.settings.exchange.gateway_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Gateway",
                message=f"Invalid gateway URL: {self.settings.exchange.gateway_url!r}",
                severity="error"
            ))
        elif parsed.scheme == "http" and self.settings.environment == Environment.PRODUCTION:
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Gateway",
                message="Gateway URL is not HTTPS in production; credentials would travel in clear text",
                severity="error"
            ))

        if not self.settings.exchange.gateway_token.get_secret_value():
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Gateway",
                message="No gateway token configured; requests are sent without an Authorization header",
                severity="warning"
            ))

        if self.settings.exchange.request_timeout_seconds <= 0:
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Gateway",
                message="request_timeout_seconds must be positive",
                severity="error"
            ))

    def _validate_price_feed(self):
        parsed = urlparse(self.settings.price_feed.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Price Feed",
                message=f"Invalid price feed URL: {self.settings.price_feed.base_url!r}; fallback prices will be used",
                severity="warning"
            ))

    def _validate_cache_settings(self):
        cache = self.settings.cache
        if cache.balance_refresh_seconds > cache.price_refresh_seconds * 10:
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Cache",
                message="Balance refresh window is much longer than the price window; validations may use stale balances",
                severity="warning"
            ))

    def _validate_logging_settings(self):
        if self.settings.logging.level.upper() not in VALID_LOG_LEVELS:
            self.validation_results.append(ValidationResult(
                is_valid=False,
                component="Logging",
                message=f"Invalid log level: {self.settings.logging.level}",
                severity="error"
            ))

    def get_validation_summary(self) -> Dict[str, Any]:
        """Get a summary of validation results"""
        errors = [r for r in self.validation_results if r.severity == "error"]
        warnings = [r for r in self.validation_results if r.severity == "warning"]

        return {
            "total_checks": len(self.validation_results),
            "errors": len(errors),
            "warnings": len(warnings),
            "is_valid": len(errors) == 0,
            "error_details": [{"component": r.component, "message": r.message} for r in errors],
            "warning_details": [{"component": r.component, "message": r.message} for r in warnings]
        }


def validate_startup_configuration(settings: Settings) -> List[ValidationResult]:
    """
    Run startup validation and fail fast on errors.

    Returns:
        The warnings and info results of a passing run

    Raises:
        ConfigurationError: at least one check reported an error
    """
    validator = ConfigurationValidator(settings)
    if not validator.validate_all():
        first = next(r for r in validator.validation_results if r.severity == "error")
        raise ConfigurationError(
            f"Invalid configuration [{first.component}]: {first.message}",
            config_field=first.component,
            details=validator.get_validation_summary(),
        )
    return validator.validation_results
