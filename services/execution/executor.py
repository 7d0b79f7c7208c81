"""
Order execution: validate, optionally adjust once, submit, classify.

    Validating -> (Adjusting -> Revalidating)? -> Submitting
               -> Completed | Rejected | ExecutionFailed

The gateway is called at most once per `execute` call, whatever happened
during validation.
"""

from typing import Any, List, Mapping, Optional

from core.config.settings import ValidationSettings
from core.logging import bind_exchange_context, get_logger
from core.trading.error_classifier import classify_error_list
from core.trading.interfaces import ExchangeGateway
from core.trading.models import (
    ExchangeCredentials,
    ExchangeErrorKind,
    ExecutionFailed,
    ExecutionReport,
    ExecutionStage,
    OrderRequest,
    Rejected,
    Submitted,
    TradeProposal,
    TrailEntry,
    ValidationVerdict,
    format_decimal,
)
from core.utils.exceptions import BalanceFetchError, GatewayTransportError, create_error_context
from services.balances.cache import BalanceCache
from services.pairs.normalizer import PairNormalizer
from services.pricing.oracle import PriceOracle
from services.trade_validation.validator import TradeValidator

logger = get_logger(__name__, component="order_executor")


def _verdict_entry(step: ExecutionStage, proposal: TradeProposal, verdict: ValidationVerdict) -> TrailEntry:
    if verdict.valid:
        detail = verdict.reason or "Trade validation passed"
    else:
        detail = verdict.reason or "Trade validation failed"
    return TrailEntry(
        step=step,
        detail=detail,
        data={
            "amount": format_decimal(proposal.amount),
            "verdict": verdict.model_dump(mode="json", exclude_none=True),
        },
    )


class OrderExecutor:
    """Runs one trade proposal to a terminal outcome."""

    def __init__(self, gateway: ExchangeGateway, credentials: ExchangeCredentials,
                 balance_cache: BalanceCache, price_oracle: PriceOracle,
                 normalizer: Optional[PairNormalizer] = None,
                 settings: Optional[ValidationSettings] = None,
                 exchange_name: str = "kraken"):
        self.gateway = gateway
        self.credentials = credentials
        self.balance_cache = balance_cache
        self.price_oracle = price_oracle
        self.normalizer = normalizer or PairNormalizer()
        self.settings = settings or ValidationSettings()
        self.exchange_name = exchange_name

    async def build_validator(self) -> TradeValidator:
        """Validator over the current balances and prices.

        Raises:
            BalanceFetchError: balances could not be refreshed
        """
        balances = await self.balance_cache.get_balances()
        prices = await self.price_oracle.get_prices()
        return TradeValidator(balances, prices, self.normalizer, self.settings)

    async def preview(self, proposal: TradeProposal) -> ValidationVerdict:
        """Validate without adjusting or submitting."""
        validator = await self.build_validator()
        return validator.validate(proposal)

    async def execute(self, proposal: TradeProposal) -> ExecutionReport:
        display_pair = self.normalizer.to_display_pair(proposal.pair)
        exchange_pair = self.normalizer.to_exchange_notation(proposal.pair)
        log = bind_exchange_context(logger, self.exchange_name, display_pair)

        trail: List[TrailEntry] = [
            TrailEntry(
                step=ExecutionStage.VALIDATING,
                detail=f"Placing {proposal.side.value} order for {format_decimal(proposal.amount)} {display_pair}",
                data={"exchange_pair": exchange_pair},
            )
        ]
        log.info("Placing order", side=proposal.side.value, amount=format_decimal(proposal.amount))

        try:
            validator = await self.build_validator()
        except BalanceFetchError as e:
            log.error("Validated order placement failed", **create_error_context(e, "get_balances"))
            outcome = ExecutionFailed(reason=e.message, stage=ExecutionStage.VALIDATING)
            return self._finish(proposal, None, outcome, trail, log)

        verdict = validator.validate(proposal)
        trail.append(_verdict_entry(ExecutionStage.VALIDATING, proposal, verdict))
        candidate = proposal

        if not verdict.valid:
            log.warning("Trade validation failed", reason=verdict.reason)
            if not self._may_adjust(proposal, verdict, trail):
                return self._finish(proposal, None, self._validation_rejection(verdict), trail, log)

            candidate = proposal.with_amount(verdict.adjusted_amount)
            trail.append(TrailEntry(
                step=ExecutionStage.ADJUSTING,
                detail=(
                    f"Adjusting trade amount from {format_decimal(proposal.amount)} "
                    f"to {format_decimal(candidate.amount)}"
                ),
                data={"from": format_decimal(proposal.amount), "to": format_decimal(candidate.amount)},
            ))
            log.info("Adjusting trade amount", adjusted_amount=format_decimal(candidate.amount))

            revalidation = validator.validate(candidate)
            trail.append(_verdict_entry(ExecutionStage.REVALIDATING, candidate, revalidation))
            if not revalidation.valid:
                log.error("Trade still invalid after adjustment", reason=revalidation.reason)
                return self._finish(proposal, None, self._validation_rejection(verdict), trail, log)
        elif verdict.advisory:
            log.warning("Trade allowed with advisory", reason=verdict.reason)

        outcome = await self._submit(candidate, exchange_pair, trail, log)
        return self._finish(proposal, candidate, outcome, trail, log)

    def _may_adjust(self, proposal: TradeProposal, verdict: ValidationVerdict,
                    trail: List[TrailEntry]) -> bool:
        if verdict.adjusted_amount is None:
            return False
        if verdict.adjusted_amount > proposal.amount and not self.settings.allow_minimum_upsize:
            trail.append(TrailEntry(
                step=ExecutionStage.VALIDATING,
                detail="Adjustment would increase the requested amount; not retrying",
                data={"adjusted_amount": format_decimal(verdict.adjusted_amount)},
            ))
            return False
        return True

    @staticmethod
    def _validation_rejection(verdict: ValidationVerdict) -> Rejected:
        return Rejected(
            kind=ExchangeErrorKind.VALIDATION_FAILED,
            raw_message=verdict.reason or "Trade validation failed",
            verdict=verdict,
        )

    async def _submit(self, proposal: TradeProposal, exchange_pair: str,
                      trail: List[TrailEntry], log):
        order = OrderRequest.from_proposal(proposal, exchange_pair)
        trail.append(TrailEntry(
            step=ExecutionStage.SUBMITTING,
            detail="Sending order to exchange",
            data=order.to_payload(),
        ))
        log.info("Sending order to exchange", order=order.to_payload())

        try:
            response = await self.gateway.place_order(self.credentials, order)
        except GatewayTransportError as e:
            log.error("Gateway invocation failed during order placement",
                      **create_error_context(e, "place_order"))
            return ExecutionFailed(reason=f"Function invocation failed: {e.message}",
                                   stage=ExecutionStage.SUBMITTING)
        except Exception as e:
            log.error("Order placement error", **create_error_context(e, "place_order"))
            return ExecutionFailed(reason=str(e) or type(e).__name__, stage=ExecutionStage.SUBMITTING)

        return self._interpret_response(response, log)

    def _interpret_response(self, response: Any, log):
        if not isinstance(response, Mapping):
            log.error("Malformed order response", response=repr(response)[:500])
            return ExecutionFailed(reason="Malformed order response from gateway",
                                   stage=ExecutionStage.SUBMITTING)

        errors = response.get("error")
        if isinstance(errors, str):
            errors = [errors]
        if errors:
            kind, raw_message = classify_error_list(errors)
            log.error("Exchange order placement error", error_kind=kind.value, raw_message=raw_message)
            return Rejected(kind=kind, raw_message=raw_message)

        result = response.get("result")
        if not isinstance(result, Mapping):
            log.error("No result data received from order placement", response=repr(response)[:500])
            return ExecutionFailed(reason="No order result received from exchange",
                                   stage=ExecutionStage.SUBMITTING)

        txids = result.get("txid")
        if isinstance(txids, str):
            txids = [txids]
        if not isinstance(txids, list) or not txids:
            log.error("Order result carried no transaction id", result=repr(result)[:500])
            return ExecutionFailed(reason="Order result carried no transaction id",
                                   stage=ExecutionStage.SUBMITTING)

        # Next proposal must see post-trade balances
        self.balance_cache.invalidate()

        descr = result.get("descr")
        description = descr.get("order") if isinstance(descr, Mapping) else None
        transaction_ids = [str(t) for t in txids]
        log.info("Order placed successfully", txid=transaction_ids[0])
        return Submitted(
            transaction_id=transaction_ids[0],
            transaction_ids=transaction_ids,
            description=description,
        )

    @staticmethod
    def _finish(proposal: TradeProposal, submitted: Optional[TradeProposal], outcome,
                trail: List[TrailEntry], log) -> ExecutionReport:
        terminal = {
            "submitted": ExecutionStage.COMPLETED,
            "rejected": ExecutionStage.REJECTED,
            "execution_failed": ExecutionStage.EXECUTION_FAILED,
        }[outcome.status]
        trail.append(TrailEntry(step=terminal, detail=outcome.message()))
        log.info("Order execution finished", outcome=outcome.status)
        return ExecutionReport(
            outcome=outcome,
            proposal=proposal,
            submitted_proposal=submitted,
            trail=trail,
        )
