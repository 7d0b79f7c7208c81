"""
Step-by-step dry run of the order path.

Walks credentials -> connection -> balance -> validation -> order and
records each step, stopping at the first failure. The order step only
places a real order in live mode; otherwise it is skipped.
"""

import json
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from core.logging import get_logger
from core.trading.models import ExchangeCredentials, TradeProposal, format_decimal
from core.utils.exceptions import BalanceFetchError, create_error_context
from services.execution.executor import OrderExecutor

logger = get_logger(__name__, component="trade_debugger")


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


class DebugStep(BaseModel):
    id: str
    name: str
    status: StepStatus = StepStatus.PENDING
    message: Optional[str] = None
    details: Optional[str] = None


STEP_NAMES = (
    ("credentials", "Check API Keys"),
    ("connection", "Test Connection"),
    ("balance", "Fetch Balance"),
    ("validation", "Validate Trade"),
    ("order", "Place Order"),
)


class DebugReport(BaseModel):
    proposal: TradeProposal
    live: bool
    steps: List[DebugStep] = Field(default_factory=list)

    def step(self, step_id: str) -> DebugStep:
        for step in self.steps:
            if step.id == step_id:
                return step
        raise KeyError(step_id)

    @property
    def succeeded(self) -> bool:
        return all(s.status in (StepStatus.SUCCESS, StepStatus.SKIPPED) for s in self.steps)

    @property
    def failed_step(self) -> Optional[DebugStep]:
        return next((s for s in self.steps if s.status == StepStatus.ERROR), None)


class TradeDebugger:
    """Runs the diagnostic walk for one proposal against one executor."""

    def __init__(self, executor: OrderExecutor, credentials: Optional[ExchangeCredentials]):
        self.executor = executor
        self.credentials = credentials

    async def run(self, proposal: TradeProposal, live: bool = False) -> DebugReport:
        report = DebugReport(
            proposal=proposal,
            live=live,
            steps=[DebugStep(id=step_id, name=name) for step_id, name in STEP_NAMES],
        )
        logger.info("Starting trade debug run", pair=proposal.pair, side=proposal.side.value, live=live)

        # 1. Credentials
        self._update(report, "credentials", StepStatus.RUNNING)
        if self.credentials is None or not self.credentials.api_secret.get_secret_value():
            self._update(report, "credentials", StepStatus.ERROR, "API keys not configured")
            return report
        self._update(report, "credentials", StepStatus.SUCCESS, "API keys found")

        # 2. Connection
        self._update(report, "connection", StepStatus.RUNNING)
        balance_cache = self.executor.balance_cache
        if not await balance_cache.test_connection():
            self._update(report, "connection", StepStatus.ERROR, "Connection failed")
            return report
        self._update(report, "connection", StepStatus.SUCCESS, "Connection successful")

        # 3. Balance
        self._update(report, "balance", StepStatus.RUNNING)
        try:
            balances = await balance_cache.get_balances()
        except BalanceFetchError as e:
            self._update(report, "balance", StepStatus.ERROR, "Failed to fetch balance", e.message)
            return report
        self._update(
            report, "balance", StepStatus.SUCCESS,
            f"Found {len(balances)} currencies",
            json.dumps({k: format_decimal(v) for k, v in balances.items()}, indent=2),
        )

        # 4. Validation
        self._update(report, "validation", StepStatus.RUNNING)
        try:
            verdict = await self.executor.preview(proposal)
        except BalanceFetchError as e:
            logger.error("Validation error", **create_error_context(e, "preview"))
            self._update(report, "validation", StepStatus.ERROR, "Validation error", e.message)
            return report
        if verdict.valid:
            self._update(report, "validation", StepStatus.SUCCESS, "Trade validation passed", verdict.reason)
        else:
            details = verdict.reason
            if verdict.adjusted_amount is not None:
                details = f"{details} (suggested amount {format_decimal(verdict.adjusted_amount)})"
            self._update(report, "validation", StepStatus.ERROR, "Trade validation failed", details)
            # Live runs go on so the executor can apply its own adjustment
            if not live:
                return report

        # 5. Order
        self._update(report, "order", StepStatus.RUNNING)
        if not live:
            self._update(report, "order", StepStatus.SKIPPED, "Skipped - dry run mode")
            return report

        execution = await self.executor.execute(proposal)
        if execution.succeeded:
            self._update(report, "order", StepStatus.SUCCESS, "Order placed successfully",
                         execution.message())
        else:
            self._update(report, "order", StepStatus.ERROR, "Order failed", execution.message())
        return report

    @staticmethod
    def _update(report: DebugReport, step_id: str, status: StepStatus,
                message: Optional[str] = None, details: Optional[str] = None) -> None:
        step = report.step(step_id)
        step.status = status
        step.message = message
        step.details = details
        if status == StepStatus.ERROR:
            logger.warning("Debug step failed", step=step_id, message=message, details=details)
        elif status != StepStatus.RUNNING:
            logger.debug("Debug step finished", step=step_id, status=status.value)
