import pytest
from decimal import Decimal

from core.trading.models import Side, TradeProposal
from services.diagnostics.trade_debugger import StepStatus, TradeDebugger


def statuses(report):
    return {step.id: step.status for step in report.steps}


class TestTradeDebugger:

    @pytest.mark.asyncio
    async def test_dry_run_skips_order(self, make_executor, recording_gateway, credentials):
        gateway = recording_gateway(balance={"ZUSD": "1000"})
        debugger = TradeDebugger(make_executor(gateway), credentials)

        report = await debugger.run(TradeProposal(pair="ETH/USD", side=Side.BUY, amount=Decimal("0.01")))

        assert statuses(report) == {
            "credentials": StepStatus.SUCCESS,
            "connection": StepStatus.SUCCESS,
            "balance": StepStatus.SUCCESS,
            "validation": StepStatus.SUCCESS,
            "order": StepStatus.SKIPPED,
        }
        assert report.succeeded
        assert gateway.orders == []
        assert report.step("balance").message == "Found 1 currencies"

    @pytest.mark.asyncio
    async def test_missing_credentials_stop_first_step(self, make_executor, recording_gateway):
        gateway = recording_gateway(balance={"ZUSD": "1000"})
        debugger = TradeDebugger(make_executor(gateway), None)

        report = await debugger.run(TradeProposal(pair="ETH/USD", side=Side.BUY, amount=Decimal("0.01")))

        assert report.failed_step.id == "credentials"
        assert statuses(report)["connection"] == StepStatus.PENDING
        assert gateway.balance_calls == 0

    @pytest.mark.asyncio
    async def test_connection_failure_stops_run(self, make_executor, recording_gateway, credentials):
        gateway = recording_gateway()
        gateway.balance_response = {"error": ["EAPI:Invalid key"]}
        debugger = TradeDebugger(make_executor(gateway), credentials)

        report = await debugger.run(TradeProposal(pair="ETH/USD", side=Side.BUY, amount=Decimal("0.01")))

        assert report.failed_step.id == "connection"
        assert statuses(report)["balance"] == StepStatus.PENDING

    @pytest.mark.asyncio
    async def test_validation_failure_stops_dry_run(self, make_executor, recording_gateway, credentials):
        gateway = recording_gateway(balance={"XXBT": "0.02"})
        debugger = TradeDebugger(make_executor(gateway), credentials)

        report = await debugger.run(TradeProposal(pair="BTC/USD", side=Side.SELL, amount=Decimal("0.05")))

        assert report.failed_step.id == "validation"
        assert "suggested amount 0.019" in report.step("validation").details
        assert statuses(report)["order"] == StepStatus.PENDING

    @pytest.mark.asyncio
    async def test_live_run_places_order_through_executor(self, make_executor, recording_gateway, credentials):
        gateway = recording_gateway(balance={"ZUSD": "1000"})
        debugger = TradeDebugger(make_executor(gateway), credentials)

        report = await debugger.run(
            TradeProposal(pair="ETH/USD", side=Side.BUY, amount=Decimal("0.01")), live=True)

        assert statuses(report)["order"] == StepStatus.SUCCESS
        assert "OABCDE-12345-FGHIJK" in report.step("order").details
        assert len(gateway.orders) == 1

    @pytest.mark.asyncio
    async def test_live_run_continues_past_validation_failure(self, make_executor, recording_gateway, credentials):
        gateway = recording_gateway(balance={"XXBT": "0.02"})
        debugger = TradeDebugger(make_executor(gateway), credentials)

        report = await debugger.run(
            TradeProposal(pair="BTC/USD", side=Side.SELL, amount=Decimal("0.05")), live=True)

        assert statuses(report)["validation"] == StepStatus.ERROR
        assert statuses(report)["order"] == StepStatus.SUCCESS
        assert gateway.orders[0].volume == "0.019"
