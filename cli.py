# Command line entry point for Order Guard
import asyncio
from decimal import Decimal, InvalidOperation

import click
from pydantic import ValidationError

from app.containers import AppContainer
from core.config.validator import validate_startup_configuration
from core.logging import configure_logging
from core.trading.models import ExecutionReport, Side, TradeProposal, format_decimal
from core.utils.exceptions import BalanceFetchError, ConfigurationError
from services.pricing.oracle import FALLBACK_PRICES


def _parse_decimal(ctx, param, value):
    if value is None:
        return None
    try:
        return Decimal(value)
    except InvalidOperation:
        raise click.BadParameter(f"{value!r} is not a number")


def _run(container: AppContainer, coro):
    """Run one command coroutine and release the shared HTTP client."""
    async def runner():
        try:
            return await coro
        finally:
            await container.http_client().aclose()
    return asyncio.run(runner())


def _require_credentials(container: AppContainer):
    try:
        validate_startup_configuration(container.settings())
    except ConfigurationError as e:
        raise click.ClickException(e.message)
    return container.credentials()


def _proposal(pair: str, side: str, amount: Decimal, price) -> TradeProposal:
    try:
        return TradeProposal(pair=pair, side=Side(side), amount=amount, price=price)
    except ValidationError as e:
        raise click.BadParameter(str(e))


def _echo_report(report: ExecutionReport) -> None:
    for entry in report.trail:
        click.echo(f"  [{entry.step.value}] {entry.detail}")
    click.echo(report.message())


trade_arguments = [
    click.argument("pair"),
    click.argument("side", type=click.Choice([s.value for s in Side])),
    click.argument("amount", callback=_parse_decimal),
    click.option("--price", default=None, callback=_parse_decimal, help="Limit price; market order if omitted"),
]


def with_trade_arguments(func):
    for decorator in reversed(trade_arguments):
        func = decorator(func)
    return func


@click.group()
@click.pass_context
def cli(ctx):
    """Order Guard CLI"""
    if ctx.obj is None:
        ctx.obj = AppContainer()
    configure_logging(ctx.obj.settings())


@cli.command()
@click.pass_obj
def balances(container: AppContainer):
    """Show account balances valued in USD"""
    _require_credentials(container)
    cache = container.balance_cache()
    oracle = container.price_oracle()

    async def load():
        await cache.get_balances(force_refresh=True)
        return cache.portfolio_summary(await oracle.get_prices())

    try:
        summary = _run(container, load())
    except BalanceFetchError as e:
        raise click.ClickException(e.message)

    normalizer = container.pair_normalizer()
    for asset, holding in sorted(summary.holdings.items()):
        click.echo(
            f"{normalizer.display_asset(asset):<6} {format_decimal(holding.balance):>18}  "
            f"${holding.usd_value:,.2f}"
        )
    click.echo(f"Total portfolio value: ${summary.total_usd_value:,.2f}")


@cli.command()
@click.pass_obj
def prices(container: AppContainer):
    """Show the USD reference prices used for validation"""
    table = _run(container, container.price_oracle().get_prices())
    normalizer = container.pair_normalizer()
    for asset in FALLBACK_PRICES:
        click.echo(f"{normalizer.display_asset(asset):<6} ${table[asset]:,.2f}")


@cli.command()
@with_trade_arguments
@click.pass_obj
def validate(container: AppContainer, pair, side, amount, price):
    """Validate a trade against current balances without placing it"""
    _require_credentials(container)
    proposal = _proposal(pair, side, amount, price)
    try:
        verdict = _run(container, container.order_executor().preview(proposal))
    except BalanceFetchError as e:
        raise click.ClickException(e.message)

    if verdict.valid:
        click.echo("Trade validation passed")
        if verdict.reason:
            click.echo(f"Warning: {verdict.reason}")
        return

    click.echo(f"Trade validation failed: {verdict.reason}")
    if verdict.adjusted_amount is not None:
        click.echo(f"Suggested amount: {format_decimal(verdict.adjusted_amount)}")
    raise SystemExit(1)


@cli.command()
@with_trade_arguments
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
def execute(container: AppContainer, pair, side, amount, price, yes):
    """Validate and place an order"""
    _require_credentials(container)
    proposal = _proposal(pair, side, amount, price)
    if not yes:
        click.confirm(f"Place {side} order for {format_decimal(amount)} {pair}?", abort=True)

    report = _run(container, container.order_executor().execute(proposal))
    _echo_report(report)
    if not report.succeeded:
        raise SystemExit(1)


@cli.command()
@with_trade_arguments
@click.option("--live", is_flag=True, help="Place the order for real at the last step")
@click.pass_obj
def debug(container: AppContainer, pair, side, amount, price, live):
    """Walk the order path step by step"""
    if live:
        _require_credentials(container)
    proposal = _proposal(pair, side, amount, price)
    report = _run(container, container.trade_debugger().run(proposal, live=live))

    for step in report.steps:
        line = f"[{step.status.value:<7}] {step.name}"
        if step.message:
            line += f": {step.message}"
        click.echo(line)
        if step.details:
            click.echo(f"          {step.details}")
    if not report.succeeded:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
