"""
Pre-trade validation against one balances/prices snapshot.

Two kinds of invalid verdict matter to callers:
- invalid with ``adjusted_amount``: retry once with that amount
- invalid without it: do not retry
"""

from decimal import Decimal
from typing import Dict, Mapping, Optional

from core.config.settings import ValidationSettings
from core.trading.models import (
    AssetBalance,
    PriceTable,
    Side,
    TradeProposal,
    ValidationErrorKind,
    ValidationVerdict,
    format_decimal,
)
from services.pairs.normalizer import PairNormalizer
from services.pricing.oracle import fallback_price_table, price_table_lookup


class TradeValidator:
    """Judges proposals against the snapshot it was built with.

    The balances and prices are copied at construction, so every call on one
    instance sees the same account state.
    """

    def __init__(self, balances: Mapping[str, Decimal], prices: Optional[Mapping[str, Decimal]] = None,
                 normalizer: Optional[PairNormalizer] = None,
                 settings: Optional[ValidationSettings] = None):
        self.balances: AssetBalance = dict(balances)
        self.prices: PriceTable = dict(prices) if prices else fallback_price_table()
        self.normalizer = normalizer or PairNormalizer()
        self.settings = settings or ValidationSettings()

    def validate(self, proposal: TradeProposal) -> ValidationVerdict:
        amount = proposal.amount

        # 1. Malformed amounts cannot be corrected
        if not amount.is_finite() or amount <= 0:
            return ValidationVerdict(
                valid=False,
                reason="Trade amount must be positive",
                error_kind=ValidationErrorKind.NON_POSITIVE_AMOUNT,
            )

        # 2. The pair minimum is offered as the correction
        display_pair = self.normalizer.to_display_pair(proposal.pair)
        min_size = self.min_order_size(proposal.pair)
        if amount < min_size:
            return ValidationVerdict(
                valid=False,
                reason=(
                    f"Order size {format_decimal(amount)} is below minimum "
                    f"{format_decimal(min_size)} for {display_pair}"
                ),
                error_kind=ValidationErrorKind.BELOW_MINIMUM_SIZE,
                adjusted_amount=min_size,
            )

        base, quote = self.normalizer.to_canonical(proposal.pair)

        if proposal.side == Side.BUY:
            return self._validate_buy(proposal, base, quote)
        return self._validate_sell(proposal, base, min_size)

    def _validate_buy(self, proposal: TradeProposal, base: str, quote: str) -> ValidationVerdict:
        unit_price = proposal.price if proposal.price is not None else price_table_lookup(self.prices, base)
        estimated_cost = unit_price * proposal.amount
        total_usd_value = self.portfolio_value()

        if total_usd_value < estimated_cost:
            return ValidationVerdict(
                valid=False,
                reason=(
                    f"Insufficient portfolio value. Required: ${estimated_cost:.2f}, "
                    f"Available: ${total_usd_value:.2f}"
                ),
                error_kind=ValidationErrorKind.INSUFFICIENT_PORTFOLIO_VALUE,
                required_balance=estimated_cost,
                available_balance=total_usd_value,
            )

        # Affordable overall, but maybe only by selling other holdings first
        quote_balance = self.available_balance(quote)
        if quote_balance < estimated_cost:
            quote_name = self.normalizer.display_asset(quote)
            return ValidationVerdict(
                valid=True,
                reason=(
                    f"Direct {quote_name} balance insufficient (${quote_balance:.2f}). "
                    f"May need to convert crypto assets."
                ),
                required_balance=estimated_cost,
                available_balance=quote_balance,
            )

        return ValidationVerdict(valid=True)

    def _validate_sell(self, proposal: TradeProposal, base: str, min_size: Decimal) -> ValidationVerdict:
        base_balance = self.available_balance(base)
        if base_balance >= proposal.amount:
            return ValidationVerdict(valid=True)

        base_name = self.normalizer.display_asset(base)
        # Keep a buffer so the exchange never sees a sell of the full balance
        buffered = base_balance * self.settings.sell_buffer_ratio
        if buffered < min_size:
            return ValidationVerdict(
                valid=False,
                reason=(
                    f"Insufficient {base_name} balance. Required: {format_decimal(proposal.amount)}, "
                    f"Available: {format_decimal(base_balance)}"
                ),
                error_kind=ValidationErrorKind.INSUFFICIENT_BASE_BALANCE,
                required_balance=proposal.amount,
                available_balance=base_balance,
            )

        adjusted_amount = max(buffered, min_size)
        return ValidationVerdict(
            valid=False,
            reason=(
                f"Insufficient {base_name} balance. Adjusting amount to "
                f"{adjusted_amount:.6f}"
            ),
            error_kind=ValidationErrorKind.INSUFFICIENT_BASE_BALANCE,
            adjusted_amount=adjusted_amount,
            required_balance=proposal.amount,
            available_balance=base_balance,
        )

    def min_order_size(self, pair: str) -> Decimal:
        display_pair = self.normalizer.to_display_pair(pair)
        return self.settings.min_order_sizes.get(display_pair, self.settings.default_min_order_size)

    def available_balance(self, asset: str) -> Decimal:
        normalized = self.normalizer.normalize_asset(asset)
        for code in (normalized, asset.strip().upper(), self.normalizer.display_asset(asset)):
            if code in self.balances:
                return self.balances[code]
        return Decimal("0")

    def portfolio_value(self) -> Decimal:
        """Total USD value of positive holdings; unpriced assets count at 1."""
        total = Decimal("0")
        for asset, balance in self.balances.items():
            if balance > 0:
                total += balance * price_table_lookup(self.prices, asset)
        return total

    def balance_summary(self) -> Dict[str, Decimal]:
        return {asset: balance for asset, balance in self.balances.items() if balance > 0}
