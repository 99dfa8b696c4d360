"""Quota ledger: pure transitions over a single quota row.

Nothing here reads a clock or touches storage. Every read path first calls
:func:`refreshed` with the caller's ``as_of`` date, so a row whose period has
rolled over is treated as empty before anything else happens to it.
"""

from calendar import monthrange
from datetime import date, timedelta
from decimal import Decimal

from bestreward.domain.errors import ValidationError
from bestreward.domain.models import (
    CalculationBasis,
    QuotaKey,
    QuotaState,
    RefreshRule,
    RefreshType,
    RewardConfig,
)
from bestreward.engine.calculator import calculate_reward

NEVER = "none"


def _boundary(year: int, month: int, day: int) -> date:
    # Day 31 in a 30-day month resets on the 30th.
    return date(year, month, min(day, monthrange(year, month)[1]))


def _previous_month(year: int, month: int) -> tuple[int, int]:
    return (year - 1, 12) if month == 1 else (year, month - 1)


def _next_month(year: int, month: int) -> tuple[int, int]:
    return (year + 1, 1) if month == 12 else (year, month + 1)


def period_marker(rule: RefreshRule, as_of: date) -> str:
    if rule.type == RefreshType.MONTHLY and rule.day is not None:
        year, month = as_of.year, as_of.month
        if as_of < _boundary(year, month, rule.day):
            year, month = _previous_month(year, month)
        return f"{year:04d}-{month:02d}"

    if rule.type == RefreshType.DATE and rule.on_date is not None:
        prefix = "before" if as_of < rule.on_date else "since"
        return f"{prefix}:{rule.on_date.isoformat()}"

    if rule.type == RefreshType.ACTIVITY and rule.activity_end is not None:
        return "active" if as_of <= rule.activity_end else "ended"

    return NEVER


def next_refresh_date(rule: RefreshRule, as_of: date) -> date | None:
    if rule.type == RefreshType.MONTHLY and rule.day is not None:
        this_month = _boundary(as_of.year, as_of.month, rule.day)
        if as_of < this_month:
            return this_month
        year, month = _next_month(as_of.year, as_of.month)
        return _boundary(year, month, rule.day)

    if rule.type == RefreshType.DATE and rule.on_date is not None:
        return rule.on_date if as_of < rule.on_date else None

    if rule.type == RefreshType.ACTIVITY and rule.activity_end is not None:
        return rule.activity_end + timedelta(days=1) if as_of <= rule.activity_end else None

    return None


def new_state(key: QuotaKey, rule: RefreshRule, as_of: date) -> QuotaState:
    return QuotaState(
        reward_config_id=key.reward_config_id,
        payment_method_id=key.payment_method_id,
        last_refresh_marker=period_marker(rule, as_of),
    )


def should_refresh(state: QuotaState, rule: RefreshRule, as_of: date) -> bool:
    return state.last_refresh_marker != period_marker(rule, as_of)


def refreshed(state: QuotaState, rule: RefreshRule, as_of: date) -> QuotaState:
    if not should_refresh(state, rule, as_of):
        return state
    return state.model_copy(
        update={
            "used_amount": Decimal("0"),
            "current_amount": Decimal("0"),
            "last_refresh_marker": period_marker(rule, as_of),
        }
    )


def remaining(state: QuotaState, limit: Decimal | None) -> Decimal | None:
    return state.remaining(limit)


def apply_adjustment(state: QuotaState, delta: Decimal) -> QuotaState:
    """Shift ``used_amount`` by a signed delta, never below zero."""
    used = max(Decimal("0"), state.used_amount + Decimal(delta))
    return state.model_copy(update={"used_amount": used})


def consume(state: QuotaState, amount: Decimal) -> QuotaState:
    if amount < 0:
        raise ValidationError(f"consumed amount must be >= 0, got {amount}")
    return apply_adjustment(state, amount)


def quota_draw(config: RewardConfig, state: QuotaState, transaction_amount: Decimal) -> int:
    """Reward amount a transaction draws from the quota.

    Statement-basis quotas are charged the growth of the reward computed on the
    period's running spend, so rounding happens once per statement rather than
    once per transaction.
    """
    if config.calculation_basis == CalculationBasis.STATEMENT:
        before = calculate_reward(state.current_amount, config.percentage, config.calculation_method)
        after = calculate_reward(
            state.current_amount + transaction_amount,
            config.percentage,
            config.calculation_method,
        )
        return after - before
    return calculate_reward(transaction_amount, config.percentage, config.calculation_method)


def post(state: QuotaState, config: RewardConfig, transaction_amount: Decimal) -> tuple[QuotaState, int]:
    if transaction_amount < 0:
        raise ValidationError(f"amount must be >= 0, got {transaction_amount}")

    draw = quota_draw(config, state, transaction_amount)
    consumed = consume(state, Decimal(draw))
    return (
        consumed.model_copy(update={"current_amount": state.current_amount + transaction_amount}),
        draw,
    )


def unpost(state: QuotaState, config: RewardConfig, transaction_amount: Decimal) -> tuple[QuotaState, int]:
    """Give back what :func:`post` took for the same transaction."""
    if transaction_amount < 0:
        raise ValidationError(f"amount must be >= 0, got {transaction_amount}")

    baseline = max(Decimal("0"), state.current_amount - transaction_amount)
    if config.calculation_basis == CalculationBasis.STATEMENT:
        rewound = state.model_copy(update={"current_amount": baseline})
        draw = quota_draw(config, rewound, state.current_amount - baseline)
    else:
        draw = quota_draw(config, state, transaction_amount)

    released = apply_adjustment(state, -Decimal(draw))
    return released.model_copy(update={"current_amount": baseline}), draw


def reference_amount(remaining_quota: Decimal | None, percentage: Decimal) -> Decimal | None:
    """Spend that would use up ``remaining_quota`` at ``percentage`` percent."""
    if remaining_quota is None or percentage <= 0:
        return None
    return remaining_quota / percentage * 100
