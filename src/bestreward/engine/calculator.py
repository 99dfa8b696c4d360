from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation

from pydantic import BaseModel

from bestreward.domain.errors import ValidationError
from bestreward.domain.models import CalculationMethod

_ROUNDING = {
    CalculationMethod.ROUND: ROUND_HALF_UP,
    CalculationMethod.FLOOR: ROUND_FLOOR,
    CalculationMethod.CEIL: ROUND_CEILING,
}


class RewardComponent(BaseModel):
    percentage: Decimal
    calculation_method: CalculationMethod = CalculationMethod.ROUND


class BreakdownLine(BaseModel):
    percentage: Decimal
    calculation_method: CalculationMethod
    original_reward: Decimal
    calculated_reward: int


class CalculationResult(BaseModel):
    amount: Decimal
    breakdown: list[BreakdownLine]
    total_reward: int


def raw_reward(amount: Decimal, percentage: Decimal) -> Decimal:
    return Decimal(amount) * Decimal(percentage) / 100


def calculate_reward(amount: Decimal, percentage: Decimal, method: CalculationMethod) -> int:
    """Reward for ``amount`` at ``percentage`` percent, rounded to a whole unit.

    ``round`` is round-half-up: 2.5 -> 3, 0.5 -> 1.
    """
    if amount < 0:
        raise ValidationError(f"amount must be >= 0, got {amount}")
    if percentage < 0:
        raise ValidationError(f"percentage must be >= 0, got {percentage}")

    rounding = _ROUNDING[CalculationMethod(method)]
    try:
        return int(raw_reward(amount, percentage).quantize(Decimal("1"), rounding=rounding))
    except InvalidOperation:
        raise ValidationError(f"reward for amount {amount} at {percentage}% is out of range") from None


def calculate_total(amount: Decimal, components: list[RewardComponent]) -> CalculationResult:
    if amount < 0:
        raise ValidationError(f"amount must be >= 0, got {amount}")

    # Each component is rounded on its own; the total is the sum of rounded parts.
    breakdown = [
        BreakdownLine(
            percentage=component.percentage,
            calculation_method=component.calculation_method,
            original_reward=raw_reward(amount, component.percentage),
            calculated_reward=calculate_reward(
                amount, component.percentage, component.calculation_method
            ),
        )
        for component in components
    ]
    return CalculationResult(
        amount=amount,
        breakdown=breakdown,
        total_reward=sum(line.calculated_reward for line in breakdown),
    )
