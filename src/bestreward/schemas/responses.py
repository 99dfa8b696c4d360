from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field, computed_field

from bestreward.domain.models import RewardOption
from bestreward.engine.calculator import BreakdownLine
from bestreward.engine.matcher import MatchTier


class ChannelQueryResult(BaseModel):
    """Options for one matched channel. ``channel_id`` is None when the keyword matched nothing."""

    keyword: str
    channel_id: str | None = None
    channel_name: str | None = None
    match_tier: MatchTier | None = None
    excluded: list[RewardOption] = Field(default_factory=list)
    included: list[RewardOption] = Field(default_factory=list)

    @computed_field
    @property
    def results(self) -> list[RewardOption]:
        return self.excluded + self.included


class QuotaProjection(BaseModel):
    reward_config_id: str
    payment_method_id: str | None = None
    percentage: Decimal
    quota_limit: Decimal | None = None
    used_before: Decimal
    remaining_before: Decimal | None = None
    deducted: int
    used_after: Decimal
    remaining_after: Decimal | None = None
    reference_amount: Decimal | None = None
    next_refresh_date: date | None = None


class SchemeCalculation(BaseModel):
    amount: Decimal
    breakdown: list[BreakdownLine]
    total_reward: int
    quota_projection: list[QuotaProjection] = Field(default_factory=list)


class QuotaStatus(BaseModel):
    reward_config_id: str
    payment_method_id: str | None = None
    percentage: Decimal
    calculation_method: str
    quota_limit: Decimal | None = None
    used_amount: Decimal
    remaining_amount: Decimal | None = None
    current_amount: Decimal
    reference_amount: Decimal | None = None
    last_refresh_marker: str | None = None
    next_refresh_date: date | None = None
    version: int


class QuotaOverviewEntry(BaseModel):
    label: str
    scheme_id: str | None = None
    payment_method_id: str | None = None
    quotas: list[QuotaStatus]


class TransactionPosting(BaseModel):
    amount: Decimal
    breakdown: list[BreakdownLine]
    total_reward: int
    quotas: list[QuotaStatus]
