import re
from datetime import date
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, PrivateAttr, model_validator

_PAREN_ALIASES = re.compile(r"^(.+?)\s*\(([^)]+)\)$")
_BRACKET_ALIASES = re.compile(r"^(.+?)\s*\[([^\]]+)\]$")


class CalculationMethod(str, Enum):
    ROUND = "round"
    FLOOR = "floor"
    CEIL = "ceil"


class RefreshType(str, Enum):
    NONE = "none"
    MONTHLY = "monthly"
    DATE = "date"
    ACTIVITY = "activity"


class CalculationBasis(str, Enum):
    TRANSACTION = "transaction"
    STATEMENT = "statement"


class ChannelName(BaseModel):
    """Parsed form of a channel display name, e.g. ``"全聯福利中心 (全聯, PX Mart)"``."""

    label: str
    base_name: str
    aliases: list[str] = Field(default_factory=list)
    full_name: str


def parse_channel_name(display_name: str) -> ChannelName:
    # Matching fields are lower-cased; label keeps the original casing.
    full_name = display_name.strip()
    match = _PAREN_ALIASES.match(full_name) or _BRACKET_ALIASES.match(full_name)
    if not match:
        return ChannelName(label=full_name, base_name=full_name.lower(), full_name=full_name.lower())

    label = match.group(1).strip()
    aliases = [alias.strip().lower() for alias in match.group(2).split(",")]
    return ChannelName(
        label=label,
        base_name=label.lower(),
        aliases=[alias for alias in aliases if alias],
        full_name=full_name.lower(),
    )


class Channel(BaseModel):
    id: str
    display_name: str
    is_common: bool = False
    display_order: int = 0

    _name: ChannelName = PrivateAttr()

    def model_post_init(self, __context) -> None:
        self._name = parse_channel_name(self.display_name)

    @property
    def name(self) -> ChannelName:
        return self._name

    @property
    def label(self) -> str:
        return self._name.label


class Card(BaseModel):
    id: str
    name: str
    note: str | None = None
    display_order: int = 0


class ChannelApplication(BaseModel):
    channel_id: str
    note: str | None = None


class Scheme(BaseModel):
    id: str
    card_id: str
    name: str
    note: str | None = None
    requires_switch: bool = False
    activity_start: date | None = None
    activity_end: date | None = None
    shared_reward_group_id: str | None = None
    display_order: int = 0
    applications: list[ChannelApplication] = Field(default_factory=list)
    exclusions: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_activity_window(self) -> "Scheme":
        if self.activity_start and self.activity_end and self.activity_start > self.activity_end:
            raise ValueError("activity_start must not be after activity_end")
        return self


class PaymentMethod(BaseModel):
    id: str
    name: str
    note: str | None = None
    own_reward_percentage: Decimal = Field(default=Decimal("0"), ge=0)
    display_order: int = 0
    applications: list[ChannelApplication] = Field(default_factory=list)
    linked_scheme_ids: list[str] = Field(default_factory=list)


class RewardConfig(BaseModel):
    id: str
    scheme_id: str | None = None
    payment_method_id: str | None = None
    percentage: Decimal = Field(ge=0)
    calculation_method: CalculationMethod = CalculationMethod.ROUND
    quota_limit: Decimal | None = Field(default=None, ge=0)
    quota_refresh_type: RefreshType = RefreshType.NONE
    quota_refresh_value: int | None = Field(default=None, ge=1, le=31)
    quota_refresh_date: date | None = None
    calculation_basis: CalculationBasis = CalculationBasis.TRANSACTION
    display_order: int = 0

    @model_validator(mode="after")
    def _check_owner_and_refresh(self) -> "RewardConfig":
        if (self.scheme_id is None) == (self.payment_method_id is None):
            raise ValueError("reward config must belong to exactly one scheme or payment method")

        monthly = self.quota_refresh_type == RefreshType.MONTHLY
        if monthly != (self.quota_refresh_value is not None):
            raise ValueError("quota_refresh_value is required for, and only for, monthly refresh")

        on_date = self.quota_refresh_type == RefreshType.DATE
        if on_date != (self.quota_refresh_date is not None):
            raise ValueError("quota_refresh_date is required for, and only for, date refresh")
        return self

    @property
    def is_unlimited(self) -> bool:
        return self.quota_limit is None


class RefreshRule(BaseModel):
    type: RefreshType = RefreshType.NONE
    day: int | None = None
    on_date: date | None = None
    activity_end: date | None = None

    @classmethod
    def for_config(cls, config: RewardConfig, activity_end: date | None = None) -> "RefreshRule":
        return cls(
            type=config.quota_refresh_type,
            day=config.quota_refresh_value,
            on_date=config.quota_refresh_date,
            activity_end=activity_end,
        )


class QuotaKey(BaseModel, frozen=True):
    reward_config_id: str
    payment_method_id: str | None = None


class QuotaState(BaseModel):
    reward_config_id: str
    payment_method_id: str | None = None
    used_amount: Decimal = Decimal("0")
    current_amount: Decimal = Decimal("0")
    last_refresh_marker: str | None = None
    version: int = 0

    @property
    def key(self) -> QuotaKey:
        return QuotaKey(
            reward_config_id=self.reward_config_id,
            payment_method_id=self.payment_method_id,
        )

    def remaining(self, limit: Decimal | None) -> Decimal | None:
        if limit is None:
            return None
        return max(Decimal("0"), limit - self.used_amount)


class OptionKind(str, Enum):
    SCHEME = "scheme"
    PAYMENT = "payment"
    PAYMENT_SCHEME = "payment_scheme"


class OptionComponent(BaseModel):
    reward_config_id: str | None = None
    percentage: Decimal
    calculation_method: CalculationMethod
    reward: int | None = None


class RewardOption(BaseModel):
    """One scheme, payment method, or payment+scheme pairing evaluated for a channel."""

    kind: OptionKind
    label: str
    scheme_id: str | None = None
    payment_method_id: str | None = None
    is_excluded: bool = False
    excluded_by: str | None = None
    total_percentage: Decimal = Decimal("0")
    components: list[OptionComponent] = Field(default_factory=list)
    total_reward: int | None = None
    requires_switch: bool = False
    activity_end: date | None = None
    note: str | None = None
