from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from bestreward.engine.calculator import RewardComponent


class QueryRequest(BaseModel):
    keys: list[str] = Field(min_length=1)
    amount: Decimal | None = Field(default=None, ge=0)


class CalculateRequest(BaseModel):
    amount: Decimal = Field(ge=0)
    components: list[RewardComponent] = Field(min_length=1)


class SchemeAmountRequest(BaseModel):
    amount: Decimal = Field(ge=0)
    scheme_id: str | None = None
    payment_method_id: str | None = None
    as_of: date | None = None


class ConsumeQuotaRequest(BaseModel):
    reward_config_id: str
    payment_method_id: str | None = None
    amount: Decimal = Field(ge=0)
    as_of: date | None = None


class AdjustQuotaRequest(BaseModel):
    reward_config_id: str
    payment_method_id: str | None = None
    delta: Decimal
    as_of: date | None = None


class SharedGroupRequest(BaseModel):
    target_scheme_id: str | None = None


class ReorderRequest(BaseModel):
    ids: list[str] = Field(min_length=1)
