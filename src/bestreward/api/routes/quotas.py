from datetime import date

from fastapi import APIRouter, Depends

from bestreward.api.deps import get_service
from bestreward.schemas.requests import AdjustQuotaRequest, ConsumeQuotaRequest
from bestreward.schemas.responses import QuotaOverviewEntry, QuotaStatus
from bestreward.services.resolution import RewardResolutionService

router = APIRouter(prefix="/quotas", tags=["quotas"])


@router.get("", response_model=list[QuotaOverviewEntry])
def list_quotas(
    as_of: date | None = None,
    service: RewardResolutionService = Depends(get_service),
) -> list[QuotaOverviewEntry]:
    return service.quota_overview(as_of)


@router.get("/{reward_config_id}", response_model=QuotaStatus)
def get_quota(
    reward_config_id: str,
    payment_method_id: str | None = None,
    as_of: date | None = None,
    service: RewardResolutionService = Depends(get_service),
) -> QuotaStatus:
    return service.remaining_quota(reward_config_id, payment_method_id, as_of)


@router.post("/consume", response_model=QuotaStatus)
def consume_quota(
    request: ConsumeQuotaRequest,
    service: RewardResolutionService = Depends(get_service),
) -> QuotaStatus:
    return service.consume_quota(
        request.reward_config_id,
        request.payment_method_id,
        request.amount,
        as_of=request.as_of,
    )


@router.post("/adjust", response_model=QuotaStatus)
def adjust_quota(
    request: AdjustQuotaRequest,
    service: RewardResolutionService = Depends(get_service),
) -> QuotaStatus:
    return service.adjust_quota(
        request.reward_config_id,
        request.payment_method_id,
        request.delta,
        as_of=request.as_of,
    )
