from fastapi import APIRouter, Depends, Response

from bestreward.api.deps import get_service
from bestreward.domain.models import RewardConfig, Scheme
from bestreward.engine.matcher import RankedMatch
from bestreward.repository.catalog_store import ReorderKind
from bestreward.schemas.requests import ReorderRequest, SharedGroupRequest
from bestreward.services.resolution import RewardResolutionService

router = APIRouter(tags=["catalog"])


@router.get("/channels/resolve", response_model=list[RankedMatch])
def resolve_channel(
    keyword: str,
    service: RewardResolutionService = Depends(get_service),
) -> list[RankedMatch]:
    return service.resolve_channel(keyword)


@router.get("/schemes/{scheme_id}/effective-rewards", response_model=list[RewardConfig])
def effective_rewards(
    scheme_id: str,
    service: RewardResolutionService = Depends(get_service),
) -> list[RewardConfig]:
    return service.effective_rewards(scheme_id)


@router.put("/schemes/{scheme_id}/shared-group", response_model=Scheme)
def assign_shared_group(
    scheme_id: str,
    request: SharedGroupRequest,
    service: RewardResolutionService = Depends(get_service),
) -> Scheme:
    return service.assign_shared_group(scheme_id, request.target_scheme_id)


@router.put("/reorder/{kind}", status_code=204)
def reorder(
    kind: ReorderKind,
    request: ReorderRequest,
    service: RewardResolutionService = Depends(get_service),
) -> Response:
    service.reorder(kind, request.ids)
    return Response(status_code=204)
