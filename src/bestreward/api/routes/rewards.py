from fastapi import APIRouter, Depends

from bestreward.api.deps import get_service
from bestreward.engine.calculator import CalculationResult
from bestreward.schemas.requests import CalculateRequest, QueryRequest, SchemeAmountRequest
from bestreward.schemas.responses import ChannelQueryResult, SchemeCalculation, TransactionPosting
from bestreward.services.resolution import RewardResolutionService

router = APIRouter(tags=["rewards"])


@router.post("/rewards/query", response_model=list[ChannelQueryResult])
def query_rewards(
    request: QueryRequest,
    service: RewardResolutionService = Depends(get_service),
) -> list[ChannelQueryResult]:
    return service.query_by_channels(request.keys, request.amount)


@router.post("/rewards/calculate", response_model=CalculationResult)
def calculate(
    request: CalculateRequest,
    service: RewardResolutionService = Depends(get_service),
) -> CalculationResult:
    return service.calculate(request.amount, request.components)


@router.post("/rewards/calculate-with-scheme", response_model=SchemeCalculation)
def calculate_with_scheme(
    request: SchemeAmountRequest,
    service: RewardResolutionService = Depends(get_service),
) -> SchemeCalculation:
    return service.calculate_with_scheme(
        request.amount,
        scheme_id=request.scheme_id,
        payment_method_id=request.payment_method_id,
        as_of=request.as_of,
    )


@router.post("/transactions", response_model=TransactionPosting)
def post_transaction(
    request: SchemeAmountRequest,
    service: RewardResolutionService = Depends(get_service),
) -> TransactionPosting:
    return service.post_transaction(
        request.amount,
        scheme_id=request.scheme_id,
        payment_method_id=request.payment_method_id,
        as_of=request.as_of,
    )


@router.post("/transactions/reverse", response_model=TransactionPosting)
def reverse_transaction(
    request: SchemeAmountRequest,
    service: RewardResolutionService = Depends(get_service),
) -> TransactionPosting:
    return service.reverse_transaction(
        request.amount,
        scheme_id=request.scheme_id,
        payment_method_id=request.payment_method_id,
        as_of=request.as_of,
    )
