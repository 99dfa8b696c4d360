import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from bestreward.api.routes.catalog import router as catalog_router
from bestreward.api.routes.health import router as health_router
from bestreward.api.routes.quotas import router as quotas_router
from bestreward.api.routes.rewards import router as rewards_router
from bestreward.config import settings
from bestreward.domain.errors import RewardEngineError
from bestreward.log import setup_logging

app = FastAPI(title="BestReward API", version="0.1.0")
app.include_router(health_router)
app.include_router(catalog_router)
app.include_router(rewards_router)
app.include_router(quotas_router)


@app.exception_handler(RewardEngineError)
async def reward_engine_error_handler(request: Request, exc: RewardEngineError) -> JSONResponse:
    logger.warning("{} {} failed: {} ({})", request.method, request.url.path, exc, exc.code)
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc), "code": exc.code})


def run() -> None:
    setup_logging()
    uvicorn.run("bestreward.api.app:app", host=settings.app_host, port=settings.app_port, reload=False)
