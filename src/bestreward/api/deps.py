from functools import lru_cache

from bestreward.config import settings
from bestreward.repository.catalog_store import CatalogStore
from bestreward.repository.db import get_session_factory
from bestreward.repository.quota_store import QuotaStore
from bestreward.services.resolution import RewardResolutionService


@lru_cache
def get_service() -> RewardResolutionService:
    return RewardResolutionService(
        CatalogStore(settings.catalog_file),
        QuotaStore(get_session_factory()),
    )
