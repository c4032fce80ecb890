"""FastAPI dependency providers for shared stores and clients."""

from __future__ import annotations

from functools import lru_cache

import structlog
from fastapi import Depends

from leadhub.config.settings import get_settings
from leadhub.integrations.distribution import DistributionClient
from leadhub.policy.hydrator import PolicyHydrator
from leadhub.storage.repositories.login_tokens import (
    InMemoryLoginTokenStore,
    LoginTokenStore,
)
from leadhub.storage.repositories.memberships import InMemoryMembershipStore, MembershipStore

logger = structlog.get_logger(__name__)


@lru_cache
def get_store() -> MembershipStore:
    """Create the membership store selected by settings."""
    settings = get_settings()
    if settings.use_database:
        from leadhub.storage.database import get_engine
        from leadhub.storage.repositories.db_memberships import DatabaseMembershipStore

        return DatabaseMembershipStore(get_engine())
    logger.info("membership_store_in_memory")
    return InMemoryMembershipStore()


@lru_cache
def get_login_token_store() -> LoginTokenStore:
    settings = get_settings()
    if settings.use_database:
        from leadhub.storage.database import get_engine
        from leadhub.storage.repositories.login_tokens import DatabaseLoginTokenStore

        return DatabaseLoginTokenStore(get_engine())
    return InMemoryLoginTokenStore()


def get_hydrator(store: MembershipStore = Depends(get_store)) -> PolicyHydrator:
    """A hydrator per request; it holds no state beyond the store handle."""
    return PolicyHydrator(store)


@lru_cache
def get_distribution_client() -> DistributionClient:
    settings = get_settings()
    return DistributionClient(
        base_url=settings.distribution_api_url,
        timeout=settings.distribution_timeout_seconds,
    )
