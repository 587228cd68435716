"""
main.py
-------
Entry point and composition root for the CRUD gateway.

Responsibilities:
    - Build the forbidden-table policy once from configuration.
    - Pick the storage driver for DATABASE_PROVIDER.
    - Wire the CRUD and query services around them.
    - When run directly, check that the configured database answers.

An HTTP layer imports ``build_services()`` and keeps the returned
instance for the lifetime of the process.
"""

import asyncio
import sys
from dataclasses import dataclass
from typing import Iterable, Optional

import config
from repositories.base import QueryRepository, RowRepository
from repositories.postgres_query_repo import PostgresQueryRepository
from repositories.postgres_row_repo import PostgresRowRepository
from security.table_policy import ConfiguredTableAccessPolicy
from services.crud_service import CrudService
from services.query_service import QueryService
from utils.logger import get_logger

logger = get_logger(__name__)

POSTGRES_PROVIDERS = {"postgres", "postgresql"}


@dataclass(frozen=True)
class Services:
    """Process-wide service instances sharing one policy."""
    policy: ConfiguredTableAccessPolicy
    crud: CrudService
    query: QueryService


def build_repositories(provider: Optional[str] = None) -> tuple[RowRepository, QueryRepository]:
    """
    Instantiate the storage driver for a provider name.

    Raises:
        ValueError: If no driver ships for the provider.
    """
    name = (provider or config.DATABASE_PROVIDER).strip().lower()
    if name in POSTGRES_PROVIDERS:
        return PostgresRowRepository(), PostgresQueryRepository()
    raise ValueError(
        f"Unsupported DATABASE_PROVIDER {name!r}; available: {', '.join(sorted(POSTGRES_PROVIDERS))}"
    )


def build_services(
    row_repo: Optional[RowRepository] = None,
    query_repo: Optional[QueryRepository] = None,
    forbidden_tables: Optional[Iterable[str]] = None,
) -> Services:
    """
    Wire the services. Missing repositories come from ``build_repositories()``;
    a missing forbidden list comes from configuration.
    """
    if forbidden_tables is None:
        policy = ConfiguredTableAccessPolicy.from_config()
    else:
        policy = ConfiguredTableAccessPolicy(forbidden_tables)

    if row_repo is None or query_repo is None:
        default_row_repo, default_query_repo = build_repositories()
        row_repo = row_repo or default_row_repo
        query_repo = query_repo or default_query_repo

    return Services(
        policy=policy,
        crud=CrudService(row_repo, policy),
        query=QueryService(query_repo, policy.forbidden_tables),
    )


async def check_database(services: Services) -> bool:
    """Run a trivial query through the full pipeline."""
    result = await services.query.execute_parametrized("SELECT 1 AS alive", {}, 1)
    if result.ok:
        logger.info("Database check passed.")
        return True
    logger.error(f"Database check failed: {result.error.message}")
    return False


def main() -> int:
    """Validate configuration and database connectivity."""
    logger.info(f"Starting CRUD gateway (provider={config.DATABASE_PROVIDER})...")
    try:
        services = build_services()
    except ValueError as e:
        logger.error(str(e))
        return 2

    if services.policy.has_restrictions():
        logger.info(f"Forbidden tables: {', '.join(services.policy.forbidden_tables)}")
    else:
        logger.warning("No forbidden tables configured; every table is exposed.")

    return 0 if asyncio.run(check_database(services)) else 1


if __name__ == "__main__":
    sys.exit(main())
