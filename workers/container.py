"""Worker dependency injection container."""
from datetime import timedelta

import structlog
from dependency_injector import containers, providers

from core.settings import SETTINGS
from infra.resources import DatabaseResource, IdentityResource

logger = structlog.get_logger("fixie.workers")


class WorkerInfrastructureContainer(containers.DeclarativeContainer):
    """Infrastructure dependencies for workers."""

    config = providers.Configuration()
    settings = providers.Object(SETTINGS)
    logger = providers.Object(logger)

    # Database
    database = providers.Resource(
        DatabaseResource,
        database_url=str(SETTINGS.DATABASE.DATABASE_URL),
    )

    # Identity service (admin access for listing and deleting accounts)
    identity = providers.Resource(
        IdentityResource,
        base_url=SETTINGS.IDENTITY.IDENTITY_BASE_URL,
        api_key=SETTINGS.IDENTITY.IDENTITY_API_KEY.get_secret_value(),
        project_id=SETTINGS.IDENTITY.IDENTITY_PROJECT_ID,
        admin_token=SETTINGS.IDENTITY.IDENTITY_ADMIN_TOKEN.get_secret_value(),
        timeout=SETTINGS.IDENTITY.IDENTITY_TIMEOUT_SECONDS,
    )


class WorkerServiceContainer(containers.DeclarativeContainer):
    """Worker services."""

    infrastructure = providers.DependenciesContainer()

    unverified_user_cleanup = providers.Factory(
        "workers.cleanup.UnverifiedUserCleanup",
        identity=infrastructure.identity,
        session_factory=providers.Callable(
            lambda db: db.get_session, db=infrastructure.database
        ),
        grace_period=providers.Factory(timedelta, hours=SETTINGS.CLEANUP.GRACE_PERIOD_HOURS),
        page_size=SETTINGS.CLEANUP.PAGE_SIZE,
    )


class WorkerContainer(containers.DeclarativeContainer):
    """Main worker container."""

    infrastructure = providers.Container(WorkerInfrastructureContainer)
    services = providers.Container(
        WorkerServiceContainer, infrastructure=infrastructure
    )
