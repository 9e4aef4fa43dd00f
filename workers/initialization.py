"""Worker initialization module: DI container setup for Celery tasks."""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog

from workers.container import WorkerContainer

logger = structlog.get_logger("fixie.workers.initialization")


class WorkerInitializer:
    """Manages the worker container lifecycle."""

    _container: Optional[WorkerContainer] = None

    @classmethod
    def get_container(cls) -> WorkerContainer:
        """Get the worker container singleton."""
        if cls._container is None:
            cls._container = WorkerContainer()
        return cls._container

    @classmethod
    def reset(cls) -> None:
        cls._container = None

    @classmethod
    @asynccontextmanager
    async def worker_context(cls) -> AsyncGenerator[WorkerContainer, None]:
        """Yield the container with its resources initialised for this event loop.

        Every task runs under its own ``asyncio.run`` loop, so resources are
        created on entry and shut down on exit.
        """
        container = cls.get_container()
        db_resource = container.infrastructure.database()
        identity_resource = container.infrastructure.identity()

        try:
            await db_resource.init()
            await identity_resource.init()
            logger.info("worker.initialization.complete")
        except Exception as e:
            logger.error("worker.initialization.failed", error=str(e))
            raise

        try:
            yield container
        finally:
            for resource in (identity_resource, db_resource):
                try:
                    await resource.shutdown()
                except Exception as e:
                    logger.warning(
                        "worker.cleanup.error",
                        resource=type(resource).__name__,
                        error=str(e),
                    )
            logger.info("worker.cleanup.complete")
