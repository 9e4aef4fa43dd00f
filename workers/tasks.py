import asyncio
from contextlib import contextmanager

import redis
import structlog
from billiard.exceptions import SoftTimeLimitExceeded

from core.settings import SETTINGS
from workers.celery_app import app
from workers.initialization import WorkerInitializer

log = structlog.get_logger("fixie.workers.tasks")


class RunAlreadyInProgress(RuntimeError):
    pass


class SingleRunGuard:
    """Redis ``SET NX`` lock so overlapping beats never run the same job twice."""

    def __init__(self, redis_url: str, ttl_seconds: int = 3600):
        self.client = redis.from_url(redis_url, decode_responses=True)
        self.ttl = ttl_seconds

    @contextmanager
    def acquire(self, task_name: str):
        key = f"lock:{task_name}"
        acquired = self.client.set(name=key, value="1", nx=True, ex=self.ttl)
        if not acquired:
            raise RunAlreadyInProgress(f"{task_name} is already running")
        try:
            yield
        finally:
            self.client.delete(key)


run_guard = SingleRunGuard(str(SETTINGS.REDIS.REDIS_URL))


async def run_unverified_user_cleanup() -> dict:
    async with WorkerInitializer.worker_context() as container:
        cleanup = container.services.unverified_user_cleanup()
        report = await cleanup.run()
    return report.as_dict()


@app.task(
    name="workers.tasks.cleanup_unverified_users",
    bind=True,
    soft_time_limit=3000,
    time_limit=3600,
    queue="maintenance",
)
def cleanup_unverified_users(self):
    """Delete unverified identities past the grace period, with their profiles."""
    try:
        with run_guard.acquire(self.name):
            log.info("cleanup_unverified_users.started")
            result = asyncio.run(run_unverified_user_cleanup())
            log.info("cleanup_unverified_users.finished", **result)
            return result
    except RunAlreadyInProgress as e:
        log.info("cleanup_unverified_users.skipped", reason=str(e))
        return {"status": "skipped"}
    except SoftTimeLimitExceeded:
        log.warning("cleanup_unverified_users.soft_time_limit_exceeded")
        raise
