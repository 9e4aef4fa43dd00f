"""Removal of identities that never verified their email address.

Runs on a schedule, independently of chat turns. Every identity page is
scanned; an unverified identity older than the grace period loses its profile
row and then its identity record. A failure on one identity is logged and
counted, and the scan moves on.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.accounts.repository import delete_user_profile
from api.shared.exceptions import IdentityServiceError
from infra.resources import IdentityResource, IdentityServiceHTTPError

logger = structlog.get_logger("fixie.cleanup")


@dataclass
class CleanupReport:
    scanned: int = 0
    deleted: int = 0
    profiles_deleted: int = 0
    skipped_verified: int = 0
    skipped_grace: int = 0
    failed: int = 0
    failed_uids: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "scanned": self.scanned,
            "deleted": self.deleted,
            "profiles_deleted": self.profiles_deleted,
            "skipped_verified": self.skipped_verified,
            "skipped_grace": self.skipped_grace,
            "failed": self.failed,
            "failed_uids": list(self.failed_uids),
        }


def parse_created_at(account: Dict[str, Any]) -> datetime:
    """``createdAt`` is a string of epoch milliseconds."""
    raw = account.get("createdAt")
    if raw in (None, ""):
        raise ValueError("account has no createdAt")
    return datetime.fromtimestamp(int(raw) / 1000, tz=timezone.utc)


class UnverifiedUserCleanup:
    def __init__(
        self,
        identity: IdentityResource,
        session_factory: Callable[[], AsyncSession],
        *,
        grace_period: timedelta = timedelta(hours=24),
        page_size: int = 1000,
    ):
        self.identity = identity
        self.session_factory = session_factory
        self.grace_period = grace_period
        self.page_size = page_size

    async def run(self, now: Optional[datetime] = None) -> CleanupReport:
        now = now or datetime.now(timezone.utc)
        cutoff = now - self.grace_period
        report = CleanupReport()
        logger.info("cleanup.run.started", cutoff=cutoff.isoformat())

        page_token: Optional[str] = None
        while True:
            page = await self._list_page(page_token)
            for account in page.get("users") or []:
                await self._process(account, cutoff, report)
            page_token = page.get("nextPageToken")
            if not page_token:
                break

        logger.info("cleanup.run.completed", **report.as_dict())
        return report

    async def _list_page(self, page_token: Optional[str]) -> Dict[str, Any]:
        try:
            return await self.identity.list_users(
                max_results=self.page_size, page_token=page_token
            )
        except (IdentityServiceHTTPError, httpx.HTTPError) as e:
            logger.error("cleanup.list.failed", page_token=page_token, error=str(e))
            raise IdentityServiceError(f"Failed to list accounts: {e}") from e

    async def _process(
        self, account: Dict[str, Any], cutoff: datetime, report: CleanupReport
    ) -> None:
        uid = str(account.get("localId") or "")
        report.scanned += 1

        if account.get("emailVerified"):
            report.skipped_verified += 1
            return

        try:
            created_at = parse_created_at(account)
            if created_at > cutoff:
                report.skipped_grace += 1
                return

            # Profile first, then the identity record
            async with self.session_factory() as session:
                async with session.begin():
                    removed = await delete_user_profile(session, user_id=uid)
            if removed:
                report.profiles_deleted += 1

            await self.identity.delete_user(uid)
        except Exception as e:
            report.failed += 1
            report.failed_uids.append(uid)
            logger.error(
                "cleanup.user.failed",
                uid=uid,
                kind=type(e).__name__,
                error=str(e),
            )
            return

        report.deleted += 1
        logger.info(
            "cleanup.user.deleted",
            uid=uid,
            email=account.get("email"),
            created_at=created_at.isoformat(),
            profile_deleted=removed,
        )
