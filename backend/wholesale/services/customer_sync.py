"""
Customer status sync - mirrors Zoho Books contact status onto local accounts.
"""
import time
from datetime import timedelta
from typing import Optional

from wholesale.core.config import Settings
from wholesale.core.config import settings as default_settings
from wholesale.core.database import SessionContextFactory, utc_now
from wholesale.core.logging import get_logger
from wholesale.models.sync import SyncStatus, SyncType
from wholesale.models.user import UserStatus
from wholesale.repositories.sync_run import SyncRunRepository
from wholesale.repositories.user import UserRepository
from wholesale.schemas.sync import SyncResult
from wholesale.services.notification_service import NotificationService
from wholesale.services.zoho_books import ZohoBooksService

logger = get_logger(__name__)


class CustomerSyncResult(SyncResult):
    checked: int = 0
    suspended: int = 0
    reactivated: int = 0


class CustomerStatusSync:
    """
    Checks every Zoho-linked user not checked recently.

    Approved users whose contact is inactive or gone are suspended; users
    suspended because of Zoho are approved again once their contact is
    active. Rejected and pending users are never changed here.
    """

    def __init__(
        self,
        books: ZohoBooksService,
        session_context: SessionContextFactory,
        notifications: Optional[NotificationService] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.books = books
        self.session_context = session_context
        self.notifications = notifications
        self.settings = settings or default_settings

    async def sync_customer_statuses(self, triggered_by: str = "manual") -> CustomerSyncResult:
        started = time.monotonic()
        checked_before = utc_now() - timedelta(minutes=self.settings.customer_recheck_minutes)

        async with self.session_context() as session:
            run = await SyncRunRepository(session).start(SyncType.ZOHO_CUSTOMERS, triggered_by)
            run_id = run.id

        result = CustomerSyncResult(sync_run_id=run_id, sync_type=SyncType.ZOHO_CUSTOMERS.value)
        error_limit = self.settings.sync_error_message_limit

        try:
            async with self.session_context() as session:
                users = await UserRepository(session).get_users_for_status_check(checked_before)
                targets = [(user.id, user.email, user.zoho_customer_id) for user in users]

            result.total_processed = len(targets)
            logger.info("Checking Zoho customer status", users=len(targets))

            for user_id, email, zoho_customer_id in targets:
                try:
                    lookup = await self.books.get_contact(zoho_customer_id)
                    action = await self._apply_status(user_id, lookup.found and lookup.active)
                except Exception as e:
                    result.record_error(f"User {email}: {e}", error_limit)
                    logger.warning("Customer status check failed", email=email, error=str(e))
                    continue

                result.checked += 1
                if action == "suspended":
                    result.suspended += 1
                elif action == "reactivated":
                    result.reactivated += 1

            result.status = SyncStatus.COMPLETED.value
        except Exception as e:
            result.status = SyncStatus.FAILED.value
            result.record_error(f"Sync failed: {e}", error_limit)
            logger.error("Customer status sync failed", error=str(e))

        # Stored on the shared sync_runs counters
        result.updated = result.checked
        result.created = result.reactivated
        result.delisted = result.suspended
        result.duration_ms = int((time.monotonic() - started) * 1000)

        async with self.session_context() as session:
            runs = SyncRunRepository(session)
            run = await runs.get_by_id(run_id)
            if run is not None:
                await runs.finish(run, result)

        if result.status == SyncStatus.FAILED.value and self.notifications:
            await self.notifications.send_sync_failure_alert(
                SyncType.ZOHO_CUSTOMERS.value,
                result.error_messages[-1] if result.error_messages else "Unknown error",
                triggered_by,
            )

        logger.info(
            "Customer status sync finished",
            status=result.status,
            checked=result.checked,
            suspended=result.suspended,
            reactivated=result.reactivated,
            errors=result.errors,
        )
        return result

    async def _apply_status(self, user_id: str, remote_active: bool) -> Optional[str]:
        async with self.session_context() as session:
            users = UserRepository(session)
            user = await users.get_by_id(user_id)
            if user is None:
                return None

            updates = {"zoho_is_active": remote_active, "zoho_last_checked_at": utc_now()}
            action = None
            if not remote_active and user.status == UserStatus.APPROVED.value:
                updates["status"] = UserStatus.SUSPENDED.value
                action = "suspended"
            elif remote_active and user.status == UserStatus.SUSPENDED.value and not user.zoho_is_active:
                updates["status"] = UserStatus.APPROVED.value
                action = "reactivated"

            await users.update(user, updates)
            if action:
                logger.info("Customer status changed from Zoho", email=user.email, action=action)
            return action
