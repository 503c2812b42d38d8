from fastapi import APIRouter, Depends

from src.marketplace.api.http.deps import get_notification_service, require_caller
from src.marketplace.core.models.session import CallerSession
from src.marketplace.core.services import NotificationService
from src.marketplace.entities.notification import Notification

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(
    type: str | None = None,
    read: bool | None = None,
    page: int = 1,
    page_size: int = 20,
    caller: CallerSession = Depends(require_caller),
    notifications: NotificationService = Depends(get_notification_service),
) -> list[Notification]:
    return await notifications.list_for_user(caller, type, read, page, page_size)


@router.get("/unread-count")
async def unread_count(
    caller: CallerSession = Depends(require_caller),
    notifications: NotificationService = Depends(get_notification_service),
) -> dict[str, int]:
    return {"unread": await notifications.unread_count(caller)}


@router.post("/read-all")
async def mark_all_read(
    caller: CallerSession = Depends(require_caller),
    notifications: NotificationService = Depends(get_notification_service),
) -> dict[str, int]:
    return {"updated": await notifications.mark_all_read(caller)}


@router.post("/{notification_id}/read", status_code=204)
async def mark_read(
    notification_id: str,
    caller: CallerSession = Depends(require_caller),
    notifications: NotificationService = Depends(get_notification_service),
) -> None:
    await notifications.mark_read(caller, notification_id)
