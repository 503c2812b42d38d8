"""WebSocket stream of change notices.

Clients authenticate with their session token (``?session_id=``, Bearer
header or cookie) and receive ``{"type": "change", "event": {...}}`` frames
for rows they own. Admins receive every notice. The role is read from the
store at connect and re-read whenever the caller's own profile changes, so a
demoted admin drops back to their own rows and a deleted account is
disconnected. Frames carry identifiers only; clients re-fetch over HTTP.
"""

import asyncio

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from loguru import logger

from src.marketplace.api.http.app_data import ApplicationDependencies
from src.marketplace.api.http.deps import session_token_from
from src.marketplace.core.errors import NotFound
from src.marketplace.core.models.change_event import ChangeEvent, ChangeTable
from src.marketplace.core.services.change_feed import SubscriptionHandle
from src.marketplace.core.services.store import MarketplaceStore
from src.marketplace.runtime.context import get_config

router = APIRouter(tags=["changes"])

UNAUTHENTICATED_CLOSE_CODE = 4401


class StreamScope:
    """Which notices a stream forwards; follows the caller's current role."""

    def __init__(self, store: MarketplaceStore, user_id: str, is_admin: bool) -> None:
        self._store = store
        self.user_id = user_id
        self.is_admin = is_admin
        self.revoked = asyncio.Event()

    def admits(self, event: ChangeEvent) -> bool:
        if self.is_admin or event.owner_id == self.user_id:
            return True
        return event.table == ChangeTable.PROFILES and event.record_id == self.user_id

    def concerns_caller(self, event: ChangeEvent) -> bool:
        return event.record_id == self.user_id

    async def refresh(self, event: ChangeEvent) -> None:
        try:
            profile = await self._store.read_profile(self.user_id)
        except NotFound:
            logger.info("Change stream account removed", actor=self.user_id)
            self.revoked.set()
            return
        if profile.is_admin != self.is_admin:
            logger.info("Change stream rescoped", actor=self.user_id, admin=profile.is_admin)
            self.is_admin = profile.is_admin


@router.websocket("/ws/changes")
async def change_stream(websocket: WebSocket) -> None:
    deps: ApplicationDependencies = websocket.app.state.app_dependencies
    token = websocket.query_params.get("session_id") or session_token_from(websocket)
    caller = await deps.identity_service.get_session(token)
    if caller is None:
        await websocket.close(code=UNAUTHENTICATED_CLOSE_CODE)
        return

    try:
        profile = await deps.store.read_profile(caller.user_id)
    except NotFound:
        await websocket.close(code=UNAUTHENTICATED_CLOSE_CODE)
        return

    await websocket.accept()
    scope = StreamScope(deps.store, caller.user_id, profile.is_admin)
    queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(
        maxsize=get_config().change_feed.stream_queue_size
    )

    async def _enqueue(event: ChangeEvent) -> None:
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            # Delivery is best-effort; the client resyncs on its next fetch
            logger.warning("Change stream backlog full, dropping notice", actor=caller.user_id)

    handles: list[SubscriptionHandle] = [
        deps.store.subscribe(ChangeTable.PROFILES, scope.concerns_caller, scope.refresh)
    ]
    handles.extend(deps.store.subscribe(table, scope.admits, _enqueue) for table in ChangeTable)
    logger.info("Change stream opened", actor=caller.user_id, admin=scope.is_admin)

    async def _send() -> None:
        while True:
            event = await queue.get()
            await websocket.send_json({"type": "change", "event": event.model_dump(mode="json")})

    async def _receive() -> None:
        while True:
            message = await websocket.receive_json()
            if isinstance(message, dict) and message.get("type") == "ping":
                await websocket.send_json({"type": "pong"})

    sender = asyncio.create_task(_send())
    receiver = asyncio.create_task(_receive())
    revoked = asyncio.create_task(scope.revoked.wait())
    try:
        done, _ = await asyncio.wait(
            {sender, receiver, revoked}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in done - {revoked}:
            error = task.exception()
            if error is not None and not isinstance(error, WebSocketDisconnect):
                logger.opt(exception=error).error("Change stream failed", actor=caller.user_id)
    finally:
        for task in (sender, receiver, revoked):
            task.cancel()
        for handle in handles:
            deps.store.unsubscribe(handle)
        logger.info("Change stream closed", actor=caller.user_id)

    if revoked in done:
        await websocket.close(code=UNAUTHENTICATED_CLOSE_CODE)
