"""
Domain exceptions for the Side Quest backend.

Services raise these; ``register_exception_handlers`` turns them into JSON
responses so route code never has to build HTTP errors for domain outcomes.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class SideQuestError(Exception):
    """Base exception for the application"""
    status_code = 500
    detail = "Internal server error"

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class Unauthenticated(SideQuestError):
    """Missing, malformed or expired session token"""
    status_code = 401
    detail = "Unauthorized"


class Forbidden(SideQuestError):
    """Authenticated, but the action needs an admin"""
    status_code = 403
    detail = "Admin only"


class NotFound(SideQuestError):
    status_code = 404
    detail = "Not found"


class QuestNotFound(NotFound):
    detail = "Quest not found"


class LocationNotFound(NotFound):
    detail = "Location not found"


class PhotoNotFound(NotFound):
    detail = "Photo not found"


class UserNotFound(NotFound):
    detail = "User not found"


class NoPhotosAvailable(NotFound):
    """Raised when the player has already played every verified photo"""
    detail = "No photos available"


class Conflict(SideQuestError):
    """Expected outcome of concurrent or repeated use; never a bug"""
    status_code = 409
    detail = "Conflict"


class AlreadyPlayed(Conflict):
    def __init__(self, user_id: int | None = None, photo_id: int | None = None):
        self.user_id = user_id
        self.photo_id = photo_id
        super().__init__("Already played")


class QuestAlreadyClaimed(Conflict):
    def __init__(self, quest_id: int | None = None):
        self.quest_id = quest_id
        super().__init__("This quest has already been claimed by another player!")


class NegativeBalance(Conflict):
    detail = "Points balance cannot go below zero"


class StorageFailure(SideQuestError):
    """The database or object store was unreachable or rejected a write"""
    status_code = 500
    detail = "Storage failure"


async def _side_quest_error_handler(request: Request, exc: SideQuestError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    headers = {"WWW-Authenticate": "Cookie"} if isinstance(exc, Unauthenticated) else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SideQuestError, _side_quest_error_handler)
