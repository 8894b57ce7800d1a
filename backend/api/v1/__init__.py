"""Version 1 API routers."""

from fastapi import APIRouter

from . import auth, comments, messages, notifications, posts, users

api_router = APIRouter(prefix="/api/v1")


@api_router.get("/health", tags=["health"])
async def health() -> dict[str, str]:
    return {"status": "success", "data": "ok"}


api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(posts.router)
api_router.include_router(comments.router)
api_router.include_router(notifications.router)
api_router.include_router(messages.router)

__all__ = ["api_router"]
