"""
Domain routers, mounted by ``api.main`` under ``/api``.
"""

from fastapi import APIRouter

from . import calendar, friends, groups, memories, notifications, uploads, users

router = APIRouter()

router.include_router(users.router, tags=["Users"])
router.include_router(memories.router, tags=["Memories"])
router.include_router(friends.router, tags=["Friends"])
router.include_router(groups.router, tags=["Groups"])
router.include_router(notifications.router, tags=["Notifications"])
router.include_router(uploads.router, tags=["Uploads"])
router.include_router(calendar.router, tags=["Calendar"])
