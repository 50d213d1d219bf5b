"""QA Release Tracker - API Routers"""
from .auth import router as auth_router
from .verification import router as verification_router
from .release_verification import router as release_verification_router
from .teams import router as teams_router

__all__ = [
    "auth_router",
    "verification_router",
    "release_verification_router",
    "teams_router",
]
