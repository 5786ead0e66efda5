from otpgate.web.routers.auth import router as auth_router
from otpgate.web.routers.notifications import router as notifications_router
from otpgate.web.routers.profile import router as profile_router

__all__ = [
    "auth_router",
    "notifications_router",
    "profile_router",
]
