from .auth import router as auth_router
from .user import router as user_router
from .tasks import router as tasks_router
from .wallet import router as wallet_router
from .notifications import router as notifications_router
from .admin import router as admin_router

__all__ = [
    "auth_router", "user_router", "tasks_router", "wallet_router",
    "notifications_router", "admin_router",
]
