from app.api.routes.grants import router as grants_router
from app.api.routes.health import router as health_router
from app.api.routes.stats import router as stats_router
from app.api.routes.sync import router as sync_router

__all__ = ["grants_router", "health_router", "stats_router", "sync_router"]
