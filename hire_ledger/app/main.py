import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from .api.exceptions import register_exception_handlers
from .api.routes import hire_router, payment_router, player_router, router as accounts_router
from .core.clock import Clock
from .core.config import get_settings
from .core.db import init_db
from .core.dependencies import get_clock

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("hire_ledger")

ROUTERS = (accounts_router, payment_router, hire_router, player_router)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("startup.ready", extra={"app_name": settings.app_name})
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)

for api_router in ROUTERS:
    app.include_router(api_router)
register_exception_handlers(app)


@app.get("/health")
def read_health(clock: Clock = Depends(get_clock)) -> dict[str, str]:
    return {
        "status": "ok",
        "currency": settings.default_currency,
        "now": clock.now().isoformat(),
    }
