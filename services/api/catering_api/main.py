# Catering Inventory API Main Entry Point
import logging
import sys
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from sqlalchemy.orm.exc import StaleDataError

from .db import session_scope
from .errors import CateringError, ConcurrencyConflict
from .settings import settings
from .services.seed import ensure_seeded
from .routers.ready import router as ready_router
from .routers.inventory import router as inventory_router
from .routers.recipes import router as recipes_router
from .routers.menu_items import router as menu_items_router

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("catering")

# Rate limiter (per-IP)
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit_default])

app = FastAPI(title="Catering Inventory API", version="0.1.0")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CateringError)
async def catering_error_handler(request: Request, exc: CateringError):
    if exc.status_code >= 409:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StaleDataError)
async def stale_data_handler(request: Request, exc: StaleDataError):
    conflict = ConcurrencyConflict()
    logger.info(f"{request.method} {request.url.path} lost a version race: {exc}")
    return JSONResponse(status_code=conflict.status_code, content=conflict.to_dict())


@app.on_event("startup")
def seed_catalog():
    if not settings.seed_on_startup:
        return
    try:
        with session_scope() as db:
            ensure_seeded(db, settings.default_updated_by)
    except Exception:
        logger.exception("Seeding failed")
        raise


app.include_router(ready_router, prefix="/api", tags=["ready"])
app.include_router(inventory_router, prefix="/api/inventory", tags=["inventory"])
app.include_router(recipes_router, prefix="/api", tags=["recipes"])
app.include_router(menu_items_router, prefix="/api/menu-items", tags=["menu-items"])
