# backend/trials/main.py

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api.routes import pages, scores, competitors, catalog, settings, auth, export
from .core.config import get_settings
from .core.errors import TrialError
from .db import Base, SessionLocal, engine
from .services.catalog import seed_default_catalog
from .services.live_feed import get_live_feed, make_live_feed_listener
from .services.notifier import get_notifier
from .services.sheet_backup import make_sheet_backup_listener

from . import models  # noqa: F401  # важно, чтобы модели подхватились

config = get_settings()

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("trials")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # бэкап в таблицу не должен потерять последние попытки
    await asyncio.to_thread(notifier.drain)


app = FastAPI(title=config.PROJECT_NAME, lifespan=lifespan)

Base.metadata.create_all(bind=engine)

if config.SEED_CATALOG:
    with SessionLocal() as db:
        seed_default_catalog(db)

# после записи в журнал: табло и бэкап в таблицу
notifier = get_notifier()
notifier.subscribe(make_live_feed_listener(get_live_feed()))
if config.SHEET_WEBHOOK_URL:
    notifier.subscribe(make_sheet_backup_listener(config.SHEET_WEBHOOK_URL))
    logger.info("Sheet backup enabled")


@app.exception_handler(TrialError)
async def trial_error_handler(request: Request, exc: TrialError):
    return JSONResponse(status_code=exc.status_code, content=exc.payload())


app.include_router(pages.router)
app.include_router(scores.router)
app.include_router(competitors.router)
app.include_router(catalog.router)
app.include_router(settings.router)
app.include_router(auth.router)
app.include_router(export.router)
