import logging
import os
from logging.handlers import TimedRotatingFileHandler

from fastapi import FastAPI
from redis.asyncio import Redis

from src.controller import router
from src.helpers import ID_SALT, IdentifierCodec
from src.repository import DATA_DIR, PASTE_COOLDOWN_SECONDS, PasteStore, SubmissionThrottle

REDIS_URL = os.getenv("REDIS_URL")
LOG_FILE = os.getenv("LOG_FILE", "/app/logs/app.log")

logger = logging.getLogger(__name__)


# Logging
def configure_logging(log_file: str = LOG_FILE):
    os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format="%(levelname)s - %(asctime)s - %(message)s",
        handlers=[
            logging.StreamHandler(),
            TimedRotatingFileHandler(
                filename=log_file,
                when="W0",
                interval=1,
                backupCount=4,
                encoding="utf-8",
            ),
        ],
    )


# Set up app
app = FastAPI(title="paast - paste sharing")
app.include_router(router)


# App lifecycle
@app.on_event("startup")
async def startup_event():
    configure_logging()

    # Changing ID_SALT once pastes exist makes every issued identifier undecodable
    if not ID_SALT:
        logger.warning("ID_SALT is empty, paste identifiers use the unsalted alphabet")

    app.state.store = PasteStore(IdentifierCodec(ID_SALT), DATA_DIR)
    app.state.throttle = SubmissionThrottle(PASTE_COOLDOWN_SECONDS)
    app.state.redis = Redis.from_url(REDIS_URL) if REDIS_URL else None
    logger.info(
        f"Application started, storing pastes in {DATA_DIR}, "
        f"redis cache {'enabled' if app.state.redis else 'disabled'}"
    )


@app.on_event("shutdown")
async def shutdown_event():
    if app.state.redis is not None:
        await app.state.redis.aclose()
    logger.info("Application shut down")
