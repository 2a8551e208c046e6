import logging

from fastapi import FastAPI
from sqlalchemy import text

from .config import settings
from .database import engine
from .redis_client import redis_client
from .routers import appointments, availability

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Groombook Booking API")

app.include_router(availability.router)
app.include_router(appointments.router)


@app.get("/health")
def health():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        database_ok = True
    except Exception:
        logger.exception("Database health check failed")
        database_ok = False

    try:
        redis_ok = bool(redis_client.ping())
    except Exception as e:
        logger.warning(f"Redis health check failed: {e}")
        redis_ok = False

    return {"database": database_ok, "redis": redis_ok}
