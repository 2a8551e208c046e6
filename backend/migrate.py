"""
Create the schema and seed default business hours.

Usage: python backend/migrate.py
"""

import logging

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from groombook.database import engine
from groombook.models import Base, BusinessHours

logger = logging.getLogger(__name__)

# Mon–Sat 09:00–17:00, Sunday closed
DEFAULT_BUSINESS_HOURS = {
    0: ("09:00", "17:00", True),
    1: ("09:00", "17:00", True),
    2: ("09:00", "17:00", True),
    3: ("09:00", "17:00", True),
    4: ("09:00", "17:00", True),
    5: ("09:00", "17:00", True),
    6: ("09:00", "17:00", False),
}


def apply_migrations(target: Engine = engine) -> None:
    logger.info(f"Using DB: {target.url.render_as_string(hide_password=True)}")
    Base.metadata.create_all(target)

    with Session(target) as db:
        configured = {row.weekday for row in db.query(BusinessHours).all()}
        for weekday, (open_time, close_time, is_open) in DEFAULT_BUSINESS_HOURS.items():
            if weekday in configured:
                continue
            db.add(BusinessHours(
                weekday=weekday,
                open_time=open_time,
                close_time=close_time,
                is_open=is_open,
            ))
            logger.info(f"Seeded business hours for weekday {weekday}")
        db.commit()

    logger.info("All migrations applied.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    apply_migrations()
