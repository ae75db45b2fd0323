from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.engine import Engine

from models import member, scheduling, subscription, user  # noqa: F401
from models.base import Base, engine
from app.config import configure_logging

logger = logging.getLogger(__name__)

# Storage-level guard against double booking a trainer; complements the
# per-trainer row lock taken by SessionService.
EXCLUSION_CONSTRAINT = "training_sessions_no_trainer_overlap"


def _install_postgres_extras(bind: Engine) -> None:
    with bind.begin() as conn:
        # 1) btree_gist lets "trainer_id WITH =" share a GiST index with tsrange
        conn.execute(text("CREATE EXTENSION IF NOT EXISTS btree_gist"))

        # 2) Exclusion constraint: no two live sessions of a trainer overlap
        exists = conn.execute(
            text("SELECT 1 FROM pg_constraint WHERE conname = :name"),
            {"name": EXCLUSION_CONSTRAINT},
        ).first()
        if not exists:
            conn.execute(
                text(
                    f"""
                    ALTER TABLE training_sessions
                        ADD CONSTRAINT {EXCLUSION_CONSTRAINT}
                        EXCLUDE USING gist (
                            trainer_id WITH =,
                            tsrange(scheduled_date, scheduled_end) WITH &&
                        )
                        WHERE (status <> 'cancelled');
                    """
                )
            )

        # 3) Index: availability lookups by trainer and weekday
        conn.execute(
            text(
                """
                CREATE INDEX IF NOT EXISTS idx_trainer_availability_trainer_day
                ON trainer_availability(trainer_id, day_of_week);
                """
            )
        )


def init_db(bind: Engine | None = None) -> list[str]:
    """Create every table (and the PostgreSQL-only extras). Returns table names."""
    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    if bind.dialect.name == "postgresql":
        _install_postgres_extras(bind)
    tables = sorted(Base.metadata.tables)
    logger.info("Schema ready on %s: %s", bind.dialect.name, ", ".join(tables))
    return tables


if __name__ == "__main__":
    configure_logging()
    init_db()
    print("Database tables + exclusion constraint + indexes created.")
