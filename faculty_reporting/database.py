import logging
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from faculty_reporting.core import config
from faculty_reporting.core.exceptions import StoreError


logger = logging.getLogger(__name__)

connect_args = {}
if config.DATABASE_URL and config.DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(config.DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_reporting_schema_checked = False


def ensure_reporting_schema() -> None:
    global _reporting_schema_checked

    if _reporting_schema_checked:
        return

    with _schema_lock:
        if _reporting_schema_checked:
            return

        inspector = inspect(engine)
        table_names = set(inspector.get_table_names())

        if not {'users', 'reports', 'lecturer_ratings', 'course_assignments'} <= table_names:
            _reporting_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('reports')}
        migration_steps = [
            ('faculty_id', 'ALTER TABLE reports ADD COLUMN faculty_id INTEGER'),
            ('course_code', 'ALTER TABLE reports ADD COLUMN course_code VARCHAR'),
            ('prl_feedback', 'ALTER TABLE reports ADD COLUMN prl_feedback TEXT'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE UNIQUE INDEX IF NOT EXISTS uq_users_email ON users(email)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_reports_lecturer_created ON reports(lecturer_id, created_at)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_ratings_lecturer ON lecturer_ratings(lecturer_id)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_assignments_lecturer ON course_assignments(lecturer_id)')
            )

        _reporting_schema_checked = True


def ensure_database_ready() -> None:
    try:
        ensure_reporting_schema()
    except SQLAlchemyError as exc:
        logger.exception('Schema check failed. Verify DATABASE_URL and database credentials.')
        raise StoreError('Database unavailable.') from exc


def store_failure(db, action: str) -> StoreError:
    """Roll back, log the active exception and build the generic error to raise."""
    if db is not None:
        db.rollback()
    logger.exception('Database error while %s.', action)
    return StoreError()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
