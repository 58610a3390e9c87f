import logging
import time
from typing import Callable, Optional, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from bizledger.core.config import settings
from bizledger.core.errors import LedgerError, PersistenceError
from bizledger.core.retry import RetryPolicy, call_with_retry
from bizledger.models.tenant import Base


logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_engine(database_url: str) -> Engine:
    """
    Create an engine whose every call is bounded by a timeout.

    PostgreSQL gets a connect timeout and a server-side statement_timeout;
    SQLite gets a busy timeout so a locked database fails instead of hanging.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"timeout": settings.db_connect_timeout_s, "check_same_thread": False},
        )
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_timeout=settings.db_pool_timeout_s,
        connect_args={
            "connect_timeout": settings.db_connect_timeout_s,
            "options": f"-c statement_timeout={settings.db_statement_timeout_ms}",
        },
    )


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Optional[Engine] = None) -> None:
    # Create tables in dev/test without running Alembic
    from bizledger import models  # noqa: F401  registers every table on Base
    from bizledger.services.entitlements import seed_default_plans

    bind = bind or engine
    if settings.env in {"dev", "test"}:
        Base.metadata.create_all(bind=bind)
    with Session(bind=bind) as db:
        seed_default_plans(db)


def run_in_transaction(
    db: Session,
    work: Callable[[Session], T],
    on_conflict: Optional[Callable[[Session, IntegrityError], T]] = None,
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "transaction",
) -> T:
    """
    Run ``work`` and commit, as one unit, under the central retry policy.

    Any SQLAlchemy failure rolls the session back and becomes a retryable
    ``PersistenceError``. A unique-constraint violation is handed to
    ``on_conflict`` after rollback; it may return the row that won the race
    or raise a typed error.
    """

    def attempt() -> T:
        try:
            result = work(db)
            db.commit()
            return result
        except IntegrityError as e:
            db.rollback()
            if on_conflict is None:
                raise PersistenceError("The write conflicted with existing data, try again.", cause=e) from e
            logger.info("%s hit a unique conflict, resolving: %s", label, e.orig)
            return _translate(db, lambda: on_conflict(db, e))
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(cause=e) from e
        except LedgerError:
            db.rollback()
            raise

    return call_with_retry(attempt, policy=policy, sleep=sleep, label=label)


def run_read(
    db: Session,
    work: Callable[[Session], T],
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "read",
) -> T:
    """Read-only counterpart of ``run_in_transaction``."""
    return call_with_retry(lambda: _translate(db, lambda: work(db)), policy=policy, sleep=sleep, label=label)


def _translate(db: Session, func: Callable[[], T]) -> T:
    try:
        return func()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(cause=e) from e
