import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date

import pytest
from sqlalchemy.orm import sessionmaker

from bizledger.core.database import build_engine, init_db
from bizledger.core.retry import RetryPolicy
from bizledger.core.security import Principal
from bizledger.services.tenant_registry import create_tenant


DAY = date(2026, 10, 19)


@pytest.fixture
def engine(tmp_path):
    eng = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fast_retry():
    return RetryPolicy(max_attempts=3, backoff_base=0, backoff_max=0)


@pytest.fixture
def owner():
    return Principal(user_id="user-1")


@pytest.fixture
def tenant(db, owner, fast_retry):
    return create_tenant(db, owner, "user-1", {"name": "Corner Shop"}, policy=fast_retry)
