import os

# precisa rodar antes de qualquer import de app.core.config
os.environ["ENV"] = "test"
os.environ.setdefault("ADMIN_SESSION_SECRET", "test-admin-session-secret")
os.environ.setdefault("SESSION_ORDERS_SECRET", "test-session-orders-secret")
os.environ["ADMIN_SESSION_COOKIE_SECURE"] = "0"
os.environ["ADMIN_SESSION_COOKIE_SAMESITE"] = "lax"
os.environ["MIN_ACCEPT_BALANCE"] = "500"
os.environ["LOW_BALANCE_WARNING"] = "1000"
os.environ["ORDER_DEDUCTION_AMOUNT"] = "5"
os.environ["RECHARGE_MIN_AMOUNT"] = "100"
os.environ["RECHARGE_MAX_AMOUNT"] = "50000"

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.database import Base  # noqa: E402
import app.models  # noqa: E402,F401


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    testing_session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = testing_session()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture
def file_session_factory(tmp_path):
    """Banco sqlite em arquivo, para testes com várias sessões/threads."""
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'orders.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()
