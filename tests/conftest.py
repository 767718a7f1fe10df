import os
import tempfile

# settings are read at import time, so the environment is prepared first
_TMP = tempfile.mkdtemp(prefix="taskhub-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_TMP, 'bootstrap.db')}")
os.environ.setdefault("RATE_LIMIT_ENABLED", "0")
os.environ.setdefault("UPLOAD_DIR", os.path.join(_TMP, "uploads"))
os.environ.setdefault("LOG_DIR", os.path.join(_TMP, "logs"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from taskhub import models
from taskhub.database import get_db, unit_of_work
from taskhub.main import app
from taskhub.models import TransactionType
from taskhub.services.ledger import LedgerService, DEPOSIT_BALANCE, WITHDRAWABLE_BALANCE
from taskhub.services.user_service import UserService


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    models.Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Register a user and fund it through the ledger so it still reconciles."""
    counter = {"n": 0}

    def _make(email=None, deposit=0, withdrawable=0, is_admin=False, referral_code=None, password="secret123"):
        counter["n"] += 1
        email = email or f"user{counter['n']}@example.com"
        user = UserService.register(db, email=email, password=password,
                                    referral_code=referral_code, is_admin=is_admin)
        with unit_of_work(db):
            if deposit:
                LedgerService.credit(db, user, DEPOSIT_BALANCE, deposit, TransactionType.DEPOSIT, "test funding")
            if withdrawable:
                LedgerService.credit(db, user, WITHDRAWABLE_BALANCE, withdrawable,
                                     TransactionType.ADMIN_CREDIT, "test funding")
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {UserService.issue_token(user)}"}

    return _headers


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@example.com", is_admin=True)
