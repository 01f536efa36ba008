import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dicebet.auth import sign_token
from dicebet.config import UNIT
from dicebet.database import Base, get_db
from dicebet.house import ensure_contract_state
from dicebet.ledger import SqlLedger
from dicebet.main import app

OWNER = "deployer"
CUSTODY = "dice-contract"
ALICE = "alice"
BOB = "bob"


class FixedOutcome:
    """Randomness source that always rolls the same face."""

    name = "fixed"

    def __init__(self, value: int, height: int = 0):
        self.value = value
        self.height = height

    def outcome(self, game_id: int) -> tuple[int, int]:
        return self.value, self.height


@pytest.fixture
def sql_engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(sql_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=sql_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    ensure_contract_state(session, owner=OWNER, custody_account=CUSTODY)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def ledger(db):
    return SqlLedger(db)


@pytest.fixture
def funded(db, ledger):
    ledger.open_account(OWNER, 1000 * UNIT)
    ledger.open_account(ALICE, 500 * UNIT)
    ledger.open_account(BOB, 50 * UNIT)
    db.commit()
    return ledger


@pytest.fixture
def client(session_factory, funded):
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


def auth_header(account: str) -> dict:
    return {"Authorization": f"Bearer {sign_token(account)}"}
