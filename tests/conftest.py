"""Shared fixtures: in-memory database, initialized game, clock, transfers."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base
from core.exceptions import TransferFailure
from core.round_manager import RoundManager
from services.transfer_service import ValueTransfer

T0 = 1_700_000_000
OWNER = "owner"


class RecordingTransfer(ValueTransfer):
    """Records every non-zero transfer instead of paying out."""

    def __init__(self):
        self.sent = []

    def send(self, db, to, amount, reason, round_number=None):
        if amount > 0:
            self.sent.append((to, amount, reason))

    def total_to(self, address, reason=None):
        return sum(
            amount for to, amount, why in self.sent
            if to == address and (reason is None or why == reason)
        )


class FailingTransfer(ValueTransfer):
    """Every transfer fails."""

    def send(self, db, to, amount, reason, round_number=None):
        raise TransferFailure(f"cannot pay {amount} to {to}")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture
def game(db):
    """Round 0 started at T0; start price 1000, +1% per key, 30% dividends."""
    RoundManager.init_game(db, now=T0)
    state = RoundManager.get_state(db)
    state.start_key_price = 1000
    state.cur_key_price = 1000
    state.price_increasing_percent = 1
    state.dividends_percent = 30
    RoundManager.get_round(db, 0).dividends_percent = 30
    db.commit()
    return state


@pytest.fixture
def transfer():
    return RecordingTransfer()


@pytest.fixture
def failing_transfer():
    return FailingTransfer()
