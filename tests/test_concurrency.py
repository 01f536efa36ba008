import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from conftest import ALICE, CUSTODY, OWNER, FixedOutcome

from dicebet import models
from dicebet.config import MIN_BET, UNIT
from dicebet.database import Base, build_engine
from dicebet.engine import place_bet, resolve_game
from dicebet.errors import DiceBetError, GameNotFound, InsufficientBalance
from dicebet.house import ensure_contract_state, fund
from dicebet.ledger import SqlLedger
from dicebet.queries import get_game, get_game_counter, get_house_balance, get_player_stats


def _factory(bind):
    Base.metadata.create_all(bind=bind)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=bind)
    db = factory()
    try:
        ensure_contract_state(db, owner=OWNER, custody_account=CUSTODY)
        ledger = SqlLedger(db)
        ledger.open_account(OWNER, 1000 * UNIT)
        ledger.open_account(ALICE, 500 * UNIT)
        db.commit()
        fund(db, OWNER, 100 * UNIT)
    finally:
        db.close()
    return factory


@pytest.fixture
def plain_factory(tmp_path):
    """File database with pysqlite's default deferred transactions."""
    bind = create_engine(
        f"sqlite:///{(tmp_path / 'plain.db').as_posix()}",
        connect_args={"check_same_thread": False},
        future=True,
    )
    yield _factory(bind)
    bind.dispose()


@pytest.fixture
def served_factory(tmp_path):
    """File database configured the way the service builds its engine."""
    bind = build_engine(f"sqlite:///{(tmp_path / 'served.db').as_posix()}")
    yield _factory(bind)
    bind.dispose()


def _open_game(factory, prediction=3, stake=1_000_000):
    db = factory()
    try:
        return place_bet(db, ALICE, prediction, stake)
    finally:
        db.close()


def _run(factory, action):
    db = factory()
    try:
        return action(db)
    except DiceBetError as exc:
        return exc
    finally:
        db.close()


class ResolvesElsewhereFirst:
    """Settles the same game from a second session while the first is mid-flight."""

    name = "interleaved"

    def __init__(self, other_db):
        self.other_db = other_db
        self.inner_result = None

    def outcome(self, game_id):
        self.inner_result = resolve_game(self.other_db, game_id, randomness=FixedOutcome(3))
        return 3, 0


class SlowOutcome(FixedOutcome):
    def outcome(self, game_id):
        time.sleep(0.05)
        return super().outcome(game_id)


def _assert_paid_once(factory, game_id):
    db = factory()
    try:
        events = db.query(models.EventLog).filter(models.EventLog.event == "game-resolved").count()
        assert events == 1
        assert get_house_balance(db) == 180_000
        assert get_player_stats(db, ALICE).total_won == 5_820_000
        assert SqlLedger(db).balance_of(ALICE) == 500 * UNIT - 1_000_000 + 5_820_000
        game = get_game(db, game_id)
        assert (game.outcome, game.payout, game.resolved) == (3, 5_820_000, True)
    finally:
        db.close()


def test_interleaved_resolution_settles_once(plain_factory):
    game_id = _open_game(plain_factory)
    first, second = plain_factory(), plain_factory()
    try:
        source = ResolvesElsewhereFirst(second)
        with pytest.raises(GameNotFound):
            resolve_game(first, game_id, randomness=source)
        assert source.inner_result == (3, True, 5_820_000)
    finally:
        first.close()
        second.close()

    _assert_paid_once(plain_factory, game_id)


def test_parallel_resolution_settles_once(served_factory):
    game_id = _open_game(served_factory)
    start = threading.Barrier(2)

    def resolver(_):
        start.wait()
        return _run(served_factory, lambda db: resolve_game(db, game_id, randomness=SlowOutcome(3)))

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(resolver, range(2)))

    assert sorted(type(r).__name__ for r in results) == ["GameNotFound", "tuple"]
    assert (3, True, 5_820_000) in results
    _assert_paid_once(served_factory, game_id)


def test_parallel_bets_get_distinct_ids(served_factory):
    workers = 8
    start = threading.Barrier(workers)

    def bettor(_):
        start.wait()
        return _run(served_factory, lambda db: place_bet(db, ALICE, 1, MIN_BET))

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(bettor, range(workers)))

    assert sorted(results) == list(range(1, workers + 1))
    db = served_factory()
    try:
        assert get_game_counter(db) == workers
        stats = get_player_stats(db, ALICE)
        assert stats.games_played == workers
        assert stats.total_wagered == workers * MIN_BET
        assert SqlLedger(db).balance_of(ALICE) == 500 * UNIT - workers * MIN_BET
    finally:
        db.close()


def test_parallel_bets_cannot_overspend(served_factory):
    db = served_factory()
    try:
        SqlLedger(db).open_account("pauper", MIN_BET)
        db.commit()
    finally:
        db.close()
    workers = 4
    start = threading.Barrier(workers)

    def bettor(_):
        start.wait()
        return _run(served_factory, lambda db: place_bet(db, "pauper", 2, MIN_BET))

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(bettor, range(workers)))

    assert [r for r in results if isinstance(r, int)] == [1]
    assert sum(isinstance(r, InsufficientBalance) for r in results) == workers - 1
    db = served_factory()
    try:
        assert SqlLedger(db).balance_of("pauper") == 0
        assert get_game_counter(db) == 1
    finally:
        db.close()
