"""Bet admission and settlement.

Each public function validates every precondition before touching state and
commits exactly once. Any failure after the first write rolls the session
back, so callers observe either the whole effect or none of it.
"""
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import Session

from . import models
from .chain import Chain, PublicDeterministicSource, RandomnessSource
from .config import (
    BPS_DENOMINATOR,
    DIE_FACES,
    HOUSE_EDGE_BPS,
    MAX_BET,
    MIN_BET,
    PAYOUT_MULTIPLIER,
)
from .errors import GameNotFound, InsufficientBalance, InvalidBetAmount, InvalidPrediction
from .events import BET_PLACED, GAME_RESOLVED, emit_event
from .house import credit_house, get_contract_state, next_game_id
from .ledger import LedgerAdapter, SqlLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settlement:
    won: bool
    payout: int
    fee: int
    house_credit: int


def compute_settlement(stake: int, prediction: int, outcome: int) -> Settlement:
    """Split a resolved stake between player and house.

    A correct call pays ``stake * 6`` less the house edge; the fee is floored.
    A miss forfeits the whole stake to the house.
    """
    if outcome != prediction:
        return Settlement(won=False, payout=0, fee=0, house_credit=stake)
    gross = stake * PAYOUT_MULTIPLIER
    fee = gross * HOUSE_EDGE_BPS // BPS_DENOMINATOR
    return Settlement(won=True, payout=gross - fee, fee=fee, house_credit=fee)


def validate_bet(prediction: int, stake: int) -> None:
    if not 1 <= prediction <= DIE_FACES:
        raise InvalidPrediction()
    if stake < MIN_BET or stake > MAX_BET:
        raise InvalidBetAmount(f"Stake must be between {MIN_BET} and {MAX_BET}.")


def _bump_stats(db: Session, player: str, **deltas: int) -> None:
    """Add ``deltas`` to the player's counters, creating the row on first use."""
    columns = {name: getattr(models.PlayerStats, name) + amount for name, amount in deltas.items()}
    result = db.execute(
        update(models.PlayerStats)
        .execution_options(synchronize_session=False)
        .where(models.PlayerStats.player == player)
        .values(updated_at=datetime.utcnow(), **columns)
    )
    if result.rowcount == 0:
        counters = {"games_played": 0, "total_wagered": 0, "total_won": 0, "total_lost": 0}
        counters.update(deltas)
        db.add(models.PlayerStats(player=player, **counters))
        db.flush()


def place_bet(
    db: Session,
    caller: str,
    prediction: int,
    stake: int,
    ledger: LedgerAdapter | None = None,
    chain: Chain | None = None,
) -> int:
    """Escrow ``stake`` from ``caller`` and open a game. Returns the new game id."""
    ledger = ledger or SqlLedger(db)
    chain = chain or Chain(db)
    try:
        validate_bet(prediction, stake)
        state = get_contract_state(db)
        if not ledger.transfer(stake, caller, state.custody_account, memo="bet:escrow"):
            raise InsufficientBalance()

        height = chain.current_height()
        game_id = next_game_id(db)
        db.add(
            models.Game(
                id=game_id,
                player=caller,
                stake=stake,
                prediction=prediction,
                outcome=None,
                payout=0,
                block_height=height,
                resolved=False,
            )
        )
        _bump_stats(db, caller, games_played=1, total_wagered=stake)

        emit_event(
            db,
            BET_PLACED,
            {
                "game-id": game_id,
                "player": caller,
                "prediction": prediction,
                "stake": stake,
                "height": height,
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.warning("bet by %s rejected (prediction=%s, stake=%s)", caller, prediction, stake)
        raise
    logger.info("game %s opened for %s: %s on %s", game_id, caller, stake, prediction)
    return game_id


def resolve_game(
    db: Session,
    game_id: int,
    randomness: RandomnessSource | None = None,
    ledger: LedgerAdapter | None = None,
) -> tuple[int, bool, int]:
    """Derive the outcome for an open game and settle it.

    Returns ``(outcome, won, payout)``. A game resolves at most once; asking
    again raises ``GameNotFound`` and leaves the stored result as it was.
    The ``resolved`` flip is a conditional UPDATE issued before any funds
    move, so of two overlapping calls only one can settle.
    """
    ledger = ledger or SqlLedger(db)
    randomness = randomness or PublicDeterministicSource(Chain(db))
    try:
        game = db.get(models.Game, game_id)
        if game is None:
            raise GameNotFound()
        if game.resolved:
            raise GameNotFound(f"Game {game_id} is already resolved.")
        player, stake, prediction = game.player, game.stake, game.prediction

        state = get_contract_state(db)
        outcome, height = randomness.outcome(game_id)
        settlement = compute_settlement(stake, prediction, outcome)
        if settlement.won and ledger.balance_of(state.custody_account) < settlement.payout:
            raise InsufficientBalance("Contract custody cannot cover the payout.")

        claimed = db.execute(
            update(models.Game)
            .execution_options(synchronize_session=False)
            .where(models.Game.id == game_id, models.Game.resolved.is_(False))
            .values(
                outcome=outcome,
                payout=settlement.payout,
                resolved=True,
                resolved_height=height,
                resolved_at=datetime.utcnow(),
            )
        )
        if claimed.rowcount != 1:
            raise GameNotFound(f"Game {game_id} is already resolved.")

        if settlement.won and not ledger.transfer(
            settlement.payout, state.custody_account, player, memo=f"game:{game_id}:payout"
        ):
            raise InsufficientBalance("Contract custody cannot cover the payout.")

        credit_house(db, settlement.house_credit)
        if settlement.won:
            _bump_stats(db, player, total_won=settlement.payout)
        else:
            _bump_stats(db, player, total_lost=stake)

        emit_event(
            db,
            GAME_RESOLVED,
            {
                "game-id": game_id,
                "player": player,
                "prediction": prediction,
                "outcome": outcome,
                "won": settlement.won,
                "payout": settlement.payout,
                "fee": settlement.fee,
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.warning("resolution of game %s rejected", game_id)
        raise
    logger.info(
        "game %s resolved: outcome=%s won=%s payout=%s",
        game_id,
        outcome,
        settlement.won,
        settlement.payout,
    )
    return outcome, settlement.won, settlement.payout
