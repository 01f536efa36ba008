from sqlalchemy.orm import Session

from . import models
from .chain import Chain, derive_outcome
from .config import BPS_DENOMINATOR, HOUSE_EDGE_BPS, MAX_BET, MIN_BET, PAYOUT_MULTIPLIER
from .house import game_counter, get_contract_state, house_balance
from .ledger import SqlLedger


def get_game(db: Session, game_id: int) -> models.Game | None:
    return db.get(models.Game, game_id)


def get_player_stats(db: Session, player: str) -> models.PlayerStats | None:
    return db.get(models.PlayerStats, player)


def get_game_counter(db: Session) -> int:
    return game_counter(db)


def get_house_balance(db: Session) -> int:
    return house_balance(db)


def get_game_info(db: Session) -> dict:
    state = get_contract_state(db)
    return {
        "min_bet": MIN_BET,
        "max_bet": MAX_BET,
        "house_edge_bps": HOUSE_EDGE_BPS,
        "bps_denominator": BPS_DENOMINATOR,
        "payout_multiplier": PAYOUT_MULTIPLIER,
        "owner": state.owner,
        "custody_account": state.custody_account,
        "game_counter": game_counter(db),
        "house_balance": house_balance(db),
        "custody_balance": SqlLedger(db).balance_of(state.custody_account),
        "block_height": Chain(db).current_height(),
    }


def list_player_games(db: Session, player: str, limit: int = 50) -> list[models.Game]:
    return (
        db.query(models.Game)
        .filter(models.Game.player == player)
        .order_by(models.Game.id.desc())
        .limit(limit)
        .all()
    )


def verify_game(db: Session, game_id: int) -> dict | None:
    """Re-derive a resolved game's outcome from its recorded height."""
    game = get_game(db, game_id)
    if game is None:
        return None
    if not game.resolved:
        return {"game_id": game.id, "resolved": False, "verified": False}
    expected = derive_outcome(game.id, game.resolved_height)
    return {
        "game_id": game.id,
        "resolved": True,
        "resolved_height": game.resolved_height,
        "recorded_outcome": game.outcome,
        "derived_outcome": expected,
        "verified": expected == game.outcome,
    }
