import logging
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import engine as betting
from . import house, queries, schemas
from .auth import get_caller, require_admin, sign_token
from .chain import Chain, PublicDeterministicSource, RandomnessSource
from .database import Base, SessionLocal, engine, get_db
from .errors import DiceBetError
from .events import list_events
from .ledger import SqlLedger

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", level=logging.INFO
)
logger = logging.getLogger(__name__)


def get_randomness(db: Session = Depends(get_db)) -> RandomnessSource:
    return PublicDeterministicSource(Chain(db))


app = FastAPI(
    title="Dice Bet Settlement",
    description="Deterministic 1-of-6 wager settlement with a fixed house edge.",
)


@app.exception_handler(DiceBetError)
def dicebet_error_handler(request: Request, exc: DiceBetError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=schemas.ErrorResponse(
            error=exc.kind, code=exc.code, detail=exc.detail
        ).model_dump(),
    )


@app.on_event("startup")
def startup() -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        house.ensure_contract_state(db)
    finally:
        db.close()


@app.post("/api/bets", response_model=schemas.BetResponse)
def api_place_bet(
    payload: schemas.BetRequest,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db),
):
    game_id = betting.place_bet(db, caller, payload.prediction, payload.stake)
    return schemas.BetResponse(game_id=game_id)


@app.post("/api/games/{game_id}/resolve", response_model=schemas.ResolveResponse)
def api_resolve_game(
    game_id: int,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db),
    randomness: RandomnessSource = Depends(get_randomness),
):
    outcome, won, payout = betting.resolve_game(db, game_id, randomness=randomness)
    return schemas.ResolveResponse(game_id=game_id, outcome=outcome, won=won, payout=payout)


@app.post("/api/house/withdraw", response_model=schemas.WithdrawResponse)
def api_withdraw(
    payload: schemas.AmountRequest,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db),
):
    return schemas.WithdrawResponse(house_balance=house.withdraw(db, caller, payload.amount))


@app.post("/api/house/fund", response_model=schemas.FundResponse)
def api_fund(
    payload: schemas.AmountRequest,
    caller: str = Depends(get_caller),
    db: Session = Depends(get_db),
):
    return schemas.FundResponse(custody_balance=house.fund(db, caller, payload.amount))


@app.get("/api/games/{game_id}", response_model=schemas.GameItem)
def api_get_game(game_id: int, db: Session = Depends(get_db)):
    game = queries.get_game(db, game_id)
    if game is None:
        raise HTTPException(status_code=404, detail="Game not found.")
    return game


@app.get("/api/games/{game_id}/verify", response_model=schemas.VerifyResponse)
def api_verify_game(game_id: int, db: Session = Depends(get_db)):
    result = queries.verify_game(db, game_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Game not found.")
    return result


@app.get("/api/players/{player}/stats", response_model=schemas.PlayerStatsItem)
def api_player_stats(player: str, db: Session = Depends(get_db)):
    stats = queries.get_player_stats(db, player)
    if stats is None:
        raise HTTPException(status_code=404, detail="Player has no bets.")
    return stats


@app.get("/api/players/{player}/games", response_model=List[schemas.GameItem])
def api_player_games(player: str, limit: int = 50, db: Session = Depends(get_db)):
    return queries.list_player_games(db, player, limit=min(limit, 200))


@app.get("/api/game_counter", response_model=schemas.CounterResponse)
def api_game_counter(db: Session = Depends(get_db)):
    return schemas.CounterResponse(game_counter=queries.get_game_counter(db))


@app.get("/api/house/balance", response_model=schemas.HouseBalanceResponse)
def api_house_balance(db: Session = Depends(get_db)):
    return schemas.HouseBalanceResponse(house_balance=queries.get_house_balance(db))


@app.get("/api/game_info", response_model=schemas.GameInfo)
def api_game_info(db: Session = Depends(get_db)):
    return queries.get_game_info(db)


@app.get("/api/accounts/{account}/balance", response_model=schemas.BalanceResponse)
def api_account_balance(account: str, db: Session = Depends(get_db)):
    return schemas.BalanceResponse(account=account, balance=SqlLedger(db).balance_of(account))


@app.get("/api/events", response_model=schemas.EventList)
def api_events(
    event: str | None = None,
    game_id: int | None = None,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    return schemas.EventList(
        events=list_events(db, event=event, game_id=game_id, limit=min(limit, 500))
    )


@app.post("/api/admin/accounts", response_model=schemas.AccountItem)
def admin_open_account(
    payload: schemas.AccountCreate, db: Session = Depends(get_db), admin=Depends(require_admin)
):
    ledger = SqlLedger(db)
    ledger.open_account(payload.account, payload.initial_balance)
    db.commit()
    logger.info("opened account %s with %s", payload.account, payload.initial_balance)
    return schemas.AccountItem(
        account=payload.account,
        balance=ledger.balance_of(payload.account),
        token=sign_token(payload.account),
    )


@app.post("/api/admin/accounts/{account}/mint", response_model=schemas.BalanceResponse)
def admin_mint(
    account: str,
    payload: schemas.MintRequest,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    ledger = SqlLedger(db)
    ledger.credit(account, payload.amount, memo=payload.memo)
    db.commit()
    return schemas.BalanceResponse(account=account, balance=ledger.balance_of(account))


@app.get(
    "/api/admin/accounts/{account}/transfers", response_model=List[schemas.TransferItem]
)
def admin_account_transfers(
    account: str, limit: int = 100, db: Session = Depends(get_db), admin=Depends(require_admin)
):
    return SqlLedger(db).history(account, limit=min(limit, 500))


@app.post("/api/admin/tokens", response_model=schemas.TokenResponse)
def admin_issue_token(payload: schemas.TokenRequest, admin=Depends(require_admin)):
    return schemas.TokenResponse(account=payload.account, token=sign_token(payload.account))


@app.post("/api/chain/mine", response_model=schemas.ChainResponse)
def admin_mine(
    payload: schemas.MineRequest, db: Session = Depends(get_db), admin=Depends(require_admin)
):
    height = Chain(db).mine(payload.blocks)
    db.commit()
    return schemas.ChainResponse(block_height=height)


@app.get("/api/chain/height", response_model=schemas.ChainResponse)
def api_chain_height(db: Session = Depends(get_db)):
    return schemas.ChainResponse(block_height=Chain(db).current_height())
