from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .config import DIE_FACES


class BetRequest(BaseModel):
    # Range checks happen in the engine so the error kinds stay uniform.
    prediction: int
    stake: int


class BetResponse(BaseModel):
    game_id: int


class ResolveResponse(BaseModel):
    game_id: int
    outcome: int = Field(ge=1, le=DIE_FACES)
    won: bool
    payout: int


class AmountRequest(BaseModel):
    # Zero is accepted and moves nothing.
    amount: int = Field(ge=0)


class WithdrawResponse(BaseModel):
    house_balance: int


class FundResponse(BaseModel):
    custody_balance: int


class GameItem(BaseModel):
    id: int
    player: str
    stake: int
    prediction: int
    outcome: Optional[int] = None
    payout: int
    block_height: int
    resolved: bool
    resolved_height: Optional[int] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PlayerStatsItem(BaseModel):
    player: str
    games_played: int
    total_wagered: int
    total_won: int
    total_lost: int

    model_config = ConfigDict(from_attributes=True)


class CounterResponse(BaseModel):
    game_counter: int


class HouseBalanceResponse(BaseModel):
    house_balance: int


class GameInfo(BaseModel):
    min_bet: int
    max_bet: int
    house_edge_bps: int
    bps_denominator: int
    payout_multiplier: int
    owner: str
    custody_account: str
    game_counter: int
    house_balance: int
    custody_balance: int
    block_height: int


class VerifyResponse(BaseModel):
    game_id: int
    resolved: bool
    verified: bool
    resolved_height: Optional[int] = None
    recorded_outcome: Optional[int] = None
    derived_outcome: Optional[int] = None


class BalanceResponse(BaseModel):
    account: str
    balance: int


class AccountCreate(BaseModel):
    account: str = Field(pattern=r"^[A-Za-z0-9._-]{1,64}$")
    initial_balance: int = Field(default=0, ge=0)


class AccountItem(BaseModel):
    account: str
    balance: int
    token: str


class MintRequest(BaseModel):
    amount: int = Field(gt=0)
    memo: Optional[str] = None


class TokenRequest(BaseModel):
    account: str = Field(pattern=r"^[A-Za-z0-9._-]{1,64}$")


class TokenResponse(BaseModel):
    account: str
    token: str


class MineRequest(BaseModel):
    blocks: int = Field(default=1, ge=1)


class ChainResponse(BaseModel):
    block_height: int


class TransferItem(BaseModel):
    id: int
    sender: Optional[str] = None
    recipient: str
    amount: int
    before_balance: int
    after_balance: int
    memo: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ErrorResponse(BaseModel):
    error: Literal[
        "OwnerOnly", "InsufficientBalance", "InvalidBetAmount", "GameNotFound", "InvalidPrediction"
    ]
    code: int
    detail: str


class EventList(BaseModel):
    events: List[dict]
