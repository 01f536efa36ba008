import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from . import models
from .chain import Chain
from .config import CONTRACT_ACCOUNT, OWNER_ACCOUNT
from .errors import InsufficientBalance, OwnerOnly
from .ledger import LedgerAdapter, SqlLedger

logger = logging.getLogger(__name__)

STATE_ROW_ID = 1


def ensure_contract_state(
    db: Session, owner: str = OWNER_ACCOUNT, custody_account: str = CONTRACT_ACCOUNT
) -> models.ContractState:
    """Deploy the contract row once; an existing deployment is left untouched."""
    state = db.get(models.ContractState, STATE_ROW_ID)
    if state is None:
        state = models.ContractState(
            id=STATE_ROW_ID,
            owner=owner,
            custody_account=custody_account,
            game_counter=0,
            house_balance=0,
            deployed_height=Chain(db).current_height(),
        )
        db.add(state)
        db.commit()
        db.refresh(state)
        logger.info("contract deployed by %s (custody %s)", owner, custody_account)
    return state


def get_contract_state(db: Session) -> models.ContractState:
    state = db.get(models.ContractState, STATE_ROW_ID)
    if state is None:
        raise RuntimeError("Contract has not been deployed; call ensure_contract_state first.")
    return state


def _counter(db: Session, column) -> int:
    return db.execute(select(column).where(models.ContractState.id == STATE_ROW_ID)).scalar_one()


def game_counter(db: Session) -> int:
    return _counter(db, models.ContractState.game_counter)


def house_balance(db: Session) -> int:
    return _counter(db, models.ContractState.house_balance)


def next_game_id(db: Session) -> int:
    db.execute(
        update(models.ContractState)
        .execution_options(synchronize_session=False)
        .where(models.ContractState.id == STATE_ROW_ID)
        .values(
            game_counter=models.ContractState.game_counter + 1, updated_at=datetime.utcnow()
        )
    )
    return game_counter(db)


def credit_house(db: Session, amount: int) -> None:
    db.execute(
        update(models.ContractState)
        .execution_options(synchronize_session=False)
        .where(models.ContractState.id == STATE_ROW_ID)
        .values(
            house_balance=models.ContractState.house_balance + amount,
            updated_at=datetime.utcnow(),
        )
    )


def _debit_house(db: Session, amount: int) -> bool:
    result = db.execute(
        update(models.ContractState)
        .execution_options(synchronize_session=False)
        .where(
            models.ContractState.id == STATE_ROW_ID,
            models.ContractState.house_balance >= amount,
        )
        .values(
            house_balance=models.ContractState.house_balance - amount,
            updated_at=datetime.utcnow(),
        )
    )
    return result.rowcount == 1


def require_owner(state: models.ContractState, caller: str) -> None:
    if caller != state.owner:
        raise OwnerOnly()


def withdraw(
    db: Session, caller: str, amount: int, ledger: LedgerAdapter | None = None
) -> int:
    """Pay house earnings out of custody to the owner. Returns the new house balance.

    Withdrawing zero succeeds without moving funds.
    """
    if amount < 0:
        raise ValueError("amount must not be negative")
    ledger = ledger or SqlLedger(db)
    state = get_contract_state(db)
    try:
        require_owner(state, caller)
        if amount > 0:
            if not _debit_house(db, amount):
                raise InsufficientBalance(
                    f"Requested {amount} exceeds house balance {house_balance(db)}."
                )
            if not ledger.transfer(amount, state.custody_account, state.owner, memo="house:withdraw"):
                raise InsufficientBalance("Contract custody cannot cover the withdrawal.")
        remaining = house_balance(db)
        db.commit()
    except Exception:
        db.rollback()
        logger.warning("withdraw of %s by %s rejected", amount, caller)
        raise
    logger.info("house withdrew %s, balance now %s", amount, remaining)
    return remaining


def fund(db: Session, caller: str, amount: int, ledger: LedgerAdapter | None = None) -> int:
    """Move owner funds into custody as payout liquidity.

    The house balance is not touched: funded value is not house earnings and
    cannot be withdrawn through ``withdraw``. Returns the custody balance.
    """
    if amount < 0:
        raise ValueError("amount must not be negative")
    ledger = ledger or SqlLedger(db)
    state = get_contract_state(db)
    try:
        require_owner(state, caller)
        if amount > 0 and not ledger.transfer(
            amount, caller, state.custody_account, memo="house:fund"
        ):
            raise InsufficientBalance("Owner balance cannot cover the funding.")
        custody = ledger.balance_of(state.custody_account)
        db.commit()
    except Exception:
        db.rollback()
        logger.warning("fund of %s by %s rejected", amount, caller)
        raise
    logger.info("house funded with %s, custody now %s", amount, custody)
    return custody
