import logging
from datetime import datetime
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)


class LedgerAdapter(Protocol):
    def transfer(self, amount: int, sender: str, recipient: str, memo: str | None = None) -> bool:
        ...

    def balance_of(self, account: str) -> int:
        ...


class SqlLedger:
    """Account balances kept in the caller's session.

    Writes are flushed but never committed here, so a transfer lands or
    disappears together with whatever else the session holds. Balances move
    through guarded UPDATE statements; a Python-side read is never written back.
    """

    def __init__(self, db: Session):
        self.db = db

    def _ensure(self, address: str) -> None:
        exists = self.db.execute(
            select(models.Account.address).where(models.Account.address == address)
        ).first()
        if exists is None:
            self.db.add(models.Account(address=address, balance=0))
            self.db.flush()

    def _add(self, address: str, amount: int) -> int:
        self.db.execute(
            update(models.Account)
            .execution_options(synchronize_session=False)
            .where(models.Account.address == address)
            .values(balance=models.Account.balance + amount, updated_at=datetime.utcnow())
        )
        return self.balance_of(address)

    def balance_of(self, account: str) -> int:
        balance = self.db.execute(
            select(models.Account.balance).where(models.Account.address == account)
        ).scalar()
        return balance or 0

    def open_account(self, address: str, initial_balance: int = 0) -> None:
        self._ensure(address)
        if initial_balance > 0:
            self.credit(address, initial_balance, memo="genesis")

    def credit(self, address: str, amount: int, memo: str | None = None) -> int:
        if amount <= 0:
            raise ValueError("Mint amount must be positive")
        self._ensure(address)
        after = self._add(address, amount)
        self.db.add(
            models.Transfer(
                sender=None,
                recipient=address,
                amount=amount,
                before_balance=after - amount,
                after_balance=after,
                memo=memo or "mint",
            )
        )
        self.db.flush()
        return after

    def transfer(self, amount: int, sender: str, recipient: str, memo: str | None = None) -> bool:
        if amount <= 0 or sender == recipient:
            return False
        debited = self.db.execute(
            update(models.Account)
            .execution_options(synchronize_session=False)
            .where(models.Account.address == sender, models.Account.balance >= amount)
            .values(balance=models.Account.balance - amount, updated_at=datetime.utcnow())
        )
        if debited.rowcount != 1:
            logger.debug("transfer of %s from %s refused: insufficient funds", amount, sender)
            return False
        self._ensure(recipient)
        self._add(recipient, amount)
        after = self.balance_of(sender)
        self.db.add(
            models.Transfer(
                sender=sender,
                recipient=recipient,
                amount=amount,
                before_balance=after + amount,
                after_balance=after,
                memo=memo,
            )
        )
        self.db.flush()
        return True

    def history(self, address: str, limit: int = 100) -> list[models.Transfer]:
        return (
            self.db.query(models.Transfer)
            .filter(
                (models.Transfer.sender == address) | (models.Transfer.recipient == address)
            )
            .order_by(models.Transfer.id.desc())
            .limit(limit)
            .all()
        )
