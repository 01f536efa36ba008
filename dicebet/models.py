from datetime import datetime

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Integer, String

from .database import Base


class Game(Base):
    __tablename__ = "games"

    id = Column(Integer, primary_key=True, autoincrement=False)
    player = Column(String, index=True, nullable=False)
    stake = Column(BigInteger, nullable=False)
    prediction = Column(Integer, nullable=False)
    outcome = Column(Integer, nullable=True)
    payout = Column(BigInteger, default=0, nullable=False)
    block_height = Column(Integer, nullable=False)
    resolved = Column(Boolean, default=False, nullable=False)
    resolved_height = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    resolved_at = Column(DateTime, nullable=True)


class PlayerStats(Base):
    __tablename__ = "player_stats"

    player = Column(String, primary_key=True)
    games_played = Column(Integer, default=0, nullable=False)
    total_wagered = Column(BigInteger, default=0, nullable=False)
    total_won = Column(BigInteger, default=0, nullable=False)
    total_lost = Column(BigInteger, default=0, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class ContractState(Base):
    __tablename__ = "contract_state"

    id = Column(Integer, primary_key=True)
    owner = Column(String, nullable=False)
    custody_account = Column(String, nullable=False)
    game_counter = Column(Integer, default=0, nullable=False)
    house_balance = Column(BigInteger, default=0, nullable=False)
    deployed_height = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Account(Base):
    __tablename__ = "accounts"

    address = Column(String, primary_key=True)
    balance = Column(BigInteger, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Transfer(Base):
    __tablename__ = "transfers"

    id = Column(Integer, primary_key=True, index=True)
    sender = Column(String, index=True, nullable=True)  # None for mints
    recipient = Column(String, index=True, nullable=False)
    amount = Column(BigInteger, nullable=False)
    before_balance = Column(BigInteger, nullable=False)
    after_balance = Column(BigInteger, nullable=False)
    memo = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class ChainState(Base):
    __tablename__ = "chain_state"

    id = Column(Integer, primary_key=True)
    height = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True, index=True)
    event = Column(String, index=True, nullable=False)
    game_id = Column(Integer, index=True, nullable=True)
    player = Column(String, nullable=True)
    payload = Column(String, nullable=False)  # JSON string
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
