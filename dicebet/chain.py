"""Block height, hashing and the outcome derivation built on them.

Outcomes are reproducible by anyone who knows the game id and the height at
which the game was resolved. Whoever controls when resolution happens can
therefore pick among upcoming heights; the ``RandomnessSource`` seam exists so
a different source can be wired in without touching the engine.
"""
import hashlib
from datetime import datetime
from typing import Protocol

from sqlalchemy.orm import Session

from . import models
from .config import DIE_FACES

CHAIN_ROW_ID = 1


class Chain:
    def __init__(self, db: Session):
        self.db = db

    def _state(self) -> models.ChainState:
        state = self.db.get(models.ChainState, CHAIN_ROW_ID)
        if state is None:
            state = models.ChainState(id=CHAIN_ROW_ID, height=0)
            self.db.add(state)
            self.db.flush()
        return state

    def current_height(self) -> int:
        return self._state().height

    def mine(self, blocks: int = 1) -> int:
        if blocks < 1:
            raise ValueError("blocks must be at least 1")
        state = self._state()
        state.height += blocks
        state.updated_at = datetime.utcnow()
        self.db.flush()
        return state.height

    @staticmethod
    def hash(data: bytes) -> bytes:
        return hashlib.sha256(data).digest()


def outcome_seed(game_id: int, height: int) -> int:
    digest = Chain.hash(game_id.to_bytes(16, "big") + height.to_bytes(16, "big"))
    return game_id + height + int.from_bytes(digest[:16], "big")


def derive_outcome(game_id: int, height: int) -> int:
    return outcome_seed(game_id, height) % DIE_FACES + 1


class RandomnessSource(Protocol):
    name: str

    def outcome(self, game_id: int) -> tuple[int, int]:
        """Return ``(outcome, height)`` for the game at the current height."""
        ...


class PublicDeterministicSource:
    name = "public-deterministic"

    def __init__(self, chain: Chain):
        self.chain = chain

    def outcome(self, game_id: int) -> tuple[int, int]:
        height = self.chain.current_height()
        return derive_outcome(game_id, height), height
