import json
import logging

from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)

BET_PLACED = "bet-placed"
GAME_RESOLVED = "game-resolved"


def emit_event(db: Session, event: str, payload: dict) -> models.EventLog:
    """Record an event in the current transaction; it commits with the state change."""
    body = {"event": event, **payload}
    log = models.EventLog(
        event=event,
        game_id=payload.get("game-id"),
        player=payload.get("player"),
        payload=json.dumps(body, ensure_ascii=False),
    )
    db.add(log)
    logger.info("%s %s", event, body)
    return log


def list_events(
    db: Session, event: str | None = None, game_id: int | None = None, limit: int = 100
) -> list[dict]:
    query = db.query(models.EventLog)
    if event:
        query = query.filter(models.EventLog.event == event)
    if game_id is not None:
        query = query.filter(models.EventLog.game_id == game_id)
    rows = query.order_by(models.EventLog.id.desc()).limit(limit).all()
    return [json.loads(row.payload) for row in rows]
