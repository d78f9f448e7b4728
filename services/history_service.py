"""
Game event history service.

Builds the ordered audit trail of a game so clients can show what
happened (joins, deposits, activation, yield, completion) without
reconstructing it themselves.
"""
from typing import List, Dict, Any

from sqlalchemy.orm import Session

from models import GameEvent


def get_game_history(game_id: str, db: Session) -> List[Dict[str, Any]]:
    """Return the game's events in the order they were recorded."""
    events = (
        db.query(GameEvent)
        .filter(GameEvent.game_id == game_id)
        .order_by(GameEvent.id)
        .all()
    )

    return [
        {
            "event_type": event.event_type,
            "data": event.data or {},
            "created_at": event.created_at,
        }
        for event in events
    ]
