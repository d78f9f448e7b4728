"""
Game 狀態機

pending → active → completed，completed 為終態。
所有 status 變更都必須經過 GameStateMachine.transition。
"""
from datetime import datetime
from sqlalchemy.orm import Session
import logging

from models import Game, GameEvent, GameStatus
from core.exceptions import InvalidStateError

logger = logging.getLogger(__name__)


class GameStateMachine:
    TRANSITIONS = {
        GameStatus.PENDING: {GameStatus.ACTIVE},
        GameStatus.ACTIVE: {GameStatus.COMPLETED},
        GameStatus.COMPLETED: set(),
    }

    @classmethod
    def can_transition(cls, current: GameStatus, target: GameStatus) -> bool:
        return target in cls.TRANSITIONS.get(current, set())

    @classmethod
    def ensure_status(cls, game: Game, expected: GameStatus, action: str) -> None:
        """確認遊戲處於 expected 狀態，否則拋 InvalidStateError"""
        if game.status != expected:
            raise InvalidStateError(
                f"Cannot {action} game {game.id}: status is {game.status.value}, "
                f"expected {expected.value}"
            )

    @classmethod
    def transition(cls, game: Game, target: GameStatus, db: Session, now: datetime) -> Game:
        """
        轉換遊戲狀態並記錄 GAME_STATE_CHANGED 事件

        異常：
            InvalidStateError: 非法的狀態轉換
        """
        current = game.status
        if not cls.can_transition(current, target):
            raise InvalidStateError(
                f"Game {game.id} cannot move from {current.value} to {target.value}"
            )

        game.status = target
        db.add(GameEvent(
            game_id=game.id,
            event_type="GAME_STATE_CHANGED",
            data={"from": current.value, "to": target.value},
            created_at=now
        ))
        logger.info(f"Game {game.id} status {current.value} -> {target.value}")
        return game
