"""
Game API Endpoints

職責：
1. 建立遊戲、查詢遊戲
2. 累加收益、結束遊戲
3. 結算與事件紀錄
"""
from fastapi import APIRouter, Depends, HTTPException, Header, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import hmac
import logging

from database import get_db, settings
from models import GameStatus
from schemas import (
    GameCreate,
    GameResponse,
    YieldSubmit,
    GameComplete,
    PayoutResponse,
    GameEventResponse
)
from core.game_manager import GameManager
from core.exceptions import FriendsNFundsException
from api.errors import to_http_exception

router = APIRouter(prefix="/api/games", tags=["games"])
logger = logging.getLogger(__name__)


@router.post("", response_model=GameResponse, status_code=201)
def create_game(game_data: GameCreate, db: Session = Depends(get_db)):
    """
    建立遊戲（creator 自動成為第一位玩家，尚未存款）

    返回的 id 就是邀請碼
    """
    try:
        game = GameManager.create_game(
            db,
            game_data.name,
            game_data.duration_days,
            game_data.deposit_amount,
            game_data.creator_id
        )
        return GameResponse.model_validate(game)

    except FriendsNFundsException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to create game: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("", response_model=List[GameResponse])
def list_games(
    player_id: Optional[int] = Query(None),
    status: Optional[GameStatus] = Query(None),
    db: Session = Depends(get_db)
):
    """
    列出遊戲

    - 有 player_id：該玩家參加的遊戲（最新在前）
    - 否則：所有遊戲，可用 status 篩選
    """
    try:
        if player_id is not None:
            games = GameManager.list_games_for_player(db, player_id)
            if status is not None:
                games = [g for g in games if g.status == status]
        else:
            games = GameManager.list_games(db, status)
        return [GameResponse.model_validate(g) for g in games]

    except FriendsNFundsException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to list games: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{game_id}", response_model=GameResponse)
def get_game(game_id: str, db: Session = Depends(get_db)):
    try:
        return GameResponse.model_validate(GameManager.get_game(db, game_id))

    except FriendsNFundsException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to get game {game_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{game_id}/yield", response_model=GameResponse)
def apply_yield(game_id: str, yield_data: YieldSubmit, db: Session = Depends(get_db)):
    """累加收益（由外部的收益來源呼叫，只在 active 時有效）"""
    try:
        game = GameManager.apply_yield(db, game_id, yield_data.amount)
        return GameResponse.model_validate(game)

    except FriendsNFundsException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to apply yield to game {game_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{game_id}/complete", response_model=GameResponse)
def complete_game(
    game_id: str,
    complete_data: GameComplete,
    x_admin_token: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    """
    結束遊戲並指定贏家

    前置條件：
    - 遊戲必須是 active
    - 必須已到 ends_at；override=true 時需要正確的 X-Admin-Token
    """
    if complete_data.override:
        if not settings.admin_token or not x_admin_token or not hmac.compare_digest(
            x_admin_token.encode(), settings.admin_token.encode()
        ):
            logger.warning(f"Rejected override completion for game {game_id}")
            raise HTTPException(status_code=403, detail="Override requires a valid admin token")

    try:
        game = GameManager.complete_game(
            db,
            game_id,
            complete_data.winner_id,
            override=complete_data.override
        )
        return GameResponse.model_validate(game)

    except FriendsNFundsException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to complete game {game_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{game_id}/payouts", response_model=List[PayoutResponse])
def get_payouts(game_id: str, db: Session = Depends(get_db)):
    try:
        return [PayoutResponse(**p) for p in GameManager.get_payouts(db, game_id)]

    except FriendsNFundsException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to settle game {game_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{game_id}/events", response_model=List[GameEventResponse])
def get_events(game_id: str, db: Session = Depends(get_db)):
    try:
        return [GameEventResponse(**e) for e in GameManager.get_events(db, game_id)]

    except FriendsNFundsException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to get events for game {game_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
