"""
Player API Endpoints

職責：
1. 玩家透過邀請碼加入遊戲
2. 記錄已確認的存款
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import PlayerJoin, DepositSubmit, GameResponse, GameJoinResponse
from core.game_manager import GameManager
from core.exceptions import FriendsNFundsException
from api.errors import to_http_exception

router = APIRouter(prefix="/api/games", tags=["players"])
logger = logging.getLogger(__name__)


@router.post("/{code}/join", response_model=GameJoinResponse)
def join_game(code: str, player_data: PlayerJoin, db: Session = Depends(get_db)):
    """
    加入遊戲（玩家 endpoint）

    前置條件：
    - 遊戲必須存在
    - 遊戲狀態必須是 pending（尚未開始）
    - 同一位玩家只能加入一次
    """
    try:
        game = GameManager.join_game(db, code, player_data.player_id)
        return GameJoinResponse(
            game=GameResponse.model_validate(game),
            message=f"Joined {game.name}! Deposit {game.deposit_amount.normalize():f} to start playing."
        )

    except FriendsNFundsException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to join game: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{game_id}/deposit", response_model=GameResponse)
def record_deposit(game_id: str, deposit_data: DepositSubmit, db: Session = Depends(get_db)):
    """
    記錄存款（冪等）

    呼叫者必須先自行確認付款（錢包交易或其他帳本），
    這裡只接受「玩家已付款，參考編號為 R」的事實。
    最後一位玩家存款時，遊戲會在同一個請求內轉為 active。
    """
    try:
        game = GameManager.record_deposit(
            db,
            game_id,
            deposit_data.player_id,
            deposit_data.wallet_reference,
            deposit_data.wallet_address
        )
        return GameResponse.model_validate(game)

    except FriendsNFundsException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to record deposit: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
