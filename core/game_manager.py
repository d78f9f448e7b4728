"""
Game Manager：管理 Game 的完整生命週期

職責：
1. 建立 Game（含 creator player）
2. 玩家加入、記錄存款（全員存款後自動開始）
3. 累加收益、結束遊戲並指定贏家
4. 查詢 Game 資訊與結算

原則：
- Game / Player 只能經由這裡寫入，total_pot 與 status 才會和玩家狀態一致
- 所有修改先鎖 Game row，再檢查、再寫入
- 所有狀態變更經過 GameStateMachine
- 付款是否真的到帳由外部確認，這裡只接受「已確認」的事實
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Dict, Any
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from models import Game, Player, GameEvent, GameStatus, AMOUNT_SCALE
from core.state_machine import GameStateMachine
from core.locks import with_game_lock
from core.exceptions import (
    ValidationError,
    GameNotFound,
    PlayerNotInGame,
    InvalidStateError,
    AlreadyJoinedError
)
from services.naming_service import generate_invite_code, normalize_invite_code
from services.payout_service import (
    calculate_pot_total,
    all_players_deposited,
    calculate_payouts
)
from services.history_service import get_game_history
from database import transactional, store_read, settings

logger = logging.getLogger(__name__)

AMOUNT_QUANTUM = Decimal(1).scaleb(-AMOUNT_SCALE)
AMOUNT_LIMIT = Decimal(10) ** 12


def utcnow() -> datetime:
    """目前時間（naive UTC，與資料庫欄位一致）"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _to_decimal(value, field: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number, got {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be finite, got {value!r}")
    # Numeric(18, 6)：最多 6 位小數、12 位整數，超出會被資料庫靜默截斷
    if abs(amount) >= AMOUNT_LIMIT:
        raise ValidationError(f"{field} is too large, got {value!r}")
    if amount.as_tuple().exponent < -AMOUNT_SCALE and amount != amount.quantize(AMOUNT_QUANTUM):
        raise ValidationError(f"{field} allows at most {AMOUNT_SCALE} decimal places, got {value!r}")
    return amount


def _record_event(db: Session, game_id: str, event_type: str, data: Dict[str, Any], now: datetime) -> None:
    db.add(GameEvent(game_id=game_id, event_type=event_type, data=data, created_at=now))


class GameManager:
    """Game 生命週期管理器"""

    @staticmethod
    @transactional
    def create_game(
        db: Session,
        name: str,
        duration_days: int,
        deposit_amount,
        creator_id: int
    ) -> Game:
        """
        建立新遊戲（含 creator 玩家）

        流程：
        1. 驗證輸入
        2. 生成唯一的邀請碼（即 Game id）
        3. 建立 Game（pending）與 creator Player（尚未存款）
        4. 記錄事件

        異常：
            ValidationError: 名稱空白、天數或金額不是正數
        """
        # 1. 驗證輸入
        name = (name or "").strip()
        if not name:
            raise ValidationError("Game name must not be empty")
        if isinstance(duration_days, bool) or not isinstance(duration_days, int):
            raise ValidationError(f"duration_days must be an integer, got {duration_days!r}")
        if duration_days <= 0:
            raise ValidationError(f"duration_days must be positive, got {duration_days}")
        deposit_amount = _to_decimal(deposit_amount, "deposit_amount")
        if deposit_amount <= 0:
            raise ValidationError(f"deposit_amount must be positive, got {deposit_amount}")

        # 2. 生成唯一的邀請碼
        code = generate_invite_code(settings.invite_code_length)
        while db.query(Game.id).filter(Game.id == code).first():
            code = generate_invite_code(settings.invite_code_length)
            logger.warning(f"Invite code collision detected, regenerating: {code}")

        # 3. 建立 Game 與 creator
        now = utcnow()
        game = Game(
            id=code,
            name=name,
            duration_days=duration_days,
            deposit_amount=deposit_amount,
            creator_id=creator_id,
            status=GameStatus.PENDING,
            created_at=now,
            starts_at=None,
            ends_at=None,
            total_pot=Decimal(0),
            current_yield=Decimal(0),
            winner_id=None
        )
        game.players.append(Player(
            player_id=creator_id,
            deposit_amount=deposit_amount,
            has_deposited=False,
            joined_at=now
        ))
        db.add(game)
        db.flush()

        # 4. 記錄事件
        _record_event(db, game.id, "GAME_CREATED", {
            "name": name,
            "creator_id": creator_id,
            "duration_days": duration_days,
            "deposit_amount": str(deposit_amount),
        }, now)

        logger.info(f"Created game {game.id} ({name!r}) by creator {creator_id}")
        return game

    @staticmethod
    @transactional
    def join_game(db: Session, game_id: str, player_id: int) -> Game:
        """
        加入遊戲（透過邀請碼）

        前置條件：
        1. Game 必須存在
        2. Game 狀態必須是 pending
        3. 玩家尚未加入過

        注意：
            加入不會觸發開始判定，只有存款才會

        異常：
            GameNotFound / InvalidStateError / AlreadyJoinedError
        """
        code = normalize_invite_code(game_id)

        # 1. 取得並鎖定 Game
        game = with_game_lock(code, db).first()
        if not game:
            raise GameNotFound(code)

        # 2. 檢查狀態
        GameStateMachine.ensure_status(game, GameStatus.PENDING, "join")

        # 3. 檢查是否重複加入
        if game.find_player(player_id) is not None:
            raise AlreadyJoinedError(code, player_id)

        # 4. 建立玩家（金額在加入當下複製，之後固定）
        now = utcnow()
        game.players.append(Player(
            player_id=player_id,
            deposit_amount=game.deposit_amount,
            has_deposited=False,
            joined_at=now
        ))
        try:
            db.flush()
        except IntegrityError as e:
            # 沒有行級鎖的資料庫上，同時加入會撞到 unique constraint
            raise AlreadyJoinedError(code, player_id) from e

        _record_event(db, game.id, "PLAYER_JOINED", {"player_id": player_id}, now)

        logger.info(
            f"Player {player_id} joined game {game.id} "
            f"({len(game.players)} players, deposit {game.deposit_amount})"
        )
        return game

    @staticmethod
    @transactional
    def record_deposit(
        db: Session,
        game_id: str,
        player_id: int,
        wallet_reference: str,
        wallet_address: Optional[str] = None
    ) -> Game:
        """
        記錄一筆已由外部確認的存款（冪等）

        流程：
        1. 鎖定 Game，確認玩家存在
        2. 已存過款 → 直接返回（不重複計算 total_pot）
        3. 標記存款、重算 total_pot
        4. 全員都已存款 → pending 轉 active（同一個 transaction）

        異常：
            GameNotFound / PlayerNotInGame: 遊戲或玩家不存在
            InvalidStateError: 遊戲不是 pending
            ValidationError: 沒有付款參考編號
        """
        game_id = normalize_invite_code(game_id)

        # 1. 取得並鎖定 Game
        game = with_game_lock(game_id, db).first()
        if not game:
            raise GameNotFound(game_id)

        player = game.find_player(player_id)
        if player is None:
            raise PlayerNotInGame(game_id, player_id)

        if game.status == GameStatus.COMPLETED:
            raise InvalidStateError(f"Game {game_id} is completed")

        # 2. 冪等：重複存款不做任何事
        if player.has_deposited:
            logger.warning(
                f"Duplicate deposit for player {player_id} in game {game_id} ignored "
                f"(existing reference {player.wallet_reference}, new {wallet_reference})"
            )
            return game

        GameStateMachine.ensure_status(game, GameStatus.PENDING, "deposit into")

        reference = (wallet_reference or "").strip()
        if not reference:
            raise ValidationError("wallet_reference must not be empty")

        # 3. 標記存款並重算獎池
        now = utcnow()
        player.has_deposited = True
        player.wallet_reference = reference
        player.wallet_address = wallet_address
        player.deposited_at = now
        game.total_pot = calculate_pot_total(game.players)

        _record_event(db, game.id, "DEPOSIT_RECORDED", {
            "player_id": player_id,
            "amount": str(player.deposit_amount),
            "wallet_reference": reference,
        }, now)

        logger.info(
            f"Deposit recorded for player {player_id} in game {game_id} "
            f"(ref={reference}, pot={game.total_pot})"
        )

        # 4. 每次存款後都重新判斷是否開始
        GameManager._maybe_activate(db, game, now)
        return game

    @staticmethod
    def _maybe_activate(db: Session, game: Game, now: datetime) -> bool:
        """全員都已存款時，pending 轉 active，並設定 starts_at / ends_at"""
        if game.status != GameStatus.PENDING or not all_players_deposited(game.players):
            return False

        game.starts_at = now
        game.ends_at = now + timedelta(days=game.duration_days)
        GameStateMachine.transition(game, GameStatus.ACTIVE, db, now)

        logger.info(
            f"Game {game.id} activated with {len(game.players)} players, "
            f"pot {game.total_pot}, ends at {game.ends_at.isoformat()}"
        )
        return True

    @staticmethod
    @transactional
    def apply_yield(db: Session, game_id: str, amount) -> Game:
        """
        累加外部提供的收益（只在 active 時）

        異常：
            GameNotFound / InvalidStateError / ValidationError（負數）
        """
        game_id = normalize_invite_code(game_id)
        game = with_game_lock(game_id, db).first()
        if not game:
            raise GameNotFound(game_id)

        GameStateMachine.ensure_status(game, GameStatus.ACTIVE, "apply yield to")

        amount = _to_decimal(amount, "amount")
        if amount < 0:
            raise ValidationError(f"Yield amount must not be negative, got {amount}")

        game.current_yield = Decimal(game.current_yield or 0) + amount
        _record_event(db, game.id, "YIELD_APPLIED", {
            "amount": str(amount),
            "current_yield": str(game.current_yield),
        }, utcnow())

        logger.info(f"Applied yield {amount} to game {game_id} (total {game.current_yield})")
        return game

    @staticmethod
    @transactional
    def complete_game(db: Session, game_id: str, winner_id: int, override: bool = False) -> Game:
        """
        結束遊戲（active → completed）並指定贏家

        前置條件：
        1. Game 狀態必須是 active
        2. 已到 ends_at（除非管理員 override）
        3. 贏家必須是這場遊戲的玩家

        異常：
            GameNotFound / InvalidStateError / ValidationError / PlayerNotInGame
        """
        game_id = normalize_invite_code(game_id)
        game = with_game_lock(game_id, db).first()
        if not game:
            raise GameNotFound(game_id)

        GameStateMachine.ensure_status(game, GameStatus.ACTIVE, "complete")

        now = utcnow()
        if now < game.ends_at and not override:
            raise ValidationError(
                f"Game {game_id} ends at {game.ends_at.isoformat()}, cannot complete yet"
            )

        if game.find_player(winner_id) is None:
            raise PlayerNotInGame(game_id, winner_id)

        game.winner_id = winner_id
        GameStateMachine.transition(game, GameStatus.COMPLETED, db, now)
        _record_event(db, game.id, "GAME_COMPLETED", {
            "winner_id": winner_id,
            "override": override,
            "total_pot": str(game.total_pot),
            "current_yield": str(game.current_yield),
        }, now)

        if override and now < game.ends_at:
            logger.warning(f"Game {game_id} completed early by administrative override")
        logger.info(f"Game {game_id} completed, winner {winner_id}")
        return game

    @staticmethod
    @store_read
    def get_game(db: Session, game_id: str) -> Game:
        """
        透過 id（邀請碼）取得 Game

        異常：
            GameNotFound: Game 不存在
        """
        code = normalize_invite_code(game_id)
        game = db.query(Game).filter(Game.id == code).populate_existing().first()
        if not game:
            raise GameNotFound(code)
        return game

    @staticmethod
    @store_read
    def list_games_for_player(db: Session, player_id: int) -> List[Game]:
        """玩家參加的所有遊戲，最新的在前"""
        return (
            db.query(Game)
            .join(Player, Player.game_id == Game.id)
            .filter(Player.player_id == player_id)
            .populate_existing()
            .order_by(Game.created_at.desc(), Game.id)
            .all()
        )

    @staticmethod
    @store_read
    def list_games(db: Session, status: Optional[GameStatus] = None) -> List[Game]:
        """所有遊戲（管理用），可依狀態篩選"""
        query = db.query(Game).populate_existing()
        if status is not None:
            query = query.filter(Game.status == status)
        return query.order_by(Game.created_at.desc(), Game.id).all()

    @staticmethod
    @store_read
    def get_payouts(db: Session, game_id: str) -> List[Dict[str, Any]]:
        """
        已結束遊戲的結算

        異常：
            GameNotFound / InvalidStateError（尚未結束）
        """
        game_id = normalize_invite_code(game_id)
        game = db.query(Game).filter(Game.id == game_id).populate_existing().first()
        if not game:
            raise GameNotFound(game_id)
        GameStateMachine.ensure_status(game, GameStatus.COMPLETED, "settle")
        return calculate_payouts(game)

    @staticmethod
    @store_read
    def get_events(db: Session, game_id: str) -> List[Dict[str, Any]]:
        game_id = normalize_invite_code(game_id)
        if not db.query(Game.id).filter(Game.id == game_id).first():
            raise GameNotFound(game_id)
        return get_game_history(game_id, db)
