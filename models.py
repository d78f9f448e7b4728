"""
資料模型：Game、Player、GameEvent

金額一律使用 Numeric（Decimal），時間一律存 naive UTC
"""
import enum

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from database import Base

AMOUNT_SCALE = 6
AMOUNT = Numeric(18, AMOUNT_SCALE)


class GameStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


class Game(Base):
    __tablename__ = "games"

    # id 同時是分享給朋友的邀請碼
    id = Column(String(16), primary_key=True)
    name = Column(String(100), nullable=False)
    duration_days = Column(Integer, nullable=False)
    deposit_amount = Column(AMOUNT, nullable=False)
    creator_id = Column(BigInteger, nullable=False, index=True)
    status = Column(
        Enum(GameStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=GameStatus.PENDING
    )
    created_at = Column(DateTime, nullable=False)
    starts_at = Column(DateTime, nullable=True)
    ends_at = Column(DateTime, nullable=True)
    total_pot = Column(AMOUNT, nullable=False, default=0)
    current_yield = Column(AMOUNT, nullable=False, default=0)
    winner_id = Column(BigInteger, nullable=True)

    players = relationship(
        "Player",
        back_populates="game",
        order_by="Player.id",
        cascade="all, delete-orphan",
        lazy="selectin"
    )
    events = relationship(
        "GameEvent",
        back_populates="game",
        order_by="GameEvent.id",
        cascade="all, delete-orphan"
    )

    def find_player(self, player_id):
        for player in self.players:
            if player.player_id == player_id:
                return player
        return None


class Player(Base):
    __tablename__ = "game_players"
    __table_args__ = (
        UniqueConstraint("game_id", "player_id", name="uq_game_player"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(
        String(16),
        ForeignKey("games.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    player_id = Column(BigInteger, nullable=False, index=True)
    deposit_amount = Column(AMOUNT, nullable=False)
    has_deposited = Column(Boolean, nullable=False, default=False)
    wallet_reference = Column(String(128), nullable=True)
    wallet_address = Column(String(64), nullable=True)
    deposited_at = Column(DateTime, nullable=True)
    joined_at = Column(DateTime, nullable=False)

    game = relationship("Game", back_populates="players")


class GameEvent(Base):
    __tablename__ = "game_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(
        String(16),
        ForeignKey("games.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    event_type = Column(String(32), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False)

    game = relationship("Game", back_populates="events")
