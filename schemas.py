"""
API 的請求與回應模式（pydantic）

金額在 JSON 中以數字輸出，時間以 ISO 8601 輸出
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from models import GameStatus


# ============ Requests ============

class GameCreate(BaseModel):
    name: str
    duration_days: int
    deposit_amount: Decimal
    creator_id: int


class PlayerJoin(BaseModel):
    player_id: int


class DepositSubmit(BaseModel):
    """外部已確認付款後才會呼叫"""
    player_id: int
    wallet_reference: str = Field(description="交易 hash 或其他付款參考編號")
    wallet_address: Optional[str] = None


class YieldSubmit(BaseModel):
    amount: Decimal


class GameComplete(BaseModel):
    winner_id: int
    override: bool = Field(default=False, description="管理員提前結束（需 X-Admin-Token）")


# ============ Responses ============

class PlayerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    player_id: int
    deposit_amount: Decimal
    has_deposited: bool
    wallet_reference: Optional[str] = None
    wallet_address: Optional[str] = None
    deposited_at: Optional[datetime] = None
    joined_at: datetime

    @field_serializer('deposit_amount')
    def serialize_amount(self, value: Decimal) -> float:
        return float(value)


class GameResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    duration_days: int
    deposit_amount: Decimal
    creator_id: int
    status: GameStatus
    created_at: datetime
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    total_pot: Decimal
    current_yield: Decimal
    winner_id: Optional[int] = None
    players: List[PlayerResponse] = []

    @field_serializer('deposit_amount', 'total_pot', 'current_yield')
    def serialize_amount(self, value: Decimal) -> float:
        return float(value)


class GameJoinResponse(BaseModel):
    game: GameResponse
    message: str


class PayoutResponse(BaseModel):
    player_id: int
    principal: Decimal
    yield_share: Decimal
    total: Decimal
    is_winner: bool

    @field_serializer('principal', 'yield_share', 'total')
    def serialize_amount(self, value: Decimal) -> float:
        return float(value)


class GameEventResponse(BaseModel):
    event_type: str
    data: Dict[str, Any]
    created_at: datetime
