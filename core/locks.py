"""
並發控制工具

PostgreSQL：SELECT ... FOR UPDATE 鎖住 Game row，同一場遊戲的修改依序執行。
SQLite：忽略 FOR UPDATE，由 GameStore 的 BEGIN IMMEDIATE 讓 transaction 一開始就拿 write lock。
"""
from sqlalchemy.orm import Session, Query

from models import Game


def with_game_lock(game_id: str, db: Session) -> Query:
    """
    鎖定 Game row 並重新載入（含 players）

    Session 在 commit 後不會 expire 物件（expire_on_commit=False），
    populate_existing 確保拿鎖後看到的是其他 Session 已 commit 的最新狀態，
    而不是這個 Session 先前載入的舊資料。
    """
    return (
        db.query(Game)
        .filter(Game.id == game_id)
        .populate_existing()
        .with_for_update(nowait=False)
    )
