"""
GameStore：持久層的唯一擁有者

每個 process 建立一次（main.py 的 lifespan），掛在 app.state 上，
由 get_db 為每個請求開一個 Session。

後端透過 database_url 切換：
- sqlite://             → in-memory（測試用，StaticPool 讓所有 Session 共用同一條連線）
- sqlite:///./file.db   → 本機檔案
- postgresql://...      → 正式環境（支援 SELECT ... FOR UPDATE 行級鎖）
"""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
import logging

from database import Base

logger = logging.getLogger(__name__)


def _is_in_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


class GameStore:
    """持有 engine 與 session factory"""

    def __init__(self, database_url: str, timeout_seconds: float = 5):
        self.database_url = database_url

        engine_kwargs = {"pool_pre_ping": True}
        if database_url.startswith("sqlite"):
            # 允許 FastAPI threadpool 內的多執行緒存取同一個 SQLite 連線
            engine_kwargs["connect_args"] = {
                "check_same_thread": False,
                "timeout": timeout_seconds,
            }
            if _is_in_memory_sqlite(database_url):
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_timeout"] = timeout_seconds

        self.engine = create_engine(database_url, **engine_kwargs)

        if database_url.startswith("sqlite"):
            @event.listens_for(self.engine, "connect")
            def _configure_sqlite(dbapi_connection, connection_record):
                # 關掉 pysqlite 自己的 BEGIN，改由下面的 begin hook 控制
                dbapi_connection.isolation_level = None
                # SQLite 預設不檢查 foreign key，ON DELETE CASCADE 需要打開
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

            @event.listens_for(self.engine, "begin")
            def _begin_immediate(conn):
                # SQLite 沒有 FOR UPDATE：transaction 一開始就拿 write lock，
                # 同一時間只有一個 transaction 能讀到「全員已存款」並開始遊戲
                conn.exec_driver_sql("BEGIN IMMEDIATE")

        # expire_on_commit=False：commit 後回傳的 Game 仍可直接序列化
        self._session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine
        )
        logger.info(f"GameStore initialised ({self.engine.url.render_as_string(hide_password=True)})")

    def create_all(self) -> None:
        import models  # noqa: F401  確保 table 都註冊到 Base.metadata
        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    def session(self) -> Session:
        return self._session_factory()

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("GameStore disposed")


def build_store(settings) -> GameStore:
    store = GameStore(settings.database_url, timeout_seconds=settings.store_timeout_seconds)
    store.create_all()
    return store
