from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import declarative_base, Session
from pydantic_settings import BaseSettings
from fastapi import Request
from functools import lru_cache, wraps
from typing import Optional
import logging
import time

from core.exceptions import FriendsNFundsException, StoreUnavailableError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./friends_n_funds.db"
    store_timeout_seconds: float = 5
    store_retry_attempts: int = 3
    store_retry_backoff_seconds: float = 0.2
    invite_code_length: int = 8
    admin_token: Optional[str] = None
    log_level: str = "INFO"

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()

Base = declarative_base()


def get_db(request: Request):
    """
    FastAPI dependency：從 app 上的 GameStore 取得 Session

    使用 yield 確保 session 在請求結束後會被關閉
    """
    db = request.app.state.store.session()
    try:
        yield db
    finally:
        db.close()


def _find_session(func, args, kwargs) -> Session:
    db = None
    if args and isinstance(args[0], Session):
        db = args[0]
    elif 'db' in kwargs:
        db = kwargs['db']

    if db is None:
        raise ValueError(
            f"@{func.__name__} requires 'db: Session' as first argument, "
            f"but got args={args}, kwargs={kwargs}"
        )
    return db


def _run_with_retry(func, args, kwargs, commit: bool):
    """
    執行 store 操作，連線失敗時以指數退避重試

    - OperationalError / pool timeout：rollback 後重試，用盡次數後拋 StoreUnavailableError
    - 業務異常（FriendsNFundsException）：rollback 後直接拋出，不重試
    - 其他異常：記錄 log、rollback、重新拋出
    """
    db = _find_session(func, args, kwargs)
    attempts = max(1, settings.store_retry_attempts)

    for attempt in range(1, attempts + 1):
        try:
            result = func(*args, **kwargs)
            if commit:
                db.commit()
            return result
        except (OperationalError, PoolTimeoutError) as e:
            db.rollback()
            if attempt == attempts:
                logger.error(
                    f"Store unavailable in {func.__name__} after {attempts} attempts: {e}",
                    exc_info=True
                )
                raise StoreUnavailableError(str(e)) from e
            delay = settings.store_retry_backoff_seconds * (2 ** (attempt - 1))
            logger.warning(
                f"Store error in {func.__name__} (attempt {attempt}/{attempts}), "
                f"retrying in {delay:.2f}s: {e}"
            )
            time.sleep(delay)
        except FriendsNFundsException as e:
            logger.info(f"{func.__name__} rejected: {e}")
            db.rollback()
            raise
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise


def transactional(func):
    """
    在同一個 transaction 內執行，成功才 commit，失敗一律 rollback

    被包裝的函式第一個參數必須是 db: Session，函式內不要自行 commit。
    OperationalError / pool timeout 會依 store_retry_attempts 重試整個函式，
    用盡後拋 StoreUnavailableError；業務異常不重試。
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        return _run_with_retry(func, args, kwargs, commit=True)

    return wrapper


def store_read(func):
    """
    唯讀操作用：與 @transactional 相同的重試與錯誤轉換，但不 commit
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        return _run_with_retry(func, args, kwargs, commit=False)

    return wrapper
