from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
import logging
import threading

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./key_rounds.db"
    owner_address: str = "owner"

    # 遊戲參數預設值（新回合建立時套用）
    start_key_price: int = 10 ** 15
    price_increasing_percent: int = 1
    dividends_percent: int = 30

    # 回合時間（秒）
    round_initial_duration: int = 5 * 60
    round_max_duration: int = 24 * 60 * 60
    extension_per_key: int = 30

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()

# SQLite 需要特殊設定：connect_args={"check_same_thread": False}
# 這允許多執行緒存取同一個 SQLite 連線（FastAPI 的多執行緒環境需要）
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    pool_pre_ping=True
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# 單一寫入者：同一個 process 內所有寫入操作排隊執行
_writer_lock = threading.RLock()


def get_db():
    """
    FastAPI dependency：提供 Database Session

    使用 yield 確保 session 在請求結束後會被關閉
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def transactional(func):
    """
    Transaction decorator：確保帳本操作的原子性（all-or-nothing）

    使用方式：
        @transactional
        def some_business_logic(db: Session, ...):
            # 所有 DB 操作都在一個 transaction 內
            round_obj.round_bank += amount
            # 不需要手動 commit，decorator 會處理

    如果函式內發生異常（包含轉帳失敗、算術溢位）：
        - 自動 rollback，之前的帳務變更全部撤銷
        - 異常會被重新拋出（讓上層處理）

    並發：
        - 整個操作期間持有 process 內的 writer lock
        - 同一時間只會有一個操作在修改回合 / 帳戶狀態

    注意：
        - 第一個參數必須是 db: Session
        - 不要在函式內手動 commit（decorator 會處理）
        - 內部 helper 只 flush，不要再加 @transactional
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        # 找出 db session（可能在 args 或 kwargs）
        db = None
        if args and isinstance(args[0], Session):
            db = args[0]
        elif 'db' in kwargs:
            db = kwargs['db']

        if db is None:
            raise ValueError(
                f"@transactional requires 'db: Session' as first argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        with _writer_lock:
            try:
                result = func(*args, **kwargs)
                db.commit()
                return result
            except Exception as e:
                logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
                db.rollback()
                raise

    return wrapper
