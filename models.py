"""
資料模型

回合登錄表（Round Registry）與全域遊戲狀態：
- GameState：單例列（id=1），保存 cur_round / cur_key_price / 預設分紅比例等
- Round：每個回合一列，建立後永不刪除
- RoundKeys：每個地址在每個回合持有的 key 數量
- Account：每個地址的分紅領取檢查點
- Admin / Payout / EventLog：權限、轉帳紀錄、事件紀錄
"""
from datetime import datetime
import enum

from sqlalchemy import (
    Column,
    Integer,
    BigInteger,
    String,
    Boolean,
    DateTime,
    JSON,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.types import TypeDecorator

from database import Base


class Uint256(TypeDecorator):
    """
    256-bit 無號整數欄位

    以十進位字串儲存，讀出時轉回 int，任何資料庫後端都不會失去精度
    （SQLite 的 INTEGER 只有 64-bit）。
    """
    impl = String(78)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(int(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


class RoundState(str, enum.Enum):
    """回合的衍生狀態（不儲存，每次由欄位計算）"""
    ACTIVE = "active"
    ENDED_UNSETTLED = "ended_unsettled"
    FULLY_SETTLED = "fully_settled"


class GameState(Base):
    __tablename__ = "game_state"

    id = Column(Integer, primary_key=True, default=1)
    cur_round = Column(Integer, nullable=False, default=0)
    cur_key_price = Column(Uint256, nullable=False)
    dividends_percent = Column(Integer, nullable=False)
    start_key_price = Column(Uint256, nullable=False)
    price_increasing_percent = Column(Uint256, nullable=False)
    paused = Column(Boolean, nullable=False, default=False)


class Round(Base):
    __tablename__ = "rounds"

    number = Column(Integer, primary_key=True, autoincrement=False)
    end_timestamp = Column(BigInteger, nullable=False)

    # 最後一位買家；沒人買過則為 None
    leader = Column(String, nullable=True)
    # 冠軍獎金是否已領取
    winner_paid = Column(Boolean, nullable=False, default=False)

    round_bank = Column(Uint256, nullable=False, default=0)
    dividends_percent = Column(Integer, nullable=False)
    keys_counter = Column(Uint256, nullable=False, default=0)
    count_validated_keys = Column(Uint256, nullable=False, default=0)
    total_out = Column(Uint256, nullable=False, default=0)

    # 剩餘款項是否已滾入後續回合
    rolled_over = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def winner_settled(self) -> bool:
        """沒有待領的冠軍獎金（無人購買，或已領取）"""
        return self.leader is None or self.winner_paid

    @property
    def pending_leader(self):
        """尚未領獎的 leader；已領取或無人購買時為 None"""
        return None if self.winner_settled else self.leader


class RoundKeys(Base):
    __tablename__ = "round_keys"
    __table_args__ = (
        UniqueConstraint("round_number", "address", name="uq_round_keys_round_address"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    round_number = Column(Integer, ForeignKey("rounds.number"), nullable=False, index=True)
    address = Column(String, nullable=False, index=True)
    keys = Column(Uint256, nullable=False, default=0)


class Account(Base):
    __tablename__ = "accounts"

    address = Column(String, primary_key=True)
    # 尚未領取分紅的第一個回合
    dividends_checkpoint = Column(Integer, nullable=False, default=0)


class Admin(Base):
    __tablename__ = "admins"

    address = Column(String, primary_key=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Payout(Base):
    __tablename__ = "payouts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    address = Column(String, nullable=False, index=True)
    amount = Column(Uint256, nullable=False)
    reason = Column(String, nullable=False)  # refund / dividends / bank
    round_number = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class EventLog(Base):
    __tablename__ = "event_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    round_number = Column(Integer, nullable=True)
    event_type = Column(String, nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
