"""
Config Manager：owner / admin 的設定操作

職責：
1. 分紅比例、起始價格、漲幅（只影響之後建立的回合 / 之後的價格）
2. 暫停 / 恢復購買
3. 新增 / 移除 admin（owner 限定）

所有操作先檢查權限，再檢查參數，最後才修改狀態。
"""
from sqlalchemy.orm import Session
import logging

from models import GameState, Admin, EventLog
from core.round_manager import RoundManager
from core.access_control import require_owner, require_owner_or_admin
from services.pricing_service import ensure_dividends_percent, ensure_price_grows
from database import transactional

logger = logging.getLogger(__name__)


def _log_config_change(db: Session, caller: str, field: str, value) -> None:
    event = EventLog(
        event_type="CONFIG_CHANGED",
        data={"caller": caller, "field": field, "value": str(value)}
    )
    db.add(event)
    db.flush()
    logger.info(f"{caller} set {field} = {value}")


class ConfigManager:
    """遊戲設定管理器"""

    @staticmethod
    @transactional
    def set_dividends_percent(db: Session, caller: str, percent: int) -> GameState:
        """
        設定新回合的分紅比例

        前置條件：
            0 <= percent < 100

        注意：
            已建立的回合保留自己的快照，只有之後建立的回合會使用新值
        """
        require_owner_or_admin(db, caller)
        ensure_dividends_percent(percent)

        state = RoundManager.lock_state(db)
        state.dividends_percent = percent
        _log_config_change(db, caller, "dividends_percent", percent)
        return state

    @staticmethod
    @transactional
    def set_start_key_price(db: Session, caller: str, price: int) -> GameState:
        """
        設定每個回合的起始 key 價格（下個回合開始生效）

        異常：
            InvalidParameter: price * price_increasing_percent / 100 < 1
        """
        require_owner_or_admin(db, caller)

        state = RoundManager.lock_state(db)
        ensure_price_grows(price, state.price_increasing_percent)

        state.start_key_price = price
        _log_config_change(db, caller, "start_key_price", price)
        return state

    @staticmethod
    @transactional
    def set_price_increasing_percent(db: Session, caller: str, percent: int) -> GameState:
        """
        設定每賣出一把 key 的漲幅（立即套用到之後的購買）

        異常：
            InvalidParameter: start_key_price * percent / 100 < 1
        """
        require_owner_or_admin(db, caller)

        state = RoundManager.lock_state(db)
        ensure_price_grows(state.start_key_price, percent)

        state.price_increasing_percent = percent
        _log_config_change(db, caller, "price_increasing_percent", percent)
        return state

    @staticmethod
    @transactional
    def set_paused(db: Session, caller: str, paused: bool) -> GameState:
        """暫停 / 恢復購買（領取不受影響）"""
        require_owner_or_admin(db, caller)

        state = RoundManager.lock_state(db)
        state.paused = paused
        _log_config_change(db, caller, "paused", paused)
        return state

    @staticmethod
    @transactional
    def add_admin(db: Session, caller: str, address: str) -> Admin:
        """新增 admin（owner 限定，重複新增直接返回既有紀錄）"""
        require_owner(caller)

        admin = db.query(Admin).filter(Admin.address == address).first()
        if admin:
            return admin

        admin = Admin(address=address)
        db.add(admin)
        _log_config_change(db, caller, "admin_added", address)
        return admin

    @staticmethod
    @transactional
    def remove_admin(db: Session, caller: str, address: str) -> bool:
        """
        移除 admin（owner 限定）

        返回：
            True 如果有移除，False 如果本來就不是 admin
        """
        require_owner(caller)

        admin = db.query(Admin).filter(Admin.address == address).first()
        if not admin:
            return False

        db.delete(admin)
        _log_config_change(db, caller, "admin_removed", address)
        return True
