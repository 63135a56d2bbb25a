"""
轉帳服務：對外付款的能力（value transfer capability）

核心帳本只依賴 ValueTransfer 介面；實際的付款方式由外部協作者提供。
預設的 LedgerTransfer 把付款記錄成 Payout 列，與帳本在同一個 transaction，
所以操作回滾時付款紀錄也會一起消失。
"""
from abc import ABC, abstractmethod
from typing import Optional
import logging

from sqlalchemy.orm import Session

from models import Payout

logger = logging.getLogger(__name__)


class ValueTransfer(ABC):
    """
    對外轉帳介面

    實作者付款失敗時必須拋出 TransferFailure，
    讓外層 @transactional 回滾整個操作。
    """

    @abstractmethod
    def send(
        self,
        db: Session,
        to: str,
        amount: int,
        reason: str,
        round_number: Optional[int] = None
    ) -> None:
        ...


class LedgerTransfer(ValueTransfer):
    """把付款寫進 payouts 表（同一個 session，flush 不 commit）"""

    def send(self, db, to, amount, reason, round_number=None):
        if amount <= 0:
            # 0 元轉帳不產生紀錄
            return

        payout = Payout(
            address=to,
            amount=amount,
            reason=reason,
            round_number=round_number
        )
        db.add(payout)
        db.flush()

        logger.info(f"Transferred {amount} to {to} ({reason}, round={round_number})")


_default_transfer = LedgerTransfer()


def get_transfer() -> ValueTransfer:
    """FastAPI dependency：提供轉帳實作（測試時可 override）"""
    return _default_transfer
