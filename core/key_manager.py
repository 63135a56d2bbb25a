"""
Key Manager：處理購買 key 的完整流程

流程：
1. 同步回合狀態（必要時開啟下一回合）
2. 依目前價格計算可購買的 key 數量
3. 更新 leader、退還餘額、延長回合
4. 更新回合 bank、持有數量、價格

整個操作在一個 transaction 內，退款失敗或溢位時全部回滾。
"""
from sqlalchemy.orm import Session
from typing import NamedTuple, Optional
import logging

from models import RoundKeys, EventLog
from core.round_manager import RoundManager, current_timestamp
from core.exceptions import GamePaused, InsufficientPayment, InvalidParameter
from services import safe_math
from services.pricing_service import compute_keys
from services.transfer_service import ValueTransfer, get_transfer
from database import transactional

logger = logging.getLogger(__name__)


class PurchaseResult(NamedTuple):
    round_number: int
    keys_bought: int
    remainder: int
    key_price: int
    end_timestamp: int


class KeyManager:
    """購買 key 的管理器"""

    @staticmethod
    @transactional
    def buy_keys(
        db: Session,
        payer: str,
        amount: int,
        now: Optional[int] = None,
        transfer: Optional[ValueTransfer] = None
    ) -> PurchaseResult:
        """
        購買 key

        前置條件：
        1. 遊戲沒有暫停
        2. amount > 0，且至少能買到一把 key

        注意：
            買不到任何 key 的付款直接拒絕（InsufficientPayment），
            不會像一般流程那樣成為 leader 再全額退款，
            否則任何人都能零成本搶下 leader。

        參數：
            db: SQLAlchemy Session
            payer: 付款地址（成為目前回合的 leader）
            amount: 已由外部確認收到的付款金額
            now: 目前時間（預設為系統時間）
            transfer: 退款用的轉帳實作（預設 LedgerTransfer）

        返回：
            PurchaseResult

        異常：
            GamePaused: 遊戲暫停中
            InsufficientPayment: 付款不足以購買一把 key
            TransferFailure: 退款失敗（整個操作回滾）
            ArithmeticFault: 任何一步溢位
        """
        now = current_timestamp() if now is None else now
        transfer = transfer or get_transfer()

        if amount <= 0:
            raise InvalidParameter(f"Payment must be positive, got {amount}")

        # 1. 鎖定狀態並同步回合
        state = RoundManager.lock_state(db)
        if state.paused:
            raise GamePaused("Game is paused")

        round_obj = RoundManager.reconcile(db, state, now)

        # 2. 計算 key 數量
        quote = compute_keys(amount, state.cur_key_price, state.price_increasing_percent)
        if quote.keys_bought == 0:
            raise InsufficientPayment(
                f"Payment {amount} is below the current key price {state.cur_key_price}"
            )

        # 3. 最後一位買家成為 leader
        round_obj.leader = payer

        # 4. 退還餘額
        transfer.send(db, payer, quote.remainder, reason="refund", round_number=round_obj.number)

        # 5. 延長回合
        RoundManager.extend_round(round_obj, quote.keys_bought, now)

        # 6. 更新帳務
        round_obj.round_bank = safe_math.add(
            round_obj.round_bank,
            safe_math.sub(amount, quote.remainder)
        )

        holding = db.query(RoundKeys).filter(
            RoundKeys.round_number == round_obj.number,
            RoundKeys.address == payer
        ).first()
        if not holding:
            holding = RoundKeys(round_number=round_obj.number, address=payer, keys=0)
            db.add(holding)
        holding.keys = safe_math.add(holding.keys, quote.keys_bought)

        round_obj.keys_counter = safe_math.add(round_obj.keys_counter, quote.keys_bought)
        state.cur_key_price = quote.final_price

        event = EventLog(
            round_number=round_obj.number,
            event_type="KEYS_BOUGHT",
            data={
                "payer": payer,
                "keys": str(quote.keys_bought),
                "paid": str(amount - quote.remainder)
            }
        )
        db.add(event)
        db.flush()

        logger.info(
            f"{payer} bought {quote.keys_bought} keys in round {round_obj.number} "
            f"(refund {quote.remainder}, next price {quote.final_price})"
        )

        return PurchaseResult(
            round_number=round_obj.number,
            keys_bought=quote.keys_bought,
            remainder=quote.remainder,
            key_price=quote.final_price,
            end_timestamp=round_obj.end_timestamp
        )
