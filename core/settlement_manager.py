"""
Settlement Manager：分紅領取、冠軍獎金領取、剩餘款項滾入

職責：
1. withdraw_dividends：從檢查點領到最後一個已結束回合的分紅
2. withdraw_bank：已結束回合的 leader 領取冠軍獎金
3. rollover：回合完全結清後，把剩餘款項（捨入誤差、沒人領的分紅）
   滾入目前進行中的回合

原則：
- 每個操作一開始先 reconcile 回合狀態
- 每個操作最多一次對外轉帳，轉帳失敗整個操作回滾
- rollover 用 rolled_over 旗標保證同一回合只滾入一次
"""
from sqlalchemy.orm import Session
from typing import Optional
import logging

from models import Account, Round, EventLog
from core.round_manager import RoundManager, current_timestamp
from core.exceptions import NothingToClaim, NotRoundLeader, RoundNotEnded
from services import safe_math
from services.dividend_service import dividend_share, get_checkpoint, holdings_in_range
from services.transfer_service import ValueTransfer, get_transfer
from database import transactional

logger = logging.getLogger(__name__)


class SettlementManager:
    """回合結算管理器"""

    @staticmethod
    def can_rollover(round_obj: Round, now: int) -> bool:
        """
        回合是否可以把剩餘款項滾入目前回合

        條件：
        1. 回合已結束
        2. 所有 key 的分紅都已驗證（count_validated_keys == keys_counter）
        3. 冠軍獎金已領取（或根本沒有 leader）

        注意：
            只要有一個持有 key 的地址從未領取分紅，條件 2 永遠不成立，
            該回合的剩餘款項會一直留在原回合。
        """
        return (
            RoundManager.is_ended(round_obj, now)
            and round_obj.count_validated_keys == round_obj.keys_counter
            and round_obj.winner_settled
        )

    @staticmethod
    def apply_rollover(db: Session, round_obj: Round, target: Round, now: int) -> int:
        """
        條件成立時把 round_bank - total_out 加到 target 回合的 bank

        參數：
            round_obj: 已結束的回合
            target: 目前進行中的回合
            now: 目前時間

        返回：
            滾入的金額（不符合條件或已滾入過為 0）
        """
        if round_obj.rolled_over or round_obj.number == target.number:
            return 0
        if not SettlementManager.can_rollover(round_obj, now):
            return 0

        remainder = safe_math.sub(round_obj.round_bank, round_obj.total_out)
        target.round_bank = safe_math.add(target.round_bank, remainder)
        round_obj.rolled_over = True

        if remainder > 0:
            event = EventLog(
                round_number=round_obj.number,
                event_type="ROLLOVER",
                data={"amount": str(remainder), "into_round": target.number}
            )
            db.add(event)
            logger.info(
                f"Rolled {remainder} from round {round_obj.number} into round {target.number}"
            )

        db.flush()
        return remainder

    @staticmethod
    @transactional
    def withdraw_dividends(
        db: Session,
        address: str,
        now: Optional[int] = None,
        transfer: Optional[ValueTransfer] = None
    ) -> int:
        """
        領取分紅

        流程：
        1. 鎖定狀態並同步回合
        2. 對檢查點到最後已結束回合之間、有持有 key 的每個回合：
           - 計算分紅，加到 sum
           - 回合 total_out += 分紅，count_validated_keys += 持有數量
           - 檢查 rollover 條件
        3. sum == 0 則失敗（NothingToClaim）
        4. 轉帳 sum，檢查點推進到最後已結束回合 + 1

        參數：
            db: SQLAlchemy Session
            address: 領取地址
            now: 目前時間（預設為系統時間）
            transfer: 轉帳實作（預設 LedgerTransfer）

        返回：
            領取的總金額

        異常：
            NothingToClaim: 沒有可領取的分紅
            TransferFailure: 轉帳失敗（整個操作回滾）
        """
        now = current_timestamp() if now is None else now
        transfer = transfer or get_transfer()

        state = RoundManager.lock_state(db)
        current = RoundManager.reconcile(db, state, now)
        last_ended = RoundManager.last_ended_round(state, current, now)

        checkpoint = get_checkpoint(address, db)
        total = 0

        for round_obj, keys in holdings_in_range(address, checkpoint, last_ended, db):
            share = dividend_share(round_obj, keys)
            total = safe_math.add(total, share)
            round_obj.total_out = safe_math.add(round_obj.total_out, share)
            round_obj.count_validated_keys = safe_math.add(round_obj.count_validated_keys, keys)
            SettlementManager.apply_rollover(db, round_obj, current, now)

        if total == 0:
            raise NothingToClaim(address)

        transfer.send(db, address, total, reason="dividends")

        account = db.query(Account).filter(Account.address == address).first()
        if not account:
            account = Account(address=address, dividends_checkpoint=0)
            db.add(account)
        account.dividends_checkpoint = last_ended + 1

        event = EventLog(
            round_number=last_ended,
            event_type="DIVIDENDS_WITHDRAWN",
            data={"address": address, "amount": str(total), "from_round": checkpoint}
        )
        db.add(event)
        db.flush()

        logger.info(
            f"{address} withdrew {total} dividends for rounds {checkpoint}..{last_ended}"
        )
        return total

    @staticmethod
    @transactional
    def withdraw_bank(
        db: Session,
        claimant: str,
        round_number: int,
        now: Optional[int] = None,
        transfer: Optional[ValueTransfer] = None
    ) -> int:
        """
        leader 領取已結束回合的冠軍獎金

        前置條件：
        1. round_number < cur_round（回合必須已經過去）
        2. claimant 是該回合尚未領獎的 leader

        效果：
        - 支付 round_bank * (100 - dividends_percent) / 100
        - total_out 增加，winner_paid = True
        - 檢查 rollover 條件

        返回：
            支付金額

        異常：
            RoundNotEnded: 回合尚未過去
            RoundNotFound: 回合不存在
            NotRoundLeader: claimant 不是待領獎的 leader
            TransferFailure: 轉帳失敗（整個操作回滾）
        """
        now = current_timestamp() if now is None else now
        transfer = transfer or get_transfer()

        state = RoundManager.lock_state(db)
        current = RoundManager.reconcile(db, state, now)

        if round_number >= state.cur_round:
            raise RoundNotEnded(round_number)

        round_obj = RoundManager.get_round(db, round_number)
        if round_obj.pending_leader != claimant:
            raise NotRoundLeader(round_number, claimant)

        payout = safe_math.percent_of(
            round_obj.round_bank,
            safe_math.sub(100, round_obj.dividends_percent)
        )
        round_obj.total_out = safe_math.add(round_obj.total_out, payout)
        round_obj.winner_paid = True

        transfer.send(db, claimant, payout, reason="bank", round_number=round_number)

        SettlementManager.apply_rollover(db, round_obj, current, now)

        event = EventLog(
            round_number=round_number,
            event_type="BANK_WITHDRAWN",
            data={"address": claimant, "amount": str(payout)}
        )
        db.add(event)
        db.flush()

        logger.info(f"{claimant} withdrew bank {payout} for round {round_number}")
        return payout

    @staticmethod
    @transactional
    def try_rollover(db: Session, round_number: int, now: Optional[int] = None) -> int:
        """
        對一個已過去的回合嘗試 rollover（冪等）

        返回：
            滾入的金額；不符合條件或已滾入過為 0

        異常：
            RoundNotEnded: 回合尚未過去
            RoundNotFound: 回合不存在
        """
        now = current_timestamp() if now is None else now

        state = RoundManager.lock_state(db)
        current = RoundManager.reconcile(db, state, now)

        if round_number >= state.cur_round:
            raise RoundNotEnded(round_number)

        round_obj = RoundManager.get_round(db, round_number)
        return SettlementManager.apply_rollover(db, round_obj, current, now)
