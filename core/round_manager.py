"""
Round Manager：管理 Round 的完整生命週期

職責：
1. 初始化遊戲（GameState 單例 + Round 0）
2. 判斷回合狀態（ACTIVE / ENDED_UNSETTLED / FULLY_SETTLED，由欄位計算，不儲存）
3. 延遲開啟下一回合（任何觸及回合的操作一開始先 reconcile）
4. 依購買量延長回合結束時間，上限為 now + round_max_duration

原則：
- 回合狀態不存欄位，每次從 end_timestamp / leader / 驗證計數推導
- 一次呼叫最多建立一個新回合，空回合直接略過不補建
- 內部 helper 只 flush，commit 交給外層 @transactional
"""
from sqlalchemy.orm import Session
from typing import Optional
import logging
import time

from models import GameState, Round, RoundKeys, RoundState, EventLog
from core.locks import with_state_lock
from core.exceptions import RoundNotFound, GameNotInitialized
from services import safe_math
from services.pricing_service import ensure_dividends_percent, ensure_price_grows
from database import transactional, get_settings

logger = logging.getLogger(__name__)


def current_timestamp() -> int:
    """目前的 Unix 時間（秒）"""
    return int(time.time())


class RoundManager:
    """Round 生命週期管理器"""

    @staticmethod
    @transactional
    def init_game(db: Session, now: Optional[int] = None) -> GameState:
        """
        建立遊戲狀態與 Round 0（冪等）

        流程：
        1. 已經有 GameState 就直接返回
        2. 依 Settings 建立 GameState
        3. 建立 Round 0，結束時間 now + round_initial_duration

        參數：
            db: SQLAlchemy Session
            now: 目前時間（預設為系統時間）

        返回：
            GameState

        異常：
            InvalidParameter: Settings 的起始價格 / 漲幅會讓價格停滯，或分紅比例 >= 100
        """
        state = db.query(GameState).filter(GameState.id == 1).first()
        if state:
            return state

        now = current_timestamp() if now is None else now
        settings = get_settings()

        # 設定檔的值與 admin 設定走同一套檢查
        ensure_price_grows(settings.start_key_price, settings.price_increasing_percent)
        ensure_dividends_percent(settings.dividends_percent)

        state = GameState(
            id=1,
            cur_round=0,
            cur_key_price=settings.start_key_price,
            dividends_percent=settings.dividends_percent,
            start_key_price=settings.start_key_price,
            price_increasing_percent=settings.price_increasing_percent,
            paused=False
        )
        db.add(state)
        db.flush()

        RoundManager._create_round(db, state, 0, now)

        logger.info(f"Game initialized at {now}")
        return state

    @staticmethod
    def get_state(db: Session) -> GameState:
        """
        取得全域遊戲狀態（不加鎖，唯讀用途）

        異常：
            GameNotInitialized: init_game 尚未執行
        """
        state = db.query(GameState).filter(GameState.id == 1).first()
        if not state:
            raise GameNotInitialized("Game state not initialized")
        return state

    @staticmethod
    def lock_state(db: Session) -> GameState:
        """取得並鎖定全域遊戲狀態（寫入操作用）"""
        state = with_state_lock(db).first()
        if not state:
            raise GameNotInitialized("Game state not initialized")
        return state

    @staticmethod
    def get_round(db: Session, round_number: int) -> Round:
        """
        透過回合編號取得 Round

        異常：
            RoundNotFound: 回合不存在
        """
        round_obj = db.query(Round).filter(Round.number == round_number).first()
        if not round_obj:
            raise RoundNotFound(round_number)
        return round_obj

    @staticmethod
    def get_address_keys(db: Session, round_number: int, address: str) -> int:
        """取得地址在某回合持有的 key 數量（沒有紀錄為 0）"""
        row = db.query(RoundKeys).filter(
            RoundKeys.round_number == round_number,
            RoundKeys.address == address
        ).first()
        return row.keys if row else 0

    @staticmethod
    def is_ended(round_obj: Round, now: int) -> bool:
        return now >= round_obj.end_timestamp

    @staticmethod
    def round_state(round_obj: Round, now: int) -> RoundState:
        """
        推導回合狀態

        規則：
        - now < end_timestamp: ACTIVE
        - 已結束，冠軍獎金已處理且所有 key 的分紅都已驗證: FULLY_SETTLED
        - 其他已結束的情況: ENDED_UNSETTLED
        """
        if not RoundManager.is_ended(round_obj, now):
            return RoundState.ACTIVE
        if round_obj.winner_settled and round_obj.count_validated_keys == round_obj.keys_counter:
            return RoundState.FULLY_SETTLED
        return RoundState.ENDED_UNSETTLED

    @staticmethod
    def _create_round(db: Session, state: GameState, round_number: int, now: int) -> Round:
        settings = get_settings()

        round_obj = Round(
            number=round_number,
            end_timestamp=safe_math.add(now, settings.round_initial_duration),
            leader=None,
            winner_paid=False,
            round_bank=0,
            # 建立時快照，之後修改全域設定不影響此回合
            dividends_percent=state.dividends_percent,
            keys_counter=0,
            count_validated_keys=0,
            total_out=0,
            rolled_over=False
        )
        db.add(round_obj)

        event = EventLog(
            round_number=round_number,
            event_type="ROUND_STARTED",
            data={
                "end_timestamp": round_obj.end_timestamp,
                "dividends_percent": round_obj.dividends_percent
            }
        )
        db.add(event)
        db.flush()

        logger.info(
            f"Started round {round_number} (ends at {round_obj.end_timestamp}, "
            f"dividends {round_obj.dividends_percent}%)"
        )
        return round_obj

    @staticmethod
    def reconcile(db: Session, state: GameState, now: int) -> Round:
        """
        同步回合狀態：目前回合已結束就開啟下一回合

        流程：
        1. 取得目前回合
        2. 如果 now >= end_timestamp：cur_round += 1，建立新回合，
           價格重設為 start_key_price
        3. 返回目前（進行中）的回合

        注意：
            - 最多只建立一個新回合，即使中間經過了很多個回合長度
            - 呼叫者必須已持有 state lock
        """
        current = RoundManager.get_round(db, state.cur_round)
        if not RoundManager.is_ended(current, now):
            return current

        next_number = state.cur_round + 1
        new_round = RoundManager._create_round(db, state, next_number, now)
        state.cur_round = next_number
        state.cur_key_price = state.start_key_price
        db.flush()

        return new_round

    @staticmethod
    def extend_round(round_obj: Round, keys_bought: int, now: int) -> int:
        """
        依購買的 key 數延長回合

        規則：
        - end_timestamp += extension_per_key * keys_bought
        - 上限：end_timestamp - now <= round_max_duration

        返回：
            新的 end_timestamp

        範例（預設 30 秒 / key，上限 24 小時）：
            end=now+300, 買 2 把 -> now+360
            end=now+86390, 買 1 把 -> now+86400（被截斷）
        """
        settings = get_settings()

        extended = safe_math.add(
            round_obj.end_timestamp,
            safe_math.mul(settings.extension_per_key, keys_bought)
        )
        cap = safe_math.add(now, settings.round_max_duration)
        round_obj.end_timestamp = min(extended, cap)
        return round_obj.end_timestamp

    @staticmethod
    def last_ended_round(state: GameState, current: Round, now: int) -> int:
        """
        最後一個已結束的回合編號

        - 目前回合已結束（但下一回合尚未建立）: 目前回合
        - 否則: 目前回合的前一回合（-1 表示沒有任何已結束的回合）
        """
        if RoundManager.is_ended(current, now):
            return state.cur_round
        return state.cur_round - 1
