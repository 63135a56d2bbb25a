"""
分紅服務：Dividend Ledger 的計算邏輯

純計算 / 唯讀查詢，不修改狀態（領取流程由 SettlementManager 負責）
"""
from typing import List, Tuple

from sqlalchemy.orm import Session

from models import Account, Round, RoundKeys
from services import safe_math


def dividend_share(round_obj: Round, address_keys: int) -> int:
    """
    計算一個地址在某回合可分得的分紅

    公式（完全照原順序：先乘完再除，每次除法都 floor）：
        round_bank * dividends_percent * address_keys / 100 / keys_counter

    參數：
        round_obj: 回合
        address_keys: 地址在此回合持有的 key 數

    返回：
        分紅金額；回合沒有賣出任何 key 時為 0（不做除以 0）

    範例：
        bank=10000, dividends=30%, keys=1/4 -> 10000*30*1/100/4 = 750
    """
    if round_obj.keys_counter == 0:
        return 0

    numerator = safe_math.mul(
        safe_math.mul(round_obj.round_bank, round_obj.dividends_percent),
        address_keys
    )
    return safe_math.div(safe_math.div(numerator, 100), round_obj.keys_counter)


def get_checkpoint(address: str, db: Session) -> int:
    """取得地址尚未領取分紅的第一個回合（沒有帳戶紀錄為 0）"""
    account = db.query(Account).filter(Account.address == address).first()
    return account.dividends_checkpoint if account else 0


def holdings_in_range(address: str, first: int, last: int, db: Session) -> List[Tuple[Round, int]]:
    """
    取得地址在 [first, last] 回合範圍內持有 key 的回合

    返回：
        [(Round, keys), ...]，依回合編號排序；沒有持有 key 的回合不會出現
    """
    if last < first:
        return []

    rows = (
        db.query(Round, RoundKeys.keys)
        .join(RoundKeys, RoundKeys.round_number == Round.number)
        .filter(
            RoundKeys.address == address,
            Round.number >= first,
            Round.number <= last
        )
        .order_by(Round.number)
        .all()
    )
    return [(round_obj, keys) for round_obj, keys in rows if keys > 0]


def sum_dividends(address: str, last_round: int, db: Session) -> int:
    """從檢查點加總到 last_round（含）的分紅"""
    first = get_checkpoint(address, db)
    total = 0
    for round_obj, keys in holdings_in_range(address, first, last_round, db):
        total = safe_math.add(total, dividend_share(round_obj, keys))
    return total


def accrued_dividends(address: str, db: Session) -> int:
    """
    累計分紅（資訊用途）

    從檢查點加總到目前回合（含），目前回合可能仍在進行中，
    所以這個數字還會變動。
    """
    from core.round_manager import RoundManager  # 避免 circular import

    state = RoundManager.get_state(db)
    return sum_dividends(address, state.cur_round, db)


def withdrawable_dividends(address: str, db: Session, now: int) -> int:
    """
    可領取的分紅

    只加總到最後一個已結束的回合：
    - 目前回合已結束但下一回合尚未建立: 包含目前回合
    - 否則: 只到目前回合的前一回合
    """
    from core.round_manager import RoundManager  # 避免 circular import

    state = RoundManager.get_state(db)
    current = RoundManager.get_round(db, state.cur_round)
    last_ended = RoundManager.last_ended_round(state, current, now)
    return sum_dividends(address, last_ended, db)
