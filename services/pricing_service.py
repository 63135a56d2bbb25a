"""
定價服務：計算一筆付款能買到多少把 key

純計算邏輯，不涉及狀態轉換
"""
from typing import NamedTuple

from core.exceptions import InvalidParameter
from services import safe_math


class KeyQuote(NamedTuple):
    keys_bought: int
    remainder: int
    final_price: int


def next_key_price(price: int, increasing_percent: int) -> int:
    """
    買一把 key 之後的新價格

    price + price * increasing_percent / 100（整數 floor）

    範例：
        next_key_price(1000, 1) -> 1010
        next_key_price(150, 1) -> 151
    """
    return safe_math.add(price, safe_math.percent_of(price, increasing_percent))


def compute_keys(payment: int, starting_price: int, increasing_percent: int) -> KeyQuote:
    """
    計算付款可購買的 key 數量、剩餘金額與最終價格

    演算法：
        只要 payment >= price：買一把 key，payment -= price，
        價格依 increasing_percent 複利上漲，重複。
    使用明確的迴圈（不用遞迴），每一步都做溢位檢查。

    參數：
        payment: 付款金額
        starting_price: 下一把 key 的價格
        increasing_percent: 每賣出一把 key 的漲幅（百分比）

    返回：
        KeyQuote(keys_bought, remainder, final_price)
        一把都買不到時：(0, payment, starting_price)

    異常：
        InvalidParameter: starting_price 為 0（迴圈不會終止）
        ArithmeticFault: 任何一步溢位

    範例：
        compute_keys(2000, 1000, 1) -> KeyQuote(1, 1000, 1010)
    """
    if starting_price <= 0:
        raise InvalidParameter("Key price must be positive")
    if payment < 0 or increasing_percent < 0:
        raise InvalidParameter("Payment and increasing percent must be non-negative")

    keys_bought = 0
    price = starting_price
    while payment >= price:
        payment = safe_math.sub(payment, price)
        keys_bought = safe_math.add(keys_bought, 1)
        price = next_key_price(price, increasing_percent)

    return KeyQuote(keys_bought=keys_bought, remainder=payment, final_price=price)


def ensure_price_grows(start_key_price: int, price_increasing_percent: int) -> None:
    """
    起始價格 * 漲幅 / 100 必須 >= 1

    保證每賣出一把 key 價格至少上漲 1，定價不會停在固定價格。

    異常：
        InvalidParameter: 參數會讓價格停滯
    """
    if safe_math.percent_of(start_key_price, price_increasing_percent) < 1:
        raise InvalidParameter(
            f"start_key_price ({start_key_price}) * price_increasing_percent "
            f"({price_increasing_percent}) / 100 must be at least 1"
        )


def ensure_dividends_percent(percent: int) -> None:
    """
    異常：
        InvalidParameter: 分紅比例不在 [0, 100)
    """
    if percent < 0 or percent >= 100:
        raise InvalidParameter(f"Dividends percent must be in [0, 100), got {percent}")
