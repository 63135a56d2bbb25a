"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- safe_math：uint256 checked 算術
- pricing_service：key 數量與價格計算
- dividend_service：分紅計算與查詢
- transfer_service：對外轉帳介面
- history_service：轉帳 / 持有紀錄
"""
