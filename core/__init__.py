"""
核心業務邏輯層

這個 package 包含所有會修改狀態的業務邏輯，包括：
- RoundManager：回合生命週期（延遲開新回合、延長時間）
- KeyManager：購買 key
- SettlementManager：分紅領取、冠軍獎金、rollover
- ConfigManager：owner / admin 設定
- Locks：並發控制工具
"""
