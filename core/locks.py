"""
並發控制工具

提供 Database-level 的鎖定機制，防止競態條件（Race Condition）

主要使用 PostgreSQL 的 SELECT ... FOR UPDATE 來實現悲觀鎖（Pessimistic Locking）。
所有寫入操作都先鎖住 GameState 單例列，等同於對整個回合 / 帳戶狀態加上排他寫鎖；
同一個 process 內的排隊由 database.transactional 的 writer lock 負責。
"""
from sqlalchemy.orm import Session, Query

from models import GameState


def with_state_lock(db: Session) -> Query:
    """
    鎖定全域遊戲狀態（單例列）

    使用場景：
    - 任何會修改回合、價格、檢查點的操作，一開始就呼叫
    - 同一時間只有一個 transaction 能持有，其餘等待

    範例：
        state = with_state_lock(db).first()
        if not state:
            raise GameNotInitialized("Game state not initialized")

    返回：
        Query object（需要呼叫 .first() 來取得結果）

    注意：
        - nowait=False 表示如果鎖被佔用，會等待
        - 必須在 transaction 內使用（確保有 commit 或 rollback）
        - SQLite 不支援 FOR UPDATE，會直接忽略
    """
    return db.query(GameState).filter(
        GameState.id == 1
    ).with_for_update(nowait=False)
