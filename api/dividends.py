"""
Dividend API Endpoints

職責：
1. 查詢累計 / 可領取分紅
2. 領取分紅
3. 查詢轉帳與持有紀錄
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import DividendsResponse, AccountHistoryResponse
from core.round_manager import current_timestamp
from core.settlement_manager import SettlementManager
from core.exceptions import (
    NothingToClaim,
    TransferFailure,
    ArithmeticFault,
    GameNotInitialized
)
from services.dividend_service import accrued_dividends, withdrawable_dividends, get_checkpoint
from services.history_service import get_payout_history, get_key_history
from services.transfer_service import ValueTransfer, get_transfer

router = APIRouter(prefix="/api/dividends", tags=["dividends"])
logger = logging.getLogger(__name__)


@router.get("/{address}/accrued", response_model=DividendsResponse)
def show_accrued_dividends(address: str, db: Session = Depends(get_db)):
    """
    累計分紅（含進行中的回合，僅供參考）
    """
    try:
        amount = accrued_dividends(address, db)
        return DividendsResponse(
            address=address,
            amount=amount,
            checkpoint=get_checkpoint(address, db)
        )

    except GameNotInitialized:
        raise HTTPException(status_code=503, detail="Game not initialized")
    except Exception as e:
        logger.error(f"Failed to get accrued dividends: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{address}/withdrawable", response_model=DividendsResponse)
def show_withdrawable_dividends(
    address: str,
    db: Session = Depends(get_db),
    now: int = Depends(current_timestamp)
):
    """
    可領取的分紅（只計算到最後一個已結束的回合）
    """
    try:
        amount = withdrawable_dividends(address, db, now)
        return DividendsResponse(
            address=address,
            amount=amount,
            checkpoint=get_checkpoint(address, db)
        )

    except GameNotInitialized:
        raise HTTPException(status_code=503, detail="Game not initialized")
    except Exception as e:
        logger.error(f"Failed to get withdrawable dividends: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{address}/withdraw", response_model=DividendsResponse)
def withdraw_dividends(
    address: str,
    db: Session = Depends(get_db),
    transfer: ValueTransfer = Depends(get_transfer),
    now: int = Depends(current_timestamp)
):
    """
    領取分紅

    失敗情況：
    - 沒有可領取的分紅：400（detail = "Nothing to claim"）
    - 轉帳失敗：502，帳務完全回滾
    """
    try:
        amount = SettlementManager.withdraw_dividends(db, address, now=now, transfer=transfer)
        return DividendsResponse(
            address=address,
            amount=amount,
            checkpoint=get_checkpoint(address, db)
        )

    except NothingToClaim:
        raise HTTPException(status_code=400, detail="Nothing to claim")
    except TransferFailure as e:
        raise HTTPException(status_code=502, detail=f"Transfer failed: {e}")
    except ArithmeticFault as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to withdraw dividends: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{address}/history", response_model=AccountHistoryResponse)
def get_account_history(address: str, db: Session = Depends(get_db)):
    """取得地址的轉帳紀錄與各回合持有的 key"""
    try:
        return AccountHistoryResponse(
            address=address,
            payouts=get_payout_history(address, db),
            keys=get_key_history(address, db)
        )

    except Exception as e:
        logger.error(f"Failed to get account history: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
