"""
Round API Endpoints

重點：
1. 讀取端點不修改狀態（不做 reconcile）
2. withdraw-bank / rollover 會先 reconcile，再由 SettlementManager 處理
3. 所有業務邏輯集中在 core 的 Manager
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

import logging

from database import get_db
from schemas import (
    RoundCurrentResponse,
    RoundInfoResponse,
    AddressKeysResponse,
    WithdrawBankRequest,
    AmountResponse
)
from core.round_manager import RoundManager, current_timestamp
from core.settlement_manager import SettlementManager
from core.exceptions import (
    RoundNotFound,
    InvalidParameter,
    TransferFailure,
    ArithmeticFault,
    GameNotInitialized
)
from services.transfer_service import ValueTransfer, get_transfer

router = APIRouter(prefix="/api/rounds", tags=["rounds"])
logger = logging.getLogger(__name__)


@router.get("/current", response_model=RoundCurrentResponse)
def get_current_round(db: Session = Depends(get_db), now: int = Depends(current_timestamp)):
    """
    取得目前回合資訊

    返回：
        - round_number: 回合數
        - key_price: 下一把 key 價格
        - state: ACTIVE / ENDED_UNSETTLED / FULLY_SETTLED
        - end_timestamp: 結束時間
    """
    try:
        state = RoundManager.get_state(db)
        current = RoundManager.get_round(db, state.cur_round)

        return RoundCurrentResponse(
            round_number=current.number,
            key_price=state.cur_key_price,
            state=RoundManager.round_state(current, now),
            end_timestamp=current.end_timestamp
        )

    except GameNotInitialized:
        raise HTTPException(status_code=503, detail="Game not initialized")
    except Exception as e:
        logger.error(f"Failed to get current round: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{round_number}", response_model=RoundInfoResponse)
def get_round_info(
    round_number: int,
    db: Session = Depends(get_db),
    now: int = Depends(current_timestamp)
):
    """
    取得回合的完整帳務資訊（歷史回合永久保留）
    """
    try:
        round_obj = RoundManager.get_round(db, round_number)

        return RoundInfoResponse(
            round_number=round_obj.number,
            end_timestamp=round_obj.end_timestamp,
            leader=round_obj.leader,
            winner_paid=round_obj.winner_paid,
            round_bank=round_obj.round_bank,
            dividends_percent=round_obj.dividends_percent,
            keys_counter=round_obj.keys_counter,
            total_out=round_obj.total_out,
            count_validated_keys=round_obj.count_validated_keys,
            rolled_over=round_obj.rolled_over,
            state=RoundManager.round_state(round_obj, now)
        )

    except RoundNotFound:
        raise HTTPException(status_code=404, detail="Round not found")
    except Exception as e:
        logger.error(f"Failed to get round info: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{round_number}/keys/{address}", response_model=AddressKeysResponse)
def get_address_keys(round_number: int, address: str, db: Session = Depends(get_db)):
    """取得地址在某回合持有的 key 數量"""
    try:
        RoundManager.get_round(db, round_number)
        keys = RoundManager.get_address_keys(db, round_number, address)
        return AddressKeysResponse(round_number=round_number, address=address, keys=keys)

    except RoundNotFound:
        raise HTTPException(status_code=404, detail="Round not found")
    except Exception as e:
        logger.error(f"Failed to get address keys: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{round_number}/withdraw-bank", response_model=AmountResponse)
def withdraw_bank(
    round_number: int,
    claim: WithdrawBankRequest,
    db: Session = Depends(get_db),
    transfer: ValueTransfer = Depends(get_transfer),
    now: int = Depends(current_timestamp)
):
    """
    leader 領取冠軍獎金

    前置條件：
    - 回合必須已經過去（round_number < 目前回合）
    - 呼叫者是該回合尚未領獎的 leader
    """
    try:
        amount = SettlementManager.withdraw_bank(
            db,
            claim.address,
            round_number,
            now=now,
            transfer=transfer
        )
        return AmountResponse(amount=amount)

    except RoundNotFound:
        raise HTTPException(status_code=404, detail="Round not found")
    except InvalidParameter as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransferFailure as e:
        raise HTTPException(status_code=502, detail=f"Transfer failed: {e}")
    except ArithmeticFault as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to withdraw bank: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{round_number}/rollover", response_model=AmountResponse)
def rollover_round(
    round_number: int,
    db: Session = Depends(get_db),
    now: int = Depends(current_timestamp)
):
    """
    嘗試把已結清回合的剩餘款項滾入目前回合（冪等）

    返回：
        - amount: 這次滾入的金額（已滾入過或條件不成立為 0）
    """
    try:
        amount = SettlementManager.try_rollover(db, round_number, now=now)
        return AmountResponse(amount=amount)

    except RoundNotFound:
        raise HTTPException(status_code=404, detail="Round not found")
    except InvalidParameter as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to roll over round: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
