"""
Key API Endpoints

職責：
1. 購買 key
2. 查詢目前 key 價格
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import BuyKeysRequest, BuyKeysResponse, KeyPriceResponse
from core.key_manager import KeyManager
from core.round_manager import RoundManager, current_timestamp
from core.exceptions import (
    ArithmeticFault,
    GameNotInitialized,
    InvalidParameter,
    TransferFailure
)
from services.transfer_service import ValueTransfer, get_transfer

router = APIRouter(prefix="/api/keys", tags=["keys"])
logger = logging.getLogger(__name__)


@router.post("/buy", response_model=BuyKeysResponse)
def buy_keys(
    purchase: BuyKeysRequest,
    db: Session = Depends(get_db),
    transfer: ValueTransfer = Depends(get_transfer),
    now: int = Depends(current_timestamp)
):
    """
    購買 key

    前置條件：
    - amount 已由外部付款層確認收到
    - 遊戲沒有暫停

    流程：
    1. 同步回合（目前回合已結束就開新回合）
    2. 計算可購買的 key 數量，多餘的金額退回
    3. 付款者成為目前回合的 leader
    """
    try:
        result = KeyManager.buy_keys(
            db,
            purchase.payer,
            purchase.amount,
            now=now,
            transfer=transfer
        )
        return BuyKeysResponse(**result._asdict())

    except InvalidParameter as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransferFailure as e:
        raise HTTPException(status_code=502, detail=f"Refund failed: {e}")
    except ArithmeticFault as e:
        raise HTTPException(status_code=422, detail=str(e))
    except GameNotInitialized:
        raise HTTPException(status_code=503, detail="Game not initialized")
    except Exception as e:
        logger.error(f"Failed to buy keys: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/price", response_model=KeyPriceResponse)
def get_key_price(db: Session = Depends(get_db)):
    """取得目前回合的下一把 key 價格"""
    try:
        state = RoundManager.get_state(db)
        return KeyPriceResponse(round_number=state.cur_round, key_price=state.cur_key_price)

    except GameNotInitialized:
        raise HTTPException(status_code=503, detail="Game not initialized")
    except Exception as e:
        logger.error(f"Failed to get key price: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
