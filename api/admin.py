"""
Admin API Endpoints（owner / admin 限定）

呼叫者地址由外部權限層驗證後放在 X-Caller-Address header
"""
from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from models import GameState
from schemas import ValueUpdate, AdminUpdate, ConfigResponse, StatusResponse
from core.config_manager import ConfigManager
from core.round_manager import RoundManager
from core.exceptions import AuthorizationDenied, InvalidParameter, GameNotInitialized

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = logging.getLogger(__name__)


def _config_response(state: GameState) -> ConfigResponse:
    return ConfigResponse(
        dividends_percent=state.dividends_percent,
        start_key_price=state.start_key_price,
        price_increasing_percent=state.price_increasing_percent,
        paused=state.paused
    )


def _run_config_change(action, *args):
    """執行設定操作並把業務異常轉成 HTTP 錯誤"""
    try:
        return action(*args)

    except AuthorizationDenied as e:
        raise HTTPException(status_code=403, detail=str(e))
    except InvalidParameter as e:
        raise HTTPException(status_code=400, detail=str(e))
    except GameNotInitialized:
        raise HTTPException(status_code=503, detail="Game not initialized")
    except Exception as e:
        logger.error(f"Config change {action.__name__} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/config", response_model=ConfigResponse)
def get_config(db: Session = Depends(get_db)):
    try:
        return _config_response(RoundManager.get_state(db))

    except GameNotInitialized:
        raise HTTPException(status_code=503, detail="Game not initialized")
    except Exception as e:
        logger.error(f"Failed to get config: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.put("/dividends-percent", response_model=ConfigResponse)
def set_dividends_percent(
    update: ValueUpdate,
    caller: str = Header(..., alias="X-Caller-Address"),
    db: Session = Depends(get_db)
):
    """設定新回合的分紅比例（必須 < 100，已建立的回合不受影響）"""
    state = _run_config_change(ConfigManager.set_dividends_percent, db, caller, update.value)
    return _config_response(state)


@router.put("/start-key-price", response_model=ConfigResponse)
def set_start_key_price(
    update: ValueUpdate,
    caller: str = Header(..., alias="X-Caller-Address"),
    db: Session = Depends(get_db)
):
    state = _run_config_change(ConfigManager.set_start_key_price, db, caller, update.value)
    return _config_response(state)


@router.put("/price-increasing-percent", response_model=ConfigResponse)
def set_price_increasing_percent(
    update: ValueUpdate,
    caller: str = Header(..., alias="X-Caller-Address"),
    db: Session = Depends(get_db)
):
    state = _run_config_change(ConfigManager.set_price_increasing_percent, db, caller, update.value)
    return _config_response(state)


@router.post("/pause", response_model=ConfigResponse)
def pause(caller: str = Header(..., alias="X-Caller-Address"), db: Session = Depends(get_db)):
    state = _run_config_change(ConfigManager.set_paused, db, caller, True)
    return _config_response(state)


@router.post("/unpause", response_model=ConfigResponse)
def unpause(caller: str = Header(..., alias="X-Caller-Address"), db: Session = Depends(get_db)):
    state = _run_config_change(ConfigManager.set_paused, db, caller, False)
    return _config_response(state)


@router.post("/admins", response_model=StatusResponse)
def add_admin(
    admin: AdminUpdate,
    caller: str = Header(..., alias="X-Caller-Address"),
    db: Session = Depends(get_db)
):
    """新增 admin（owner 限定）"""
    _run_config_change(ConfigManager.add_admin, db, caller, admin.address)
    return StatusResponse(status="ok")


@router.delete("/admins/{address}", response_model=StatusResponse)
def remove_admin(
    address: str,
    caller: str = Header(..., alias="X-Caller-Address"),
    db: Session = Depends(get_db)
):
    """移除 admin（owner 限定）"""
    removed = _run_config_change(ConfigManager.remove_admin, db, caller, address)
    if not removed:
        raise HTTPException(status_code=404, detail="Admin not found")
    return StatusResponse(status="ok")
