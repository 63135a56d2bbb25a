"""
Pydantic schemas：API request / response 格式

金額與 key 數量都是 uint256，JSON 以整數傳輸
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from models import RoundState


# ============ Keys ============

class BuyKeysRequest(BaseModel):
    payer: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0)


class BuyKeysResponse(BaseModel):
    round_number: int
    keys_bought: int
    remainder: int
    key_price: int
    end_timestamp: int


class KeyPriceResponse(BaseModel):
    round_number: int
    key_price: int


# ============ Rounds ============

class RoundCurrentResponse(BaseModel):
    round_number: int
    key_price: int
    state: RoundState
    end_timestamp: int


class RoundInfoResponse(BaseModel):
    round_number: int
    end_timestamp: int
    leader: Optional[str] = None
    winner_paid: bool
    round_bank: int
    dividends_percent: int
    keys_counter: int
    total_out: int
    count_validated_keys: int
    rolled_over: bool
    state: RoundState


class AddressKeysResponse(BaseModel):
    round_number: int
    address: str
    keys: int


class WithdrawBankRequest(BaseModel):
    address: str = Field(..., min_length=1)


class AmountResponse(BaseModel):
    amount: int


# ============ Dividends ============

class DividendsResponse(BaseModel):
    address: str
    amount: int
    checkpoint: int


class PayoutEntry(BaseModel):
    amount: int
    reason: str
    round_number: Optional[int] = None
    created_at: Optional[datetime] = None


class KeyHoldingEntry(BaseModel):
    round_number: int
    keys: int


class AccountHistoryResponse(BaseModel):
    address: str
    payouts: List[PayoutEntry]
    keys: List[KeyHoldingEntry]


# ============ Admin ============

class ValueUpdate(BaseModel):
    value: int = Field(..., ge=0)


class AdminUpdate(BaseModel):
    address: str = Field(..., min_length=1)


class ConfigResponse(BaseModel):
    dividends_percent: int
    start_key_price: int
    price_increasing_percent: int
    paused: bool


class StatusResponse(BaseModel):
    status: str
