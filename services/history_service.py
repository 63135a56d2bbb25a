"""
Payout history service.

Builds a per-address list of outbound transfers (refunds, dividends,
bank payouts) so clients can render an authoritative log straight
from the server.
"""
from typing import List, Dict, Any

from sqlalchemy.orm import Session

from models import Payout, RoundKeys


def get_payout_history(address: str, db: Session) -> List[Dict[str, Any]]:
    """
    Return the address's payouts, newest first.
    """
    rows = (
        db.query(Payout)
        .filter(Payout.address == address)
        .order_by(Payout.id.desc())
        .all()
    )

    return [
        {
            "amount": payout.amount,
            "reason": payout.reason,
            "round_number": payout.round_number,
            "created_at": payout.created_at,
        }
        for payout in rows
    ]


def get_key_history(address: str, db: Session) -> List[Dict[str, Any]]:
    """
    Return every round the address bought keys in, oldest first.
    """
    rows = (
        db.query(RoundKeys)
        .filter(RoundKeys.address == address)
        .order_by(RoundKeys.round_number)
        .all()
    )

    return [{"round_number": row.round_number, "keys": row.keys} for row in rows]
