"""
權限檢查：owner / admin 角色

- owner 來自 Settings.owner_address
- admin 存在 admins 表，只有 owner 能新增 / 移除
"""
from sqlalchemy.orm import Session

from models import Admin
from core.exceptions import AuthorizationDenied
from database import get_settings


def is_owner(address: str) -> bool:
    return address == get_settings().owner_address


def is_admin(db: Session, address: str) -> bool:
    return db.query(Admin).filter(Admin.address == address).first() is not None


def is_owner_or_admin(db: Session, address: str) -> bool:
    return is_owner(address) or is_admin(db, address)


def require_owner(address: str) -> None:
    """
    異常：
        AuthorizationDenied: 呼叫者不是 owner
    """
    if not is_owner(address):
        raise AuthorizationDenied(address, role="owner")


def require_owner_or_admin(db: Session, address: str) -> None:
    """
    異常：
        AuthorizationDenied: 呼叫者既不是 owner 也不是 admin
    """
    if not is_owner_or_admin(db, address):
        raise AuthorizationDenied(address)
