"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理
"""


class KeyGameException(Exception):
    """所有遊戲異常的基類"""
    pass


# ============ 算術異常 ============

class ArithmeticFault(KeyGameException):
    """checked 算術失敗，整個操作必須回滾"""
    pass


class ArithmeticOverflow(ArithmeticFault):
    """結果超出 uint256 範圍"""
    pass


class ArithmeticUnderflow(ArithmeticFault):
    """減法結果小於 0"""
    pass


class DivisionByZero(ArithmeticFault):
    """除以 0"""
    pass


# ============ 權限異常 ============

class AuthorizationDenied(KeyGameException):
    """呼叫者沒有所需的角色（owner / admin）"""
    def __init__(self, address, role="owner or admin"):
        self.address = address
        self.role = role
        super().__init__(f"Address {address} is not {role}")


# ============ 參數異常 ============

class InvalidParameter(KeyGameException):
    """參數不合法，在任何狀態變更之前拒絕"""
    pass


class RoundNotEnded(InvalidParameter):
    """回合尚未結束（必須是已經過去的回合）"""
    def __init__(self, round_number):
        self.round_number = round_number
        super().__init__(f"Round {round_number} has not ended yet")


class NotRoundLeader(InvalidParameter):
    """呼叫者不是該回合待領獎的 leader"""
    def __init__(self, round_number, address):
        self.round_number = round_number
        self.address = address
        super().__init__(f"Address {address} is not the unpaid leader of round {round_number}")


class InsufficientPayment(InvalidParameter):
    """付款金額連一把 key 都買不到"""
    pass


class GamePaused(InvalidParameter):
    """遊戲暫停中，不接受購買"""
    pass


# ============ 領取 / 轉帳異常 ============

class NothingToClaim(KeyGameException):
    """沒有可領取的分紅（與轉帳失敗區分）"""
    def __init__(self, address):
        self.address = address
        super().__init__(f"Nothing to claim for {address}")


class TransferFailure(KeyGameException):
    """對外轉帳失敗，整個操作回滾"""
    pass


# ============ 狀態異常 ============

class RoundNotFound(KeyGameException):
    """回合不存在"""
    def __init__(self, round_number):
        self.round_number = round_number
        super().__init__(f"Round {round_number} not found")


class GameNotInitialized(KeyGameException):
    """遊戲狀態尚未建立（init_game 還沒執行）"""
    pass
