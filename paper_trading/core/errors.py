"""
예외 정의.

[ 분류 ]
    LedgerError          - 원장(PortfolioLedger) 검증 실패. 상태 변경 없이 즉시 호출자에게 전달.
      InsufficientFunds    매수 금액 > 가용 현금
      InsufficientPosition 매도 수량 > 보유 수량 (또는 포지션 없음)
      InvalidQuantity      수량 <= 0 또는 유한하지 않은 값
      InvalidPrice         가격 < 0 또는 유한하지 않은 값
      InvalidCapital       시작 자금 <= 0 또는 허용 범위 밖
      SessionNotStarted    start() 전에 주문 (TradingSession)

    FeedError            - 외부 시세 피드 실패. data/market_data.py에서 잡아 STALE/UNAVAILABLE로 변환.
    StoreError           - 저장소 실패. storage/repository.py에서 잡아 로그만 남김.
"""


class LedgerError(Exception):
    """원장 연산 검증 실패의 공통 부모."""


class InsufficientFunds(LedgerError):
    def __init__(self, required: float, available: float):
        self.required = required
        self.available = available
        super().__init__(f"Insufficient funds: required {required:,.2f}, available {available:,.2f}")


class InsufficientPosition(LedgerError):
    def __init__(self, asset: str, requested: float, held: float):
        self.asset = asset
        self.requested = requested
        self.held = held
        super().__init__(f"Insufficient position in {asset}: requested {requested}, held {held}")


class InvalidQuantity(LedgerError):
    def __init__(self, quantity: float):
        self.quantity = quantity
        super().__init__(f"Invalid quantity: {quantity!r} (must be > 0)")


class InvalidPrice(LedgerError):
    def __init__(self, price: float):
        self.price = price
        super().__init__(f"Invalid price: {price!r} (must be >= 0)")


class InvalidCapital(LedgerError):
    def __init__(self, capital: float, reason: str = "must be > 0"):
        self.capital = capital
        super().__init__(f"Invalid starting capital: {capital!r} ({reason})")


class FeedError(Exception):
    """시세 피드 조회 실패."""


class StoreError(Exception):
    """스냅샷 저장소 읽기/쓰기 실패."""


class SessionNotStarted(LedgerError):
    def __init__(self):
        super().__init__("Trading session has not been started")
