"""Typed failures raised by the credit services; routes map them onto HTTP statuses."""


class CreditEngineError(Exception):
    status_code = 500
    code = "credit_engine_error"

    def __init__(self, message: str = "", *, code: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        if code:
            self.code = code


class NotFoundError(CreditEngineError):
    status_code = 404
    code = "not_found"


class InsufficientCreditsError(CreditEngineError):
    status_code = 402
    code = "insufficient_credits"

    def __init__(self, *, balance: int, required: int):
        super().__init__(f"Insufficient credits: balance {balance}, required {required}")
        self.balance = balance
        self.required = required


class PurchaseValidationError(CreditEngineError):
    status_code = 400
    code = "purchase_invalid"

    def __init__(self, code: str, message: str):
        super().__init__(message, code=code)


class ThresholdNotReachedError(CreditEngineError):
    status_code = 400
    code = "threshold_not_reached"


class InvalidBoostError(CreditEngineError):
    status_code = 400
    code = "invalid_boost"


class AlreadyViewedTodayError(CreditEngineError):
    status_code = 409
    code = "already_viewed_today"
