from .credits import (
    BalanceResponse,
    BoostRequest,
    BoostResponse,
    CreditPackageResponse,
    CreditTransactionResponse,
    PaymentIntentCreate,
    PaymentIntentResponse,
    PurchaseCompleteRequest,
    PurchaseResponse,
)
from .viewing import (
    CompleteSessionRequest,
    CompleteSessionResponse,
    StartSessionResponse,
    ViewingSessionResponse,
)

__all__ = [
    "BalanceResponse",
    "BoostRequest",
    "BoostResponse",
    "CreditPackageResponse",
    "CreditTransactionResponse",
    "PaymentIntentCreate",
    "PaymentIntentResponse",
    "PurchaseCompleteRequest",
    "PurchaseResponse",
    "CompleteSessionRequest",
    "CompleteSessionResponse",
    "StartSessionResponse",
    "ViewingSessionResponse",
]
