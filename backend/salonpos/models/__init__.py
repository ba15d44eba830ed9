from .line_items import LineItems, ServiceLine, ProductLine
from .transactions import Transaction, TransactionStatus, PaymentMethod
from .promotions import (
    Promotion,
    PromotionClientUse,
    PromotionRedemption,
    DiscountType,
    ApplicableTo,
    UsageType,
)
from .deposits import Deposit, DepositStatus, ValidationStatus

__all__ = [
    'LineItems', 'ServiceLine', 'ProductLine',
    'Transaction', 'TransactionStatus', 'PaymentMethod',
    'Promotion', 'PromotionClientUse', 'PromotionRedemption',
    'DiscountType', 'ApplicableTo', 'UsageType',
    'Deposit', 'DepositStatus', 'ValidationStatus',
]
