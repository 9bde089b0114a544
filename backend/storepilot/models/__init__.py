"""Models for the application."""

from ._base import Base
from .billing_customer import BillingCustomer
from .billing_event import BillingEvent
from .invoice import Invoice
from .payment_method import PaymentMethod
from .plan import Plan
from .subscription import Subscription

__all__ = [
    "Base",
    "BillingCustomer",
    "BillingEvent",
    "Invoice",
    "PaymentMethod",
    "Plan",
    "Subscription",
]
