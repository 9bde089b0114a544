"""CRUD singletons for the application."""

from .crud_billing_customer import billing_customer
from .crud_billing_event import billing_event
from .crud_invoice import invoice
from .crud_payment_method import payment_method
from .crud_plan import plan
from .crud_subscription import subscription

__all__ = [
    "billing_customer",
    "billing_event",
    "invoice",
    "payment_method",
    "plan",
    "subscription",
]
