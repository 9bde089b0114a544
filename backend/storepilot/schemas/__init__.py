# flake8: noqa: F401
"""Schemas for the application."""

from .billing import SetupSessionRequest, SetupSessionResponse, WebhookResponse
from .billing_customer import BillingCustomerCreate, BillingCustomerUpdate
from .billing_event import BillingEventCreate, EventOutcome
from .invoice import Invoice, InvoiceCreate, InvoiceStatus
from .payment_method import PaymentMethod, PaymentMethodCreate
from .plan import BillingInterval, Plan, PlanCreate, PlanLimits
from .provider_event import ProviderEvent
from .subscription import (
    ChangePlanRequest,
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    CurrentSubscription,
    ProviderSubscriptionState,
    Subscription,
    SubscriptionCreate,
    SubscriptionStatus,
    SubscriptionUpdate,
    SubscriptionWithPlan,
)
