"""Closed value sets shared by models, schemas and services."""

from enum import Enum


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    VIEWED = "VIEWED"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    STRIPE = "STRIPE"
    PAYPAL = "PAYPAL"
    BANK_TRANSFER = "BANK_TRANSFER"
    CASH = "CASH"
    CHECK = "CHECK"
    OTHER = "OTHER"


class RecurringInterval(str, Enum):
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class ActivityAction(str, Enum):
    CREATED = "CREATED"
    SENT = "SENT"
    VIEWED = "VIEWED"
    MARKED_PAID = "MARKED_PAID"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    UPDATED = "UPDATED"
    REMINDER_SENT = "REMINDER_SENT"
    RECURRING_GENERATED = "RECURRING_GENERATED"


class ReminderTone(str, Enum):
    FRIENDLY = "FRIENDLY"
    FIRM = "FIRM"
    FINAL = "FINAL"
