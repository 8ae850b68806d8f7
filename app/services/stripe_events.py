"""
Stripe webhook verification and typed billing events.

The verifier checks the Stripe-Signature header against the exact raw
request body, then ``parse_event`` turns the JSON payload into one of the
event variants below. Nothing else in the service reads the raw payload.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import stripe

from app.services.exceptions import InvalidPayload, InvalidSignature, MissingSecret
from app.utils.dates import from_timestamp

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = 'checkout.session.completed'
INVOICE_PAYMENT_SUCCEEDED = 'invoice.payment_succeeded'
INVOICE_PAID = 'invoice.paid'
SUBSCRIPTION_DELETED = 'customer.subscription.deleted'

# Earlier checkout sessions carried the identity under these keys
IDENTITY_METADATA_KEYS = ('identity', 'email', 'discord_id')


@dataclass(frozen=True)
class BillingEvent:
    """Base class of the event variants."""
    event_id: Optional[str]
    created: Optional[datetime]

    event_type = None


@dataclass(frozen=True)
class CheckoutCompleted(BillingEvent):
    identity: Optional[str]
    plan: Optional[str]
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    customer_email: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    event_type = CHECKOUT_COMPLETED


@dataclass(frozen=True)
class InvoicePaymentSucceeded(BillingEvent):
    email: Optional[str]
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None

    event_type = INVOICE_PAYMENT_SUCCEEDED


@dataclass(frozen=True)
class SubscriptionDeleted(BillingEvent):
    subscription_id: Optional[str]

    event_type = SUBSCRIPTION_DELETED


@dataclass(frozen=True)
class UnrecognizedEvent(BillingEvent):
    type_name: str = ''

    @property
    def event_type(self):
        return self.type_name


def _identity_from_metadata(metadata):
    for key in IDENTITY_METADATA_KEYS:
        value = metadata.get(key)
        if value:
            return str(value).strip()
    return None


def _invoice_subscription_id(invoice):
    """Subscription id of an invoice, old and new API layouts."""
    if invoice.get('subscription'):
        return invoice['subscription']
    details = (invoice.get('parent') or {}).get('subscription_details') or {}
    return details.get('subscription')


def _invoice_period(invoice):
    lines = (invoice.get('lines') or {}).get('data') or []
    if not lines:
        return None, None
    period = lines[0].get('period') or {}
    return from_timestamp(period.get('start')), from_timestamp(period.get('end'))


def parse_event(raw: dict) -> BillingEvent:
    """Build the typed event for a decoded Stripe event payload.

    Args:
        raw: Decoded JSON of a verified Stripe event

    Returns:
        One of CheckoutCompleted, InvoicePaymentSucceeded,
        SubscriptionDeleted or UnrecognizedEvent

    Raises:
        InvalidPayload: If the payload has no type or data object
    """
    event_type = raw.get('type')
    data = raw.get('data')
    if not event_type or not isinstance(data, dict) or not isinstance(data.get('object'), dict):
        raise InvalidPayload('Event payload has no type or data object')

    obj = data['object']
    event_id = raw.get('id')
    created = from_timestamp(raw.get('created'))

    if event_type == CHECKOUT_COMPLETED:
        metadata = obj.get('metadata') or {}
        customer_email = obj.get('customer_email') or (obj.get('customer_details') or {}).get('email')
        return CheckoutCompleted(
            event_id=event_id,
            created=created,
            identity=_identity_from_metadata(metadata),
            plan=metadata.get('plan'),
            customer_id=obj.get('customer'),
            subscription_id=obj.get('subscription'),
            customer_email=customer_email,
            metadata=dict(metadata),
        )

    if event_type in (INVOICE_PAYMENT_SUCCEEDED, INVOICE_PAID):
        period_start, period_end = _invoice_period(obj)
        return InvoicePaymentSucceeded(
            event_id=event_id,
            created=created,
            email=obj.get('customer_email'),
            customer_id=obj.get('customer'),
            subscription_id=_invoice_subscription_id(obj),
            period_start=period_start,
            period_end=period_end,
        )

    if event_type == SUBSCRIPTION_DELETED:
        return SubscriptionDeleted(
            event_id=event_id,
            created=created,
            subscription_id=obj.get('id'),
        )

    return UnrecognizedEvent(event_id=event_id, created=created, type_name=event_type)


class WebhookVerifier:
    """Validates Stripe webhook deliveries with the shared signing secret."""

    def __init__(self, secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE):
        if not secret:
            raise MissingSecret('STRIPE_WEBHOOK_SECRET')
        self._secret = secret
        self.tolerance = tolerance

    def verify(self, payload: bytes, sig_header: Optional[str]) -> BillingEvent:
        """Verify a raw delivery and return its typed event.

        Args:
            payload: Raw request body, exactly as received
            sig_header: Stripe-Signature header value

        Raises:
            InvalidSignature: Header absent or signature mismatch
            InvalidPayload: Signed body is not a Stripe event
        """
        if not sig_header:
            raise InvalidSignature('Missing Stripe-Signature header')

        try:
            body = payload.decode('utf-8') if isinstance(payload, bytes) else payload
        except UnicodeDecodeError:
            raise InvalidPayload('Webhook body is not valid UTF-8')

        try:
            stripe.WebhookSignature.verify_header(body, sig_header, self._secret, self.tolerance)
        except stripe.SignatureVerificationError as e:
            raise InvalidSignature(f'Invalid webhook signature: {e}')

        try:
            raw = json.loads(body)
        except ValueError:
            raise InvalidPayload('Webhook body is not JSON')
        if not isinstance(raw, dict):
            raise InvalidPayload('Webhook body is not a JSON object')

        return parse_event(raw)
