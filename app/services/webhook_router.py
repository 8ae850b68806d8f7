"""
Webhook event routing.
Verifies a delivery and hands the typed event to exactly one reconciler operation.
"""
import logging

from app.services.exceptions import UnrecognizedEventType
from app.services.stripe_events import (
    CheckoutCompleted,
    InvoicePaymentSucceeded,
    SubscriptionDeleted,
    UnrecognizedEvent,
    WebhookVerifier,
)
from app.services.subscription_service import SubscriptionReconciler

logger = logging.getLogger(__name__)


class WebhookRouter:
    """Entry point for inbound Stripe deliveries."""

    def __init__(self, verifier: WebhookVerifier, reconciler: SubscriptionReconciler):
        self.verifier = verifier
        self.reconciler = reconciler

    def handle(self, payload: bytes, sig_header) -> dict:
        """Verify and process one webhook delivery.

        Args:
            payload: Raw request body
            sig_header: Stripe-Signature header value

        Returns:
            Dict with event type, event id and whether a handler ran

        Raises:
            InvalidSignature: If verification fails
            MissingMetadata: If the event cannot be reconciled
            StoreWriteError: If the subscription write fails
        """
        event = self.verifier.verify(payload, sig_header)
        try:
            handled = self.dispatch(event)
        except UnrecognizedEventType as e:
            logger.warning(f'{e} ({event.event_id})')
            handled = False
        return {
            'event_type': event.event_type,
            'event_id': event.event_id,
            'handled': handled,
        }

    def dispatch(self, event) -> bool:
        """Invoke the handler for ``event``.

        Raises:
            UnrecognizedEventType: For event types this service ignores
            TypeError: If ``event`` is not a billing event variant
        """
        if isinstance(event, CheckoutCompleted):
            self.reconciler.apply_checkout_completed(
                identity=event.identity,
                plan=event.plan,
                metadata=event.metadata,
                anchor=event.created,
                customer_id=event.customer_id,
                subscription_id=event.subscription_id,
            )
        elif isinstance(event, InvoicePaymentSucceeded):
            self.reconciler.apply_invoice_payment_succeeded(
                end_at=event.period_end,
                customer_id=event.customer_id,
                subscription_id=event.subscription_id,
                email=event.email,
                start_date=event.period_start,
            )
        elif isinstance(event, SubscriptionDeleted):
            self.reconciler.apply_subscription_deleted(event.subscription_id)
        elif isinstance(event, UnrecognizedEvent):
            raise UnrecognizedEventType(event.event_type)
        else:
            raise TypeError(f'Unknown billing event variant: {type(event).__name__}')
        return True
