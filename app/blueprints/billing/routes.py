"""
Billing routes - Stripe webhook endpoint.
Mounted at /api/webhook (legacy path) and /api/webhook/stripe.
"""
from flask import current_app, jsonify, request

from app.blueprints.billing import billing_bp
from app.extensions import limiter
from app.services.exceptions import (
    InvalidSignature, MissingMetadata, StoreWriteError,
)


def _error(exc, status=None):
    return jsonify({'error': {'code': exc.code, 'message': exc.message}}), status or exc.status_code


@billing_bp.route('', methods=['POST'])
@billing_bp.route('/stripe', methods=['POST'])
@limiter.limit('100 per minute')
def webhook():
    """Handle Stripe webhook events.

    Verified via Stripe signature over the raw body.
    200 for processed or ignored events, 400 for deliveries that can never
    succeed, 500 when Stripe should redeliver.
    """
    payload = request.get_data(cache=False)
    sig_header = request.headers.get('Stripe-Signature')
    router = current_app.extensions['webhook_router']

    try:
        result = router.handle(payload, sig_header)
    except InvalidSignature as e:
        current_app.logger.warning(f'Webhook signature verification failed: {e}')
        return _error(e)
    except MissingMetadata as e:
        current_app.logger.error(f'Webhook rejected, billing provider misconfigured: {e}')
        return _error(e)
    except StoreWriteError as e:
        current_app.logger.error(f'Webhook store write failed, requesting redelivery: {e}')
        return _error(e)

    current_app.logger.info(
        f'Webhook processed: {result["event_type"]} {result["event_id"]} (handled={result["handled"]})'
    )
    return jsonify({'received': True}), 200
