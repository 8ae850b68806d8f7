# =============================================================================
# Premium Billing - Pytest Fixtures Configuration
# =============================================================================

import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta, timezone

import jwt as pyjwt
import pytest

from app import create_app
from app.extensions import db
from app.models.profile import Profile
from app.models.subscription import Subscription

WEBHOOK_SECRET = 'whsec_test_fake_secret'
DISCORD_MEMBER_ID = '112233445566778899'


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture(scope='function')
def app():
    """Create and configure test application with SQLite in-memory database."""
    application = create_app('testing')

    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Test client for HTTP requests."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    """CLI test runner."""
    return app.test_cli_runner()


@pytest.fixture
def reconciler(app):
    """The reconciler wired into the app (role grants disabled)."""
    return app.extensions['subscription_reconciler']


# =============================================================================
# Directory Fixtures
# =============================================================================

@pytest.fixture
def profile(app):
    """Profile linked to a Discord member."""
    entry = Profile(
        id='0b9a3c1e-5f2d-4e8a-9c7b-1d2e3f4a5b6c',
        email='member@example.com',
        display_name='Member',
        discord_id=DISCORD_MEMBER_ID,
    )
    db.session.add(entry)
    db.session.commit()
    return entry


@pytest.fixture
def subscription(app):
    """Active monthly subscription tied to Stripe."""
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    record = Subscription(
        email='member@example.com',
        plan='monthly',
        customer_id='cus_existing',
        subscription_id='sub_existing',
        start_date=now - timedelta(days=3),
        end_at=now + timedelta(days=27),
        is_active=True,
        created_at=now - timedelta(days=90),
    )
    db.session.add(record)
    db.session.commit()
    return record


# =============================================================================
# Stripe Helpers
# =============================================================================

def sign_payload(payload: bytes, secret=WEBHOOK_SECRET, timestamp=None):
    """Build a Stripe-Signature header for ``payload``."""
    timestamp = timestamp or int(time.time())
    signed = f'{timestamp}.'.encode() + payload
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f't={timestamp},v1={signature}'


def make_event(event_type, obj, event_id='evt_test_1', created=1760000000):
    """Stripe event envelope around a data object."""
    return {
        'id': event_id,
        'object': 'event',
        'type': event_type,
        'created': created,
        'data': {'object': obj},
    }


def checkout_event(identity='u1', plan='monthly', **kwargs):
    metadata = {}
    if identity is not None:
        metadata['identity'] = identity
    if plan is not None:
        metadata['plan'] = plan
    obj = {
        'id': 'cs_test_1',
        'object': 'checkout.session',
        'metadata': metadata,
        'customer': kwargs.pop('customer', 'cus_test_1'),
        'subscription': kwargs.pop('subscription', 'sub_test_1'),
        'customer_email': kwargs.pop('customer_email', None),
    }
    return make_event('checkout.session.completed', obj, **kwargs)


def invoice_event(email='member@example.com', period_end=1762678400, period_start=1760000000, **kwargs):
    obj = {
        'id': 'in_test_1',
        'object': 'invoice',
        'customer': kwargs.pop('customer', 'cus_test_1'),
        'subscription': kwargs.pop('subscription', 'sub_test_1'),
        'customer_email': email,
        'lines': {'data': [{'period': {'start': period_start, 'end': period_end}}]},
    }
    return make_event('invoice.payment_succeeded', obj, **kwargs)


def deleted_event(subscription_id='sub_existing', **kwargs):
    obj = {'id': subscription_id, 'object': 'subscription', 'status': 'canceled'}
    return make_event('customer.subscription.deleted', obj, **kwargs)


@pytest.fixture
def post_event(client):
    """POST a signed event to the webhook endpoint."""
    def _post(event, path='/api/webhook/stripe', signature=None):
        payload = json.dumps(event).encode()
        headers = {'Stripe-Signature': signature or sign_payload(payload)}
        return client.post(path, data=payload, headers=headers, content_type='application/json')
    return _post


# =============================================================================
# Auth Helpers
# =============================================================================

def supabase_token(subject, secret='test-supabase-jwt-secret-with-32-bytes!', expires_in=3600, audience='authenticated'):
    """Access token shaped like the ones Supabase issues."""
    now = datetime.now(timezone.utc)
    payload = {
        'sub': subject,
        'aud': audience,
        'role': 'authenticated',
        'iat': now,
        'exp': now + timedelta(seconds=expires_in),
    }
    return pyjwt.encode(payload, secret, algorithm='HS256')
