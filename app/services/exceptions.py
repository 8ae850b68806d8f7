"""
Billing exception taxonomy.
Each error carries the HTTP status the webhook endpoint answers with.
"""


class BillingError(Exception):
    """Base class for webhook and reconciliation errors."""

    status_code = 500
    code = 'billing_error'

    def __init__(self, message=None):
        self.message = message or self.__class__.__doc__
        super().__init__(self.message)


class InvalidSignature(BillingError):
    """Webhook signature is missing or does not match."""

    status_code = 400
    code = 'invalid_signature'


class InvalidPayload(InvalidSignature):
    """Webhook body is not a Stripe event object."""

    code = 'invalid_payload'


class MissingMetadata(BillingError):
    """Event lacks the identity or plan needed to reconcile a subscription."""

    status_code = 400
    code = 'missing_metadata'

    def __init__(self, missing, event_type=None):
        self.missing = list(missing)
        self.event_type = event_type
        where = f' in {event_type}' if event_type else ''
        super().__init__(f"Missing {', '.join(self.missing)}{where}")


class MissingSecret(BillingError):
    """A required secret is not configured."""

    code = 'missing_secret'

    def __init__(self, name):
        self.name = name
        super().__init__(f'{name} is not configured')


class StoreWriteError(BillingError):
    """Writing the subscription record failed (transient, redelivery wanted)."""

    status_code = 500
    code = 'store_write_failed'


class RoleGrantError(BillingError):
    """Community-platform role update failed."""

    code = 'role_grant_failed'

    def __init__(self, message, member_id=None, status=None):
        self.member_id = member_id
        self.status = status
        super().__init__(message)


class ProfileNotFound(BillingError):
    """No profile matches the identity key."""

    status_code = 404
    code = 'profile_not_found'

    def __init__(self, identity):
        self.identity = identity
        super().__init__(f'No profile for identity {identity!r}')


class UnrecognizedEventType(BillingError):
    """Event type this service intentionally ignores."""

    status_code = 200
    code = 'unrecognized_event'

    def __init__(self, event_type):
        self.event_type = event_type
        super().__init__(f'Unhandled event type: {event_type}')
