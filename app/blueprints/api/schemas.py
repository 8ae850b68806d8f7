"""
Marshmallow schemas for API serialization.
"""
from marshmallow import Schema, fields


class BaseSchema(Schema):
    """Base schema with common config."""
    class Meta:
        ordered = True


class SubscriptionSchema(BaseSchema):
    """Subscription record as seen by its owner."""
    email = fields.Str()
    plan = fields.Str()
    customer_id = fields.Str(allow_none=True)
    subscription_id = fields.Str(allow_none=True)
    start_date = fields.DateTime(format='iso', allow_none=True)
    end_at = fields.DateTime(format='iso', allow_none=True)
    is_active = fields.Bool()
    is_current = fields.Bool(dump_only=True)
    days_remaining = fields.Int(dump_only=True, allow_none=True)
    created_at = fields.DateTime(format='iso')


class ProfileSchema(BaseSchema):
    """Profile fields exposed to the signed-in user."""
    id = fields.Str(dump_only=True)
    email = fields.Email()
    display_name = fields.Str(allow_none=True)
    image_url = fields.Str(allow_none=True)
    created_at = fields.DateTime(format='iso')
