"""
Services package for premium community billing.
Contains business logic separated from routes.
"""

from app.services.subscription_service import SubscriptionReconciler
from app.services.webhook_router import WebhookRouter
from app.services.stripe_events import WebhookVerifier
from app.services.user_directory import UserDirectory
from app.services.role_grants import RoleGrantService, DiscordRoleClient

__all__ = [
    'SubscriptionReconciler',
    'WebhookRouter',
    'WebhookVerifier',
    'UserDirectory',
    'RoleGrantService',
    'DiscordRoleClient',
]
