"""
SQLAlchemy models for premium community billing.
All models are imported here for easy access.
"""
from app.models.profile import Profile
from app.models.subscription import Subscription

__all__ = [
    'Profile',
    'Subscription',
]
