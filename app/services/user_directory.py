"""
User directory lookups over the profiles and subscription tables.
"""
from sqlalchemy import func, or_

from app.models.profile import Profile
from app.models.subscription import Subscription
from app.services.exceptions import ProfileNotFound


class UserDirectory:
    """Finds profiles and subscription records by identity key."""

    def __init__(self, session):
        self.session = session

    def find_by_identity(self, key) -> Profile:
        """Find a profile by email, Discord id or profile id.

        Raises:
            ProfileNotFound: If nothing matches
        """
        key = (key or '').strip()
        if not key:
            raise ProfileNotFound(key)

        profile = self.session.query(Profile).filter(or_(
            func.lower(Profile.email) == key.lower(),
            Profile.discord_id == key,
            Profile.id == key,
        )).first()
        if profile is None:
            raise ProfileNotFound(key)
        return profile

    def find_by_id(self, profile_id) -> Profile:
        """Find a profile by its hosted-auth user id."""
        profile = self.session.get(Profile, profile_id)
        if profile is None:
            raise ProfileNotFound(profile_id)
        return profile

    def find_subscription(self, identity):
        """Subscription record for an identity key, or None."""
        if not identity:
            return None
        return self.session.query(Subscription).filter_by(email=identity).first()

    def iter_subscriptions(self):
        """All subscription records, oldest first."""
        return self.session.query(Subscription).order_by(Subscription.id).all()
