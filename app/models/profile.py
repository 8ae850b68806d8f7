"""
Profile model: the user directory populated by hosted auth sign-ups.
"""
import uuid

from app.extensions import db
from app.utils.dates import utcnow


class Profile(db.Model):
    """User profile keyed by the hosted-auth user id."""

    __tablename__ = 'profiles'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    display_name = db.Column(db.String(255), nullable=True)
    image_url = db.Column(db.String(1024), nullable=True)

    # Community platform member handle (Discord user snowflake)
    discord_id = db.Column(db.String(32), unique=True, nullable=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f'<Profile {self.email}>'
