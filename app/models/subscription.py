"""
Subscription model for premium community billing.
One row per identity key, reconciled from Stripe webhook events.
"""
from app.extensions import db
from app.utils.dates import utcnow


class Subscription(db.Model):
    """Paid access record for one identity (email or platform id)."""

    __tablename__ = 'subscription'
    __table_args__ = (
        db.CheckConstraint(
            'end_at IS NULL OR start_date IS NULL OR end_at >= start_date',
            name='ck_subscription_period_order',
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)

    plan = db.Column(db.String(50), nullable=False, default='monthly')

    # Stripe IDs
    customer_id = db.Column(db.String(255), nullable=True)
    # Checkout and invoice rows for one Stripe subscription may sit under
    # different identity keys (platform id vs. billing email)
    subscription_id = db.Column(db.String(255), nullable=True, index=True)

    # Paid period
    start_date = db.Column(db.DateTime, nullable=True)
    end_at = db.Column(db.DateTime, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Timestamps
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=True, onupdate=utcnow)

    def __repr__(self):
        return f'<Subscription {self.email} plan={self.plan} active={self.is_active}>'

    @property
    def is_current(self):
        """Active and not past its end date."""
        if not self.is_active:
            return False
        if self.end_at is None:
            return True
        return self.end_at > utcnow()

    @property
    def days_remaining(self):
        """Days left in the paid period. None without an end date."""
        if not self.end_at:
            return None
        delta = self.end_at.date() - utcnow().date()
        return max(0, delta.days)

    def to_dict(self):
        """Serialize subscription to dict."""
        return {
            'id': self.id,
            'email': self.email,
            'plan': self.plan,
            'customer_id': self.customer_id,
            'subscription_id': self.subscription_id,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_at': self.end_at.isoformat() if self.end_at else None,
            'is_active': self.is_active,
            'is_current': self.is_current,
            'days_remaining': self.days_remaining,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
