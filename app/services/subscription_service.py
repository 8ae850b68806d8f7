"""
Subscription reconciliation for premium community billing.
Applies Stripe billing events to the subscription record of an identity.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError

from app.blueprints.billing.plans import compute_end_date, non_recurring_plans
from app.models.subscription import Subscription
from app.services.exceptions import (
    MissingMetadata, ProfileNotFound, RoleGrantError, StoreWriteError,
)
from app.services.stripe_events import (
    CHECKOUT_COMPLETED, INVOICE_PAYMENT_SUCCEEDED, SUBSCRIPTION_DELETED,
)
from app.services.user_directory import UserDirectory
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)


def _insert_for(session):
    """Dialect-specific INSERT construct supporting ON CONFLICT."""
    dialect = session.get_bind().dialect.name
    if dialect == 'postgresql':
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == 'sqlite':
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise StoreWriteError(f'Upsert is not supported on {dialect}')
    return insert


class SubscriptionReconciler:
    """Service applying billing events to subscription records.

    Every write is a single atomic statement so that concurrent deliveries
    for the same identity converge through the database's conflict
    resolution instead of racing on a read-modify-write.
    """

    def __init__(self, session, directory: Optional[UserDirectory] = None, role_grants=None):
        self.session = session
        self.directory = directory or UserDirectory(session)
        self.role_grants = role_grants

    def _execute(self, statement, description):
        try:
            result = self.session.execute(statement)
            self.session.commit()
            return result
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f'Subscription write failed ({description}): {e}', exc_info=True)
            raise StoreWriteError(f'Could not {description}') from e

    def _upsert(self, values, update_columns, keep_non_recurring=()):
        table = Subscription.__table__
        insert = _insert_for(self.session)
        stmt = insert(table).values(**values)
        set_ = {}
        for column in update_columns:
            if column in ('customer_id', 'subscription_id'):
                # Keep the Stripe references already on file when the event has none
                set_[column] = func.coalesce(getattr(stmt.excluded, column), table.c[column])
            elif column in keep_non_recurring:
                # Renewals never shorten a lifetime grant
                set_[column] = case(
                    (func.lower(table.c.plan).in_(non_recurring_plans()), table.c[column]),
                    else_=getattr(stmt.excluded, column),
                )
            else:
                set_[column] = getattr(stmt.excluded, column)
        return stmt.on_conflict_do_update(index_elements=['email'], set_=set_)

    def apply_checkout_completed(
        self,
        identity: Optional[str],
        plan: Optional[str],
        metadata: Optional[dict] = None,
        anchor: Optional[datetime] = None,
        customer_id: Optional[str] = None,
        subscription_id: Optional[str] = None,
    ) -> Subscription:
        """Activate the plan bought in a completed checkout.

        Args:
            identity: Identity key from the session metadata
            plan: Plan identifier from the session metadata
            metadata: Full session metadata (logged on failure)
            anchor: Start of the paid period, the event creation time.
                Replays carry the same anchor, so they produce the same end date.
            customer_id: Stripe customer ID, if the session has one
            subscription_id: Stripe subscription ID, if the session has one

        Returns:
            The reconciled Subscription

        Raises:
            MissingMetadata: If identity or plan is absent
            StoreWriteError: If the upsert fails
        """
        missing = [name for name, value in (('identity', identity), ('plan', plan)) if not value]
        if missing:
            logger.error(f'Checkout completed without {missing} in metadata: {metadata or {}}')
            raise MissingMetadata(missing, event_type=CHECKOUT_COMPLETED)

        now = utcnow()
        start = anchor or now
        stmt = self._upsert(
            values={
                'email': identity,
                'plan': plan,
                'customer_id': customer_id,
                'subscription_id': subscription_id,
                'start_date': start,
                'end_at': compute_end_date(plan, start),
                'is_active': True,
                'created_at': now,
                'updated_at': now,
            },
            update_columns=(
                'plan', 'start_date', 'end_at', 'is_active',
                'customer_id', 'subscription_id', 'updated_at',
            ),
        )
        self._execute(stmt, f'activate {plan} for {identity}')
        logger.info(f'Checkout fulfilled: {identity} on plan {plan}')

        self.sync_role(identity, should_grant=True)
        return self.directory.find_subscription(identity)

    def apply_invoice_payment_succeeded(
        self,
        end_at: Optional[datetime],
        customer_id: Optional[str],
        subscription_id: Optional[str],
        email: Optional[str],
        start_date: Optional[datetime] = None,
    ) -> Subscription:
        """Extend the paid period after a successful renewal invoice.

        Records on a non-recurring plan keep their period; only the Stripe
        references and active flag are refreshed.

        Raises:
            MissingMetadata: If the invoice has no customer email or period end
            StoreWriteError: If the upsert fails
        """
        missing = [name for name, value in (('customer_email', email), ('period_end', end_at)) if not value]
        if missing:
            logger.error(f'Invoice for subscription {subscription_id} missing {missing}')
            raise MissingMetadata(missing, event_type=INVOICE_PAYMENT_SUCCEEDED)

        now = utcnow()
        values = {
            'email': email,
            'plan': 'monthly',
            'customer_id': customer_id,
            'subscription_id': subscription_id,
            'end_at': end_at,
            'is_active': True,
            'created_at': now,
            'updated_at': now,
        }
        update_columns = ['end_at', 'customer_id', 'subscription_id', 'is_active', 'updated_at']
        if start_date:
            values['start_date'] = start_date
            update_columns.append('start_date')

        stmt = self._upsert(values, update_columns, keep_non_recurring=('start_date', 'end_at'))
        self._execute(stmt, f'record invoice for {email}')
        logger.info(f'Invoice paid: {email} active until {end_at.isoformat()}')

        self.sync_role(email, should_grant=True)
        return self.directory.find_subscription(email)

    def apply_subscription_deleted(self, subscription_id: Optional[str]) -> Optional[Subscription]:
        """Detach Stripe references from the record of a canceled subscription.

        Plan, dates and created_at stay as history. Unknown subscription ids
        are logged and acknowledged.

        Raises:
            MissingMetadata: If the event has no subscription id
            StoreWriteError: If the update fails
        """
        if not subscription_id:
            raise MissingMetadata(['subscription_id'], event_type=SUBSCRIPTION_DELETED)

        identities = [
            row.email for row in self.session.query(Subscription.email)
            .filter_by(subscription_id=subscription_id)
            .order_by(Subscription.id)
        ]
        if not identities:
            logger.warning(f'Subscription deleted for unknown subscription_id={subscription_id}')
            return None

        table = Subscription.__table__
        stmt = (
            table.update()
            .where(table.c.subscription_id == subscription_id)
            .values(customer_id=None, subscription_id=None, is_active=False, updated_at=utcnow())
        )
        self._execute(stmt, f'deactivate subscription {subscription_id}')
        logger.info(f'Subscription {subscription_id} deactivated for {", ".join(identities)}')

        for identity in identities:
            self.sync_role(identity, should_grant=False)
        return self.directory.find_subscription(identities[0])

    def _member_handle(self, identity):
        try:
            profile = self.directory.find_by_identity(identity)
        except ProfileNotFound:
            profile = None
        except SQLAlchemyError:
            logger.error(f'Profile lookup failed for {identity}', exc_info=True)
            self.session.rollback()
            return None

        if profile is not None and profile.discord_id:
            return profile.discord_id
        # Legacy sessions used the Discord snowflake itself as identity
        if identity and identity.isdigit():
            return identity
        return None

    def sync_role(self, identity, should_grant: bool) -> bool:
        """Best-effort entitlement role update for an identity.

        Returns:
            True if the role changed. Failures are logged, never raised.
        """
        if self.role_grants is None:
            return False

        member_id = self._member_handle(identity)
        if member_id is None:
            logger.info(f'No community member linked to {identity}, skipping role sync')
            return False

        action = 'grant' if should_grant else 'revoke'
        try:
            return self.role_grants.grant_role(member_id, should_grant)
        except RoleGrantError as e:
            logger.error(f'Role {action} failed for {identity} (member {member_id}): {e}')
        except Exception:
            logger.error(f'Unexpected error during role {action} for {identity}', exc_info=True)
        return False
