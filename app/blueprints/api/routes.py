"""
API routes — session profile lookup and health check.
"""
from flask import current_app, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.blueprints.api import api_bp
from app.blueprints.api.decorators import jwt_required
from app.blueprints.api.helpers import api_error, api_success, sanitize_input
from app.blueprints.api.schemas import ProfileSchema, SubscriptionSchema
from app.extensions import db, limiter
from app.services.exceptions import ProfileNotFound


@api_bp.route('/me', methods=['GET'])
@jwt_required
@limiter.limit('60 per minute')
def me():
    """Current user's profile joined with their subscription.

    Returns:
        {"data": {...profile fields..., "subscription": {...} | null,
                  "is_subscribed": bool}}
    """
    directory = current_app.extensions['user_directory']

    try:
        profile = directory.find_by_id(sanitize_input(request.api_subject))
    except ProfileNotFound:
        return api_error('profile_not_found', 'No profile for this account.', 404)

    if not profile.email:
        current_app.logger.error(f'Profile {profile.id} has no email')
        return api_error('invalid_profile', 'Profile has no email.', 404)

    subscription = directory.find_subscription(profile.email)

    data = ProfileSchema().dump(profile)
    data['subscription'] = SubscriptionSchema().dump(subscription) if subscription else None
    data['is_subscribed'] = bool(subscription and subscription.is_current)
    return api_success(data)


@api_bp.route('/health', methods=['GET'])
@limiter.exempt
def health():
    """Liveness plus database reachability."""
    try:
        db.session.execute(text('SELECT 1'))
    except SQLAlchemyError as e:
        current_app.logger.error(f'Health check database error: {e}')
        return api_error('database_unavailable', 'Database unreachable.', 503)
    return api_success({'status': 'ok'})
