"""
Supabase JWT authentication decorators for the JSON API.
"""
from functools import wraps

import jwt
from flask import request, current_app

from app.blueprints.api.helpers import api_error


def decode_token(token):
    """Decode and validate a Supabase access token. Returns payload or None."""
    try:
        return jwt.decode(
            token,
            current_app.config['SUPABASE_JWT_SECRET'],
            algorithms=['HS256'],
            audience=current_app.config.get('SUPABASE_JWT_AUDIENCE', 'authenticated'),
        )
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def get_token_subject():
    """Extract the user id from the Authorization header. Returns (sub, error_response)."""
    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return None, api_error('missing_token', 'Authorization header with Bearer token required.', 401)

    payload = decode_token(auth_header[7:])
    if payload is None:
        return None, api_error('invalid_token', 'Token is invalid or expired.', 401)

    subject = payload.get('sub')
    if not subject:
        return None, api_error('invalid_token', 'Token has no subject.', 401)

    return subject, None


def jwt_required(f):
    """Decorator: require a valid Supabase access token."""
    @wraps(f)
    def decorated(*args, **kwargs):
        subject, error = get_token_subject()
        if error:
            return error
        request.api_subject = subject
        return f(*args, **kwargs)
    return decorated
