"""
API helper functions — error formatting, response builders, input hygiene.
"""
import re

from flask import jsonify

_UNSAFE_CHARS = re.compile(r'[^\w\s@.-]')


def sanitize_input(value):
    """Strip characters that never appear in a user id or email."""
    return _UNSAFE_CHARS.sub('', value or '')


def api_error(code, message, status=400, details=None):
    """Build a standard API error response."""
    error_body = {
        'error': {
            'code': code,
            'message': message,
        }
    }
    if details:
        error_body['error']['details'] = details
    return jsonify(error_body), status


def api_success(data, status=200):
    """Build a standard API success response."""
    return jsonify({'data': data}), status
