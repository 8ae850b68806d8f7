"""
API v1 Blueprint — JSON endpoints for the marketing site front end.
Requests are authenticated with the hosted-auth (Supabase) session JWT.
"""
from flask import Blueprint
from flask_cors import CORS

api_bp = Blueprint('api', __name__)


@api_bp.record_once
def _enable_cors(state):
    # Allowed origins come from APP_CORS_ORIGINS (comma-separated)
    origins = state.app.config.get('APP_CORS_ORIGINS', '')
    allowed = [o.strip() for o in origins.split(',') if o.strip()]
    CORS(state.app, resources={r"/api/v1/*": {
        "origins": allowed,
        "methods": ["GET", "OPTIONS"],
        "allow_headers": ["Authorization", "Content-Type"],
        "max_age": 600,
    }})


from app.blueprints.api import routes  # noqa: E402, F401
