# =============================================================================
# Premium Billing - Vercel Serverless Entry Point
# Flask WSGI application for the Vercel Python runtime
# =============================================================================

from app import create_app

# Vercel's Python builder serves the module-level `app`
app = create_app()
