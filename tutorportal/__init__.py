import logging
import requests
from flask import Flask, flash, jsonify, redirect, request
from flask_login import current_user
from flask_talisman import Talisman
from .api import ApiError, ApiUnauthorized
from .auth import login_manager, gatekeeper, maintenance_gate, clear_credentials, dashboard_path
from .config import load_config
from .helpers import register_template_filters
from .models import get_site_settings, init_db
from . import payments

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

CSP = {
    'default-src': "'self'",
    'script-src': ["'self'", "https://cdn.tailwindcss.com"],
    'style-src': ["'self'", "https://fonts.googleapis.com", "'unsafe-inline'"],
    'font-src': ["'self'", "https://fonts.gstatic.com"],
    'img-src': ["'self'", "https://*", "data:"],
    'connect-src': "'self'",
}

def create_app(overrides=None):
    app = Flask(__name__)
    app.config.update(load_config(overrides))
    app.config['SESSION_COOKIE_SECURE'] = app.config['FORCE_HTTPS']
    Talisman(app, content_security_policy=CSP, content_security_policy_nonce_in=['script-src'],
             force_https=app.config['FORCE_HTTPS'], session_cookie_secure=app.config['FORCE_HTTPS'])
    app.extensions['api_session'] = requests.Session()
    init_db(app)
    login_manager.init_app(app)
    payments.configure(app)
    register_template_filters(app)
    app.before_request(gatekeeper)
    app.before_request(maintenance_gate)
    register_error_handlers(app)
    from .views import auth, account, notifications, admin, tutor, student
    for blueprint in (auth.bp, account.bp, notifications.bp, admin.bp, tutor.bp, student.bp): app.register_blueprint(blueprint)

    @app.context_processor
    def inject_portal():
        return {'poll_seconds': app.config['NOTIFICATION_POLL_SECONDS'], 'payments_enabled': bool(app.config['STRIPE_SECRET_KEY']), 'site': get_site_settings()}

    logging.info(f"Tutor portal ready; API at {app.config['API_BASE_URL']}.")
    return app

def register_error_handlers(app):
    @app.errorhandler(ApiUnauthorized)
    def handle_api_unauthorized(e):
        logging.warning(f"API rejected credentials on {request.path}; clearing stored login.")
        if request.path.startswith('/api/'):
            response = jsonify({"error": e.message, "logged_in": False})
            response.status_code = 401
        else:
            flash(e.message, 'error')
            response = redirect('/login')
        return clear_credentials(response)

    @app.errorhandler(ApiError)
    def handle_api_error(e):
        logging.error(f"Unhandled API error on {request.path}: {e}")
        if request.path.startswith('/api/'): return jsonify({"error": e.message}), e.status or 502
        flash(e.message, 'error')
        fallback = dashboard_path(current_user.role) if current_user.is_authenticated else '/login'
        target = request.referrer if request.referrer and request.referrer != request.url else fallback
        return redirect(target)
