import logging
from functools import wraps
from flask import current_app, jsonify, redirect, render_template, request, session, url_for
from flask_login import LoginManager, UserMixin, current_user
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired, BadTimeSignature
from .api import TOKEN_COOKIE
from .models import get_site_settings

ROLE_COOKIE = 'user_role'
COOKIE_MAX_AGE = 7 * 24 * 3600
ROLE_AREAS = {'admin': '/admin', 'tutor': '/tutor', 'student': '/student'}
PROTECTED_PREFIXES = ('/admin', '/tutor', '/student', '/notifications', '/account')
AUTH_PAGES = ('/login', '/register')
# ==============================================================================
# --- 1. CREDENTIAL COOKIES ---
# ==============================================================================
def role_serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt='user-role')

def sign_role(role): return role_serializer().dumps(role)

def read_role(value):
    if not value: return None
    try: return role_serializer().loads(value, max_age=COOKIE_MAX_AGE)
    except (SignatureExpired, BadTimeSignature, BadSignature):
        logging.warning("Rejected tampered or expired role cookie.")
        return None

def store_credentials(response, token, user):
    secure = current_app.config['SESSION_COOKIE_SECURE']
    response.set_cookie(TOKEN_COOKIE, token, max_age=COOKIE_MAX_AGE, httponly=True, secure=secure, samesite='Lax')
    if user.get('role'): response.set_cookie(ROLE_COOKIE, sign_role(user['role']), max_age=COOKIE_MAX_AGE, httponly=True, secure=secure, samesite='Lax')
    session['user'] = user
    return response

def clear_credentials(response):
    response.delete_cookie(TOKEN_COOKIE)
    response.delete_cookie(ROLE_COOKIE)
    session.pop('user', None)
    session.pop('active_exam', None)
    return response
# ==============================================================================
# --- 2. USER & SESSION MANAGEMENT ---
# ==============================================================================
class PortalUser(UserMixin):
    def __init__(self, token, role, profile):
        self.token, self.role, self.profile = token, role, profile or {}
    def get_id(self): return self.profile.get('_id') or self.token
    @property
    def name(self): return self.profile.get('name', '')
    @property
    def email(self): return self.profile.get('email', '')
    @property
    def tutor_id(self): return self.profile.get('tutorId')
    @property
    def has_password(self): return self.profile.get('hasPassword', True)

login_manager = LoginManager()

@login_manager.request_loader
def load_user_from_request(req):
    token = req.cookies.get(TOKEN_COOKIE)
    if not token: return None
    return PortalUser(token, read_role(req.cookies.get(ROLE_COOKIE)), session.get('user'))

@login_manager.unauthorized_handler
def unauthorized():
    if request.path.startswith('/api/'): return jsonify({"error": "Login required.", "logged_in": False}), 401
    return redirect(url_for('auth.login'))
# ==============================================================================
# --- 3. GATEKEEPER & DECORATORS ---
# ==============================================================================
def dashboard_path(role):
    if role == 'admin': return '/admin/dashboard'
    if role == 'tutor': return '/tutor/dashboard'
    return '/student/dashboard'

def effective_role(role): return role if role in ROLE_AREAS else 'student'

def in_area(path, prefix): return path == prefix or path.startswith(prefix + '/')

def resolve_redirect(path, token, role):
    protected = any(in_area(path, prefix) for prefix in PROTECTED_PREFIXES)
    if not token: return '/login' if protected else None
    if not role: return '/select-role' if protected else None
    if path in AUTH_PAGES: return dashboard_path(role)
    for area_role, prefix in ROLE_AREAS.items():
        if in_area(path, prefix) and area_role != effective_role(role): return dashboard_path(role)
    return None

def gatekeeper():
    if request.endpoint == 'static' or request.path.startswith('/api/'): return None
    token = request.cookies.get(TOKEN_COOKIE)
    target = resolve_redirect(request.path, token, read_role(request.cookies.get(ROLE_COOKIE)) if token else None)
    if target and target != request.path: return redirect(target)
    return None

def role_required(role_name):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated: return login_manager.unauthorized()
            if effective_role(current_user.role) != role_name: return redirect(dashboard_path(current_user.role))
            return f(*args, **kwargs)
        return decorated_function
    return decorator
admin_required = role_required('admin')
tutor_required = role_required('tutor')
student_required = role_required('student')

def maintenance_gate():
    """While maintenance mode is on, only admins reach the signed-in areas."""
    if request.endpoint == 'static' or not any(in_area(request.path, prefix) for prefix in PROTECTED_PREFIXES): return None
    if not get_site_settings()['maintenanceMode']: return None
    token = request.cookies.get(TOKEN_COOKIE)
    if token and read_role(request.cookies.get(ROLE_COOKIE)) == 'admin': return None
    return render_template('maintenance.html'), 503
