import logging
from flask import Blueprint, flash, make_response, redirect, render_template, request, session, url_for
from flask_login import current_user
from ..api import ApiError, get_api
from ..auth import clear_credentials, dashboard_path, store_credentials
from ..models import get_site_settings

bp = Blueprint('auth', __name__)
SELF_SERVICE_ROLES = ('student', 'tutor')

def signed_in(data):
    token, user = data.get('token'), data.get('user') or {}
    if not token:
        flash('The server did not return a session. Please try again.', 'error')
        return redirect(url_for('auth.login'))
    target = dashboard_path(user.get('role')) if user.get('role') else url_for('auth.select_role')
    logging.info(f"User {user.get('email', '?')} signed in as {user.get('role') or 'unassigned'}.")
    return store_credentials(make_response(redirect(target)), token, user)

@bp.route('/')
def index():
    if current_user.is_authenticated and current_user.role: return redirect(dashboard_path(current_user.role))
    return redirect(url_for('auth.login'))

@bp.route('/login', methods=['GET', 'POST'])
def login():
    form, oauth_reset_email = request.form, None
    if request.method == 'POST':
        email, password = form.get('email', '').strip(), form.get('password', '')
        if not email or not password: flash('Email and password are required.', 'error')
        else:
            try: return signed_in(get_api().post('/auth/login', {'email': email, 'password': password}))
            except ApiError as e:
                logging.error(f"Login failed for {email}: {e}")
                if e.code == 'OAUTH_PASSWORD_NOT_SET': oauth_reset_email = email
                flash(e.message, 'error')
    return render_template('auth/login.html', form=form, oauth_reset_email=oauth_reset_email)

@bp.route('/register', methods=['GET', 'POST'])
def register():
    if not get_site_settings()['allowRegistration']:
        flash('New registrations are closed right now.', 'warning')
        return redirect(url_for('auth.login'))
    form = request.form
    if request.method == 'POST':
        name, email, password, role = form.get('name', '').strip(), form.get('email', '').strip().lower(), form.get('password', ''), form.get('role', 'student')
        if not all([name, email, password]): flash('Name, email and password are required.', 'error')
        elif password != form.get('confirm_password', ''): flash('Passwords do not match', 'error')
        elif role not in SELF_SERVICE_ROLES: flash('Please choose student or tutor.', 'error')
        else:
            try: return signed_in(get_api().post('/auth/register', {'name': name, 'email': email, 'password': password, 'role': role}))
            except ApiError as e:
                logging.error(f"Registration failed for {email}: {e}")
                flash(e.message, 'error')
    return render_template('auth/register.html', form=form)

@bp.route('/logout')
def logout():
    flash('You have been logged out.', 'success')
    return clear_credentials(make_response(redirect(url_for('auth.login'))))

@bp.route('/forgot-password', methods=['GET', 'POST'])
def forgot_password():
    email = request.values.get('email', '').strip()
    if request.method == 'POST':
        if not email: flash('Email is required.', 'error')
        else:
            try:
                get_api().post('/auth/forgot-password', {'email': email})
                flash('If an account with that email exists, a reset link has been sent.', 'success')
                return redirect(url_for('auth.login'))
            except ApiError as e:
                logging.error(f"Password reset request failed for {email}: {e}")
                flash(e.message, 'error')
    return render_template('auth/forgot_password.html', email=email)

@bp.route('/reset-password/<token>', methods=['GET', 'POST'])
def reset_password(token):
    if request.method == 'POST':
        password = request.form.get('password', '')
        if len(password) < 6: flash('Password must be at least 6 characters.', 'error')
        elif password != request.form.get('confirm_password', ''): flash('Passwords do not match', 'error')
        else:
            try:
                get_api().post(f'/auth/reset-password/{token}', {'password': password})
                flash('Password has been updated successfully. Please log in.', 'success')
                return redirect(url_for('auth.login'))
            except ApiError as e:
                logging.error(f"Password reset failed: {e}")
                flash(e.message, 'error')
    return render_template('auth/reset_password.html', token=token)

@bp.route('/oauth-callback')
def oauth_callback():
    token, error = request.args.get('token'), request.args.get('error')
    if error or not token:
        flash(error or 'No authentication token received', 'error')
        return redirect(url_for('auth.login'))
    try: data = get_api(token).get('/auth/me')
    except ApiError as e:
        logging.error(f"OAuth profile fetch failed: {e}")
        flash('Failed to fetch user data. Please try logging in again.', 'error')
        return redirect(url_for('auth.login'))
    return signed_in({'token': token, 'user': data.get('user') or data})

@bp.route('/select-role', methods=['GET', 'POST'])
def select_role():
    # only the cookie set after /auth/me verified the token counts
    token = request.cookies.get('token')
    if not token: return redirect(url_for('auth.login'))
    if request.method == 'POST':
        role = request.form.get('role')
        if role not in SELF_SERVICE_ROLES: flash('Please choose student or tutor.', 'error')
        else:
            try: return signed_in(get_api(token).post('/auth/set-role', {'role': role}))
            except ApiError as e:
                logging.error(f"Role selection failed: {e}")
                flash(e.message, 'error')
    return render_template('auth/select_role.html', name=(session.get('user') or {}).get('name', ''))
