from flask import Blueprint, flash, redirect, render_template, request, session, url_for
from flask_login import current_user, login_required
from . import fetch, send

bp = Blueprint('account', __name__, url_prefix='/account')

@bp.route('/profile', methods=['GET', 'POST'])
@login_required
def profile():
    if request.method == 'POST':
        payload = {'name': request.form.get('name', '').strip(), 'phone': request.form.get('phone', '').strip()}
        if not payload['name']: flash('Name is required.', 'error')
        else:
            data = send('PATCH', '/auth/profile', payload, 'Profile updated.')
            if data is not None:
                session['user'] = {**session.get('user', {}), **(data.get('user') or payload)}
                return redirect(url_for('account.profile'))
    user = fetch('/auth/me', 'user', default=current_user.profile)
    return render_template('account/profile.html', user=user)

@bp.route('/password', methods=['GET', 'POST'])
@login_required
def password():
    has_password = current_user.has_password
    if request.method == 'POST':
        current, new, confirm = request.form.get('current_password', ''), request.form.get('new_password', ''), request.form.get('confirm_password', '')
        if len(new) < 6: flash('New password must be at least 6 characters.', 'error')
        elif new != confirm: flash('Passwords do not match', 'error')
        elif has_password and not current: flash('Current password is required.', 'error')
        else:
            if has_password: data = send('POST', '/auth/change-password', {'currentPassword': current, 'newPassword': new}, 'Password updated successfully!')
            else: data = send('POST', '/auth/set-password', {'newPassword': new}, 'Password set successfully!')
            if data is not None:
                session['user'] = {**session.get('user', {}), 'hasPassword': True}
                return redirect(url_for('account.profile'))
    return render_template('account/password.html', has_password=has_password)
