from flask import Blueprint, flash, redirect, render_template, request, url_for
from ..auth import admin_required
from ..filters import filter_courses, filter_logs, filter_people, severity_counts
from ..models import get_site_settings, update_site_settings
from . import fetch, send

bp = Blueprint('admin', __name__, url_prefix='/admin')
LANGUAGES = ('English', 'Hindi', 'Spanish', 'French')
# ==============================================================================
# --- 1. DASHBOARD & STATS ---
# ==============================================================================
@bp.route('/dashboard')
@admin_required
def dashboard():
    return render_template('admin/dashboard.html', stats=fetch('/admin/stats', 'stats', default={}))

@bp.route('/stats')
@admin_required
def stats():
    return render_template('admin/stats.html', stats=fetch('/admin/stats/detailed', 'stats', default={}))

@bp.route('/earnings')
@admin_required
def earnings():
    return render_template('admin/earnings.html', earnings=fetch('/admin/earnings', 'earnings', default={}))

@bp.route('/security')
@admin_required
def security():
    logs, severity = fetch('/admin/logs', 'logs', default=[]), request.args.get('severity', 'all')
    return render_template('admin/security.html', logs=filter_logs(logs, severity), counts=severity_counts(logs), severity=severity)
# ==============================================================================
# --- 2. PEOPLE ---
# ==============================================================================
@bp.route('/students')
@admin_required
def students():
    q = request.args.get('q', '')
    return render_template('admin/people.html', kind='students', people=filter_people(fetch('/admin/students', 'students', default=[]), q), q=q)

@bp.route('/students/<student_id>')
@admin_required
def student_detail(student_id):
    return render_template('admin/person.html', kind='students', person=fetch(f'/admin/students/{student_id}', 'student', default={}))

@bp.route('/tutors')
@admin_required
def tutors():
    q = request.args.get('q', '')
    return render_template('admin/people.html', kind='tutors', people=filter_people(fetch('/admin/tutors', 'tutors', default=[]), q), q=q)

@bp.route('/tutors/<tutor_id>')
@admin_required
def tutor_detail(tutor_id):
    return render_template('admin/person.html', kind='tutors', person=fetch(f'/admin/tutors/{tutor_id}', 'tutor', default={}))

@bp.route('/users/<user_id>/delete', methods=['POST'])
@admin_required
def delete_user(user_id):
    send('DELETE', f'/admin/users/{user_id}', success='User deleted.')
    kind = request.form.get('kind', 'students')
    return redirect(url_for('admin.tutors' if kind == 'tutors' else 'admin.students'))
# ==============================================================================
# --- 3. COURSES ---
# ==============================================================================
@bp.route('/courses')
@admin_required
def courses():
    q = request.args.get('q', '')
    return render_template('admin/courses.html', courses=filter_courses(fetch('/admin/courses', 'courses', default=[]), q), q=q)

@bp.route('/courses/<course_id>')
@admin_required
def course_detail(course_id):
    return render_template('admin/course.html', course=fetch(f'/admin/courses/{course_id}', 'course', default={}))

@bp.route('/courses/<course_id>/delete', methods=['POST'])
@admin_required
def delete_course(course_id):
    send('DELETE', f'/admin/courses/{course_id}', success='Course deleted.')
    return redirect(url_for('admin.courses'))
# ==============================================================================
# --- 4. SITE SETTINGS ---
# ==============================================================================
@bp.route('/settings', methods=['GET', 'POST'])
@admin_required
def settings():
    form = request.form
    if request.method == 'POST':
        email = form.get('supportEmail', '').strip()
        if not form.get('siteName', '').strip(): flash('Site name is required.', 'error')
        elif email and '@' not in email: flash('Please enter a valid support email.', 'error')
        else:
            update_site_settings({
                'siteName': form['siteName'].strip(),
                'supportEmail': email,
                'announcement': form.get('announcement', '').strip(),
                'defaultLanguage': form.get('defaultLanguage') if form.get('defaultLanguage') in LANGUAGES else 'English',
                'maintenanceMode': 'true' if form.get('maintenanceMode') == 'on' else 'false',
                'allowRegistration': 'true' if form.get('allowRegistration') == 'on' else 'false',
            })
            flash('Settings updated.', 'success')
            return redirect(url_for('admin.settings'))
    return render_template('admin/settings.html', settings=get_site_settings(), languages=LANGUAGES)
