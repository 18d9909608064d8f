import logging
from flask import Blueprint, flash, redirect, render_template, request, url_for
from flask_login import current_user
from ..auth import tutor_required
from ..filters import category_id, filter_courses, filter_exams, filter_questions, filter_students_by_course, level_distribution, top_courses
from ..helpers import format_datetime, parse_iso
from ..scheduling import APPOINTMENT_TABS, filter_appointments, parse_slot_start, upcoming_live_classes
from . import fetch, required_fields, send

bp = Blueprint('tutor', __name__, url_prefix='/tutor')
COURSE_LEVELS = ('beginner', 'intermediate', 'advanced')
EXAM_TYPES = ('quiz', 'assessment', 'practice')
EXAM_FLAGS = ('shuffleQuestions', 'shuffleOptions', 'showResultImmediately', 'showCorrectAnswers', 'allowRetake', 'isScheduled')
EXAM_DEFAULTS = {'type': 'quiz', 'duration': 30, 'passingMarks': 10, 'maxAttempts': 1, 'showResultImmediately': True, 'showCorrectAnswers': True}
DIFFICULTIES = ('easy', 'medium', 'hard')
WEEKDAYS = ('Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday')
REVIEWS_PER_PAGE = 10
INPUT_DATETIME = '%Y-%m-%dT%H:%M'

def parse_options(lines, number=1):
    options = [{'text': line.lstrip('*').strip(), 'isCorrect': line.startswith('*')} for line in lines]
    if len(options) < 2: raise ValueError(f"Question {number} needs at least two options.")
    if sum(o['isCorrect'] for o in options) != 1: raise ValueError(f"Question {number} needs exactly one correct option marked with '*'.")
    return options

def parse_questions(text):
    """Turn the exam editor's plain-text block into the API's question list.

    Questions are separated by blank lines. The first line is the question,
    every following line is an option, and the correct option starts with '*'.
    """
    questions = []
    for number, block in enumerate([b for b in text.replace('\r\n', '\n').split('\n\n') if b.strip()], start=1):
        lines = [line.strip() for line in block.strip().split('\n') if line.strip()]
        questions.append({'question': lines[0], 'options': parse_options(lines[1:], number), 'points': 1})
    return questions

def questions_to_text(questions):
    blocks = []
    for q in questions:
        options = [('*' if o.get('isCorrect') else '') + o.get('text', '') for o in q.get('options') or []]
        blocks.append('\n'.join([q.get('question', '')] + options))
    return '\n\n'.join(blocks)

def whole_number(form, name, default, message, minimum=0):
    try: value = int(form.get(name) or default)
    except ValueError: raise ValueError(message) from None
    if value < minimum: raise ValueError(message)
    return value

def course_payload(form):
    return {
        'title': form.get('title', '').strip(), 'description': form.get('description', '').strip(),
        'price': float(form.get('price') or 0), 'level': form.get('level', 'beginner'), 'categoryId': form.get('category'),
        'thumbnail': form.get('thumbnail', '').strip(), 'language': form.get('language', 'English'), 'duration': int(form.get('duration') or 0),
    }

def exam_payload(form):
    """Exam body for POST/PATCH /exams. Raises ValueError with a message for the tutor."""
    payload = {
        'title': form.get('title', '').strip(), 'courseId': form.get('courseId'), 'description': form.get('description', '').strip(),
        'type': form.get('type') if form.get('type') in EXAM_TYPES else 'quiz',
        'duration': whole_number(form, 'duration', 0, 'Duration must be a whole number of minutes.', minimum=1),
        'passingMarks': whole_number(form, 'passingMarks', 0, 'Passing marks must be a whole number.'),
        'maxAttempts': whole_number(form, 'maxAttempts', 1, 'Attempts must be a whole number of at least 1.', minimum=1),
    }
    payload.update({flag: form.get(flag) == 'on' for flag in EXAM_FLAGS})
    payload['questions'] = parse_questions(form.get('questions', ''))
    if not payload['questions']: raise ValueError('Add at least one question.')
    if payload['isScheduled']:
        start, end = parse_iso(form.get('startDate')), parse_iso(form.get('endDate'))
        if not start or not end: raise ValueError('A scheduled exam needs a start and an end time.')
        if end <= start: raise ValueError('The exam must end after it starts.')
        payload.update(startDate=start.isoformat(), endDate=end.isoformat())
    else: payload.update(startDate=None, endDate=None)
    return payload

def exam_form_values(exam):
    values = dict(EXAM_DEFAULTS)
    values.update({key: value for key, value in exam.items() if value is not None and key != 'questions'})
    course = exam.get('courseId')
    values['courseId'] = course.get('_id') if isinstance(course, dict) else course
    for key in ('startDate', 'endDate'): values[key] = format_datetime(exam.get(key), INPUT_DATETIME)
    return values
# ==============================================================================
# --- 1. DASHBOARD, ANALYTICS & STUDENTS ---
# ==============================================================================
@bp.route('/dashboard')
@tutor_required
def dashboard():
    stats = fetch('/tutor/dashboard/stats', 'stats', default={})
    earnings = fetch('/tutor/dashboard/earnings', 'earnings', default={})
    appointments = fetch('/appointments', 'appointments', default=[], params={'limit': 3, 'status': 'confirmed'})
    return render_template('tutor/dashboard.html', stats=stats, earnings=earnings, appointments=appointments)

@bp.route('/analytics')
@tutor_required
def analytics():
    earnings = fetch('/tutor/dashboard/earnings', 'earnings', default={})
    stats = fetch('/tutor/dashboard/stats', 'stats', default={})
    courses = fetch('/courses/my-courses', 'courses', default=[])
    monthly = earnings.get('monthly') or []
    peak = max([m.get('amount') or 0 for m in monthly] + [0])
    return render_template('tutor/analytics.html', monthly=monthly, peak=peak, top=top_courses(earnings.get('byCourse')),
                           levels=level_distribution(courses), rating=stats.get('rating') or {}, students=stats.get('students') or {}, course_count=len(courses))

@bp.route('/students')
@tutor_required
def students():
    q, course = request.args.get('q', ''), request.args.get('course', 'all')
    courses = fetch('/courses/my-courses', 'courses', default=[])
    all_students = fetch('/tutor/dashboard/students', 'students', default=[])
    return render_template('tutor/students.html', students=filter_students_by_course(all_students, q, course), total=len(all_students), courses=courses, q=q, course=course)

@bp.route('/students/<student_id>')
@tutor_required
def student_detail(student_id):
    return render_template('tutor/student.html', data=fetch(f'/tutors/students/{student_id}', None, default={}))
# ==============================================================================
# --- 2. COURSES ---
# ==============================================================================
@bp.route('/courses')
@tutor_required
def courses():
    q = request.args.get('q', '')
    return render_template('tutor/courses.html', courses=filter_courses(fetch('/courses/my-courses', 'courses', default=[]), q), q=q)

@bp.route('/courses/create', methods=['GET', 'POST'])
@tutor_required
def create_course():
    form = request.form
    if request.method == 'POST' and required_fields(form, 'title', 'description', 'category', 'price'):
        try: payload = course_payload(form)
        except ValueError: flash('Price and duration must be numbers.', 'error')
        else:
            if send('POST', '/courses', payload, 'Course created.') is not None: return redirect(url_for('tutor.courses'))
    categories = fetch('/categories', 'categories', default=[])
    return render_template('tutor/course_form.html', form=form, course=None, categories=categories, levels=COURSE_LEVELS, selected_category=form.get('category'))

@bp.route('/courses/<course_id>', methods=['GET', 'POST'])
@tutor_required
def edit_course(course_id):
    if request.method == 'POST' and required_fields(request.form, 'title', 'description'):
        try: payload = course_payload(request.form)
        except ValueError: flash('Price and duration must be numbers.', 'error')
        else:
            if not payload['categoryId']: payload.pop('categoryId')
            if send('PATCH', f'/courses/{course_id}', payload, 'Course updated.') is not None: return redirect(url_for('tutor.edit_course', course_id=course_id))
    course = fetch(f'/courses/{course_id}', 'course', default={})
    categories = fetch('/categories', 'categories', default=[])
    return render_template('tutor/course_form.html', form=request.form, course=course, categories=categories, levels=COURSE_LEVELS,
                           selected_category=request.form.get('category') or category_id(course))

@bp.route('/courses/<course_id>/status', methods=['POST'])
@tutor_required
def toggle_course_status(course_id):
    new_status = 'draft' if request.form.get('status') == 'published' else 'published'
    send('PATCH', f'/courses/{course_id}', {'status': new_status}, f"Course {'published' if new_status == 'published' else 'moved to drafts'}.")
    return redirect(request.referrer or url_for('tutor.courses'))

@bp.route('/courses/<course_id>/delete', methods=['POST'])
@tutor_required
def delete_course(course_id):
    send('DELETE', f'/courses/{course_id}', success='Course deleted.')
    return redirect(url_for('tutor.courses'))
# ==============================================================================
# --- 3. EXAMS & PRACTICE SETS ---
# ==============================================================================
@bp.route('/exams')
@tutor_required
def exams():
    q, kind = request.args.get('q', ''), request.args.get('type', 'all')
    listed = filter_exams(fetch('/exams/tutor/all', 'exams', default=[]), q)
    if kind in EXAM_TYPES: listed = [e for e in listed if (e.get('type') or 'quiz') == kind]
    return render_template('tutor/exams.html', exams=listed, q=q, kind=kind, types=EXAM_TYPES)

def generate_questions(form, questions_text):
    if not form.get('topic') or not form.get('courseId'):
        flash('Please select a course and enter a topic.', 'error')
        return questions_text
    data = send('POST', '/ai/generate-questions', {'topic': form['topic'], 'count': form.get('questionCount', 5, type=int), 'difficulty': form.get('difficulty', 'medium')})
    if data is None: return questions_text
    generated = data.get('questions') or []
    flash(f"Generated {len(generated)} questions. Review them before saving.", 'success')
    return f"{questions_text.strip()}\n\n{questions_to_text(generated)}".strip()

def exam_editor(exam_id=None, exam=None):
    form = request.form
    if request.method == 'POST': values, questions_text = form, form.get('questions', '')
    else:
        values = exam_form_values(exam or {'type': request.args.get('type', 'quiz')})
        questions_text = questions_to_text((exam or {}).get('questions') or [])
    if request.method == 'POST' and form.get('action') == 'generate': questions_text = generate_questions(form, questions_text)
    elif request.method == 'POST' and required_fields(form, 'title', 'courseId', 'duration'):
        try: payload = exam_payload(form)
        except ValueError as e: flash(str(e), 'error')
        else:
            if exam_id: saved = send('PATCH', f'/exams/{exam_id}', payload, 'Exam Updated Successfully!')
            else: saved = send('POST', '/exams', payload, 'Exam Created Successfully!')
            if saved is not None: return redirect(url_for('tutor.exams', type=payload['type'] if payload['type'] == 'practice' else None))
    courses = fetch('/courses/my-courses', 'courses', default=[])
    return render_template('tutor/exam_form.html', values=values, exam=exam, courses=courses, questions_text=questions_text,
                           types=EXAM_TYPES, difficulties=DIFFICULTIES)

@bp.route('/exams/create', methods=['GET', 'POST'])
@tutor_required
def create_exam():
    return exam_editor()

@bp.route('/exams/<exam_id>/edit', methods=['GET', 'POST'])
@tutor_required
def edit_exam(exam_id):
    exam = fetch(f'/exams/{exam_id}', 'exam', default={})
    if not exam and request.method == 'GET': return redirect(url_for('tutor.exams'))
    return exam_editor(exam_id, exam or {'_id': exam_id})

@bp.route('/exams/<exam_id>/status', methods=['POST'])
@tutor_required
def toggle_exam_status(exam_id):
    new_status = 'draft' if request.form.get('status') == 'published' else 'published'
    send('PATCH', f'/exams/{exam_id}', {'status': new_status}, f"Exam {'published' if new_status == 'published' else 'moved to drafts'}.")
    return redirect(request.referrer or url_for('tutor.exams'))

@bp.route('/exams/<exam_id>/delete', methods=['POST'])
@tutor_required
def delete_exam(exam_id):
    send('DELETE', f'/exams/{exam_id}', success='Exam deleted.')
    return redirect(url_for('tutor.exams'))

@bp.route('/exams/<exam_id>/results')
@tutor_required
def exam_results(exam_id):
    return render_template('tutor/exam_results.html', data=fetch(f'/exams/{exam_id}/all-attempts', None, default={}))

@bp.route('/exams/attempts/<attempt_id>')
@tutor_required
def exam_attempt(attempt_id):
    return render_template('exam_attempt.html', attempt=fetch(f'/exams/tutor/attempt/{attempt_id}', 'attempt', default={}), back=url_for('tutor.exams'))
# ==============================================================================
# --- 4. QUESTION BANK ---
# ==============================================================================
@bp.route('/questions')
@tutor_required
def questions():
    q = request.args.get('q', '')
    return render_template('tutor/questions.html', questions=filter_questions(fetch('/question-bank/questions', 'questions', default=[]), q), q=q)

def bank_question_payload(form):
    lines = [line.strip() for line in form.get('options', '').replace('\r\n', '\n').split('\n') if line.strip()]
    return {
        'question': form.get('question', '').strip(), 'type': 'mcq', 'options': parse_options(lines),
        'explanation': form.get('explanation', '').strip(), 'difficulty': form.get('difficulty') if form.get('difficulty') in DIFFICULTIES else 'medium',
        'points': whole_number(form, 'points', 1, 'Points must be a whole number of at least 1.', minimum=1),
        'topicId': form.get('topicId') or None, 'skillId': form.get('skillId') or None,
    }

@bp.route('/questions/create', methods=['GET', 'POST'])
@tutor_required
def create_question():
    form = request.form
    if request.method == 'POST' and required_fields(form, 'question', 'options'):
        try: payload = bank_question_payload(form)
        except ValueError as e: flash(str(e).replace('Question 1', 'The question'), 'error')
        else:
            if send('POST', '/question-bank/questions', payload, 'Question created successfully!') is not None: return redirect(url_for('tutor.questions'))
    topics = fetch('/taxonomy/topics', 'topics', default=[])
    skills = fetch('/taxonomy/skills', 'skills', default=[])
    return render_template('tutor/question_form.html', form=form, topics=topics, skills=skills, difficulties=DIFFICULTIES)

@bp.route('/questions/import', methods=['GET', 'POST'])
@tutor_required
def import_questions():
    form = request.form
    if request.method == 'POST' and required_fields(form, 'questions'):
        difficulty = form.get('difficulty') if form.get('difficulty') in DIFFICULTIES else 'medium'
        try: parsed = parse_questions(form['questions'])
        except ValueError as e: flash(str(e), 'error')
        else:
            imported = 0
            for question in parsed:
                if send('POST', '/question-bank/questions', dict(question, type='mcq', difficulty=difficulty)) is None: break
                imported += 1
            logging.info(f"Tutor {current_user.get_id()} imported {imported} of {len(parsed)} questions.")
            if imported == len(parsed):
                flash(f"Imported {imported} questions.", 'success')
                return redirect(url_for('tutor.questions'))
            flash(f"Imported {imported} of {len(parsed)} questions before an error.", 'warning')
    return render_template('tutor/question_import.html', form=form, difficulties=DIFFICULTIES)

@bp.route('/questions/<question_id>/delete', methods=['POST'])
@tutor_required
def delete_question(question_id):
    send('DELETE', f'/question-bank/questions/{question_id}', success='Question deleted.')
    return redirect(url_for('tutor.questions', q=request.args.get('q') or None))
# ==============================================================================
# --- 5. LIVE CLASSES ---
# ==============================================================================
@bp.route('/live-classes', methods=['GET', 'POST'])
@tutor_required
def live_classes():
    form = request.form
    if request.method == 'POST' and required_fields(form, 'title', 'dateTime', 'duration', 'meetingLink'):
        starts = parse_iso(form['dateTime'])
        try: duration = whole_number(form, 'duration', 60, 'Duration must be a whole number of minutes.', minimum=1)
        except ValueError as e: flash(str(e), 'error')
        else:
            if not starts: flash('Please enter a valid start time.', 'error')
            else:
                payload = {'title': form['title'].strip(), 'description': form.get('description', '').strip(), 'dateTime': starts.isoformat(),
                           'duration': duration, 'meetingLink': form['meetingLink'].strip(), 'platform': form.get('platform', 'zoom')}
                if form.get('courseId') not in (None, '', 'none'): payload['courseId'] = form['courseId']
                if form.get('id'): saved = send('PATCH', f"/live-classes/{form['id']}", payload, 'Live class updated!')
                else: saved = send('POST', '/live-classes', payload, 'Live class scheduled!')
                if saved is not None: return redirect(url_for('tutor.live_classes'))
    classes = fetch('/live-classes', 'liveClasses', default=[])
    courses = fetch('/courses/my-courses', 'courses', default=[])
    editing = next((c for c in classes if c.get('_id') == request.args.get('edit')), None)
    return render_template('tutor/live_classes.html', classes=classes, upcoming=upcoming_live_classes(classes), courses=courses, editing=editing, form=form)

@bp.route('/live-classes/<class_id>/cancel', methods=['POST'])
@tutor_required
def cancel_live_class(class_id):
    send('DELETE', f'/live-classes/{class_id}', success='Class cancelled')
    return redirect(url_for('tutor.live_classes'))

@bp.route('/live-classes/<class_id>/attendance')
@tutor_required
def attendance(class_id):
    return render_template('tutor/attendance.html', report=fetch(f'/live-classes/{class_id}/attendance-report', 'data', default={}))
# ==============================================================================
# --- 6. APPOINTMENTS & SCHEDULE ---
# ==============================================================================
@bp.route('/appointments')
@tutor_required
def appointments():
    tab = request.args.get('tab', 'upcoming')
    if tab not in APPOINTMENT_TABS: tab = 'upcoming'
    items = fetch('/appointments', 'appointments', default=[])
    return render_template('appointments.html', appointments=filter_appointments(items, tab), tab=tab, tabs=APPOINTMENT_TABS, role='tutor')

def own_tutor_id():
    if current_user.tutor_id: return current_user.tutor_id
    return (fetch('/tutors/profile', 'tutor', default={}) or {}).get('_id')

def booking_settings(form):
    return {
        'bufferTime': whole_number(form, 'bufferTime', 0, 'Buffer time must be a whole number of minutes.'),
        'minNotice': whole_number(form, 'minNotice', 0, 'Minimum notice must be a whole number of hours.'),
        'maxAdvance': whole_number(form, 'maxAdvance', 30, 'Booking window must be a whole number of days.', minimum=1),
        'autoConfirm': form.get('autoConfirm') == 'on',
    }

@bp.route('/appointments/schedule', methods=['GET', 'POST'])
@tutor_required
def schedule():
    if request.method == 'POST':
        action = request.form.get('action')
        if action == 'weekly':
            availability = [{'day': day, 'slots': [s.strip() for s in request.form.get(day, '').split(',') if s.strip()]} for day in WEEKDAYS]
            malformed = [slot for a in availability for slot in a['slots'] if parse_slot_start(slot) is None]
            if malformed: flash(f"Use HH:MM-HH:MM for time slots: {', '.join(malformed)}", 'error')
            else: send('POST', '/appointments/schedule', {'availability': [a for a in availability if a['slots']]}, 'Weekly schedule saved!')
        elif action == 'block':
            if required_fields(request.form, 'date'): send('POST', '/appointments/schedule/block-date', {'date': request.form['date'], 'reason': request.form.get('reason', '')}, 'Date blocked')
        elif action == 'unblock':
            send('DELETE', f"/appointments/schedule/unblock-date/{request.form.get('date')}", success='Date unblocked')
        elif action == 'settings':
            try: settings = booking_settings(request.form)
            except ValueError as e: flash(str(e), 'error')
            else: send('PUT', '/appointments/schedule/booking-settings', settings, 'Settings updated')
        return redirect(url_for('tutor.schedule'))
    tutor_id = own_tutor_id()
    data = fetch(f'/appointments/schedule/{tutor_id}', None, default={}) if tutor_id else {}
    weekly = {entry.get('day'): ', '.join(entry.get('slots') or []) for entry in data.get('schedule') or []}
    return render_template('tutor/schedule.html', weekly=weekly, weekdays=WEEKDAYS, overrides=data.get('dateOverrides') or [], settings=data.get('bookingSettings') or {})
# ==============================================================================
# --- 7. REVIEWS & SETTINGS ---
# ==============================================================================
@bp.route('/reviews', methods=['GET', 'POST'])
@tutor_required
def reviews():
    if request.method == 'POST':
        comment = request.form.get('comment', '').strip()
        if not comment: flash('Reply cannot be empty.', 'error')
        else: send('POST', f"/reviews/{request.form.get('review_id')}/reply", {'comment': comment}, 'Reply posted.')
        return redirect(url_for('tutor.reviews', page=request.args.get('page', 1)))
    page = max(1, request.args.get('page', 1, type=int))
    data = fetch('/reviews/tutor/all', None, default={}, params={'page': page, 'limit': REVIEWS_PER_PAGE})
    return render_template('tutor/reviews.html', reviews=data.get('reviews') or [], has_more=(data.get('pagination') or {}).get('hasMore', False), page=page)

@bp.route('/settings', methods=['GET', 'POST'])
@tutor_required
def settings():
    if request.method == 'POST' and required_fields(request.form, 'name'):
        form = request.form
        saved = send('PATCH', '/auth/profile', {'name': form['name'].strip(), 'phone': form.get('phone', '').strip()})
        tutor_id = own_tutor_id()
        if saved is not None and tutor_id:
            saved = send('PATCH', f'/tutors/{tutor_id}', {k: form.get(k, '').strip() for k in ('bio', 'title', 'location', 'website')})
        if saved is not None:
            logging.info(f"Tutor {current_user.get_id()} updated their profile.")
            flash('Profile updated successfully', 'success')
            return redirect(url_for('tutor.settings'))
    user = fetch('/auth/me', 'user', default=current_user.profile)
    tutor = fetch('/tutors/profile', 'tutor', default={})
    return render_template('tutor/settings.html', user=user, tutor=tutor)
