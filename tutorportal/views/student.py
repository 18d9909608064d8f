import logging
import stripe
from flask import Blueprint, abort, current_app, flash, redirect, render_template, request, session, url_for
from flask_login import current_user
from ..api import ApiError, get_api
from ..auth import student_required
from ..exam_session import ExamSession, exam_status
from ..filters import COURSE_SORTS, filter_courses, filter_exams, practice_sets
from ..helpers import utcnow
from ..scheduling import APPOINTMENT_TABS, booking_payload, filter_appointments, is_live, parse_day, slots_for_date, upcoming_live_classes
from .. import payments
from . import fetch, required_fields, send

bp = Blueprint('student', __name__, url_prefix='/student')
EXAM_FILTERS = ('all', 'available', 'upcoming', 'completed', 'expired')
JITSI_DOMAIN = 'https://meet.jit.si'
# ==============================================================================
# --- 1. DASHBOARD & LEARNING ---
# ==============================================================================
@bp.route('/dashboard')
@student_required
def dashboard():
    enrollments = fetch('/enrollments/my-enrollments', 'enrollments', default=[])
    live_classes = upcoming_live_classes(fetch('/live-classes', 'liveClasses', default=[]))[:3]
    exams = filter_exams(fetch('/student/exams/all', 'exams', default=[]), status='available')[:5]
    return render_template('student/dashboard.html', enrollments=enrollments, live_classes=live_classes, exams=exams)

@bp.route('/learning')
@student_required
def learning():
    return render_template('student/learning.html', enrollments=fetch('/enrollments/my-enrollments', 'enrollments', default=[]))
# ==============================================================================
# --- 2. COURSE CATALOGUE, ENROLLMENT & WISHLIST ---
# ==============================================================================
@bp.route('/courses')
@student_required
def courses():
    args = request.args
    q, category, level, sort = args.get('q', ''), args.get('category', 'all'), args.get('level', 'all'), args.get('sort', 'popular')
    all_courses = fetch('/courses', 'courses', default=[])
    categories = fetch('/categories', 'categories', default=[])
    return render_template('student/courses.html', courses=filter_courses(all_courses, q, category, level, sort), categories=categories,
                           q=q, category=category, level=level, sort=sort, sorts=COURSE_SORTS, total=len(all_courses))

@bp.route('/courses/<course_id>')
@student_required
def course_detail(course_id):
    data = fetch(f'/courses/{course_id}', None, default={})
    if not data.get('course'): return redirect(url_for('student.courses'))
    enrolled = bool(data.get('isEnrolled'))
    exams = fetch(f'/exams/course/{course_id}', 'exams', default=[]) if enrolled else []
    live_classes = upcoming_live_classes(fetch('/live-classes', 'liveClasses', default=[], params={'courseId': course_id})) if enrolled else []
    reviews = fetch(f'/reviews/course/{course_id}', None, default={})
    wishlisted = fetch(f'/wishlist/{course_id}/status', 'isWishlisted', default=False)
    lessons = sorted(data.get('lessons') or [], key=lambda lesson: lesson.get('order') or 0)
    return render_template('student/course.html', course=data['course'], lessons=lessons, enrolled=enrolled, exams=exams, live_classes=live_classes,
                           reviews=reviews.get('reviews') or [], rating_distribution=reviews.get('ratingDistribution') or {}, wishlisted=wishlisted)

@bp.route('/courses/<course_id>/enroll', methods=['POST'])
@student_required
def enroll(course_id):
    course = fetch(f'/courses/{course_id}', 'course', default={})
    if not course: return redirect(url_for('student.courses'))
    if payments.course_price(course) > 0:
        if not payments.payments_enabled():
            flash('Online payments are not available right now.', 'error')
            return redirect(url_for('student.course_detail', course_id=course_id))
        domain = current_app.config['YOUR_DOMAIN'].rstrip('/')
        try:
            checkout_session = payments.create_course_checkout(course, current_user,
                success_url=f"{domain}{url_for('student.enroll_complete', course_id=course_id)}?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{domain}{url_for('student.course_detail', course_id=course_id)}")
        except stripe.StripeError as e:
            logging.error(f"Checkout for course {course_id} failed: {e}")
            flash('Could not start the payment. Please try again.', 'error')
            return redirect(url_for('student.course_detail', course_id=course_id))
        return redirect(checkout_session.url, code=303)
    send('POST', '/enrollments', {'courseId': course_id}, 'You are enrolled!')
    return redirect(url_for('student.course_detail', course_id=course_id))

@bp.route('/courses/<course_id>/enroll/complete')
@student_required
def enroll_complete(course_id):
    session_id = request.args.get('session_id')
    if not session_id: abort(400)
    try: payment_id = payments.confirm_course_checkout(session_id, course_id)
    except stripe.StripeError as e:
        logging.error(f"Checkout confirmation {session_id} failed: {e}")
        payment_id = None
    if not payment_id: flash('We could not confirm your payment.', 'error')
    else: send('POST', '/enrollments', {'courseId': course_id, 'paymentId': payment_id}, 'Payment received. You are enrolled!')
    return redirect(url_for('student.course_detail', course_id=course_id))

@bp.route('/courses/<course_id>/wishlist', methods=['POST'])
@student_required
def toggle_wishlist(course_id):
    if request.form.get('wishlisted') == 'true': send('DELETE', f'/wishlist/{course_id}', success='Removed from wishlist')
    else: send('POST', '/wishlist', {'courseId': course_id}, 'Added to wishlist')
    return redirect(request.referrer or url_for('student.course_detail', course_id=course_id))

@bp.route('/courses/<course_id>/review', methods=['POST'])
@student_required
def review(course_id):
    rating, comment = request.form.get('rating', 0, type=int), request.form.get('comment', '').strip()
    if not 1 <= rating <= 5: flash('Please select a rating', 'error')
    elif len(comment) < 10: flash('Review must be at least 10 characters', 'error')
    else: send('POST', '/reviews', {'courseId': course_id, 'rating': rating, 'comment': comment}, 'Thanks for your review!')
    return redirect(url_for('student.course_detail', course_id=course_id))

@bp.route('/wishlist')
@student_required
def wishlist():
    return render_template('student/wishlist.html', items=fetch('/wishlist', 'wishlist', default=[]))

@bp.route('/wishlist/<course_id>/remove', methods=['POST'])
@student_required
def remove_from_wishlist(course_id):
    send('DELETE', f'/wishlist/{course_id}', success='Removed from wishlist')
    return redirect(url_for('student.wishlist'))

@bp.route('/payments')
@student_required
def payment_history():
    transactions = []
    if payments.payments_enabled():
        try: transactions = payments.payment_history(current_user.get_id())
        except stripe.StripeError as e:
            logging.error(f"Payment history for {current_user.get_id()} failed: {e}")
            flash('Could not load your payments right now.', 'error')
    return render_template('student/payments.html', transactions=transactions)
# ==============================================================================
# --- 3. EXAMS ---
# ==============================================================================
@bp.route('/exams')
@student_required
def exams():
    q, status = request.args.get('q', ''), request.args.get('status', 'all')
    all_exams = fetch('/student/exams/all', 'exams', default=[])
    now = utcnow()
    listed = [dict(e, status=exam_status(e, now)) for e in filter_exams(all_exams, q, status, now)]
    return render_template('student/exams.html', exams=listed, q=q, status=status, filters=EXAM_FILTERS)

@bp.route('/practice')
@student_required
def practice():
    q = request.args.get('q', '')
    sets = filter_exams(practice_sets(fetch('/student/exams/all', 'exams', default=[])), q)
    return render_template('student/practice.html', exams=sets, q=q)

@bp.route('/exams/<exam_id>')
@student_required
def exam_detail(exam_id):
    exam = fetch(f'/student/exams/{exam_id}', 'exam', default={})
    if not exam: return redirect(url_for('student.exams'))
    attempts = fetch(f'/exams/{exam_id}/my-attempts', 'attempts', default=[])
    active = session.get('active_exam') or {}
    return render_template('student/exam.html', exam=exam, status=exam_status(exam), attempts=attempts, in_progress=active.get('exam_id') == exam_id)

def load_exam(exam_id):
    try: return get_api().get(f'/student/exams/{exam_id}').get('exam')
    except ApiError as e:
        if e.status == 401: raise
        logging.error(f"Failed to load exam {exam_id}: {e}")
        flash('Failed to load exam. Please try again.', 'error')
        return None

def current_exam_session(exam_id):
    data = session.get('active_exam')
    if not data or data.get('exam_id') != exam_id: return None
    return ExamSession.from_dict(data)

def save_exam_session(exam_session):
    session['active_exam'] = exam_session.to_dict()

def submit_exam(exam_id, exam, exam_session, auto=False):
    payload = exam_session.build_submission(exam.get('questions') or [])
    try: data = get_api().post(f'/student/exams/{exam_id}/submit', payload)
    except ApiError as e:
        if e.status == 401: raise
        logging.error(f"Submitting exam {exam_id} failed: {e}")
        flash(e.message or 'Submission failed. Please try again.', 'error')
        if not auto: return redirect(url_for('student.take_exam', exam_id=exam_id))
        # time is up, so the attempt cannot be resumed
        session.pop('active_exam', None)
        flash('Your time ran out and the attempt could not be submitted.', 'warning')
        return redirect(url_for('student.exam_detail', exam_id=exam_id))
    session.pop('active_exam', None)
    logging.info(f"Exam {exam_id} submitted by {current_user.get_id()} ({'auto' if auto else 'manual'}, {payload['timeSpent']}s).")
    flash('Time is up! Your exam was submitted automatically.' if auto else 'Test Submitted Successfully!', 'warning' if auto else 'success')
    if data.get('showResultImmediately') is False:
        flash('Results will be published by your instructor.', 'info')
        return redirect(url_for('student.exams'))
    attempt_id = data.get('attemptId') or (data.get('attempt') or {}).get('_id')
    if not attempt_id: return redirect(url_for('student.history'))
    return redirect(url_for('student.exam_attempt', attempt_id=attempt_id))

@bp.route('/exams/<exam_id>/take', methods=['GET', 'POST'])
@student_required
def take_exam(exam_id):
    exam = load_exam(exam_id)
    if not exam: return redirect(url_for('student.exams'))
    exam_session = current_exam_session(exam_id)
    if exam_session is None:
        if request.method == 'POST' and request.form.get('action') != 'start':
            flash('This exam session has ended.', 'error')
            return redirect(url_for('student.exam_detail', exam_id=exam_id))
        if exam_status(exam) != 'available':
            flash('This exam is not available right now.', 'error')
            return redirect(url_for('student.exam_detail', exam_id=exam_id))
        if not exam.get('questions'):
            flash('This exam has no questions yet.', 'error')
            return redirect(url_for('student.exam_detail', exam_id=exam_id))
        exam_session = ExamSession.start(exam)
        save_exam_session(exam_session)
        return redirect(url_for('student.take_exam', exam_id=exam_id))
    expired = exam_session.is_expired()
    if request.method == 'POST':
        form = request.form
        action = 'goto' if form.get('goto') else form.get('action', 'save')
        try:
            if form.get('option') not in (None, ''): exam_session.select(form['option'])
            if expired: pass
            elif action == 'next': exam_session.next()
            elif action == 'previous': exam_session.previous()
            elif action == 'goto': exam_session.go_to(form.get('goto', 0, type=int))
            elif action == 'clear': exam_session.clear()
            elif action == 'mark': exam_session.toggle_mark()
        except ValueError: flash('Please choose one of the listed options.', 'error')
        save_exam_session(exam_session)
        if expired or action == 'submit': return submit_exam(exam_id, exam, exam_session, auto=expired)
        return redirect(url_for('student.take_exam', exam_id=exam_id))
    if expired: return submit_exam(exam_id, exam, exam_session, auto=True)
    return render_template('student/take_exam.html', exam=exam, exam_session=exam_session, question=exam_session.current_question(exam.get('questions') or []),
                           remaining=exam_session.remaining(), counts=exam_session.status_counts(),
                           statuses=[exam_session.status(p) for p in range(exam_session.total)])

@bp.route('/exams/<exam_id>/leave', methods=['POST'])
@student_required
def leave_exam(exam_id):
    if (session.get('active_exam') or {}).get('exam_id') == exam_id: session.pop('active_exam', None)
    flash('You left the exam. Your answers were not submitted.', 'warning')
    return redirect(url_for('student.exams'))

@bp.route('/exams/attempt/<attempt_id>')
@student_required
def exam_attempt(attempt_id):
    return render_template('exam_attempt.html', attempt=fetch(f'/student/exams/attempt/{attempt_id}', 'attempt', default={}), back=url_for('student.history'))

@bp.route('/history')
@student_required
def history():
    return render_template('student/history.html', attempts=fetch('/exams/student/history-all', 'attempts', default=[]))
# ==============================================================================
# --- 4. LIVE CLASSES ---
# ==============================================================================
@bp.route('/live-classes')
@student_required
def live_classes():
    now = utcnow()
    classes = [dict(c, is_live=is_live(c, now)) for c in upcoming_live_classes(fetch('/live-classes', 'liveClasses', default=[]), now)]
    enrollments = fetch('/enrollments/my-enrollments', 'enrollments', default=[])
    return render_template('student/live_classes.html', classes=classes, enrollments=enrollments)

@bp.route('/live-classes/<class_id>/join')
@student_required
def join_live_class(class_id):
    data = send('POST', f'/live-classes/{class_id}/join-config')
    if data is None: return redirect(url_for('student.live_classes'))
    send('POST', f'/live-classes/{class_id}/attendance')
    meeting = data.get('config') or {}
    room_url = meeting.get('meetingLink') or f"{JITSI_DOMAIN}/{meeting.get('meetingNumber', class_id)}"
    return render_template('student/join.html', meeting=meeting, room_url=room_url)
# ==============================================================================
# --- 5. TUTORS & APPOINTMENTS ---
# ==============================================================================
@bp.route('/appointments', methods=['GET', 'POST'])
@student_required
def appointments():
    if request.method == 'POST':
        send('DELETE', f"/appointments/{request.form.get('appointment_id')}", success='Appointment cancelled.')
        return redirect(url_for('student.appointments', tab=request.args.get('tab', 'upcoming')))
    tab = request.args.get('tab', 'upcoming')
    if tab not in APPOINTMENT_TABS: tab = 'upcoming'
    items = fetch('/appointments', 'appointments', default=[])
    return render_template('appointments.html', appointments=filter_appointments(items, tab), tab=tab, tabs=APPOINTMENT_TABS, role='student')

@bp.route('/tutors/<tutor_id>', methods=['GET', 'POST'])
@student_required
def tutor_detail(tutor_id):
    today = utcnow().astimezone().date()
    day = parse_day(request.values.get('date'), today)
    schedule = fetch(f'/appointments/schedule/{tutor_id}', None, default={})
    slots = slots_for_date(day, schedule.get('schedule') or [], schedule.get('dateOverrides') or []) if day >= today else []
    if request.method == 'POST' and required_fields(request.form, 'slot'):
        slot = request.form['slot']
        if slot not in slots: flash('That time slot is not available. Please pick another one.', 'error')
        else:
            payload = booking_payload(tutor_id, day, slot, request.form.get('notes', '').strip())
            if send('POST', '/appointments', payload, 'Appointment booked successfully!') is not None: return redirect(url_for('student.appointments', tab='pending'))
    tutor = fetch(f'/tutors/{tutor_id}', 'tutor', default={})
    return render_template('student/tutor.html', tutor=tutor, day=day, today=today, slots=slots)
