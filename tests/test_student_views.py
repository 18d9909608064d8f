"""
Tests for the student area: catalogue, enrollment, exam player, live classes and booking
"""
from datetime import datetime, timedelta

import pytest

from tutorportal.exam_session import ExamSession
from tutorportal.helpers import utcnow

EXAM = {
    '_id': 'exam-1', 'title': 'Algebra Check', 'duration': 10,
    'questions': [
        {'_id': 'q1', 'question': 'What is 2 + 2?', 'options': [{'text': '3'}, {'text': '4'}]},
        {'_id': 'q2', 'question': 'What is 3 * 3?', 'options': [{'text': '9'}, {'text': '6'}]},
    ],
}


@pytest.fixture
def student(login):
    return login('student', _id='stu-1')


@pytest.fixture
def exam_backend(backend):
    backend.on('GET', '/student/exams/exam-1', {'exam': EXAM})
    backend.on('POST', '/student/exams/exam-1/submit', {'success': True, 'attemptId': 'att-1'})
    return backend


def put_exam_session(client, exam_session):
    with client.session_transaction() as sess:
        sess['active_exam'] = exam_session.to_dict()


class TestCatalogue:
    def test_dashboard_renders_fetched_lists(self, client, student, backend):
        backend.on('GET', '/enrollments/my-enrollments', {'enrollments': [{'courseId': {'_id': 'c1', 'title': 'Python Basics'}, 'progress': 40}]})
        backend.on('GET', '/student/exams/all', {'exams': [{'_id': 'e1', 'title': 'Weekly Quiz'}]})
        response = client.get('/student/dashboard')
        assert response.status_code == 200
        assert b'Python Basics' in response.data
        assert b'Weekly Quiz' in response.data

    def test_course_search(self, client, student, backend):
        backend.on('GET', '/courses', {'courses': [{'_id': 'c1', 'title': 'Python Basics'}, {'_id': 'c2', 'title': 'Watercolour'}]})
        response = client.get('/student/courses?q=python')
        assert b'Python Basics' in response.data
        assert b'Watercolour' not in response.data

    def test_course_detail_without_course_goes_back(self, client, student, backend):
        backend.on('GET', '/courses/missing', {'message': 'Course not found'}, status=404)
        response = client.get('/student/courses/missing')
        assert response.headers['Location'].endswith('/student/courses')

    def test_course_detail_renders_sorted_lessons(self, client, student, backend):
        backend.on('GET', '/courses/c1', {'course': {'_id': 'c1', 'title': 'Python Basics', 'price': 0},
                                          'lessons': [{'title': 'Second lesson', 'order': 2}, {'title': 'First lesson', 'order': 1}]})
        response = client.get('/student/courses/c1')
        assert response.status_code == 200
        assert response.data.index(b'First lesson') < response.data.index(b'Second lesson')


class TestEnrollment:
    def test_free_course_enrolls_directly(self, client, student, backend):
        backend.on('GET', '/courses/c1', {'course': {'_id': 'c1', 'title': 'Free Course', 'price': 0}})
        response = client.post('/student/courses/c1/enroll')
        assert response.headers['Location'].endswith('/student/courses/c1')
        assert backend.called('POST', '/enrollments')[0]['json'] == {'courseId': 'c1'}

    def test_paid_course_needs_payments(self, client, student, backend):
        backend.on('GET', '/courses/c2', {'course': {'_id': 'c2', 'title': 'Paid Course', 'price': 999}})
        response = client.post('/student/courses/c2/enroll', follow_redirects=True)
        assert b'Online payments are not available right now.' in response.data
        assert not backend.called('POST', '/enrollments')

    def test_review_rules(self, client, student, backend):
        client.post('/student/courses/c1/review', data={'rating': '0', 'comment': 'A long enough comment'})
        client.post('/student/courses/c1/review', data={'rating': '5', 'comment': 'short'})
        assert not backend.called('POST', '/reviews')
        client.post('/student/courses/c1/review', data={'rating': '4', 'comment': 'Clear and well paced.'})
        assert backend.called('POST', '/reviews')[0]['json'] == {'courseId': 'c1', 'rating': 4, 'comment': 'Clear and well paced.'}

    def test_wishlist_toggle(self, client, student, backend):
        client.post('/student/courses/c1/wishlist', data={'wishlisted': 'false'})
        client.post('/student/courses/c1/wishlist', data={'wishlisted': 'true'})
        assert backend.called('POST', '/wishlist')[0]['json'] == {'courseId': 'c1'}
        assert backend.called('DELETE', '/wishlist/c1')


class TestExamPlayer:
    """Start, answer, navigate and submit an exam"""

    def test_full_attempt(self, client, student, exam_backend):
        response = client.post('/student/exams/exam-1/take', data={'action': 'start'})
        assert response.headers['Location'].endswith('/student/exams/exam-1/take')
        page = client.get('/student/exams/exam-1/take')
        assert page.status_code == 200
        assert b'What is 2 + 2?' in page.data
        client.post('/student/exams/exam-1/take', data={'option': '1', 'action': 'next'})
        with client.session_transaction() as sess:
            assert sess['active_exam']['selections'] == [1, None]
            assert sess['active_exam']['current'] == 1
        client.post('/student/exams/exam-1/take', data={'action': 'mark'})
        client.post('/student/exams/exam-1/take', data={'goto': '0'})
        response = client.post('/student/exams/exam-1/take', data={'action': 'submit'})
        assert response.headers['Location'].endswith('/student/exams/attempt/att-1')
        payload = exam_backend.called('POST', '/student/exams/exam-1/submit')[0]['json']
        assert payload['answers'] == [
            {'questionId': 'q1', 'selectedOption': 1, 'selectedOptionText': '4'},
            {'questionId': 'q2', 'selectedOption': -1, 'selectedOptionText': None},
        ]
        with client.session_transaction() as sess:
            assert 'active_exam' not in sess

    def test_expired_session_is_submitted_on_next_request(self, client, student, exam_backend):
        put_exam_session(client, ExamSession.start(EXAM, now=utcnow() - timedelta(minutes=11)))
        response = client.get('/student/exams/exam-1/take')
        assert response.headers['Location'].endswith('/student/exams/attempt/att-1')
        payload = exam_backend.called('POST', '/student/exams/exam-1/submit')[0]['json']
        assert payload['timeSpent'] == 600
        with client.session_transaction() as sess:
            assert 'active_exam' not in sess
            assert ('warning', 'Time is up! Your exam was submitted automatically.') in sess['_flashes']

    def test_answer_posted_at_expiry_is_kept(self, client, student, exam_backend):
        put_exam_session(client, ExamSession.start(EXAM, now=utcnow() - timedelta(minutes=10, seconds=1)))
        client.post('/student/exams/exam-1/take', data={'option': '0', 'action': 'next'})
        payload = exam_backend.called('POST', '/student/exams/exam-1/submit')[0]['json']
        assert payload['answers'][0]['selectedOption'] == 0

    def test_results_withheld(self, client, student, exam_backend):
        exam_backend.on('POST', '/student/exams/exam-1/submit', {'success': True, 'showResultImmediately': False})
        put_exam_session(client, ExamSession.start(EXAM))
        response = client.post('/student/exams/exam-1/take', data={'action': 'submit'})
        assert response.headers['Location'].endswith('/student/exams')

    def test_failed_submission_keeps_answers(self, client, student, exam_backend):
        exam_backend.on('POST', '/student/exams/exam-1/submit', {'message': 'Already submitted'}, status=409)
        put_exam_session(client, ExamSession.start(EXAM))
        response = client.post('/student/exams/exam-1/take', data={'action': 'submit'})
        assert response.headers['Location'].endswith('/student/exams/exam-1/take')
        with client.session_transaction() as sess:
            assert sess['active_exam']['exam_id'] == 'exam-1'

    def test_failed_auto_submission_ends_the_attempt(self, client, student, exam_backend):
        exam_backend.on('POST', '/student/exams/exam-1/submit', {'message': 'Exam window closed'}, status=400)
        put_exam_session(client, ExamSession.start(EXAM, now=utcnow() - timedelta(minutes=11)))
        response = client.get('/student/exams/exam-1/take')
        assert response.headers['Location'].endswith('/student/exams/exam-1')
        assert len(exam_backend.called('POST', '/student/exams/exam-1/submit')) == 1
        with client.session_transaction() as sess:
            assert 'active_exam' not in sess
            assert ('warning', 'Your time ran out and the attempt could not be submitted.') in sess['_flashes']

    def test_exam_without_questions_cannot_start(self, client, student, backend):
        backend.on('GET', '/student/exams/exam-1', {'exam': {**EXAM, 'questions': []}})
        response = client.post('/student/exams/exam-1/take', data={'action': 'start'})
        assert response.headers['Location'].endswith('/student/exams/exam-1')
        with client.session_transaction() as sess:
            assert 'active_exam' not in sess
            assert ('error', 'This exam has no questions yet.') in sess['_flashes']

    def test_unavailable_exam_cannot_start(self, client, student, backend):
        future = {**EXAM, 'isScheduled': True, 'startDate': (utcnow() + timedelta(days=1)).isoformat()}
        backend.on('GET', '/student/exams/exam-1', {'exam': future})
        response = client.post('/student/exams/exam-1/take', data={'action': 'start'})
        assert response.headers['Location'].endswith('/student/exams/exam-1')
        with client.session_transaction() as sess:
            assert 'active_exam' not in sess

    def test_leaving_discards_the_attempt(self, client, student, exam_backend):
        put_exam_session(client, ExamSession.start(EXAM))
        response = client.post('/student/exams/exam-1/leave')
        assert response.headers['Location'].endswith('/student/exams')
        assert not exam_backend.called('POST', '/student/exams/exam-1/submit')
        with client.session_transaction() as sess:
            assert 'active_exam' not in sess

    def test_attempt_page_renders_result(self, client, student, backend):
        backend.on('GET', '/student/exams/attempt/att-1', {'attempt': {'_id': 'att-1', 'score': 80, 'isPassed': True, 'examId': {'title': 'Algebra Check'}}})
        response = client.get('/student/exams/attempt/att-1')
        assert b'Congratulations! Passed' in response.data
        assert b'80%' in response.data


class TestLiveClassesAndAppointments:
    def test_join_records_attendance(self, client, student, backend):
        backend.on('POST', '/live-classes/lc-1/join-config', {'config': {'meetingNumber': 'room-9', 'topic': 'Vectors'}})
        response = client.get('/student/live-classes/lc-1/join')
        assert response.status_code == 200
        assert b'https://meet.jit.si/room-9' in response.data
        assert backend.called('POST', '/live-classes/lc-1/attendance')

    def test_cancel_appointment(self, client, student, backend):
        response = client.post('/student/appointments?tab=pending', data={'appointment_id': 'ap-1'})
        assert backend.called('DELETE', '/appointments/ap-1')
        assert 'tab=pending' in response.headers['Location']

    def test_appointment_tabs(self, client, student, backend):
        backend.on('GET', '/appointments', {'appointments': [
            {'_id': 'a1', 'status': 'confirmed', 'tutorId': {'name': 'Dr Confirmed'}},
            {'_id': 'a2', 'status': 'cancelled', 'tutorId': {'name': 'Dr Cancelled'}},
        ]})
        upcoming = client.get('/student/appointments')
        assert b'Dr Confirmed' in upcoming.data and b'Dr Cancelled' not in upcoming.data
        history = client.get('/student/appointments?tab=history')
        assert b'Dr Cancelled' in history.data and b'Dr Confirmed' not in history.data

    def test_book_a_slot(self, client, student, backend):
        day = datetime.now().astimezone().date() + timedelta(days=7)
        backend.on('GET', '/appointments/schedule/t-1', {'schedule': [{'day': day.strftime('%A'), 'slots': ['10:00-11:00']}]})
        page = client.get(f'/student/tutors/t-1?date={day.isoformat()}')
        assert b'10:00-11:00' in page.data
        response = client.post('/student/tutors/t-1', data={'date': day.isoformat(), 'slot': '10:00-11:00', 'notes': 'Exam prep'})
        assert response.headers['Location'].endswith('/student/appointments?tab=pending')
        payload = backend.called('POST', '/appointments')[0]['json']
        assert payload['tutorId'] == 't-1'
        assert payload['dateTime'].startswith(f'{day.isoformat()}T10:00:00')
        assert payload['duration'] == 60

    def test_slot_outside_the_schedule_is_refused(self, client, student, backend):
        day = datetime.now().astimezone().date() + timedelta(days=7)
        backend.on('GET', '/appointments/schedule/t-1', {'schedule': [{'day': day.strftime('%A'), 'slots': ['10:00-11:00']}]})
        for slot in ('morning', '14:00-15:00'):
            response = client.post('/student/tutors/t-1', data={'date': day.isoformat(), 'slot': slot})
            assert response.status_code == 200
            assert b'That time slot is not available.' in response.data
        assert not backend.called('POST', '/appointments')

    def test_malformed_tutor_slots_are_not_offered(self, client, student, backend):
        day = datetime.now().astimezone().date() + timedelta(days=7)
        backend.on('GET', '/appointments/schedule/t-1', {'schedule': [{'day': day.strftime('%A'), 'slots': ['after lunch', '10:00-11:00']}]})
        page = client.get(f'/student/tutors/t-1?date={day.isoformat()}')
        assert page.status_code == 200
        assert b'after lunch' not in page.data
        assert b'10:00-11:00' in page.data


class TestPractice:
    def test_only_practice_sets_are_listed(self, client, student, backend):
        backend.on('GET', '/student/exams/all', {'exams': [
            {'_id': 'p1', 'title': 'Fractions Drill', 'type': 'practice', 'totalQuestions': 12, 'myAttemptCount': 2},
            {'_id': 'e1', 'title': 'Midterm', 'type': 'assessment'},
        ]})
        response = client.get('/student/practice')
        assert b'Fractions Drill' in response.data
        assert b'12 questions' in response.data
        assert b'Attempted 2 times' in response.data
        assert b'Midterm' not in response.data
