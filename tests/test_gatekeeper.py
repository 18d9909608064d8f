"""
Tests for role cookies, the request gatekeeper and role decorators
"""
import pytest
from itsdangerous import URLSafeTimedSerializer

from tutorportal.auth import read_role, resolve_redirect, sign_role


class TestResolveRedirect:
    """Redirect table evaluated before every page request"""

    @pytest.mark.parametrize('path, token, role, expected', [
        ('/student/dashboard', None, None, '/login'),
        ('/admin', None, None, '/login'),
        ('/notifications', None, None, '/login'),
        ('/account/profile', None, None, '/login'),
        ('/login', None, None, None),
        ('/register', None, None, None),
        ('/tutors', None, None, None),
        ('/tutor/courses', 'tok', None, '/select-role'),
        ('/select-role', 'tok', None, None),
        ('/login', 'tok', 'tutor', '/tutor/dashboard'),
        ('/register', 'tok', 'admin', '/admin/dashboard'),
        ('/student/exams', 'tok', 'tutor', '/tutor/dashboard'),
        ('/tutor/exams', 'tok', 'student', '/student/dashboard'),
        ('/admin/dashboard', 'tok', 'student', '/student/dashboard'),
        ('/admin/dashboard', 'tok', 'tutor', '/tutor/dashboard'),
        ('/admin/dashboard', 'tok', 'admin', None),
        ('/student/courses', 'tok', 'student', None),
        ('/notifications', 'tok', 'tutor', None),
        ('/tutor/dashboard', 'tok', 'guest', '/student/dashboard'),
        ('/student/dashboard', 'tok', 'guest', None),
    ])
    def test_redirect_table(self, path, token, role, expected):
        assert resolve_redirect(path, token, role) == expected


class TestRoleCookie:
    """The role cookie is signed so it cannot be forged"""

    def test_signed_role_round_trip(self, app):
        with app.app_context():
            assert read_role(sign_role('tutor')) == 'tutor'

    def test_tampered_cookie_is_rejected(self, app):
        with app.app_context():
            forged = URLSafeTimedSerializer('someone-elses-secret', salt='user-role').dumps('admin')
            assert read_role(forged) is None
            assert read_role('admin') is None
            assert read_role(None) is None


class TestGatekeeperRequests:
    """End-to-end redirects through the Flask test client"""

    def test_anonymous_user_is_sent_to_login(self, client):
        response = client.get('/student/dashboard')
        assert response.status_code == 302
        assert response.headers['Location'].endswith('/login')

    def test_token_without_role_is_sent_to_role_selection(self, client):
        client.set_cookie('token', 'tok')
        response = client.get('/tutor/dashboard')
        assert response.headers['Location'].endswith('/select-role')

    def test_forged_role_cookie_counts_as_no_role(self, client):
        client.set_cookie('token', 'tok')
        client.set_cookie('user_role', 'admin')
        response = client.get('/admin/dashboard')
        assert response.headers['Location'].endswith('/select-role')

    def test_tutor_cannot_open_student_area(self, client, login):
        login('tutor')
        response = client.get('/student/exams')
        assert response.headers['Location'].endswith('/tutor/dashboard')

    def test_logged_in_user_skips_login_page(self, client, login):
        login('admin')
        response = client.get('/login')
        assert response.headers['Location'].endswith('/admin/dashboard')

    def test_unknown_role_lands_on_student_dashboard(self, client, login, backend):
        login('guest')
        assert client.get('/student/dashboard').status_code == 200

    def test_json_feed_is_not_redirected(self, client):
        response = client.get('/api/notifications/feed')
        assert response.status_code == 401
        assert response.get_json()['logged_in'] is False
