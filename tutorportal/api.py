import logging
import requests
from flask import current_app, g, request

TOKEN_COOKIE = 'token'
GENERIC_ERROR = 'Something went wrong. Please try again.'

class ApiError(Exception):
    def __init__(self, status, message, code=None, payload=None):
        super().__init__(message)
        self.status, self.message, self.code, self.payload = status, message, code, payload or {}
    def __str__(self):
        return f"[{self.status}] {self.message}" if self.status else self.message

class ApiUnauthorized(ApiError):
    pass

class ApiClient:
    """Thin JSON client for the tutoring backend.

    Every call carries the static API key and, once logged in, the caller's
    bearer token. Non-2xx answers raise ApiError; 401 raises ApiUnauthorized.
    """
    def __init__(self, base_url, api_key, token=None, timeout=15, session=None):
        self.base_url = base_url.rstrip('/')
        self.api_key, self.token, self.timeout = api_key, token, timeout
        self.session = session if session is not None else requests.Session()

    def headers(self):
        headers = {'Content-Type': 'application/json', 'x-api-key': self.api_key}
        if self.token: headers['Authorization'] = f"Bearer {self.token}"
        return headers

    def request(self, method, path, params=None, json=None):
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            resp = self.session.request(method, url, params=params, json=json, headers=self.headers(), timeout=self.timeout)
        except requests.RequestException as e:
            logging.error(f"{method} {url} failed: {e}")
            raise ApiError(None, 'Unable to reach the tutoring service. Please try again.') from e
        try: data = resp.json()
        except ValueError: data = {}
        if not isinstance(data, dict): data = {'data': data}
        if resp.status_code == 401:
            raise ApiUnauthorized(401, data.get('message') or 'Your session has expired. Please log in again.', data.get('code'), data)
        if resp.status_code >= 400:
            raise ApiError(resp.status_code, data.get('message') or data.get('error') or GENERIC_ERROR, data.get('code'), data)
        return data

    def get(self, path, params=None): return self.request('GET', path, params=params)
    def post(self, path, json=None): return self.request('POST', path, json=json or {})
    def put(self, path, json=None): return self.request('PUT', path, json=json or {})
    def patch(self, path, json=None): return self.request('PATCH', path, json=json or {})
    def delete(self, path): return self.request('DELETE', path)

def build_client(token):
    cfg = current_app.config
    return ApiClient(cfg['API_BASE_URL'], cfg['API_KEY'], token=token, timeout=cfg['API_TIMEOUT'], session=current_app.extensions['api_session'])

def get_api(token=None):
    if token: return build_client(token)
    if 'api' not in g: g.api = build_client(request.cookies.get(TOKEN_COOKIE))
    return g.api
