import logging
from flask import flash
from ..api import ApiError, ApiUnauthorized, get_api

def fetch(path, key, default=None, params=None):
    try: data = get_api().get(path, params=params)
    except ApiUnauthorized: raise
    except ApiError as e:
        logging.error(f"GET {path} failed: {e}")
        flash(e.message, 'error')
        return default
    if key is None: return data
    value = data.get(key)
    return default if value is None else value

def send(method, path, payload=None, success=None):
    api = get_api()
    try: data = api.delete(path) if method == 'DELETE' else getattr(api, method.lower())(path, payload)
    except ApiUnauthorized: raise
    except ApiError as e:
        logging.error(f"{method} {path} failed: {e}")
        flash(e.message, 'error')
        return None
    if success: flash(success, 'success')
    return data

def required_fields(form, *names):
    missing = [name for name in names if not (form.get(name) or '').strip()]
    if missing: flash('Please fill in all required fields.', 'error')
    return not missing
