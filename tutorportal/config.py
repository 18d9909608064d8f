import os, logging
from dotenv import load_dotenv

REQUIRED_KEYS = ['SECRET_KEY', 'API_KEY']

def env_flag(name, default='true'):
    return os.environ.get(name, default).lower() == 'true'

def load_config(overrides=None):
    load_dotenv()
    config = {
        'SECRET_KEY': os.environ.get('SECRET_KEY'),
        'API_KEY': os.environ.get('API_KEY'),
        'API_BASE_URL': os.environ.get('API_BASE_URL', 'http://localhost:4000/api'),
        'API_TIMEOUT': float(os.environ.get('API_TIMEOUT', 15)),
        'NOTIFICATION_POLL_SECONDS': int(os.environ.get('NOTIFICATION_POLL_SECONDS', 60)),
        'FORCE_HTTPS': env_flag('FORCE_HTTPS'),
        'STRIPE_SECRET_KEY': os.environ.get('STRIPE_SECRET_KEY', ''),
        'STRIPE_PUBLIC_KEY': os.environ.get('STRIPE_PUBLIC_KEY', ''),
        'PAYMENT_CURRENCY': os.environ.get('PAYMENT_CURRENCY', 'inr'),
        'YOUR_DOMAIN': os.environ.get('YOUR_DOMAIN', 'http://localhost:5000'),
        'SQLALCHEMY_DATABASE_URI': os.environ.get('DATABASE_URL', 'sqlite:///portal.db'),
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    }
    if overrides: config.update(overrides)
    for key in REQUIRED_KEYS:
        if not config.get(key):
            logging.critical(f"CRITICAL ERROR: Environment variable '{key}' is not set.")
            raise SystemExit(f"Error: Missing required environment variable '{key}'.")
    return config
