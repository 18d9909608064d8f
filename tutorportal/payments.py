import logging
from datetime import datetime, timezone
import stripe
from flask import current_app
from .helpers import ZERO_DECIMAL_CURRENCIES

def configure(app):
    stripe.api_key = app.config.get('STRIPE_SECRET_KEY') or None

def payments_enabled(): return bool(current_app.config.get('STRIPE_SECRET_KEY'))

def course_price(course):
    try: return float(course.get('price') or 0)
    except (TypeError, ValueError): return 0.0

def minor_units(amount, currency):
    if currency.lower() in ZERO_DECIMAL_CURRENCIES: return int(round(amount))
    return int(round(amount * 100))

def major_units(amount, currency):
    if currency.lower() in ZERO_DECIMAL_CURRENCIES: return float(amount)
    return amount / 100

def create_course_checkout(course, user, success_url, cancel_url):
    currency = current_app.config['PAYMENT_CURRENCY']
    metadata = {'course_id': course['_id'], 'student_id': user.get_id(), 'course_title': course.get('title', '')}
    checkout_session = stripe.checkout.Session.create(
        mode='payment', customer_email=user.email or None,
        line_items=[{'price_data': {'currency': currency, 'unit_amount': minor_units(course_price(course), currency),
                                    'product_data': {'name': course.get('title', 'Course')}}, 'quantity': 1}],
        metadata=metadata, payment_intent_data={'metadata': metadata},
        success_url=success_url, cancel_url=cancel_url,
    )
    logging.info(f"Created checkout session {checkout_session.id} for course {course['_id']}.")
    return checkout_session

def confirm_course_checkout(session_id, course_id):
    checkout_session = stripe.checkout.Session.retrieve(session_id)
    if checkout_session.payment_status != 'paid': return None
    if (checkout_session.metadata or {}).get('course_id') != course_id: return None
    return checkout_session.payment_intent

def payment_history(student_id, limit=50):
    result = stripe.PaymentIntent.search(query=f"metadata['student_id']:'{student_id}'", limit=limit)
    return [{
        'id': intent.id, 'course': (intent.metadata or {}).get('course_title', ''),
        'amount': major_units(intent.amount, intent.currency), 'currency': intent.currency,
        'status': intent.status, 'created': datetime.fromtimestamp(intent.created, timezone.utc).isoformat(),
    } for intent in result.data]
