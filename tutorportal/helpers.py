from datetime import datetime, timezone

ZERO_DECIMAL_CURRENCIES = ('jpy', 'krw', 'vnd')
CURRENCY_SYMBOLS = {'inr': '₹', 'usd': '$', 'eur': '€', 'gbp': '£', 'jpy': '¥'}

def utcnow(): return datetime.now(timezone.utc)

def parse_iso(value):
    if not value: return None
    if isinstance(value, datetime): return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    try: parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError: return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

def format_countdown(seconds):
    seconds = max(0, int(seconds or 0))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{str(hours) + ':' if hours else ''}{minutes:02d}:{secs:02d}"

def format_money(amount, currency='inr', free_label=None):
    currency = (currency or '').lower()
    symbol = CURRENCY_SYMBOLS.get(currency, '')
    try: value = float(amount or 0)
    except (TypeError, ValueError): value = 0.0
    if not value and free_label: return free_label
    number = f"{value:,.0f}" if currency in ZERO_DECIMAL_CURRENCIES else f"{value:,.2f}"
    return f"{symbol}{number}" if symbol else f"{number} {currency.upper()}"

def format_datetime(value, fmt='%d %b %Y, %H:%M'):
    parsed = parse_iso(value)
    return parsed.strftime(fmt) if parsed else ''

def format_date(value): return format_datetime(value, '%d %b %Y')

def register_template_filters(app):
    app.add_template_filter(format_countdown, 'countdown')
    app.add_template_filter(format_datetime, 'datetime')
    app.add_template_filter(format_date, 'date')
    app.add_template_filter(lambda amount: format_money(amount, app.config['PAYMENT_CURRENCY']), 'money')
    app.add_template_filter(lambda amount: format_money(amount, app.config['PAYMENT_CURRENCY'], 'Free'), 'price')
