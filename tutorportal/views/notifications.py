from flask import Blueprint, jsonify, redirect, render_template, request, url_for
from flask_login import login_required
from ..api import get_api
from . import fetch, send

bp = Blueprint('notifications', __name__)
FEED_SIZE = 10

def unread_count(notifications): return sum(1 for n in notifications if not n.get('read'))

@bp.route('/notifications')
@login_required
def index():
    notifications = fetch('/notifications', 'notifications', default=[])
    show = request.args.get('show', 'all')
    visible = [n for n in notifications if not n.get('read')] if show == 'unread' else notifications
    return render_template('notifications.html', notifications=visible, unread=unread_count(notifications), show=show)

@bp.route('/notifications/<notification_id>/read', methods=['POST'])
@login_required
def mark_read(notification_id):
    send('PATCH', f'/notifications/{notification_id}/read')
    return redirect(request.referrer or url_for('notifications.index'))

@bp.route('/notifications/read-all', methods=['POST'])
@login_required
def mark_all_read():
    send('PATCH', '/notifications/read-all', success='All notifications marked as read.')
    return redirect(request.referrer or url_for('notifications.index'))
# ==============================================================================
# --- JSON FEED (polled by the header bell) ---
# ==============================================================================
@bp.route('/api/notifications/feed')
@login_required
def feed():
    notifications = get_api().get('/notifications').get('notifications') or []
    return jsonify({"success": True, "unread": unread_count(notifications), "notifications": notifications[:FEED_SIZE]})
