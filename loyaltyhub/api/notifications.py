"""
Notifications API - inbox and delivery preferences.
"""
from flask import Blueprint, request, g
from ..middleware.user_auth import require_user
from ..services.notification_service import NotificationService
from ..utils.errors import service_response

notifications_bp = Blueprint('notifications', __name__)


@notifications_bp.route('', methods=['GET'])
@require_user()
def list_notifications():
    """
    Inbox of the calling user, newest first.

    Query params:
    - unread_only: true to skip read notifications
    - limit: Max entries (default: 50)
    - offset: Entries to skip (default: 0)
    """
    result = NotificationService().get_notifications(
        g.user_id,
        unread_only=request.args.get('unread_only') == 'true',
        limit=request.args.get('limit', 50, type=int),
        offset=request.args.get('offset', 0, type=int)
    )
    return service_response(result)


@notifications_bp.route('/<int:notification_id>/read', methods=['POST'])
@require_user()
def mark_read(notification_id):
    return service_response(NotificationService().mark_as_read(notification_id, g.user_id))


@notifications_bp.route('/read-all', methods=['POST'])
@require_user()
def mark_all_read():
    return service_response(NotificationService().mark_all_as_read(g.user_id))


@notifications_bp.route('/preferences', methods=['GET'])
@require_user()
def get_preferences():
    return service_response(NotificationService().get_preferences(g.user_id))


@notifications_bp.route('/preferences', methods=['PUT'])
@require_user()
def update_preferences():
    """Request body: any subset of the preference flags as booleans."""
    data = request.get_json(silent=True) or {}
    return service_response(NotificationService().update_preferences(g.user_id, data))
