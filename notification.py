from flask_restful import Resource
from flask_jwt_extended import jwt_required
from sqlalchemy.exc import SQLAlchemyError
from model import db, Notification
from auth import get_current_user
import logging

logger = logging.getLogger(__name__)


def create_notification(recipient_id, type, title, message, sender_id=None, related_id=None, related_type=None):
    """Queue a notification on the current session. The caller commits."""
    notification = Notification(
        recipient_id=recipient_id,
        sender_id=sender_id,
        type=type,
        title=title,
        message=message,
        related_id=related_id,
        related_type=related_type
    )
    db.session.add(notification)
    return notification


class NotificationListResource(Resource):

    @jwt_required()
    def get(self):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        notifications = (Notification.query
                         .filter_by(recipient_id=user.id)
                         .order_by(Notification.created_at.desc(), Notification.id.desc())
                         .all())
        return {"notifications": [n.as_dict() for n in notifications]}, 200


class UnreadCountResource(Resource):

    @jwt_required()
    def get(self):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        count = Notification.query.filter_by(recipient_id=user.id, read=False).count()
        return {"count": count}, 200


class MarkNotificationReadResource(Resource):

    @jwt_required()
    def put(self, notification_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        notification = db.session.get(Notification, notification_id)
        if not notification:
            return {"message": "Notification not found"}, 404

        if notification.recipient_id != user.id:
            return {"message": "You can only update your own notifications"}, 403

        try:
            notification.read = True
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error marking notification {notification_id} read: {e}")
            return {"message": "Database error"}, 500

        return {"message": "Notification marked as read", "notification": notification.as_dict()}, 200


class MarkAllReadResource(Resource):

    @jwt_required()
    def put(self):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        try:
            updated = (Notification.query
                       .filter_by(recipient_id=user.id, read=False)
                       .update({Notification.read: True}, synchronize_session=False))
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error marking notifications read for user {user.id}: {e}")
            return {"message": "Database error"}, 500

        return {"message": "All notifications marked as read", "updated": updated}, 200


def register_notification_resources(api):
    api.add_resource(NotificationListResource, "/api/notifications")
    api.add_resource(UnreadCountResource, "/api/notifications/unread-count")
    api.add_resource(MarkAllReadResource, "/api/notifications/read-all")
    api.add_resource(MarkNotificationReadResource, "/api/notifications/<int:notification_id>/read")
