from flask import request
from flask_restful import Resource
from flask_jwt_extended import jwt_required
from sqlalchemy import cast, String
from sqlalchemy.exc import SQLAlchemyError
from model import db, User, PrivacyLevel, parse_enum
from auth import get_current_user, get_optional_user
from notification import create_notification
from utils import get_page_args, paginated, parse_bool, contains_pattern, json_member_pattern, LIKE_ESCAPE
import logging

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "name", "university", "major", "year", "title", "heritage", "languages", "bio", "image",
    "location", "country", "state", "linkedin_url", "is_public", "privacy"
)
LIST_FIELDS = ("heritage", "languages")


class UserListResource(Resource):

    def get(self):
        """Discover public profiles, optionally filtered by university, heritage or free text."""
        viewer = get_optional_user()
        page, per_page = get_page_args()

        university = request.args.get('university', type=str)
        heritage = request.args.get('heritage', type=str)
        search_query = request.args.get('search', type=str)

        query = User.query.filter(User.is_public.is_(True))

        if university:
            query = query.filter(User.university.ilike(contains_pattern(university), escape=LIKE_ESCAPE))

        if heritage:
            # heritage is a JSON list; match the quoted element in its text form
            query = query.filter(cast(User.heritage, String).ilike(json_member_pattern(heritage), escape=LIKE_ESCAPE))

        if search_query:
            pattern = contains_pattern(search_query)
            query = query.filter(db.or_(
                User.name.ilike(pattern, escape=LIKE_ESCAPE),
                User.university.ilike(pattern, escape=LIKE_ESCAPE),
                User.bio.ilike(pattern, escape=LIKE_ESCAPE)
            ))

        try:
            users = query.order_by(User.name.asc(), User.id.asc()).paginate(
                page=page, per_page=per_page, error_out=False)
        except SQLAlchemyError as e:
            logger.error(f"Database error listing users: {e}")
            return {"message": "Database error"}, 500

        items = []
        for user in users.items:
            data = user.as_dict()
            data.pop("email", None)
            if viewer:
                data["is_connected"] = viewer.is_connected_to(user)
            items.append(data)

        return paginated(users, 'users', items), 200


class UserResource(Resource):

    def get(self, user_id):
        viewer = get_optional_user()

        user = db.session.get(User, user_id)
        if not user:
            return {"message": "User not found"}, 404

        if not user.can_be_viewed_by(viewer):
            return {"message": "This profile is private"}, 403

        data = user.as_dict()
        is_self = viewer is not None and viewer.id == user.id
        if not is_self:
            data.pop("email", None)

        data["stats"] = {
            "joined_groups": len(user.groups),
            "connections": len(user.connections),
            "events_attended": user.events_attended or 0
        }

        if viewer and not is_self:
            mine = {c.id for c in viewer.connections}
            data["is_connected"] = viewer.is_connected_to(user)
            data["mutual_connections"] = sum(1 for c in user.connections if c.id in mine)
        else:
            data["is_connected"] = False
            data["mutual_connections"] = 0

        return data, 200


class ProfileResource(Resource):

    @jwt_required()
    def put(self):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        data = request.get_json(silent=True) or {}

        for field in UPDATABLE_FIELDS:
            if field not in data:
                continue
            value = data[field]

            if field == "privacy":
                try:
                    value = parse_enum(PrivacyLevel, value)
                except ValueError as e:
                    return {"message": str(e)}, 400
            elif field == "name":
                if not value or not str(value).strip():
                    return {"message": "Name cannot be empty"}, 400
                value = str(value).strip()
            elif field in LIST_FIELDS:
                if value is None:
                    value = []
                if not isinstance(value, list):
                    return {"message": f"{field} must be a list"}, 400
            elif field == "is_public":
                value = parse_bool(value, default=True)

            setattr(user, field, value)

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error updating profile for user {user.id}: {e}")
            return {"message": "Database error"}, 500

        return {"message": "Profile updated successfully", "user": user.as_dict()}, 200


class ConnectionResource(Resource):

    @jwt_required()
    def post(self, user_id):
        """Connect with another user (mutual)."""
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        if user.id == user_id:
            return {"message": "You cannot connect with yourself"}, 400

        target = db.session.get(User, user_id)
        if not target:
            return {"message": "User not found"}, 404

        if user.is_connected_to(target):
            return {"message": "Already connected with this user"}, 400

        try:
            user.connect(target)
            create_notification(
                recipient_id=target.id,
                sender_id=user.id,
                type="connection",
                title="New connection",
                message=f"{user.name} connected with you",
                related_id=user.id,
                related_type="user"
            )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error connecting users {user.id} and {user_id}: {e}")
            return {"message": "Database error"}, 500

        logger.info(f"User {user.id} connected with user {target.id}")
        return {"message": "Connected successfully", "connection": target.summary()}, 201

    @jwt_required()
    def delete(self, user_id):
        """Remove a connection in both directions."""
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        if user.id == user_id:
            return {"message": "You cannot disconnect from yourself"}, 400

        target = db.session.get(User, user_id)
        if not target:
            return {"message": "User not found"}, 404

        if not user.is_connected_to(target) and not target.is_connected_to(user):
            return {"message": "You are not connected with this user"}, 400

        try:
            user.disconnect(target)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error disconnecting users {user.id} and {user_id}: {e}")
            return {"message": "Database error"}, 500

        return {"message": "Connection removed"}, 200


def _resolve_target(user_id):
    """Return (viewer, target, error) for the /users/<id>/... and /users/me/... listings."""
    viewer = get_current_user()
    if not viewer:
        return None, None, ({"message": "User not found"}, 404)
    if user_id is None:
        return viewer, viewer, None
    target = db.session.get(User, user_id)
    if not target:
        return viewer, None, ({"message": "User not found"}, 404)
    return viewer, target, None


class UserConnectionsResource(Resource):

    @jwt_required()
    def get(self, user_id=None):
        viewer, target, error = _resolve_target(user_id)
        if error:
            return error

        if target.id != viewer.id and not target.is_public:
            return {"message": "This user's connections are private"}, 403

        connections = sorted(target.connections, key=lambda u: (u.name or "").lower())
        return {"connections": [c.summary() for c in connections]}, 200


class UserGroupsResource(Resource):

    @jwt_required()
    def get(self, user_id=None):
        viewer, target, error = _resolve_target(user_id)
        if error:
            return error

        groups = []
        for group in target.groups:
            data = group.as_dict()
            data["is_admin"] = group.is_admin(target)
            data["is_president"] = group.is_president(target)
            groups.append(data)
        return {"groups": groups}, 200


class UserEventsResource(Resource):

    @jwt_required()
    def get(self, user_id=None):
        viewer, target, error = _resolve_target(user_id)
        if error:
            return error

        events = sorted(target.events, key=lambda e: (e.date, e.time or ""))
        return {"events": [e.as_dict(viewer) for e in events]}, 200


def register_user_resources(api):
    api.add_resource(UserListResource, "/api/users")
    api.add_resource(ProfileResource, "/api/users/profile")
    api.add_resource(UserResource, "/api/users/<int:user_id>")
    api.add_resource(ConnectionResource, "/api/users/<int:user_id>/connect")
    api.add_resource(UserConnectionsResource, "/api/users/<int:user_id>/connections", "/api/users/me/connections")
    api.add_resource(UserGroupsResource, "/api/users/<int:user_id>/groups", "/api/users/me/groups")
    api.add_resource(UserEventsResource, "/api/users/<int:user_id>/events", "/api/users/me/events")
