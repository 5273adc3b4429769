from flask import request
from flask_restful import Resource
from flask_jwt_extended import jwt_required
from sqlalchemy.exc import SQLAlchemyError
from model import db, Group, GroupMeeting, GroupRequest, GroupRequestStatus, Media, SocialMedia, User
from auth import get_current_user
from notification import create_notification
from utils import get_page_args, paginated, parse_bool, escape_like, contains_pattern, LIKE_ESCAPE
import logging

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "name", "description", "category", "location", "is_public", "image", "university_only",
    "allowed_university", "meeting_time", "meeting_date", "meeting_location", "meeting_days"
)
BOOL_FIELDS = ("is_public", "university_only")
REQUIRED_FIELDS = ("name", "description", "category")


def _build_meetings(items):
    if not isinstance(items, list):
        raise ValueError("meetings must be a list")
    meetings = []
    for item in items:
        if not isinstance(item, dict):
            raise ValueError("Each meeting must be an object with date, time and location")
        meetings.append(GroupMeeting(date=item.get("date"), time=item.get("time"), location=item.get("location")))
    return meetings


def _load_group(group_id):
    group = db.session.get(Group, group_id)
    if not group:
        return None, ({"message": "Group not found"}, 404)
    return group, None


class GroupListResource(Resource):

    def get(self):
        """List groups with president summary and member count."""
        page, per_page = get_page_args()
        category = request.args.get('category', type=str)
        search_query = request.args.get('search', type=str)
        university = request.args.get('university', type=str)

        query = Group.query
        if category:
            query = query.filter(Group.category.ilike(escape_like(category), escape=LIKE_ESCAPE))
        if search_query:
            pattern = contains_pattern(search_query)
            query = query.filter(db.or_(Group.name.ilike(pattern, escape=LIKE_ESCAPE),
                                     Group.description.ilike(pattern, escape=LIKE_ESCAPE)))
        if university:
            query = query.filter(Group.allowed_university.ilike(contains_pattern(university), escape=LIKE_ESCAPE))

        try:
            groups = query.order_by(Group.name.asc(), Group.id.asc()).paginate(
                page=page, per_page=per_page, error_out=False)
        except SQLAlchemyError as e:
            logger.error(f"Database error listing groups: {e}")
            return {"message": "Database error"}, 500

        return paginated(groups, 'groups', [g.as_dict() for g in groups.items]), 200

    @jwt_required()
    def post(self):
        """Create a group; the creator becomes president, member and admin."""
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        data = request.get_json(silent=True) or {}
        missing = [f for f in REQUIRED_FIELDS if not data.get(f)]
        if missing:
            return {"message": f"Missing required fields: {', '.join(missing)}"}, 400

        meeting_days = data.get("meeting_days") or []
        if not isinstance(meeting_days, list):
            return {"message": "meeting_days must be a list"}, 400

        try:
            meetings = _build_meetings(data.get("meetings") or [])
        except ValueError as e:
            return {"message": str(e)}, 400

        group = Group(
            name=data["name"],
            description=data["description"],
            category=data["category"],
            location=data.get("location"),
            is_public=parse_bool(data.get("is_public"), default=True),
            image=data.get("image"),
            university_only=parse_bool(data.get("university_only"), default=False),
            allowed_university=data.get("allowed_university"),
            meeting_time=data.get("meeting_time"),
            meeting_date=data.get("meeting_date"),
            meeting_location=data.get("meeting_location"),
            meeting_days=meeting_days,
            president=user
        )
        group.members.append(user)
        group.admins.append(user)
        group.meetings.extend(meetings)

        try:
            db.session.add(group)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error creating group: {e}")
            return {"message": "Database error"}, 500

        logger.info(f"Group {group.id} created by user {user.id}")
        return {"message": "Group created successfully", "group": group.as_dict_detailed()}, 201


class GroupResource(Resource):

    @jwt_required()
    def get(self, group_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        group, error = _load_group(group_id)
        if error:
            return error

        data = group.as_dict_detailed()
        data.update({
            "is_member": group.is_member(user),
            "is_admin": group.is_admin(user),
            "is_president": group.is_president(user),
            "has_pending_request": GroupRequest.query.filter_by(
                group_id=group.id, requester_id=user.id, status=GroupRequestStatus.PENDING
            ).first() is not None
        })
        return data, 200

    @jwt_required()
    def put(self, group_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        group, error = _load_group(group_id)
        if error:
            return error

        if not group.can_manage(user):
            return {"message": "Only the group president or admins can update this group"}, 403

        data = request.get_json(silent=True) or {}

        # Validate everything before touching the group
        updates = {}
        for field in UPDATABLE_FIELDS:
            if field not in data:
                continue
            value = data[field]
            if field in BOOL_FIELDS:
                value = parse_bool(value, default=False)
            elif field in REQUIRED_FIELDS and not value:
                return {"message": f"{field} cannot be empty"}, 400
            elif field == "meeting_days" and not isinstance(value or [], list):
                return {"message": "meeting_days must be a list"}, 400
            updates[field] = value

        meetings = None
        if "meetings" in data:
            try:
                meetings = _build_meetings(data.get("meetings") or [])
            except ValueError as e:
                return {"message": str(e)}, 400

        for field, value in updates.items():
            setattr(group, field, value)
        if meetings is not None:
            group.meetings = meetings

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error updating group {group_id}: {e}")
            return {"message": "Database error"}, 500

        return {"message": "Group updated successfully", "group": group.as_dict_detailed()}, 200

    @jwt_required()
    def delete(self, group_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        group, error = _load_group(group_id)
        if error:
            return error

        if not group.is_president(user):
            return {"message": "Only the group president can delete this group"}, 403

        try:
            db.session.delete(group)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error deleting group {group_id}: {e}")
            return {"message": "Database error"}, 500

        logger.info(f"Group {group_id} deleted by user {user.id}")
        return {"message": "Group deleted successfully"}, 200


class MyGroupsResource(Resource):

    @jwt_required()
    def get(self):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        groups = []
        for group in sorted(user.groups, key=lambda g: g.name.lower()):
            data = group.as_dict()
            data["is_admin"] = group.is_admin(user)
            data["is_president"] = group.is_president(user)
            groups.append(data)
        return {"groups": groups}, 200


class JoinGroupResource(Resource):

    @jwt_required()
    def post(self, group_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        group, error = _load_group(group_id)
        if error:
            return error

        if group.is_member(user):
            return {"message": "You are already a member of this group"}, 400

        pending = GroupRequest.query.filter_by(
            group_id=group.id, requester_id=user.id, status=GroupRequestStatus.PENDING
        ).first()
        if pending:
            return {"message": "You already have a pending request for this group"}, 400

        if not group.admits_university(user):
            return {"message": f"This group is only open to {group.allowed_university} students"}, 403

        data = request.get_json(silent=True) or {}

        try:
            if group.is_public:
                group.members.append(user)
                db.session.commit()
                logger.info(f"User {user.id} joined public group {group.id}")
                return {"message": "Joined group successfully", "joined": True, "group": group.as_dict()}, 201

            join_request = GroupRequest(group=group, requester=user, message=data.get("message"))
            db.session.add(join_request)
            db.session.flush()

            for admin in group.admins:
                create_notification(
                    recipient_id=admin.id,
                    sender_id=user.id,
                    type="group_request",
                    title="New group join request",
                    message=f"{user.name} wants to join {group.name}",
                    related_id=join_request.id,
                    related_type="group_request"
                )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error joining group {group_id}: {e}")
            return {"message": "Database error"}, 500

        return {"message": "Join request sent", "joined": False, "request": join_request.as_dict()}, 201


class LeaveGroupResource(Resource):

    @jwt_required()
    def post(self, group_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        group, error = _load_group(group_id)
        if error:
            return error

        if not group.is_member(user):
            return {"message": "You are not a member of this group"}, 400

        if group.is_president(user):
            return {"message": "The group president cannot leave the group"}, 400

        try:
            group.members.remove(user)
            if group.is_admin(user):
                group.admins.remove(user)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error leaving group {group_id}: {e}")
            return {"message": "Database error"}, 500

        return {"message": "Left group successfully"}, 200


class GroupRequestsResource(Resource):

    @jwt_required()
    def get(self, group_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        group, error = _load_group(group_id)
        if error:
            return error

        if not group.can_manage(user):
            return {"message": "Only group admins can view join requests"}, 403

        requests = (GroupRequest.query
                    .filter_by(group_id=group.id, status=GroupRequestStatus.PENDING)
                    .order_by(GroupRequest.created_at.asc())
                    .all())
        return {"requests": [r.as_dict() for r in requests]}, 200


class RespondGroupRequestResource(Resource):

    @jwt_required()
    def put(self, request_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        join_request = db.session.get(GroupRequest, request_id)
        if not join_request:
            return {"message": "Request not found"}, 404

        group = join_request.group
        if not group.can_manage(user):
            return {"message": "Only group admins can respond to join requests"}, 403

        data = request.get_json(silent=True) or {}
        status = data.get("status")
        if status not in (GroupRequestStatus.APPROVED.value, GroupRequestStatus.REJECTED.value):
            return {"message": "Status must be 'approved' or 'rejected'"}, 400

        if join_request.status != GroupRequestStatus.PENDING:
            return {"message": "This request has already been processed"}, 400

        try:
            join_request.status = GroupRequestStatus(status)
            join_request.responder = user
            if join_request.status == GroupRequestStatus.APPROVED and not group.is_member(join_request.requester):
                group.members.append(join_request.requester)

            create_notification(
                recipient_id=join_request.requester_id,
                sender_id=user.id,
                type="group_request_response",
                title=f"Group request {status}",
                message=f"Your request to join {group.name} was {status}",
                related_id=group.id,
                related_type="group"
            )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error responding to group request {request_id}: {e}")
            return {"message": "Database error"}, 500

        return {"message": f"Request {status}", "request": join_request.as_dict()}, 200


class GroupAdminResource(Resource):

    @jwt_required()
    def post(self, group_id, user_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        group, error = _load_group(group_id)
        if error:
            return error

        if not group.can_manage(user):
            return {"message": "Only the group president or admins can add admins"}, 403

        target = db.session.get(User, user_id)
        if not target:
            return {"message": "User not found"}, 404

        if not group.is_member(target):
            return {"message": "User must be a member of the group"}, 400

        if group.is_admin(target):
            return {"message": "User is already an admin"}, 400

        try:
            group.admins.append(target)
            create_notification(
                recipient_id=target.id,
                sender_id=user.id,
                type="group_admin_added",
                title="You are now a group admin",
                message=f"You were made an admin of {group.name}",
                related_id=group.id,
                related_type="group"
            )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error adding admin to group {group_id}: {e}")
            return {"message": "Database error"}, 500

        return {"message": "Admin added successfully", "admins": [a.summary() for a in group.admins]}, 200

    @jwt_required()
    def delete(self, group_id, user_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        group, error = _load_group(group_id)
        if error:
            return error

        if not group.is_president(user):
            return {"message": "Only the group president can remove admins"}, 403

        target = db.session.get(User, user_id)
        if not target:
            return {"message": "User not found"}, 404

        if group.is_president(target):
            return {"message": "The group president cannot be removed as admin"}, 400

        if not group.is_admin(target):
            return {"message": "User is not an admin of this group"}, 400

        try:
            group.admins.remove(target)
            create_notification(
                recipient_id=target.id,
                sender_id=user.id,
                type="group_admin_removed",
                title="Admin role removed",
                message=f"You are no longer an admin of {group.name}",
                related_id=group.id,
                related_type="group"
            )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error removing admin from group {group_id}: {e}")
            return {"message": "Database error"}, 500

        return {"message": "Admin removed successfully", "admins": [a.summary() for a in group.admins]}, 200


class GroupMediaResource(Resource):

    @jwt_required()
    def post(self, group_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        group, error = _load_group(group_id)
        if error:
            return error

        if not group.can_manage(user):
            return {"message": "Only group admins can add media"}, 403

        data = request.get_json(silent=True) or {}
        if not data.get("url"):
            return {"message": "url is required"}, 400

        media = Media(type=data.get("type") or "image", url=data["url"], caption=data.get("caption"))
        try:
            group.media.append(media)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error adding media to group {group_id}: {e}")
            return {"message": "Database error"}, 500

        return {"message": "Media added", "media": media.as_dict()}, 201


class GroupSocialMediaResource(Resource):

    @jwt_required()
    def post(self, group_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        group, error = _load_group(group_id)
        if error:
            return error

        if not group.can_manage(user):
            return {"message": "Only group admins can add social links"}, 403

        data = request.get_json(silent=True) or {}
        if not data.get("platform") or not data.get("link"):
            return {"message": "platform and link are required"}, 400

        social = SocialMedia(platform=data["platform"], link=data["link"])
        try:
            group.social_media.append(social)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error adding social link to group {group_id}: {e}")
            return {"message": "Database error"}, 500

        return {"message": "Social link added", "social_media": social.as_dict()}, 201


class GroupEventsResource(Resource):

    def get(self, group_id):
        group, error = _load_group(group_id)
        if error:
            return error

        events = sorted(group.events, key=lambda e: (e.date, e.time or ""))
        return {"events": [e.as_dict() for e in events]}, 200


def register_group_resources(api):
    api.add_resource(GroupListResource, "/api/groups")
    api.add_resource(MyGroupsResource, "/api/groups/mine")
    api.add_resource(GroupResource, "/api/groups/<int:group_id>")
    api.add_resource(JoinGroupResource, "/api/groups/<int:group_id>/join")
    api.add_resource(LeaveGroupResource, "/api/groups/<int:group_id>/leave")
    api.add_resource(GroupRequestsResource, "/api/groups/<int:group_id>/requests")
    api.add_resource(RespondGroupRequestResource, "/api/groups/requests/<int:request_id>")
    api.add_resource(GroupAdminResource, "/api/groups/<int:group_id>/admins/<int:user_id>")
    api.add_resource(GroupMediaResource, "/api/groups/<int:group_id>/media")
    api.add_resource(GroupSocialMediaResource, "/api/groups/<int:group_id>/social-media")
    api.add_resource(GroupEventsResource, "/api/groups/<int:group_id>/events")
