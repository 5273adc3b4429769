from flask import request
from flask_restful import Resource
from flask_jwt_extended import jwt_required
from sqlalchemy.exc import SQLAlchemyError
from model import (db, User, Activity, ActivityCategory, ActivityPreference, Availability, TimeSlot,
                   ActivityRequest, ActivityRequestStatus, ActivityMatch, MatchTimeSlot,
                   EquipmentStatus, TransportationMode, SkillLevel, Weekday, parse_enum)
from auth import get_current_user
from notification import create_notification
from utils import parse_bool, parse_timestamp
import matching
import logging

logger = logging.getLogger(__name__)

ENUM_FIELDS = {
    "equipment": EquipmentStatus,
    "transportation": TransportationMode,
    "skill_level": SkillLevel,
}
RESPONSE_STATUSES = ("accepted", "declined", "cancelled")


def build_availability(entries):
    """Turn ``[{day, time_slots: [{start_time, end_time}]}]`` into Availability rows.

    Raises ValueError on an unknown day, a malformed HH:MM time or a slot whose
    start is not before its end.
    """
    if not isinstance(entries, list):
        raise ValueError("availability must be a list")

    rows = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise ValueError("Each availability entry needs a day and time_slots")
        day = parse_enum(Weekday, entry.get("day"))
        slots = entry.get("time_slots") or []
        if not isinstance(slots, list):
            raise ValueError("time_slots must be a list")

        availability = Availability(day=day)
        for slot in slots:
            if not isinstance(slot, dict):
                raise ValueError("Each time slot needs a start_time and end_time")
            start = slot.get("start_time")
            end = slot.get("end_time")
            if not matching.is_valid_time(start) or not matching.is_valid_time(end):
                raise ValueError("Times must use the HH:MM format")
            if matching.to_minutes(start) >= matching.to_minutes(end):
                raise ValueError(f"start_time {start} must be before end_time {end}")
            availability.time_slots.append(TimeSlot(start_time=start, end_time=end))
        rows.append(availability)
    return rows


def preference_snapshot(preference):
    return {
        "availability": preference.availability_map(),
        "equipment": preference.equipment.value,
        "transportation": preference.transportation.value,
        "skill_level": preference.skill_level.value,
    }


def format_common(common):
    return [
        {"day": day, "time_slots": [{"start_time": s, "end_time": e} for s, e in slots]}
        for day, slots in common.items()
    ]


class ActivityListResource(Resource):

    def get(self):
        query = Activity.query

        category = request.args.get('category', type=str)
        if category:
            try:
                query = query.filter(Activity.category == parse_enum(ActivityCategory, category))
            except ValueError as e:
                return {"message": str(e)}, 400

        indoor = parse_bool(request.args.get('indoor'))
        if indoor is not None:
            query = query.filter(Activity.indoor.is_(indoor))

        outdoor = parse_bool(request.args.get('outdoor'))
        if outdoor is not None:
            query = query.filter(Activity.outdoor.is_(outdoor))

        activities = query.order_by(Activity.name.asc()).all()
        return {"activities": [a.as_dict() for a in activities]}, 200


class ActivityResource(Resource):

    def get(self, activity_id):
        activity = db.session.get(Activity, activity_id)
        if not activity:
            return {"message": "Activity not found"}, 404
        return activity.as_dict(), 200


class UserPreferencesResource(Resource):

    @jwt_required()
    def get(self):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        preferences = (ActivityPreference.query
                       .filter_by(user_id=user.id)
                       .order_by(ActivityPreference.id.asc())
                       .all())
        return {"preferences": [p.as_dict() for p in preferences]}, 200


class PreferenceResource(Resource):
    """Create, update or remove the caller's preference for one activity."""

    @jwt_required()
    def post(self, activity_id):
        return self._upsert(activity_id)

    @jwt_required()
    def put(self, activity_id):
        return self._upsert(activity_id)

    def _upsert(self, activity_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        activity = db.session.get(Activity, activity_id)
        if not activity:
            return {"message": "Activity not found"}, 404

        data = request.get_json(silent=True) or {}

        try:
            enum_values = {field: parse_enum(enum_cls, data[field])
                           for field, enum_cls in ENUM_FIELDS.items() if field in data}
            availability = build_availability(data["availability"]) if "availability" in data else None
            radius = None
            if "location_radius" in data:
                radius = int(data["location_radius"])
                if radius < 0:
                    raise ValueError("location_radius must not be negative")
        except (TypeError, ValueError) as e:
            return {"message": str(e)}, 400

        preference = ActivityPreference.query.filter_by(user_id=user.id, activity_id=activity.id).first()
        created = preference is None
        if created:
            preference = ActivityPreference(user_id=user.id, activity_id=activity.id, location_radius=10)
            db.session.add(preference)

        if "is_open" in data:
            preference.is_open = parse_bool(data["is_open"], default=True)
        if radius is not None:
            preference.location_radius = radius
        if "notes" in data:
            preference.notes = data["notes"]
        for field, value in enum_values.items():
            setattr(preference, field, value)

        # Replacing the collection orphans the old rows; one commit swaps them
        if availability is not None:
            preference.availability = availability

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error saving preference for user {user.id}, activity {activity_id}: {e}")
            return {"message": "Database error"}, 500

        message = "Preference created" if created else "Preference updated"
        return {"message": message, "preference": preference.as_dict()}, 201 if created else 200

    @jwt_required()
    def delete(self, activity_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        preference = ActivityPreference.query.filter_by(user_id=user.id, activity_id=activity_id).first()
        if not preference:
            return {"message": "Preference not found"}, 404

        try:
            db.session.delete(preference)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error deleting preference {preference.id}: {e}")
            return {"message": "Database error"}, 500

        return {"message": "Preference removed"}, 200


class BuddyMatchResource(Resource):

    @jwt_required()
    def get(self, activity_id):
        """Rank other users' open preferences for the activity against the caller's."""
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        activity = db.session.get(Activity, activity_id)
        if not activity:
            return {"message": "Activity not found"}, 404

        mine = ActivityPreference.query.filter_by(user_id=user.id, activity_id=activity.id).first()
        if not mine or not mine.is_open:
            return {"message": "Set an open preference for this activity to find buddies"}, 400

        others = (ActivityPreference.query
                  .filter(ActivityPreference.activity_id == activity.id,
                          ActivityPreference.user_id != user.id,
                          ActivityPreference.is_open.is_(True))
                  .all())

        by_id = {p.id: p for p in others}
        ranked = matching.rank_candidates(
            preference_snapshot(mine),
            [(p.id, preference_snapshot(p)) for p in others]
        )

        buddies = []
        for result in ranked:
            preference = by_id[result["key"]]
            buddies.append({
                "user": preference.user.summary(),
                "preference": {
                    "equipment": preference.equipment.value,
                    "transportation": preference.transportation.value,
                    "skill_level": preference.skill_level.value,
                    "location_radius": preference.location_radius,
                    "notes": preference.notes
                },
                "match_score": result["match_score"],
                "common_availability": format_common(result["common_availability"])
            })

        logger.info(f"Found {len(buddies)} buddies for user {user.id} on activity {activity.id}")
        return {"activity": activity.as_dict(), "buddies": buddies}, 200


class ActivityRequestResource(Resource):

    @jwt_required()
    def post(self, user_id, activity_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        if user.id == user_id:
            return {"message": "You cannot send an activity request to yourself"}, 400

        recipient = db.session.get(User, user_id)
        if not recipient:
            return {"message": "Recipient not found"}, 404

        activity = db.session.get(Activity, activity_id)
        if not activity:
            return {"message": "Activity not found"}, 404

        data = request.get_json(silent=True) or {}
        message = data.get("message")
        if not isinstance(message, str) or not message.strip():
            return {"message": "A message is required"}, 400

        proposed = None
        if data.get("proposed_date_time"):
            try:
                proposed = parse_timestamp(data["proposed_date_time"])
            except ValueError:
                return {"message": "proposed_date_time must be an ISO 8601 timestamp"}, 400

        activity_request = ActivityRequest(
            requester=user,
            recipient=recipient,
            activity=activity,
            message=message.strip(),
            proposed_date_time=proposed,
            location=data.get("location")
        )

        try:
            db.session.add(activity_request)
            db.session.flush()
            create_notification(
                recipient_id=recipient.id,
                sender_id=user.id,
                type="activity_request",
                title=f"{activity.icon} {activity.name} buddy request",
                message=f"{user.name} wants to do {activity.name} with you",
                related_id=activity_request.id,
                related_type="activity_request"
            )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error creating activity request: {e}")
            return {"message": "Database error"}, 500

        return {"message": "Activity request sent", "request": activity_request.as_dict()}, 201


class ReceivedRequestsResource(Resource):

    @jwt_required()
    def get(self):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        requests = (ActivityRequest.query
                    .filter_by(recipient_id=user.id)
                    .order_by(ActivityRequest.created_at.desc(), ActivityRequest.id.desc())
                    .all())
        return {"requests": [r.as_dict() for r in requests]}, 200


class SentRequestsResource(Resource):

    @jwt_required()
    def get(self):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        requests = (ActivityRequest.query
                    .filter_by(requester_id=user.id)
                    .order_by(ActivityRequest.created_at.desc(), ActivityRequest.id.desc())
                    .all())
        return {"requests": [r.as_dict() for r in requests]}, 200


class RespondActivityRequestResource(Resource):

    @jwt_required()
    def put(self, request_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        activity_request = db.session.get(ActivityRequest, request_id)
        if not activity_request:
            return {"message": "Request not found"}, 404

        data = request.get_json(silent=True) or {}
        status = data.get("status")
        if status not in RESPONSE_STATUSES:
            return {"message": f"Status must be one of: {', '.join(RESPONSE_STATUSES)}"}, 400

        is_requester = activity_request.requester_id == user.id
        is_recipient = activity_request.recipient_id == user.id
        if not (is_requester or is_recipient):
            return {"message": "You are not part of this request"}, 403

        if status == "cancelled" and not is_requester:
            return {"message": "Only the requester can cancel a request"}, 403
        if status in ("accepted", "declined") and not is_recipient:
            return {"message": "Only the recipient can accept or decline a request"}, 403

        if activity_request.status != ActivityRequestStatus.PENDING:
            return {"message": f"Request is already {activity_request.status.value}"}, 400

        match = None
        try:
            activity_request.status = ActivityRequestStatus(status)

            if activity_request.status == ActivityRequestStatus.ACCEPTED:
                match = self._create_match(activity_request)

            other_id = activity_request.recipient_id if is_requester else activity_request.requester_id
            create_notification(
                recipient_id=other_id,
                sender_id=user.id,
                type="activity_request_response",
                title=f"Activity request {status}",
                message=f"{user.name} {status} the {activity_request.activity.name} request",
                related_id=activity_request.id,
                related_type="activity_request"
            )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error responding to activity request {request_id}: {e}")
            return {"message": "Database error"}, 500

        response = {"message": f"Request {status}", "request": activity_request.as_dict()}
        if match is not None:
            response["match"] = match.as_dict()
        return response, 200

    @staticmethod
    def _create_match(activity_request):
        """An accepted request is a confirmed match; keep whatever slots the two share."""
        match = ActivityMatch(
            user1_id=activity_request.requester_id,
            user2_id=activity_request.recipient_id,
            activity_id=activity_request.activity_id,
            match_score=100
        )

        prefs = {
            p.user_id: p for p in ActivityPreference.query.filter(
                ActivityPreference.activity_id == activity_request.activity_id,
                ActivityPreference.user_id.in_([activity_request.requester_id, activity_request.recipient_id])
            )
        }
        requester_pref = prefs.get(activity_request.requester_id)
        recipient_pref = prefs.get(activity_request.recipient_id)
        if requester_pref and recipient_pref:
            common, _ = matching.common_availability(
                requester_pref.availability_map(), recipient_pref.availability_map()
            )
            for day, slots in common.items():
                for start, end in slots:
                    match.common_time_slots.append(
                        MatchTimeSlot(day=Weekday(day), start_time=start, end_time=end)
                    )

        db.session.add(match)
        return match


class MatchesResource(Resource):

    @jwt_required()
    def get(self):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        matches = (ActivityMatch.query
                   .filter(db.or_(ActivityMatch.user1_id == user.id, ActivityMatch.user2_id == user.id))
                   .order_by(ActivityMatch.created_at.desc(), ActivityMatch.id.desc())
                   .all())
        return {"matches": [m.as_dict() for m in matches]}, 200


def register_activity_resources(api):
    api.add_resource(ActivityListResource, "/api/activities")
    api.add_resource(ActivityResource, "/api/activities/<int:activity_id>")
    api.add_resource(UserPreferencesResource, "/api/activities/user/preferences")
    api.add_resource(PreferenceResource, "/api/activities/preference/<int:activity_id>")
    api.add_resource(BuddyMatchResource, "/api/activities/buddies/<int:activity_id>")
    api.add_resource(ActivityRequestResource, "/api/activities/request/<int:user_id>/<int:activity_id>")
    api.add_resource(ReceivedRequestsResource, "/api/activities/requests/received")
    api.add_resource(SentRequestsResource, "/api/activities/requests/sent")
    api.add_resource(RespondActivityRequestResource, "/api/activities/request/<int:request_id>/respond")
    api.add_resource(MatchesResource, "/api/activities/matches")
