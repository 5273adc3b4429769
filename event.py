from flask import request
from flask_restful import Resource
from flask_jwt_extended import jwt_required
from datetime import datetime
from sqlalchemy import cast, String
from sqlalchemy.exc import SQLAlchemyError
from model import db, Event, Group, User
from auth import get_current_user, get_optional_user
from utils import get_page_args, paginated, parse_bool, contains_pattern, json_member_pattern, LIKE_ESCAPE
import logging

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("title", "description", "date", "time", "location")
UPDATABLE_FIELDS = (
    "title", "name", "description", "date", "time", "location", "category",
    "max_attendees", "price", "image", "university_only", "allowed_university"
)


def parse_date(value):
    """Parse YYYY-MM-DD; raises ValueError otherwise."""
    if not isinstance(value, str):
        raise ValueError("Invalid date format. Use YYYY-MM-DD")
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        raise ValueError("Invalid date format. Use YYYY-MM-DD")


def normalize_category(value):
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return [str(c) for c in value if c]
    return [str(value)]


def parse_max_attendees(value):
    if value in (None, ""):
        return None
    max_attendees = int(value)
    if max_attendees < 1:
        raise ValueError("max_attendees must be a positive integer")
    return max_attendees


class EventResource(Resource):

    def get(self, event_id=None):
        """Retrieve one event, or list events with filtering and pagination."""
        user = get_optional_user()

        if event_id:
            event = db.session.get(Event, event_id)
            if not event:
                return {"message": "Event not found"}, 404
            data = event.as_dict(user)
            data["attendee_list"] = [a.summary() for a in event.event_attendees]
            return data, 200

        page, per_page = get_page_args()
        category = request.args.get('category', type=str)
        university = request.args.get('university', type=str)
        location_filter = request.args.get('location', type=str)
        date_filter = request.args.get('date', type=str)
        search_query = request.args.get('search', type=str)
        upcoming = parse_bool(request.args.get('upcoming'), default=True)
        past = parse_bool(request.args.get('past'), default=False)

        query = Event.query

        if category:
            query = query.filter(cast(Event.category, String).ilike(json_member_pattern(category), escape=LIKE_ESCAPE))

        if university:
            query = query.filter(Event.allowed_university.ilike(contains_pattern(university), escape=LIKE_ESCAPE))

        if location_filter:
            query = query.filter(Event.location.ilike(contains_pattern(location_filter), escape=LIKE_ESCAPE))

        if search_query:
            pattern = contains_pattern(search_query)
            query = query.filter(db.or_(Event.title.ilike(pattern, escape=LIKE_ESCAPE),
                                     Event.description.ilike(pattern, escape=LIKE_ESCAPE)))

        # An explicit date wins over the upcoming/past window
        today = datetime.now().date()
        if date_filter:
            try:
                query = query.filter(Event.date == parse_date(date_filter))
            except ValueError as e:
                return {"message": str(e)}, 400
        elif past:
            query = query.filter(Event.date < today)
        elif upcoming:
            query = query.filter(Event.date >= today)

        try:
            events = query.order_by(Event.date.asc(), Event.time.asc(), Event.id.asc()).paginate(
                page=page, per_page=per_page, error_out=False)
        except SQLAlchemyError as e:
            logger.error(f"Database error: {str(e)}")
            return {"message": "Database connection error"}, 500

        return paginated(events, 'events', [e.as_dict(user) for e in events.items]), 200

    @jwt_required()
    def post(self):
        """Create an event for a group the caller belongs to."""
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        data = request.get_json(silent=True) or {}

        group_id = data.get("group_id")
        if not group_id:
            return {"message": "group_id is required"}, 400

        missing = [f for f in REQUIRED_FIELDS if not data.get(f)]
        if missing:
            return {"message": f"Missing required fields: {', '.join(missing)}"}, 400

        group = db.session.get(Group, group_id)
        if not group:
            return {"message": "Group not found"}, 404

        if not (group.can_manage(user) or group.is_member(user)):
            return {"message": "You must be a member of the group to create an event"}, 403

        try:
            event_date = parse_date(data["date"])
            max_attendees = parse_max_attendees(data.get("max_attendees"))
        except (TypeError, ValueError) as e:
            return {"message": str(e)}, 400

        event = Event(
            title=data["title"],
            name=data.get("name") or data["title"],
            description=data["description"],
            date=event_date,
            time=data["time"],
            location=data["location"],
            category=normalize_category(data.get("category")),
            organizer=group.name,
            max_attendees=max_attendees,
            price=data.get("price"),
            image=data.get("image"),
            distance=data.get("distance"),
            university_only=parse_bool(data.get("university_only"), default=False),
            allowed_university=data.get("allowed_university") or group.allowed_university,
            group_id=group.id,
            attendees=1
        )
        event.event_attendees.append(user)
        group.upcoming_events = (group.upcoming_events or 0) + 1

        try:
            db.session.add(event)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error creating event: {e}")
            return {"message": "Database error"}, 500

        logger.info(f"Event {event.id} created in group {group.id} by user {user.id}")
        return {"message": "Event created successfully", "event": event.as_dict(user)}, 201

    @jwt_required()
    def put(self, event_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        event = db.session.get(Event, event_id)
        if not event:
            return {"message": "Event not found"}, 404

        if not event.group.can_manage(user):
            return {"message": "Only the group president or admins can update this event"}, 403

        data = request.get_json(silent=True) or {}
        try:
            for field in UPDATABLE_FIELDS:
                if field not in data:
                    continue
                value = data[field]
                if field == "date":
                    value = parse_date(value)
                elif field == "category":
                    value = normalize_category(value)
                elif field == "max_attendees":
                    value = parse_max_attendees(value)
                elif field == "university_only":
                    value = parse_bool(value, default=False)
                elif field in REQUIRED_FIELDS and not value:
                    raise ValueError(f"{field} cannot be empty")
                setattr(event, field, value)
        except (TypeError, ValueError) as e:
            db.session.rollback()
            return {"message": str(e)}, 400

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error updating event {event_id}: {e}")
            return {"message": "Database error"}, 500

        return {"message": "Event updated successfully", "event": event.as_dict(user)}, 200

    @jwt_required()
    def delete(self, event_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        event = db.session.get(Event, event_id)
        if not event:
            return {"message": "Event not found"}, 404

        group = event.group
        if not group.can_manage(user):
            return {"message": "Only the group president or admins can delete this event"}, 403

        try:
            group.upcoming_events = max(0, (group.upcoming_events or 0) - 1)
            db.session.delete(event)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error deleting event {event_id}: {e}")
            return {"message": "Database error"}, 500

        return {"message": "Event deleted successfully"}, 200


class EventRSVPResource(Resource):
    """RSVP and cancel RSVP."""

    @jwt_required()
    def post(self, event_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        event = db.session.get(Event, event_id)
        if not event:
            return {"message": "Event not found"}, 404

        if user in event.event_attendees:
            return {"message": "You are already attending this event"}, 400

        if not event.admits_university(user):
            return {"message": f"This event is only open to {event.allowed_university} students"}, 403

        try:
            # Capacity check and increment in one conditional UPDATE
            claimed = (Event.query
                       .filter(Event.id == event.id,
                               db.or_(Event.max_attendees.is_(None),
                                      db.func.coalesce(Event.attendees, 0) < Event.max_attendees))
                       .update({Event.attendees: db.func.coalesce(Event.attendees, 0) + 1},
                               synchronize_session=False))
            if not claimed:
                db.session.rollback()
                return {"message": "Event has reached maximum attendees"}, 400

            event.event_attendees.append(user)
            User.query.filter_by(id=user.id).update(
                {User.events_attended: db.func.coalesce(User.events_attended, 0) + 1},
                synchronize_session=False)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error adding RSVP for event {event_id}: {e}")
            return {"message": "Database error"}, 500

        return {"message": "RSVP successful", "attendees": event.attendees}, 200

    @jwt_required()
    def delete(self, event_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        event = db.session.get(Event, event_id)
        if not event:
            return {"message": "Event not found"}, 404

        if user not in event.event_attendees:
            return {"message": "You are not attending this event"}, 400

        try:
            event.event_attendees.remove(user)
            Event.query.filter(Event.id == event.id, Event.attendees > 0).update(
                {Event.attendees: Event.attendees - 1}, synchronize_session=False)
            User.query.filter(User.id == user.id, User.events_attended > 0).update(
                {User.events_attended: User.events_attended - 1}, synchronize_session=False)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error cancelling RSVP for event {event_id}: {e}")
            return {"message": "Database error"}, 500

        return {"message": "RSVP cancelled", "attendees": event.attendees}, 200


class EventFavoriteResource(Resource):

    @jwt_required()
    def post(self, event_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        event = db.session.get(Event, event_id)
        if not event:
            return {"message": "Event not found"}, 404

        data = request.get_json(silent=True) or {}
        if "favorite" not in data:
            return {"message": "favorite is required"}, 400
        favorite = parse_bool(data.get("favorite"), default=False)
        is_favorited = user in event.favorited_by

        if favorite == is_favorited:
            return {"message": "No change", "is_favorited": is_favorited}, 200

        try:
            if favorite:
                event.favorited_by.append(user)
            else:
                event.favorited_by.remove(user)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error updating favorite for event {event_id}: {e}")
            return {"message": "Database error"}, 500

        message = "Event added to favorites" if favorite else "Event removed from favorites"
        return {"message": message, "is_favorited": favorite}, 200


def register_event_resources(api):
    api.add_resource(EventResource, "/api/events", "/api/events/<int:event_id>")
    api.add_resource(EventRSVPResource, "/api/events/<int:event_id>/rsvp")
    api.add_resource(EventFavoriteResource, "/api/events/<int:event_id>/favorite")
