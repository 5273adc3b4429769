from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime
import enum
from sqlalchemy.orm import validates

# Initialize SQLAlchemy
db = SQLAlchemy()

# ===== ENUMS =====
class PrivacyLevel(enum.Enum):
    PUBLIC = "public"
    GROUP = "group"
    CONNECTIONS = "connections"
    def __str__(self):
        return self.value

class GroupRequestStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class ActivityCategory(enum.Enum):
    SPORTS = "sports"
    FITNESS = "fitness"
    VOLUNTEERING = "volunteering"
    OUTDOOR = "outdoor"
    SOCIAL = "social"
    CULTURAL = "cultural"
    HOBBY = "hobby"

class SkillLevel(enum.Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

class EquipmentStatus(enum.Enum):
    HAVE = "have"
    NEED = "need"
    CAN_SHARE = "can_share"
    NOT_NEEDED = "not_needed"

class TransportationMode(enum.Enum):
    HAVE_CAR = "have_car"
    NEED_RIDE = "need_ride"
    CAN_DRIVE = "can_drive"
    PUBLIC_TRANSIT = "public_transit"
    WALKING_DISTANCE = "walking_distance"

class Weekday(enum.Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

class ActivityRequestStatus(enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED = "cancelled"

class AdCategory(enum.Enum):
    RETAIL = "Retail"
    FOOD = "Food"
    SERVICES = "Services"
    EVENTS = "Events"
    OTHER = "Other"
    def __str__(self):
        return self.value

class InteractionType(enum.Enum):
    IMPRESSION = "Impression"
    CLICK = "Click"


def parse_enum(enum_cls, value):
    """Resolve a request value (by value or name, case-insensitive) to an enum member.

    Raises ValueError for unknown values so callers can answer with a 400.
    """
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Invalid {enum_cls.__name__}: {value!r}")
    for member in enum_cls:
        if value.lower() in (member.value.lower(), member.name.lower()):
            return member
    allowed = ", ".join(m.value for m in enum_cls)
    raise ValueError(f"Invalid {enum_cls.__name__} '{value}'. Must be one of: {allowed}")


def _iso(value):
    return value.isoformat() if value else None


# ===== ASSOCIATION TABLES =====
user_connections = db.Table(
    'user_connections',
    db.Column('user_id', db.Integer, db.ForeignKey('users.id'), primary_key=True),
    db.Column('connection_id', db.Integer, db.ForeignKey('users.id'), primary_key=True),
    db.Column('created_at', db.DateTime, default=datetime.utcnow)
)

group_members = db.Table(
    'group_members',
    db.Column('user_id', db.Integer, db.ForeignKey('users.id'), primary_key=True),
    db.Column('group_id', db.Integer, db.ForeignKey('groups.id'), primary_key=True),
    db.Column('joined_at', db.DateTime, default=datetime.utcnow)
)

group_admins = db.Table(
    'group_admins',
    db.Column('user_id', db.Integer, db.ForeignKey('users.id'), primary_key=True),
    db.Column('group_id', db.Integer, db.ForeignKey('groups.id'), primary_key=True)
)

event_attendees = db.Table(
    'event_attendees',
    db.Column('user_id', db.Integer, db.ForeignKey('users.id'), primary_key=True),
    db.Column('event_id', db.Integer, db.ForeignKey('events.id'), primary_key=True)
)

event_favorites = db.Table(
    'event_favorites',
    db.Column('user_id', db.Integer, db.ForeignKey('users.id'), primary_key=True),
    db.Column('event_id', db.Integer, db.ForeignKey('events.id'), primary_key=True)
)

conversation_participants = db.Table(
    'conversation_participants',
    db.Column('user_id', db.Integer, db.ForeignKey('users.id'), primary_key=True),
    db.Column('conversation_id', db.Integer, db.ForeignKey('conversations.id'), primary_key=True)
)

message_reads = db.Table(
    'message_reads',
    db.Column('user_id', db.Integer, db.ForeignKey('users.id'), primary_key=True),
    db.Column('message_id', db.Integer, db.ForeignKey('messages.id'), primary_key=True)
)

# ===== CORE MODELS =====
class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(100), nullable=False)
    username = db.Column(db.String(30), nullable=False, unique=True, index=True)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    password = db.Column(db.String(255), nullable=False)
    university = db.Column(db.String(255))
    major = db.Column(db.String(255))
    year = db.Column(db.String(50))
    title = db.Column(db.String(255))
    heritage = db.Column(db.JSON, default=list)
    languages = db.Column(db.JSON, default=list)
    bio = db.Column(db.Text)
    image = db.Column(db.String(500))
    verified = db.Column(db.Boolean, default=False, nullable=False)
    location = db.Column(db.String(255))
    country = db.Column(db.String(100))
    state = db.Column(db.String(100))
    linkedin_url = db.Column(db.String(500))
    is_public = db.Column(db.Boolean, default=True, nullable=False)
    privacy = db.Column(db.Enum(PrivacyLevel), default=PrivacyLevel.PUBLIC, nullable=False)
    events_attended = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    connections = db.relationship(
        'User',
        secondary=user_connections,
        primaryjoin=(id == user_connections.c.user_id),
        secondaryjoin=(id == user_connections.c.connection_id),
        lazy=True
    )

    def set_password(self, password):
        self.password = generate_password_hash(password)

    def check_password(self, password):
        if not self.password:
            return False
        return check_password_hash(self.password, password)

    @validates('username')
    def validate_username(self, key, username):
        if not username or not 3 <= len(username) <= 30:
            raise ValueError("Username must be between 3 and 30 characters")
        return username

    def is_connected_to(self, other):
        return other is not None and other in self.connections

    def connect(self, other):
        """Create a mutual connection in both directions."""
        if other not in self.connections:
            self.connections.append(other)
        if self not in other.connections:
            other.connections.append(self)

    def disconnect(self, other):
        if other in self.connections:
            self.connections.remove(other)
        if self in other.connections:
            other.connections.remove(self)

    def shares_group_with(self, other):
        mine = {g.id for g in self.groups}
        return any(g.id in mine for g in other.groups)

    def can_be_viewed_by(self, viewer):
        """Apply is_public and the privacy level for a (possibly anonymous) viewer."""
        if viewer is not None and viewer.id == self.id:
            return True
        if not self.is_public:
            return False
        if self.privacy == PrivacyLevel.CONNECTIONS:
            return viewer is not None and self.is_connected_to(viewer)
        if self.privacy == PrivacyLevel.GROUP:
            return viewer is not None and self.shares_group_with(viewer)
        return True

    def summary(self):
        return {
            "id": self.id,
            "name": self.name,
            "username": self.username,
            "image": self.image,
            "university": self.university
        }

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "username": self.username,
            "email": self.email,
            "university": self.university,
            "major": self.major,
            "year": self.year,
            "title": self.title,
            "heritage": self.heritage or [],
            "languages": self.languages or [],
            "bio": self.bio,
            "image": self.image,
            "verified": self.verified,
            "location": self.location,
            "country": self.country,
            "state": self.state,
            "linkedin_url": self.linkedin_url,
            "is_public": self.is_public,
            "privacy": self.privacy.value if self.privacy else PrivacyLevel.PUBLIC.value,
            "events_attended": self.events_attended or 0,
            "created_at": _iso(self.created_at)
        }

    def __repr__(self):
        return f'<User {self.username}>'


class Group(db.Model):
    __tablename__ = 'groups'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(100), nullable=False)
    location = db.Column(db.String(255))
    is_public = db.Column(db.Boolean, default=True, nullable=False)
    image = db.Column(db.String(500))
    university_only = db.Column(db.Boolean, default=False, nullable=False)
    allowed_university = db.Column(db.String(255))
    meeting_time = db.Column(db.String(50))
    meeting_date = db.Column(db.String(50))
    meeting_location = db.Column(db.String(255))
    meeting_days = db.Column(db.JSON, default=list)
    upcoming_events = db.Column(db.Integer, default=0, nullable=False)
    president_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    president = db.relationship('User', foreign_keys=[president_id], backref='presided_groups')
    members = db.relationship('User', secondary=group_members, backref=db.backref('groups', lazy=True), lazy=True)
    admins = db.relationship('User', secondary=group_admins, backref=db.backref('admin_groups', lazy=True), lazy=True)
    meetings = db.relationship('GroupMeeting', backref='group', lazy=True, cascade="all, delete-orphan")
    media = db.relationship('Media', backref='group', lazy=True, cascade="all, delete-orphan")
    social_media = db.relationship('SocialMedia', backref='group', lazy=True, cascade="all, delete-orphan")
    events = db.relationship('Event', backref='group', lazy=True, cascade="all, delete-orphan")
    requests = db.relationship('GroupRequest', backref='group', lazy=True, cascade="all, delete-orphan")

    def is_member(self, user):
        return user is not None and user in self.members

    def is_admin(self, user):
        return user is not None and user in self.admins

    def is_president(self, user):
        return user is not None and self.president_id == user.id

    def can_manage(self, user):
        return self.is_president(user) or self.is_admin(user)

    def admits_university(self, user):
        if not self.university_only or not self.allowed_university:
            return True
        return bool(user.university) and user.university.strip().lower() == self.allowed_university.strip().lower()

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "location": self.location,
            "is_public": self.is_public,
            "image": self.image,
            "university_only": self.university_only,
            "allowed_university": self.allowed_university,
            "meeting_time": self.meeting_time,
            "meeting_date": self.meeting_date,
            "meeting_location": self.meeting_location,
            "meeting_days": self.meeting_days or [],
            "upcoming_events": self.upcoming_events or 0,
            "member_count": len(self.members),
            "president": self.president.summary() if self.president else None,
            "created_at": _iso(self.created_at)
        }

    def as_dict_detailed(self):
        data = self.as_dict()
        data.update({
            "members": [m.summary() for m in self.members],
            "admins": [a.summary() for a in self.admins],
            "meetings": [m.as_dict() for m in self.meetings],
            "media": [m.as_dict() for m in self.media],
            "social_media": [s.as_dict() for s in self.social_media]
        })
        return data


class GroupMeeting(db.Model):
    __tablename__ = 'group_meetings'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=False)
    date = db.Column(db.String(50))
    time = db.Column(db.String(50))
    location = db.Column(db.String(255))

    def as_dict(self):
        return {"id": self.id, "date": self.date, "time": self.time, "location": self.location}


class Media(db.Model):
    __tablename__ = 'media'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=False)
    type = db.Column(db.String(50), nullable=False, default='image')
    url = db.Column(db.String(500), nullable=False)
    caption = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def as_dict(self):
        return {"id": self.id, "type": self.type, "url": self.url, "caption": self.caption}


class SocialMedia(db.Model):
    __tablename__ = 'social_media'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=False)
    platform = db.Column(db.String(50), nullable=False)
    link = db.Column(db.String(500), nullable=False)

    def as_dict(self):
        return {"id": self.id, "platform": self.platform, "link": self.link}


class GroupRequest(db.Model):
    __tablename__ = 'group_requests'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=False)
    requester_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    responder_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    status = db.Column(db.Enum(GroupRequestStatus), default=GroupRequestStatus.PENDING, nullable=False)
    message = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    requester = db.relationship('User', foreign_keys=[requester_id])
    responder = db.relationship('User', foreign_keys=[responder_id])

    def as_dict(self):
        return {
            "id": self.id,
            "group_id": self.group_id,
            "group_name": self.group.name if self.group else None,
            "requester": self.requester.summary() if self.requester else None,
            "responder_id": self.responder_id,
            "status": self.status.value,
            "message": self.message,
            "created_at": _iso(self.created_at)
        }


class Event(db.Model):
    __tablename__ = 'events'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    title = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255))
    description = db.Column(db.Text, nullable=False)
    date = db.Column(db.Date, nullable=False, index=True)
    time = db.Column(db.String(50), nullable=False)
    location = db.Column(db.String(255), nullable=False)
    category = db.Column(db.JSON, default=list, nullable=False)
    organizer = db.Column(db.String(255), nullable=False)
    attendees = db.Column(db.Integer, default=0, nullable=False)
    max_attendees = db.Column(db.Integer)
    image = db.Column(db.String(500))
    price = db.Column(db.String(50))
    distance = db.Column(db.String(50))
    university_only = db.Column(db.Boolean, default=False, nullable=False)
    allowed_university = db.Column(db.String(255))
    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    event_attendees = db.relationship('User', secondary=event_attendees, backref=db.backref('events', lazy=True), lazy=True)
    favorited_by = db.relationship('User', secondary=event_favorites, backref=db.backref('favorite_events', lazy=True), lazy=True)

    def admits_university(self, user):
        if not self.university_only or not self.allowed_university:
            return True
        return bool(user.university) and user.university.strip().lower() == self.allowed_university.strip().lower()

    def as_dict(self, user=None):
        return {
            "id": self.id,
            "title": self.title,
            "name": self.name or self.title,
            "description": self.description,
            "date": self.date.isoformat(),
            "time": self.time,
            "location": self.location,
            "category": self.category or [],
            "organizer": self.organizer,
            "attendees": self.attendees or 0,
            "max_attendees": self.max_attendees,
            "image": self.image,
            "price": self.price,
            "distance": self.distance,
            "university_only": self.university_only,
            "allowed_university": self.allowed_university,
            "group": {
                "id": self.group.id,
                "name": self.group.name,
                "image": self.group.image
            } if self.group else None,
            "is_rsvped": user is not None and user in self.event_attendees,
            "is_favorited": user is not None and user in self.favorited_by,
            "created_at": _iso(self.created_at)
        }


class Conversation(db.Model):
    __tablename__ = 'conversations'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    is_group_chat = db.Column(db.Boolean, default=False, nullable=False)
    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=True, unique=True)
    last_message = db.Column(db.Text)
    last_message_time = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    participants = db.relationship('User', secondary=conversation_participants, backref=db.backref('conversations', lazy=True), lazy=True)
    group = db.relationship('Group', backref=db.backref('conversation', uselist=False, cascade="all, delete-orphan"))
    messages = db.relationship('Message', backref='conversation', lazy=True,
                               cascade="all, delete-orphan", order_by='Message.timestamp')

    def has_access(self, user):
        if self.is_group_chat:
            return self.group is not None and self.group.is_member(user)
        return user in self.participants

    def unread_count(self, user):
        return sum(1 for m in self.messages if m.sender_id != user.id and user not in m.read_by)

    def as_dict(self, user=None):
        data = {
            "id": self.id,
            "is_group_chat": self.is_group_chat,
            "last_message": self.last_message or '',
            "last_message_time": _iso(self.last_message_time),
            "created_at": _iso(self.created_at)
        }
        if self.is_group_chat:
            data["group"] = {"id": self.group.id, "name": self.group.name, "image": self.group.image} if self.group else None
        else:
            data["participants"] = [p.summary() for p in self.participants]
            if user is not None:
                other = next((p for p in self.participants if p.id != user.id), None)
                data["other_user"] = other.summary() if other else None
        if user is not None:
            data["unread_count"] = self.unread_count(user)
        return data


class Message(db.Model):
    __tablename__ = 'messages'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    conversation_id = db.Column(db.Integer, db.ForeignKey('conversations.id'), nullable=False, index=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    text = db.Column(db.Text, nullable=False)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    sender = db.relationship('User', foreign_keys=[sender_id])
    read_by = db.relationship('User', secondary=message_reads, lazy=True)

    def as_dict(self):
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "text": self.text,
            "timestamp": _iso(self.timestamp),
            "sender": self.sender.summary() if self.sender else None,
            "read_by": [u.id for u in self.read_by]
        }


class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    recipient_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    type = db.Column(db.String(50), nullable=False)  # e.g. group_request, connection, activity_request
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    read = db.Column(db.Boolean, default=False, nullable=False)
    related_id = db.Column(db.Integer, nullable=True)
    related_type = db.Column(db.String(50), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    recipient = db.relationship('User', foreign_keys=[recipient_id], backref=db.backref('notifications', lazy=True, cascade="all, delete-orphan"))
    sender = db.relationship('User', foreign_keys=[sender_id])

    def as_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "read": self.read,
            "related_id": self.related_id,
            "related_type": self.related_type,
            "sender": self.sender.summary() if self.sender else None,
            "created_at": _iso(self.created_at)
        }

# ===== ACTIVITY BUDDY MODELS =====
class Activity(db.Model):
    __tablename__ = 'activities'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(100), nullable=False, unique=True)
    category = db.Column(db.Enum(ActivityCategory), nullable=False)
    icon = db.Column(db.String(20), nullable=False)
    description = db.Column(db.Text, nullable=False)
    equipment = db.Column(db.JSON, default=list)
    transportation = db.Column(db.Boolean, default=False)
    indoor = db.Column(db.Boolean, default=False)
    outdoor = db.Column(db.Boolean, default=False)
    skill_level = db.Column(db.Enum(SkillLevel), nullable=True)
    max_participants = db.Column(db.Integer)
    duration = db.Column(db.Integer)  # minutes
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    preferences = db.relationship('ActivityPreference', backref='activity', lazy=True, cascade="all, delete-orphan")

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "icon": self.icon,
            "description": self.description,
            "equipment": self.equipment or [],
            "transportation": self.transportation,
            "indoor": self.indoor,
            "outdoor": self.outdoor,
            "skill_level": self.skill_level.value if self.skill_level else None,
            "max_participants": self.max_participants,
            "duration": self.duration
        }


class ActivityPreference(db.Model):
    __tablename__ = 'activity_preferences'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    activity_id = db.Column(db.Integer, db.ForeignKey('activities.id'), nullable=False)
    is_open = db.Column(db.Boolean, default=True, nullable=False)
    location_radius = db.Column(db.Integer, default=10, nullable=False)  # miles/km
    equipment = db.Column(db.Enum(EquipmentStatus), default=EquipmentStatus.NOT_NEEDED, nullable=False)
    transportation = db.Column(db.Enum(TransportationMode), default=TransportationMode.WALKING_DISTANCE, nullable=False)
    skill_level = db.Column(db.Enum(SkillLevel), default=SkillLevel.BEGINNER, nullable=False)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship('User', backref=db.backref('activity_preferences', lazy=True, cascade="all, delete-orphan"))
    availability = db.relationship('Availability', backref='preference', lazy=True,
                                   cascade="all, delete-orphan", order_by='Availability.id')

    __table_args__ = (
        db.UniqueConstraint('user_id', 'activity_id', name='uix_user_activity_preference'),
    )

    def availability_map(self):
        """Return {day: [(start, end), ...]} for the matching engine."""
        days = {}
        for avail in self.availability:
            slots = days.setdefault(avail.day.value, [])
            slots.extend((slot.start_time, slot.end_time) for slot in avail.time_slots)
        return days

    def as_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "activity_id": self.activity_id,
            "activity": self.activity.as_dict() if self.activity else None,
            "is_open": self.is_open,
            "location_radius": self.location_radius,
            "equipment": self.equipment.value,
            "transportation": self.transportation.value,
            "skill_level": self.skill_level.value,
            "notes": self.notes,
            "availability": [a.as_dict() for a in self.availability]
        }


class Availability(db.Model):
    __tablename__ = 'availabilities'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    preference_id = db.Column(db.Integer, db.ForeignKey('activity_preferences.id'), nullable=False)
    day = db.Column(db.Enum(Weekday), nullable=False)

    time_slots = db.relationship('TimeSlot', backref='availability', lazy=True,
                                 cascade="all, delete-orphan", order_by='TimeSlot.start_time')

    def as_dict(self):
        return {
            "id": self.id,
            "day": self.day.value,
            "time_slots": [s.as_dict() for s in self.time_slots]
        }


class TimeSlot(db.Model):
    __tablename__ = 'time_slots'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    availability_id = db.Column(db.Integer, db.ForeignKey('availabilities.id'), nullable=False)
    start_time = db.Column(db.String(5), nullable=False)  # HH:MM
    end_time = db.Column(db.String(5), nullable=False)  # HH:MM

    def as_dict(self):
        return {"start_time": self.start_time, "end_time": self.end_time}


class ActivityRequest(db.Model):
    __tablename__ = 'activity_requests'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    requester_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    recipient_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    activity_id = db.Column(db.Integer, db.ForeignKey('activities.id'), nullable=False)
    message = db.Column(db.Text, nullable=False)
    proposed_date_time = db.Column(db.DateTime)
    location = db.Column(db.String(255))
    status = db.Column(db.Enum(ActivityRequestStatus), default=ActivityRequestStatus.PENDING, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    requester = db.relationship('User', foreign_keys=[requester_id])
    recipient = db.relationship('User', foreign_keys=[recipient_id])
    activity = db.relationship('Activity')

    def as_dict(self):
        return {
            "id": self.id,
            "requester": self.requester.summary() if self.requester else None,
            "recipient": self.recipient.summary() if self.recipient else None,
            "activity": self.activity.as_dict() if self.activity else None,
            "message": self.message,
            "proposed_date_time": _iso(self.proposed_date_time),
            "location": self.location,
            "status": self.status.value,
            "created_at": _iso(self.created_at)
        }


class ActivityMatch(db.Model):
    __tablename__ = 'activity_matches'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user1_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    user2_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    activity_id = db.Column(db.Integer, db.ForeignKey('activities.id'), nullable=False)
    match_score = db.Column(db.Float, nullable=False, default=0.0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user1 = db.relationship('User', foreign_keys=[user1_id])
    user2 = db.relationship('User', foreign_keys=[user2_id])
    activity = db.relationship('Activity')
    common_time_slots = db.relationship('MatchTimeSlot', backref='match', lazy=True, cascade="all, delete-orphan")

    def as_dict(self):
        return {
            "id": self.id,
            "user1": self.user1.summary() if self.user1 else None,
            "user2": self.user2.summary() if self.user2 else None,
            "activity": self.activity.as_dict() if self.activity else None,
            "match_score": self.match_score,
            "common_time_slots": [s.as_dict() for s in self.common_time_slots],
            "created_at": _iso(self.created_at)
        }


class MatchTimeSlot(db.Model):
    __tablename__ = 'match_slots'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    match_id = db.Column(db.Integer, db.ForeignKey('activity_matches.id'), nullable=False)
    day = db.Column(db.Enum(Weekday), nullable=False)
    start_time = db.Column(db.String(5), nullable=False)
    end_time = db.Column(db.String(5), nullable=False)

    def as_dict(self):
        return {"day": self.day.value, "start_time": self.start_time, "end_time": self.end_time}

# ===== SPONSORED CONTENT =====
class Advertisement(db.Model):
    __tablename__ = 'advertisements'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    image_url = db.Column(db.String(500))
    category = db.Column(db.Enum(AdCategory), nullable=False)
    contact_info = db.Column(db.String(255))
    location = db.Column(db.JSON)
    heritage = db.Column(db.String(100))
    offer = db.Column(db.String(255))
    cta = db.Column(db.String(100))
    link = db.Column(db.String(500))
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship('User', backref=db.backref('advertisements', lazy=True))
    metrics = db.relationship('AdMetrics', backref='advertisement', uselist=False, cascade="all, delete-orphan")
    interactions = db.relationship('AdInteraction', backref='advertisement', lazy=True, cascade="all, delete-orphan")

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "image_url": self.image_url,
            "category": self.category.value,
            "contact_info": self.contact_info,
            "location": self.location,
            "heritage": self.heritage,
            "offer": self.offer,
            "cta": self.cta,
            "link": self.link,
            "is_active": self.is_active,
            "user": {"id": self.user.id, "name": self.user.name} if self.user else None,
            "metrics": self.metrics.as_dict() if self.metrics else None,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at)
        }


class AdMetrics(db.Model):
    __tablename__ = 'ad_metrics'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    advertisement_id = db.Column(db.Integer, db.ForeignKey('advertisements.id'), nullable=False, unique=True)
    views = db.Column(db.Integer, default=0, nullable=False)
    clicks = db.Column(db.Integer, default=0, nullable=False)
    click_through_rate = db.Column(db.Float, nullable=True)

    @classmethod
    def increment(cls, metrics_id, interaction_type):
        """Bump views or clicks and recompute the CTR in one UPDATE.

        The right-hand side reads pre-update values, so the new counter is spelled out.
        """
        views, clicks = cls.views, cls.clicks
        if interaction_type == InteractionType.IMPRESSION:
            views = cls.views + 1
            values = {cls.views: views}
        else:
            clicks = cls.clicks + 1
            values = {cls.clicks: clicks}
        values[cls.click_through_rate] = db.case(
            (views > 0, db.cast(clicks, db.Float) / views),
            else_=None
        )
        return cls.query.filter_by(id=metrics_id).update(values, synchronize_session=False)

    def as_dict(self):
        return {
            "advertisement_id": self.advertisement_id,
            "views": self.views or 0,
            "clicks": self.clicks or 0,
            "click_through_rate": self.click_through_rate
        }


class AdInteraction(db.Model):
    __tablename__ = 'ad_interactions'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    advertisement_id = db.Column(db.Integer, db.ForeignKey('advertisements.id'), nullable=False, index=True)
    interaction_type = db.Column(db.Enum(InteractionType), nullable=False)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    def as_dict(self):
        return {
            "id": self.id,
            "advertisement_id": self.advertisement_id,
            "interaction_type": self.interaction_type.value,
            "timestamp": _iso(self.timestamp),
            "user_id": self.user_id
        }
