from flask import request
from flask_restful import Resource
from flask_jwt_extended import jwt_required
from datetime import datetime
from sqlalchemy.exc import SQLAlchemyError
from model import db, Conversation, Message, Group, User
from auth import get_current_user
from utils import parse_timestamp
import logging

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE_LIMIT = 50
MAX_MESSAGE_LIMIT = 200


def find_direct_conversation(user_a, user_b):
    return (Conversation.query
            .filter(Conversation.is_group_chat.is_(False))
            .filter(Conversation.participants.any(User.id == user_a.id))
            .filter(Conversation.participants.any(User.id == user_b.id))
            .first())


def _load_conversation(conversation_id, user):
    conversation = db.session.get(Conversation, conversation_id)
    if not conversation:
        return None, ({"message": "Conversation not found"}, 404)
    if not conversation.has_access(user):
        return None, ({"message": "You are not a participant in this conversation"}, 403)
    return conversation, None


class ConversationListResource(Resource):

    @jwt_required()
    def get(self):
        """All direct and group conversations of the caller, newest activity first."""
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        conversations = [c for c in user.conversations if not c.is_group_chat]
        conversations.extend(g.conversation for g in user.groups if g.conversation is not None)

        active = sorted((c for c in conversations if c.last_message_time),
                        key=lambda c: c.last_message_time, reverse=True)
        empty = sorted((c for c in conversations if not c.last_message_time),
                       key=lambda c: c.created_at, reverse=True)
        return {"conversations": [c.as_dict(user) for c in active + empty]}, 200

    @jwt_required()
    def post(self):
        """Create (or return) a direct conversation with recipient_id, or a group conversation for group_id."""
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        data = request.get_json(silent=True) or {}
        recipient_id = data.get("recipient_id")
        group_id = data.get("group_id")

        if not recipient_id and not group_id:
            return {"message": "recipient_id or group_id is required"}, 400

        if group_id:
            group = db.session.get(Group, group_id)
            if not group:
                return {"message": "Group not found"}, 404
            if not group.is_member(user):
                return {"message": "You must be a member of the group to join its chat"}, 403
            if group.conversation is not None:
                return {"message": "Conversation already exists", "conversation": group.conversation.as_dict(user)}, 200
            conversation = Conversation(is_group_chat=True, group=group)
        else:
            if recipient_id == user.id:
                return {"message": "You cannot start a conversation with yourself"}, 400
            recipient = db.session.get(User, recipient_id)
            if not recipient:
                return {"message": "Recipient not found"}, 404
            existing = find_direct_conversation(user, recipient)
            if existing:
                return {"message": "Conversation already exists", "conversation": existing.as_dict(user)}, 200
            conversation = Conversation(is_group_chat=False)
            conversation.participants.extend([user, recipient])

        try:
            db.session.add(conversation)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error creating conversation: {e}")
            return {"message": "Database error"}, 500

        return {"message": "Conversation created", "conversation": conversation.as_dict(user)}, 201


class ConversationMessagesResource(Resource):

    @jwt_required()
    def get(self, conversation_id):
        """Messages in chronological order; fetched messages are marked read by the caller."""
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        conversation, error = _load_conversation(conversation_id, user)
        if error:
            return error

        limit = request.args.get('limit', DEFAULT_MESSAGE_LIMIT, type=int) or DEFAULT_MESSAGE_LIMIT
        limit = max(1, min(limit, MAX_MESSAGE_LIMIT))

        query = Message.query.filter_by(conversation_id=conversation.id)

        before = request.args.get('before', type=str)
        if before:
            try:
                query = query.filter(Message.timestamp < parse_timestamp(before))
            except ValueError:
                return {"message": "Invalid 'before' timestamp. Use ISO 8601"}, 400

        messages = query.order_by(Message.timestamp.desc(), Message.id.desc()).limit(limit).all()
        messages.reverse()

        try:
            changed = False
            for message in messages:
                if user not in message.read_by:
                    message.read_by.append(user)
                    changed = True
            if changed:
                db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error marking messages read in conversation {conversation_id}: {e}")
            return {"message": "Database error"}, 500

        return {"messages": [m.as_dict() for m in messages]}, 200

    @jwt_required()
    def post(self, conversation_id):
        user = get_current_user()
        if not user:
            return {"message": "User not found"}, 404

        conversation, error = _load_conversation(conversation_id, user)
        if error:
            return error

        data = request.get_json(silent=True) or {}
        text = data.get("text")
        if not isinstance(text, str) or not text.strip():
            return {"message": "Message text is required"}, 400

        now = datetime.utcnow()
        message = Message(conversation=conversation, sender=user, text=text.strip(), timestamp=now)
        message.read_by.append(user)
        conversation.last_message = message.text
        conversation.last_message_time = now

        try:
            db.session.add(message)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error sending message in conversation {conversation_id}: {e}")
            return {"message": "Database error"}, 500

        return {"message": "Message sent", "data": message.as_dict()}, 201


def register_chat_resources(api):
    api.add_resource(ConversationListResource, "/api/chat/conversations")
    api.add_resource(ConversationMessagesResource, "/api/chat/conversations/<int:conversation_id>/messages")
