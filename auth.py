from flask import Blueprint, jsonify, request, current_app
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity, jwt_required, create_access_token
from email_validator import validate_email, EmailNotValidError
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired
from sqlalchemy.exc import SQLAlchemyError
from model import db, User, PrivacyLevel, parse_enum
from email_utils import send_password_reset_email, send_verification_email
import logging

logger = logging.getLogger(__name__)

# Authentication Blueprint
auth_bp = Blueprint('auth', __name__)

RESET_SALT = "reset-password-salt"
VERIFY_SALT = "email-verification-salt"

PROFILE_FIELDS = (
    "university", "major", "year", "title", "heritage", "languages", "bio", "image",
    "location", "country", "state", "linkedin_url", "is_public"
)


def generate_token(user):
    return create_access_token(
        identity=str(user.id),
        additional_claims={
            "email": user.email,
            "username": user.username
        }
    )


def get_current_user():
    """Load the user behind the JWT of the current request (None if the account is gone)."""
    identity = get_jwt_identity()
    if identity is None:
        return None
    try:
        return db.session.get(User, int(identity))
    except (TypeError, ValueError):
        return None


def get_optional_user():
    """Like get_current_user, for endpoints where authentication is optional."""
    verify_jwt_in_request(optional=True)
    return get_current_user()


def is_valid_email(email: str) -> bool:
    """Validates an email address, and the .edu requirement when enabled"""
    if not email or not isinstance(email, str):
        return False
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    if current_app.config.get("REQUIRE_EDU_EMAIL", True):
        return email.lower().endswith(".edu")
    return True


def validate_password(password) -> bool:
    """Password must be between 6 and 100 characters"""
    return isinstance(password, str) and 6 <= len(password) <= 100


def validate_username(username) -> bool:
    return isinstance(username, str) and 3 <= len(username) <= 30


def _serializer():
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"])


def _set_token_cookie(response, token):
    response.set_cookie(
        current_app.config.get("JWT_ACCESS_COOKIE_NAME", "access_token"),
        token,
        httponly=True,
        secure=current_app.config.get("JWT_COOKIE_SECURE", True),
        samesite=current_app.config.get("JWT_COOKIE_SAMESITE", "None"),
        path='/',
        max_age=int(current_app.config["JWT_ACCESS_TOKEN_EXPIRES"].total_seconds())
    )


@auth_bp.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    email = data.get("email")
    password = data.get("password")
    name = data.get("name")

    if not validate_username(username):
        return jsonify({"msg": "Username must be between 3 and 30 characters"}), 400

    if not is_valid_email(email):
        if current_app.config.get("REQUIRE_EDU_EMAIL", True):
            return jsonify({"msg": "A valid university (.edu) email address is required"}), 400
        return jsonify({"msg": "Invalid email address"}), 400

    if not validate_password(password):
        return jsonify({"msg": "Password must be between 6 and 100 characters"}), 400

    if not name or not str(name).strip():
        return jsonify({"msg": "Name is required"}), 400

    email = email.strip().lower()

    # Check if Email or Username Already Exists
    if User.query.filter_by(email=email).first():
        return jsonify({"msg": "Email already registered"}), 409

    if User.query.filter_by(username=username).first():
        return jsonify({"msg": "Username already taken"}), 409

    new_user = User(username=username, email=email, name=str(name).strip(), verified=False)
    new_user.set_password(password)

    for field in PROFILE_FIELDS:
        if field in data:
            setattr(new_user, field, data[field])

    if "privacy" in data:
        try:
            new_user.privacy = parse_enum(PrivacyLevel, data["privacy"])
        except ValueError as e:
            return jsonify({"msg": str(e)}), 400

    try:
        db.session.add(new_user)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error registering user {email}: {e}")
        return jsonify({"msg": "Database error"}), 500

    logger.info(f"Registered user {new_user.username} ({new_user.id})")
    return jsonify({
        "msg": "User registered successfully",
        "user": new_user.as_dict(),
        "token": generate_token(new_user)
    }), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    """Handles user authentication and token generation"""
    data = request.get_json(silent=True) or {}

    email = data.get("email")
    password = data.get("password")

    if not email or not password:
        return jsonify({"error": "Email and password are required"}), 400

    if not isinstance(email, str) or not isinstance(password, str):
        return jsonify({"error": "Invalid email or password"}), 401

    user = User.query.filter_by(email=email.strip().lower()).first()
    if not user or not user.check_password(password):
        return jsonify({"error": "Invalid email or password"}), 401

    access_token = generate_token(user)

    response = jsonify({
        "message": "Login successful",
        "user": user.as_dict(),
        "token": access_token
    })

    # HTTP-only cookie for web clients; the mobile app uses the returned token
    _set_token_cookie(response, access_token)

    return response, 200


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Handles user logout by clearing the access token cookie"""
    response = jsonify({"message": "Logout successful"})
    response.delete_cookie(current_app.config.get("JWT_ACCESS_COOKIE_NAME", "access_token"), path='/')
    return response, 200


@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def me():
    """Current user with their connections"""
    user = get_current_user()
    if not user:
        return jsonify({"msg": "User not found"}), 404

    data = user.as_dict()
    data["connections"] = [c.summary() for c in user.connections]
    return jsonify(data), 200


@auth_bp.route('/forgot-password', methods=['POST'])
def forgot_password():
    data = request.get_json(silent=True) or {}
    email = data.get("email")

    if not isinstance(email, str) or not email.strip():
        return jsonify({"msg": "Email is required"}), 400

    email = email.strip().lower()

    user = User.query.filter_by(email=email).first()
    if not user:
        return jsonify({"msg": "Email not found"}), 404

    token = _serializer().dumps(email, salt=RESET_SALT)
    reset_link = f"{current_app.config['FRONTEND_URL']}/reset-password/{token}"

    if not send_password_reset_email(email, user.name, reset_link):
        return jsonify({"msg": "Failed to send reset email"}), 500

    return jsonify({"msg": "Reset link sent to your email"}), 200


@auth_bp.route('/reset-password/<token>', methods=['GET', 'POST'])
def reset_password(token):
    try:
        email = _serializer().loads(
            token, salt=RESET_SALT, max_age=current_app.config.get("PASSWORD_RESET_MAX_AGE", 3600)
        )
    except (SignatureExpired, BadSignature) as e:
        logger.warning(f"Reset token validation error: {e}")
        return jsonify({"msg": "Invalid or expired token"}), 400

    if request.method == 'GET':
        return jsonify({"msg": "Token is valid. You can now reset your password.", "email": email}), 200

    data = request.get_json(silent=True) or {}
    new_password = data.get("password")

    if not validate_password(new_password):
        return jsonify({"msg": "Password must be between 6 and 100 characters"}), 400

    user = User.query.filter_by(email=email).first()
    if not user:
        return jsonify({"msg": "User not found"}), 404

    try:
        user.set_password(new_password)
        db.session.commit()
        return jsonify({"msg": "Password reset successful"}), 200
    except SQLAlchemyError as e:
        logger.error(f"Error updating password: {e}")
        db.session.rollback()
        return jsonify({"msg": "An error occurred while updating the password"}), 500


@auth_bp.route('/send-verification', methods=['POST'])
@jwt_required()
def send_verification():
    user = get_current_user()
    if not user:
        return jsonify({"msg": "User not found"}), 404

    if user.verified:
        return jsonify({"msg": "Email already verified"}), 400

    token = _serializer().dumps(user.email, salt=VERIFY_SALT)
    verify_link = f"{current_app.config['BASE_URL']}/api/auth/verify/{token}"

    if not send_verification_email(user.email, user.name, verify_link):
        return jsonify({"msg": "Failed to send verification email"}), 500

    return jsonify({"msg": "Verification email sent"}), 200


@auth_bp.route('/verify/<token>', methods=['GET'])
def verify_email(token):
    try:
        email = _serializer().loads(
            token, salt=VERIFY_SALT, max_age=current_app.config.get("EMAIL_VERIFICATION_MAX_AGE", 86400)
        )
    except (SignatureExpired, BadSignature) as e:
        logger.warning(f"Verification token error: {e}")
        return jsonify({"msg": "Invalid or expired token"}), 400

    user = User.query.filter_by(email=email).first()
    if not user:
        return jsonify({"msg": "User not found"}), 404

    if user.verified:
        return jsonify({"msg": "Email already verified"}), 200

    try:
        user.verified = True
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error verifying {email}: {e}")
        return jsonify({"msg": "Database error"}), 500

    return jsonify({"msg": "Email verified successfully"}), 200
