import os
from dotenv import load_dotenv
import time
import logging

# ✅ Load environment variables
load_dotenv()

from flask import Flask
from flask_restful import Api
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_cors import CORS
import cloudinary

# Config and models
from config import Config, config
from model import db

# Blueprints and modules
from auth import auth_bp
from email_utils import mail
from user import register_user_resources
from event import register_event_resources
from group import register_group_resources
from chat import register_chat_resources
from notification import register_notification_resources
from activity import register_activity_resources
from sponsored import register_sponsored_resources
from upload import register_upload_resources
from seed import seed_activities, seed_sponsored_content, seed_command

logger = logging.getLogger(__name__)

jwt = JWTManager()
migrate = Migrate()


def configure_logging(config_class):
    logging.basicConfig(
        level=getattr(logging, str(config_class.LOG_LEVEL).upper(), logging.INFO),
        format=config_class.LOG_FORMAT
    )


def test_database_connection(max_retries=3, retry_delay=2):
    """Test database connection with retries"""
    for attempt in range(max_retries):
        try:
            with db.engine.connect() as conn:
                conn.execute(db.text("SELECT 1")).fetchone()
                return True
        except Exception as e:
            logger.warning(f"Database connection attempt {attempt + 1} failed: {e}")
            if attempt < max_retries - 1:
                time.sleep(retry_delay)
                retry_delay *= 2

    return False


def initialize_app(app, max_retries=5, base_retry_delay=2):
    """Create tables and seed reference data, retrying while the database comes up"""
    logger.info("🚀 Starting application initialization...")

    for attempt in range(max_retries):
        retry_delay = base_retry_delay * (2 ** attempt)  # Exponential backoff

        try:
            with app.app_context():
                logger.info(f"🔄 Initialization attempt {attempt + 1}/{max_retries}...")

                if not test_database_connection():
                    raise RuntimeError("Database connection failed after retries")
                logger.info("✅ Database connection successful")

                db.create_all()
                logger.info("✅ Database tables created/verified")

                if app.config.get("SEED_ON_STARTUP"):
                    seed_activities()
                    seed_sponsored_content()

                logger.info("🎉 Application initialized successfully!")
                return True

        except Exception as e:
            logger.error(f"❌ Initialization attempt {attempt + 1} failed: {e}")
            if attempt < max_retries - 1:
                logger.info(f"⏳ Retrying in {retry_delay} seconds...")
                time.sleep(retry_delay)

    logger.error("❌ All initialization attempts failed")
    return False


def register_health_routes(app):

    @app.route('/')
    def health_check():
        """Basic health check"""
        return {
            "status": "healthy",
            "message": "Culture Connect API is running",
            "timestamp": time.time()
        }, 200

    @app.route('/health')
    def detailed_health_check():
        """Detailed health check with database status"""
        health_info = {
            "status": "ok",
            "timestamp": time.time(),
            "environment": app.config.get("ENVIRONMENT"),
            "version": os.getenv("GIT_COMMIT", "unknown")
        }

        if test_database_connection(max_retries=1):
            health_info["database"] = "connected"
        else:
            health_info["database"] = "connection failed"
            health_info["status"] = "degraded"

        status_code = 200 if health_info["status"] == "ok" else 503
        return health_info, status_code

    @app.route('/ready')
    def readiness_check():
        """Container readiness check"""
        if test_database_connection(max_retries=1):
            return {"status": "ready"}, 200
        return {"status": "not ready", "reason": "database unavailable"}, 503


def register_error_handlers(app):

    @app.errorhandler(500)
    def internal_error(error):
        return {"error": "Internal server error", "status": 500}, 500

    @app.errorhandler(404)
    def not_found(error):
        return {"error": "Resource not found", "status": 404}, 404


def create_app(config_name=None):
    """Application factory; gunicorn runs `app:create_app()`"""
    config_name = config_name or os.getenv('FLASK_ENV', 'production')
    config_class = config.get(config_name, Config)

    configure_logging(config_class)

    app = Flask(__name__)
    app.config.from_object(config_class)

    try:
        config_class.validate_config()
        logger.info("✅ Configuration validation passed")
    except ValueError as e:
        logger.error(f"❌ Configuration validation failed: {e}")
        if config_name != 'production':
            raise
        logger.warning("⚠️ Continuing with potentially invalid configuration in production")

    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = config_class.get_database_engine_options()

    CORS(app,
         origins=app.config.get('CORS_ORIGINS'),
         supports_credentials=True,
         expose_headers=["Set-Cookie"],
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
         allow_headers=["Content-Type", "Authorization"])

    # ✅ Initialize extensions
    db.init_app(app)
    jwt.init_app(app)
    migrate.init_app(app, db)
    mail.init_app(app)
    api = Api(app)

    cloudinary.config(
        cloud_name=app.config.get('CLOUDINARY_CLOUD_NAME'),
        api_key=app.config.get('CLOUDINARY_API_KEY'),
        api_secret=app.config.get('CLOUDINARY_API_SECRET'),
        secure=True
    )

    # ✅ Register all routes
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    register_user_resources(api)
    register_event_resources(api)
    register_group_resources(api)
    register_chat_resources(api)
    register_notification_resources(api)
    register_activity_resources(api)
    register_sponsored_resources(api)
    register_upload_resources(api)
    register_health_routes(app)
    register_error_handlers(app)
    app.cli.add_command(seed_command)
    logger.info("✅ Routes registered")

    if not app.config.get("TESTING"):
        if not initialize_app(app):
            logger.warning("⚠️ Application started with degraded functionality")

    return app


# ✅ Application startup
if __name__ == "__main__":
    logger.info("🏃‍♂️ Running in development mode")
    application = create_app(os.getenv('FLASK_ENV', 'development'))
    application.run(debug=application.config.get("DEBUG", False), host='0.0.0.0', port=int(os.getenv('PORT', 5001)))
