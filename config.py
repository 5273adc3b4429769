import os
import json
from datetime import timedelta

# Do NOT call load_dotenv here. It should be in app.py


def _json_dumps(value):
    return json.dumps(value, ensure_ascii=False)


class Config:
    # Environment Detection
    ENVIRONMENT = os.getenv("FLASK_ENV", "production")
    DEBUG = os.getenv("FLASK_DEBUG", "False").lower() in ("true", "1")
    TESTING = os.getenv("TESTING", "False").lower() in ("true", "1")

    # Security Configuration
    SECRET_KEY = os.getenv("SECRET_KEY", "fallback-secret-key")

    # Let Flask-JWT-Extended error handlers run inside Flask-RESTful resources
    PROPAGATE_EXCEPTIONS = True
    ERROR_404_HELP = False

    # Email Configuration
    MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587").strip() or 587)
    MAIL_USE_TLS = os.getenv("MAIL_USE_TLS", "True").lower() in ("true", "1", "yes")
    MAIL_USE_SSL = os.getenv("MAIL_USE_SSL", "False").lower() in ("true", "1", "yes")
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER") or os.getenv("MAIL_USERNAME") or "no-reply@cultureconnect.app"

    # Database Configuration
    # Priority: DATABASE_URL > EXTERNAL_DATABASE_URL > fallback
    _database_url = os.getenv("DATABASE_URL") or os.getenv("EXTERNAL_DATABASE_URL")
    if _database_url:
        # Heroku-style providers hand out postgres:// but SQLAlchemy needs postgresql://
        if _database_url.startswith("postgres://"):
            _database_url = _database_url.replace("postgres://", "postgresql://", 1)
        SQLALCHEMY_DATABASE_URI = _database_url
    else:
        # Fallback for local development
        SQLALCHEMY_DATABASE_URI = os.getenv(
            "SQLALCHEMY_DATABASE_URI",
            "sqlite:///culture_connect.db"
        )

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = DEBUG and os.getenv("SQL_ECHO", "False").lower() in ("true", "1")

    # Database connection pool settings (ignored for SQLite)
    DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
    DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "3600"))
    DATABASE_PING_TIMEOUT = int(os.getenv("DATABASE_PING_TIMEOUT", "10"))

    # JWT Configuration
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "fallback-jwt-secret")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=int(os.getenv("JWT_ACCESS_TOKEN_DAYS", "7")))
    JWT_TOKEN_LOCATION = ["headers", "cookies"]  # Mobile client uses headers
    JWT_ACCESS_COOKIE_NAME = "access_token"
    JWT_HEADER_NAME = "Authorization"
    JWT_HEADER_TYPE = "Bearer"
    JWT_COOKIE_SECURE = not DEBUG
    JWT_COOKIE_SAMESITE = "None" if not DEBUG else "Lax"
    JWT_COOKIE_CSRF_PROTECT = False  # Simplified for API usage

    # Account rules
    REQUIRE_EDU_EMAIL = os.getenv("REQUIRE_EDU_EMAIL", "True").lower() in ("true", "1", "yes")
    PASSWORD_RESET_MAX_AGE = int(os.getenv("PASSWORD_RESET_MAX_AGE", "3600"))  # 1 hour
    EMAIL_VERIFICATION_MAX_AGE = int(os.getenv("EMAIL_VERIFICATION_MAX_AGE", "86400"))  # 24 hours

    # Frontend Configuration
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:8081")
    BASE_URL = os.getenv("BASE_URL", "http://localhost:5001")

    # Allowed origins for CORS
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:8081,http://localhost:19006").split(",")
        if origin.strip()
    ]

    # File Upload Configuration
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_CONTENT_LENGTH", "16777216"))  # 16MB
    MAX_IMAGE_SIZE = int(os.getenv("MAX_IMAGE_SIZE", str(5 * 1024 * 1024)))
    ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp'}

    # Cloudinary Configuration (for image uploads)
    CLOUDINARY_CLOUD_NAME = os.getenv('CLOUDINARY_CLOUD_NAME')
    CLOUDINARY_API_KEY = os.getenv('CLOUDINARY_API_KEY')
    CLOUDINARY_API_SECRET = os.getenv('CLOUDINARY_API_SECRET')
    CLOUDINARY_FOLDER = os.getenv('CLOUDINARY_FOLDER', 'culture_connect')

    # Pagination
    DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
    MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "50"))

    # Logging Configuration
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    # Startup behaviour
    SEED_ON_STARTUP = os.getenv("SEED_ON_STARTUP", "True").lower() in ("true", "1")

    @classmethod
    def validate_config(cls):
        """Validate critical configuration values"""
        required_vars = [
            'SECRET_KEY',
            'JWT_SECRET_KEY',
        ]

        missing_vars = []
        for var in required_vars:
            if not getattr(cls, var) or getattr(cls, var).startswith('fallback-'):
                missing_vars.append(var)

        if missing_vars:
            raise ValueError(f"Missing required environment variables: {', '.join(missing_vars)}")

        # Validate email configuration if email features are used
        if cls.MAIL_USERNAME and not cls.MAIL_PASSWORD:
            raise ValueError("MAIL_PASSWORD is required when MAIL_USERNAME is set")

        return True

    @classmethod
    def get_database_engine_options(cls):
        """Get database engine options based on configuration"""
        uri = cls.SQLALCHEMY_DATABASE_URI or ""
        # JSON list columns are searched as text, so keep non-ASCII values unescaped
        options = {'json_serializer': _json_dumps}
        if uri.startswith("sqlite"):
            # SQLite uses its own pool; Flask-SQLAlchemy handles :memory: setup
            return options

        options.update({
            'pool_size': cls.DB_POOL_SIZE,
            'max_overflow': cls.DB_MAX_OVERFLOW,
            'pool_timeout': cls.DB_POOL_TIMEOUT,
            'pool_recycle': cls.DB_POOL_RECYCLE,
            'pool_pre_ping': True,
            'echo': cls.SQLALCHEMY_ECHO
        })

        # Only add connect_args for PostgreSQL
        if 'postgresql' in uri:
            options['connect_args'] = {
                'connect_timeout': cls.DATABASE_PING_TIMEOUT,
                'application_name': 'culture_connect'
            }

        return options

    @classmethod
    def is_production(cls):
        """Check if running in production environment"""
        return cls.ENVIRONMENT.lower() == 'production'

    @classmethod
    def is_development(cls):
        """Check if running in development environment"""
        return cls.ENVIRONMENT.lower() in ('development', 'dev')


class DevelopmentConfig(Config):
    """Development-specific configuration"""
    DEBUG = True
    TESTING = False

    # Use less strict settings for development
    JWT_COOKIE_SECURE = False
    JWT_COOKIE_SAMESITE = "Lax"

    # More verbose logging in development
    SQLALCHEMY_ECHO = True
    LOG_LEVEL = "DEBUG"


class ProductionConfig(Config):
    """Production-specific configuration"""
    DEBUG = False
    TESTING = False

    # Enforce security in production
    JWT_COOKIE_SECURE = True

    # Minimal logging in production
    SQLALCHEMY_ECHO = False
    LOG_LEVEL = "WARNING"


class TestingConfig(Config):
    """Testing-specific configuration"""
    TESTING = True
    DEBUG = True

    SECRET_KEY = "test-secret-key"
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"

    # Use in-memory database for testing
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ECHO = False

    JWT_COOKIE_SECURE = False
    JWT_COOKIE_SAMESITE = "Lax"

    # Disable external services in testing
    MAIL_SUPPRESS_SEND = True
    MAIL_USERNAME = None
    MAIL_PASSWORD = None
    REQUIRE_EDU_EMAIL = True
    SEED_ON_STARTUP = False
    LOG_LEVEL = "WARNING"


# Configuration dictionary for easy switching
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': Config
}
