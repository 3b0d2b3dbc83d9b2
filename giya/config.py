"""
Configuration management for the Giya platform.
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


class BaseConfig:
    """Base configuration."""
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session tokens (PyJWT, HS256)
    SESSION_COOKIE_NAME = 'giya_session'
    SESSION_TOKEN_TTL_HOURS = int(os.getenv('SESSION_TOKEN_TTL_HOURS', '168'))

    # Points economy defaults (overridden per-business)
    DEFAULT_POINTS_PER_CURRENCY = 100  # 1 point per 100 PHP spent
    DEFAULT_CURRENCY = 'PHP'

    # Influencer affiliate program - shipped disabled
    AFFILIATES_ENABLED = _env_flag('AFFILIATES_ENABLED')
    AFFILIATE_COMMISSION_RATE = 0.10       # share of receipt points paid to influencer
    AFFILIATE_LINK_COMMISSION_RATE = 0.05  # default rate stored on new links

    # Rate limiting (Flask-Limiter)
    RATELIMIT_ENABLED = _env_flag('ENABLE_RATE_LIMITING', 'true')
    RATELIMIT_STORAGE_URI = os.getenv('REDIS_URL', 'memory://')
    RATELIMIT_HEADERS_ENABLED = True

    # Push notifications (FCM legacy HTTP endpoint)
    FCM_SERVER_KEY = os.getenv('FCM_SERVER_KEY', '')
    FCM_SEND_URL = 'https://fcm.googleapis.com/fcm/send'
    # Pushes run inside the request (gunicorn timeout is 60s)
    FCM_PUSH_TIMEOUT = 5
    FCM_PUSH_MAX_RETRIES = 1
    FCM_DELIVERY_BUDGET_SECONDS = 20

    # Receipt text recognition
    OCR_PROVIDER = os.getenv('OCR_PROVIDER', 'none')

    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv(
            'CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000'
        ).split(',')
        if origin.strip()
    ]


class DevelopmentConfig(BaseConfig):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///giya_dev.db'  # SQLite fallback for local dev
    )
    RATELIMIT_ENABLED = _env_flag('ENABLE_RATE_LIMITING')


class ProductionConfig(BaseConfig):
    """Production configuration."""
    DEBUG = False

    _db_url = os.getenv('DATABASE_URL', '')
    if _db_url.startswith('postgres://'):
        # SQLAlchemy requires postgresql:// not postgres://
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = _db_url

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 5,
        'pool_recycle': 300,
        'pool_pre_ping': True,
    }

    _secret_key = os.getenv('SECRET_KEY', '')

    @classmethod
    def validate_secret_key(cls) -> str:
        """
        Validate SECRET_KEY in production environment.

        Session tokens are signed with this key.

        Raises:
            RuntimeError: If SECRET_KEY is missing, empty, or contains unsafe values
        """
        if not cls._secret_key:
            raise RuntimeError(
                "CRITICAL: SECRET_KEY environment variable is not set!\n"
                "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
            )

        insecure_patterns = ['dev', 'change', 'default', 'test', 'secret', 'password']
        lower_key = cls._secret_key.lower()
        for pattern in insecure_patterns:
            if pattern in lower_key:
                raise RuntimeError(
                    f"CRITICAL: SECRET_KEY contains '{pattern}' which suggests it's not secure!"
                )

        if len(cls._secret_key) < 32:
            raise RuntimeError(
                "CRITICAL: SECRET_KEY is too short (minimum 32 characters required)!"
            )

        return cls._secret_key

    SECRET_KEY = _secret_key


class TestingConfig(BaseConfig):
    """Testing configuration."""
    TESTING = True
    SECRET_KEY = 'testing-key-not-for-production-use-0123456789'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    RATELIMIT_ENABLED = False
    AFFILIATES_ENABLED = True
    FCM_SERVER_KEY = ''


config_map = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}


def get_config(config_name: str = 'development'):
    """Get configuration class by name."""
    return config_map.get(config_name, DevelopmentConfig)


def validate_config(config_name: str = 'development') -> None:
    """
    Validate configuration before app startup.

    Raises:
        RuntimeError: If validation fails in production
    """
    if config_name == 'production':
        ProductionConfig.validate_secret_key()
        if not ProductionConfig.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("CRITICAL: DATABASE_URL environment variable is not set!")
