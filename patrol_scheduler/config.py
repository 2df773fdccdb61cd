"""
Configuration management for the Patrol Scheduler
Handles environment-based settings for storage, logging and materialization

Uses the lazy validation pattern so development and testing can run
without production secrets configured.
"""
import secrets
from decouple import config
from typing import Optional


class Config:
    """Base configuration class"""
    # Flask settings
    # Development: Generate random key on startup (non-persistent OK for dev)
    SECRET_KEY = config('SECRET_KEY', default=secrets.token_hex(32))
    SQLALCHEMY_DATABASE_URI = config('DATABASE_URL', default='sqlite:///instance/patrol.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # JSON API only - CSRF tokens are not issued to API clients
    WTF_CSRF_ENABLED = config('WTF_CSRF_ENABLED', default=False, cast=bool)

    # Logging settings
    LOG_LEVEL = config('LOG_LEVEL', default='INFO')
    LOG_FILE = config('LOG_FILE', default='logs/patrol.log')

    # Schedule defaults
    DEFAULT_TIMEZONE = config('DEFAULT_TIMEZONE', default='Africa/Johannesburg')
    DEFAULT_SHIFT_DURATION_MINUTES = config('DEFAULT_SHIFT_DURATION_MINUTES', default=120, cast=int)

    # Materialization settings
    AUTO_MATERIALIZE_ENABLED = config('AUTO_MATERIALIZE_ENABLED', default=False, cast=bool)
    MATERIALIZE_INTERVAL_MINUTES = config('MATERIALIZE_INTERVAL_MINUTES', default=60, cast=int)
    MATERIALIZE_HORIZON_DAYS = config('MATERIALIZE_HORIZON_DAYS', default=14, cast=int)
    MATERIALIZE_MAX_OCCURRENCES = config('MATERIALIZE_MAX_OCCURRENCES', default=5000, cast=int)

    # Rate Limiting
    RATELIMIT_ENABLED = config('RATELIMIT_ENABLED', default=True, cast=bool)
    RATELIMIT_DEFAULT = config('RATELIMIT_DEFAULT', default='300 per hour')

    @classmethod
    def validate(cls) -> None:
        """
        Validate configuration - can be called explicitly or on-demand

        Raises:
            ValueError: If required configuration is missing
        """
        pass  # Base config has no required validation


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    LOG_FILE = ''
    AUTO_MATERIALIZE_ENABLED = False
    RATELIMIT_ENABLED = False
    DEFAULT_TIMEZONE = 'UTC'


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    # Database Connection Pool (for production databases)
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': config('DB_POOL_SIZE', default=10, cast=int),
        'pool_recycle': config('DB_POOL_RECYCLE', default=3600, cast=int),
        'pool_pre_ping': True,
        'max_overflow': config('DB_MAX_OVERFLOW', default=20, cast=int),
    }

    # Logging
    LOG_LEVEL = config('LOG_LEVEL', default='WARNING')

    @classmethod
    def validate(cls) -> None:
        """
        Production mode: validate all required settings

        Raises:
            ValueError: If any required configuration is missing
        """
        try:
            secret_key = config('SECRET_KEY')
        except Exception:
            raise ValueError(
                "SECRET_KEY environment variable must be set in production. "
                "Generate a secure key with: python -c 'import secrets; print(secrets.token_hex(32))'"
            )

        if len(secret_key) < 32:
            raise ValueError(
                f"SECRET_KEY must be at least 32 characters in production (current: {len(secret_key)})."
            )

        if cls.MATERIALIZE_HORIZON_DAYS <= 0:
            raise ValueError("MATERIALIZE_HORIZON_DAYS must be a positive number of days")


# Configuration mapping
config_mapping = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config(config_name: Optional[str] = None, validate: bool = False) -> type:
    """
    Get configuration class based on environment.

    Args:
        config_name: Environment name ('development', 'testing', 'production')
        validate: Whether to validate configuration immediately (default: False)

    Returns:
        Config class for the specified environment

    Raises:
        ValueError: If validation is enabled and required variables are missing
    """
    if config_name is None:
        config_name = config('FLASK_ENV', default='development')

    config_class = config_mapping.get(config_name, DevelopmentConfig)

    if validate:
        config_class.validate()

    return config_class
