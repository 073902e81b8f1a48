# app/config.py

import os


class Config:
    # Flask Secret Key
    SECRET_KEY = os.getenv('SECRET_KEY', 'your_secret_key')

    # Database Configuration
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URI',
        'postgresql://postgres:postgres@db:5432/scheduling_db'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Database connection pool configuration
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,       # Validate connections before using
        "pool_recycle": 1800,        # Recycle every 30 minutes
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
        "connect_args": {
            "connect_timeout": 10,
            "options": "-c statement_timeout=30000"  # 30s query timeout
        }
    }

    # CORS origins for the onboarding console
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv(
            'CORS_ORIGINS',
            'http://localhost:3000,http://localhost:5173'
        ).split(',')
        if origin.strip()
    ]

    # Scheduling
    # All slot dates/times are wall-clock values in this single zone.
    FACILITY_TIMEZONE = os.getenv('FACILITY_TIMEZONE', 'UTC')
    DEFAULT_START_HOUR = int(os.getenv('DEFAULT_START_HOUR', 9))
    DEFAULT_END_HOUR = int(os.getenv('DEFAULT_END_HOUR', 18))
    MAX_GENERATION_DAYS = int(os.getenv('MAX_GENERATION_DAYS', 180))
    GENERATION_LOCK_SECONDS = int(os.getenv('GENERATION_LOCK_SECONDS', 60))

    # Mail Configuration
    MAIL_SERVER = os.getenv("MAIL_SERVER", "localhost")
    MAIL_PORT = int(os.getenv("MAIL_PORT", 587))
    MAIL_USE_TLS = os.getenv("MAIL_USE_TLS", "true").lower() in ("true", "1", "t")
    MAIL_USE_SSL = os.getenv("MAIL_USE_SSL", "false").lower() in ("true", "1", "t")
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "no-reply@scheduling.local")
    RESERVATION_EMAILS_ENABLED = os.getenv(
        "RESERVATION_EMAILS_ENABLED", "false"
    ).lower() in ("true", "1", "t")

    # Redis (generation lock); the pool itself reads REDIS_URL / REDIS_HOST at import
    REDIS_URL = os.getenv('REDIS_URL')


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    MAIL_SUPPRESS_SEND = True
    RESERVATION_EMAILS_ENABLED = False
