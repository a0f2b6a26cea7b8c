# Zero Proxy Attendance System Configuration

import os
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).parent.absolute()


def _env_flag(name, default='False'):
    return os.environ.get(name, default).lower() in ['true', 'on', '1']


class Config:
    """Base configuration class"""

    # Flask Configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'zero-proxy-secret-key-change-me'

    # Server Configuration
    HOST = os.environ.get('HOST') or '0.0.0.0'
    PORT = int(os.environ.get('PORT') or 3000)
    CORS_ALLOWED_ORIGINS = os.environ.get('CORS_ALLOWED_ORIGINS') or '*'

    # Database Configuration
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or str(BASE_DIR / 'database' / 'attendance.db')
    SEED_DEMO_DATA = _env_flag('SEED_DEMO_DATA')

    # Session Code Configuration
    CODE_ROTATION_SECONDS = float(os.environ.get('CODE_ROTATION_SECONDS') or 10)
    CODE_PREFIX = os.environ.get('CODE_PREFIX') or 'ZP'

    # Timetable Configuration ('first', 'reject' or 'narrowest')
    SCHEDULE_OVERLAP_POLICY = os.environ.get('SCHEDULE_OVERLAP_POLICY') or 'first'

    # Device Binding Configuration
    LOOPBACK_FINGERPRINT = os.environ.get('LOOPBACK_FINGERPRINT') or '00-11-22-33-44-55'
    ARP_TIMEOUT = 5.0

    # Security Configuration
    # werkzeug password hash of the admin token; the admin API is closed when unset
    ADMIN_TOKEN_HASH = os.environ.get('ADMIN_TOKEN_HASH')

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FILE = BASE_DIR / 'logs' / 'attendance.log'
    LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT = 5

    # Development Configuration
    DEBUG = _env_flag('DEBUG')
    TESTING = False

    @classmethod
    def init_app(cls, app):
        """Initialize application configuration"""
        app.config.from_object(cls)


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    LOG_LEVEL = 'DEBUG'
    SEED_DEMO_DATA = _env_flag('SEED_DEMO_DATA', 'True')


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True

    # Use in-memory database for testing
    DATABASE_PATH = ':memory:'
    SEED_DEMO_DATA = False

    # Long enough that only the immediate code is emitted during a test
    CODE_ROTATION_SECONDS = 3600
    ADMIN_TOKEN_HASH = None


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False
    LOG_LEVEL = 'WARNING'

    @classmethod
    def init_app(cls, app):
        super().init_app(app)

        # Setup file logging
        cls.LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            cls.LOG_FILE,
            maxBytes=cls.LOG_MAX_BYTES,
            backupCount=cls.LOG_BACKUP_COUNT
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        logging.getLogger().addHandler(file_handler)
        app.logger.info('Zero Proxy attendance startup')


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config(config_name=None):
    """Get configuration class by name, falling back to FLASK_ENV"""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'default')
    return config.get(config_name, DevelopmentConfig)


def validate_config(app_config):
    """Validate configuration settings"""
    errors = []

    if app_config['CODE_ROTATION_SECONDS'] <= 0:
        errors.append("CODE_ROTATION_SECONDS must be positive")

    if app_config['SCHEDULE_OVERLAP_POLICY'] not in ('first', 'reject', 'narrowest'):
        errors.append(
            f"SCHEDULE_OVERLAP_POLICY must be 'first', 'reject' or 'narrowest', "
            f"got {app_config['SCHEDULE_OVERLAP_POLICY']!r}"
        )

    if not app_config['CODE_PREFIX']:
        errors.append("CODE_PREFIX must not be empty")

    return errors


def init_config(app, config_name=None, overrides=None):
    """Initialize application with configuration"""
    config_class = get_config(config_name)
    config_class.init_app(app)
    if overrides:
        app.config.update(overrides)

    errors = validate_config(app.config)
    if errors:
        for error in errors:
            app.logger.error(f"Configuration error: {error}")
        raise RuntimeError("Configuration validation failed")
    return config_class
