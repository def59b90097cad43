import os
import logging
from sqlalchemy import event
from sqlalchemy.engine import Engine


def _env_flag(name, default='0'):
    return os.environ.get(name, default).lower() in ['1', 'true', 'on', 'yes']


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Local cache database (embedded SQLite, one file per workstation)
    SQLALCHEMY_DATABASE_URI = os.environ.get('POS_DATABASE_URL') or 'sqlite:///pos_cache.sqlite3'

    # Remote source of truth
    REMOTE_API_BASE_URL = os.environ.get('REMOTE_API_BASE_URL') or 'http://localhost:8000/api/v1'
    REMOTE_API_TIMEOUT = float(os.environ.get('REMOTE_API_TIMEOUT') or 30)
    REMOTE_FANOUT_WORKERS = int(os.environ.get('REMOTE_FANOUT_WORKERS') or 4)

    # Connectivity probe (DNS lookup with a bounded wait)
    CONNECTIVITY_HOST = os.environ.get('CONNECTIVITY_HOST') or 'google.com'
    CONNECTIVITY_TIMEOUT = float(os.environ.get('CONNECTIVITY_TIMEOUT') or 3)

    # Logged-in employee blob, kept outside the cache database
    SESSION_FILE = os.environ.get('SESSION_FILE') or os.path.join('instance', 'session.json')

    # Outbox for mutations that could not reach the remote API
    SYNC_OUTBOX_ENABLED = _env_flag('SYNC_OUTBOX_ENABLED', '1')
    SYNC_INTERVAL_SECONDS = int(os.environ.get('SYNC_INTERVAL_SECONDS') or 30)
    # Server-side failures before an entry stops being replayed
    SYNC_MAX_ATTEMPTS = int(os.environ.get('SYNC_MAX_ATTEMPTS') or 5)

    SOCKETIO_ASYNC_MODE = os.environ.get('SOCKETIO_ASYNC_MODE') or 'threading'

    TIMEZONE = os.environ.get('TIMEZONE') or 'UTC'

    # Logging configuration
    LOG_TO_STDOUT = _env_flag('LOG_TO_STDOUT', '1')
    LOG_TO_FILE = True
    LOG_DIR = os.environ.get('LOG_DIR') or 'logs'
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'

    @staticmethod
    def get_database_config():
        """SQLite-friendly engine options."""
        return {
            'pool_pre_ping': True,
            'echo': False,
            'connect_args': {
                # Socket.IO handlers and the sync worker share the connection pool
                'check_same_thread': False,
                'timeout': 30.0,
            }
        }

    @classmethod
    def init_app(cls, app):
        app.config['SQLALCHEMY_ENGINE_OPTIONS'] = cls.get_database_config()

        if not event.contains(Engine, 'connect', set_sqlite_pragmas):
            event.listen(Engine, 'connect', set_sqlite_pragmas)


def set_sqlite_pragmas(dbapi_connection, connection_record):
    """Tune SQLite for a single-workstation cache on every new connection."""
    module_name = getattr(dbapi_connection, '__class__', type(dbapi_connection)).__module__
    if 'sqlite3' not in module_name.lower():
        return
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA busy_timeout=5000")
    except Exception as e:
        logging.getLogger(__name__).warning(f"Could not apply SQLite pragmas: {e}")
    finally:
        cursor.close()


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DEV_DATABASE_URL') or 'sqlite:///pos_cache_dev.sqlite3'
    LOG_LEVEL = 'DEBUG'

    @classmethod
    def get_database_config(cls):
        base_config = super().get_database_config()
        return {
            **base_config,
            'echo': _env_flag('SQL_ECHO'),
        }


class ProductionConfig(Config):
    DEBUG = False
    LOG_TO_STDOUT = _env_flag('LOG_TO_STDOUT', '0')

    @classmethod
    def init_app(cls, app):
        super().init_app(app)
        app.logger.info('POS edge cache startup - Production Mode')


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SESSION_FILE = None
    SYNC_OUTBOX_ENABLED = True
    LOG_TO_FILE = False
    LOG_TO_STDOUT = False
    LOG_LEVEL = 'DEBUG'

    @staticmethod
    def get_database_config():
        from sqlalchemy.pool import StaticPool
        return {
            'poolclass': StaticPool,
            'connect_args': {'check_same_thread': False},
        }


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
