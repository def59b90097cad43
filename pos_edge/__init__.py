import os
import sys
import logging
from logging.handlers import RotatingFileHandler

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_socketio import SocketIO
from config import Config

# Initialize extensions
db = SQLAlchemy()
socketio = SocketIO()


def create_app(config_class=Config, remote=None, probe=None, session_store=None):
    """
    Build the edge cache application.

    ``remote``, ``probe`` and ``session_store`` default to the real
    implementations built from config; tests pass fakes instead.
    """
    app = Flask(__name__)
    app.config.from_object(config_class)

    if hasattr(config_class, 'init_app'):
        config_class.init_app(app)

    configure_logging(app)

    # Importing the views queues the Socket.IO event handlers, so it must
    # happen before socketio.init_app builds the server
    from pos_edge.ipc import ipc as ipc_blueprint

    db.init_app(app)
    socketio.init_app(app, cors_allowed_origins="*",
                      async_mode=app.config.get('SOCKETIO_ASYNC_MODE'))

    from pos_edge.remote_api import RemoteApiClient
    from pos_edge.connectivity import ConnectivityProbe
    from pos_edge.session_store import create_session_store
    from pos_edge.sync_manager import SyncContext

    if remote is None:
        remote = RemoteApiClient(app.config['REMOTE_API_BASE_URL'],
                                 timeout=app.config.get('REMOTE_API_TIMEOUT', 30))
    if probe is None:
        probe = ConnectivityProbe(app.config.get('CONNECTIVITY_HOST', 'google.com'),
                                  timeout=app.config.get('CONNECTIVITY_TIMEOUT', 3))
    if session_store is None:
        session_store = create_session_store(app.config.get('SESSION_FILE'))

    app.extensions['pos_edge'] = SyncContext(
        remote=remote,
        probe=probe,
        session_store=session_store,
        outbox_enabled=app.config.get('SYNC_OUTBOX_ENABLED', True),
        fanout_workers=app.config.get('REMOTE_FANOUT_WORKERS', 4),
        max_attempts=app.config.get('SYNC_MAX_ATTEMPTS', 5),
        timezone=app.config.get('TIMEZONE', 'UTC'),
    )

    app.register_blueprint(ipc_blueprint, url_prefix='/ipc')

    with app.app_context():
        from pos_edge import models  # noqa: F401
        db.create_all()
        app.logger.info(f"Local cache ready: {app.config.get('SQLALCHEMY_DATABASE_URI')}")

    return app


def configure_logging(app):
    """Configure application logging"""
    log_level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    formatter = logging.Formatter('%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]')

    # app.logger is the "pos_edge" logger, so module loggers
    # (pos_edge.sync_manager, pos_edge.handlers.*) propagate into these handlers
    if app.config.get('LOG_TO_FILE'):
        log_dir = app.config.get('LOG_DIR', 'logs')
        if not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = RotatingFileHandler(os.path.join(log_dir, 'pos_edge.log'),
                                           maxBytes=10240000, backupCount=10, encoding='utf-8')
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        app.logger.addHandler(file_handler)

    if app.config.get('LOG_TO_STDOUT'):
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s: %(message)s'))
        stream_handler.setLevel(log_level)
        app.logger.addHandler(stream_handler)

    app.logger.setLevel(log_level)
    app.logger.info('POS edge cache startup')
    app.logger.info(f'Log level set to: {app.config.get("LOG_LEVEL", "INFO")}')
    return app
