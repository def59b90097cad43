import os
from dotenv import load_dotenv

from config import config
from pos_edge import create_app, socketio
from pos_edge.sync_manager import start_sync_worker, stop_sync_worker


def main():
    """Start the POS edge cache for one workstation.

    The desktop shell talks to it over Socket.IO (or POST /ipc/<operation>),
    and pending mutations are replayed to the remote API in the background.
    """
    # Load environment from .env if present (REMOTE_API_BASE_URL, SESSION_FILE, etc.)
    load_dotenv()

    config_name = os.getenv('POS_EDGE_ENV', 'default')
    app = create_app(config[config_name])

    host = os.getenv('POS_EDGE_HOST', '127.0.0.1')
    port = int(os.getenv('POS_EDGE_PORT', '5000'))
    debug = os.getenv('POS_EDGE_DEBUG', '0') in ['1', 'true', 'True']

    worker = start_sync_worker(app)

    print("\n================ POS EDGE CACHE ================")
    print(f"Config: {config_name}")
    print(f"SQLite DB: {app.config.get('SQLALCHEMY_DATABASE_URI')}")
    print(f"Remote API: {app.config.get('REMOTE_API_BASE_URL')}")
    print(f"Outbox worker: {'running' if worker else 'disabled'}")
    print(f"Listening on: http://{host}:{port}")
    print("================================================\n")

    try:
        socketio.run(app, host=host, port=port, debug=debug,
                     use_reloader=False, allow_unsafe_werkzeug=True)
    finally:
        stop_sync_worker()


if __name__ == '__main__':
    main()
