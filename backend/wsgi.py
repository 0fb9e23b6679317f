try:
    from backend.gamehub.server import create_app
except ImportError:  # pragma: no cover
    from gamehub.server import create_app

app, socketio = create_app()
