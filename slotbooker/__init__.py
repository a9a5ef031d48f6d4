from flask import Flask

from . import notifications, photos, sqlite_db, sweeper
from .admin import auth as admin_auth
from .errors import register_error_handlers
from .extensions import csrf, limiter
from .settings import load_settings


def create_app(test_config=None):
    app = Flask(__name__, instance_relative_config=True, static_url_path="")

    app.config.from_mapping(load_settings())
    app.config.from_pyfile("config.py", silent=True)
    if test_config is not None:
        app.config.from_mapping(test_config)

    sqlite_db.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)
    register_error_handlers(app)

    photos.init_app(app)
    admin_auth.init_app(app)
    notifications.init_app(app)
    sweeper.init_app(app)

    from .admin import admin_bp
    from .appointments import appointments_bp
    from .media import media_bp

    # JSON API for the public booking pages; no session, no CSRF token.
    csrf.exempt(appointments_bp)

    app.register_blueprint(appointments_bp)
    app.register_blueprint(media_bp)
    app.register_blueprint(admin_bp)

    @app.get("/")
    def index():
        return app.send_static_file("index.html")

    return app
