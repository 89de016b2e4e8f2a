import os
import logging

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

from extensions import db, login_manager, migrate
from errors import register_error_handlers
from ledger import DEFAULT_TIMEZONE

logger = logging.getLogger(__name__)


def database_url_from_env():
    database_url = os.environ.get("DATABASE_URL", "sqlite:///hotel.db")
    # Heroku/Render style postgres:// URLs (SQLAlchemy wants postgresql://)
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)
    return database_url


def load_config(app, test_config=None):
    secret = os.environ.get("SESSION_SECRET", "hotel_ledger_secret_key")
    app.config.from_mapping(
        SECRET_KEY=secret,
        JWT_SECRET_KEY=os.environ.get("JWT_SECRET_KEY", secret),
        JWT_EXPIRES_DAYS=int(os.environ.get("JWT_EXPIRES_DAYS", 30)),
        HOTEL_TIMEZONE=os.environ.get("HOTEL_TIMEZONE", DEFAULT_TIMEZONE),
        CORS_ORIGINS=os.environ.get("CORS_ORIGINS", "*"),
        SQLALCHEMY_DATABASE_URI=database_url_from_env(),
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
    )
    if test_config:
        app.config.update(test_config)

    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("postgresql"):
        app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {
            "pool_recycle": 300,
            "pool_pre_ping": True,
        })


def create_app(test_config=None):
    """Build the API application; test_config overrides environment settings"""
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper())

    app = Flask(__name__)
    load_config(app, test_config)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)

    origins = [origin.strip() for origin in app.config["CORS_ORIGINS"].split(",") if origin.strip()]
    CORS(app, resources={r"/api/*": {"origins": origins or "*"}}, supports_credentials=True)

    # Initialize the extensions
    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)

    # Register the token loader and error mapping before any request arrives
    import auth  # noqa: F401
    register_error_handlers(app)

    from api_routes import api_bp
    app.register_blueprint(api_bp)

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint"""
        return jsonify({'success': True, 'message': 'Hotel ledger API is running', 'status': 'healthy'}), 200

    with app.app_context():
        import models  # noqa: F401
        db.create_all()

    logger.info("[APP] Started with database %s", app.config["SQLALCHEMY_DATABASE_URI"].split("@")[-1])
    return app


if __name__ == "__main__":
    app = create_app()
    port = int(os.environ.get("PORT", 5000))
    app.run(host="0.0.0.0", port=port, debug=False)
