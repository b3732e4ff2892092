import json
import logging
import os

from flask import Flask, jsonify
from flask_cors import CORS
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

import auth  # registers the login_manager loaders
from extensions import db, login_manager
from routes.budgets import budgets_bp
from routes.categories import categories_bp
from routes.households import households_bp
from routes.invitations import invitations_bp
from routes.receipts import receipts_bp
from routes.transactions import transactions_bp
from routes.trpc import trpc_bp
from routes.users import users_bp

APP_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_DIR = os.path.join(APP_DIR, "data")

logger = logging.getLogger(__name__)


def _database_url():
    url = os.environ.get("DATABASE_URL")
    if not url:
        os.makedirs(DATA_DIR, exist_ok=True)
        return "sqlite:///" + os.path.join(DATA_DIR, "household_budget.db")
    # some hosts still hand out the pre-1.4 scheme
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


def load_config():
    """Settings from the environment."""
    return {
        "SECRET_KEY": os.environ.get("FLASK_SECRET_KEY", "change-me-locally"),
        "SQLALCHEMY_DATABASE_URI": _database_url(),
        "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        "IDENTITY_PROVIDER_URL": os.environ.get("IDENTITY_PROVIDER_URL", ""),
        "IDENTITY_PROVIDER_ANON_KEY": os.environ.get("IDENTITY_PROVIDER_ANON_KEY", ""),
        "IDENTITY_PROVIDER_SERVICE_KEY": os.environ.get("IDENTITY_PROVIDER_SERVICE_KEY", ""),
        "FRONTEND_URL": os.environ.get("FRONTEND_URL", "http://localhost:3000"),
        "CORS_ORIGINS": os.environ.get("CORS_ORIGINS", "http://localhost:3000"),
        "INVITATION_TTL_DAYS": int(os.environ.get("INVITATION_TTL_DAYS", 7)),
        "LOG_LEVEL": os.environ.get("LOG_LEVEL", "INFO"),
    }


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.update(load_config())
    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    db.init_app(app)
    login_manager.init_app(app)

    origins = [o.strip() for o in app.config["CORS_ORIGINS"].split(",") if o.strip()]
    CORS(
        app,
        resources={r"/*": {"origins": origins}},
        supports_credentials=True,
        allow_headers=["Content-Type", "Authorization", "x-household-ids"],
    )

    app.register_blueprint(auth.auth_bp, url_prefix="/auth")
    app.register_blueprint(households_bp, url_prefix="/households")
    app.register_blueprint(categories_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(receipts_bp, url_prefix="/receipts")
    app.register_blueprint(budgets_bp, url_prefix="/budgets")
    app.register_blueprint(invitations_bp, url_prefix="/invitations")
    app.register_blueprint(users_bp, url_prefix="/users")
    app.register_blueprint(trpc_bp, url_prefix="/trpc")

    # ---------- errors ----------
    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        return jsonify({"error": "Validation failed", "details": json.loads(e.json(include_url=False))}), 400

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    with app.app_context():
        db.create_all()
    logger.info("Database ready at %s", app.config["SQLALCHEMY_DATABASE_URI"].split("@")[-1])

    return app


# ---------- run ----------
if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    create_app().run(host="0.0.0.0", port=port, debug=False)
