import logging

import click
from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config
from .errors import register_error_handlers
from .auth_service import AuthService
from models import storage
from models.credential_store import CredentialStore
from utils.identity import GoogleIdentityVerifier
from utils.security import Argon2Hasher
from utils.tokens import TokenIssuer


# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "WashCo Auth API",
        "version": "1.0.0",
        "description": "Registration, password and Google sign-in, and session tokens for WashCo.",
    },
    "basePath": "/",
    "schemes": ["http"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def build_auth_service(config, identity_verifier=None) -> AuthService:
    """Wire the auth core from a config mapping."""
    issuer = TokenIssuer(
        secret=config["JWT_SECRET"],
        access_ttl=config["ACCESS_TOKEN_EXPIRES"],
        refresh_ttl=config["REFRESH_TOKEN_EXPIRES"],
        algorithm=config["JWT_ALGORITHM"],
        issuer=config["JWT_ISSUER"],
    )
    hasher = Argon2Hasher(
        time_cost=config["ARGON2_TIME_COST"],
        memory_cost=config["ARGON2_MEMORY_COST"],
        parallelism=config["ARGON2_PARALLELISM"],
    )
    if identity_verifier is None and config.get("GOOGLE_CLIENT_ID"):
        identity_verifier = GoogleIdentityVerifier()
    return AuthService(
        store=CredentialStore(storage),
        issuer=issuer,
        hasher=hasher,
        identity_verifier=identity_verifier,
        google_client_id=config.get("GOOGLE_CLIENT_ID"),
        self_register_roles=config["SELF_REGISTER_ROLES"],
    )


def create_app(config_name: str | None = None, overrides: dict | None = None, identity_verifier=None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    `overrides` is applied on top of the selected config class, and
    `identity_verifier` replaces the Google verifier (used by tests).
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(level=logging.DEBUG if app.debug else logging.INFO)

    # CORS; credentials (the refresh cookie) only with an explicit origin list
    origins = app.config.get("CORS_ORIGINS", "*")
    if origins != "*":
        origins = [o.strip() for o in origins.split(",") if o.strip()]
    CORS(app, resources={r"/*": {"origins": origins}}, supports_credentials=origins != "*")

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    register_error_handlers(app)

    storage.reload(app.config["DATABASE_URL"])
    service = build_auth_service(app.config, identity_verifier)
    app.extensions["auth_service"] = service
    app.extensions["token_issuer"] = service.issuer

    from .health import bp as health_bp
    from .auth import bp as auth_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        storage.close()

    @app.cli.command("cleanup-tokens")
    def cleanup_tokens():
        """Delete refresh tokens that are expired or revoked."""
        removed = app.extensions["auth_service"].cleanup_tokens()
        click.echo(f"Removed {removed} refresh tokens")

    @app.route("/")
    def root():
        return {
            "message": "Welcome to the WashCo Auth API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
