"""
Sign in with Apple Login Provider - Flask Application

This module wires the AppleSignInExtension into a small Flask application.
It handles login, the form_post callback, logout and a protected route.
"""

import os

from dotenv import load_dotenv
from flask import Flask, abort, jsonify, redirect, session, url_for

from apple_signin import AppleProvider, AppleSignInExtension, NormalizedIdentity


def create_app(provider: AppleProvider | None = None) -> Flask:
    """
    Create and configure the Flask application with Sign in with Apple.

    Args:
        provider: Preconfigured provider. When omitted, one is built from the
            APPLE_* environment variables.

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)
    load_dotenv()

    FLASK_SECRET_KEY = os.environ.get("FLASK_SECRET_KEY")
    if not FLASK_SECRET_KEY:
        raise ValueError("Missing FLASK_SECRET_KEY environment variable")
    app.secret_key = FLASK_SECRET_KEY

    # Apple posts the callback cross-site: the session cookie must be
    # SameSite=None (and therefore Secure) to come back with it.
    app.config.update(
        SESSION_COOKIE_SECURE=True,
        SESSION_COOKIE_SAMESITE="None",
        SESSION_COOKIE_HTTPONLY=True,
    )
    app.config.update(
        {key: value for key, value in os.environ.items() if key.startswith("APPLE_")}
    )

    apple = AppleSignInExtension()
    apple.init_app(app, provider=provider)

    # ==================== Routes ====================

    @app.get("/")
    def home():
        return jsonify({"user": session.get("user")})

    @app.get("/login")
    def login():
        """Redirect to Apple's authorization page."""
        return apple.authorize_redirect()

    @app.post("/login/apple/callback")
    @apple.callback
    def login_callback(identity: NormalizedIdentity):
        """Store the signed-in user in the session and go home."""
        session["user"] = {
            "id": identity.id,
            "name": identity.name,
            "email": identity.email,
        }
        return redirect(url_for("home"))

    @app.get("/me")
    def me():
        user = session.get("user")
        if not user:
            abort(401, description="Not signed in")
        return jsonify(user)

    @app.get("/logout")
    def logout():
        session.pop("user", None)
        return redirect(url_for("home"))

    # ==================== Error Handlers ====================

    @app.errorhandler(401)
    @app.errorhandler(403)
    def auth_failed(error):
        return jsonify({"error": error.description}), error.code

    return app
