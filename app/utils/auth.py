import datetime
from functools import wraps

import jwt
from flask import current_app, g, request

from app.errors import AuthenticationError, AuthorizationError
from app.extensions import db
from app.models import User


def issue_token(user):
    payload = {
        "user_id": user.id,
        "email": user.email,
        "role": user.role,
        "exp": datetime.datetime.now(datetime.timezone.utc)
        + datetime.timedelta(hours=current_app.config.get("JWT_EXPIRES_HOURS", 12)),
    }
    return jwt.encode(payload, current_app.config["SECRET_KEY"], algorithm="HS256")


def _user_from_token():
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        raise AuthenticationError("Missing bearer token")

    token = header.split(" ", 1)[1].strip()
    try:
        payload = jwt.decode(
            token, current_app.config["SECRET_KEY"], algorithms=["HS256"]
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token")

    user = db.session.get(User, payload.get("user_id"))
    if not user:
        raise AuthenticationError("User no longer exists")
    return user


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        g.current_user = _user_from_token()
        return view(*args, **kwargs)

    return wrapper


def admin_required(view):
    """Role gate; runs before the view touches any state."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        user = _user_from_token()
        if not user.is_admin:
            raise AuthorizationError("Admin access required")
        g.current_user = user
        return view(*args, **kwargs)

    return wrapper


def customer_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        user = _user_from_token()
        if user.is_admin:
            raise AuthorizationError("Customer access required")
        g.current_user = user
        return view(*args, **kwargs)

    return wrapper


def current_user():
    return g.current_user
