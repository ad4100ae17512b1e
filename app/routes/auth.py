from flask import Blueprint, request, jsonify, current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from ..extensions import db
from ..models import User
from ..utils.auth import issue_token, login_required, current_user
from ..api.serializers import serialize_user
import bcrypt

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.route("/register", methods=["POST"])
def register_user():
    try:
        data = request.get_json(force=True)
        name = (data.get("name") or "").strip()
        email = (data.get("email") or "").strip().lower()
        password = data.get("password")
        phone = data.get("phone")
        address = data.get("address")

        # Validate required fields
        if not email or not password or not name:
            return jsonify({
                "status": "error",
                "message": "Missing required fields (name, email, password)"
            }), 422

        if len(password) < 8:
            return jsonify({
                "status": "error",
                "message": "Password must be at least 8 characters",
                "errors": {"password": ["Password must be at least 8 characters"]}
            }), 422

        # Check if email already exists
        existing = db.session.scalar(select(User).where(User.email == email))
        if existing:
            return jsonify({
                "status": "error",
                "message": "Email already exists"
            }), 409

        hashed_pw = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())

        # Self-registration only ever creates customers; admins are seeded
        user = User(
            name=name,
            email=email,
            phone=phone,
            address=address,
            password_hash=hashed_pw,
            role="CUSTOMER"
        )
        db.session.add(user)
        db.session.commit()

        return jsonify({
            "status": "success",
            "message": "User registered successfully",
            "user": serialize_user(user),
            "token": issue_token(user)
        }), 201

    except IntegrityError as e:
        db.session.rollback()
        return jsonify({
            "status": "error",
            "message": "Email already exists",
            "details": str(e.orig)
        }), 409

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Registration failed: {e}")
        return jsonify({
            "status": "error",
            "message": "Internal server error",
            "details": str(e)
        }), 500


@auth_bp.route("/login", methods=["POST"])
def login_user():
    try:
        data = request.get_json(force=True)
        email = (data.get("email") or "").strip().lower()
        password = data.get("password")

        if not email or not password:
            return jsonify({
                "status": "error",
                "message": "Email and password required"
            }), 422

        user = db.session.scalar(select(User).where(User.email == email))
        if not user or not user.password_hash:
            return jsonify({
                "status": "error",
                "message": "Invalid credentials"
            }), 401

        stored_hash = user.password_hash
        if isinstance(stored_hash, str):
            stored_hash = stored_hash.encode("utf-8")

        if not bcrypt.checkpw(password.encode("utf-8"), stored_hash):
            return jsonify({
                "status": "error",
                "message": "Invalid credentials"
            }), 401

        return jsonify({
            "status": "success",
            "message": "Login successful",
            "token": issue_token(user),
            "user": serialize_user(user)
        }), 200

    except Exception as e:
        current_app.logger.error(f"Login failed: {e}")
        return jsonify({
            "status": "error",
            "message": "Internal server error",
            "details": str(e)
        }), 500


@auth_bp.route("/me", methods=["GET"])
@login_required
def get_me():
    """
    GET /api/auth/me
    Purpose: Profile of the user the bearer token belongs to.
    """
    return jsonify({"status": "success", "user": serialize_user(current_user())}), 200
