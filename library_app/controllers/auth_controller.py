from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity, get_jwt

from library_app.repositories.user_repo import UserRepo
from library_app.services.auth_service import AuthService

auth_bp = Blueprint("auth", __name__)


@auth_bp.post("/register", endpoint="auth_register")
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip()
    name = (data.get("name") or "").strip()
    password = data.get("password") or ""

    if not email or not name or not password:
        return jsonify({"success": False, "error": "invalid_request", "message": "email, name and password are required"}), 400

    try:
        token, user = AuthService.register(email=email, name=name, password=password)
    except ValueError as e:
        return jsonify({"success": False, "error": "invalid_request", "message": str(e)}), 400

    current_app.logger.info(f"[auth] registered user={user.id}")
    return jsonify({
        "success": True,
        "access_token": token,
        "user": {"id": user.id, "email": user.email, "name": user.name, "role": user.role}
    }), 201


@auth_bp.post("/login", endpoint="auth_login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip()
    password = data.get("password") or ""

    if not email or not password:
        return jsonify({"success": False, "error": "invalid_request", "message": "email and password are required"}), 400

    try:
        token, user = AuthService.login(email, password)
        return jsonify({
            "success": True,
            "access_token": token,
            "user": {"id": user.id, "email": user.email, "name": user.name, "role": user.role}
        })
    except ValueError as e:
        return jsonify({"success": False, "error": "unauthorized", "message": str(e)}), 401


@auth_bp.get("/me", endpoint="auth_me")
@jwt_required()
def me():
    user_id = int(get_jwt_identity())
    claims = get_jwt()
    user = UserRepo.get_by_id(user_id)
    if not user:
        return jsonify({"success": False, "error": "not_found", "message": "User not found"}), 404

    return jsonify({
        "success": True,
        "user": {
            "id": user.id,
            "email": user.email,
            "name": user.name,
            "role": claims.get("role", user.role)
        }
    })
