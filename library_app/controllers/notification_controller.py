from flask import Blueprint, jsonify, current_app
from flask_jwt_extended import jwt_required

from library_app.models.user import UserRole
from library_app.tasks.overdue_check import run_overdue_check
from library_app.utils.decorators import role_required

notif_bp = Blueprint("notifications", __name__)


@notif_bp.post("/run-overdue-check")
@jwt_required()
@role_required(UserRole.LIBRARIAN)
def run_overdue():
    counts = run_overdue_check(current_app._get_current_object())
    return jsonify({"success": True, "data": counts})
