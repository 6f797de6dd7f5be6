from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required
from sqlalchemy import func
from app.extensions import db
from app.models import ActivityLog, Course, Enrollment, Payment, User
from app.schemas import RegisterRequest, parse
from app.services.activity import log_activity
from app.utils.auth import capability_required, current_user

bp = Blueprint("admin", __name__)

@bp.route("/overview", methods=["GET"])
@jwt_required()
@capability_required("view_students")
def analytics_overview():
    """Return analytics summary for admin dashboard"""

    # === Basic Stats ===
    total_students = User.query.filter_by(role="student").count()
    total_courses = Course.query.count()

    total_revenue = (
        db.session.query(func.sum(Payment.amount))
        .filter(Payment.status == "successful")
        .scalar()
    ) or 0

    # === Enrollments by status ===
    by_status = dict(
        db.session.query(Enrollment.status, func.count(Enrollment.id))
        .group_by(Enrollment.status)
        .all()
    )

    # === Enrollment Count by Course ===
    enrollments = (
        db.session.query(
            Course.title.label("course"),
            func.count(Enrollment.id).label("count")
        )
        .join(Enrollment, Enrollment.course_id == Course.id)
        .group_by(Course.id, Course.title)
        .all()
    )

    return jsonify({
        "stats": {
            "students": total_students,
            "courses": total_courses,
            "revenue": float(total_revenue),
        },
        "enrollmentsByStatus": {
            status: int(by_status.get(status, 0)) for status in ("pending", "active", "completed")
        },
        "enrollmentsByCourse": [{"course": c, "count": int(cnt)} for c, cnt in enrollments],
    }), 200


@bp.route("/activity", methods=["GET"])
@jwt_required()
@capability_required("view_activity")
def recent_activity():
    limit = max(1, min(request.args.get("limit", 50, type=int), 500))
    query = ActivityLog.query
    if request.args.get("user_id", type=int):
        query = query.filter_by(user_id=request.args.get("user_id", type=int))
    if request.args.get("action"):
        query = query.filter_by(action=request.args["action"])

    entries = query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()
    return jsonify([e.to_dict() for e in entries]), 200


@bp.route("/users", methods=["POST"])
@jwt_required()
@capability_required("manage_users")
def create_user():
    """Create an account of any role, including admin and sub-admin."""
    data = parse(RegisterRequest, request.get_json(silent=True))
    email = data.email.strip().lower()

    if User.query.filter_by(email=email).first():
        return jsonify({"error": "Email already exists."}), 409

    user = User(full_name=data.full_name.strip().title(), email=email, role=data.role)
    user.set_password(data.password)
    db.session.add(user)
    db.session.commit()

    log_activity(current_user().id, "user.created", user_id=user.id, role=user.role)
    return jsonify({"message": "User created", "user": user.to_dict()}), 201
