from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required
from app.extensions import db
from app.errors import Forbidden, InvalidState, NotFound
from app.models import User
from app.schemas import ParentLink, StudentStatus, parse
from app.services.activity import log_activity
from app.services.progress import course_progress
from app.utils.auth import capability_required, current_user, has_capability

bp = Blueprint("students", __name__)


def get_student_or_404(student_id):
    student = User.query.filter_by(id=student_id, role="student").first()
    if not student:
        raise NotFound("Student not found")
    return student


@bp.route("/", methods=["GET"])
@jwt_required()
@capability_required("view_students")
def get_all_students():
    students = User.query.filter_by(role="student").order_by(User.id).all()
    result = []

    for s in students:
        # Collect course titles for this student
        course_titles = [e.course.title for e in s.enrollments if e.course]

        result.append({
            "id": s.id,
            "name": s.full_name,
            "email": s.email,
            "is_active": s.is_active,
            "parent_id": s.parent_id,
            "date_joined": s.created_at.isoformat() if s.created_at else None,
            "courses_enrolled": len(course_titles),
            "course_titles": course_titles
        })

    return jsonify({
        "total_students": len(result),
        "students": result
    }), 200


@bp.route("/<int:student_id>/status", methods=["PATCH"])
@jwt_required()
@capability_required("manage_users")
def update_student_status(student_id):
    data = parse(StudentStatus, request.get_json(silent=True))
    student = get_student_or_404(student_id)

    if data.action == "suspend":
        if not student.is_active:
            raise InvalidState("Student already suspended")
        student.is_active = False
        message = f"Student {student.full_name} has been suspended."
    else:
        if student.is_active:
            raise InvalidState("Student already active")
        student.is_active = True
        message = f"Student {student.full_name} has been activated."

    db.session.commit()
    log_activity(current_user().id, f"student.{data.action}", student_id=student.id)
    return jsonify({"message": message, "is_active": student.is_active}), 200


@bp.route("/<int:student_id>/parent", methods=["PATCH"])
@jwt_required()
@capability_required("manage_users")
def link_parent(student_id):
    data = parse(ParentLink, request.get_json(silent=True))
    student = get_student_or_404(student_id)

    parent = User.query.filter_by(id=data.parent_id, role="parent").first()
    if not parent:
        raise NotFound("Parent not found")

    student.parent_id = parent.id
    db.session.commit()
    log_activity(current_user().id, "student.parent_linked", student_id=student.id, parent_id=parent.id)
    return jsonify({"message": "Parent linked", "student": student.to_dict()}), 200


@bp.route("/<int:student_id>/progress", methods=["GET"])
@jwt_required()
def get_student_progress(student_id):
    """Ledger of one student, readable by the student, a linked parent or staff."""
    user = current_user()
    student = get_student_or_404(student_id)

    allowed = (
        user.id == student.id
        or (has_capability(user, "view_child_progress") and student.parent_id == user.id)
        or has_capability(user, "view_students")
    )
    if not allowed:
        raise Forbidden("Unauthorized")

    return jsonify({
        "student_id": student.id,
        "name": student.full_name,
        "courses": [course_progress(student.id, e.course_id) for e in student.enrollments]
    }), 200
