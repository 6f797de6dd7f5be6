from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity
from app.extensions import db
from app.errors import Forbidden, NotFound
from app.models import Course, Enrollment, User
from app.schemas import CourseCreate, CourseUpdate, parse
from app.services.activity import log_activity
from app.utils.auth import capability_required, current_user, has_capability
import re

def slugify(text):
    text = re.sub(r'[^a-zA-Z0-9]+', '-', text)
    return text.strip('-').lower()


def get_course_or_404(course_id):
    course = db.session.get(Course, course_id)
    if not course:
        raise NotFound("Course not found")
    return course


def ensure_can_edit(course, user):
    """Catalog managers edit anything; instructors only their own courses."""
    if has_capability(user, "manage_catalog"):
        return
    if has_capability(user, "manage_own_catalog") and course.instructor_id == user.id:
        return
    raise Forbidden("You do not own this course")


def can_view_unpublished(course, user_id):
    if user_id is None:
        return False
    user = db.session.get(User, int(user_id))
    if not user:
        return False
    return course.instructor_id == user.id or has_capability(user, "manage_catalog")


bp = Blueprint("courses", __name__)

# List all published courses
@bp.route("/", methods=["GET"])
def list_courses():
    courses = Course.query.filter_by(is_published=True).order_by(Course.created_at.desc()).all()
    return jsonify([c.to_dict() for c in courses]), 200


@bp.route("/manage", methods=["GET"])
@jwt_required()
@capability_required("manage_catalog", "manage_own_catalog")
def list_managed_courses():
    user = current_user()
    query = Course.query
    if not has_capability(user, "manage_catalog"):
        query = query.filter_by(instructor_id=user.id)
    return jsonify([c.to_dict() for c in query.order_by(Course.id).all()]), 200


@bp.route("/<int:course_id>", methods=["GET"])
@jwt_required(optional=True)
def get_course(course_id):
    course = get_course_or_404(course_id)
    user_id = get_jwt_identity()

    if not course.is_published and not can_view_unpublished(course, user_id):
        raise NotFound("Course not found")

    data = course.to_dict(include_lessons=True)
    data["is_enrolled"] = False
    data["enrollment_status"] = None
    if user_id:
        enrollment = Enrollment.query.filter_by(user_id=int(user_id), course_id=course.id).first()
        if enrollment:
            data["is_enrolled"] = enrollment.status in ("active", "completed")
            data["enrollment_status"] = enrollment.status

    return jsonify(data), 200


@bp.route("/", methods=["POST"])
@jwt_required()
@capability_required("manage_catalog", "manage_own_catalog")
def create_course():
    user = current_user()
    data = parse(CourseCreate, request.get_json(silent=True))

    instructor_id = user.id
    if data.instructor_id and data.instructor_id != user.id:
        if not has_capability(user, "manage_catalog"):
            raise Forbidden("Only catalog managers can assign another instructor")
        instructor = db.session.get(User, data.instructor_id)
        if not instructor or instructor.role != "instructor":
            raise NotFound("Instructor not found")
        instructor_id = instructor.id

    course = Course(
        title=data.title,
        slug=slugify(data.title),
        description=data.description,
        price=data.price,
        instructor_id=instructor_id,
        is_published=False
    )
    db.session.add(course)
    db.session.commit()

    log_activity(user.id, "course.created", course_id=course.id)
    return jsonify({"message": "Course created", "course": course.to_dict()}), 201


@bp.route("/<int:course_id>", methods=["PATCH"])
@jwt_required()
@capability_required("manage_catalog", "manage_own_catalog")
def update_course(course_id):
    user = current_user()
    course = get_course_or_404(course_id)
    ensure_can_edit(course, user)

    data = parse(CourseUpdate, request.get_json(silent=True))
    changes = data.model_dump(exclude_none=True)
    if "title" in changes:
        course.slug = slugify(changes["title"])
    for field, value in changes.items():
        setattr(course, field, value)
    db.session.commit()

    log_activity(user.id, "course.updated", course_id=course.id, fields=sorted(changes))
    return jsonify({"message": "Course updated", "course": course.to_dict()}), 200


@bp.route("/<int:course_id>/publish", methods=["PATCH"])
@jwt_required()
@capability_required("manage_catalog", "manage_own_catalog")
def toggle_publish(course_id):
    user = current_user()
    course = get_course_or_404(course_id)
    ensure_can_edit(course, user)

    # Toggle publish state
    course.is_published = not course.is_published
    db.session.commit()

    log_activity(user.id, "course.published" if course.is_published else "course.unpublished", course_id=course.id)
    return jsonify({
        "message": "Course status updated",
        "id": course.id,
        "is_published": course.is_published
    }), 200


@bp.route("/<int:course_id>/students", methods=["GET"])
@jwt_required()
@capability_required("view_course_students")
def get_students_by_course(course_id):
    user = current_user()
    course = get_course_or_404(course_id)
    if not has_capability(user, "manage_catalog") and course.instructor_id != user.id:
        raise Forbidden("You do not own this course")

    students = [{
        "student_id": e.student.id,
        "student_name": e.student.full_name,
        "email": e.student.email,
        "status": e.status,
        "progress": e.progress,
        "enrolled_at": e.enrolled_at.isoformat() if e.enrolled_at else None
    } for e in course.enrollments]

    return jsonify({
        "course_id": course.id,
        "total_students": len(students),
        "students": students
    }), 200
