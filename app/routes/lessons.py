from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy import func
from app.extensions import db
from app.errors import Forbidden, NotFound
from app.models import Enrollment, Lesson, Quiz
from app.routes.courses import ensure_can_edit, get_course_or_404, slugify
from app.schemas import LessonCreate, QuizAnswer, QuizCreate, parse
from app.services.activity import log_activity
from app.services.progress import complete_lesson
from app.utils.auth import capability_required, current_user, has_capability

bp = Blueprint("lessons", __name__)


def get_lesson_or_404(course, lesson_id):
    lesson = db.session.get(Lesson, lesson_id)
    if not lesson or lesson.course_id != course.id:
        raise NotFound("Lesson not found in this course")
    return lesson


def has_course_access(course, user):
    """Owners and catalog managers always; learners once their entry is active."""
    if course.instructor_id == user.id or has_capability(user, "manage_catalog"):
        return True
    enrollment = Enrollment.query.filter_by(user_id=user.id, course_id=course.id).first()
    return bool(enrollment and enrollment.status in ("active", "completed"))


# List lessons for a course
@bp.route("/<int:course_id>/lessons", methods=["GET"])
@jwt_required()
def list_lessons(course_id):
    course = get_course_or_404(course_id)
    user = current_user()
    if not has_course_access(course, user):
        raise Forbidden("You are not enrolled in this course. Enroll to gain full access.")
    return jsonify([lesson.to_dict() for lesson in course.lessons]), 200


@bp.route("/<int:course_id>/lessons", methods=["POST"])
@jwt_required()
@capability_required("manage_catalog", "manage_own_catalog")
def create_lesson(course_id):
    user = current_user()
    course = get_course_or_404(course_id)
    ensure_can_edit(course, user)
    data = parse(LessonCreate, request.get_json(silent=True))

    # new lessons go to the end of the course
    last_position = db.session.query(func.max(Lesson.position)).filter(Lesson.course_id == course.id).scalar()
    lesson = Lesson(
        course_id=course.id,
        title=data.title,
        slug=slugify(data.title),
        position=(last_position or 0) + 1,
        notes=data.notes,
        video_url=data.video_url,
        duration=data.duration
    )
    db.session.add(lesson)
    db.session.commit()

    log_activity(user.id, "lesson.created", course_id=course.id, lesson_id=lesson.id)
    return jsonify({"message": "Lesson created", "lesson": lesson.to_dict()}), 201


@bp.route("/<int:course_id>/lessons/<int:lesson_id>/complete", methods=["POST"])
@jwt_required()
@capability_required("learn")
def mark_complete(course_id, lesson_id):
    user = current_user()
    enrollment, newly_completed = complete_lesson(user.id, course_id, lesson_id)

    return jsonify({
        "message": "Lesson marked as complete" if newly_completed else "Lesson already marked as complete",
        "lesson_id": lesson_id,
        "status": enrollment.status,
        "progress": enrollment.progress,
        "certificate_available": enrollment.status == "completed"
    }), 200


@bp.route("/<int:course_id>/lessons/<int:lesson_id>/quizzes", methods=["GET"])
@jwt_required()
def list_quizzes(course_id, lesson_id):
    course = get_course_or_404(course_id)
    lesson = get_lesson_or_404(course, lesson_id)
    user = current_user()
    if not has_course_access(course, user):
        raise Forbidden("You are not enrolled in this course. Enroll to gain full access.")

    show_answers = course.instructor_id == user.id or has_capability(user, "manage_catalog")
    return jsonify([quiz.to_dict(include_answer=show_answers) for quiz in lesson.quizzes]), 200


@bp.route("/<int:course_id>/lessons/<int:lesson_id>/quizzes", methods=["POST"])
@jwt_required()
@capability_required("manage_catalog", "manage_own_catalog")
def create_quiz(course_id, lesson_id):
    user = current_user()
    course = get_course_or_404(course_id)
    ensure_can_edit(course, user)
    lesson = get_lesson_or_404(course, lesson_id)
    data = parse(QuizCreate, request.get_json(silent=True))

    quiz = Quiz(
        lesson_id=lesson.id,
        question=data.question,
        options=data.options,
        correct_answer=data.correct_answer
    )
    db.session.add(quiz)
    db.session.commit()

    return jsonify({"message": "Quiz created", "quiz": quiz.to_dict(include_answer=True)}), 201


@bp.route("/<int:course_id>/lessons/<int:lesson_id>/quizzes/<int:quiz_id>/answer", methods=["POST"])
@jwt_required()
@capability_required("learn")
def answer_quiz(course_id, lesson_id, quiz_id):
    user = current_user()
    course = get_course_or_404(course_id)
    lesson = get_lesson_or_404(course, lesson_id)
    if not has_course_access(course, user):
        raise Forbidden("You are not enrolled in this course. Enroll to gain full access.")

    quiz = db.session.get(Quiz, quiz_id)
    if not quiz or quiz.lesson_id != lesson.id:
        raise NotFound("Quiz not found")

    data = parse(QuizAnswer, request.get_json(silent=True))
    return jsonify({
        "quiz_id": quiz.id,
        "correct": data.answer == quiz.correct_answer
    }), 200
