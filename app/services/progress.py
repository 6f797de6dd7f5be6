from datetime import datetime

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from app.extensions import db
from app.errors import InvalidState, NotFound
from app.models import Course, Enrollment, Lesson, LessonCompletion
from app.services.activity import log_activity, notify


def completion_percentage(completed, total):
    if total <= 0:
        return 0.0
    return min(round((completed / total) * 100, 2), 100.0)


def _completed_count(enrollment_id, course_id):
    # only lessons still in the course count toward the percentage
    return (
        db.session.query(func.count(LessonCompletion.id))
        .join(Lesson, Lesson.id == LessonCompletion.lesson_id)
        .filter(LessonCompletion.enrollment_id == enrollment_id, Lesson.course_id == course_id)
        .scalar()
    ) or 0


def _locked_enrollment(user_id, course_id):
    # row lock serializes completions against one ledger entry
    return (
        Enrollment.query
        .filter_by(user_id=user_id, course_id=course_id)
        .with_for_update()
        .populate_existing()
        .first()
    )


def _sync_progress(enrollment, course):
    """Recount completions, raise the stored percentage and flip to completed at 100.

    Returns True when this call moved the entry to ``completed``.
    """
    percentage = completion_percentage(_completed_count(enrollment.id, course.id), course.total_lessons)
    Enrollment.query.filter(
        Enrollment.id == enrollment.id, Enrollment.progress < percentage
    ).update({"progress": percentage}, synchronize_session=False)

    if percentage < 100:
        return False
    return bool(
        Enrollment.query
        .filter_by(id=enrollment.id, status="active")
        .update({"status": "completed", "completed_at": datetime.utcnow()}, synchronize_session=False)
    )


def complete_lesson(user_id, course_id, lesson_id):
    """Mark a lesson complete for the user's ledger entry in ``course_id``.

    Returns ``(enrollment, newly_completed)``. Completing a lesson twice does
    not add a completion but still recounts, so an entry left behind by an
    interrupted request catches up. Reaching 100% moves the entry to
    ``completed`` and announces the certificate.
    """
    course = db.session.get(Course, course_id)
    if not course:
        raise NotFound("Course not found")

    lesson = db.session.get(Lesson, lesson_id)
    if not lesson or lesson.course_id != course.id:
        raise NotFound("Lesson not found in this course")

    enrollment = _locked_enrollment(user_id, course_id)
    if not enrollment:
        raise NotFound("Enrollment not found")
    if enrollment.status == "pending":
        db.session.rollback()
        raise InvalidState("Enrollment is not active", status=enrollment.status)

    newly_completed = False
    already = LessonCompletion.query.filter_by(enrollment_id=enrollment.id, lesson_id=lesson.id).first()
    if not already:
        try:
            db.session.add(LessonCompletion(enrollment_id=enrollment.id, lesson_id=lesson.id))
            db.session.flush()
            newly_completed = True
        except IntegrityError:
            # a concurrent request recorded it first
            db.session.rollback()
            enrollment = _locked_enrollment(user_id, course_id)

    if newly_completed:
        hours = (lesson.duration or 0.0) / 3600.0
        Enrollment.query.filter_by(id=enrollment.id).update(
            {"hours_spent": Enrollment.hours_spent + hours}, synchronize_session=False
        )

    just_completed = _sync_progress(enrollment, course)

    db.session.commit()
    db.session.refresh(enrollment)

    if newly_completed:
        current_app.logger.info(
            f"User {user_id} completed lesson {lesson.id} in course {course.id} ({enrollment.progress}%)"
        )
        log_activity(user_id, "lesson.completed", course_id=course.id, lesson_id=lesson.id,
                     progress=enrollment.progress)

    if just_completed:
        current_app.logger.info(f"Enrollment {enrollment.id} completed; certificate available")
        log_activity(user_id, "course.completed", course_id=course.id, enrollment_id=enrollment.id)
        notify(
            enrollment.student,
            "Certificate available",
            f"Congratulations on completing {course.title}! Your certificate is ready to download.",
            email=True,
        )

    return enrollment, newly_completed


def course_progress(user_id, course_id):
    course = db.session.get(Course, course_id)
    if not course:
        raise NotFound("Course not found")

    enrollment = Enrollment.query.filter_by(user_id=user_id, course_id=course_id).first()
    if not enrollment:
        raise NotFound("Enrollment not found")

    completed_ids = [
        lesson_id for (lesson_id,) in (
            db.session.query(LessonCompletion.lesson_id)
            .join(Lesson, Lesson.id == LessonCompletion.lesson_id)
            .filter(LessonCompletion.enrollment_id == enrollment.id, Lesson.course_id == course.id)
            .order_by(Lesson.position)
            .all()
        )
    ]

    return {
        "course_id": course.id,
        "course_title": course.title,
        "enrollment_id": enrollment.id,
        "status": enrollment.status,
        "progress": enrollment.progress,
        "completed_lessons": len(completed_ids),
        "completed_lesson_ids": completed_ids,
        "total_lessons": course.total_lessons,
        "hours_spent": round(enrollment.hours_spent or 0.0, 4),
        "certificate_available": enrollment.status == "completed",
    }
