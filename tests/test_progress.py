import pytest

from app.errors import InvalidState, NotFound
from app.models import Enrollment, Lesson, LessonCompletion, Notification
from app.services.certificates import issue_certificate
from app.services.enrollment import create_enrollment
from app.services.progress import complete_lesson, completion_percentage, course_progress


def test_completion_percentage() -> None:
    assert completion_percentage(0, 4) == 0.0
    assert completion_percentage(3, 4) == 75.0
    assert completion_percentage(1, 3) == 33.33
    assert completion_percentage(5, 4) == 100.0
    assert completion_percentage(0, 0) == 0.0


def test_completing_lessons_advances_percentage(make_user, make_course, active_enrollment) -> None:
    user = make_user()
    course = make_course(lessons=4)
    active_enrollment(user, course)

    seen = []
    for lesson in course.lessons:
        enrollment, newly = complete_lesson(user.id, course.id, lesson.id)
        assert newly is True
        seen.append(enrollment.progress)

    assert seen == [25.0, 50.0, 75.0, 100.0]
    assert enrollment.status == "completed"
    assert enrollment.completed_at is not None


def test_completing_same_lesson_twice_is_noop(make_user, make_course, active_enrollment) -> None:
    user = make_user()
    course = make_course(lessons=4)
    active_enrollment(user, course)
    lesson_id = course.lessons[0].id

    complete_lesson(user.id, course.id, lesson_id)
    enrollment, newly = complete_lesson(user.id, course.id, lesson_id)

    assert newly is False
    assert enrollment.progress == 25.0
    assert LessonCompletion.query.count() == 1


def test_lesson_from_other_course_is_rejected(make_user, make_course, active_enrollment) -> None:
    user = make_user()
    course = make_course(lessons=2)
    other = make_course(lessons=2, title="Other Course")
    active_enrollment(user, course)

    with pytest.raises(NotFound):
        complete_lesson(user.id, course.id, other.lessons[0].id)
    with pytest.raises(NotFound):
        complete_lesson(user.id, course.id, 9999)
    with pytest.raises(NotFound):
        complete_lesson(user.id, 9999, course.lessons[0].id)


def test_pending_or_missing_enrollment_cannot_progress(make_user, make_course) -> None:
    user = make_user()
    stranger = make_user()
    course = make_course(lessons=2)
    create_enrollment(user.id, course.id)

    with pytest.raises(InvalidState):
        complete_lesson(user.id, course.id, course.lessons[0].id)
    with pytest.raises(NotFound):
        complete_lesson(stranger.id, course.id, course.lessons[0].id)


def test_hours_accumulate_from_lesson_duration(make_user, make_course, active_enrollment) -> None:
    user = make_user()
    course = make_course(lessons=2, durations=[1800.0, 5400.0])
    active_enrollment(user, course)

    complete_lesson(user.id, course.id, course.lessons[0].id)
    enrollment, _ = complete_lesson(user.id, course.id, course.lessons[1].id)

    assert enrollment.hours_spent == pytest.approx(2.0)


def test_percentage_never_decreases_when_lessons_are_added(db, make_user, make_course, active_enrollment) -> None:
    user = make_user()
    course = make_course(lessons=2)
    active_enrollment(user, course)
    complete_lesson(user.id, course.id, course.lessons[0].id)

    # catalog grows from 2 to 4 lessons; 2/4 would be lower than the stored 50%
    course.lessons.append(Lesson(title="Lesson 3", slug="lesson-3", position=3, duration=60.0))
    course.lessons.append(Lesson(title="Lesson 4", slug="lesson-4", position=4, duration=60.0))
    db.session.commit()

    enrollment, _ = complete_lesson(user.id, course.id, course.lessons[1].id)
    assert enrollment.progress == 50.0

    enrollment, _ = complete_lesson(user.id, course.id, course.lessons[2].id)
    assert enrollment.progress == 75.0


def test_course_completion_notifies_certificate(make_user, make_course, active_enrollment) -> None:
    user = make_user()
    course = make_course(lessons=1)
    active_enrollment(user, course)

    complete_lesson(user.id, course.id, course.lessons[0].id)
    complete_lesson(user.id, course.id, course.lessons[0].id)

    assert Notification.query.filter_by(user_id=user.id, title="Certificate available").count() == 1


def test_course_progress_summary(make_user, make_course, active_enrollment) -> None:
    user = make_user()
    course = make_course(lessons=4)
    active_enrollment(user, course)
    complete_lesson(user.id, course.id, course.lessons[2].id)
    complete_lesson(user.id, course.id, course.lessons[0].id)

    summary = course_progress(user.id, course.id)

    assert summary["completed_lessons"] == 2
    assert summary["completed_lesson_ids"] == [course.lessons[0].id, course.lessons[2].id]
    assert summary["total_lessons"] == 4
    assert summary["progress"] == 50.0
    assert summary["status"] == "active"
    assert summary["certificate_available"] is False


def test_completed_enrollment_stays_completed(make_user, make_course, active_enrollment) -> None:
    user = make_user()
    course = make_course(lessons=1)
    active_enrollment(user, course)
    complete_lesson(user.id, course.id, course.lessons[0].id)

    enrollment = Enrollment.query.filter_by(user_id=user.id, course_id=course.id).one()
    assert enrollment.status == "completed"
    assert enrollment.progress == 100.0


def test_stale_entry_heals_on_repeat_completion(db, make_user, make_course, active_enrollment) -> None:
    user = make_user()
    course = make_course(lessons=4)
    enrollment = active_enrollment(user, course)
    for lesson in course.lessons[:3]:
        complete_lesson(user.id, course.id, lesson.id)

    # completion row committed but the request died before the recount
    db.session.add(LessonCompletion(enrollment_id=enrollment.id, lesson_id=course.lessons[3].id))
    db.session.commit()
    assert db.session.get(Enrollment, enrollment.id).progress == 75.0

    enrollment, newly = complete_lesson(user.id, course.id, course.lessons[3].id)

    assert newly is False
    assert (enrollment.status, enrollment.progress) == ("completed", 100.0)
    assert issue_certificate(user.id, course.id).course_title == course.title
    assert Notification.query.filter_by(user_id=user.id, title="Certificate available").count() == 1
