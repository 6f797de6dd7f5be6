import pytest
from sqlalchemy.exc import IntegrityError

from app.errors import InvalidState, NotFound, PaymentUnverified
from app.models import ActivityLog, Enrollment, Notification, Payment
from app.services import enrollment as enrollment_service
from app.services.enrollment import activate_enrollment, confirm_payment, create_enrollment


def test_create_enrollment_is_pending_with_payment_handle(make_user, make_course) -> None:
    user = make_user()
    course = make_course(price=7500.0)

    enrollment, payment, created = create_enrollment(user.id, course.id)

    assert created is True
    assert enrollment.status == "pending"
    assert enrollment.progress == 0.0
    assert payment.status == "pending"
    assert payment.amount == 7500.0
    assert payment.reference.startswith("MOCK-")
    assert payment.enrollment_id == enrollment.id


def test_create_enrollment_unknown_course_or_user(make_user, make_course) -> None:
    user = make_user()
    course = make_course()
    with pytest.raises(NotFound):
        create_enrollment(user.id, 9999)
    with pytest.raises(NotFound):
        create_enrollment(9999, course.id)


def test_unpublished_course_cannot_be_enrolled(make_user, make_course) -> None:
    user = make_user()
    course = make_course(published=False)
    with pytest.raises(NotFound):
        create_enrollment(user.id, course.id)


def test_repeat_create_while_pending_returns_same_handle(make_user, make_course) -> None:
    user = make_user()
    course = make_course()
    first_enrollment, first_payment, _ = create_enrollment(user.id, course.id)

    enrollment, payment, created = create_enrollment(user.id, course.id)

    assert created is False
    assert enrollment.id == first_enrollment.id
    assert payment.id == first_payment.id
    assert Payment.query.count() == 1
    assert Enrollment.query.count() == 1


def test_failed_payment_is_replaced_by_new_handle(make_user, make_course) -> None:
    user = make_user()
    course = make_course()
    _, first_payment, _ = create_enrollment(user.id, course.id)
    confirm_payment(first_payment.reference, succeeded=False)

    enrollment, payment, created = create_enrollment(user.id, course.id)

    assert created is True
    assert payment.id != first_payment.id
    assert payment.status == "pending"
    assert Enrollment.query.count() == 1


def test_create_enrollment_rejected_when_already_active(make_user, make_course, active_enrollment) -> None:
    user = make_user()
    course = make_course()
    active_enrollment(user, course)

    with pytest.raises(InvalidState):
        create_enrollment(user.id, course.id)


def test_confirm_payment_unknown_reference(app) -> None:
    with pytest.raises(NotFound):
        confirm_payment("MOCK-NOPE")


def test_confirm_payment_twice_keeps_first_verdict(make_user, make_course) -> None:
    user = make_user()
    course = make_course()
    _, payment, _ = create_enrollment(user.id, course.id)

    confirm_payment(payment.reference)
    again = confirm_payment(payment.reference, succeeded=False)

    assert again.status == "verified"
    assert again.verified_at is not None


def test_activation_requires_verified_payment(make_user, make_course) -> None:
    user = make_user()
    course = make_course()
    enrollment, payment, _ = create_enrollment(user.id, course.id)

    with pytest.raises(PaymentUnverified):
        activate_enrollment(enrollment.id, payment.id)

    confirm_payment(payment.reference, succeeded=False)
    with pytest.raises(PaymentUnverified):
        activate_enrollment(enrollment.id, payment.id)

    assert Enrollment.query.get(enrollment.id).status == "pending"


def test_activation_flips_entry_and_finalizes_payment(make_user, make_course) -> None:
    user = make_user()
    course = make_course()
    enrollment, payment, _ = create_enrollment(user.id, course.id)
    confirm_payment(payment.reference)

    enrollment, activated = activate_enrollment(enrollment.id, payment.id)

    assert activated is True
    assert enrollment.status == "active"
    assert enrollment.activated_at is not None
    assert enrollment.progress == 0.0
    payment = Payment.query.get(payment.id)
    assert payment.status == "successful"
    assert payment.finalized_at is not None
    assert Notification.query.filter_by(user_id=user.id, title="Enrollment activated").count() == 1


def test_reactivation_is_a_noop(make_user, make_course) -> None:
    user = make_user()
    course = make_course()
    enrollment, payment, _ = create_enrollment(user.id, course.id)
    confirm_payment(payment.reference)
    activate_enrollment(enrollment.id, payment.id)
    finalized_at = Payment.query.get(payment.id).finalized_at

    enrollment, activated = activate_enrollment(enrollment.id, payment.id)

    assert activated is False
    assert enrollment.status == "active"
    assert Payment.query.count() == 1
    assert Payment.query.filter_by(status="successful").count() == 1
    assert Payment.query.get(payment.id).finalized_at == finalized_at
    assert ActivityLog.query.filter_by(action="enrollment.activated").count() == 1


def test_activation_with_foreign_payment_is_not_found(make_user, make_course) -> None:
    course = make_course()
    alice, bob = make_user(), make_user()
    alice_enrollment, _, _ = create_enrollment(alice.id, course.id)
    _, bob_payment, _ = create_enrollment(bob.id, course.id)
    confirm_payment(bob_payment.reference)

    with pytest.raises(NotFound):
        activate_enrollment(alice_enrollment.id, bob_payment.id)
    with pytest.raises(NotFound):
        activate_enrollment(9999, bob_payment.id)


def test_activity_log_failure_does_not_abort_enrollment(make_user, make_course, monkeypatch) -> None:
    def broken_log(*args, **kwargs):
        raise RuntimeError("audit store down")

    monkeypatch.setattr("app.services.activity.ActivityLog", broken_log)
    user = make_user()
    course = make_course()

    enrollment, payment, created = create_enrollment(user.id, course.id)

    assert created is True
    assert Enrollment.query.get(enrollment.id).status == "pending"
    assert ActivityLog.query.count() == 0


def test_concurrent_create_resolves_to_existing_entry(make_user, make_course, monkeypatch) -> None:
    user = make_user()
    course = make_course()
    first_enrollment, first_payment, _ = create_enrollment(user.id, course.id)

    # the lookup misses the row another request just committed
    lookup = enrollment_service._find_enrollment
    calls = []

    def racing_lookup(user_id, course_id):
        calls.append((user_id, course_id))
        return None if len(calls) == 1 else lookup(user_id, course_id)

    monkeypatch.setattr(enrollment_service, "_find_enrollment", racing_lookup)

    enrollment, payment, created = create_enrollment(user.id, course.id)

    assert created is False
    assert len(calls) == 2
    assert enrollment.id == first_enrollment.id
    assert payment.id == first_payment.id
    assert Enrollment.query.count() == 1
    assert Payment.query.count() == 1


def test_only_one_successful_payment_per_entry(db, make_user, make_course, active_enrollment) -> None:
    user = make_user()
    course = make_course()
    enrollment = active_enrollment(user, course)

    db.session.add(Payment(
        enrollment_id=enrollment.id, user_id=user.id, course_id=course.id,
        amount=course.price, reference="MOCK-DUPLICATE", status="successful",
    ))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()

    assert Payment.query.filter_by(enrollment_id=enrollment.id, status="successful").count() == 1
