"""Enrollment workflow: pending ledger entry -> payment -> activation.

State changes are conditional updates keyed on the current status, so two
requests racing on the same entry cannot both win a transition.
"""
import uuid
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError
from app.extensions import db
from app.errors import InvalidState, NotFound, PaymentUnverified
from app.models import Course, Enrollment, Payment, User
from app.services.activity import log_activity, notify


def _new_reference():
    prefix = current_app.config.get("PAYMENT_REFERENCE_PREFIX", "MOCK")
    return f"{prefix}-{uuid.uuid4().hex[:16].upper()}"


def _open_payment(enrollment):
    """Latest payment for the entry that can still lead to activation."""
    for payment in reversed(enrollment.payments):
        if payment.status in ("pending", "verified"):
            return payment
    return None


def _find_enrollment(user_id, course_id):
    return Enrollment.query.filter_by(user_id=user_id, course_id=course_id).first()


def _resume(enrollment):
    """Hand back an existing pending entry's open payment, or None if it needs a new one."""
    if enrollment.status != "pending":
        raise InvalidState("Already enrolled in this course", status=enrollment.status)
    return _open_payment(enrollment)


def _new_payment(enrollment, course):
    payment = Payment(
        enrollment=enrollment,
        user_id=enrollment.user_id,
        course_id=course.id,
        amount=course.price,
        currency=current_app.config.get("PAYMENT_CURRENCY", "NGN"),
        reference=_new_reference(),
        status="pending",
    )
    db.session.add(payment)
    return payment


def create_enrollment(user_id, course_id):
    """Create (or resume) a pending ledger entry and return its payment handle.

    Returns ``(enrollment, payment, created)`` where ``created`` is False when
    an existing pending entry and open payment were handed back.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound("User not found")

    course = db.session.get(Course, course_id)
    if not course or not course.is_published:
        raise NotFound("Course not found")

    enrollment = _find_enrollment(user_id, course_id)
    if enrollment:
        payment = _resume(enrollment)
        if payment:
            return enrollment, payment, False
    else:
        enrollment = Enrollment(user_id=user_id, course_id=course_id, status="pending")
        db.session.add(enrollment)

    payment = _new_payment(enrollment, course)
    try:
        db.session.commit()
    except IntegrityError:
        # a concurrent request created the entry for this (user, course) first
        db.session.rollback()
        enrollment = _find_enrollment(user_id, course_id)
        if not enrollment:
            raise
        current_app.logger.info(f"Enrollment for user {user_id} in course {course_id} created concurrently")
        payment = _resume(enrollment)
        if payment:
            return enrollment, payment, False
        payment = _new_payment(enrollment, course)
        db.session.commit()

    current_app.logger.info(
        f"Enrollment {enrollment.id} pending for user {user_id} in course {course_id} (payment {payment.reference})"
    )
    log_activity(user_id, "enrollment.created", enrollment_id=enrollment.id, course_id=course_id,
                 payment_reference=payment.reference)
    return enrollment, payment, True


def confirm_payment(reference, succeeded=True):
    """Mock gateway callback: record the gateway's verdict on a payment."""
    payment = Payment.query.filter_by(reference=reference).first()
    if not payment:
        raise NotFound("Payment not found")

    if not succeeded:
        updated = (
            Payment.query
            .filter_by(id=payment.id, status="pending")
            .update({"status": "failed"}, synchronize_session=False)
        )
    else:
        updated = (
            Payment.query
            .filter_by(id=payment.id, status="pending")
            .update({"status": "verified", "verified_at": datetime.utcnow()}, synchronize_session=False)
        )
    db.session.commit()
    db.session.refresh(payment)

    if updated:
        current_app.logger.info(f"Payment {reference} marked {payment.status}")
        log_activity(payment.user_id, f"payment.{payment.status}", payment_id=payment.id, reference=reference)
    return payment


def activate_enrollment(enrollment_id, payment_id):
    """Flip a pending entry to active against a verified payment.

    Returns ``(enrollment, activated)``. Re-activating an entry whose payment
    was already finalized is a no-op with ``activated`` False.
    """
    enrollment = db.session.get(Enrollment, enrollment_id)
    if not enrollment:
        raise NotFound("Enrollment not found")

    payment = db.session.get(Payment, payment_id)
    if not payment or payment.enrollment_id != enrollment.id:
        raise NotFound("Payment not found for this enrollment")

    if enrollment.status in ("active", "completed"):
        if payment.status == "successful":
            return enrollment, False
        raise InvalidState("Enrollment is already active", status=enrollment.status)

    if payment.status == "successful":
        # finalized by a concurrent activation that has not flipped the entry yet
        return enrollment, False
    if payment.status != "verified":
        raise PaymentUnverified("Payment has not been confirmed", payment_status=payment.status)

    now = datetime.utcnow()
    finalized = (
        Payment.query
        .filter_by(id=payment.id, status="verified")
        .update({"status": "successful", "finalized_at": now}, synchronize_session=False)
    )
    if not finalized:
        db.session.rollback()
        db.session.refresh(enrollment)
        return enrollment, False

    activated = (
        Enrollment.query
        .filter_by(id=enrollment.id, status="pending")
        .update({"status": "active", "activated_at": now}, synchronize_session=False)
    )
    if not activated:
        db.session.rollback()
        db.session.refresh(enrollment)
        return enrollment, False

    db.session.commit()
    db.session.refresh(enrollment)
    db.session.refresh(payment)

    current_app.logger.info(f"Enrollment {enrollment.id} activated with payment {payment.reference}")
    log_activity(enrollment.user_id, "enrollment.activated", enrollment_id=enrollment.id, payment_id=payment.id)
    notify(
        enrollment.student,
        "Enrollment activated",
        f"You now have full access to {enrollment.course.title}.",
        email=True,
    )
    return enrollment, True


def get_enrollment(enrollment_id, user_id=None):
    query = Enrollment.query.filter_by(id=enrollment_id)
    if user_id is not None:
        query = query.filter_by(user_id=user_id)
    enrollment = query.first()
    if not enrollment:
        raise NotFound("Enrollment not found")
    return enrollment


def list_enrollments(user_id):
    return Enrollment.query.filter_by(user_id=user_id).order_by(Enrollment.enrolled_at.asc()).all()
