import hashlib
from collections import namedtuple

from flask import current_app, render_template
from weasyprint import HTML
from app.extensions import db
from app.errors import InvalidState, NotFound
from app.models import Course, Enrollment, User

Certificate = namedtuple(
    "Certificate",
    ["number", "user_id", "course_id", "student_name", "course_title", "completed_at", "issuer"],
)


def certificate_number(user_id, course_id, completed_at):
    """Stable identifier: same user, course and completion time, same number."""
    seed = f"{user_id}:{course_id}:{completed_at.isoformat()}".encode("utf-8")
    return hashlib.sha256(seed).hexdigest()[:12].upper()


def issue_certificate(user_id, course_id):
    """Build the certificate for a completed enrollment. Performs no writes."""
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound("User not found")

    course = db.session.get(Course, course_id)
    if not course:
        raise NotFound("Course not found")

    enrollment = Enrollment.query.filter_by(user_id=user_id, course_id=course_id).first()
    if not enrollment:
        raise NotFound("Enrollment not found")
    if enrollment.status != "completed" or enrollment.completed_at is None:
        raise InvalidState(
            "Course not completed yet",
            status=enrollment.status,
            progress=enrollment.progress,
        )

    return Certificate(
        number=certificate_number(user.id, course.id, enrollment.completed_at),
        user_id=user.id,
        course_id=course.id,
        student_name=user.full_name,
        course_title=course.title,
        completed_at=enrollment.completed_at,
        issuer=current_app.config.get("CERTIFICATE_ISSUER", "Learnhub Academy"),
    )


def html_to_pdf(html):
    return HTML(string=html).write_pdf()


def render_certificate_pdf(certificate):
    html = render_template(
        "certificate.html",
        number=certificate.number,
        name=certificate.student_name,
        course=certificate.course_title,
        issuer=certificate.issuer,
        date=certificate.completed_at.strftime("%B %d, %Y"),
    )
    return html_to_pdf(html)


def certificate_to_dict(certificate):
    data = certificate._asdict()
    data["completed_at"] = certificate.completed_at.isoformat()
    return data
