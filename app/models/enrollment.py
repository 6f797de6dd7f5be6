from app.extensions import db
from datetime import datetime

ENROLLMENT_STATUSES = ("pending", "active", "completed")
PAYMENT_STATUSES = ("pending", "verified", "failed", "successful")

class Enrollment(db.Model):
    """Ledger entry for one user in one course.

    Lifecycle is ``pending -> active -> completed``; rows are never deleted.
    """
    __tablename__ = "enrollment"
    __table_args__ = (
        db.UniqueConstraint("user_id", "course_id", name="uq_enrollment_user_course"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    course_id = db.Column(db.Integer, db.ForeignKey("course.id"), nullable=False)
    status = db.Column(db.Enum(*ENROLLMENT_STATUSES, name="enrollment_status"), nullable=False, default="pending")
    progress = db.Column(db.Float, nullable=False, default=0.0)  # percentage
    hours_spent = db.Column(db.Float, nullable=False, default=0.0)
    enrolled_at = db.Column(db.DateTime, default=datetime.utcnow)
    activated_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    student = db.relationship("User", back_populates="enrollments")
    course = db.relationship("Course", back_populates="enrollments")
    payments = db.relationship("Payment", back_populates="enrollment", order_by="Payment.id")
    completions = db.relationship("LessonCompletion", back_populates="enrollment")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "course_title": self.course.title if self.course else None,
            "status": self.status,
            "progress": self.progress,
            "hours_spent": round(self.hours_spent or 0.0, 4),
            "enrolled_at": self.enrolled_at.isoformat() if self.enrolled_at else None,
            "activated_at": self.activated_at.isoformat() if self.activated_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class Payment(db.Model):
    """Payment handle for a ledger entry; failed handles are kept and replaced."""
    __tablename__ = "payment"
    __table_args__ = (
        # at most one finalized payment per ledger entry
        db.Index(
            "uq_payment_successful_enrollment",
            "enrollment_id",
            unique=True,
            sqlite_where=db.text("status = 'successful'"),
            postgresql_where=db.text("status = 'successful'"),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    enrollment_id = db.Column(db.Integer, db.ForeignKey("enrollment.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    course_id = db.Column(db.Integer, db.ForeignKey("course.id"), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    currency = db.Column(db.String(10), nullable=False, default="NGN")
    reference = db.Column(db.String(120), unique=True, nullable=False)
    status = db.Column(db.Enum(*PAYMENT_STATUSES, name="payment_status"), nullable=False, default="pending")
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    verified_at = db.Column(db.DateTime, nullable=True)
    finalized_at = db.Column(db.DateTime, nullable=True)

    enrollment = db.relationship("Enrollment", back_populates="payments")
    user = db.relationship("User", back_populates="payments")
    course = db.relationship("Course")

    def to_dict(self):
        return {
            "id": self.id,
            "enrollment_id": self.enrollment_id,
            "course_id": self.course_id,
            "amount": self.amount,
            "currency": self.currency,
            "reference": self.reference,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "verified_at": self.verified_at.isoformat() if self.verified_at else None,
            "finalized_at": self.finalized_at.isoformat() if self.finalized_at else None,
        }
