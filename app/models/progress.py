from app.extensions import db
from datetime import datetime

class LessonCompletion(db.Model):
    __tablename__ = "lesson_completion"
    __table_args__ = (
        db.UniqueConstraint("enrollment_id", "lesson_id", name="uq_completion_enrollment_lesson"),
    )

    id = db.Column(db.Integer, primary_key=True)
    enrollment_id = db.Column(db.Integer, db.ForeignKey("enrollment.id"), nullable=False)
    lesson_id = db.Column(db.Integer, db.ForeignKey("lesson.id"), nullable=False)
    completed_at = db.Column(db.DateTime, default=datetime.utcnow)

    enrollment = db.relationship("Enrollment", back_populates="completions")
    lesson = db.relationship("Lesson")
