from app.extensions import db
from datetime import datetime

class Lesson(db.Model):
    __tablename__ = "lesson"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(150), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    video_url = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    duration = db.Column(db.Float, nullable=True)  # seconds
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    course_id = db.Column(db.Integer, db.ForeignKey("course.id"), nullable=False)

    course = db.relationship("Course", back_populates="lessons")
    quizzes = db.relationship("Quiz", back_populates="lesson", cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "course_id": self.course_id,
            "title": self.title,
            "slug": self.slug,
            "position": self.position,
            "video_url": self.video_url,
            "notes": self.notes,
            "duration": self.duration,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Quiz(db.Model):
    __tablename__ = "quiz"

    id = db.Column(db.Integer, primary_key=True)
    lesson_id = db.Column(db.Integer, db.ForeignKey("lesson.id"), nullable=False)
    question = db.Column(db.Text, nullable=False)
    options = db.Column(db.JSON, nullable=False, default=list)
    correct_answer = db.Column(db.String(255), nullable=False)

    lesson = db.relationship("Lesson", back_populates="quizzes")

    def to_dict(self, include_answer=False):
        data = {
            "id": self.id,
            "lesson_id": self.lesson_id,
            "question": self.question,
            "options": self.options or [],
        }
        if include_answer:
            data["correct_answer"] = self.correct_answer
        return data
