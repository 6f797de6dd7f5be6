from app.extensions import db
from datetime import datetime

class Course(db.Model):
    __tablename__ = "course"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=False)
    price = db.Column(db.Float, nullable=False, default=0.0)
    is_published = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    instructor_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)

    instructor = db.relationship("User", back_populates="courses_taught")
    lessons = db.relationship(
        "Lesson",
        back_populates="course",
        order_by="Lesson.position",
        cascade="all, delete-orphan"
    )
    enrollments = db.relationship("Enrollment", back_populates="course")

    @property
    def total_lessons(self):
        return len(self.lessons)

    def to_dict(self, include_lessons=False):
        data = {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "description": self.description,
            "price": self.price,
            "is_published": self.is_published,
            "instructor_id": self.instructor_id,
            "total_lessons": self.total_lessons,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_lessons:
            data["lessons"] = [lesson.to_dict() for lesson in self.lessons]
        return data
