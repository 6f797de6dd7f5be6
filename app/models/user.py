from app.extensions import db
from datetime import datetime
from werkzeug.security import generate_password_hash, check_password_hash

ROLES = ("student", "parent", "instructor", "admin", "sub-admin")

class User(db.Model):
    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=True)
    role = db.Column(db.Enum(*ROLES, name="user_role"), nullable=False, default="student")
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # a student may be linked to one parent account
    parent_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)

    children = db.relationship("User", backref=db.backref("parent", remote_side=[id]))
    enrollments = db.relationship("Enrollment", back_populates="student")
    payments = db.relationship("Payment", back_populates="user")
    courses_taught = db.relationship("Course", back_populates="instructor")
    notifications = db.relationship("Notification", back_populates="user", cascade="all, delete-orphan")

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            "id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
            "parent_id": self.parent_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
