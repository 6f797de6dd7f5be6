from __future__ import annotations

import pytest
from flask_jwt_extended import create_access_token

from app import create_app
from app.config import TestingConfig
from app.extensions import db as _db
from app.models import Course, Lesson, User


@pytest.fixture()
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def db(app):
    return _db


@pytest.fixture()
def make_user(app):
    counter = {"n": 0}

    def _make_user(role="student", full_name=None, email=None, password="secret123", **fields):
        counter["n"] += 1
        user = User(
            full_name=full_name or f"{role.title()} {counter['n']}",
            email=email or f"{role}{counter['n']}@example.com",
            role=role,
            **fields,
        )
        user.set_password(password)
        _db.session.add(user)
        _db.session.commit()
        return user

    return _make_user


@pytest.fixture()
def make_course(app, make_user):
    def _make_course(lessons=4, price=5000.0, published=True, instructor=None, durations=None, title="Intro to Python"):
        instructor = instructor or make_user("instructor")
        course = Course(
            title=title,
            slug=title.lower().replace(" ", "-"),
            description="A course",
            price=price,
            is_published=published,
            instructor_id=instructor.id,
        )
        for i in range(lessons):
            duration = durations[i] if durations else 900.0
            course.lessons.append(
                Lesson(title=f"Lesson {i + 1}", slug=f"lesson-{i + 1}", position=i + 1, duration=duration)
            )
        _db.session.add(course)
        _db.session.commit()
        return course

    return _make_course


@pytest.fixture()
def auth_headers(app):
    def _auth_headers(user):
        token = create_access_token(identity=str(user.id))
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture()
def active_enrollment(app):
    """Run a user through create -> confirm -> activate for ``course``."""
    from app.services.enrollment import activate_enrollment, confirm_payment, create_enrollment

    def _active_enrollment(user, course):
        enrollment, payment, _ = create_enrollment(user.id, course.id)
        confirm_payment(payment.reference)
        enrollment, _ = activate_enrollment(enrollment.id, payment.id)
        return enrollment

    return _active_enrollment
