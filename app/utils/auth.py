from functools import wraps
from flask_jwt_extended import get_jwt_identity
from app.extensions import db
from app.errors import Forbidden, NotFound
from app.models import User

# Declarative policy: what each role may do. Checked once per request.
STUDENT = {"enroll", "learn", "view_own_progress"}
PARENT = {"view_child_progress"}
INSTRUCTOR = {"manage_own_catalog", "view_course_students"}
SUB_ADMIN = {"manage_catalog", "view_course_students", "view_students", "view_activity"}

POLICY = {
    "student": frozenset(STUDENT),
    "parent": frozenset(PARENT),
    "instructor": frozenset(INSTRUCTOR),
    "sub-admin": frozenset(SUB_ADMIN),
    "admin": frozenset(STUDENT | PARENT | INSTRUCTOR | SUB_ADMIN | {"manage_users"}),
}


def capabilities_for(role):
    return POLICY.get(role, frozenset())


def has_capability(user, capability):
    return capability in capabilities_for(user.role)


def current_user():
    """Load the active user behind the JWT."""
    identity = get_jwt_identity()
    user = db.session.get(User, int(identity)) if identity is not None else None
    if not user:
        raise NotFound("User not found")
    if not user.is_active:
        raise Forbidden("Account suspended")
    return user


def capability_required(*capabilities):
    """Require any one of ``capabilities``. Use under ``@jwt_required()``."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = current_user()
            granted = capabilities_for(user.role)
            if not granted.intersection(capabilities):
                raise Forbidden("Unauthorized")
            return fn(*args, **kwargs)
        return wrapper
    return decorator

