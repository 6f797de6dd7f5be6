from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from app.schemas import EnrollmentCreate, EnrollmentActivate, parse
from app.services.enrollment import (
    activate_enrollment, create_enrollment, get_enrollment, list_enrollments,
)
from app.utils.auth import capability_required, current_user

bp = Blueprint("enrollment", __name__)

@bp.route("/create", methods=["POST"])
@jwt_required()
@capability_required("enroll")
def enroll_course():
    user = current_user()
    data = parse(EnrollmentCreate, request.get_json(silent=True))

    enrollment, payment, created = create_enrollment(user.id, data.course_id)

    return jsonify({
        "message": "Enrollment pending payment" if created else "Enrollment already pending payment",
        "enrollment": enrollment.to_dict(),
        "payment": payment.to_dict()
    }), 201 if created else 200


@bp.route("/activate/<int:enrollment_id>", methods=["POST"])
@jwt_required()
@capability_required("enroll")
def activate(enrollment_id):
    user = current_user()
    data = parse(EnrollmentActivate, request.get_json(silent=True))

    # scope the lookup to the caller so ids of other users read as unknown
    get_enrollment(enrollment_id, user_id=user.id)
    enrollment, activated = activate_enrollment(enrollment_id, data.payment_id)

    return jsonify({
        "message": "Enrollment activated" if activated else "Enrollment already active",
        "already_active": not activated,
        "enrollment": enrollment.to_dict()
    }), 200


# List user's enrollments
@bp.route("/", methods=["GET"])
@jwt_required()
def list_user_enrollments():
    user = current_user()
    return jsonify([e.to_dict() for e in list_enrollments(user.id)]), 200


@bp.route("/<int:enrollment_id>", methods=["GET"])
@jwt_required()
def get_user_enrollment(enrollment_id):
    user = current_user()
    enrollment = get_enrollment(enrollment_id, user_id=user.id)
    data = enrollment.to_dict()
    data["payments"] = [p.to_dict() for p in enrollment.payments]
    return jsonify(data), 200
