import io
from flask import Blueprint, jsonify, send_file
from flask_jwt_extended import jwt_required
from app.services.certificates import certificate_to_dict, issue_certificate, render_certificate_pdf
from app.services.progress import course_progress
from app.utils.auth import capability_required, current_user

bp = Blueprint("progress", __name__)

@bp.route("/<int:course_id>", methods=["GET"])
@jwt_required()
@capability_required("view_own_progress")
def get_progress(course_id):
    user = current_user()
    return jsonify(course_progress(user.id, course_id)), 200


@bp.route("/certificates/<int:course_id>", methods=["GET"])
@jwt_required()
@capability_required("view_own_progress")
def get_certificate(course_id):
    user = current_user()
    certificate = issue_certificate(user.id, course_id)
    return jsonify(certificate_to_dict(certificate)), 200


@bp.route("/certificates/<int:course_id>/download", methods=["GET"])
@jwt_required()
@capability_required("view_own_progress")
def download_certificate(course_id):
    user = current_user()
    certificate = issue_certificate(user.id, course_id)
    pdf = render_certificate_pdf(certificate)

    return send_file(
        io.BytesIO(pdf),
        download_name=f"certificate_{certificate.number}.pdf",
        as_attachment=True,
        mimetype="application/pdf"
    )
