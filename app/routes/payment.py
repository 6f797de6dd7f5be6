import hmac

from flask import Blueprint, current_app, request, jsonify
from flask_jwt_extended import jwt_required
from app.errors import Forbidden
from app.models import Payment
from app.schemas import PaymentConfirm, parse
from app.services.enrollment import confirm_payment
from app.utils.auth import current_user

bp = Blueprint("payments", __name__)


def _verify_gateway_secret():
    expected = current_app.config.get("PAYMENT_WEBHOOK_SECRET") or ""
    supplied = request.headers.get("X-Payment-Secret", "")
    if not expected or not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        current_app.logger.warning(f"Rejected gateway callback from {request.remote_addr}")
        raise Forbidden("Invalid gateway secret")


@bp.route("/<reference>/confirm", methods=["POST"])
def gateway_confirm(reference):
    """Mock gateway callback. Body: ``{"status": "success" | "failed"}``.

    The gateway authenticates with the shared ``X-Payment-Secret`` header.
    """
    _verify_gateway_secret()
    data = parse(PaymentConfirm, request.get_json(silent=True) or {})
    payment = confirm_payment(reference, succeeded=data.status == "success")
    return jsonify({
        "message": f"Payment {payment.status}",
        "payment": payment.to_dict()
    }), 200


@bp.route("/", methods=["GET"])
@jwt_required()
def list_payments():
    user = current_user()
    payments = Payment.query.filter_by(user_id=user.id).order_by(Payment.created_at.asc()).all()

    result = [{
        **p.to_dict(),
        "course": p.course.title if p.course else None
    } for p in payments]

    return jsonify(result), 200
