from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required
from app.extensions import db
from app.errors import NotFound
from app.models import Notification
from app.utils.auth import current_user

bp = Blueprint("notifications", __name__)

@bp.route("/", methods=["GET"])
@jwt_required()
def list_notifications():
    user = current_user()
    notifications = (
        Notification.query
        .filter_by(user_id=user.id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .all()
    )
    return jsonify({
        "unread": sum(1 for n in notifications if not n.is_read),
        "notifications": [n.to_dict() for n in notifications]
    }), 200


@bp.route("/<int:notification_id>/read", methods=["PATCH"])
@jwt_required()
def mark_read(notification_id):
    user = current_user()
    notification = Notification.query.filter_by(id=notification_id, user_id=user.id).first()
    if not notification:
        raise NotFound("Notification not found")

    notification.is_read = True
    db.session.commit()
    return jsonify(notification.to_dict()), 200
