from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import create_access_token, jwt_required
from app.extensions import db
from app.models import User
from app.schemas import RegisterRequest, LoginRequest, parse
from app.services.activity import log_activity
from app.utils.auth import current_user

bp = Blueprint("auth", __name__)

# Accounts that may be created without an admin token
SELF_SERVICE_ROLES = ("student", "parent", "instructor")

@bp.route("/register", methods=["POST"])
def register():
    data = parse(RegisterRequest, request.get_json(silent=True))
    email = data.email.strip().lower()

    if data.role not in SELF_SERVICE_ROLES:
        return jsonify({"error": "This role cannot be self-registered"}), 403

    if User.query.filter_by(email=email).first():
        return jsonify({"error": "Email already exists."}), 409

    user = User(full_name=data.full_name.strip().title(), email=email, role=data.role)
    user.set_password(data.password)
    db.session.add(user)
    db.session.commit()

    current_app.logger.info(f"Registered {user.role} {user.email}")
    log_activity(user.id, "user.registered", role=user.role)

    return jsonify({"message": "Registration successful", "user": user.to_dict()}), 201


@bp.route("/login", methods=["POST"])
def login():
    data = parse(LoginRequest, request.get_json(silent=True))

    user = User.query.filter_by(email=data.email.strip().lower()).first()
    if not user or not user.check_password(data.password):
        return jsonify({"error": "Invalid credentials"}), 401

    if not user.is_active:
        return jsonify({"error": "Account suspended"}), 403

    access_token = create_access_token(identity=str(user.id), additional_claims={"role": user.role})
    log_activity(user.id, "user.login")

    return jsonify({
        "message": "Login successful",
        "access_token": access_token,
        "user": user.to_dict()
    }), 200


@bp.route("/me", methods=["GET"])
@jwt_required()
def me():
    return jsonify(current_user().to_dict()), 200
