from flask import Flask, jsonify
from .config import Config
from .errors import APIError
from .extensions import db, migrate, jwt, mail
from .routes import auth, student, admin, courses, lessons, enrollments, progress, payment, notifications
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix


def create_app(config_class=Config):
    app = Flask(__name__)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1)
    CORS(app, resources={r"/*": {"origins": "*"}})
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    mail.init_app(app)

    register_error_handlers(app)

    # Register blueprints
    app.register_blueprint(auth.bp, url_prefix="/auth")
    app.register_blueprint(courses.bp, url_prefix="/courses")
    app.register_blueprint(lessons.bp, url_prefix="/courses")
    app.register_blueprint(enrollments.bp, url_prefix="/enrollments")
    app.register_blueprint(payment.bp, url_prefix="/payments")
    app.register_blueprint(progress.bp, url_prefix="/progress")
    app.register_blueprint(student.bp, url_prefix="/students")
    app.register_blueprint(notifications.bp, url_prefix="/notifications")
    app.register_blueprint(admin.bp, url_prefix="/admin")

    return app


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def handle_api_error(err):
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(404)
    def handle_not_found(err):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(err):
        return jsonify({"error": "Method not allowed"}), 405

    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({"error": reason}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({"error": reason}), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify({"error": "Token has expired"}), 401
