"""Best-effort side channel: audit log, in-app notifications and mail.

Everything here runs after the primary write has been committed and never
raises; failures are logged and dropped.
"""
from flask import current_app
from app.extensions import db
from app.models import ActivityLog, Notification
from app.utils.mailer import send_email


def log_activity(user_id, action, **details):
    try:
        db.session.add(ActivityLog(user_id=user_id, action=action, details=details))
        db.session.commit()
        return True
    except Exception as e:
        db.session.rollback()
        current_app.logger.warning(f"Activity log failed for {action}: {e}")
        return False


def notify(user, title, message, email=False):
    try:
        db.session.add(Notification(user_id=user.id, title=title, message=message))
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.warning(f"Notification failed for user {user.id}: {e}")
        return False

    if email:
        try:
            send_email(to=user.email, subject=title, body=message)
        except Exception as e:
            current_app.logger.warning(f"Notification email to {user.email} failed: {e}")
    return True
