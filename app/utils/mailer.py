from flask_mail import Message
from app.extensions import mail
from flask import current_app

def send_email(to, subject, body, html=None):
    """Generic email sender that never mails the sender address itself."""

    sender = current_app.config.get("MAIL_DEFAULT_SENDER")
    sender_email = sender[1] if isinstance(sender, tuple) else sender

    if to == sender_email or (isinstance(to, list) and sender_email in to):
        current_app.logger.info(f"Skipped sending email to sender address: {sender_email}")
        return False

    msg = Message(
        subject=subject,
        recipients=[to] if isinstance(to, str) else to,
        sender=sender,
    )
    msg.body = body
    if html:
        msg.html = html

    mail.send(msg)
    current_app.logger.info(f"Email sent to {to}")
    return True
