# utils/emailing.py
from __future__ import annotations

from flask import current_app
from markupsafe import escape

STATUS_SUBJECTS = {
    "approved": "Your project has been approved",
    "rejected": "Your project was not approved",
    "under_review": "Your project is under review",
    "active": "Your campaign is live",
    "funded": "Your campaign reached its goal",
    "failed": "Your campaign has ended",
}


def _resolve_sender() -> str | None:
    """Pick a sender in priority order."""
    cfg = current_app.config
    return (
        cfg.get("MAIL_DEFAULT_SENDER")
        or cfg.get("SMTP_FROM")
        or cfg.get("MAIL_USERNAME")
    )


def _send(email: str, subject: str, text_body: str, html_body: str, what: str) -> bool:
    """
    Deliver one message through Flask-Mail. Returns True on success, False on
    failure; a broken transport never raises into the caller.
    """
    mail_ext = current_app.extensions.get("mail")
    if not mail_ext:
        current_app.logger.warning("[Mail disabled] %s for %s not sent", what, email)
        return False

    sender = _resolve_sender()
    if not sender:
        current_app.logger.error(
            "No sender configured. Set MAIL_DEFAULT_SENDER or MAIL_USERNAME."
        )
        return False

    try:
        from flask_mail import Message

        msg = Message(
            subject=subject,
            recipients=[email],
            sender=sender,
            body=text_body,
            html=html_body,
            reply_to=current_app.config.get("MAIL_REPLY_TO", sender),
        )
        mail_ext.send(msg)
        current_app.logger.info(
            "%s sent to %s via %s", what, email, current_app.config.get("MAIL_SERVER")
        )
        return True

    except Exception:
        current_app.logger.exception("Failed to send %s to %s", what.lower(), email)
        return False


def send_verification_email(user, token: str) -> bool:
    api = current_app.config.get("API_URL", "").rstrip("/")
    link = f"{api}/api/auth/verify-email?token={token}"
    name = (user.first_name or "").strip()

    text_body = (
        f"Hi {name},\n\n"
        f"Please confirm your email address:\n{link}\n\n"
        f"This link expires in 24 hours."
    )
    html_body = (
        f"<p>Hi {name},</p>"
        f"<p>Please confirm your email address: "
        f'<a href="{link}" target="_blank" rel="noopener noreferrer">{link}</a></p>'
        f"<p>This link expires in 24 hours.</p>"
    )
    return _send(user.email, "Verify your email", text_body, html_body, "Verification email")


def build_status_message(project) -> tuple[str, str]:
    """Subject and plain-text body telling a company where its project stands."""
    title = project.title or f"Project #{project.id}"
    subject = f"{STATUS_SUBJECTS.get(project.status, 'Your project status changed')}: {title}"

    lines = [f'The status of "{title}" is now: {project.status.replace("_", " ")}.']
    if project.review_notes:
        lines.append(f"\nReviewer notes:\n{project.review_notes}")
    app_url = current_app.config.get("APP_URL", "").rstrip("/")
    if app_url:
        lines.append(f"\nView it here: {app_url}/projects/{project.id}")
    return subject, "\n".join(lines)


def send_project_status_email(user, project) -> bool:
    subject, text_body = build_status_message(project)
    html_body = "".join(f"<p>{escape(line.strip())}</p>" for line in text_body.split("\n\n") if line.strip())
    return _send(user.email, subject, text_body, html_body, "Project status email")
