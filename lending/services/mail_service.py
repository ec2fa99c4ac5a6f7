# lending/services/mail_service.py
from __future__ import annotations

from flask import current_app
from flask_mail import Message

from lending.extensions import db, mail
from lending.models.mail_log import MailLog
from lending.repositories.user_repo import UserRepo


class MailService:
    @staticmethod
    def send_email(to_email: str, subject: str, body: str) -> tuple[bool, str | None]:
        """
        return: (success, error_text)
        """
        try:
            msg = Message(subject=subject, recipients=[to_email], body=body)
            mail.send(msg)
            return True, None
        except Exception as e:
            current_app.logger.warning(f"[MailService] Mail could not be sent to {to_email}: {e}")
            return False, str(e)

    @staticmethod
    def log_mail(
        user_id: int | None,
        event_type: str,
        to_email: str | None,
        subject: str,
        success: bool,
        error: str | None = None,
    ) -> MailLog:
        row = MailLog(
            user_id=user_id,
            event_type=event_type,
            to_email=to_email,
            subject=subject,
            success=bool(success),
            error=error,
        )
        db.session.add(row)
        db.session.commit()
        return row

    @staticmethod
    def send_notification_email(user_id: int, subject: str, body: str, event_type: str) -> bool:
        """Looks up the user's address, sends the mail and logs the attempt."""
        user = UserRepo.get_by_id(user_id)
        to_email = getattr(user, "email", None) if user else None
        username = getattr(user, "username", "reader") if user else "reader"

        if not to_email:
            MailService.log_mail(user_id, event_type, None, subject, False, "missing_email")
            return False

        ok, err = MailService.send_email(to_email, subject, f"Hello {username},\n\n{body}\n")
        MailService.log_mail(user_id, event_type, to_email, subject, ok, err)
        return ok
