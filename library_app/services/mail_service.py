from __future__ import annotations

from flask import current_app
from flask_mail import Message

from library_app.extensions import mail
from library_app.models.notification_log import NotificationLog
from library_app.repositories.notification_repo import NotificationRepo
from library_app.utils.clock import utcnow


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
            current_app.logger.warning(f"[mail] could not send to {to_email}: {e}")
            return False, str(e)

    @staticmethod
    def log_notification(
        borrow_record_id: int,
        notif_type: str,
        to_email: str | None,
        message: str,
        success: bool,
        error: str | None = None,
    ) -> NotificationLog:
        row = NotificationLog(
            borrow_record_id=borrow_record_id,
            type=notif_type,
            email=to_email,
            message=message[:1000],
            success=bool(success),
            error_message=error[:500] if error else None,
            sent_at=utcnow(),
        )
        return NotificationRepo.log(row)

    @staticmethod
    def send_overdue_mail(record) -> bool:
        """
        Mails the borrower of an overdue record and logs the attempt.
        Does not commit; the overdue check commits once per run.
        """
        user = record.user
        book = record.book
        to_email = user.email if user else None
        name = user.name if user else "reader"
        book_title = book.title if book else f"Book #{record.book_id}"

        subject = "Library: overdue book"
        body = (
            f"Hello {name},\n\n"
            f"'{book_title}' was due on {record.due_date:%Y-%m-%d}.\n"
            f"Please return it as soon as possible.\n"
        )

        if not to_email:
            MailService.log_notification(record.id, "overdue", None, body, False, "missing_email")
            return False

        ok, err = MailService.send_email(to_email, subject, body)
        MailService.log_notification(record.id, "overdue", to_email, body, ok, err)
        return ok
