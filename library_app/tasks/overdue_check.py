from library_app.extensions import db
from library_app.repositories.notification_repo import NotificationRepo
from library_app.services.borrow_ledger import BorrowLedger
from library_app.services.mail_service import MailService


def run_overdue_check(app, ledger: BorrowLedger = None) -> dict:
    """
    Sends one reminder per overdue borrow record.

    A record that already got a successful reminder is skipped; failed
    attempts are logged and retried on the next run. Borrow status and stock
    are never touched here.
    """
    ledger = ledger or BorrowLedger()
    with app.app_context():
        try:
            overdue = ledger.get_overdue_books()
            sent = skipped = failed = 0

            for record in overdue:
                if NotificationRepo.already_sent(record.id, "overdue"):
                    skipped += 1
                    continue
                if MailService.send_overdue_mail(record):
                    sent += 1
                else:
                    failed += 1

            db.session.commit()

            app.logger.info(
                f"[overdue_check] overdue={len(overdue)} sent={sent} skipped={skipped} failed={failed}"
            )
            return {"overdue": len(overdue), "sent": sent, "skipped": skipped, "failed": failed}

        except Exception as e:
            db.session.rollback()
            app.logger.exception(f"[overdue_check] error: {e}")
            raise
