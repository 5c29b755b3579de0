from library_app.models.notification_log import NotificationLog
from library_app.extensions import db


class NotificationRepo:
    @staticmethod
    def already_sent(borrow_record_id: int, notif_type: str = "overdue") -> bool:
        return NotificationLog.query.filter_by(
            borrow_record_id=borrow_record_id,
            type=notif_type,
            success=True,
        ).first() is not None

    @staticmethod
    def log(entry: NotificationLog):
        # caller commits once for the whole batch
        db.session.add(entry)
        return entry

