from library_app.models.user import User
from library_app.extensions import db


class UserRepo:
    @staticmethod
    def get_by_email(email: str):
        return User.query.filter_by(email=email).first()

    @staticmethod
    def get_by_id(user_id: int):
        return db.session.get(User, user_id)

    @staticmethod
    def count() -> int:
        return User.query.count()

    @staticmethod
    def create(user: User):
        db.session.add(user)
        db.session.flush()
        return user
