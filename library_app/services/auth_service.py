import re

from werkzeug.security import generate_password_hash, check_password_hash
from flask_jwt_extended import create_access_token
from sqlalchemy.exc import IntegrityError

from library_app.models.user import User, UserRole
from library_app.repositories.unit_of_work import atomic
from library_app.repositories.user_repo import UserRepo

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class AuthService:
    @staticmethod
    def create_user(email: str, name: str, password: str, role: str = UserRole.USER.value):
        email = email.strip().lower()
        if UserRepo.get_by_email(email):
            raise ValueError("Email address is already registered")

        user = User(
            email=email,
            name=name.strip(),
            password_hash=generate_password_hash(password),
            role=role,
        )
        return UserRepo.create(user)

    @staticmethod
    def register(email: str, name: str, password: str):
        """Self-service sign-up. Always creates a reader account, never a librarian."""
        if not EMAIL_RE.match(email.strip()):
            raise ValueError("Invalid email format")
        if len(name.strip()) < 2:
            raise ValueError("Name must be at least 2 characters long")

        try:
            with atomic():
                user = AuthService.create_user(email, name, password, role=UserRole.USER.value)
        except IntegrityError as e:
            raise ValueError("Email address is already registered") from e
        return AuthService.issue_token(user), user

    @staticmethod
    def issue_token(user: User) -> str:
        return create_access_token(
            identity=str(user.id),
            additional_claims={"role": user.role, "email": user.email},
        )

    @staticmethod
    def login(email: str, password: str):
        user = UserRepo.get_by_email(email.strip().lower())
        if not user or not check_password_hash(user.password_hash, password):
            raise ValueError("Invalid email or password")
        return AuthService.issue_token(user), user
