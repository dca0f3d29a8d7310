"""
services/account_service.py
---------------------------
Business logic for user accounts.
Password hashing happens in the auth layer; this service only stores the hash.
"""

from db.errors import ConstraintViolationError
from models.user import User
from services.validation import validate_email
from storage import Storage
from utils.logger import get_logger

logger = get_logger(__name__)


class AccountService:
    """Registers and looks up users."""

    def __init__(self, storage: Storage):
        self.user_repo = storage.users

    def register(self, email: str, password_hash: str) -> User:
        """
        Create an account for a new email address.

        email_exists() gives a fast, friendly rejection for the common case.
        Two concurrent registrations can both pass it; the UNIQUE constraint
        then rejects the second insert, and that error is passed on as is.

        Raises:
            ValidationError: If the email is malformed.
            ConstraintViolationError: If the email is already registered.
        """
        email = validate_email(email)
        if self.user_repo.email_exists(email):
            logger.warning(f"Registration rejected, email already in use: {email}")
            raise ConstraintViolationError(f"email {email} already registered")

        user_id = self.user_repo.create(email, password_hash)
        return self.user_repo.get_by_id(user_id)

    def get_user(self, user_id: int) -> User:
        return self.user_repo.get_by_id(user_id)

    def find_by_email(self, email: str) -> User:
        return self.user_repo.get_by_email(validate_email(email))

    def delete_account(self, user_id: int) -> None:
        """Remove a user together with all of their tasks."""
        self.user_repo.delete(user_id)
