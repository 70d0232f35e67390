"""
Account signup and login.
"""

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import Conflict, PersistenceError, Unauthorized
from app.core.security import create_access_token, get_password_hash, verify_password
from app.db.models import User, UserRole
from app.schemas.user import UserCreate

logger = logging.getLogger(__name__)


class UserService:
    """Service for user accounts."""

    def __init__(self, db: Session):
        self.db = db

    def signup(self, data: UserCreate) -> tuple[User, str]:
        """
        Create an account and issue a token.

        Raises:
            Conflict: Email already registered
        """
        email = data.email.strip().lower()
        if self.db.query(User.id).filter(User.email == email).first():
            raise Conflict("An account with this email already exists")

        user = User(
            username=data.username,
            email=email,
            phone=data.phone,
            full_name=data.full_name,
            date_of_birth=data.date_of_birth,
            gender=data.gender,
            password_hash=get_password_hash(data.password),
            # Self-service accounts cannot grant themselves admin
            role=data.role if data.role != UserRole.ADMIN else UserRole.PARTICIPANT,
        )
        try:
            self.db.add(user)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise Conflict("An account with this email already exists") from None
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create user {email}: {e}")
            raise PersistenceError("Failed to create account") from e

        logger.info(f"User {user.id} signed up as {user.role.value}")
        return user, self.issue_token(user)

    def login(self, email: str, password: str) -> tuple[User, str]:
        """
        Raises:
            Unauthorized: Unknown email or wrong password
        """
        user = self.db.query(User).filter(User.email == email.strip().lower()).first()
        if not user or not verify_password(password, user.password_hash):
            logger.warning(f"Failed login for {email}")
            raise Unauthorized("Invalid email or password")
        return user, self.issue_token(user)

    @staticmethod
    def issue_token(user: User) -> str:
        return create_access_token(data={"sub": str(user.id), "role": user.role.value})
