from __future__ import annotations

from sqlalchemy import case, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.agora.constants import LOCK_THRESHOLD
from app.agora.db import store_errors
from app.agora.errors import DuplicateEmail
from app.agora.models import User


class AccountStore:
    """
    Account persistence on top of a SQLAlchemy session.

    Methods flush but never commit; the request handler owns the transaction.
    """

    def __init__(self, s: Session) -> None:
        self.session = s

    def find_by_email(self, email: str) -> User | None:
        with store_errors("find_by_email"):
            return self.session.execute(select(User).where(User.email == email)).scalar_one_or_none()

    def get(self, user_id: int) -> User | None:
        with store_errors("get"):
            return self.session.get(User, user_id)

    def email_taken(self, email: str, *, exclude_id: int | None = None) -> bool:
        q = select(User.id).where(User.email == email)
        if exclude_id is not None:
            q = q.where(User.id != exclude_id)
        with store_errors("email_taken"):
            return self.session.execute(q.limit(1)).first() is not None

    def save(self, user: User) -> User:
        """
        Flush ``user`` inside a savepoint.

        A unique-email violation from a concurrent writer raises DuplicateEmail
        and leaves the rest of the transaction usable.
        """
        email, user_id = user.email, user.id
        with store_errors("save"):
            try:
                with self.session.begin_nested():
                    self.session.add(user)
                    self.session.flush()
            except IntegrityError as e:
                if self.email_taken(email, exclude_id=user_id):
                    raise DuplicateEmail() from e
                raise
        return user

    def delete_by_id(self, user_id: int) -> bool:
        with store_errors("delete_by_id"):
            user = self.session.get(User, user_id)
            if user is None:
                return False
            self.session.delete(user)
            self.session.flush()
        return True

    def register_failure(self, user: User) -> bool:
        """
        Store-side increment of failed_logins, locking at LOCK_THRESHOLD.

        Both columns are computed from the row's current values in a single
        UPDATE, so concurrent failures cannot lose an increment. Returns False
        when the row was already locked (or gone) and nothing was updated.
        """
        stmt = (
            update(User)
            .where(User.id == user.id, User.locked == False)  # noqa: E712
            .values(
                failed_logins=User.failed_logins + 1,
                locked=case((User.failed_logins + 1 >= LOCK_THRESHOLD, True), else_=User.locked),
            )
            .execution_options(synchronize_session=False)
        )
        with store_errors("register_failure"):
            result = self.session.execute(stmt)
            if result.rowcount != 1:
                self.session.expire(user)
                return False
            self.session.refresh(user)
        return True

    def reset_failures(self, user: User) -> User:
        user.failed_logins = 0
        return self.save(user)

    def unlock(self, user: User) -> User:
        user.locked = False
        user.failed_logins = 0
        return self.save(user)
