"""User accounts."""

from __future__ import annotations

import logging
import threading

from .errors import DuplicateEmailError, UserNotFoundError
from .models import User, UserRole, _utc_now
from .query import Page, date_key, paginate, sort_items, text_key
from .repository import InMemoryRepository, Repository
from .utils import normalize_email

logger = logging.getLogger(__name__)

SORT_KEYS = {
    "email": text_key(lambda u: u.email),
    "first_name": text_key(lambda u: u.first_name),
    "last_name": text_key(lambda u: u.last_name),
    "role": text_key(lambda u: u.role.value),
    "created_at": date_key(lambda u: u.created_at),
    "updated_at": date_key(lambda u: u.updated_at),
}

UPDATABLE_FIELDS = frozenset(
    {"email", "first_name", "last_name", "role", "phone_number", "shipping_address", "is_active"}
)


class UserStore:
    """Manages users.

    Emails are unique over every user ever created: deactivating a user
    does not free the address.
    """

    def __init__(self, repository: Repository[User] | None = None):
        self._users: Repository[User] = (
            repository if repository is not None else InMemoryRepository()
        )
        self._lock = threading.Lock()

    def _find_by_email(self, email: str) -> User | None:
        wanted = normalize_email(email)
        return self._users.find(lambda u: normalize_email(u.email) == wanted)

    def create(
        self,
        email: str,
        first_name: str,
        last_name: str,
        role: UserRole = UserRole.CUSTOMER,
        phone_number: str | None = None,
        shipping_address: str | None = None,
    ) -> User:
        """
        Register a new user.

        Raises:
            DuplicateEmailError: If the email belongs to any user, active or not.
        """
        with self._lock:
            if self._find_by_email(email) is not None:
                raise DuplicateEmailError(email)
            user = User.create(
                email=email.strip(),
                first_name=first_name,
                last_name=last_name,
                role=UserRole(role),
                phone_number=phone_number,
                shipping_address=shipping_address,
            )
            self._users.add(user)
        logger.info("Created user %s", user.id)
        return user

    def get(self, user_id: str) -> User:
        """
        Get a user by ID.

        Raises:
            UserNotFoundError: If user doesn't exist.
        """
        user = self._users.get(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def get_by_email(self, email: str) -> User:
        """
        Get a user by email (case-insensitive).

        Raises:
            UserNotFoundError: If no user has that email.
        """
        user = self._find_by_email(email)
        if user is None:
            raise UserNotFoundError(email=email)
        return user

    def list(
        self,
        role: UserRole | None = None,
        is_active: bool | None = None,
        search: str | None = None,
        sort_by: str | None = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10,
    ) -> Page[User]:
        """Filter, sort and paginate users."""
        users = self._users.values()

        if role is not None:
            users = [u for u in users if u.role == UserRole(role)]
        if is_active is not None:
            users = [u for u in users if u.is_active == is_active]
        if search:
            term = search.casefold()
            users = [
                u for u in users
                if term in u.first_name.casefold()
                or term in u.last_name.casefold()
                or term in u.email.casefold()
            ]

        users = sort_items(users, SORT_KEYS, sort_by, sort_order)
        return paginate(users, page, limit)

    def update(self, user_id: str, **changes) -> User:
        """
        Merge changes into a user.

        Raises:
            UserNotFoundError: If user doesn't exist.
            DuplicateEmailError: If the new email belongs to another user.
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise TypeError(f"Cannot update user fields: {', '.join(sorted(unknown))}")

        with self._lock:
            user = self.get(user_id)
            email = changes.get("email")
            if email is not None:
                owner = self._find_by_email(email)
                if owner is not None and owner.id != user_id:
                    raise DuplicateEmailError(email)
                changes["email"] = email.strip()
            if changes.get("role") is not None:
                changes["role"] = UserRole(changes["role"])
            for key, value in changes.items():
                setattr(user, key, value)
            user.updated_at = _utc_now()
            self._users.replace(user)
        return user

    def remove(self, user_id: str) -> User:
        """
        Soft-delete a user. The email stays reserved.

        Raises:
            UserNotFoundError: If user doesn't exist.
        """
        user = self.update(user_id, is_active=False)
        logger.info("Deactivated user %s", user_id)
        return user

    def __len__(self) -> int:
        return len(self._users)
