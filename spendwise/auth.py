import hmac
import logging
from typing import Callable, Optional

from spendwise.backend import Backend, eq
from spendwise.domain import Result, User, UserData
from spendwise.errors import AuthError, PersistenceError
from spendwise.functional import first
from spendwise.session import Session
from spendwise.validation import validate_login_form, validate_registration_form

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid username or password!"
LOGIN_PATH = "/login"


class AuthenticationManager:
    """Login, registration and session guards.

    Passwords are compared as stored (see DESIGN.md, open questions); the
    comparison itself is constant-time.
    """

    def __init__(self, backend: Backend):
        self.backend = backend

    async def _find_user(self, column: str, value: str) -> Optional[User]:
        rows = await self.backend.select("users", [eq(column, value)], limit=1)
        return first(rows).map(User.from_row).get_or_else(None)

    async def login(self, username: str, password: str, session: Session) -> Result:
        check = validate_login_form(username, password)
        if not check.is_valid:
            return Result(False, check.message)

        try:
            user = await self._find_user("username", username)
        except PersistenceError as exc:
            logger.error("Login error: %s", exc)
            return Result(False, "An error occurred during login.")
        except Exception:
            logger.exception("Login error")
            return Result(False, "An error occurred during login.")

        if user is None or not hmac.compare_digest(user.password.encode(), password.encode()):
            logger.info("Failed login for %r", username)
            return Result(False, INVALID_CREDENTIALS)

        data = UserData.from_user(user)
        session.start(data)
        logger.info("User %s logged in", user.id)
        return Result(True, "Login successful!", data)

    async def register(
        self,
        full_name: str,
        email: str,
        username: str,
        password: str,
        confirm_password: Optional[str] = None,
    ) -> Result:
        if not full_name or not email or not username or not password:
            return Result(False, "Please fill in all fields!")

        check = validate_registration_form(
            full_name,
            email,
            username,
            password,
            password if confirm_password is None else confirm_password,
        )
        if not check.is_valid:
            return Result(False, check.message)

        try:
            if await self._find_user("username", username) is not None:
                return Result(False, "Username already exists!")
            if await self._find_user("email", email) is not None:
                return Result(False, "Email already exists!")

            row = await self.backend.insert("users", {
                "full_name": full_name,
                "email": email,
                "username": username,
                "password": password,
            })
        except PersistenceError as exc:
            logger.error("Registration error: %s", exc)
            if exc.is_constraint_violation:
                return Result(False, "Username or email already exists!")
            return Result(False, "Registration failed: " + exc.message)
        except Exception:
            logger.exception("Registration error")
            return Result(False, "An error occurred during registration.")

        logger.info("Registered user %s", row["id"])
        return Result(True, "Registration successful! Please login.", UserData.from_user(User.from_row(row)))

    def logout(self, session: Session) -> None:
        session.clear()

    def is_authenticated(self, session: Session) -> bool:
        return session.is_authenticated

    def current_user(self, session: Session) -> Optional[UserData]:
        return session.user

    def current_user_id(self, session: Session) -> Optional[str]:
        return session.user_id

    def require_user(self, session: Session) -> UserData:
        if not session.is_authenticated:
            raise AuthError("No user logged in")
        return session.user

    def require_auth(self, session: Session, navigate: Callable[[str], None]) -> bool:
        """Send unauthenticated callers to the login page."""
        try:
            self.require_user(session)
        except AuthError as exc:
            logger.error("%s", exc.message)
            navigate(LOGIN_PATH)
            return False
        return True
