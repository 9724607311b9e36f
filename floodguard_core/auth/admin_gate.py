"""
Local administrative gate for FloodGuard.

⚠️ LOCAL GATE ONLY
This decides whether this process may call the administrative delete
operations. It is not a server-side access control: anyone holding the remote
credential can still write to the mirror directly.

Configure it with FLOODGUARD_ADMIN_USER and FLOODGUARD_ADMIN_PASSWORD_HASH
(a bcrypt hash produced by `hash_password`).
"""

import bcrypt
from typing import Optional

from floodguard_core.errors import AuthorizationError
from floodguard_core.logging import get_logger

logger = get_logger(__name__)


class AdminGate:
    """
    Username/password check in front of administrative operations.

    With no configured credentials every login fails.
    """

    def __init__(self, username: Optional[str] = None, password_hash: Optional[str] = None):
        self._username = username or None
        self._password_hash = password_hash or None
        self._authenticated = False

    @property
    def is_configured(self) -> bool:
        return self._username is not None and self._password_hash is not None

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    def login(self, username: str, password: str) -> bool:
        """
        Check credentials and open the gate on success.

        Returns:
            bool: True if the credentials match
        """
        if not self.is_configured:
            logger.warning("Admin login attempted but no admin credentials are configured")
            return False

        if username != self._username:
            logger.warning("Admin login failed")
            return False

        try:
            matches = bcrypt.checkpw(password.encode(), self._password_hash.encode())
        except ValueError as e:
            logger.error(f"Configured admin password hash is not a valid bcrypt hash: {e}")
            return False

        if not matches:
            logger.warning("Admin login failed")
            return False

        self._authenticated = True
        logger.info(f"Admin '{username}' logged in")
        return True

    def logout(self) -> None:
        self._authenticated = False

    def require(self, operation: str) -> None:
        """
        Raise unless logged in.

        Raises:
            AuthorizationError: the gate is closed
        """
        if not self._authenticated:
            raise AuthorizationError(
                f"Admin login required to {operation}",
                operation=operation,
            )


# ==================== PASSWORD HASHING UTILITY ====================

def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.
    Use this to produce FLOODGUARD_ADMIN_PASSWORD_HASH.

    Args:
        password: Plain text password to hash

    Returns:
        str: Hashed password

    Example:
        >>> hash_password("mypassword123")
        '$2b$12$...'
    """
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


if __name__ == "__main__":
    import getpass

    print("FloodGuard Admin Password Hash Generator")
    print("=" * 50)
    print(f"\nFLOODGUARD_ADMIN_PASSWORD_HASH={hash_password(getpass.getpass('Password: '))}")
