"""Device id and optional human identity used to attribute audit entries.

Nothing here authenticates anybody: the identity is whatever the user
typed in the settings screen.
"""

import logging
import secrets
import string
from dataclasses import dataclass

from .settings import Settings

logger = logging.getLogger(__name__)

DEVICE_ID_KEY = "device_id"
IDENTITY_KEY = "user_identity"
DEVICE_ID_PREFIX = "MOB-"
UNKNOWN = "Unknown"

_BASE36 = string.digits + string.ascii_uppercase


@dataclass
class UserIdentity:
    name: str
    email: str


def generate_device_id() -> str:
    """Return ``MOB-`` followed by 6 random base36 characters."""
    return DEVICE_ID_PREFIX + "".join(secrets.choice(_BASE36) for _ in range(6))


class IdentityRegistry:
    """Lazily initialised device id and identity, backed by ``Settings``."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._device_id: str | None = None

    @property
    def device_id(self) -> str:
        """Stable identifier of this install, generated on first access."""
        if self._device_id is None:
            device_id = self._settings.get(DEVICE_ID_KEY)
            if not device_id:
                device_id = generate_device_id()
                self._settings.set(DEVICE_ID_KEY, device_id)
                logger.info(f"Generated device id {device_id}")
            self._device_id = device_id
        return self._device_id

    @property
    def identity(self) -> UserIdentity | None:
        stored = self._settings.get(IDENTITY_KEY)
        if not stored:
            return None
        return UserIdentity(name=stored.get("name", ""), email=stored.get("email", ""))

    def set_identity(self, name: str, email: str) -> UserIdentity:
        identity = UserIdentity(name=name.strip(), email=email.strip())
        self._settings.set(IDENTITY_KEY, {"name": identity.name, "email": identity.email})
        logger.info(f"Identity set to {identity.name} on {self.device_id}")
        return identity

    def clear_identity(self) -> None:
        self._settings.delete(IDENTITY_KEY)

    def stamp(self) -> tuple[str, str, str]:
        """Return ``(user_name, user_email, device_id)`` for an audit entry."""
        identity = self.identity
        name = identity.name if identity and identity.name else UNKNOWN
        email = identity.email if identity and identity.email else UNKNOWN
        return name, email, self.device_id
