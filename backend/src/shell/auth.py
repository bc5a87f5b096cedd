"""Authentication - API key generation and validation.

Handles API key creation, hashing, and validation. Never stores plaintext keys.
A profile's id is the hash of its API key.
"""

import hashlib
import logging
import secrets
from datetime import datetime

from ..core.models import Profile, ProfileRole
from .store import RowStore, StoreError, to_row


logger = logging.getLogger(__name__)

# API key prefix for identification
API_KEY_PREFIX = "cch_"

PROFILES = "profiles"

# Admins are provisioned out of band
SELF_SERVICE_ROLES = (ProfileRole.CLIENT, ProfileRole.COACH)


def generate_api_key() -> str:
    """Generate a cryptographically secure API key.

    Returns:
        API key in format: cch_<random_chars>
    """
    random_part = secrets.token_urlsafe(32)
    return f"{API_KEY_PREFIX}{random_part}"


def hash_api_key(api_key: str) -> str:
    """Hash an API key to create a profile id.

    Uses SHA256 and truncates to 32 chars for the document ID.

    Args:
        api_key: The plaintext API key

    Returns:
        32-character hash to use as profile id
    """
    return hashlib.sha256(api_key.encode()).hexdigest()[:32]


def validate_api_key_format(api_key: str) -> bool:
    """Check if API key has valid format.

    Args:
        api_key: The API key to validate

    Returns:
        True if format is valid
    """
    if not api_key:
        return False
    if not api_key.startswith(API_KEY_PREFIX):
        return False
    if len(api_key) < 40:  # prefix + at least some random chars
        return False
    return True


class AuthClient:
    """Client for API key authentication operations.

    Handles profile registration and API key validation against the store.
    """

    def __init__(self, store: RowStore) -> None:
        """Initialize auth client.

        Args:
            store: Row store holding profiles
        """
        self._store = store

    def register_profile(
        self, email: str, role: ProfileRole, display_name: str | None = None
    ) -> tuple[str, str]:
        """Register a new profile and generate its API key.

        Args:
            email: User's email address
            role: client or coach
            display_name: Optional name shown to coaches

        Returns:
            Tuple of (api_key, profile_id) - api_key is only returned once!

        Raises:
            ValueError: If the role cannot be self-registered
        """
        if role not in SELF_SERVICE_ROLES:
            raise ValueError(f"Role cannot be self-registered: {role.value}")

        logger.info("Registering new %s: %s", role.value, email)

        api_key = generate_api_key()
        profile_id = hash_api_key(api_key)

        profile = Profile(
            id=profile_id,
            email=email,
            role=role,
            display_name=display_name,
            api_key_hash=profile_id,
            created_at=datetime.utcnow(),
        )
        self._store.insert(PROFILES, to_row(profile))

        logger.info("Profile registered successfully: %s", profile_id[:8])
        return api_key, profile_id

    def validate_api_key(self, api_key: str) -> str | None:
        """Validate an API key and return the profile id if valid.

        Args:
            api_key: The API key to validate

        Returns:
            profile id if valid, None if invalid
        """
        if not validate_api_key_format(api_key):
            logger.warning("Invalid API key format")
            return None

        profile_id = hash_api_key(api_key)
        if self.profile_exists(profile_id):
            logger.debug("API key validated for profile: %s", profile_id[:8])
            return profile_id

        logger.warning("API key not found in database")
        return None

    def get_profile(self, profile_id: str) -> Profile | None:
        """Get profile by ID.

        Args:
            profile_id: The profile's ID (hashed API key)

        Returns:
            Profile if found, None otherwise
        """
        try:
            row = self._store.get(PROFILES, profile_id)
        except StoreError:
            return None
        return Profile.model_validate(row) if row else None

    def profile_exists(self, profile_id: str) -> bool:
        """Check if a profile exists."""
        try:
            return self._store.get(PROFILES, profile_id) is not None
        except StoreError:
            return False
