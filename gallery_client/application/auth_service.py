"""
Auth service - sign-in state, accounts and user profiles
"""
from typing import Callable, Optional
import logging

from .session import AuthEvent, SessionContext, SessionListener
from ..cache import TTLCache
from ..config import settings
from ..exceptions import (
    ConflictError,
    GalleryError,
    NotAuthenticatedError,
    NotFoundError,
    WeakPasswordError,
)
from ..infrastructure.auth_api import AuthAPI
from ..infrastructure.backend import BackendClient, Query, first_row
from ..infrastructure.image_processor import ImageProcessor
from ..infrastructure.storage import StorageManager
from ..schemas import AuthUser, ProfileUpdate, Session, UserProfile, parse_model
from ..utils.passwords import validate_password

logger = logging.getLogger(__name__)

METADATA_FIELDS = ("username", "full_name", "avatar_url")


def _profile_key(user_id: str) -> str:
    return f"profile:{user_id}"


def _username_key(username: str) -> str:
    return f"username:{username.lower()}"


def _fallback_username(user_id: str) -> str:
    return f"user_{user_id[:8]}"


class AuthService:
    """
    Account and profile operations

    Every session change goes through the shared SessionContext, which also
    keeps the backend's bearer token in step.
    """

    def __init__(
        self,
        backend: BackendClient,
        auth_api: AuthAPI,
        session: SessionContext,
        avatar_storage: Optional[StorageManager] = None,
        cache: Optional[TTLCache] = None,
    ):
        self.backend = backend
        self.auth_api = auth_api
        self.session = session
        self.avatar_storage = avatar_storage
        self.cache = cache or TTLCache(settings.CACHE_TTL_PROFILES)
        self.image_processor = ImageProcessor()

    def _set_session(self, session: Optional[Session], event: Optional[AuthEvent] = None):
        self.backend.set_access_token(session.access_token if session else None)
        self.session.set_session(session, event)

    def _cache_profile(self, profile: UserProfile):
        self.cache.set(_profile_key(profile.id), profile)
        self.cache.set(_username_key(profile.username), profile)

    def _clear_user_cache(self, user_id: str):
        self.cache.invalidate(_profile_key(user_id))
        self.cache.invalidate_matching("username:")

    def _require_user(self) -> AuthUser:
        user = self.session.user
        if user is None:
            raise NotAuthenticatedError()
        return user

    # Sessions
    async def sign_up(self, email: str, password: str, username: str) -> Optional[Session]:
        """
        Create an account and its profile row

        Args:
            email: Login email
            password: Must pass the strength rules
            username: Public handle, also used as the initial display name

        Returns:
            The new session, or None when the account awaits email confirmation

        Raises:
            WeakPasswordError: If the password fails the strength rules
            ConflictError: If the email is already registered
        """
        result = validate_password(password)
        if not result.is_valid:
            raise WeakPasswordError(result.errors[0])

        user, session = await self.auth_api.sign_up(
            email, password, {"username": username, "full_name": username}
        )
        if session:
            self._set_session(session)

        # The account exists at this point; a missing profile is repaired on sign in
        for candidate in (username, _fallback_username(user.id)):
            try:
                await self._create_profile(user.id, candidate, candidate)
                break
            except GalleryError as e:
                logger.error(f"Failed to create profile {candidate} for {user.id}: {e}")

        logger.info(f"User {user.id} signed up")
        return session

    async def sign_in(self, email: str, password: str) -> Session:
        session = await self.auth_api.sign_in_with_password(email, password)
        self._set_session(session)
        await self.ensure_user_profile(session.user)
        logger.info(f"User {session.user.id} signed in")
        return session

    async def sign_out(self) -> None:
        """Revoke the session; the local session is cleared even if revocation fails"""
        user_id = self.session.user_id
        try:
            if self.session.is_authenticated:
                await self.auth_api.sign_out()
        finally:
            self._set_session(None)
            logger.info(f"User {user_id} signed out")

    async def refresh_session(self) -> Session:
        current = self.session.session
        if current is None or not current.refresh_token:
            raise NotAuthenticatedError()
        session = await self.auth_api.refresh(current.refresh_token)
        self._set_session(session, AuthEvent.TOKEN_REFRESHED)
        return session

    async def get_current_user(self) -> Optional[AuthUser]:
        """Re-read the signed-in user from the auth API"""
        if not self.session.is_authenticated:
            return None
        user = await self.auth_api.get_user()
        self.session.update_user(user)
        return user

    def on_auth_state_change(self, listener: SessionListener) -> Callable[[], None]:
        return self.session.subscribe(listener)

    # Passwords
    async def reset_password(self, email: str) -> None:
        await self.auth_api.recover(email)

    async def update_password(self, new_password: str) -> None:
        self._require_user()
        result = validate_password(new_password)
        if not result.is_valid:
            raise WeakPasswordError(result.errors[0])
        user = await self.auth_api.update_user({"password": new_password})
        self.session.update_user(user)

    # Profiles
    async def _create_profile(
        self, user_id: str, username: str, full_name: Optional[str]
    ) -> UserProfile:
        rows = await self.backend.insert(
            "user_profiles",
            {
                "id": user_id,
                "username": username,
                "full_name": full_name,
                "avatar_url": None,
                "bio": None,
                "website": None,
            },
        )
        profile = parse_model(UserProfile, first_row(rows, "profile"))
        self._cache_profile(profile)
        return profile

    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        """Profile by user id, cached; None if missing or the lookup failed"""
        cached = self.cache.get(_profile_key(user_id))
        if cached is not None:
            return cached

        try:
            row = await self.backend.select_one(
                Query("user_profiles").eq("id", user_id).limit(1)
            )
        except Exception as e:
            logger.warning(f"Failed to load profile {user_id}: {e}")
            return None

        if row is None:
            return None
        profile = parse_model(UserProfile, row)
        self._cache_profile(profile)
        return profile

    async def get_user_by_username(self, username: str) -> Optional[UserProfile]:
        cached = self.cache.get(_username_key(username))
        if cached is not None:
            return cached

        try:
            row = await self.backend.select_one(
                Query("user_profiles").eq("username", username).limit(1)
            )
        except Exception as e:
            logger.warning(f"Failed to look up username {username}: {e}")
            return None

        if row is None:
            return None
        profile = parse_model(UserProfile, row)
        self._cache_profile(profile)
        return profile

    async def ensure_user_profile(self, user: AuthUser) -> Optional[UserProfile]:
        """Create the profile row for a user who signed in without one"""
        profile = await self.get_user_profile(user.id)
        if profile is not None:
            return profile

        metadata = user.user_metadata
        try:
            return await self._create_profile(
                user.id,
                metadata.get("username") or _fallback_username(user.id),
                metadata.get("full_name") or "User",
            )
        except Exception as e:
            logger.error(f"Failed to create missing profile for {user.id}: {e}")
            return None

    async def is_username_available(
        self, username: str, exclude_user_id: Optional[str] = None
    ) -> bool:
        """False when taken, or when availability could not be checked"""
        query = Query("user_profiles", "id").eq("username", username)
        if exclude_user_id:
            query.neq("id", exclude_user_id)
        try:
            rows = await self.backend.select(query)
        except Exception as e:
            logger.warning(f"Failed to check username {username}: {e}")
            return False
        return len(rows) == 0

    async def update_user_profile(self, updates: ProfileUpdate) -> UserProfile:
        """
        Update the signed-in user's profile

        Raises:
            NotAuthenticatedError: If nobody is signed in
            ConflictError: If the new username is taken
        """
        user = self._require_user()
        values = updates.model_dump(exclude_unset=True)

        if updates.username and not await self.is_username_available(updates.username, user.id):
            raise ConflictError("Username is already taken")

        rows = await self.backend.update(
            Query("user_profiles").eq("id", user.id), values
        )
        if not rows:
            raise NotFoundError("Profile not found")
        self._clear_user_cache(user.id)
        profile = parse_model(UserProfile, rows[0])
        self._cache_profile(profile)

        # Mirror display fields into the auth user metadata
        mirrored = {k: v for k, v in values.items() if k in METADATA_FIELDS}
        if mirrored:
            metadata = {**user.user_metadata, **mirrored}
            self.session.update_user(await self.auth_api.update_user({"data": metadata}))

        logger.info(f"User {user.id} updated profile")
        return profile

    async def upload_avatar(self, data: bytes, filename: str, content_type: str) -> str:
        """Store a new avatar for the signed-in user, returns its public URL"""
        user = self._require_user()
        if self.avatar_storage is None:
            raise RuntimeError("Avatar storage not configured")

        content_type = self.image_processor.validate_image_file(data, content_type)
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "jpg"
        key = await self.avatar_storage.upload_file(
            data, f"{user.id}/avatar.{ext}", content_type=content_type, upsert=True
        )
        return self.avatar_storage.get_public_url(key)
