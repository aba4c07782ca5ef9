"""
Auth API client (hosted GoTrue endpoints)
"""
from typing import Any, Dict, Optional, Tuple
import logging

from .backend import BackendClient
from ..exceptions import BackendError
from ..schemas import AuthUser, Session, parse_model

logger = logging.getLogger(__name__)

AUTH_PREFIX = "/auth/v1"


class AuthAPI:
    """Thin wrapper over the hosted auth endpoints"""

    def __init__(self, backend: BackendClient):
        self.backend = backend

    async def sign_up(
        self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None
    ) -> Tuple[AuthUser, Optional[Session]]:
        """
        Register a new account

        Returns:
            The new user, and a session when the backend signs the user in
            immediately (None when email confirmation is required first)
        """
        response = await self.backend.request(
            "POST",
            f"{AUTH_PREFIX}/signup",
            json={"email": email, "password": password, "data": metadata or {}},
        )
        body = self.backend.decode_json(response)
        if not isinstance(body, dict):
            raise BackendError(details="Malformed sign up response")
        if body.get("access_token"):
            session = parse_model(Session, body)
            return session.user, session
        return parse_model(AuthUser, body.get("user") or body), None

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        response = await self.backend.request(
            "POST",
            f"{AUTH_PREFIX}/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return parse_model(Session, self.backend.decode_json(response))

    async def refresh(self, refresh_token: str) -> Session:
        response = await self.backend.request(
            "POST",
            f"{AUTH_PREFIX}/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        return parse_model(Session, self.backend.decode_json(response))

    async def sign_out(self) -> None:
        await self.backend.request("POST", f"{AUTH_PREFIX}/logout")

    async def get_user(self) -> AuthUser:
        response = await self.backend.request("GET", f"{AUTH_PREFIX}/user")
        return parse_model(AuthUser, self.backend.decode_json(response))

    async def update_user(self, attributes: Dict[str, Any]) -> AuthUser:
        """Update email, password or metadata ("data") of the signed-in user"""
        response = await self.backend.request(
            "PUT", f"{AUTH_PREFIX}/user", json=attributes
        )
        return parse_model(AuthUser, self.backend.decode_json(response))

    async def recover(self, email: str) -> None:
        """Send a password reset email"""
        await self.backend.request(
            "POST", f"{AUTH_PREFIX}/recover", json={"email": email}
        )
