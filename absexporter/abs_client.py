import logging
from typing import Optional, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from .config import Settings, settings
from .models import (
    Library,
    LibraryDetail,
    LibrariesResponse,
    ListeningSession,
    SessionsPage,
    User,
    UsersResponse,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class UpstreamError(Exception):
    """Base class for failures talking to Audiobookshelf."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


class TransportError(UpstreamError):
    """The request never produced a response (connect error, timeout, ...)."""


class UpstreamStatusError(UpstreamError):
    def __init__(self, path: str, status_code: int):
        super().__init__(path, f"bad status {status_code}")
        self.status_code = status_code


class DecodeError(UpstreamError):
    """The response body did not match the expected shape."""


class AudiobookshelfClient:
    def __init__(self, config: Optional[Settings] = None):
        config = config or settings
        self.base_url = config.abs_base_url
        self.api_key = config.abs_api_key
        self.timeout = config.request_timeout_seconds
        self.max_pages = config.max_session_pages

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        return {"Authorization": f"Bearer {self.api_key}"}

    async def _get(
        self, path: str, model: type[ModelT], params: Optional[dict] = None
    ) -> ModelT:
        """GET a resource and decode it into ``model``.

        Raises TransportError, UpstreamStatusError or DecodeError.
        """
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    f"{self.base_url}{path}",
                    params=params,
                    headers=self._headers(),
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            raise TransportError(path, str(e) or type(e).__name__) from e

        if response.status_code >= 400:
            raise UpstreamStatusError(path, response.status_code)

        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise DecodeError(path, f"unexpected response body: {e}") from e

    async def get_libraries(self) -> list[Library]:
        envelope = await self._get("/api/libraries", LibrariesResponse)
        return envelope.libraries

    async def get_library_detail(self, library_id: str) -> LibraryDetail:
        return await self._get(f"/api/libraries/{quote(library_id, safe='')}/stats", LibraryDetail)

    async def get_users(self) -> list[User]:
        envelope = await self._get("/api/users", UsersResponse)
        return envelope.users

    async def get_all_sessions(
        self,
    ) -> tuple[list[ListeningSession], Optional[UpstreamError]]:
        """Fetch every page of /api/sessions.

        Pages are requested in order until the page index reaches the page count
        reported by the server, or ``max_pages`` requests have been made. On a
        failed page the sessions collected so far are returned with the error.
        """
        sessions: list[ListeningSession] = []
        page = 0
        while page < self.max_pages:
            try:
                result = await self._get("/api/sessions", SessionsPage, params={"page": page})
            except UpstreamError as e:
                return sessions, e

            sessions.extend(result.sessions)
            page += 1
            if page >= result.num_pages:
                break
        else:
            logger.warning(
                f"Stopped session pagination after {self.max_pages} pages; "
                "server still reports more"
            )

        return sessions, None
