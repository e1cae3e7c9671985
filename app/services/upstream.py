import httpx
from typing import Any, Optional
import logging

from app.config import Settings

logger = logging.getLogger(__name__)

CINEMAS_PATH = "/getCinemas"
MOVIES_PATH = "/getMovieListMinimal"


class UpstreamClient:
    """
    Thin client for the third-party cinemas/movies API.

    Every call is an authenticated GET. Failures are logged and reported as
    None so callers can degrade to an empty listing.
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        api_key: str,
        image_base: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.api_key = api_key
        self.image_base = image_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "UpstreamClient":
        return cls(
            base_url=settings.movies_api_base_url,
            username=settings.movies_api_username,
            api_key=settings.movies_api_key,
            image_base=settings.movies_api_image_base,
            timeout=settings.movies_api_timeout,
            transport=transport,
        )

    async def fetch_cinemas(self) -> Optional[Any]:
        """Fetch the full upstream cinema list."""
        return await self._get(CINEMAS_PATH)

    async def fetch_movies_by_cinema(self, cinema_id: int) -> Optional[Any]:
        """Fetch the minimal movie list for one cinema."""
        return await self._get(MOVIES_PATH, params={"cinema_id": cinema_id})

    def poster_url(self, movie_id: Any, file_name: str, resolution: int) -> str:
        """Build a poster image URL. No network call is made."""
        return f"{self.image_base}/{movie_id}/{resolution}/{file_name}"

    async def _get(self, path: str, params: Optional[dict] = None) -> Optional[Any]:
        url = f"{self.base_url}{path}"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                auth=httpx.BasicAuth(self.username, self.api_key),
                transport=self._transport,
            ) as client:
                response = await client.get(
                    url,
                    params=params,
                    headers={"Accept": "application/json"},
                )
                response.raise_for_status()

            return response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"Upstream HTTP error for {path}: {e.response.status_code}")
            return None
        except httpx.RequestError as e:
            logger.error(f"Upstream request error for {path}: {e}")
            return None
        except ValueError as e:
            logger.error(f"Upstream returned invalid JSON for {path}: {e}")
            return None
