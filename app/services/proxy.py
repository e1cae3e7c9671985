"""Cinema and movie listings served through the read-through cache."""

from typing import Any, Optional
import logging

from app.config import Settings
from app.services.cache import CacheStore
from app.services.expiration import (
    CINEMAS_KEY,
    OutcomePolicy,
    failure_policy,
    movies_key,
    policy_for_key,
)
from app.services.upstream import UpstreamClient

logger = logging.getLogger(__name__)


def normalize_payload(raw: Any) -> tuple[dict, bool]:
    """
    Coerce an upstream response into ``{"data": [record, ...]}``.

    Returns:
        (payload, ok) where ok is False when the response did not carry a
        ``data`` list and the payload was replaced by an empty one
    """
    if isinstance(raw, dict) and isinstance(raw.get("data"), list):
        records = [record for record in raw["data"] if isinstance(record, dict)]
        dropped = len(raw["data"]) - len(records)
        if dropped:
            logger.warning(f"Dropped {dropped} non-object records from upstream data")
        return {"data": records}, True
    return {"data": []}, False


def _as_int(value: Any) -> Optional[int]:
    """Integer id from an int, an integral float or a digit string."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        return int(value.strip())
    return None


def _is_empty(value: Any) -> bool:
    # A "0" string counts as missing
    return not value or value == "0"


class ProxyService:
    """Builds cache keys, fetches on miss and post-processes listings."""

    def __init__(
        self,
        upstream: UpstreamClient,
        cache: CacheStore,
        settings: Settings,
    ):
        self.upstream = upstream
        self.cache = cache
        self.settings = settings
        self.allowed_cinema_ids = {int(cinema_id) for cinema_id in settings.allowed_cinema_ids}
        # Policies are fixed for the lifetime of the service
        self.cinemas_policy = policy_for_key(CINEMAS_KEY, settings)
        self.movies_policy = policy_for_key(movies_key(0), settings)
        self.failure_policy = failure_policy(settings)

    @property
    def fallback_poster_url(self) -> str:
        return f"{self.settings.asset_base_url.rstrip('/')}{self.settings.default_poster_path}"

    async def list_cinemas(self) -> list[dict]:
        """Allow-listed cinemas, in upstream order."""
        payload = await self._remember(CINEMAS_KEY, self.cinemas_policy, self.upstream.fetch_cinemas)

        return [
            cinema
            for cinema in payload["data"]
            if _as_int(cinema.get("cinema_id")) in self.allowed_cinema_ids
        ]

    async def list_movies(self, cinema_id: int) -> dict:
        """Movie listing for one cinema with ``poster_url`` on every record."""

        async def fetch():
            return await self.upstream.fetch_movies_by_cinema(cinema_id)

        payload = await self._remember(movies_key(cinema_id), self.movies_policy, fetch)

        movies = []
        for record in payload["data"]:
            # Copy so the cached payload is never mutated
            movie = dict(record)
            movie["poster_url"] = self._poster_url_for(movie)
            movies.append(movie)

        return {"data": movies}

    async def forget_cinemas(self) -> None:
        await self.cache.forget(CINEMAS_KEY)

    async def forget_movies(self, cinema_id: int) -> None:
        await self.cache.forget(movies_key(cinema_id))

    def _poster_url_for(self, movie: dict) -> str:
        poster = movie.get("movie_poster")
        movie_id = movie.get("movie_id")
        if not _is_empty(poster) and not _is_empty(movie_id):
            return self.upstream.poster_url(movie_id, poster, self.settings.poster_resolution)
        return self.fallback_poster_url

    async def _remember(self, key: str, success_policy, fetch) -> dict:
        policy = OutcomePolicy(success_policy, self.failure_policy)

        async def producer() -> dict:
            raw = await fetch()
            payload, ok = normalize_payload(raw)
            if not ok:
                policy.failed = True
                if raw is not None:
                    logger.warning(f"Upstream response for {key} has no data list, storing empty")
                else:
                    logger.warning(f"Upstream unavailable for {key}, storing empty")
            return payload

        stored = await self.cache.remember(key, policy, producer)
        payload, _ = normalize_payload(stored)
        return payload
