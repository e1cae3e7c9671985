"""Read-only reporting over cache state.

Nothing here fetches from upstream or writes to the cache.
"""

import json
import math
from datetime import datetime
from typing import Optional
import logging

from app.config import Settings
from app.services.cache import CacheStore
from app.services.expiration import (
    CINEMAS_KEY,
    FixedWindow,
    NextWeekdayBoundary,
    failure_policy,
    movies_key,
    next_weekday_boundary,
    policy_for_key,
)

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S UTC"
NEXT_REQUEST = "on next request"


def remaining_hours(expires_at: datetime, now: datetime) -> float:
    """Hours until expiry, never negative, rounded to 2 decimals."""
    return round(max(0.0, (expires_at - now).total_seconds() / 3600), 2)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.strftime(TIMESTAMP_FORMAT)


class DiagnosticsReporter:
    """Operational views of the cinema and movie cache keys."""

    def __init__(self, cache: CacheStore, settings: Settings):
        self.cache = cache
        self.settings = settings

    def tracked_keys(self) -> list[tuple[str, Optional[int]]]:
        """(key, cinema_id) pairs; cinema_id is None for the cinema list."""
        keys: list[tuple[str, Optional[int]]] = [(CINEMAS_KEY, None)]
        for cinema_id in self.settings.allowed_cinema_ids:
            keys.append((movies_key(cinema_id), cinema_id))
        return keys

    async def stats(self, now: Optional[datetime] = None) -> dict:
        """Hit/miss status and remaining TTL per key, plus call bounds."""
        now = now or self.cache.clock()

        cinemas = None
        movies = []
        for key, cinema_id in self.tracked_keys():
            report = await self._key_status(key, now)
            if cinema_id is None:
                cinemas = report
            else:
                report["cinema_id"] = cinema_id
                movies.append(report)

        reports = [cinemas] + movies
        return {
            "generated_at": format_timestamp(now),
            "cinemas": cinemas,
            "movies": movies,
            "summary": {
                "tracked_keys": len(reports),
                "hits": sum(1 for r in reports if r["status"] == "hit"),
                "misses": sum(1 for r in reports if r["status"] == "miss"),
            },
            "call_limits": self._call_limits(),
        }

    async def cache_inspection(self, now: Optional[datetime] = None) -> dict:
        """Raw per-key entry metadata."""
        now = now or self.cache.clock()
        entries = []

        for key, _ in self.tracked_keys():
            try:
                entry = await self.cache.get_entry(key)
            except Exception as e:
                logger.warning(f"Could not read cache entry {key}: {e}")
                entries.append({
                    "key": key,
                    "exists": False,
                    "fresh": False,
                    "remaining_seconds": 0,
                    "error": "unreadable",
                })
                continue

            if entry is None:
                entries.append({
                    "key": key,
                    "exists": False,
                    "fresh": False,
                    "remaining_seconds": 0,
                })
                continue

            value = entry.value if isinstance(entry.value, dict) else {}
            records = value.get("data")
            entries.append({
                "key": key,
                "exists": True,
                "fresh": entry.is_fresh(now),
                "created_at": format_timestamp(entry.created_at),
                "expires_at": format_timestamp(entry.expires_at),
                "age_seconds": int((now - entry.created_at).total_seconds()),
                "remaining_seconds": max(0, int((entry.expires_at - now).total_seconds())),
                "record_count": len(records) if isinstance(records, list) else 0,
                "payload_bytes": len(json.dumps(entry.value, default=str).encode("utf-8")),
            })

        return {
            "generated_at": format_timestamp(now),
            "backend": self.settings.cache_backend,
            "entries": entries,
        }

    def frequency_proof(self, now: Optional[datetime] = None) -> dict:
        """Explain, from configuration alone, how often upstream can be called."""
        now = now or self.cache.clock()
        limits = self._call_limits()
        cinemas_policy = policy_for_key(CINEMAS_KEY, self.settings)
        movies_policy = NextWeekdayBoundary(self.settings.movies_cache_weekday)
        tracked = len(self.settings.allowed_cinema_ids)

        explanation = [
            f"Cinema list is cached with a {cinemas_policy.describe()}, so upstream "
            f"getCinemas is called at most once per window "
            f"(at most {limits['cinemas']['max_calls_per_year']} times a year).",
            f"Each cinema's movie list is cached {movies_policy.describe()}, so "
            f"getMovieListMinimal is called at most once per cinema per week.",
            f"With {tracked} allow-listed cinemas, movie fetches are bounded by "
            f"{limits['movies']['max_calls_per_week']} per week for exposed cinemas.",
        ]
        if self.settings.cache_single_flight:
            explanation.append(
                "Concurrent misses for the same key wait on a single fetch within one process."
            )
        else:
            explanation.append(
                "Concurrent misses for the same key may each call upstream once."
            )

        failed = failure_policy(self.settings)
        if failed is None:
            explanation.append(
                "A failed fetch is stored as an empty list for the full window, "
                "so failures do not raise the call rate."
            )
        else:
            explanation.append(
                f"A failed fetch is stored for a {failed.describe()}, so while upstream "
                f"is failing a key may be retried once per that window."
            )

        return {
            "generated_at": format_timestamp(now),
            "limits": limits,
            "next_movies_boundary": format_timestamp(
                next_weekday_boundary(now, self.settings.movies_cache_weekday)
            ),
            "explanation": explanation,
        }

    async def _key_status(self, key: str, now: datetime) -> dict:
        try:
            meta = await self.cache.metadata(key)
        except Exception as e:
            logger.warning(f"Could not read cache metadata for {key}: {e}")
            return {
                "key": key,
                "status": "miss",
                "remaining_hours": 0.0,
                "expires_at": None,
                "next_upstream_call": NEXT_REQUEST,
                "error": "unreadable",
            }

        if meta is None or not meta.exists:
            return {
                "key": key,
                "status": "miss",
                "remaining_hours": 0.0,
                "expires_at": format_timestamp(meta.expires_at) if meta else None,
                "next_upstream_call": NEXT_REQUEST,
            }

        return {
            "key": key,
            "status": "hit",
            "remaining_hours": remaining_hours(meta.expires_at, now),
            "created_at": format_timestamp(meta.created_at),
            "expires_at": format_timestamp(meta.expires_at),
            "next_upstream_call": format_timestamp(meta.expires_at),
        }

    def _call_limits(self) -> dict:
        window: FixedWindow = policy_for_key(CINEMAS_KEY, self.settings)
        window_days = window.duration.total_seconds() / 86400
        tracked = len(self.settings.allowed_cinema_ids)

        return {
            "cinemas": {
                "window_days": self.settings.cinemas_cache_ttl_days,
                "max_calls_per_window": 1,
                "max_calls_per_year": math.ceil(366 / window_days),
            },
            "movies": {
                "boundary_weekday": self.settings.movies_cache_weekday,
                "max_calls_per_cinema_per_week": 1,
                "max_calls_per_cinema_per_year": 53,
                "tracked_cinemas": tracked,
                "max_calls_per_week": tracked,
            },
        }
