"""IGDB catalog gateway: bearer-token handling and Apicalypse queries."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import date, datetime, timezone
from functools import lru_cache
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import requests

from ..core.config import (
    IGDB_API_URL,
    IGDB_REQUEST_TIMEOUT_SECONDS,
    IGDB_TOKEN_MAX_ATTEMPTS,
    IGDB_TOKEN_REFRESH_MARGIN_SECONDS,
    IGDB_TOKEN_RETRY_DELAY_SECONDS,
    IGDB_TOKEN_TIMEOUT_SECONDS,
    IGDB_TOKEN_URL,
    TWITCH_CLIENT_ID,
    TWITCH_CLIENT_SECRET,
)
from ..core.errors import CatalogUnavailable, InvalidInput

logger = logging.getLogger(__name__)

GAME_FIELDS = (
    "name, slug, summary, cover.url, first_release_date, total_rating, "
    "total_rating_count, genres.name, platforms.name, "
    "involved_companies.company.name, involved_companies.developer, "
    "involved_companies.publisher"
)
MAX_PAGE_SIZE = 50
# used when the token endpoint omits expires_in
DEFAULT_TOKEN_TTL_SECONDS = 3600

GENRE_CODES: Dict[str, Tuple[int, ...]] = {
    "rpg": (12,),
    "action": (4, 25),
    "adventure": (31,),
    "shooter": (5,),
    "strategy": (11, 15, 16),
    "tactical": (24,),
    "indie": (32,),
    "platformer": (8,),
    "puzzle": (9,),
    "racing": (10,),
    "sports": (14,),
    "fighting": (4,),
    "simulator": (13,),
    "arcade": (33,),
}
PLATFORM_CODES: Dict[str, Tuple[int, ...]] = {
    "pc": (6,),
    "playstation": (7, 8, 9, 48, 167),
    "xbox": (11, 12, 49, 169),
    "nintendo": (4, 18, 19, 21, 130),
    "switch": (130,),
    "mac": (14,),
    "linux": (3,),
    "ios": (39,),
    "android": (34,),
}
SORT_CLAUSES: Dict[str, str] = {
    "popular": "total_rating_count desc",
    "rating": "total_rating desc",
    "newest": "first_release_date desc",
    "oldest": "first_release_date asc",
    "name": "name asc",
}
_SORT_ALIASES = {
    "-added": "popular",
    "popularity": "popular",
    "-rating": "rating",
    "-released": "newest",
    "released": "oldest",
}
_ALL_SLUGS = {"", "all"}


def _normalize_slug(value: Optional[str]) -> str:
    return str(value or "").strip().lower().replace(" ", "-").replace("_", "-")


def _resolve_codes(value: Optional[str], table: Dict[str, Tuple[int, ...]], label: str) -> Tuple[int, ...]:
    slug = _normalize_slug(value)
    if slug in _ALL_SLUGS:
        return ()
    codes = table.get(slug)
    if codes is None:
        raise InvalidInput(f"Unknown {label}: {value}")
    return codes


def resolve_sort_key(ordering: Optional[str]) -> str:
    key = str(ordering or "").strip().lower()
    if not key:
        return "popular"
    key = _SORT_ALIASES.get(key, key)
    if key not in SORT_CLAUSES:
        raise InvalidInput(f"Unknown sort: {ordering}")
    return key


def _parse_day(raw: str) -> date:
    return datetime.strptime(raw.strip(), "%Y-%m-%d").date()


def parse_date_range(dates: str) -> Tuple[int, int]:
    """Turn ``YYYY-MM-DD,YYYY-MM-DD`` into inclusive UTC epoch bounds."""

    parts = [part for part in str(dates).split(",")]
    if len(parts) != 2:
        raise InvalidInput("dates must look like YYYY-MM-DD,YYYY-MM-DD")
    try:
        start, end = _parse_day(parts[0]), _parse_day(parts[1])
    except ValueError:
        raise InvalidInput("dates must look like YYYY-MM-DD,YYYY-MM-DD")
    if end < start:
        raise InvalidInput("dates range ends before it starts")
    start_ts = int(datetime(start.year, start.month, start.day, tzinfo=timezone.utc).timestamp())
    end_ts = int(datetime(end.year, end.month, end.day, tzinfo=timezone.utc).timestamp()) + 86399
    return start_ts, end_ts


def _escape_search(term: str) -> str:
    return term.replace("\\", "\\\\").replace('"', '\\"')


def build_games_query(
    *,
    search: Optional[str] = None,
    genre: Optional[str] = None,
    platform: Optional[str] = None,
    ordering: Optional[str] = None,
    dates: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
) -> str:
    term = (search or "").strip()
    sort_key = resolve_sort_key(ordering)
    if term:
        # IGDB ranks search hits by relevance; a sort clause would override it
        sort_key = None

    filters: List[str] = []
    genre_codes = _resolve_codes(genre, GENRE_CODES, "genre")
    if genre_codes:
        filters.append(f"genres = ({','.join(str(code) for code in genre_codes)})")
    platform_codes = _resolve_codes(platform, PLATFORM_CODES, "platform")
    if platform_codes:
        filters.append(f"platforms = ({','.join(str(code) for code in platform_codes)})")
    if dates:
        start_ts, end_ts = parse_date_range(dates)
        filters.append(f"first_release_date >= {start_ts} & first_release_date <= {end_ts}")
    if sort_key:
        sort_field = SORT_CLAUSES[sort_key].split()[0]
        filters.append(f"{sort_field} != null")

    size = min(max(int(page_size), 1), MAX_PAGE_SIZE)
    offset = (max(int(page), 1) - 1) * size

    clauses = [f"fields {GAME_FIELDS};"]
    if term:
        clauses.append(f'search "{_escape_search(term)}";')
    if filters:
        clauses.append(f"where {' & '.join(filters)};")
    if sort_key:
        clauses.append(f"sort {SORT_CLAUSES[sort_key]};")
    clauses.append(f"limit {size};")
    clauses.append(f"offset {offset};")
    return " ".join(clauses)


def build_game_lookup_query(igdb_id: int) -> str:
    return f"fields {GAME_FIELDS}; where id = {int(igdb_id)}; limit 1;"


class IGDBClient:
    """Talks to IGDB on behalf of the whole process.

    One instance owns the bearer token. Callers that need a token while a
    refresh is running all await that same refresh. When every attempt fails
    :meth:`get_token` returns ``None`` and :meth:`query` raises
    :class:`CatalogUnavailable`.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        token_url: str = IGDB_TOKEN_URL,
        api_url: str = IGDB_API_URL,
        session: Any = None,
        token_timeout: float = IGDB_TOKEN_TIMEOUT_SECONDS,
        request_timeout: float = IGDB_REQUEST_TIMEOUT_SECONDS,
        refresh_margin: float = IGDB_TOKEN_REFRESH_MARGIN_SECONDS,
        max_attempts: int = IGDB_TOKEN_MAX_ATTEMPTS,
        retry_delay: float = IGDB_TOKEN_RETRY_DELAY_SECONDS,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self.api_url = api_url.rstrip("/")
        self.token_timeout = token_timeout
        self.request_timeout = request_timeout
        self.refresh_margin = refresh_margin
        self.max_attempts = max(1, int(max_attempts))
        self.retry_delay = retry_delay
        self._session = session if session is not None else requests.Session()
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or time.time
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._pending: Optional[asyncio.Future] = None

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _token_is_fresh(self) -> bool:
        return bool(self._token) and self._clock() < self._token_expires_at - self.refresh_margin

    async def get_token(self) -> Optional[str]:
        if self._token_is_fresh():
            return self._token
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._refresh_token())
        # a cancelled waiter must not cancel the refresh other callers share
        return await asyncio.shield(self._pending)

    def invalidate_token(self, token: Optional[str] = None) -> None:
        if token is None or token == self._token:
            self._token = None
            self._token_expires_at = 0.0

    def _request_token(self) -> Tuple[str, float]:
        response = self._session.post(
            self.token_url,
            params={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "grant_type": "client_credentials",
            },
            timeout=self.token_timeout,
        )
        response.raise_for_status()
        data = response.json()
        return str(data["access_token"]), float(data.get("expires_in") or DEFAULT_TOKEN_TTL_SECONDS)

    async def _refresh_token(self) -> Optional[str]:
        try:
            if not self.configured:
                logger.error("IGDB credentials are not configured")
                return None
            for attempt in range(1, self.max_attempts + 1):
                try:
                    token, expires_in = await asyncio.to_thread(self._request_token)
                except (requests.RequestException, ValueError, KeyError, TypeError) as exc:
                    logger.warning(
                        "IGDB token request failed (attempt %d/%d): %s",
                        attempt,
                        self.max_attempts,
                        exc,
                    )
                    if attempt < self.max_attempts:
                        await self._sleep(self.retry_delay)
                    continue
                self._token = token
                self._token_expires_at = self._clock() + expires_in
                logger.info("New IGDB access token generated (expires in %ss)", int(expires_in))
                return token
            logger.error("IGDB auth failed after %d attempts", self.max_attempts)
            return None
        finally:
            self._pending = None

    def _post_query(self, endpoint: str, body: str, token: str):
        return self._session.post(
            f"{self.api_url}/{endpoint.strip('/')}",
            data=body.encode("utf-8"),
            headers={
                "Client-ID": self.client_id,
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
                "Content-Type": "text/plain",
            },
            timeout=self.request_timeout,
        )

    async def query(self, endpoint: str, body: str) -> List[Dict[str, Any]]:
        for attempt in range(2):
            token = await self.get_token()
            if token is None:
                raise CatalogUnavailable("IGDB access token unavailable")
            try:
                response = await asyncio.to_thread(self._post_query, endpoint, body, token)
            except requests.RequestException as exc:
                raise CatalogUnavailable(f"IGDB /{endpoint} request failed: {exc}") from exc

            if response.status_code == 401 and attempt == 0:
                logger.warning("IGDB rejected the cached token, refreshing")
                self.invalidate_token(token)
                continue
            if response.status_code >= 400:
                raise CatalogUnavailable(
                    f"IGDB /{endpoint} returned {response.status_code}: {response.text[:300]}"
                )
            try:
                data = response.json()
            except ValueError as exc:
                raise CatalogUnavailable(f"IGDB /{endpoint} returned invalid JSON") from exc
            if not isinstance(data, list):
                raise CatalogUnavailable(f"IGDB /{endpoint} returned {type(data).__name__}")
            return [item for item in data if isinstance(item, dict)]
        raise CatalogUnavailable("IGDB rejected a freshly issued token")

    async def fetch_game(self, igdb_id: int) -> Optional[Dict[str, Any]]:
        rows = await self.query("games", build_game_lookup_query(igdb_id))
        return rows[0] if rows else None

    async def search_games(self, **params: Any) -> List[Dict[str, Any]]:
        return await self.query("games", build_games_query(**params))


@lru_cache(maxsize=1)
def get_igdb_client() -> IGDBClient:
    return IGDBClient(TWITCH_CLIENT_ID, TWITCH_CLIENT_SECRET)
