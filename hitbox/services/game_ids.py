from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from typing import Any, Union

from ..core.errors import InvalidInput

IGDB_PROVIDER = "igdb"
EXTERNAL_PROVIDERS = frozenset({IGDB_PROVIDER})
# catalog ids are stored in a signed 64-bit column
MAX_EXTERNAL_ID = 2**63 - 1

_EXTERNAL_RE = re.compile(r"^(?:(?P<provider>[a-z][a-z0-9_]*):)?(?P<id>\d{1,20})$")


@dataclass(frozen=True)
class LocalGameId:
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ExternalGameId:
    provider: str
    external_id: int

    def __str__(self) -> str:
        return f"{self.provider}:{self.external_id}"


GameRef = Union[LocalGameId, ExternalGameId]


def _as_local_id(text: str) -> str | None:
    try:
        parsed = uuid.UUID(text)
    except ValueError:
        return None
    return str(parsed)


def parse_game_ref(raw: Any) -> GameRef:
    """Classify an incoming game identifier once, at the API edge.

    Local records use UUID keys. Anything numeric (``1020``, ``"1020"``) or
    provider-qualified (``"igdb:1020"``) is a catalog id.
    """

    if isinstance(raw, bool) or raw is None:
        raise InvalidInput("Invalid game ID")
    if isinstance(raw, int):
        if raw <= 0 or raw > MAX_EXTERNAL_ID:
            raise InvalidInput("Invalid game ID")
        return ExternalGameId(IGDB_PROVIDER, raw)

    text = str(raw).strip()
    if not text:
        raise InvalidInput("Invalid game ID")

    local = _as_local_id(text)
    if local:
        return LocalGameId(local)

    match = _EXTERNAL_RE.match(text.lower())
    if not match:
        raise InvalidInput("Invalid game ID")
    provider = match.group("provider") or IGDB_PROVIDER
    if provider not in EXTERNAL_PROVIDERS:
        raise InvalidInput(f"Unsupported game provider: {provider}")
    external_id = int(match.group("id"))
    if external_id <= 0 or external_id > MAX_EXTERNAL_ID:
        raise InvalidInput("Invalid game ID")
    return ExternalGameId(provider, external_id)
