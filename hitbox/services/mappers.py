from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional


def normalize_cover_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    cover = str(url).strip()
    if cover.startswith("//"):
        cover = f"https:{cover}"
    return cover.replace("t_thumb", "t_cover_big")


def epoch_to_date(value: Any) -> Optional[date]:
    if value in (None, ""):
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc).date()
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def _names(items: Optional[Iterable[Any]]) -> List[str]:
    names: List[str] = []
    for item in items or []:
        name = item.get("name") if isinstance(item, dict) else None
        if name and name not in names:
            names.append(str(name))
    return names


def _company_names(companies: Iterable[Dict[str, Any]], flag: Optional[str] = None) -> List[str]:
    names: List[str] = []
    for entry in companies:
        if flag and not entry.get(flag):
            continue
        company = entry.get("company") or {}
        name = company.get("name") if isinstance(company, dict) else None
        if name and name not in names:
            names.append(str(name))
    return names


def map_igdb_game(data: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten an IGDB ``games`` row into local ``Game`` columns."""

    companies = [entry for entry in data.get("involved_companies") or [] if isinstance(entry, dict)]
    developers = _company_names(companies, "developer") or _company_names(companies)
    publishers = _company_names(companies, "publisher")
    cover = data.get("cover") if isinstance(data.get("cover"), dict) else {}

    return {
        "igdb_id": int(data["id"]),
        "title": data.get("name") or "Untitled",
        "slug": data.get("slug"),
        "description": data.get("summary"),
        "cover_image": normalize_cover_url(cover.get("url")),
        "release_date": epoch_to_date(data.get("first_release_date")),
        "genres": _names(data.get("genres")),
        "platforms": _names(data.get("platforms")),
        "developer": ", ".join(developers) or None,
        "publisher": ", ".join(publishers) or None,
    }


def remote_game_payload(data: Dict[str, Any], local: Any = None) -> Dict[str, Any]:
    """Browse/detail payload for a catalog row, overlaid with local data.

    Ratings only ever come from local reviews; the catalog's own score is
    ignored.
    """

    mapped = map_igdb_game(data)
    return {
        "id": str(mapped["igdb_id"]),
        "local_id": local.id if local is not None else None,
        **mapped,
        "average_rating": float(local.average_rating or 0.0) if local is not None else 0.0,
        "is_remote": True,
    }
