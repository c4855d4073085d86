"""Domain error taxonomy shared by every route.

Routes and services raise these; ``hitbox.main`` turns them into JSON
responses. ``detail`` is always safe to show to a client.
"""

from __future__ import annotations


class HitboxError(Exception):
    status_code = 500
    default_detail = "Server error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class InvalidInput(HitboxError):
    status_code = 400
    default_detail = "Invalid request"


class Conflict(HitboxError):
    status_code = 400
    default_detail = "Already exists"


class NotAuthorized(HitboxError):
    status_code = 401
    default_detail = "Not authorized"


class Forbidden(HitboxError):
    status_code = 403
    default_detail = "Forbidden"


class NotFound(HitboxError):
    status_code = 404
    default_detail = "Not found"


class UpstreamUnavailable(HitboxError):
    """An external service failed. ``reason`` is for logs only."""

    status_code = 500

    def __init__(self, reason: str = "", detail: str | None = None) -> None:
        super().__init__(detail)
        self.reason = reason or self.detail


class CatalogUnavailable(UpstreamUnavailable):
    default_detail = "Failed to fetch game details"
