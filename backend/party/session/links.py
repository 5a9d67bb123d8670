"""Join links: the path carries the session code, the `p` query parameter the claimed seat."""

from __future__ import annotations

from urllib.parse import parse_qs, urlencode, urlsplit

from party.logic.enums import Variant

SEAT_PARAM = "p"


def join_url(base_url: str, variant: Variant | str, code: str, seat: int | None = None) -> str:
    url = f"{base_url.rstrip('/')}/{Variant(variant).value}/{code}"
    if seat is not None:
        url = f"{url}?{urlencode({SEAT_PARAM: seat})}"
    return url


def parse_seat(value: str | None) -> int | None:
    """Parse a persisted seat index. Missing or garbled values yield None."""
    if value is None:
        return None
    value = value.strip()
    if not (value.isascii() and value.isdigit()):
        return None
    return int(value)


def seat_from_url(url: str) -> int | None:
    values = parse_qs(urlsplit(url).query).get(SEAT_PARAM)
    return parse_seat(values[0]) if values else None
