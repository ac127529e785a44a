"""HTTP boundary to the productivity backend."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import httpx

from models import RawEntry, User
from utils import format_iso_date, month_name, parse_calendar_date

logger = logging.getLogger(__name__)

COUNTER_FIELDS = (
    "accepted",
    "dismissed",
    "manually_mapped",
    "incorrect_supplier_data",
    "created_property",
    "insufficient_info",
    "duplicates",
    "no_result",
)

DERIVED_FIELDS = ("auto_total", "manual_total", "overall_total", "cannot_be_mapped")


class GatewayError(Exception):
    """A backend request did not succeed."""


class FetchFailure(GatewayError):
    """Reading roster, entries or the current user failed."""


class MutationFailure(GatewayError):
    """A patch or delete was not accepted."""


def _as_int(value: Any) -> int:
    if value in (None, ""):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_optional_int(value: Any) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def coerce_list(payload: Any, *keys: str) -> list:
    """Return the list inside a payload, or [] if it has another shape."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in keys:
            if isinstance(payload.get(key), list):
                return payload[key]
    logger.info("Unexpected payload shape %s, using empty list", type(payload).__name__)
    return []


def parse_user(data: dict) -> User | None:
    """Build a User from a roster record; None if it has no id."""
    user_id = _as_optional_int(data.get("id"))
    if user_id is None:
        return None
    email = data.get("email") or None
    name = data.get("name") or email or f"User {user_id}"
    return User(id=user_id, name=name, email=email, role=data.get("role"))


def parse_entry(data: dict, user_id: int | None = None, user_name: str | None = None,
                user_email: str | None = None) -> RawEntry | None:
    """Build a RawEntry from one record; None if it cannot be placed."""
    uid = _as_optional_int(data.get("user_id", user_id))
    raw_date = data.get("date")
    if uid is None or not raw_date:
        return None
    try:
        entry_date = parse_calendar_date(raw_date)
    except (TypeError, ValueError):
        logger.info("Skipping entry with unreadable date %r", raw_date)
        return None

    entry = RawEntry(
        user_id=uid,
        date=entry_date,
        mapping_type=data.get("mapping_type") or None,
        status=data.get("status") or None,
        user_name=data.get("user_name") or user_name,
        user_email=data.get("user_email") or user_email,
    )
    for name in COUNTER_FIELDS:
        setattr(entry, name, _as_int(data.get(name)))
    for name in DERIVED_FIELDS:
        setattr(entry, name, _as_optional_int(data.get(name)))
    return entry


def parse_entries(payload: Any) -> list[RawEntry]:
    """Flatten per-user groups (or a flat entry list) into RawEntries."""
    entries: list[RawEntry] = []
    for item in coerce_list(payload, "daily_prods", "data"):
        if not isinstance(item, dict):
            continue
        if isinstance(item.get("entries"), list):
            for record in item["entries"]:
                if not isinstance(record, dict):
                    continue
                entry = parse_entry(
                    record,
                    user_id=item.get("user_id"),
                    user_name=item.get("user_name"),
                    user_email=item.get("user_email"),
                )
                if entry:
                    entries.append(entry)
        else:
            entry = parse_entry(item)
            if entry:
                entries.append(entry)
    return entries


class SyncGateway:
    """Async client for the daily productivity endpoints."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _get(self, path: str, params: dict | None = None) -> Any:
        try:
            response = await self.client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("GET %s failed: %s", path, exc)
            raise FetchFailure(f"GET {path} failed: {exc}") from exc

    async def _send(self, method: str, path: str, body: dict) -> None:
        try:
            response = await self.client.request(method, path, json=body)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise MutationFailure(f"{method} {path} failed: {exc}") from exc

    # --- Reads ---

    async def fetch_entries(self, month: int, year: int) -> list[RawEntry]:
        payload = await self._get(
            "/api/v1/daily_prods",
            params={"month": month_name(month), "year": str(year)},
        )
        return parse_entries(payload)

    async def fetch_roster(self) -> list[User]:
        payload = await self._get("/api/v1/users")
        users = []
        for item in coerce_list(payload, "users", "data"):
            if isinstance(item, dict):
                user = parse_user(item)
                if user:
                    users.append(user)
        return users

    async def fetch_current_user(self) -> User:
        payload = await self._get("/api/v1/current_user")
        if isinstance(payload, dict) and isinstance(payload.get("user"), dict):
            payload = payload["user"]
        user = parse_user(payload) if isinstance(payload, dict) else None
        if user is None:
            raise FetchFailure("current_user response has no user id")
        return user

    # --- Mutations ---

    async def patch_cell(self, user_id: int, day: date, value: int) -> None:
        await self._send("PATCH", "/api/v1/daily_prods/update_cell", {
            "user_id": user_id,
            "date": format_iso_date(day),
            "value": value,
        })

    async def patch_status(self, user_id: int, day: date, label: str) -> None:
        await self._send("PATCH", "/api/v1/daily_prods/update_cell", {
            "user_id": user_id,
            "date": format_iso_date(day),
            "value": label,
            "is_status": True,
        })

    async def delete_status(self, user_id: int, day: date) -> None:
        await self._send("DELETE", "/api/v1/daily_prods/delete_status", {
            "user_id": user_id,
            "date": format_iso_date(day),
        })

    async def delete_entry(self, user_id: int, day: date) -> None:
        await self._send("DELETE", "/api/v1/daily_prods/delete_entry", {
            "user_id": user_id,
            "date": format_iso_date(day),
        })
