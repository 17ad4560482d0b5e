"""
Roster adapter: resolve a Discord id to an employee profile.

Why:
    The garage keeps its staff list in a Google Sheet. Authorization needs the
    employee's grade, so every login re-reads the sheet and scans it for the
    Discord id. No caching: a grade change takes effect on the next login.

Behavior:
    - The header row is the first row containing "Prénom / Nom" or "ID Unique".
    - Columns are resolved by header label when the header names the Discord
      id column; fields without a label then read as their default. Otherwise
      the fixed offsets apply.
    - Only rows after the header are scanned; the first exact match wins.

Security:
    The record carries sensitive fields (RIB, phone, mail). Never log them.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence
from urllib.parse import quote
import logging
import re
import unicodedata

import requests

from identity_access.domain import RosterRecord

logger = logging.getLogger("paleto.identity.roster")

HEADER_MARKERS = ("Prénom / Nom", "ID Unique")

# Fixed column offsets of the garage sheet.
DEFAULT_COLUMNS: Dict[str, int] = {
    "employee_id": 1,
    "name": 2,
    "rib": 3,
    "grade": 4,
    "tel": 5,
    "discord_id": 6,
    "gmail": 8,
}

# Header label words (lowercased) per field, matched as whole words. Order
# matters within a field.
HEADER_ALIASES: Dict[str, tuple[str, ...]] = {
    "discord_id": ("discord",),
    "employee_id": ("id unique",),
    "name": ("prénom / nom", "prénom", "nom"),
    "grade": ("grade",),
    "rib": ("rib",),
    "tel": ("téléphone", "tél", "tel"),
    "gmail": ("gmail", "e-mail", "email"),
}

FIELD_DEFAULTS: Dict[str, str] = {"name": "Inconnu", "grade": "Aucun"}

Rows = Sequence[Sequence[object]]


class RosterUnavailableError(Exception):
    """Raised when the roster grid cannot be fetched."""

    def __init__(self, code: str = "roster_unavailable"):
        super().__init__(code)
        self.code = code


class RosterHeaderMissingError(Exception):
    """Raised when no header row can be located in the grid."""

    code = "roster_header_missing"


class RosterSource(Protocol):
    def fetch_rows(self) -> List[List[str]]: ...


@dataclass(frozen=True)
class SheetsConfig:
    sheet_id: str
    api_key: str
    sheet_name: str = "Info Employé"
    api_base_url: str = "https://sheets.googleapis.com/v4"
    timeout_seconds: float = 10.0

    @property
    def values_endpoint(self) -> str:
        return f"{self.api_base_url}/spreadsheets/{self.sheet_id}/values/{quote(self.sheet_name, safe='')}"


class GoogleSheetsSource:
    """Read-only fetch of a whole sheet via the Sheets v4 `values` endpoint."""

    def __init__(self, config: SheetsConfig):
        self.cfg = config

    def fetch_rows(self) -> List[List[str]]:
        try:
            r = requests.get(
                self.cfg.values_endpoint,
                params={"key": self.cfg.api_key},
                timeout=self.cfg.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise RosterUnavailableError() from exc
        if r.status_code != 200:
            logger.warning("roster.fetch status=%s", r.status_code)
            raise RosterUnavailableError()
        try:
            body = r.json() or {}
        except ValueError as exc:
            raise RosterUnavailableError("roster_invalid") from exc
        values = body.get("values") if isinstance(body, dict) else None
        if not isinstance(values, list):
            return []
        return [list(row) if isinstance(row, list) else [] for row in values]


def _cell(row: Sequence[object], index: Optional[int]) -> str:
    if index is None or index < 0 or index >= len(row):
        return ""
    value = row[index]
    if value is None:
        return ""
    return str(value).strip()


def _label(value: object) -> str:
    return unicodedata.normalize("NFC", str(value or "")).strip().lower()


def find_header_index(rows: Rows) -> int:
    """Return the index of the header row, or -1 when no row carries a marker."""
    for i, row in enumerate(rows):
        if not row:
            continue
        for cell in row:
            text = str(cell) if cell is not None else ""
            if any(marker in text for marker in HEADER_MARKERS):
                return i
    return -1


def _names_field(label: str, alias: str) -> bool:
    return re.search(rf"(?<!\w){re.escape(alias)}(?!\w)", label) is not None


def resolve_columns(header: Sequence[object]) -> Dict[str, Optional[int]]:
    """Map profile fields to column indices using the header labels.

    Header labels are trusted only when they identify the Discord id column;
    otherwise the fixed offsets are returned unchanged. Once labels are
    trusted, a field without a label maps to None and reads as its default.
    """
    labels = [_label(c) for c in header]
    found: Dict[str, int] = {}
    taken: set[int] = set()
    for field, aliases in HEADER_ALIASES.items():
        for alias in aliases:
            idx = next((i for i, text in enumerate(labels) if i not in taken and _names_field(text, alias)), None)
            if idx is not None:
                found[field] = idx
                taken.add(idx)
                break
    if "discord_id" not in found:
        return dict(DEFAULT_COLUMNS)
    return {field: found.get(field) for field in DEFAULT_COLUMNS}


def _to_record(row: Sequence[object], columns: Dict[str, Optional[int]]) -> RosterRecord:
    values = {}
    for field, index in columns.items():
        raw = _cell(row, index)
        values[field] = raw or FIELD_DEFAULTS.get(field, "")
    return RosterRecord(**values)


def find_record(rows: Rows, discord_id: str) -> Optional[RosterRecord]:
    """Scan rows after the header for `discord_id`; first match wins.

    Raises RosterHeaderMissingError when no header row exists.
    """
    header_index = find_header_index(rows)
    if header_index == -1:
        raise RosterHeaderMissingError()
    columns = resolve_columns(rows[header_index])
    needle = str(discord_id)
    for row in rows[header_index + 1:]:
        if not row:
            continue
        if _cell(row, columns["discord_id"]) == needle:
            return _to_record(row, columns)
    return None


class RosterLookup:
    def __init__(self, source: RosterSource):
        self.source = source

    def lookup(self, discord_id: str) -> Optional[RosterRecord]:
        """Return the roster record for `discord_id`, or None if unresolved.

        Fetch failures, a missing header and an absent id all return None;
        the cause is logged so operators can tell them apart.
        """
        try:
            rows = self.source.fetch_rows()
        except RosterUnavailableError as exc:
            logger.error("roster.lookup outcome=%s", exc.code)
            return None
        try:
            record = find_record(rows, discord_id)
        except RosterHeaderMissingError as exc:
            logger.error("roster.lookup outcome=%s rows=%d", exc.code, len(rows))
            return None
        if record is None:
            logger.info("roster.lookup outcome=roster_no_match id=%s", discord_id)
            return None
        logger.info("roster.lookup outcome=found id=%s grade=%s", discord_id, record.grade)
        return record


__all__ = [
    "DEFAULT_COLUMNS",
    "GoogleSheetsSource",
    "HEADER_MARKERS",
    "RosterHeaderMissingError",
    "RosterLookup",
    "RosterSource",
    "RosterUnavailableError",
    "SheetsConfig",
    "find_header_index",
    "find_record",
    "resolve_columns",
]
