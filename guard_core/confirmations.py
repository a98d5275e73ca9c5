"""
confirmations.py - confirmation entities and the /getlist response parser.

A raw `conf` record is decoded once into RawConfirmation (every field
optional), then mapped to Confirmation. Records without a string `id` or
`nonce` are dropped; the rest of the batch is kept.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Tuple
import logging

logger = logging.getLogger(__name__)


class ConfirmationType(Enum):
    GENERIC = 0
    TRADE = 1
    MARKET = 2
    UNKNOWN = 3

    @property
    def label(self) -> str:
        return _TYPE_LABELS[self]

    @classmethod
    def from_raw(cls, value) -> "ConfirmationType":
        if isinstance(value, bool) or not isinstance(value, int):
            return cls.UNKNOWN
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


_TYPE_LABELS = {
    ConfirmationType.GENERIC: "Confirmation",
    ConfirmationType.TRADE: "Trade",
    ConfirmationType.MARKET: "Market listing",
    ConfirmationType.UNKNOWN: "Unknown",
}


@dataclass(frozen=True)
class Confirmation:
    id: str
    key: str
    type: ConfirmationType
    description: str
    observed_at: int

    def age_text(self, now: int) -> str:
        """Relative capture time for display, e.g. 'just now', '5 minutes ago'."""
        seconds = max(0, int(now - self.observed_at))
        if seconds < 60:
            return "just now"
        for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
            if seconds >= size:
                n = seconds // size
                return f"{n} {unit}{'' if n == 1 else 's'} ago"
        return "just now"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.name.lower(),
            "label": self.type.label,
            "description": self.description,
            "observed_at": self.observed_at,
        }


@dataclass(frozen=True)
class RawConfirmation:
    id: str | None = None
    nonce: str | None = None
    type: ConfirmationType = ConfirmationType.UNKNOWN
    headline: str = ""
    summary: Tuple[str, ...] = ()

    @classmethod
    def decode(cls, record: Any) -> "RawConfirmation":
        if not isinstance(record, dict):
            return cls()
        cid = record.get("id")
        nonce = record.get("nonce")
        headline = record.get("headline")
        return cls(
            id=cid if isinstance(cid, str) else None,
            nonce=nonce if isinstance(nonce, str) else None,
            type=ConfirmationType.from_raw(record.get("type")),
            headline=headline if isinstance(headline, str) else "",
            summary=_summary_rows(record.get("summary")),
        )


def _summary_rows(summary) -> Tuple[str, ...]:
    # rows are {"<k>": "<text>"} objects; Steam also sends bare strings
    if not isinstance(summary, list):
        return ()
    rows = []
    for row in summary:
        if isinstance(row, str):
            rows.append(row)
        elif isinstance(row, dict) and ("0" in row or len(row) == 1):
            value = row["0"] if "0" in row else next(iter(row.values()))
            if isinstance(value, str):
                rows.append(value)
    return tuple(rows)


def build_description(headline: str, summary: Iterable[str]) -> str:
    rows = list(summary)
    if not rows:
        return headline
    return headline + "\n" + "\n".join(rows)


def parse_confirmations(raw_list: Iterable[Any], captured_at: int) -> List[Confirmation]:
    """
    Turn the `conf` array of a /getlist response into Confirmations.

    Arguments:
        raw_list: the records as decoded from JSON
        captured_at: client-side unix time stamped on every result

    Returns:
        Confirmations in response order, minus records lacking id/nonce.
    """
    parsed = []
    for record in raw_list:
        raw = RawConfirmation.decode(record)
        if raw.id is None or raw.nonce is None:
            logger.debug("Dropping confirmation record without id/nonce")
            continue
        parsed.append(
            Confirmation(
                id=raw.id,
                key=raw.nonce,
                type=raw.type,
                description=build_description(raw.headline, raw.summary),
                observed_at=captured_at,
            )
        )
    return parsed
