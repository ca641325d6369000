from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from pydantic import TypeAdapter, ValidationError

from taleforge.core.events import Event, KnownEvent, UnknownEvent

logger = logging.getLogger(__name__)

EVENTS_MARKER = "EVENTS:"

_EVENT_ADAPTER: TypeAdapter[Any] = TypeAdapter(KnownEvent)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


class EventDecodeError(ValueError):
    """The event payload as a whole could not be read as an array of events."""


def decode_events(payload: str | bytes) -> list[Event]:
    """Decode an untrusted event payload into typed events.

    Only a payload-level problem raises `EventDecodeError`. Individual items
    that are not valid events come back as `UnknownEvent` so the rest of the
    batch still goes through.

    Accepted shapes, in order of preference:
    - a JSON array (optionally after an `EVENTS:` marker or inside a code fence)
    - a JSON object with an `events` array
    - JSON array embedded in surrounding prose
    - loose bullet lines: `- rest { description: "Camp" }`
    - a single bare tag: `rest`
    """

    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")

    text = _normalize_events_text(payload)
    if not text.strip():
        return []

    value = _parse_events_value(text)

    if isinstance(value, dict):
        items = value.get("events")
        if not isinstance(items, list):
            raise EventDecodeError("EVENTS must be a JSON array")
        value = items

    if not isinstance(value, list):
        raise EventDecodeError("EVENTS must be a JSON array")

    return decode_event_items(value)


def decode_event_items(items: list[Any]) -> list[Event]:
    return [decode_event(item) for item in items]


def decode_event(item: Any) -> Event:
    """Decode one item; never raises."""

    if not isinstance(item, dict):
        return UnknownEvent(event_type="unknown", raw=item)

    raw_tag = item.get("type")
    if not isinstance(raw_tag, str) or not raw_tag.strip():
        return UnknownEvent(event_type="unknown", raw=item)

    candidate = dict(item)
    candidate["type"] = normalize_tag(raw_tag)
    try:
        return _EVENT_ADAPTER.validate_python(candidate)
    except ValidationError as e:
        logger.debug("event %r did not validate, keeping as unknown: %s", raw_tag, e.errors())
        return UnknownEvent(event_type=raw_tag, raw=item)


def normalize_tag(tag: str) -> str:
    """`GrantPower`, `grant-power` and ` Grant Power ` all become `grant_power`."""

    tag = _CAMEL_BOUNDARY.sub("_", tag.strip())
    tag = re.sub(r"[\s\-]+", "_", tag)
    return tag.lower()


def _normalize_events_text(raw: str) -> str:
    s = raw.strip()

    pos = s.find(EVENTS_MARKER)
    if pos != -1:
        s = s[pos + len(EVENTS_MARKER) :]

    s = s.strip()

    if s.startswith("```"):
        first_newline = s.find("\n")
        if first_newline == -1:
            return "[]"
        s = s[first_newline + 1 :]
        end_fence = s.rfind("```")
        if end_fence != -1:
            s = s[:end_fence]
        s = s.strip()

    return s


def _parse_events_value(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        first_err = e
    except RecursionError as e:
        raise _too_deep() from e

    extracted = _extract_json_array(text)
    if extracted is not None:
        try:
            return json.loads(extracted)
        except json.JSONDecodeError:
            pass
        except RecursionError as e:
            raise _too_deep() from e

    loose = _parse_loose_events(text)
    if loose:
        return loose

    single = _parse_single_word_event(text)
    if single:
        return single

    logger.warning("event payload is not parseable: %s", first_err)
    raise EventDecodeError(f"Invalid event payload: {first_err}") from first_err


def _too_deep() -> EventDecodeError:
    logger.warning("event payload is nested too deeply to parse")
    return EventDecodeError("Invalid event payload: nested too deeply")


def _extract_json_array(s: str) -> str | None:
    start = s.find("[")
    end = s.rfind("]")
    if start == -1 or end <= start:
        return None
    return s[start : end + 1]


def _parse_loose_events(s: str) -> list[dict[str, Any]] | None:
    items: list[dict[str, Any]] = []

    for line in s.splitlines():
        line = line.strip()
        if not line.startswith("-"):
            continue
        line = line[1:].strip()

        event_type, sep, rest = line.partition("{")
        if not sep:
            # A bullet that isn't shaped like an event means this isn't the loose format.
            return None

        obj: dict[str, Any] = {"type": event_type.strip()}

        inner = rest.strip()
        end = inner.rfind("}")
        if end != -1:
            inner = inner[:end]

        for pair in _split_pairs(inner):
            key, sep, value = pair.partition(":")
            if not sep:
                continue
            obj[key.strip().strip('"')] = _parse_value(value)

        items.append(obj)

    return items or None


def _parse_single_word_event(s: str) -> list[dict[str, Any]] | None:
    s = s.strip()
    if not s or any(ch.isspace() for ch in s):
        return None
    if any(ch in s for ch in "[{:"):
        return None
    return [{"type": s}]


def _split_pairs(s: str) -> list[str]:
    """Split `a: 1, b: "x, y"` on commas that are outside quotes."""

    parts: list[str] = []
    current: list[str] = []
    in_quotes = False
    escape = False

    for ch in s:
        if escape:
            current.append(ch)
            escape = False
            continue
        if ch == "\\":
            current.append(ch)
            escape = True
        elif ch == '"':
            in_quotes = not in_quotes
            current.append(ch)
        elif ch == "," and not in_quotes:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(ch)

    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return parts


def _parse_value(raw: str) -> Any:
    raw = raw.strip().rstrip(",")
    if len(raw) >= 2 and raw.startswith('"') and raw.endswith('"'):
        return raw[1:-1]
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        number = float(raw)
    except ValueError:
        pass
    else:
        if math.isfinite(number):
            return number
    if raw == "true":
        return True
    if raw == "false":
        return False
    return raw
