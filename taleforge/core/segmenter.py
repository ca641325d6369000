from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from taleforge.core.decode import EVENTS_MARKER


class Speaker(StrEnum):
    narrator = "narrator"
    npc = "npc"
    party_member = "party_member"


@dataclass(frozen=True, slots=True)
class SpeakerLine:
    speaker: Speaker
    text: str
    name: str | None = None


# Generic `[Tag] body` lines with these tags are not treated as NPC speech.
_RESERVED_TAGS = frozenset({"narrator", "system"})


def split_response(text: str) -> tuple[str, str]:
    """Split a raw narrator response into (narration, events_text).

    The events section starts at the first `EVENTS:` marker. Without a marker
    the whole response is narration and there are no events.
    """

    narration, sep, events_text = text.partition(EVENTS_MARKER)
    if not sep:
        return text, "[]"
    return narration, events_text


def segment_narrative(text: str) -> list[SpeakerLine]:
    """Split narration into speaker-tagged lines.

    Every non-blank input line yields exactly one output line, in order; lines
    that don't match a known tag shape fall back to narrator lines verbatim.
    """

    return [classify_line(line) for line in _non_blank_lines(text)]


def _non_blank_lines(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def classify_line(line: str) -> SpeakerLine:
    line = line.strip()

    if line.startswith("[NARRATOR]"):
        return SpeakerLine(speaker=Speaker.narrator, text=line[len("[NARRATOR]") :].strip())

    for prefix, speaker in (("[NPC:", Speaker.npc), ("[PARTY:", Speaker.party_member)):
        if line.startswith(prefix):
            name, sep, rest = line[len(prefix) :].partition("]")
            if sep:
                return _named_line(speaker, name.strip(), rest.strip())

    generic = _generic_tag_line(line)
    if generic is not None:
        return generic

    return SpeakerLine(speaker=Speaker.narrator, text=line)


def _generic_tag_line(line: str) -> SpeakerLine | None:
    if not line.startswith("["):
        return None

    tag, sep, body = line[1:].partition("]")
    if not sep:
        return None

    tag = tag.strip()
    body = body.strip()
    if not tag or not body or tag.casefold() in _RESERVED_TAGS:
        return None

    return _named_line(Speaker.npc, tag, body)


def _named_line(speaker: Speaker, name: str, rest: str) -> SpeakerLine:
    return SpeakerLine(speaker=speaker, text=f"{name}: {rest}", name=name or None)
