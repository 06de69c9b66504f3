"""Line-oriented wire format for events.

One event per line:

    config_tag | timestamp | thread_id | priority | namespace | k1=v1, k2=v2

The priority is right-aligned in five characters ("  INFO", " WARN"). The
header fields aid, cid and event_id travel as the reserved keys AID, CID and
EID at the front of the attribute section; on decode the first occurrence of
each reserved key is taken as the header value and later occurrences stay
ordinary attributes.

Reserved characters inside any field are backslash-escaped:

    \\  ->  \\\\        |  ->  \\|        ,  ->  \\,        =  ->  \\=
    CR  ->  \\r        LF ->  \\n        TAB -> \\t

Leading and trailing whitespace of a field is escaped too, since unescaped
whitespace around separators is insignificant on decode. With that, every
event whose line does not contain persistence statements round-trips exactly.
"""

from __future__ import annotations

__all__ = [
    "decode",
    "encode",
    "is_control_syntax",
]

import re
import uuid
from collections.abc import Iterable

from eventscope.constants import (
    CONTROL_SYNTAX_MARKERS,
    RESERVED_KEY_AID,
    RESERVED_KEY_CID,
    RESERVED_KEY_EID,
)
from eventscope.exceptions import FormatError
from eventscope.models import AttributePairs, Event, Priority

_FIELD_SEPARATOR = " | "
_PAIR_SEPARATOR = ", "

_ESCAPES: dict[str, str] = {
    "\\": "\\\\",
    "|": "\\|",
    ",": "\\,",
    "=": "\\=",
    "\r": "\\r",
    "\n": "\\n",
}
_UNESCAPES: dict[str, str] = {"r": "\r", "n": "\n", "t": "\t"}

# ASCII digits only; str.isdigit() also accepts superscripts and other scripts
_TIMESTAMP_PATTERN = re.compile(r"-?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


# ============================================================================
# Encoding
# ============================================================================


def _escape_char(ch: str) -> str:
    if ch == "\t":
        return "\\t"
    if ch in _ESCAPES:
        return _ESCAPES[ch]
    return "\\" + ch


def _escape(text: str) -> str:
    body = "".join(_ESCAPES.get(ch, ch) for ch in text)
    if not text or not (text[0].isspace() or text[-1].isspace()):
        return body

    # Re-escape edge whitespace so decode does not strip it
    start = len(text) - len(text.lstrip())
    end = len(text.rstrip())
    if start == len(text):
        return "".join(_escape_char(ch) for ch in text)
    head = "".join(_escape_char(ch) for ch in text[:start])
    tail = "".join(_escape_char(ch) for ch in text[end:])
    middle = "".join(_ESCAPES.get(ch, ch) for ch in text[start:end])
    return head + middle + tail


def encode(event: Event, attributes: Iterable[tuple[str, str]] = ()) -> str:
    """Encode an event and its attributes as one wire line (no newline).

    Args:
        event: Event header.
        attributes: Ordered (key, value) pairs; duplicate keys allowed.

    Returns:
        The encoded line.
    """
    pairs: list[tuple[str, str]] = [
        (RESERVED_KEY_EID, event.event_id),
        (RESERVED_KEY_AID, event.aid),
        (RESERVED_KEY_CID, event.cid),
    ]
    pairs.extend((str(k), str(v)) for k, v in attributes)

    header = [
        _escape(event.config_tag),
        str(event.timestamp),
        _escape(event.thread_id),
        f"{event.priority.value:>5}",
        _escape(event.namespace),
    ]
    body = _PAIR_SEPARATOR.join(f"{_escape(k)}={_escape(v)}" for k, v in pairs)
    return _FIELD_SEPARATOR.join(header) + _FIELD_SEPARATOR + body


# ============================================================================
# Decoding
# ============================================================================


def is_control_syntax(text: str) -> bool:
    """Return True if text carries a persistence statement fragment."""
    return any(marker in text for marker in CONTROL_SYNTAX_MARKERS)


def _split(text: str, separator: str) -> list[str]:
    """Split on unescaped separator characters, keeping escapes intact."""
    parts: list[str] = []
    current: list[str] = []
    escaped = False
    for ch in text:
        if escaped:
            current.append(ch)
            escaped = False
        elif ch == "\\":
            current.append(ch)
            escaped = True
        elif ch == separator:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return parts


def _unescape(raw: str, line: str) -> str:
    """Resolve escapes and strip unescaped edge whitespace."""
    chars: list[tuple[str, bool]] = []
    it = iter(raw)
    for ch in it:
        if ch != "\\":
            chars.append((ch, False))
            continue
        nxt = next(it, None)
        if nxt is None:
            raise FormatError("dangling escape character", reason="escape", line=line)
        chars.append((_UNESCAPES.get(nxt, nxt), True))

    start, end = 0, len(chars)
    while start < end and not chars[start][1] and chars[start][0].isspace():
        start += 1
    while end > start and not chars[end - 1][1] and chars[end - 1][0].isspace():
        end -= 1
    return "".join(ch for ch, _ in chars[start:end])


def _decode_pairs(section: str, line: str) -> AttributePairs:
    if not section.strip():
        return []

    pairs: AttributePairs = []
    for raw_pair in _split(section, ","):
        key_value = _split(raw_pair, "=")
        if len(key_value) < 2:
            raise FormatError(f"attribute without '=': {raw_pair.strip()!r}", reason="bad_pair", line=line)
        key = _unescape(key_value[0], line)
        if not key:
            raise FormatError("attribute with empty key", reason="bad_pair", line=line)
        # Unescaped '=' inside the value belongs to the value
        value = _unescape("=".join(key_value[1:]), line)
        pairs.append((key, value))
    return pairs


def decode(line: str) -> tuple[Event, AttributePairs]:
    """Decode one wire line.

    Events without an EID key get a fresh event id.

    Args:
        line: The line, with or without its trailing newline.

    Returns:
        The event header and its remaining attributes in wire order.

    Raises:
        FormatError: If the line is malformed or carries persistence syntax.
    """
    text = line.rstrip("\r\n")
    if not text.strip():
        raise FormatError("empty line", reason="empty", line=line)
    if is_control_syntax(text):
        raise FormatError("line carries persistence statement syntax", reason="control_syntax", line=line)

    segments = _split(text, "|")
    if len(segments) not in (5, 6):
        raise FormatError(
            f"expected 5 or 6 fields, got {len(segments)}",
            reason="segment_count",
            line=line,
        )

    config_tag = _unescape(segments[0], line)
    raw_timestamp = _unescape(segments[1], line)
    thread_id = _unescape(segments[2], line)
    raw_priority = _unescape(segments[3], line)
    namespace = _unescape(segments[4], line)

    if _TIMESTAMP_PATTERN.fullmatch(raw_timestamp) is None:
        raise FormatError(f"unparseable timestamp: {raw_timestamp!r}", reason="timestamp", line=line)
    timestamp = int(raw_timestamp)
    if not _INT64_MIN <= timestamp <= _INT64_MAX:
        raise FormatError(f"timestamp out of int64 range: {raw_timestamp!r}", reason="timestamp", line=line)
    try:
        priority = Priority.parse(raw_priority)
    except ValueError:
        raise FormatError(f"unknown priority: {raw_priority!r}", reason="priority", line=line) from None
    if not namespace:
        raise FormatError("empty namespace", reason="namespace", line=line)

    pairs = _decode_pairs(segments[5], line) if len(segments) == 6 else []

    header: dict[str, str] = {}
    attributes: AttributePairs = []
    for key, value in pairs:
        if key in (RESERVED_KEY_EID, RESERVED_KEY_AID, RESERVED_KEY_CID) and key not in header:
            header[key] = value
        else:
            attributes.append((key, value))

    event = Event(
        event_id=header.get(RESERVED_KEY_EID) or uuid.uuid4().hex,
        timestamp=timestamp,
        thread_id=thread_id,
        priority=priority,
        namespace=namespace,
        aid=header.get(RESERVED_KEY_AID, ""),
        cid=header.get(RESERVED_KEY_CID, ""),
        config_tag=config_tag,
    )
    return event, attributes
