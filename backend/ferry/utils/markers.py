"""
Marker grammar for Datadog monitor messages.

Datadog routes notifications through ``@``-mentions embedded in the
monitor message. Two marker families matter here:

- provider service markers, ``@pagerduty-<service>`` / ``@opsgenie-<service>``
- incident.io webhook markers, ``@webhook-incident-io[-<team>]``

All recognition goes through this module so that a change to either
pattern touches one place. The recognizers are pure and total: a
message without markers yields an empty result, never an error.
"""

import re
from enum import Enum
from typing import List, NamedTuple, Optional, Sequence, Tuple

DESTINATION_WEBHOOK_NAME = "incident-io"
WEBHOOK_MARKER_PREFIX = "@webhook-"

_TOKEN = r"[A-Za-z0-9_-]+"

DESTINATION_MARKER_PATTERN = re.compile(
    rf"@webhook-{re.escape(DESTINATION_WEBHOOK_NAME)}(?:-{_TOKEN})*"
)


class Provider(str, Enum):
    """Legacy paging providers whose markers can be migrated."""

    PAGERDUTY = "pagerduty"
    OPSGENIE = "opsgenie"

    @property
    def display_name(self) -> str:
        return "Opsgenie" if self is Provider.OPSGENIE else "PagerDuty"


def provider_marker_pattern(provider: Provider) -> re.Pattern:
    """Compiled pattern for ``@<provider>-<service>``; group 1 is the service key."""
    return re.compile(rf"@{re.escape(Provider(provider).value)}-({_TOKEN})")


def find_provider_markers(message: str, provider: Provider) -> List[str]:
    """
    Find provider service keys mentioned in a monitor message.

    Service keys are returned in first-occurrence order. Duplicates are
    preserved since a service may be mentioned in several template
    branches (``{{#is_alert}}`` / ``{{#is_warning}}``).

    Args:
        message: Monitor message text
        provider: Provider whose markers should be recognized

    Returns:
        List of service keys, e.g. ``["api-critical"]`` for
        ``"@pagerduty-api-critical"``
    """
    if not message:
        return []
    return [match.group(1) for match in provider_marker_pattern(provider).finditer(message)]


def find_destination_markers(message: str) -> List[str]:
    """
    Find incident.io webhook markers in a monitor message.

    Returns the exact marker substrings, including the leading ``@``, so
    they can be removed verbatim later.
    """
    if not message:
        return []
    return [match.group(0) for match in DESTINATION_MARKER_PATTERN.finditer(message)]


def webhook_name_for_team(team: Optional[str] = None) -> str:
    """
    Datadog webhook resource name for a team.

    ``incident-io`` for the shared webhook, ``incident-io-<team>`` for a
    team-specific one.
    """
    if not team:
        return DESTINATION_WEBHOOK_NAME
    return f"{DESTINATION_WEBHOOK_NAME}-{team}"


def marker_for_webhook(webhook_name: str) -> str:
    """Message marker that routes notifications to a Datadog webhook."""
    return f"{WEBHOOK_MARKER_PREFIX}{webhook_name}"


class SegmentKind(str, Enum):
    """Kinds of segments a monitor message is split into."""

    TEXT = "text"
    PROVIDER = "provider"
    DESTINATION = "destination"


class MessageSegment(NamedTuple):
    """
    One piece of a tokenized message.

    ``value`` is the service key for provider markers and the full marker
    text for destination markers; for plain text it equals ``text``.
    """

    kind: SegmentKind
    text: str
    value: str


def _join(left: str, right: str) -> str:
    """
    Join the text on either side of a removed marker.

    Horizontal whitespace around the gap collapses to one space when both
    sides have content on the same line; at line boundaries and message
    edges it is dropped. A marker glued to its neighbours, as in
    ``{{#is_alert}}@pagerduty-x{{/is_alert}}``, leaves them glued. A
    marker that sat alone on its own line does not leave an empty line
    behind.
    """
    stripped_left = left.rstrip(" \t")
    stripped_right = right.lstrip(" \t")
    had_space = len(stripped_left) < len(left) or len(stripped_right) < len(right)
    left, right = stripped_left, stripped_right
    if not left or not right:
        return left + right
    if left.endswith("\n") and right.startswith("\n"):
        return left + right[1:]
    if left.endswith("\n") or right.startswith("\n") or not had_space:
        return left + right
    return left + " " + right


class MarkedMessage:
    """
    A monitor message as an ordered sequence of text and marker segments.

    Instances are immutable: every edit returns a new MarkedMessage, and
    ``render()`` serializes the segments back to the message string.
    """

    def __init__(self, segments: Sequence[MessageSegment], provider: Provider):
        self.segments: Tuple[MessageSegment, ...] = tuple(segments)
        self.provider = Provider(provider)

    @classmethod
    def parse(cls, message: str, provider: Provider) -> "MarkedMessage":
        """
        Tokenize a message into text, provider-marker and webhook-marker segments.

        Args:
            message: Monitor message text
            provider: Provider whose markers should be recognized

        Returns:
            MarkedMessage whose ``render()`` reproduces ``message`` exactly
        """
        provider = Provider(provider)
        pattern = re.compile(
            rf"(?P<provider>@{re.escape(provider.value)}-(?P<service>{_TOKEN}))"
            rf"|(?P<destination>{DESTINATION_MARKER_PATTERN.pattern})"
        )

        segments: List[MessageSegment] = []
        cursor = 0
        for match in pattern.finditer(message or ""):
            if match.start() > cursor:
                text = message[cursor:match.start()]
                segments.append(MessageSegment(SegmentKind.TEXT, text, text))
            if match.group("provider"):
                segments.append(MessageSegment(SegmentKind.PROVIDER, match.group(0), match.group("service")))
            else:
                segments.append(MessageSegment(SegmentKind.DESTINATION, match.group(0), match.group(0)))
            cursor = match.end()

        if message and cursor < len(message):
            text = message[cursor:]
            segments.append(MessageSegment(SegmentKind.TEXT, text, text))

        return cls(segments, provider)

    @property
    def provider_services(self) -> List[str]:
        """Service keys of provider markers, in order, duplicates preserved."""
        return [s.value for s in self.segments if s.kind == SegmentKind.PROVIDER]

    @property
    def destination_markers(self) -> List[str]:
        """Exact webhook marker texts, in order, duplicates preserved."""
        return [s.value for s in self.segments if s.kind == SegmentKind.DESTINATION]

    def without(self, kind: SegmentKind) -> "MarkedMessage":
        """Return a copy with every marker of ``kind`` removed."""
        if kind == SegmentKind.TEXT:
            raise ValueError("Only marker segments can be removed")

        pieces: List[str] = [""]
        removed = False
        for segment in self.segments:
            if segment.kind == kind:
                pieces.append("")
                removed = True
            else:
                pieces[-1] += segment.text

        if not removed:
            return self

        # Blank text between two removed markers belongs to the next gap
        result = pieces[0]
        rest = pieces[1:]
        carry = ""
        for index, piece in enumerate(rest):
            if index < len(rest) - 1 and not piece.strip(" \t"):
                carry += piece
                continue
            result = _join(result, carry + piece)
            carry = ""
        return MarkedMessage.parse(result, self.provider)

    def with_markers(self, markers: Sequence[str]) -> "MarkedMessage":
        """
        Return a copy with ``markers`` appended at the end of the message.

        Both ``webhook-incident-io`` and ``@webhook-incident-io`` are accepted.
        """
        result = self.render()
        for marker in markers:
            marker = marker if marker.startswith("@") else f"@{marker}"
            if not result:
                result = marker
            elif result[-1].isspace():
                result = f"{result}{marker}"
            else:
                result = f"{result} {marker}"
        return MarkedMessage.parse(result, self.provider)

    def render(self) -> str:
        """Serialize the segments back to a message string."""
        return "".join(segment.text for segment in self.segments)

    def __str__(self) -> str:
        return self.render()

    def __repr__(self) -> str:
        return f"MarkedMessage({self.render()!r}, provider={self.provider.value!r})"
