"""Extract the delimited statement and disclaimer from a final answer.

Marker framing lives only here so a structured-output mode can replace it
without touching the orchestrator or gatekeeper.
"""

from dataclasses import dataclass

SQL_MARKERS = ("<sql>", "</sql>")
DISCLAIMER_MARKERS = ("<disclaimer>", "</disclaimer>")


@dataclass(frozen=True)
class ParsedOutput:
    """Statement and disclaimer found in model output."""

    statement: str | None = None
    disclaimer: str | None = None


def extract_delimited(text: str, start_marker: str, end_marker: str) -> str | None:
    """Return trimmed content between the first start marker and the next end marker.

    A start marker without a matching end marker counts as absent, and so
    does blank content.
    """
    if not text:
        return None
    start = text.find(start_marker)
    if start < 0:
        return None
    content_start = start + len(start_marker)
    end = text.find(end_marker, content_start)
    if end < 0:
        return None
    content = text[content_start:end].strip()
    return content or None


class ResponseParser:
    """Marker-based parser; markers are configurable per instance."""

    def __init__(
        self,
        sql_markers: tuple[str, str] = SQL_MARKERS,
        disclaimer_markers: tuple[str, str] = DISCLAIMER_MARKERS,
    ):
        self.sql_markers = sql_markers
        self.disclaimer_markers = disclaimer_markers

    def parse(self, text: str) -> ParsedOutput:
        return ParsedOutput(
            statement=extract_delimited(text, *self.sql_markers),
            disclaimer=extract_delimited(text, *self.disclaimer_markers),
        )


def parse_response(text: str) -> ParsedOutput:
    """Parse using the default ``<sql>`` and ``<disclaimer>`` markers."""
    return ResponseParser().parse(text)
