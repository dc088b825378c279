"""Extraction of TOOL_REQUEST directives embedded in agent free text.

A directive is the marker ``TOOL_REQUEST:`` followed by a JSON object::

    TOOL_REQUEST: {"tool": "web_search", "parameters": {"query": "..."}, "reason": "..."}

The surrounding prose is never parsed. Each marker occurrence yields either a
:class:`Directive` or a :class:`MalformedDirective`; only the former become
information requests.
"""

import json
import logging
import re
from dataclasses import dataclass

from consensus.models import InformationRequest

logger = logging.getLogger(__name__)

DIRECTIVE_MARKER = "TOOL_REQUEST:"

_MARKER_RE = re.compile(re.escape(DIRECTIVE_MARKER) + r"\s*")
_decoder = json.JSONDecoder()


@dataclass(frozen=True)
class Directive:
    request: InformationRequest


@dataclass(frozen=True)
class MalformedDirective:
    raw: str
    error: str


ParsedDirective = Directive | MalformedDirective


def _line_from(text: str, start: int) -> str:
    end = text.find("\n", start)
    return text[start:] if end == -1 else text[start:end]


def _to_request(obj: object) -> InformationRequest:
    """Check the decoded object's shape; raise ValueError naming the bad field."""
    if not isinstance(obj, dict):
        raise ValueError("directive is not an object")
    tool = obj.get("tool")
    if not isinstance(tool, str) or not tool.strip():
        raise ValueError("tool must be a non-empty string")
    parameters = obj.get("parameters")
    if not isinstance(parameters, dict):
        raise ValueError("parameters is not an object")
    reason = obj.get("reason")
    if not isinstance(reason, str):
        raise ValueError("reason must be a string")
    return InformationRequest(tool=tool, parameters=parameters, reason=reason)


def scan_directives(text: str) -> list[ParsedDirective]:
    """Return one parse result per marker occurrence, in text order.

    Markers inside a successfully decoded directive (e.g. quoted in its
    reason) are part of that directive and are not scanned again.
    """
    results: list[ParsedDirective] = []
    pos = 0
    while True:
        match = _MARKER_RE.search(text, pos)
        if match is None:
            break
        try:
            obj, end = _decoder.raw_decode(text, match.end())
            request = _to_request(obj)
        except ValueError as exc:
            results.append(MalformedDirective(raw=_line_from(text, match.start()), error=str(exc)))
            pos = match.end()
            continue
        results.append(Directive(request))
        pos = end
    return results


def parse_directives(text: str) -> list[InformationRequest]:
    """Extract all well-formed information requests; malformed ones are logged and dropped."""
    requests: list[InformationRequest] = []
    for parsed in scan_directives(text):
        if isinstance(parsed, MalformedDirective):
            logger.warning("Failed to parse tool request: %s (%s)", parsed.raw, parsed.error)
            continue
        requests.append(parsed.request)
    return requests
