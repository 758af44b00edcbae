from __future__ import annotations

import re
from dataclasses import dataclass, field
from urllib.parse import urlparse

# ReDoS guard for untrusted patterns.
MAX_PATTERN_LEN = 500
MAX_PATTERN_WILDCARDS = 10

_PRE_RE = re.compile(r"<pre[^>]*>(.*?)</pre>", re.IGNORECASE | re.DOTALL)
_BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_ENTITIES = (
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&amp;", "&"),
)


def strip_html_wrapper(text: str) -> str:
    """Recover plain robots.txt text from an HTML-rendered response.

    Browser backends return robots.txt wrapped in a document, usually as
    ``<pre>`` content.
    """

    if "<" not in text:
        return text
    match = _PRE_RE.search(text)
    if match:
        text = match.group(1)
    text = _BR_RE.sub("\n", text)
    text = _TAG_RE.sub("", text)
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text


@dataclass
class RobotsGroup:
    user_agent: str
    disallow: list[str] = field(default_factory=list)
    allow: list[str] = field(default_factory=list)


def _match_wildcard(path: str, pattern: str, anchored_end: bool) -> bool:
    segments = pattern.split("*")
    first, last = segments[0], segments[-1]
    if not path.startswith(first):
        return False
    pos = len(first)

    for segment in segments[1:-1]:
        if not segment:
            continue
        found = path.find(segment, pos)
        if found == -1:
            return False
        pos = found + len(segment)

    if anchored_end:
        return len(path) - len(last) >= pos and path.endswith(last)
    return path.find(last, pos) != -1


def pattern_matches(path: str, pattern: str) -> bool:
    """Robots path match with ``*`` wildcards and ``$`` end anchors.

    Wildcards are matched by scanning segments in order, never by regex.
    """

    if not pattern:
        return False
    if len(pattern) > MAX_PATTERN_LEN:
        return False
    if pattern.count("*") > MAX_PATTERN_WILDCARDS:
        return False

    anchored_end = pattern.endswith("$")
    body = pattern[:-1] if anchored_end else pattern

    if "*" in body:
        return _match_wildcard(path, body, anchored_end)
    if anchored_end:
        return path == body
    return path.startswith(body)


class RobotsRules:
    """robots.txt rule engine.

    Groups are keyed by lowercased user-agent. Allow and Disallow patterns
    compete on equal footing: the longest matching pattern decides, and a
    path nothing matches is allowed. Parsing never raises; anything it cannot
    read is ignored.
    """

    def __init__(self, raw_text: str, user_agent: str = "*") -> None:
        self.user_agent = user_agent.lower()
        self._groups: dict[str, RobotsGroup] = {}

        current: RobotsGroup | None = None
        for line in strip_html_wrapper(raw_text or "").splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            key, sep, value = line.partition(":")
            if not sep:
                continue
            key = key.strip().lower()
            value = value.strip()

            if key == "user-agent":
                agent = value.lower()
                current = self._groups.setdefault(agent, RobotsGroup(agent))
                continue

            if current is None:
                continue

            if key == "disallow":
                current.disallow.append(value)
            elif key == "allow":
                current.allow.append(value)

    @classmethod
    def allow_all(cls) -> "RobotsRules":
        return cls("")

    @staticmethod
    def robots_url(url: str) -> str | None:
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            return None
        return f"{parsed.scheme}://{parsed.netloc}/robots.txt"

    @property
    def groups(self) -> dict[str, RobotsGroup]:
        return dict(self._groups)

    def _group(self) -> RobotsGroup | None:
        return self._groups.get(self.user_agent) or self._groups.get("*")

    @staticmethod
    def _path_of(url: str) -> str:
        try:
            parsed = urlparse(url)
        except ValueError:
            return url
        if not parsed.scheme and not parsed.netloc:
            return url
        path = parsed.path or "/"
        if parsed.query:
            path += "?" + parsed.query
        return path

    def is_allowed(self, url: str) -> bool:
        group = self._group()
        if group is None:
            return True

        path = self._path_of(url)
        best_len = -1
        allowed = True
        # Strictly-longer wins; equal-length ties keep the permissive outcome.
        for pattern in group.allow:
            if pattern_matches(path, pattern) and len(pattern) > best_len:
                best_len = len(pattern)
                allowed = True
        for pattern in group.disallow:
            if pattern_matches(path, pattern) and len(pattern) > best_len:
                best_len = len(pattern)
                allowed = False
        return allowed
