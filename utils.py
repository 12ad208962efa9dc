"""
utils.py

Utility functions for SlidePin: fenced-block and brace-span JSON location,
id generation, timestamps, edit distance and text trimming.
"""

from __future__ import annotations

import random
import re
import string
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Iterator, List, Optional


_FENCE_RE = re.compile(r"```[ \t]*(?:json|JSON)?[ \t]*\r?\n?(.*?)```", re.DOTALL)


def iter_fenced_blocks(s: str) -> Iterator[str]:
    """Yield the body of every fenced code block with an optional ``json`` tag."""
    for match in _FENCE_RE.finditer(s or ""):
        body = match.group(1).strip()
        if body:
            yield body


def find_balanced_span(s: str, open_ch: str = "{", close_ch: str = "}") -> Optional[str]:
    """
    Return the first balanced ``{...}`` span in a string, or None.

    Braces inside JSON string literals are skipped so that a ``}`` in a
    summary does not end the span early.
    """
    start = s.find(open_ch)
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(s)):
        ch = s[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == open_ch:
            depth += 1
        elif ch == close_ch:
            depth -= 1
            if depth == 0:
                return s[start:i + 1]
    return None


# ----------------------------
# Ids and timestamps
# ----------------------------

def _random_suffix(n: int = 6) -> str:
    alphabet = string.ascii_lowercase + string.digits
    return "".join(random.choice(alphabet) for _ in range(n))


def _to_base36(n: int) -> str:
    digits = string.digits + string.ascii_lowercase
    if n == 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(digits[r])
    return "".join(reversed(out))


def new_pin_id() -> str:
    """Return a collision-resistant pin id (uuid4, timestamp+random fallback)."""
    try:
        return uuid.uuid4().hex
    except NotImplementedError:
        # no os.urandom on this platform
        return f"{int(time.time() * 1000)}-{_random_suffix(8)}"


def generate_project_id() -> str:
    """Return a project id of the form ``proj_<ts36>_<rand>``."""
    return f"proj_{_to_base36(int(time.time() * 1000))}_{_random_suffix(6)}"


def generate_context_id() -> str:
    return f"ctx_{int(time.time() * 1000)}_{_random_suffix(4)}"


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: Any) -> Optional[datetime]:
    """
    Parse an ISO date or datetime string into an aware datetime (UTC).

    Accepts ``YYYY-MM-DD`` as midnight UTC and a trailing ``Z``.
    Returns None for empty or unparsable values.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# ----------------------------
# Text helpers
# ----------------------------

def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance (insert, delete, substitute all cost 1)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    prev: List[int] = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        cur = [i]
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                cur.append(prev[j - 1])
            else:
                cur.append(min(prev[j - 1], cur[j - 1], prev[j]) + 1)
        prev = cur
    return prev[-1]


def truncate_text(text: str, limit: int, marker: str = "…") -> str:
    """Cut text to ``limit`` characters, appending ``marker`` when cut."""
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + marker


def extract_document_id(url: str) -> Optional[str]:
    """Pull the presentation id out of a ``/presentation/d/<id>`` URL."""
    match = re.search(r"/presentation/d/([a-zA-Z0-9_-]+)", url or "")
    return match.group(1) if match else None
