"""Encode and decode Claude Code project path ↔ directory name.

Claude Code names each project directory after the project's path with
both ``/`` and ``.`` replaced by ``-``::

    /home/wiz/AI/LLM        → -home-wiz-AI-LLM
    /home/wiz/site.io       → -home-wiz-site-io
    /home/wiz/.config/nvim  → -home-wiz--config-nvim

The mapping is lossy, so decoding checks the filesystem to find which
separators were slashes and which were dots. When the original tree no
longer exists the decoder falls back to reading every separator as ``/``,
which is wrong for paths that contained dots (or hyphens). That is a known
limitation, not something the decoder tries to guess around.
"""

import os
import re
from typing import Callable, Iterator

SEPARATOR = "-"
UNKNOWN_PROJECT = "Unknown"

# Characters a separator may stand for, in the order they are tried.
# encode_path leaves hyphens alone, so a separator can also be a literal one.
_ORIGINALS = ("/", ".", "-")

# Longest run of segments tried as one path component. Each extra segment
# doubles the candidates for a run, so this bounds the cost of a decode.
MAX_RUN_SEGMENTS = 10


def encode_path(path: str) -> str:
    """Encode a filesystem path to a Claude project directory name.

    /home/wiz/site.io → -home-wiz-site-io
    """
    if not path:
        return ""
    encoded = path.replace("/", SEPARATOR).replace(".", SEPARATOR)
    # On Windows-origin paths, also handle backslash
    return encoded.replace("\\", SEPARATOR)


def naive_decode(encoded: str) -> str:
    """Read every separator as ``/``. Used when no candidate path exists."""
    if not encoded:
        return ""
    return encoded.replace(SEPARATOR, "/")


def decode_path(encoded: str, exists: Callable[[str], bool] = os.path.exists) -> str:
    """Decode a Claude project directory name to a filesystem path.

    -home-wiz-site-io → /home/wiz/site.io   (if that path exists)

    ``exists`` is the check used to test candidate paths; it defaults to
    ``os.path.exists`` and is only ever called with absolute paths.
    """
    if not encoded:
        return ""
    encoded = strip_composite_suffix(encoded)
    if not encoded.startswith(SEPARATOR):
        return naive_decode(encoded)
    body = encoded[len(SEPARATOR):]
    if not body:
        return "/"

    segments = body.split(SEPARATOR)
    resolved = _PathSearch(segments, exists).run()
    if resolved is not None:
        return resolved
    return naive_decode(encoded)


def strip_composite_suffix(project_id: str) -> str:
    """Remove the ::hex suffix from composite project IDs.

    -home-wiz-project::a1b2c3d4 → -home-wiz-project
    """
    match = re.match(r'^(.+?)::[0-9a-fA-F]{8}$', project_id)
    if match:
        return match.group(1)
    return project_id


def project_name(path: str) -> str:
    """Get the last path segment as the project display name.

    /home/wiz/AI/LLM → LLM
    """
    parts = [p for p in path.split("/") if p]
    return parts[-1] if parts else UNKNOWN_PROJECT


def extract_project_name(project_id: str) -> str:
    """Display name straight from an encoded directory name."""
    return project_name(decode_path(project_id))


class _PathSearch:
    """Backtracking search over (segment run length × separator choice).

    Starting at the first unresolved segment, the longest run of segments
    (at most MAX_RUN_SEGMENTS) is tried first. Every slash/dot/hyphen
    combination between its parts is tried; an existing intermediate path
    is descended into, and an existing full path is accepted once the last
    segment is consumed.
    Lookup results and dead ends are memoised for the duration of one decode.
    """

    def __init__(self, segments: list[str], exists: Callable[[str], bool]):
        self._segments = segments
        self._exists = exists
        self._lookups: dict[str, bool] = {}
        self._dead_ends: set[tuple[str, int]] = set()

    def run(self) -> str | None:
        return self._search("/", 0)

    def _lookup(self, path: str) -> bool:
        if path not in self._lookups:
            self._lookups[path] = self._exists(path)
        return self._lookups[path]

    def _search(self, base: str, start: int) -> str | None:
        if (base, start) in self._dead_ends:
            return None
        total = len(self._segments)
        for end in range(min(total, start + MAX_RUN_SEGMENTS), start, -1):
            for candidate in self._candidates(base, self._segments[start:end]):
                if not self._lookup(candidate):
                    continue
                if end == total:
                    return candidate
                found = self._search(candidate, end)
                if found is not None:
                    return found
        self._dead_ends.add((base, start))
        return None

    def _candidates(self, base: str, run: list[str]) -> Iterator[str]:
        """Yield ``base`` joined with each rejoining of ``run``.

        Candidates come out in the same order as ``product(_ORIGINALS)``;
        a slash is only placed after a prefix that exists on disk.
        """

        def walk(part: str, index: int) -> Iterator[str]:
            if index == len(run):
                if part and not part.endswith("/"):
                    yield _join(base, part)
                return
            for original in _ORIGINALS:
                if original == "/":
                    # A slash may never produce an empty component
                    if not part or part.endswith("/"):
                        continue
                    if not self._lookup(_join(base, part)):
                        continue
                yield from walk(part + original + run[index], index + 1)

        yield from walk(run[0], 1)


def _join(base: str, part: str) -> str:
    return base + part if base.endswith("/") else f"{base}/{part}"
