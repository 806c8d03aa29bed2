"""Locate a model-quoted line inside a diff hunk.

The model names the line it comments on by content, not by number. Matching policy:

* whitespace runs are collapsed to one space on both sides before comparing;
* the hunk is scanned top to bottom and the first matching line wins;
* only added (``+``) lines are valid targets: a first match on a context or removed
  line fails rather than guessing another occurrence;
* a target written without a diff marker may also match a line's text after its
  marker, except on removed lines, which only match marker-included.
"""

from __future__ import annotations

from typing import Final, Tuple

from reviewbot.models.review import DiffHunk

DIFF_MARKERS: Final = ("+", "-", " ")
NO_NEWLINE_MARKER: Final = "\\"


class LineNotFoundError(LookupError):
    """Raised when line content cannot be mapped to an added line of the hunk."""


def normalize_line(text: str) -> str:
    return " ".join(text.split())


def _matches(line: str, target: str) -> bool:
    if normalize_line(line) == target:
        return True
    if not line or line[0] not in DIFF_MARKERS:
        return False
    text = normalize_line(line[1:])
    if target[0] in ("+", "-"):
        # "+x = 1" must still match "+    x = 1".
        return target[0] == line[0] and normalize_line(target[1:]) == text
    return line[0] != "-" and text == target


def resolve_location(hunk: DiffHunk, line_content: str) -> Tuple[int, int]:
    """Return ``(hunk_position, absolute_line)`` for ``line_content`` within ``hunk``.

    ``hunk_position`` is 1-based over every line of the body, the ``@@`` header being 1.
    ``absolute_line`` is the line number in the new version of the file.
    """

    target = normalize_line(line_content)
    if not target:
        raise LineNotFoundError("model provided empty line content")

    absolute_line = hunk.start_line_new
    for hunk_position, line in enumerate(hunk.body.split("\n"), start=1):
        if hunk_position == 1 and line.startswith("@@"):
            continue
        if line.startswith(NO_NEWLINE_MARKER):
            continue

        if _matches(line, target):
            if not line.startswith("+"):
                raise LineNotFoundError(f"matched line is not an added line ('+'): {line!r}")
            return hunk_position, absolute_line

        if not line.startswith("-"):
            absolute_line += 1

    raise LineNotFoundError(f"line content not found in diff hunk: {line_content!r}")
