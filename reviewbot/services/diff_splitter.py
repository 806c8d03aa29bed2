"""Split a raw unified diff into per-file, per-hunk review units."""

from __future__ import annotations

from typing import List

from reviewbot.models.review import DiffHunk

FILE_MARKER = "diff --git a/"
HUNK_MARKER = "\n@@"


def _parse_new_start(hunk: str) -> int:
    """Return the ``+start`` value of a hunk header, or 0 when it cannot be read."""

    header_end = hunk.find("@@", 2)
    if header_end == -1:
        return 0
    for field in hunk[2:header_end].split():
        if field.startswith("+"):
            start = field[1:].split(",", 1)[0]
            return int(start) if start.isdigit() else 0
    return 0


def _has_changes(hunk: str) -> bool:
    _, _, rest = hunk.partition("\n")
    return any(line.startswith(("+", "-")) for line in rest.split("\n"))


def _split_file(segment: str) -> List[DiffHunk]:
    header, sep, content = segment.partition("\n")
    if not sep:
        return []
    header_fields = header.split()
    if len(header_fields) < 2:
        return []
    file_path = header_fields[1].removeprefix("b/")

    hunks: List[DiffHunk] = []
    offset = 0
    # The piece before the first hunk is file metadata (index, mode, ---/+++ lines).
    for piece in content.split(HUNK_MARKER)[1:]:
        body = "@@" + piece.removesuffix("\n")
        if _has_changes(body):
            hunks.append(DiffHunk(file_path=file_path, body=body,
                                  start_line_new=_parse_new_start(body), position_offset=offset))
        offset += body.count("\n") + 1
    return hunks


def split_diff(diff_text: str) -> List[DiffHunk]:
    """Split ``diff_text`` into hunks in file order, then hunk order.

    Text without any ``diff --git a/`` marker yields no hunks; that is not an error.
    """

    hunks: List[DiffHunk] = []
    for segment in diff_text.split(FILE_MARKER)[1:]:
        if not segment.strip():
            continue
        hunks.extend(_split_file(segment))
    return hunks
