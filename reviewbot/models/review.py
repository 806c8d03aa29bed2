"""Shared data structures for review processing."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, field_validator


@dataclass(frozen=True, slots=True)
class PRDetails:
    owner: str
    repo: str
    number: int

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True, slots=True)
class DiffHunk:
    """One ``@@`` block of a unified diff for a single file."""

    file_path: str
    body: str
    start_line_new: int
    # Index of this header within the file's diff, the first "@@" line being 0.
    # Hunks dropped by the splitter still count.
    position_offset: int = 0


class ReviewItem(BaseModel):
    """A finding as proposed by the model, addressed by line content instead of position."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    line_content: str
    message: str

    @field_validator("line_content", "message")
    @classmethod
    def require_text(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


@dataclass(frozen=True, slots=True)
class Comment:
    """Provider-agnostic review comment.

    ``hunk_position`` is relative to the hunk header, ``absolute_line`` to the new
    file and ``diff_position`` to the file's first ``@@`` line, as GitHub's
    ``position`` field expects. Each submitter reads whichever it needs.
    """

    path: str
    body: str
    hunk_position: int
    absolute_line: int
    diff_position: int | None = None

    @property
    def github_position(self) -> int:
        if self.diff_position is not None:
            return self.diff_position
        # Without an offset the hunk is taken to be the first in its file.
        return self.hunk_position - 1
