"""Render the per-hunk review prompt."""

from __future__ import annotations

from jinja2 import Environment, StrictUndefined, TemplateError

from reviewbot.models.review import DiffHunk

_ENVIRONMENT = Environment(undefined=StrictUndefined, autoescape=False, keep_trailing_newline=True)


class PromptRenderError(RuntimeError):
    """Raised when the review prompt template cannot be compiled or rendered."""


def render_review_prompt(template_text: str, hunk: DiffHunk) -> str:
    """Fill ``{{ FilePath }}`` and ``{{ CodeSnippet }}`` for one hunk."""

    try:
        template = _ENVIRONMENT.from_string(template_text)
        return template.render(FilePath=hunk.file_path, CodeSnippet=hunk.body)
    except TemplateError as exc:
        raise PromptRenderError(f"Failed to render review prompt for {hunk.file_path}: {exc}") from exc
