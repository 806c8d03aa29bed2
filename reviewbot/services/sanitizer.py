"""Recover a JSON array from free-form model output."""

from __future__ import annotations

import re
from typing import Final

_CONTROL_CHARS: Final = str.maketrans({"\n": " ", "\t": " ", "\r": " "})
_TRAILING_COMMA: Final = re.compile(r",(\s*[}\]])")


def sanitize_json_array(raw: str) -> str:
    """Return the outermost ``[...]`` slice of ``raw`` cleaned for ``json.loads``.

    Code fences, prose before the first ``[`` and commentary after the last ``]`` are
    dropped, raw newlines/tabs/carriage returns become spaces and trailing commas before
    a closing bracket are removed. An empty string means the model reported nothing.
    """

    start = raw.find("[")
    end = raw.rfind("]")
    if start == -1 or end == -1 or end < start:
        return ""
    candidate = raw[start : end + 1].translate(_CONTROL_CHARS)
    return _TRAILING_COMMA.sub(r"\1", candidate)
