"""Content path normalization."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from xpfetch.core.exceptions import InvalidInputError


def clean_content_path(content_path: str | Sequence[str] | None) -> str:
    """Return a site-relative content path as one slash-delimited string.

    Args:
        content_path: A slash-delimited string, a pre-split sequence of segments,
            or None.

    Returns:
        The canonical path: non-empty segments joined by ``/``, without leading
        or trailing slashes. None gives an empty string.

    Raises:
        InvalidInputError: If ``content_path`` is neither a string nor a
            sequence of strings.

    Examples:
        >>> clean_content_path(["movies", "lost"])
        'movies/lost'
        >>> clean_content_path("/movies//lost/")
        'movies/lost'

    """
    if content_path is None:
        return ""

    if isinstance(content_path, str):
        return _join_segments([content_path])

    if isinstance(content_path, Sequence) and all(isinstance(segment, str) for segment in content_path):
        return _join_segments(content_path)

    msg = (
        "Unexpected target content _path: contentPath must be a string or pure string array "
        f"(contentPath={_describe(content_path)})"
    )
    raise InvalidInputError(msg, code=400)


def _describe(value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return repr(value)


def _join_segments(parts: Sequence[str]) -> str:
    return "/".join(segment for part in parts for segment in part.split("/") if segment)
