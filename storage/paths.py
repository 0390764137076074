from __future__ import annotations

SEPARATOR = "/"


def build_path(*parts: str) -> str:
    """Join path segments with ``/``, ignoring empty segments and stray slashes."""
    segments = [part.strip(SEPARATOR) for part in parts]
    return SEPARATOR.join(segment for segment in segments if segment)
