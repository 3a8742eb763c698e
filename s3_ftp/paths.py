from __future__ import annotations
"""FTP-style path resolution over a flat key namespace.

Keys never start with ``/``. The root of a bucket is the empty string.
"""

SEPARATOR = "/"


def resolve_path(current: str, target: str) -> str:
    """Resolve ``target`` against the ``current`` prefix.

    Absolute targets (leading ``/``) ignore ``current``. ``.`` segments are
    dropped, ``..`` removes the previous segment and is absorbed at the root.
    The result carries no leading or trailing separator.
    """

    joined = target if target.startswith(SEPARATOR) else f"{current}{SEPARATOR}{target}"
    segments: list[str] = []
    for segment in joined.split(SEPARATOR):
        if segment in ("", "."):
            continue
        if segment == "..":
            if segments:
                segments.pop()
            continue
        segments.append(segment)
    return SEPARATOR.join(segments)


def resolve_prefix(current: str, target: str) -> str:
    """Like :func:`resolve_path` but suitable for delimiter listings.

    Non-root results end with exactly one ``/``; the root stays ``""``.
    """

    resolved = resolve_path(current, target)
    return f"{resolved}{SEPARATOR}" if resolved else ""


def split_bucket_path(value: str) -> tuple[str, str]:
    """Split ``bucket:path`` at the first colon.

    Values without a colon are returned as a path with an empty bucket.
    """

    bucket, sep, path = value.partition(":")
    if not sep:
        return "", value
    return bucket, path


def key_basename(key: str) -> str:
    return key.rstrip(SEPARATOR).rsplit(SEPARATOR, 1)[-1]
