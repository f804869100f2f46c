import hashlib
from typing import Optional, Union

from jsassist.models import Caret


def compute_source_hash(source: Union[str, bytes]) -> str:
    """
    Return the SHA-256 hex-digest of *source*.
    Accepts either ``str`` (automatically UTF-8-encoded) or raw ``bytes``.
    """
    sha256 = hashlib.sha256()
    if isinstance(source, str):
        source = source.encode("utf-8")
    sha256.update(source)
    return sha256.hexdigest()


def caret_offset(source: str, caret: Caret) -> Optional[int]:
    """
    Character offset of *caret* in *source*, or None when the caret lies
    outside of it. Lines are split on "\\n", like tree-sitter rows.
    """
    offset = 0
    for _ in range(caret.line):
        nl = source.find("\n", offset)
        if nl < 0:
            return None
        offset = nl + 1
    line_end = source.find("\n", offset)
    if line_end < 0:
        line_end = len(source)
    if offset + caret.ch > line_end:
        return None
    return offset + caret.ch


def caret_to_point(source: str, caret: Caret) -> tuple[int, int]:
    """
    Convert a character based caret into a tree-sitter point
    (row, byte column). Carets past the end of a line are clamped to it.
    """
    lines = source.split("\n")
    if caret.line >= len(lines):
        return (len(lines) - 1, len(lines[-1].encode("utf8")))
    line = lines[caret.line]
    return (caret.line, len(line[:caret.ch].encode("utf8")))


def blank_trailing_dot(source: str, caret: Caret) -> Optional[str]:
    """
    Return *source* with the "." right before *caret* replaced by a space,
    or None when there is no such dot. Offsets are preserved.

    `foo.|` is the most common reason a buffer does not parse while the
    user is typing.
    """
    offset = caret_offset(source, caret)
    if offset is None or offset == 0:
        return None
    dot = offset - 1
    while dot > 0 and source[dot] in " \t":
        dot -= 1
    if source[dot] != ".":
        return None
    return source[:dot] + " " + source[dot + 1:]
