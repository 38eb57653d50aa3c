from typing import List

DEFAULT_CHUNK_CHARS = 400


def chunk_text(text: str, max_chars: int = DEFAULT_CHUNK_CHARS) -> List[str]:
    """Split an answer into stream-sized chunks, preferring newline boundaries.

    Lines longer than ``max_chars`` are cut hard. Empty text yields no chunks.
    """
    if not text:
        return []
    parts: List[str] = []
    buffer = ""
    for line in text.splitlines(keepends=True):
        while len(line) > max_chars:
            if buffer:
                parts.append(buffer)
                buffer = ""
            parts.append(line[:max_chars])
            line = line[max_chars:]
        if len(buffer) + len(line) > max_chars:
            parts.append(buffer)
            buffer = line
        else:
            buffer += line
    if buffer:
        parts.append(buffer)
    return parts
