"""Positional text chunking for map-reduce summarization."""


def chunk_text(text: str, max_chars: int = 2800) -> list[str]:
    """Split text into consecutive slices of at most ``max_chars`` characters.

    Segmentation is purely positional; joining the result reproduces ``text``.

    Raises:
        ValueError: If max_chars is not positive
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be > 0")
    return [text[i : i + max_chars] for i in range(0, len(text), max_chars)]
