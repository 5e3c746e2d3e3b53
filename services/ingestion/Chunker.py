"""Word-boundary chunking of normalized text."""

import re

from shared.models.document import Chunk, make_chunk_id

_WORD = re.compile(r"\S+")


def split_words(text: str, chunk_size_words: int) -> list[tuple[int, int, int]]:
    """Return (start, end, word_count) character spans of consecutive word groups.

    Each span runs from the first character of its first word to the last
    character of its last word, so whitespace inside a chunk is kept verbatim
    and only the whitespace between chunks is dropped.
    """
    if chunk_size_words <= 0:
        raise ValueError("chunk_size_words must be positive")
    spans: list[tuple[int, int, int]] = []
    start = end = count = 0
    for match in _WORD.finditer(text):
        if count == 0:
            start = match.start()
        end = match.end()
        count += 1
        if count == chunk_size_words:
            spans.append((start, end, count))
            count = 0
    if count:
        spans.append((start, end, count))
    return spans


def chunk(text: str, chunk_size_words: int, document_id: str) -> list[Chunk]:
    """Split ``text`` into non-overlapping chunks of at most ``chunk_size_words`` words.

    Deterministic: the same text, size and document id always give the same
    chunks, which keeps re-indexing idempotent. Joining the chunk texts with a
    single space gives back the original text when its words are single-space
    separated.
    """
    return [
        Chunk(
            id=make_chunk_id(document_id, index),
            document_id=document_id,
            text=text[start:end],
            token_count=count,
            chunk_index=index,
            start_offset=start,
            end_offset=end,
        )
        for index, (start, end, count) in enumerate(split_words(text, chunk_size_words))
    ]
