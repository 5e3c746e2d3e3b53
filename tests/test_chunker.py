"""Tests for word-boundary chunking."""

import pytest

from conftest import words
from services.ingestion.Chunker import chunk, split_words


class TestChunkSizes:
    def test_450_words_at_200(self):
        """450 words at size 200 give chunks of 200, 200 and 50 words."""
        chunks = chunk(words(450), 200, "doc-1")
        assert [c.token_count for c in chunks] == [200, 200, 50]
        assert [len(c.text.split()) for c in chunks] == [200, 200, 50]

    def test_exact_multiple(self):
        """No empty trailing chunk when the word count divides evenly."""
        assert [c.token_count for c in chunk(words(400), 200, "d")] == [200, 200]

    def test_short_text_single_chunk(self):
        """Text shorter than the chunk size yields one chunk."""
        chunks = chunk("hello sales team", 800, "d")
        assert len(chunks) == 1
        assert chunks[0].text == "hello sales team"

    def test_empty_text(self):
        """Empty or whitespace-only text yields no chunks."""
        assert chunk("", 200, "d") == []
        assert chunk("   \n\t ", 200, "d") == []

    def test_invalid_size(self):
        """A non-positive chunk size is rejected."""
        with pytest.raises(ValueError):
            split_words("a b c", 0)


class TestChunkContent:
    def test_join_reconstructs_text(self):
        """Joining the chunk texts with a space gives the original text back."""
        text = words(1234)
        chunks = chunk(text, 100, "doc-1")
        assert " ".join(c.text for c in chunks) == text

    def test_no_overlap(self):
        """Every word appears in exactly one chunk."""
        chunks = chunk(words(500), 120, "doc-1")
        all_words = [w for c in chunks for w in c.text.split()]
        assert all_words == words(500).split()

    def test_offsets_point_into_source(self):
        """Offsets slice the chunk text out of the source, including inner whitespace."""
        text = "alpha  beta\ngamma delta\n\nepsilon zeta eta"
        for c in chunk(text, 3, "doc-1"):
            assert text[c.start_offset:c.end_offset] == c.text
        assert chunk(text, 3, "doc-1")[0].text == "alpha  beta\ngamma"

    def test_deterministic_ids(self):
        """Ids follow {document}_chunk_{index} and repeat across runs."""
        first = chunk(words(300), 100, "doc-9")
        second = chunk(words(300), 100, "doc-9")
        assert [c.id for c in first] == ["doc-9_chunk_0", "doc-9_chunk_1", "doc-9_chunk_2"]
        assert first == second
