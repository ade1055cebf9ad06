"""Tests for fixed-window document chunking."""

import pytest

from pipelines.chunker import Document, DocumentChunk, DocumentChunker, chunk_documents

URL = "https://help.example.com/tarifas"


def reassemble(chunks, overlap):
    return chunks[0].text + "".join(chunk.text[overlap:] for chunk in chunks[1:])


class TestDocumentChunker:
    def test_overlapping_windows_cover_the_text(self):
        text = "".join(chr(ord("a") + i % 26) for i in range(2500))
        chunker = DocumentChunker(chunk_size=1000, chunk_overlap=200)

        chunks = chunker.split(text, URL)

        assert [len(chunk.text) for chunk in chunks] == [1000, 1000, 900]
        assert [chunk.ordinal for chunk in chunks] == [0, 1, 2]
        assert reassemble(chunks, 200) == text
        for previous, current in zip(chunks, chunks[1:]):
            assert previous.text[-200:] == current.text[:200]

    def test_text_of_exactly_one_window(self):
        chunks = DocumentChunker(1000, 200).split("x" * 1000, URL)
        assert len(chunks) == 1
        assert chunks[0].text == "x" * 1000

    def test_one_character_past_a_window(self):
        text = "y" * 1000 + "z"
        chunks = DocumentChunker(1000, 200).split(text, URL)

        assert len(chunks) == 2
        assert chunks[1].text == text[800:]
        assert reassemble(chunks, 200) == text

    def test_short_text_is_a_single_chunk(self):
        chunks = DocumentChunker(1000, 200).split("Como funciona o Pix?", URL)
        assert chunks == [DocumentChunk(source_url=URL, text="Como funciona o Pix?", ordinal=0)]

    def test_empty_text_has_no_chunks(self):
        assert DocumentChunker().split("", URL) == []

    def test_chunks_never_exceed_size(self):
        text = "abc " * 777
        chunks = DocumentChunker(chunk_size=50, chunk_overlap=10).split(text, URL)

        assert all(0 < len(chunk.text) <= 50 for chunk in chunks)
        assert reassemble(chunks, 10) == text

    def test_zero_overlap_partitions_the_text(self):
        text = "0123456789" * 5
        chunks = DocumentChunker(chunk_size=20, chunk_overlap=0).split(text, URL)

        assert [chunk.text for chunk in chunks] == [text[:20], text[20:40], text[40:]]

    @pytest.mark.parametrize("size,overlap", [(100, 100), (100, 150), (0, 0), (10, -1)])
    def test_invalid_window_configuration(self, size, overlap):
        with pytest.raises(ValueError):
            DocumentChunker(chunk_size=size, chunk_overlap=overlap)

    def test_chunk_key(self):
        chunk = DocumentChunk(source_url=URL, text="t", ordinal=4)
        assert chunk.key == (URL, 4)


def test_chunk_documents_preserves_order():
    documents = [
        Document(source_url="https://a.example.com/", title="A", text="a" * 30),
        Document(source_url="https://b.example.com/", title="B", text="b" * 10),
    ]
    chunks = chunk_documents(documents, DocumentChunker(chunk_size=20, chunk_overlap=5))

    assert [chunk.key for chunk in chunks] == [
        ("https://a.example.com/", 0),
        ("https://a.example.com/", 1),
        ("https://b.example.com/", 0),
    ]
