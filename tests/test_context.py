from rag_engine.context import assemble_context
from rag_engine.models import ScoredChunk


def ranked(make_chunk, token_counts):
    return [
        ScoredChunk(make_chunk(i + 1, [1.0], text=f"text {i + 1}", token_count=n), 1.0 - i * 0.1)
        for i, n in enumerate(token_counts)
    ]


def test_stops_at_first_chunk_over_budget(make_chunk):
    block = assemble_context(ranked(make_chunk, [400, 500, 300]), token_budget=900)

    assert block.cited_chunk_ids == [1, 2]
    assert block.total_tokens == 900


def test_does_not_fill_gap_with_smaller_later_chunks(make_chunk):
    block = assemble_context(ranked(make_chunk, [400, 600, 100]), token_budget=900)

    assert block.cited_chunk_ids == [1]
    assert block.total_tokens == 400


def test_context_text_carries_citation_tags(make_chunk):
    block = assemble_context(ranked(make_chunk, [10, 10]), token_budget=100)

    assert block.text == "[doc_1 | doc.md]\ntext 1\n\n[doc_2 | doc.md]\ntext 2"


def test_empty_input(make_chunk):
    block = assemble_context([], token_budget=100)

    assert block.text == ""
    assert block.cited_chunk_ids == []
    assert block.total_tokens == 0
