from sqd_worker.chunkref import ChunkRef, to_ranges
from sqd_worker.layout import DataChunk


def _chunk(first: int, last: int, last_hash: str = "abcdef") -> DataChunk:
    return DataChunk(top=0, first_block=first, last_block=last, last_hash=last_hash)


def test_str_joins_dataset_and_chunk_path():
    chunk = _chunk(1024, 2047)
    ref = ChunkRef("eth-main", chunk)
    assert str(ref) == f"eth-main/{chunk.path()}"


def test_ordering_by_dataset_then_last_block():
    a1 = ChunkRef("a", _chunk(0, 10))
    a2 = ChunkRef("a", _chunk(11, 20))
    b1 = ChunkRef("b", _chunk(0, 5))
    assert sorted([b1, a2, a1]) == [a1, a2, b1]
    assert a1 < a2 < b1
    assert b1 >= a2


def test_equality_uses_all_fields():
    first = ChunkRef("a", _chunk(0, 10, "abcdef"))
    second = ChunkRef("a", _chunk(0, 10, "fedcba"))
    assert first != second
    assert len({first, second, ChunkRef("a", _chunk(0, 10, "abcdef"))}) == 2


def test_to_ranges_groups_by_dataset_in_order():
    chunks = [
        ChunkRef("b", _chunk(100, 199)),
        ChunkRef("a", _chunk(10, 19)),
        ChunkRef("a", _chunk(0, 9)),
    ]
    assert to_ranges(chunks) == {"a": [(0, 9), (10, 19)], "b": [(100, 199)]}


def test_to_ranges_empty():
    assert to_ranges([]) == {}