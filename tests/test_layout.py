import pytest

from sqd_worker.filesystem import Filesystem, LocalFs
from sqd_worker.layout import (
    BlockNumber,
    DataChunk,
    LayoutError,
    clean_chunk_ancestors,
    read_all_chunks,
)


class MemoryFs(Filesystem):
    def __init__(self, files):
        self.files = files

    async def ls_root(self):
        return list(self.files)

    async def ls(self, path):
        try:
            return list(self.files[str(path)])
        except KeyError:
            raise FileNotFoundError(f"Couldn't find top dir {path}") from None


def test_block_number_conversion():
    assert BlockNumber.parse("1000000000") == BlockNumber(1000000000)
    with pytest.raises(ValueError):
        BlockNumber.parse("20000000000000000000")
    with pytest.raises(ValueError):
        BlockNumber.parse("0xdeadbeef")
    assert str(BlockNumber(50)) == "0000000050"
    assert f"{BlockNumber(50)}" == "0000000050"


def test_data_chunk():
    chunk0 = DataChunk(
        first_block=1024, last_block=2047, last_hash="0xabcdef", top=1000
    )
    path = "0000001000/0000001024-0000002047-0xabcdef"
    assert chunk0.path() == path
    assert DataChunk.from_path(path) == chunk0

    chunk1 = DataChunk(
        first_block=221000000, last_block=221000649, last_hash="9QgFD", top=221000000
    )
    path = "0221000000/0221000000-0221000649-9QgFD"
    assert chunk1.path() == path
    assert str(chunk1) == path
    assert DataChunk.from_path(path) == chunk1


def test_data_chunk_from_full_path():
    chunk = DataChunk.from_path("/data/ds/0000001000/0000001024-0000002047-0xabcdef")
    assert chunk.top == 1000
    assert chunk.last_hash == "0xabcdef"


@pytest.mark.parametrize(
    "bad",
    [
        "0000001000/0000001024-0000002047-abc",
        "0000001000/0000001024-0000002047-0xabcdef/",
        "000001000/0000001024-0000002047-0xabcdef",
        "garbage",
    ],
)
def test_data_chunk_invalid(bad):
    with pytest.raises(ValueError):
        DataChunk.from_path(bad)


def test_data_chunk_ordering_by_last_block():
    a = DataChunk.from_path("0000000000/0000000005-0000000010-aaaaa")
    b = DataChunk.from_path("0000000000/0000000001-0000000020-bbbbb")
    assert sorted([b, a]) == [a, b]
    assert a < b and b > a


@pytest.mark.asyncio
async def test_read_all_chunks():
    fs = MemoryFs(
        {
            "0000001000": [
                "0000001000/0000001000-0000001999-0xabcdef",
                "0000001000/0000002000-0000002999-0x191919",
                "0000001000/0000003000-0000003999-0xdedede",
            ],
            "0000004000": [
                "0000004000/0000004000-0000004999-0xaaaaaa",
                "0000004000/1000000000-1000999999-0xbbbbbb",
            ],
        }
    )
    chunks = await read_all_chunks(fs)
    assert chunks == [
        DataChunk(top=1000, first_block=1000, last_block=1999, last_hash="0xabcdef"),
        DataChunk(top=1000, first_block=2000, last_block=2999, last_hash="0x191919"),
        DataChunk(top=1000, first_block=3000, last_block=3999, last_hash="0xdedede"),
        DataChunk(top=4000, first_block=4000, last_block=4999, last_hash="0xaaaaaa"),
        DataChunk(
            top=4000, first_block=1000000000, last_block=1000999999, last_hash="0xbbbbbb"
        ),
    ]


@pytest.mark.asyncio
async def test_sample(tmp_path):
    (tmp_path / "0017881390" / "0017881390-0017882786-32ee9457").mkdir(parents=True)
    (tmp_path / "not-a-top").mkdir()
    chunks = await read_all_chunks(LocalFs(tmp_path))
    assert chunks == [DataChunk.from_path("0017881390/0017881390-0017882786-32ee9457")]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "files",
    [
        {"0000001000": ["0000001000/0000002000-0000001999-0xabcdef"]},
        {"0000001000": ["0000001000/0000000500-0000001999-0xabcdef"]},
        {
            "0000001000": ["0000001000/0000001000-0000002000-0xabcdef"],
            "0000002000": ["0000002000/0000002001-0000002999-0xabcdef"],
        },
        {
            "0000001000": [
                "0000001000/0000001000-0000001999-0xabcdef",
                "0000001000/0000001999-0000002999-0x191919",
            ]
        },
    ],
)
async def test_read_all_chunks_invalid(files):
    with pytest.raises(LayoutError):
        await read_all_chunks(MemoryFs(files))


@pytest.mark.asyncio
async def test_clean_chunk_ancestors(tmp_path):
    chunk = tmp_path / "dataset" / "0000001000" / "0000001000-0000001999-0xabcdef"
    chunk.mkdir(parents=True)
    chunk.rmdir()
    clean_chunk_ancestors(chunk)
    assert await LocalFs(tmp_path).ls_root() == []
    assert not (tmp_path / "dataset").exists()


def test_clean_chunk_ancestors_keeps_non_empty(tmp_path):
    top = tmp_path / "dataset" / "0000001000"
    other = top / "0000002000-0000002999-0x191919"
    other.mkdir(parents=True)
    clean_chunk_ancestors(top / "0000001000-0000001999-0xabcdef")
    assert sorted(p.name for p in top.iterdir()) == ["0000002000-0000002999-0x191919"]
    assert sorted(p.name for p in tmp_path.iterdir()) == ["dataset"]