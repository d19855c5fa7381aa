# tests/test_progress.py
import pytest

from mediavault.errors import AccessDenied, BadRequest, NotFound
from mediavault.progress import INSERTED, SAME, TOO_OLD, UPDATED, OffsetIn, Progress, parse_offsets


def offset(etag="e1", offset=10, duration=0, date="2024-12-04T10:00:00Z"):
    return OffsetIn.model_validate({"etag": etag, "offset": offset, "duration": duration, "date": date})


def test_parse_offsets_shapes():
    one = {"ETag": "e1", "Offset": 5, "Date": "2024-12-04T10:00:00Z"}
    assert len(parse_offsets([one, one])) == 2
    assert len(parse_offsets({"offsets": [one]})) == 1
    assert parse_offsets(one)[0].etag == "e1"


def test_parse_offsets_rejects_bad_batch():
    good = {"etag": "e1", "offset": 5, "date": "2024-12-04T10:00:00Z"}
    with pytest.raises(BadRequest):
        parse_offsets([good, {"etag": "", "offset": 5, "date": "2024-12-04T10:00:00Z"}])
    with pytest.raises(BadRequest):
        parse_offsets([{"etag": "e1", "offset": 5}])
    with pytest.raises(BadRequest):
        parse_offsets("offsets")


@pytest.mark.asyncio
async def test_offsets_move_forward_only(auth):
    p = Progress()
    assert await p.update("alice", offset(offset=10, duration=300)) == INSERTED
    assert await p.update("alice", offset(offset=20)) == SAME
    assert await p.update("alice", offset(offset=5, date="2024-12-03T10:00:00Z")) == TOO_OLD
    assert await p.update("alice", offset(offset=30, date="2024-12-05T10:00:00Z")) == UPDATED

    [o] = await p.offsets("alice")
    assert o.offset == 30
    # unknown duration keeps the stored one
    assert o.duration == 300


@pytest.mark.asyncio
async def test_same_instant_in_another_zone_is_same(auth):
    p = Progress()
    await p.update("alice", offset(date="2024-12-04T10:00:00Z"))
    assert await p.update("alice", offset(offset=99, date="2024-12-04T05:00:00-05:00")) == SAME


@pytest.mark.asyncio
async def test_offsets_are_per_user(auth):
    p = Progress()
    await p.update("alice", offset())
    await p.update("bob", offset())
    [a] = await p.offsets("alice")
    with pytest.raises(AccessDenied):
        await p.delete("bob", a.id)
    await p.delete("alice", a.id)
    with pytest.raises(NotFound):
        await p.offset("alice", a.id)
    assert len(await p.offsets("bob")) == 1
