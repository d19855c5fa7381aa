# tests/test_activity.py
from datetime import datetime

import pytest

from mediavault.activity import parse_events
from mediavault.dates import DateRange, interval

from .conftest import day_end

DECEMBER = DateRange(datetime(2024, 12, 1), day_end(2024, 12, 31))


async def listen(ctx, *events):
    payload = [{"kind": "track", "date": date, **ids} for date, ids in events]
    return await ctx.activity.create_events(ctx.name, ctx.media, parse_events(payload))


@pytest.mark.asyncio
async def test_etag_resolves_to_recording(ctx):
    counts = await listen(ctx,
                          ("2024-12-04T10:00:00Z", {"etag": "E"}),
                          ("2024-12-04T11:00:00Z", {"etag": "missing"}))
    assert counts["tracks"] == 1 and counts["dropped"] == 1
    [event] = await ctx.activity.track_events(ctx.name, DECEMBER)
    assert (event.rid, event.rgid, event.date) == ("R", "rg-abbey", datetime(2024, 12, 4, 10))


@pytest.mark.asyncio
async def test_popular_tracks_and_artists(ctx):
    await listen(ctx,
                 ("2024-12-01T10:00:00Z", {"rid": "rid-101"}),
                 ("2024-12-02T10:00:00Z", {"rid": "R"}),
                 ("2024-12-03T10:00:00Z", {"rid": "R"}))
    popular = await ctx.activity.popular_tracks(ctx.name, ctx.media, DECEMBER)
    assert [(a.track.title, a.count) for a in popular] == [("Something", 2), ("Come Together", 1)]

    artists = await ctx.activity.popular_artists(ctx.name, ctx.media, DECEMBER)
    assert [(a.name, a.count) for a in artists] == [("The Beatles", 3)]

    releases = await ctx.activity.releases(ctx.name, ctx.media, DECEMBER)
    # rid-only events carry no release group
    assert releases == []


@pytest.mark.asyncio
async def test_releases_from_etag_events(ctx):
    await listen(ctx, ("2024-12-02T10:00:00Z", {"etag": "E"}))
    releases = await ctx.activity.releases(ctx.name, ctx.media, DECEMBER)
    assert [r.release.name for r in releases] == ["Abbey Road"]


@pytest.mark.asyncio
async def test_events_outside_window_are_ignored(ctx):
    await listen(ctx, ("2024-11-30T23:00:00Z", {"etag": "E"}))
    assert await ctx.activity.tracks(ctx.name, ctx.media, DECEMBER) == []


@pytest.mark.asyncio
async def test_day_counts_fill_gaps(ctx):
    await listen(ctx,
                 ("2024-12-02T10:00:00Z", {"etag": "E"}),
                 ("2024-12-02T11:00:00Z", {"etag": "E"}))
    counts = await ctx.activity.track_day_counts(ctx.name, DateRange(datetime(2024, 12, 1), day_end(2024, 12, 3)))
    assert [n for _, n in counts] == [0, 2, 0]


@pytest.mark.asyncio
async def test_year_chart_compares_with_previous_year(ctx):
    await listen(ctx, ("2024-03-10T10:00:00Z", {"etag": "E"}), ("2023-03-10T10:00:00Z", {"etag": "E"}))
    chart = await ctx.activity.chart(ctx.name, interval("2024"))
    assert len(chart["labels"]) == 12
    assert [d["label"] for d in chart["datasets"]] == ["2023", "2024"]
    assert [d["data"][2] for d in chart["datasets"]] == [1, 1]


@pytest.mark.asyncio
async def test_events_are_per_user(ctx):
    await listen(ctx, ("2024-12-02T10:00:00Z", {"etag": "E"}))
    assert await ctx.activity.tracks("bob", ctx.media, DECEMBER) == []
    await ctx.activity.delete_user_events(ctx.name)
    assert await ctx.activity.tracks(ctx.name, ctx.media, DECEMBER) == []


@pytest.mark.asyncio
async def test_listen_in_the_last_second_of_a_day_counts(ctx):
    await listen(ctx, ("2024-12-31T23:59:59.500000Z", {"etag": "E"}))
    assert len(await ctx.activity.tracks(ctx.name, ctx.media, DECEMBER)) == 1


@pytest.mark.asyncio
async def test_all_time_chart_is_monthly_from_first_listen(ctx):
    await listen(ctx, ("2024-10-10T10:00:00Z", {"etag": "E"}), ("2024-12-02T10:00:00Z", {"etag": "E"}))
    chart = await ctx.activity.chart(ctx.name, interval("all", datetime(2024, 12, 4, 15, 30)))
    assert chart["labels"] == ["Oct 2024", "Nov 2024", "Dec 2024"]
    assert chart["datasets"] == [{"label": "Listens", "data": [1, 0, 1]}]


@pytest.mark.asyncio
async def test_all_time_chart_without_listens(ctx):
    chart = await ctx.activity.chart(ctx.name, interval("all", datetime(2024, 12, 4, 15, 30)))
    assert chart["labels"] == ["Dec 2024"]
    assert chart["datasets"][0]["data"] == [0]
