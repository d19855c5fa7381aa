# tests/test_search.py
import pytest
import pytest_asyncio

from mediavault.database import dispose_all, init_media_db
from mediavault.search import Search, add_field, parse_query


def test_parse_query():
    clauses = parse_query('+genre:horror -rating:R popularity:<4 first_date:>="1960-01-01" beatles')
    assert [(c.occur, c.field, c.op, c.value) for c in clauses] == [
        ("+", "genre", None, "horror"),
        ("-", "rating", None, "R"),
        ("", "popularity", "<", "4"),
        ("", "first_date", ">=", "1960-01-01"),
        ("", None, None, "beatles"),
    ]


def test_add_field_accumulates():
    fields = {}
    add_field(fields, "Genre", "Rock")
    add_field(fields, "genre", "Pop")
    add_field(fields, "first date", "1969")
    assert fields == {"genre": ["Rock", "Pop"], "first_date": "1969"}


@pytest_asyncio.fixture
async def index(tmp_path):
    url = f"sqlite+aiosqlite:///{(tmp_path / 'media.db').as_posix()}"
    await init_media_db(url)
    idx = Search(url, "film", keywords=("genre", "rating"))
    await idx.index({
        "alien": {"title": "Alien", "genre": ["Horror", "Science Fiction"], "rating": "R", "popularity": 3,
                  "year": 1979},
        "et": {"title": "E.T.", "genre": ["Family", "Science Fiction"], "rating": "PG", "popularity": 1,
               "year": 1982},
        "halloween": {"title": "Halloween", "genre": "Horror", "rating": "R", "popularity": 8, "year": 1978},
    })
    yield idx
    await dispose_all()


@pytest.mark.asyncio
async def test_required_and_excluded(index):
    assert sorted(await index.search("+genre:horror")) == ["alien", "halloween"]
    assert await index.search("+genre:horror -title:halloween") == ["alien"]


@pytest.mark.asyncio
async def test_keyword_fields_match_whole_values(index):
    # "science" alone is not a genre
    assert await index.search("+genre:science") == []
    assert sorted(await index.search('+genre:"science fiction"')) == ["alien", "et"]


@pytest.mark.asyncio
async def test_numeric_ranges(index):
    assert sorted(await index.search("+popularity:<4")) == ["alien", "et"]
    assert await index.search("+year:>=1980") == ["et"]


@pytest.mark.asyncio
async def test_optional_terms_rank(index):
    assert (await index.search("alien horror"))[0] == "alien"


@pytest.mark.asyncio
async def test_reindex_replaces_document(index):
    await index.index({"et": {"title": "E.T. the Extra-Terrestrial", "genre": "Family"}})
    assert await index.search("+genre:\"science fiction\"") == ["alien"]
    await index.delete(["alien"])
    assert await index.search("+genre:\"science fiction\"") == []
    assert await index.search("") == []
