# mediavault/search.py
"""Field-map search index stored alongside the media catalogue.

Documents are flattened into one SearchField row per (key, field, value).
Queries use a small subset of the usual full-text syntax:

    +genre:horror -rating:R popularity:<4 first_date:>="1960-01-01" beatles

`+` clauses are required, `-` clauses exclude, bare clauses are optional and
only affect ranking (or, when nothing is required, select by union).
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import and_, delete, func, select

from .database import get_sessionmaker
from .media_models import SearchField

log = logging.getLogger("sync")

FieldMap = Dict[str, Any]
IndexMap = Dict[str, FieldMap]

_CLAUSE_RE = re.compile(r'([+-]?)(?:([\w.]+):)?(>=|<=|>|<)?(?:"([^"]*)"|(\S+))')


def add_field(fields: FieldMap, name: str, value: Any) -> None:
    """Accumulate values; repeated fields become lists."""
    name = name.lower().replace(" ", "_")
    if name in fields:
        cur = fields[name]
        if not isinstance(cur, list):
            cur = [cur]
        cur.append(value)
        fields[name] = cur
    else:
        fields[name] = value


@dataclass
class Clause:
    occur: str  # "+", "-" or ""
    field: Optional[str]
    op: Optional[str]
    value: str


def parse_query(q: str) -> List[Clause]:
    clauses = []
    for m in _CLAUSE_RE.finditer(q or ""):
        value = m.group(4) if m.group(4) is not None else m.group(5)
        if value is None or (value == "" and m.group(4) is None):
            continue
        field = m.group(2).lower() if m.group(2) else None
        clauses.append(Clause(m.group(1), field, m.group(3), value))
    return clauses


def _as_number(v: str) -> Optional[float]:
    try:
        return float(v)
    except ValueError:
        return None


def _rows(key: str, fields: FieldMap) -> Iterable[tuple]:
    for name, value in fields.items():
        values = value if isinstance(value, list) else [value]
        for v in values:
            if v is None or v == "":
                continue
            if isinstance(v, bool):
                yield name, "true" if v else "false", None
            elif isinstance(v, (int, float)):
                yield name, str(v), float(v)
            elif isinstance(v, (datetime, date)):
                yield name, v.strftime("%Y-%m-%d"), None
            else:
                yield name, str(v), None


class Search:
    def __init__(self, db_url: str, name: str, keywords: Iterable[str] = ()):
        self.db_url = db_url
        self.name = name
        self.keywords: Set[str] = {k.lower() for k in keywords}

    async def index(self, docs: IndexMap) -> None:
        if not docs:
            return
        Session = get_sessionmaker(self.db_url)
        async with Session() as db:
            await db.execute(delete(SearchField).where(
                SearchField.index_name == self.name, SearchField.doc_key.in_(list(docs.keys()))))
            for key, fields in docs.items():
                for name, text, num in _rows(key, fields):
                    db.add(SearchField(index_name=self.name, doc_key=key, field=name,
                                       value_text=text, value_num=num))
            await db.commit()

    async def delete(self, keys: List[str]) -> None:
        if not keys:
            return
        Session = get_sessionmaker(self.db_url)
        async with Session() as db:
            await db.execute(delete(SearchField).where(
                SearchField.index_name == self.name, SearchField.doc_key.in_(keys)))
            await db.commit()

    def _condition(self, c: Clause):
        conds = [SearchField.index_name == self.name]
        if c.field:
            conds.append(SearchField.field == c.field)
        if c.field and c.value == "*":
            return and_(*conds)
        num = _as_number(c.value)
        if c.op:
            if num is not None:
                col, v = SearchField.value_num, num
            else:
                col, v = SearchField.value_text, c.value
            conds.append({
                ">": col > v, ">=": col >= v, "<": col < v, "<=": col <= v,
            }[c.op])
        elif c.field and c.field in self.keywords:
            conds.append(func.lower(SearchField.value_text) == c.value.lower())
        elif num is not None and c.field:
            conds.append(SearchField.value_num == num)
        else:
            conds.append(SearchField.value_text.ilike(f"%{c.value}%"))
        return and_(*conds)

    async def search(self, q: str, limit: int = 100) -> List[str]:
        clauses = parse_query(q)
        if not clauses:
            return []
        Session = get_sessionmaker(self.db_url)
        required: Optional[Set[str]] = None
        excluded: Set[str] = set()
        scores: Dict[str, int] = {}
        async with Session() as db:
            for c in clauses:
                keys = set((await db.execute(
                    select(SearchField.doc_key).where(self._condition(c)).distinct()
                )).scalars().all())
                if c.occur == "+":
                    required = keys if required is None else required & keys
                elif c.occur == "-":
                    excluded |= keys
                else:
                    for k in keys:
                        scores[k] = scores.get(k, 0) + 1
        if required is not None:
            candidates = required
        else:
            candidates = set(scores.keys())
        candidates -= excluded
        ranked = sorted(candidates, key=lambda k: (-scores.get(k, 0), k))
        return ranked[:limit] if limit and limit > 0 else ranked
