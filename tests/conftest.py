"""Shared fixtures: an in-memory record store and record factories."""

from datetime import datetime, timezone
from typing import Callable

import pytest
import structlog

from ticket_graph.cli import configure_logging
from ticket_graph.backend import FieldSelector, RecordStore
from ticket_graph.errors import NotFoundError
from ticket_graph.models import Record, RecordLink, SearchPage, StrategyKind


class InMemoryStore(RecordStore):
    """Record store over a dict, recording every call."""

    def __init__(self, records: list[Record] | None = None) -> None:
        self.records = {r.key: r for r in records or []}
        self.failures: dict[str, Exception] = {}
        self.search_results: dict[str, list[Record]] = {}
        self.search_failures: dict[str, Exception] = {}
        self.fetched: list[str] = []
        self.queries: list[str] = []

    def add(self, record: Record) -> None:
        self.records[record.key] = record

    def fetch_record(self, key: str, fields: FieldSelector = None) -> Record:
        self.fetched.append(key)
        if key in self.failures:
            raise self.failures[key]
        if key not in self.records:
            raise NotFoundError(f"Issue {key} not found", status=404)
        return self.records[key]

    def search_records(self, query: str, start_at: int = 0, max_results: int = 25) -> SearchPage:
        self.queries.append(query)
        if query in self.search_failures:
            raise self.search_failures[query]
        items = self.search_results.get(query, [])
        return SearchPage(items=items[start_at : start_at + max_results], total=len(items), start_at=start_at)

    def similarity_query(self, kind: StrategyKind, value: str, record: Record) -> str:
        return f"{kind.value}:{value}"


def build_record(key: str, *links: tuple[str, str], **kwargs) -> Record:
    """Build a record whose links are (target, relation) pairs."""
    return Record(
        key=key,
        summary=kwargs.pop("summary", f"Summary of {key}"),
        status=kwargs.pop("status", "Open"),
        links=tuple(RecordLink(target_key=t, relation=r) for t, r in links),
        **kwargs,
    )


@pytest.fixture
def make_record() -> Callable[..., Record]:
    """Factory for records: ``make_record("A", ("B", "blocks"), status="Done")``."""
    return build_record


@pytest.fixture
def make_store() -> Callable[..., InMemoryStore]:
    """Factory for in-memory stores seeded with records."""
    return InMemoryStore


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _default_logging():
    """Apply the CLI's default log level, as ``tg`` does before running any command."""
    configure_logging("critical")
    yield
    structlog.reset_defaults()
