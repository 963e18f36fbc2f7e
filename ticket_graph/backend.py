"""Store interfaces consumed by the analysis core."""

from abc import ABC, abstractmethod
from typing import Literal, Sequence

from ticket_graph.models import Document, Record, SearchPage, StrategyKind

FieldSelector = Sequence[str] | Literal["all"] | None

# Fields needed to build a Record with its links and recent comments.
LINK_FIELDS = [
    "summary",
    "status",
    "issuetype",
    "issuelinks",
    "description",
    "comment",
    "labels",
    "components",
    "assignee",
    "reporter",
    "priority",
]


class RecordStore(ABC):
    """Abstract base class for ticket trackers."""

    @abstractmethod
    def fetch_record(self, key: str, fields: FieldSelector = None) -> Record:
        """Fetch one record by key.

        Raises:
            NotFoundError: the key does not exist
            AuthError: credentials were rejected
            TransientRemoteError: retries were exhausted
        """
        pass

    @abstractmethod
    def search_records(self, query: str, start_at: int = 0, max_results: int = 25) -> SearchPage:
        """Search records; ``items`` holds Record objects."""
        pass

    @abstractmethod
    def similarity_query(self, kind: StrategyKind, value: str, record: Record) -> str:
        """Build a backend-native query finding records that share ``value`` with ``record``."""
        pass


class DocumentStore(ABC):
    """Abstract base class for document stores referenced from record text."""

    base_url: str

    @abstractmethod
    def fetch_document(self, document_id: str) -> Document:
        """Fetch one document by id."""
        pass

    @abstractmethod
    def search_documents(self, query: str, start_at: int = 0, max_results: int = 25) -> SearchPage:
        """Search documents; ``items`` holds Document objects."""
        pass
