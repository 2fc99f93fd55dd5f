"""
Document sources.

The user's documents live in an external store; this package only needs to
list them. InMemoryDocumentSource backs the CLI and tests.
"""

import json
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import structlog

from .clock import to_naive_utc
from .models.documents import Document

logger = structlog.get_logger(__name__)


class DocumentSource(ABC):
    """Read-only access to a user's documents."""

    @abstractmethod
    def list_documents(
        self,
        user_id: str,
        since: Optional[datetime] = None,
        include_follow_ups: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        """
        List a user's documents, newest first.

        Args:
            user_id: Owner
            since: Only documents created at or after this time
            include_follow_ups: Include documents written as follow-up answers
            limit: Maximum number of documents returned
        """

    def count_qualifying(self, user_id: str) -> int:
        """Number of documents that count towards generation thresholds."""
        return len(self.list_documents(user_id))

    @abstractmethod
    def list_user_ids(self, active_since: Optional[datetime] = None) -> List[str]:
        """
        Users owning at least one qualifying document, sorted.

        Args:
            active_since: Only users with a qualifying document created at or after this time
        """


class InMemoryDocumentSource(DocumentSource):
    """Thread-safe in-process document store."""

    def __init__(self, documents: Optional[Iterable[Document]] = None):
        self._documents: Dict[str, List[Document]] = {}
        self._lock = threading.Lock()
        for doc in documents or ():
            self.add(doc)

    def add(self, document: Document) -> None:
        with self._lock:
            self._documents.setdefault(document.user_id, []).append(document)

    def list_documents(
        self,
        user_id: str,
        since: Optional[datetime] = None,
        include_follow_ups: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        with self._lock:
            docs = list(self._documents.get(user_id, ()))

        if not include_follow_ups:
            docs = [d for d in docs if not d.is_follow_up]
        if since is not None:
            since = to_naive_utc(since)
            docs = [d for d in docs if d.created_at >= since]

        docs.sort(key=lambda d: (d.created_at, d.document_id), reverse=True)
        return docs[:limit] if limit is not None else docs

    def list_user_ids(self, active_since: Optional[datetime] = None) -> List[str]:
        with self._lock:
            user_ids = list(self._documents)

        return sorted(
            user_id
            for user_id in user_ids
            if self.list_documents(user_id, since=active_since, limit=1)
        )

    @classmethod
    def from_jsonl(cls, path: Union[str, Path]) -> "InMemoryDocumentSource":
        """
        Load documents from a JSON Lines file, one Document object per line.

        Blank lines are skipped.
        """
        source = cls()
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                source.add(Document(**json.loads(line)))

        logger.debug("documents_loaded", path=str(path), users=len(source._documents))
        return source
