"""
Task search with pagination.

Two explicit modes:

* ``SearchMode.ID``: the query is matched against task ids, exactly or as
  a prefix.
* ``SearchMode.KEYWORD``: the query is split on whitespace and a task
  matches when every token occurs (case-insensitively) in its name,
  description or notes.

Results keep store insertion order in both modes.
"""

import logging
import math
from collections.abc import Iterable
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .backup import BackupManager
from .errors import TaskValidationError
from .models import Task
from .store import JsonTaskStore

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 5
MAX_PAGE_SIZE = 20


class SearchMode(str, Enum):
    """How the query string is interpreted."""

    ID = "id"
    KEYWORD = "keyword"


class Pagination(BaseModel):
    """Pagination metadata for a search page."""

    total_results: int = Field(..., ge=0, alias="totalResults")
    total_pages: int = Field(..., ge=0, alias="totalPages")
    current_page: int = Field(..., ge=1, alias="currentPage")
    page_size: int = Field(..., ge=1, alias="pageSize")

    model_config = ConfigDict(populate_by_name=True)


class SearchPage(BaseModel):
    """One page of search results."""

    tasks: list[Task] = Field(default_factory=list)
    pagination: Pagination


def parse_search_mode(mode: SearchMode | str) -> SearchMode:
    """Coerce ``mode`` to a SearchMode, raising TaskValidationError if unknown."""
    try:
        return SearchMode(mode)
    except ValueError:
        choices = ", ".join(m.value for m in SearchMode)
        raise TaskValidationError(
            f"Unknown search mode '{mode}' (expected one of: {choices})"
        ) from None


def matches_id(task: Task, query: str) -> bool:
    """True if ``query`` equals the task id or is a prefix of it."""
    return task.id.startswith(query)


def matches_keywords(task: Task, tokens: list[str]) -> bool:
    """True if every token occurs in the task's name, description or notes."""
    haystacks = [task.name.lower(), task.description.lower(), (task.notes or "").lower()]
    return all(any(token in text for text in haystacks) for token in tokens)


class SearchEngine:
    """
    Searches the store (and optionally backup snapshots).

    Example:
        >>> engine = SearchEngine(store)
        >>> page = engine.search("alpha", SearchMode.KEYWORD, page=1, page_size=5)
        >>> page.pagination.total_pages
    """

    def __init__(
        self,
        store: JsonTaskStore,
        backups: BackupManager | None = None,
        max_page_size: int = MAX_PAGE_SIZE,
    ) -> None:
        self._store = store
        self._backups = backups
        self.max_page_size = max_page_size

    def _candidates(self, include_history: bool) -> list[Task]:
        tasks = self._store.load_all()
        if not include_history or self._backups is None:
            return tasks

        seen = {t.id for t in tasks}
        for handle in self._backups.list_backups():
            for task in self._backups.load_backup(handle.name):
                if task.id not in seen:
                    seen.add(task.id)
                    tasks.append(task)
        return tasks

    def filter(self, tasks: Iterable[Task], query: str, mode: SearchMode | str) -> list[Task]:
        """Return the tasks matching ``query``, preserving input order."""
        mode = parse_search_mode(mode)
        if mode == SearchMode.ID:
            query = query.strip()
            if not query:
                return []
            return [t for t in tasks if matches_id(t, query)]

        tokens = [token.lower() for token in query.split()]
        if not tokens:
            return []
        return [t for t in tasks if matches_keywords(t, tokens)]

    def search(
        self,
        query: str,
        mode: SearchMode | str = SearchMode.KEYWORD,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        include_history: bool = False,
    ) -> SearchPage:
        """
        Run a query and return one page of matches.

        Args:
            query: Id (prefix) or whitespace-separated keywords
            mode: Query interpretation
            page: 1-based page number
            page_size: Results per page, between 1 and ``max_page_size``
            include_history: Also search backup snapshots, oldest first

        Returns:
            The requested page; an out-of-range page is empty

        Raises:
            TaskValidationError: If ``mode`` is unknown or ``page`` or
                ``page_size`` is out of range
        """
        mode = parse_search_mode(mode)
        if page < 1:
            raise TaskValidationError(f"page must be >= 1, got {page}")
        if not 1 <= page_size <= self.max_page_size:
            raise TaskValidationError(
                f"page_size must be between 1 and {self.max_page_size}, got {page_size}"
            )

        matches = self.filter(self._candidates(include_history), query, mode)
        total = len(matches)
        start = (page - 1) * page_size
        logger.debug("Search %r (%s) matched %d tasks", query, mode.value, total)

        return SearchPage(
            tasks=matches[start : start + page_size],
            pagination=Pagination(
                total_results=total,
                total_pages=math.ceil(total / page_size),
                current_page=page,
                page_size=page_size,
            ),
        )
