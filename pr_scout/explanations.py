"""Per-file explanation cache."""

from __future__ import annotations

from collections.abc import MutableMapping

from pr_scout.context import AnalysisContext, extract_file_diff
from pr_scout.gateway import AnalysisGateway
from pr_scout.schema import AnalysisTask


class ExplanationCache:
    """Memoize AI explanations by file path; at most one request per path."""

    def __init__(
        self,
        gateway: AnalysisGateway,
        store: MutableMapping[str, str] | None = None,
    ) -> None:
        self._gateway = gateway
        self._store: MutableMapping[str, str] = {} if store is None else store

    def __contains__(self, path: object) -> bool:
        return path in self._store

    def get(self, path: str) -> str | None:
        return self._store.get(path)

    def explain(self, path: str, *, title: str, diff: str) -> str:
        cached = self._store.get(path)
        if cached is not None:
            return cached
        context = AnalysisContext(
            title=title,
            file_path=path,
            diff=extract_file_diff(diff, path),
        )
        explanation = str(self._gateway.analyze(AnalysisTask.EXPLAIN_FILE, context))
        self._store[path] = explanation
        return explanation
