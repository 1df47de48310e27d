"""Feature grouping of changed files with partition enforcement."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from pr_scout.context import AnalysisContext
from pr_scout.gateway import AnalysisGateway, default_grouping
from pr_scout.models import ChangeSetDetails
from pr_scout.schema import AnalysisTask, FileGroup, GroupingArtifact

logger = logging.getLogger(__name__)

CATCH_ALL_GROUP_NAME = "Other Changes"
CATCH_ALL_GROUP_EMOJI = "📁"
CATCH_ALL_GROUP_DESCRIPTION = "Files not assigned to a feature group"


def unique_paths(paths: Iterable[str]) -> list[str]:
    """Drop repeated paths while keeping first-occurrence order."""
    seen: set[str] = set()
    ordered: list[str] = []
    for path in paths:
        if path not in seen:
            seen.add(path)
            ordered.append(path)
    return ordered


def enforce_partition(groups: Sequence[FileGroup], files: Sequence[str]) -> list[FileGroup]:
    """Return groups that cover every file in ``files`` exactly once.

    Paths that are not part of ``files`` are dropped, a path listed more than
    once keeps only its first occurrence, groups left without files are
    removed, and files no group claimed are appended to a catch-all group.
    """
    expected = unique_paths(files)
    expected_set = set(expected)
    assigned: set[str] = set()
    healed: list[FileGroup] = []
    dropped_unknown = 0
    dropped_duplicates = 0

    for group in groups:
        kept: list[str] = []
        for path in group.files:
            if path not in expected_set:
                dropped_unknown += 1
                continue
            if path in assigned:
                dropped_duplicates += 1
                continue
            assigned.add(path)
            kept.append(path)
        if kept:
            healed.append(group.model_copy(update={"files": kept}))

    unassigned = [path for path in expected if path not in assigned]
    if unassigned:
        healed.append(
            FileGroup(
                name=CATCH_ALL_GROUP_NAME,
                emoji=CATCH_ALL_GROUP_EMOJI,
                description=CATCH_ALL_GROUP_DESCRIPTION,
                files=unassigned,
            )
        )

    if dropped_unknown or dropped_duplicates or unassigned:
        logger.warning(
            "Repaired file grouping: %d unknown, %d duplicate, %d unassigned path(s)",
            dropped_unknown,
            dropped_duplicates,
            len(unassigned),
        )
    return healed


class GroupingEngine:
    """Ask the gateway for feature groups and repair them into a partition."""

    def __init__(self, gateway: AnalysisGateway) -> None:
        self._gateway = gateway

    def group(self, details: ChangeSetDetails, files: Sequence[str], diff: str) -> list[FileGroup]:
        file_list = unique_paths(files)
        if not file_list:
            return []
        context = AnalysisContext.from_details(details, files=tuple(file_list), diff=diff)
        artifact = self._gateway.analyze(AnalysisTask.GROUP_FILES, context)
        if not isinstance(artifact, GroupingArtifact):
            artifact = default_grouping(file_list)
        return enforce_partition(artifact.groups, file_list)
