"""Artifact splitter: flatten an artifact forest to chosen depths, then regroup.

Depth 0 is the roots themselves. Grouping modes:
- default:   one group with everything
- node:      one group per producer (the unit or definition that created it)
- artifact:  one group per artifact
- top_level: one group per root ancestor

Without requested depths the roots are returned unchanged as a single group,
except in top_level mode where each root is its own group.
"""

from collections.abc import Iterable

from tiered_extractor.pydantic_models.artifact_models import Artifact

SPLIT_DEFAULT = "default"
SPLIT_BY_NODE = "node"
SPLIT_BY_ARTIFACT = "artifact"
SPLIT_BY_TOP_LEVEL = "top_level"

SPLIT_MODES = (SPLIT_DEFAULT, SPLIT_BY_NODE, SPLIT_BY_ARTIFACT, SPLIT_BY_TOP_LEVEL)


def split(mode: str, artifacts: list[Artifact], levels: Iterable[int] | None = None) -> list[list[Artifact]]:
    """Flatten `artifacts` to the requested depths and group them by `mode`.

    Args:
        mode: One of SPLIT_MODES.
        artifacts: Root artifacts with their `children` loaded.
        levels: Depths to keep. None or empty keeps the roots unflattened.

    Raises:
        ValueError: If `mode` is unknown.
    """
    if mode not in SPLIT_MODES:
        raise ValueError(f"Unknown split mode: {mode}")

    levels = sorted(set(levels or []))
    if not levels:
        if mode == SPLIT_BY_TOP_LEVEL:
            return by_top_level(list(artifacts))
        return [list(artifacts)] if artifacts else []

    flattened = flatten(artifacts, levels)

    if mode == SPLIT_BY_NODE:
        return by_producer(flattened)
    if mode == SPLIT_BY_ARTIFACT:
        return [[artifact] for artifact in flattened]
    if mode == SPLIT_BY_TOP_LEVEL:
        return by_top_level(flattened, index_tree(artifacts))
    return [flattened] if flattened else []


def flatten(artifacts: list[Artifact], levels: list[int]) -> list[Artifact]:
    """Depth-first walk keeping nodes whose depth is in `levels`."""
    wanted = set(levels)
    deepest = max(wanted)
    result: list[Artifact] = []

    def walk(node: Artifact, depth: int):
        if depth in wanted:
            result.append(node)
        if depth < deepest:
            for child in node.children:
                walk(child, depth + 1)

    for root in artifacts:
        walk(root, 0)
    return result


def by_producer(artifacts: list[Artifact]) -> list[list[Artifact]]:
    """Group by producer_id, keeping first-seen order. Artifacts with no producer share one group."""
    groups: dict[int | None, list[Artifact]] = {}
    for artifact in artifacts:
        groups.setdefault(artifact.producer_id, []).append(artifact)
    return list(groups.values())


def index_tree(artifacts: list[Artifact]) -> dict[int, Artifact]:
    """Index every node of the forest by id."""
    index: dict[int, Artifact] = {}
    stack = list(artifacts)
    while stack:
        node = stack.pop()
        index[node.id] = node
        stack.extend(node.children)
    return index


def find_top_level_ancestor(artifact: Artifact, index: dict[int, Artifact]) -> Artifact:
    """Follow parent_artifact_id up to the root.

    Stops at the last ancestor present in `index` if the chain leaves it, and
    at the first repeated id if the chain loops.
    """
    current = artifact
    seen = {current.id}
    while current.parent_artifact_id is not None:
        parent = index.get(current.parent_artifact_id)
        if parent is None or parent.id in seen:
            break
        seen.add(parent.id)
        current = parent
    return current


def by_top_level(artifacts: list[Artifact], index: dict[int, Artifact] | None = None) -> list[list[Artifact]]:
    """Group artifacts under their root ancestor, in first-seen order."""
    index = index if index is not None else {a.id: a for a in artifacts}
    groups: dict[int, list[Artifact]] = {}
    for artifact in artifacts:
        root = find_top_level_ancestor(artifact, index)
        groups.setdefault(root.id, []).append(artifact)
    return list(groups.values())
