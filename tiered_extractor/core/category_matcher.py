"""Sequential category matcher.

Groups position-ordered items into contiguous runs around uncategorised
gaps, so a follow-up step can decide which neighbouring category each gap
belongs to. Used to smooth page classifications and to segment artifacts.

    [A, -, -, B, -, A]  ->  [A, -, -, B]  [B, -, A]

Rules:
- A run extends through uncategorised items and items of its own category.
- A different category closes the run with that item as the boundary and
  starts the next run from the same item, so neighbouring groups overlap by
  one item.
- Only runs containing at least one uncategorised item and at least one
  categorised item are emitted; fully categorised stretches have nothing to
  resolve.
- Excluded items close the open run and belong to no group. Uncategorised
  items that follow (or that lead the input) defer to the next category seen.
"""

from typing import Any, Callable, Iterable, TypeVar

from tiered_extractor.core.config import CategoryConfig
from tiered_extractor.core.value_helpers import comparable_value
from tiered_extractor.pydantic_models.artifact_models import Artifact

T = TypeVar("T")


def resolve_category_groups(
    items: Iterable[T],
    category_of: Callable[[T], str | None],
    exclude: str = CategoryConfig.EXCLUDE_SENTINEL,
) -> list[list[T]]:
    """Group already-ordered items into runs around uncategorised gaps.

    Args:
        items: Items in position order.
        category_of: Returns an item's category, or None when uncategorised.
        exclude: Category value (or substring) marking a separator item.

    Returns:
        Ordered list of groups; each group is a contiguous slice of the input
        (excluded items removed) including its bounding categorised items.
    """
    groups: list[list[T]] = []
    run: list[T] = []
    run_category: str | None = None
    has_gap = False

    def close_run():
        if has_gap and run_category is not None:
            groups.append(run)

    for item in items:
        category = category_of(item)

        if category is not None and exclude in category:
            close_run()
            run, run_category, has_gap = [], None, False
            continue

        if category is None:
            run.append(item)
            has_gap = True
            continue

        if run_category is None or category == run_category:
            run.append(item)
            run_category = category
            continue

        run.append(item)
        close_run()
        run, run_category, has_gap = [item], category, False

    close_run()
    return groups


def artifact_category(artifact: Artifact, category_key: str) -> str | None:
    """Category of an artifact under a classification key ("" counts as none)."""
    value: Any = artifact.classification.get(category_key)
    return comparable_value(value)


def group_artifacts_by_category(artifacts: Iterable[Artifact], category_key: str) -> list[list[Artifact]]:
    """Sort artifacts by position and group them by their classification category."""
    ordered = sorted(artifacts, key=lambda a: a.position)
    return resolve_category_groups(ordered, lambda a: artifact_category(a, category_key))
