"""Helpers shared by the orchestrator when it creates work units."""

from tiered_extractor.core.config import PlanningConfig, ProcessConfig
from tiered_extractor.core.schema_tools import title_case
from tiered_extractor.pydantic_models.plan_models import GlobalSearchMode, SearchMode


def resolve_search_mode(global_mode: GlobalSearchMode | str, group_mode: SearchMode | str | None) -> SearchMode:
    """Search mode a unit runs with.

    skim_only and exhaustive_only override the group. Otherwise the group's
    own mode applies; groups without a usable mode skim.
    """
    global_mode = GlobalSearchMode(global_mode)
    if global_mode == GlobalSearchMode.SKIM_ONLY:
        return SearchMode.SKIM
    if global_mode == GlobalSearchMode.EXHAUSTIVE_ONLY:
        return SearchMode.EXHAUSTIVE

    try:
        mode = SearchMode(group_mode) if group_mode else SearchMode(PlanningConfig.DEFAULT_GROUP_SEARCH_MODE)
    except ValueError:
        mode = SearchMode(PlanningConfig.DEFAULT_GROUP_SEARCH_MODE)
    if mode == SearchMode.INTELLIGENT:
        return SearchMode(PlanningConfig.DEFAULT_GROUP_SEARCH_MODE)
    return mode


def build_process_name(kind: str, level: int, object_type: str, fields: list[str]) -> str:
    """Display name of a unit, e.g. "Identity L0: Demand (Demand Number, Client)".

    Cut to ProcessConfig.MAX_NAME_LENGTH with a trailing "...".
    """
    name = f"{kind} L{level}: {object_type}"
    if fields:
        name += f" ({', '.join(title_case(f) for f in fields)})"

    limit = ProcessConfig.MAX_NAME_LENGTH
    if len(name) > limit:
        name = name[: limit - 3] + "..."
    return name
