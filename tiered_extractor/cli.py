"""CLI entrypoint for hierarchical extraction."""

import argparse
import asyncio
import json
import logging
import os
import sys
import warnings
from pathlib import Path

from tiered_extractor.core.config import DEFAULT_MODELS, LLM_PROVIDER, API_KEY_ENV_VAR, PlanningConfig, RuntimeConfig

# Suppress LiteLLM's direct prints (must be before import)
os.environ["LITELLM_LOG"] = "ERROR"

warnings.filterwarnings("ignore", message="Pydantic serializer warnings")
warnings.filterwarnings("ignore", category=UserWarning, module="pydantic")
warnings.filterwarnings("ignore", category=ResourceWarning)

# Suppress noisy loggers (HTTP clients, LiteLLM internals)
for logger_name in ["httpx", "httpcore", "litellm", "LiteLLM", "LiteLLM Router", "aiohttp", "asyncio"]:
    logging.getLogger(logger_name).setLevel(logging.ERROR)

from dotenv import load_dotenv  # noqa: E402 - must be after logging config

load_dotenv()


def load_pages(path: Path) -> list:
    """Read root artifacts from a JSON file.

    Accepts a list of strings (one page each) or a list of objects with
    "text" and optionally "id", "name" and nested "children".
    """
    from tiered_extractor.pydantic_models import Artifact

    raw = json.loads(path.read_text(encoding="utf-8"))
    next_id = [1]

    def build(entry, position: int, parent_id: int | None) -> Artifact:
        if isinstance(entry, str):
            entry = {"text": entry}
        artifact_id = entry.get("id") or next_id[0]
        next_id[0] = max(next_id[0], artifact_id) + 1
        artifact = Artifact(
            id=artifact_id,
            name=entry.get("name") or f"Page {position + 1}",
            position=entry.get("position", position),
            parent_artifact_id=parent_id,
            text=entry.get("text", ""),
            meta=entry.get("meta") or {},
        )
        artifact.children = [build(child, i, artifact.id) for i, child in enumerate(entry.get("children") or [])]
        return artifact

    return [build(entry, i, None) for i, entry in enumerate(raw)]


async def extract(
    schema_path: str,
    pages_path: str,
    output_path: str | None = None,
    hints_path: str | None = None,
    search_mode: str = PlanningConfig.DEFAULT_GLOBAL_SEARCH_MODE,
    page_levels: list[int] | None = None,
    dedup: bool = False,
    verify: bool = False,
    smooth_keys: list[str] | None = None,
    max_concurrent: int = RuntimeConfig.MAX_CONCURRENT,
    verbose: bool = False,
    smart_model: str | None = None,
) -> dict | None:
    """Run the orchestrator over a schema and a pages file.

    Args:
        schema_path: JSON schema of the objects to extract.
        pages_path: JSON file of pages (see load_pages).
        output_path: Where to write the result JSON. Defaults to <pages>.extracted.json.
        hints_path: Optional text file with planning hints.
        search_mode: Global search mode override.
        page_levels: Depths of the artifact tree that are pages.
        dedup: Run label deduplication after extraction.
        verify: Run label verification after extraction.
        smooth_keys: Classification keys to smooth before the other corrections.
        max_concurrent: Units executing at once.
        verbose: DEBUG logging on the console.
        smart_model: Model for planning.

    Returns:
        The output dict, or None on failure.
    """
    # Import here to avoid circular imports
    from tiered_extractor.core import ConfigurationError, InMemoryJobRuntime, InMemoryRepository, get_logger
    from tiered_extractor.orchestrator import ExtractionOrchestrator
    from tiered_extractor.phases import CorrectionPhase, RunConfig
    from tiered_extractor.pydantic_models import GlobalSearchMode, PlanOwner, RunStatus

    schema_file, pages_file = Path(schema_path), Path(pages_path)
    for path in (schema_file, pages_file):
        if not path.exists():
            print(f"Error: File not found: {path}")
            return None

    if not os.environ.get(API_KEY_ENV_VAR):
        print(f"Error: {API_KEY_ENV_VAR} not set")
        if LLM_PROVIDER == "azure":
            print("For Azure, set: AZURE_API_KEY, AZURE_API_BASE, AZURE_API_VERSION")
        else:
            print("Set it in .env or export OPENROUTER_API_KEY=...")
        return None

    schema = json.loads(schema_file.read_text(encoding="utf-8"))
    hints = Path(hints_path).read_text(encoding="utf-8") if hints_path else None
    roots = load_pages(pages_file)
    owner = PlanOwner(id=1, name=schema.get("title", schema_file.stem), target_schema=schema, hints=hints)

    planner_model = smart_model or DEFAULT_MODELS["planner"]
    config = RunConfig(
        planner_model=planner_model,
        global_search_mode=GlobalSearchMode(search_mode),
        page_levels=tuple(page_levels) if page_levels else None,
        verbose=verbose,
    )

    print(f"\n{'='*50}")
    print(f"Extracting: {pages_file.name}")
    print(f"{'='*50}")
    print(f"  Provider: {LLM_PROVIDER}")
    print(f"  Planner model: {planner_model.replace('openrouter/', '').replace('azure/', '')}")
    print(f"  Fast model: {DEFAULT_MODELS['extractor'].replace('openrouter/', '').replace('azure/', '')}")
    print(f"  Search mode: {search_mode}")
    print(f"  Concurrency: {max_concurrent}")
    corrections = [name for name, on in (("dedup", dedup), ("verify", verify), ("smooth", bool(smooth_keys))) if on]
    print(f"  Corrections: {', '.join(corrections) or 'OFF'}")
    print()

    repository = InMemoryRepository(owners=[owner], artifacts=roots)
    orchestrator = ExtractionOrchestrator(
        owner=owner,
        artifacts=roots,
        repository=repository,
        runtime=InMemoryJobRuntime(max_concurrent=max_concurrent),
        config=config,
        logger=get_logger(verbose=verbose),
    )

    try:
        state = await orchestrator.run()

        if state.status == RunStatus.COMPLETED and (dedup or verify or smooth_keys):
            correction_phase = CorrectionPhase(
                repository,
                smooth_keys=smooth_keys,
                deduplicate_labels=dedup,
                verify_labels=verify,
                page_levels=config.page_levels,
                cost_tracker=orchestrator.cost_tracker,
                errors=orchestrator.get_errors(),
                logger=orchestrator.logger,
            )
            await correction_phase.run(roots)

        output = orchestrator.to_output()
        output["pages"] = [
            {"id": page.id, "name": page.name, "classification": page.classification}
            for page in orchestrator.context.pages
        ]
    except ConfigurationError as e:
        print(f"\n[ERROR] {e}")
        return None
    except Exception as e:
        print(f"\n[ERROR] Run failed: {e}")
        if verbose:
            import traceback
            traceback.print_exc()
        return None

    output_file = Path(output_path) if output_path else pages_file.with_suffix(".extracted.json")
    with open(output_file, "w") as f:
        json.dump(output, f, indent=2, ensure_ascii=False)
    print(f"\n[OUTPUT] {output_file}")
    summary = output["rollup"]["summary"]
    by_type = ", ".join(f"{name}: {count}" for name, count in summary["by_type"].items())
    print(f"  Objects: {summary['total_objects']} ({by_type or 'none'})")

    if orchestrator.cost_tracker.call_count > 0:
        print(f"\n{orchestrator.cost_tracker.summary()}")

    return output if state.status == RunStatus.COMPLETED else None


def main():
    parser = argparse.ArgumentParser(
        description="Hierarchical extraction of schema objects from pages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tiered-extract schema.json pages.json
  tiered-extract schema.json pages.json --search-mode exhaustive_only --verify
  tiered-extract schema.json docs.json --page-levels 1 --dedup --smooth section
        """,
    )
    parser.add_argument("schema", help="Path to the target JSON schema")
    parser.add_argument("pages", help="Path to a JSON list of pages")
    parser.add_argument("-o", "--output", default=None, help="Output JSON file")
    parser.add_argument("--hints", default=None, help="Text file with planning hints")
    parser.add_argument(
        "--search-mode",
        choices=["intelligent", "skim_only", "exhaustive_only"],
        default=PlanningConfig.DEFAULT_GLOBAL_SEARCH_MODE,
        help="Global search mode override (default: intelligent)",
    )
    parser.add_argument(
        "--page-levels",
        type=int,
        nargs="+",
        default=None,
        metavar="N",
        help="Depths of the page tree that are pages (default: the top-level entries)",
    )
    parser.add_argument("--dedup", action="store_true", help="Normalise label spellings across pages")
    parser.add_argument("--verify", action="store_true", help="Correct outlier labels using neighbouring pages")
    parser.add_argument(
        "--smooth",
        action="append",
        default=None,
        metavar="KEY",
        help="Fill missing categories for a classification key (repeatable)",
    )
    parser.add_argument(
        "-c", "--concurrent",
        type=int,
        default=RuntimeConfig.MAX_CONCURRENT,
        help=f"Units executing at once (default: {RuntimeConfig.MAX_CONCURRENT})",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output with DEBUG level logging")
    parser.add_argument(
        "--smart-model",
        type=str,
        default=None,
        help=f"Model for planning. Default: {DEFAULT_MODELS['planner']}",
    )

    args = parser.parse_args()

    result = asyncio.run(extract(
        schema_path=args.schema,
        pages_path=args.pages,
        output_path=args.output,
        hints_path=args.hints,
        search_mode=args.search_mode,
        page_levels=args.page_levels,
        dedup=args.dedup,
        verify=args.verify,
        smooth_keys=args.smooth,
        max_concurrent=args.concurrent,
        verbose=args.verbose,
        smart_model=args.smart_model,
    ))

    sys.exit(0 if result else 1)


if __name__ == "__main__":
    main()
