"""
Command-line interface for reflective prompt ranking and insight caching.

Documents are read from a JSON Lines file, one Document per line:
    {"document_id": "e1", "user_id": "u1", "text": "...", "created_at": "2025-01-05T10:00:00Z"}

Usage:
    # Rank the built-in prompts against a user's documents
    reflective-prompts rank entries.jsonl --user u1 --k 5

    # Cached insight summary (generates on miss)
    reflective-prompts insights entries.jsonl --user u1 --force

    # Background trigger (waits for the decision so it can be printed)
    reflective-prompts trigger entries.jsonl --user u1 --event document_created

    # Resolve a served prompt
    reflective-prompts complete entries.jsonl --user u1 --assignment-id <uuid>

    # Weekly sweep: gated generation for every user active in the last 30 days
    reflective-prompts generate-all entries.jsonl --active-days 30

    # Release generation locks abandoned by a crashed process, drop dead cache rows
    reflective-prompts reconcile
"""

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, List, Optional

import structlog
from sqlalchemy.orm import sessionmaker

from reflective_prompts.config import settings
from reflective_prompts.errors import ReflectivePromptsError
from reflective_prompts.logging_config import setup_logging
from reflective_prompts.models.artifacts import ArtifactType
from reflective_prompts.models.tracker import TriggerEvent
from reflective_prompts.ranking import rank_documents
from reflective_prompts.service import ReflectivePromptService
from reflective_prompts.sources import InMemoryDocumentSource
from reflective_prompts.storage.database import build_engine, create_all_tables
from reflective_prompts.text.normalizer import get_reduction_strategy

logger = structlog.get_logger(__name__)


# ============================================================================
# HELPERS
# ============================================================================

def _to_jsonable(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if hasattr(value, "__dataclass_fields__"):
        return asdict(value)
    return value


def write_output(results: List[Any], output_path: Optional[Path], format: str = "json"):
    """
    Write results to stdout or a file.

    Args:
        results: Pydantic models, dataclasses or plain dicts
        output_path: Output file path (None = stdout)
        format: "json" or "jsonl"
    """
    payload = [_to_jsonable(r) for r in results]

    if not output_path:
        if format == "jsonl":
            for item in payload:
                print(json.dumps(item, ensure_ascii=False, default=str))
        else:
            print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))
        return

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", encoding="utf-8") as f:
        if format == "jsonl":
            for item in payload:
                f.write(json.dumps(item, ensure_ascii=False, default=str) + "\n")
        else:
            json.dump(payload, f, ensure_ascii=False, indent=2, default=str)

    logger.info("output_written", path=str(output_path), count=len(payload))


def _load_documents(path: Optional[str]) -> InMemoryDocumentSource:
    if not path:
        return InMemoryDocumentSource()
    documents_path = Path(path)
    if not documents_path.exists():
        raise FileNotFoundError(f"Documents file not found: {documents_path}")
    return InMemoryDocumentSource.from_jsonl(documents_path)


def _build_service(args: argparse.Namespace, reconcile_on_start: bool = True) -> ReflectivePromptService:
    engine = build_engine(
        args.database_url or settings.database_url,
        pool_size=settings.database_pool_size,
        echo=settings.database_echo_sql,
    )
    create_all_tables(engine)

    oracle = None
    if getattr(args, "provider", None) or getattr(args, "model", None):
        from reflective_prompts.generation.oracle import create_oracle

        oracle = create_oracle(provider=args.provider, model=args.model)

    return ReflectivePromptService(
        documents=_load_documents(getattr(args, "documents", None)),
        oracle=oracle,
        session_factory=sessionmaker(bind=engine, expire_on_commit=False),
        reconcile_on_start=reconcile_on_start,
    )


# ============================================================================
# SUBCOMMANDS
# ============================================================================

def cmd_rank(args: argparse.Namespace) -> List[Any]:
    source = _load_documents(args.documents)
    docs = source.list_documents(args.user)
    result = rank_documents(
        docs,
        k=args.k,
        max_per_theme=args.max_per_theme,
        strategy=get_reduction_strategy(args.strategy) if args.strategy else None,
        exclude_ids=args.exclude,
    )
    return [result]


def cmd_insights(args: argparse.Namespace) -> List[Any]:
    service = _build_service(args)
    try:
        return [service.get_or_generate(args.user, args.type, force_refresh=args.force)]
    finally:
        service.close()


def cmd_trigger(args: argparse.Namespace) -> List[Any]:
    service = _build_service(args)
    try:
        future = service.maybe_trigger_background_generation(args.user, args.event)
        decision = future.result(timeout=settings.generation_lock_timeout_seconds)
        results: List[Any] = [decision] if decision is not None else []
        results.extend(service.open_prompts(args.user))
        return results
    finally:
        service.close()


def cmd_complete(args: argparse.Namespace) -> List[Any]:
    service = _build_service(args)
    try:
        completed = service.complete_prompt(args.user, args.assignment_id)
        return [{"assignment_id": args.assignment_id, "completed": completed}]
    finally:
        service.close(wait=True)


def cmd_open(args: argparse.Namespace) -> List[Any]:
    service = _build_service(args)
    try:
        return service.open_prompts(args.user)
    finally:
        service.close()


def cmd_generate_all(args: argparse.Namespace) -> List[Any]:
    service = _build_service(args)
    try:
        return [service.generate_for_all_users(active_days=args.active_days)]
    finally:
        service.close()


def cmd_reconcile(args: argparse.Namespace) -> List[Any]:
    service = _build_service(args, reconcile_on_start=False)
    try:
        released = service.reconcile()
        purged = service.purge_artifacts()
        return [{"released": released, "purged_artifacts": purged}]
    finally:
        service.close()


# ============================================================================
# MAIN CLI
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reflective-prompts",
        description="Reflective prompt ranking, insight caching and background generation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    parser.add_argument(
        "--output", "-o", default=None, help="Output file path (default: stdout)"
    )
    parser.add_argument(
        "--format", "-f", choices=["json", "jsonl"], default="json", help="Output format"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Console logs at DEBUG")

    subparsers = parser.add_subparsers(dest="command", required=True)

    rank = subparsers.add_parser("rank", help="Rank prompts against a user's documents")
    rank.add_argument("documents", help="JSON Lines file with documents")
    rank.add_argument("--user", "-u", required=True)
    rank.add_argument("--k", type=int, default=None)
    rank.add_argument("--max-per-theme", type=int, default=None)
    rank.add_argument("--strategy", choices=["suffix", "porter", "none"], default=None)
    rank.add_argument("--exclude", nargs="*", default=None, help="Candidate IDs to leave out")
    rank.set_defaults(handler=cmd_rank)

    insights = subparsers.add_parser("insights", help="Cached insight summary")
    insights.add_argument("documents", help="JSON Lines file with documents")
    insights.add_argument("--user", "-u", required=True)
    insights.add_argument(
        "--type", choices=[t.value for t in ArtifactType], default=ArtifactType.THEME_SUMMARY.value
    )
    insights.add_argument("--force", action="store_true", help="Bypass the milestone gate")
    insights.add_argument("--provider", "-p", default=None, help="ollama, openai, deepseek, openrouter")
    insights.add_argument("--model", "-m", default=None)
    insights.set_defaults(handler=cmd_insights)

    trigger = subparsers.add_parser("trigger", help="Fire a background generation trigger")
    trigger.add_argument("documents", help="JSON Lines file with documents")
    trigger.add_argument("--user", "-u", required=True)
    trigger.add_argument(
        "--event", choices=[e.value for e in TriggerEvent], default=TriggerEvent.DOCUMENT_CREATED.value
    )
    trigger.set_defaults(handler=cmd_trigger)

    complete = subparsers.add_parser("complete", help="Mark a served prompt as answered")
    complete.add_argument("documents", nargs="?", default=None, help="JSON Lines file with documents")
    complete.add_argument("--user", "-u", required=True)
    complete.add_argument("--assignment-id", required=True)
    complete.set_defaults(handler=cmd_complete)

    open_prompts = subparsers.add_parser("open", help="List a user's unanswered prompts")
    open_prompts.add_argument("--user", "-u", required=True)
    open_prompts.set_defaults(handler=cmd_open)

    generate_all = subparsers.add_parser(
        "generate-all", help="Run gated background generation for every active user"
    )
    generate_all.add_argument("documents", help="JSON Lines file with documents")
    generate_all.add_argument(
        "--active-days", type=int, default=None, help="Default: SWEEP_ACTIVE_DAYS (30)"
    )
    generate_all.set_defaults(handler=cmd_generate_all)

    reconcile = subparsers.add_parser("reconcile", help="Release stuck generation locks and purge dead cache rows")
    reconcile.set_defaults(handler=cmd_reconcile)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        setup_logging(log_level="DEBUG", log_json=False)
    else:
        setup_logging()

    try:
        results = args.handler(args)
        write_output(results, Path(args.output) if args.output else None, args.format)
    except ReflectivePromptsError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except Exception as e:
        logger.error("cli_failed", command=args.command, error=str(e), exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
