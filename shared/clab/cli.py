"""
Command line interface.

Usage:
    clab init                                 # Create notes/state dirs and agent states
    clab update --agents architect,educator   # Repository-level update per agent
    clab status [--check]                     # Agent states, note counts, API health
    clab deep-dive --agent architect          # Multi-level analysis with cached notes
    clab run-agent --agent visionary          # One agent, one repository analysis
    clab coaching                             # Improvements, discussion, report
    clab notes list --agent architect
    clab notes clear --agent architect [--path src]

Results are printed to stdout (``--output json`` for machine-readable output);
logs go to stderr.
"""

import argparse
import json
import signal
import sys
import threading
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from clab_config.utils import split_list
from clab_logging import configure_root_logging, get_logger, set_global_level

from .coaching import CoachingSession, load_agent_insights
from .config import LabConfig
from .errors import ClabError
from .keys import Level, display_path
from .model import OpenRouterClient
from .notes import NoteStore
from .orchestrator import AnalysisOrchestrator
from .personas import PersonaRegistry
from .repository import get_repository_context
from .state import AgentState
from .workflow import initialize_agents, load_or_initialize, run_agent_analysis, run_agent_update


logger = get_logger("cli")


def _emit(args: argparse.Namespace, data: Any, text_lines: list[str]) -> None:
    if args.output == "json":
        print(json.dumps(data, indent=2, ensure_ascii=False, default=str))
    else:
        for line in text_lines:
            print(line)


def load_config(args: argparse.Namespace) -> LabConfig:
    """Config from file and environment with CLI flags applied on top.

    A ``.env`` file in the workspace is loaded first; variables already set
    in the environment are not overridden.
    """
    load_dotenv((args.workspace or Path.cwd()) / ".env")
    config = LabConfig.from_env(config_file=args.config)

    exclusions = None
    if getattr(args, "exclude", None):
        exclusions = config.exclusions + tuple(p for value in args.exclude for p in split_list(value))
    extensions = split_list(args.extensions) if getattr(args, "extensions", None) else None
    if getattr(args, "all_files", False):
        extensions = []

    return config.with_overrides(
        workspace=args.workspace,
        model=args.model,
        max_depth=getattr(args, "max_depth", None),
        max_workers=getattr(args, "workers", None),
        max_age_hours=getattr(args, "max_age_hours", None),
        exclusions=exclusions,
        file_extensions=None if extensions is None else tuple(extensions),
        max_file_size=getattr(args, "max_file_size", None),
        agents=tuple(split_list(args.agents)) if getattr(args, "agents", None) else None,
        summarize=False if getattr(args, "no_summary", False) else None,
    )


def _client(config: LabConfig) -> OpenRouterClient:
    return OpenRouterClient(
        config.api_key, base_url=config.base_url, default_model=config.model, timeout=config.timeout
    )


def cmd_init(args: argparse.Namespace, config: LabConfig) -> int:
    """Create the notes and state directories and the initial agent states."""
    config.require_valid(need_api_key=False)
    registry = PersonaRegistry.from_file(config.personas_file)

    config.notes_path.mkdir(parents=True, exist_ok=True)
    outcome = initialize_agents(config, registry)

    _emit(
        args,
        {"notes_dir": str(config.notes_path), "states_dir": str(config.states_path), "agents": outcome},
        [f"Initialized clab in {config.workspace}"]
        + [f"  {agent_id}: {status}" for agent_id, status in outcome.items()],
    )
    return 0


def cmd_update(args: argparse.Namespace, config: LabConfig) -> int:
    """Run the agent update workflow."""
    config.require_valid()
    registry = PersonaRegistry.from_file(config.personas_file)
    results = run_agent_update(config, registry, _client(config))

    lines = []
    for agent_id, result in results.items():
        if result["success"]:
            lines.append(f"[OK] {agent_id}: {result.get('summary') or ''}")
        else:
            lines.append(f"[FAIL] {agent_id}: {result['error']}")
    _emit(args, results, lines)

    if results and not any(r["success"] for r in results.values()):
        return 1
    return 0


def cmd_status(args: argparse.Namespace, config: LabConfig) -> int:
    """Show agent states and cached note counts."""
    store = NoteStore(config.notes_path)
    agents = []
    for agent_id in config.agents:
        state = AgentState(agent_id, config.states_path)
        summary = state.summary() if state.load() else {"agent": agent_id, "initialized": False}
        summary["notes"] = sum(1 for _ in store.list_all(agent_id))
        agents.append(summary)

    owners = store.owners()
    data: dict[str, Any] = {"workspace": str(config.workspace), "agents": agents, "note_owners": owners}
    lines = [f"Workspace: {config.workspace}"]
    for summary in agents:
        if summary.get("initialized") is False:
            lines.append(f"  {summary['agent']}: not initialized ({summary['notes']} notes)")
        else:
            lines.append(
                f"  {summary['agent']}: {summary['insights']} insights, {summary['entities']} entities, "
                f"confidence {summary['confidence']}, {summary['notes']} notes"
            )
    others = [owner for owner in owners if owner not in config.agents]
    if others:
        lines.append(f"  Notes also held by: {', '.join(others)}")

    exit_code = 0
    if args.check:
        validation = config.validate()
        health = config.health_check()
        data["validation"] = {"status": validation.status.value, "errors": validation.errors, "warnings": validation.warnings}
        data["health"] = health.to_dict()
        lines.append(f"Config: {validation.status.value}")
        lines.extend(f"  {line}" for line in validation.describe().splitlines())
        lines.append(f"{'[OK]' if health.healthy else '[FAIL]'} {health.service_name}: {health.message}")
        if not validation.is_valid or not health.healthy:
            exit_code = 1

    _emit(args, data, lines)
    return exit_code


def _levels(args: argparse.Namespace) -> list[Level]:
    levels = []
    if not args.no_files:
        levels.append(Level.FILE)
    if not args.no_directories:
        levels.append(Level.DIRECTORY)
    if not args.no_modules:
        levels.append(Level.MODULE)
    return levels


def cmd_deep_dive(args: argparse.Namespace, config: LabConfig) -> int:
    """Analyze files, directories and modules with one persona."""
    config.require_valid()
    persona = PersonaRegistry.from_file(config.personas_file).get(args.agent)
    repo_context = get_repository_context(config.workspace, config.exclusions)
    orchestrator = AnalysisOrchestrator.from_config(config, persona, _client(config), repo_context=repo_context)

    cancel = threading.Event()

    def _interrupt(signum, frame):
        if cancel.is_set():
            raise KeyboardInterrupt
        logger.warning("Interrupt received, finishing in-flight items")
        cancel.set()

    previous = signal.signal(signal.SIGINT, _interrupt)
    try:
        result = orchestrator.run(_levels(args), summarize=config.summarize, cancel=cancel)
    finally:
        signal.signal(signal.SIGINT, previous)

    counts = result.counts()
    lines = [
        f"Deep dive complete for {persona.name}",
        f"  Files analyzed: {counts['files']}",
        f"  Directories analyzed: {counts['directories']}",
        f"  Modules analyzed: {counts['modules']}",
        f"  Cached: {counts['cached']}  Fallback: {counts['fallback']}  Degraded: {counts['degraded']}",
    ]
    if result.summary:
        lines.append(f"  Summary: {result.summary.get('summary', '')}")
    if result.cancelled:
        lines.append("  Cancelled before all items were analyzed")
    _emit(args, result.to_dict(), lines)
    return 1 if result.cancelled else 0


def cmd_run_agent(args: argparse.Namespace, config: LabConfig) -> int:
    """One repository-level analysis by a single persona, saved to its state."""
    config.require_valid()
    persona = PersonaRegistry.from_file(config.personas_file).get(args.agent)
    repo_context = get_repository_context(config.workspace, config.exclusions)

    state = load_or_initialize(config, persona, repo_context)
    analysis = run_agent_analysis(
        persona,
        repo_context,
        _client(config),
        model=config.model,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    )
    state.apply_analysis(analysis)
    state.save()

    lines = [f"{persona.name} analysis complete", f"  {analysis.get('summary', '')}"]
    lines.extend(f"  - {insight}" for insight in analysis.get("insights") or [])
    _emit(args, {"agent": persona.id, "analysis": analysis}, lines)
    return 0


def cmd_coaching(args: argparse.Namespace, config: LabConfig) -> int:
    """Run a coaching session over the agents' saved insights."""
    config.require_valid()
    registry = PersonaRegistry.from_file(config.personas_file)
    agents = list(config.agents)
    for agent_id in agents:
        registry.get(agent_id)

    insights = load_agent_insights(config.states_path, agents)
    repo_context = get_repository_context(config.workspace, config.exclusions)
    session = CoachingSession(
        _client(config),
        registry,
        model=config.model,
        agents=agents,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    )
    result = session.run(repo_context, insights)

    if result is None:
        _emit(args, None, ["No coaching insights generated"])
        return 0

    report = result["coachingReport"]
    _emit(
        args,
        result,
        [
            "Coaching session complete",
            f"  Improvements identified: {len(result['improvements'])}",
            f"  Agent discussions: {len(result['discussions'])}",
            f"  Quick wins: {len(report.get('quick_wins') or [])}",
        ],
    )
    return 0


def cmd_notes(args: argparse.Namespace, config: LabConfig) -> int:
    """List or clear one agent's cached notes."""
    store = NoteStore(config.notes_path)

    if args.notes_command == "clear":
        removed = store.clear(args.agent, args.path)
        _emit(
            args,
            {"agent": args.agent, "path": args.path, "removed": removed},
            [f"Removed {removed} notes for {args.agent}"],
        )
        return 0

    records = list(store.list_all(args.agent))
    _emit(
        args,
        [
            {"path": r.subject_path, "level": r.level.value, "timestamp": r.created_at.isoformat(), "size": r.content_size_bytes}
            for r in records
        ],
        [f"{r.level.value:<10} {display_path(r.subject_path):<50} {r.created_at:%Y-%m-%d %H:%M}" for r in records]
        or [f"No notes for {args.agent}"],
    )
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--workspace", "-w", type=_path, help="Repository to analyze (default: cwd)")
    common.add_argument("--config", "-c", type=_path, help="YAML config file")
    common.add_argument("--model", "-m", help="Model id (default: anthropic/claude-3.5-sonnet)")
    common.add_argument("--output", "-o", choices=("text", "json"), default="text", help="Output format")
    common.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    parser = argparse.ArgumentParser(
        prog="clab",
        description="Multi-perspective repository analysis with cached per-path notes.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init", parents=[common], help="Create directories and agent states")

    update_parser = subparsers.add_parser("update", parents=[common], help="Run the agent update workflow")
    update_parser.add_argument("--agents", "-a", help="Comma-separated agent ids")

    status_parser = subparsers.add_parser("status", parents=[common], help="Show agent states and notes")
    status_parser.add_argument("--agents", "-a", help="Comma-separated agent ids")
    status_parser.add_argument("--check", action="store_true", help="Validate config and check API health")

    deep_parser = subparsers.add_parser("deep-dive", parents=[common], help="Multi-level deep dive")
    deep_parser.add_argument("--agent", "-a", default="architect", help="Persona id (default: architect)")
    deep_parser.add_argument("--max-depth", "-d", type=int, help="Traversal depth (default: 3)")
    deep_parser.add_argument("--no-files", action="store_true", help="Skip file-level analysis")
    deep_parser.add_argument("--no-directories", action="store_true", help="Skip directory-level analysis")
    deep_parser.add_argument("--no-modules", action="store_true", help="Skip module-level analysis")
    deep_parser.add_argument("--workers", type=int, help="Concurrent work items (default: 1)")
    deep_parser.add_argument("--exclude", action="append", help="Extra exclusion substrings (repeatable)")
    deep_parser.add_argument("--extensions", help="Only analyze these file extensions, e.g. py,js (default: common source suffixes)")
    deep_parser.add_argument("--all-files", action="store_true", help="Analyze every file regardless of extension")
    deep_parser.add_argument("--max-file-size", type=int, help="Skip files larger than this many bytes (0 = no limit)")
    deep_parser.add_argument("--max-age-hours", type=float, help="Reuse notes younger than this (default: 24)")
    deep_parser.add_argument("--no-summary", action="store_true", help="Skip the summary call")

    run_parser = subparsers.add_parser("run-agent", parents=[common], help="Run a single agent")
    run_parser.add_argument("--agent", "-a", required=True, help="Persona id")

    coaching_parser = subparsers.add_parser("coaching", parents=[common], help="Run a coaching session")
    coaching_parser.add_argument("--agents", help="Comma-separated agent ids")

    notes_parser = subparsers.add_parser("notes", help="Inspect or clear cached notes")
    notes_sub = notes_parser.add_subparsers(dest="notes_command", required=True)
    list_parser = notes_sub.add_parser("list", parents=[common], help="List an agent's notes")
    list_parser.add_argument("--agent", "-a", required=True, help="Persona id")
    clear_parser = notes_sub.add_parser("clear", parents=[common], help="Delete an agent's notes")
    clear_parser.add_argument("--agent", "-a", required=True, help="Persona id")
    clear_parser.add_argument("--path", "-p", help="Only this path and below (default: everything)")

    return parser


def _path(value: str) -> Path:
    return Path(value).expanduser()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, 1 for errors)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.verbose:
        set_global_level("DEBUG")
        configure_root_logging("DEBUG")

    commands = {
        "init": cmd_init,
        "update": cmd_update,
        "status": cmd_status,
        "deep-dive": cmd_deep_dive,
        "run-agent": cmd_run_agent,
        "coaching": cmd_coaching,
        "notes": cmd_notes,
    }

    try:
        config = load_config(args)
        return commands[args.command](args, config)
    except ClabError as e:
        logger.error(f"{args.command} failed", error=str(e))
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 1


if __name__ == "__main__":
    sys.exit(main())
