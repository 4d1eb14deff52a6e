"""
Deep-dive orchestration.

For every WorkItem the orchestrator either reuses a fresh note or analyzes
the item with the model and stores the outcome:

    PENDING -> CACHE_HIT -> DONE
    PENDING -> CACHE_MISS -> CALLING_SERVICE -> PARSE_OK   -> PERSISTING -> DONE
                                             -> PARSE_FAIL -> FALLBACK -> PERSISTING -> DONE
                                             -> CALL_FAIL  -> DEGRADED -> DONE (not persisted)

A failing item never stops the run. Parse failures are stored as
deterministic fallbacks so the next run can hit the cache; service failures
are kept in memory only so the next run retries them.
"""

import contextvars
import threading
from collections import deque
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from clab_logging import ContextScope, get_logger

from .context import ContextAggregator, render_context
from .errors import ExtractionError, ServiceError, StorageError
from .extraction import extract_json
from .keys import ALL_LEVELS, Level, display_path
from .model import ModelService
from .notes import NoteRecord, NoteStore
from .personas import Persona
from .prompts import analysis_prompt, summary_prompt
from .staleness import StalenessPolicy
from .traversal import TraversalEngine, WorkItem


if TYPE_CHECKING:
    from .config import LabConfig


logger = get_logger("deep-dive")

FALLBACK_SUMMARY_CHARS = 500
FALLBACK_CONFIDENCE = 25
CONTEXT_NOTES = 5

DEFAULT_LEVELS = (Level.FILE, Level.DIRECTORY, Level.MODULE)

# Keys used in the JSON report
LEVEL_KEYS = {
    Level.FILE: "files",
    Level.DIRECTORY: "directories",
    Level.MODULE: "modules",
    Level.PACKAGE: "packages",
}


class ItemState(Enum):
    PENDING = "pending"
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    CALLING_SERVICE = "calling_service"
    PARSE_OK = "parse_ok"
    PARSE_FAIL = "parse_fail"
    FALLBACK = "fallback"
    PERSISTING = "persisting"
    CALL_FAIL = "call_fail"
    DEGRADED = "degraded"
    DONE = "done"


class ItemStatus(str, Enum):
    """How an item's analysis was obtained."""

    CACHED = "cached"
    ANALYZED = "analyzed"
    FALLBACK = "fallback"
    DEGRADED = "degraded"


def fallback_analysis(raw_text: str) -> dict[str, Any]:
    """Stored in place of an analysis whose JSON could not be recovered."""
    return {
        "summary": raw_text[:FALLBACK_SUMMARY_CHARS],
        "insights": [],
        "entities": {},
        "patterns": [],
        "relationships": [],
        "confidence": FALLBACK_CONFIDENCE,
        "fallback": True,
    }


def degraded_analysis(path: str) -> dict[str, Any]:
    """In-memory placeholder for an item the model could not analyze."""
    return {
        "summary": f"Analysis failed for {display_path(path)}",
        "insights": ["Analysis unavailable"],
        "entities": {},
        "patterns": [],
        "relationships": [],
        "confidence": 0,
        "degraded": True,
    }


def summary_placeholder(raw_text: str | None = None) -> dict[str, Any]:
    return {
        "summary": raw_text[:FALLBACK_SUMMARY_CHARS] if raw_text else "Deep dive analysis completed",
        "architecture": "Analysis available in individual notes",
        "patterns": [],
        "insights": [],
        "recommendations": [],
        "confidence": 0,
        "degraded": True,
    }


@dataclass
class ItemResult:
    item: WorkItem
    analysis: Any
    status: ItemStatus
    persisted: bool = False
    error: str | None = None

    @property
    def path(self) -> str:
        return self.item.path

    def to_dict(self) -> dict[str, Any]:
        result = {
            "path": display_path(self.item.path),
            "analysis": self.analysis,
            "status": self.status.value,
        }
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class AggregateResult:
    """Everything one deep dive produced, per granularity in traversal order."""

    per_level: dict[Level, list[ItemResult]] = field(default_factory=lambda: {level: [] for level in ALL_LEVELS})
    summary: dict[str, Any] | None = None
    cancelled: bool = False

    def add(self, result: ItemResult) -> None:
        self.per_level[result.item.level].append(result)

    def results(self) -> list[ItemResult]:
        return [r for level in ALL_LEVELS for r in self.per_level[level]]

    def counts(self) -> dict[str, int]:
        counts = {LEVEL_KEYS[level]: len(items) for level, items in self.per_level.items()}
        for status in ItemStatus:
            counts[status.value] = sum(1 for r in self.results() if r.status is status)
        return counts

    def insights(self, limit: int = 20) -> list[str]:
        """First insights across all analyzed items, in traversal order."""
        collected: list[str] = []
        for result in self.results():
            if result.status is ItemStatus.DEGRADED or not isinstance(result.analysis, dict):
                continue
            for insight in result.analysis.get("insights") or []:
                if isinstance(insight, str) and insight not in collected:
                    collected.append(insight)
                    if len(collected) >= limit:
                        return collected
        return collected

    def to_dict(self) -> dict[str, Any]:
        output: dict[str, Any] = {
            LEVEL_KEYS[level]: [r.to_dict() for r in self.per_level[level]]
            for level in ALL_LEVELS
            if level is not Level.PACKAGE or self.per_level[level]
        }
        output["summary"] = self.summary
        output["counts"] = self.counts()
        output["cancelled"] = self.cancelled
        return output


class AnalysisOrchestrator:
    """Runs one persona's deep dive over a repository.

    Usage:
        orchestrator = AnalysisOrchestrator.from_config(config, persona, client)
        result = orchestrator.run([Level.FILE, Level.DIRECTORY, Level.MODULE])
        print(json.dumps(result.to_dict(), indent=2))
    """

    def __init__(
        self,
        persona: Persona,
        store: NoteStore,
        model_service: ModelService,
        engine: TraversalEngine,
        *,
        staleness: StalenessPolicy | None = None,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        max_workers: int = 1,
        context_depth: int = 3,
        repo_context: dict[str, Any] | None = None,
    ):
        self.persona = persona
        self.store = store
        self.model_service = model_service
        self.engine = engine
        self.context = ContextAggregator(store, engine)
        self.staleness = staleness or StalenessPolicy()
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_workers = max(1, max_workers)
        self.context_depth = context_depth
        self.repo_context = repo_context or {"path": str(engine.root)}

    @classmethod
    def from_config(
        cls,
        config: "LabConfig",
        persona: Persona,
        model_service: ModelService,
        repo_context: dict[str, Any] | None = None,
    ) -> "AnalysisOrchestrator":
        engine = TraversalEngine(
            config.workspace,
            max_depth=config.max_depth,
            exclusions=config.exclusions,
            file_extensions=config.file_extensions or None,
            max_file_size=config.max_file_size or None,
        )
        return cls(
            persona,
            NoteStore(config.notes_path),
            model_service,
            engine,
            staleness=StalenessPolicy.from_hours(config.max_age_hours),
            model=config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            max_workers=config.max_workers,
            context_depth=config.max_depth,
            repo_context=repo_context,
        )

    @property
    def owner_id(self) -> str:
        return self.persona.id

    def _transition(self, item: WorkItem, state: ItemState) -> None:
        logger.debug("Work item state", state=state.value, path=display_path(item.path), item_level=item.level.value)

    def _gather(self, item: WorkItem) -> Any:
        """Material the model sees for ``item``.

        Raises:
            OSError: If the file or manifest cannot be read.
        """
        if item.level is Level.DIRECTORY:
            return self.engine.describe_directory(item.path)

        text = self.engine.absolute(item.path).read_text(encoding="utf-8", errors="replace")
        if item.level is Level.FILE:
            return text
        suffix = item.path.rsplit(".", 1)[-1] if "." in item.path.rsplit("/", 1)[-1] else ""
        return {"path": item.path, "type": suffix, "content": text, "size": len(text)}

    def _degrade(self, item: WorkItem, error: str) -> ItemResult:
        self._transition(item, ItemState.DEGRADED)
        self._transition(item, ItemState.DONE)
        return ItemResult(item, degraded_analysis(item.path), ItemStatus.DEGRADED, persisted=False, error=error)

    def analyze_item(self, item: WorkItem) -> ItemResult:
        """Reuse or produce the analysis of one work item. Never raises for
        storage, service, or extraction failures."""
        with ContextScope(subject_path=item.path, level=item.level.value):
            log = logger.with_context(path=display_path(item.path), item_level=item.level.value)
            self._transition(item, ItemState.PENDING)
            key = self.store.key_for(self.owner_id, item.path, item.level)

            cached = self.store.get(key)
            if cached is not None and self.staleness.is_fresh(cached):
                self._transition(item, ItemState.CACHE_HIT)
                log.info("Using cached note")
                self._transition(item, ItemState.DONE)
                return ItemResult(item, cached.content, ItemStatus.CACHED, persisted=True)

            self._transition(item, ItemState.CACHE_MISS)
            log.info("Analyzing item")
            try:
                subject = self._gather(item)
            except OSError as e:
                log.warning("Could not read item", error=str(e))
                return self._degrade(item, f"read failed: {e}")

            notes = self.context.load_context(self.owner_id, item.path, self.context_depth)
            prompt = analysis_prompt(self.persona, item.level, item.path, subject, render_context(notes, CONTEXT_NOTES))

            self._transition(item, ItemState.CALLING_SERVICE)
            try:
                response = self.model_service.call(
                    self.model, prompt, temperature=self.temperature, max_tokens=self.max_tokens
                )
            except ServiceError as e:
                self._transition(item, ItemState.CALL_FAIL)
                log.warning("Model call failed, result not cached", error=str(e))
                return self._degrade(item, str(e))

            try:
                analysis = extract_json(response.text)
                status = ItemStatus.ANALYZED
                self._transition(item, ItemState.PARSE_OK)
            except ExtractionError as e:
                self._transition(item, ItemState.PARSE_FAIL)
                log.warning("No JSON in model response, storing fallback", error=str(e))
                analysis = fallback_analysis(response.text)
                status = ItemStatus.FALLBACK
                self._transition(item, ItemState.FALLBACK)

            self._transition(item, ItemState.PERSISTING)
            record = NoteRecord.create(self.owner_id, item.path, item.level, analysis, created_at=self.staleness.clock())
            try:
                self.store.put(key, record)
            except StorageError as e:
                log.warning("Could not store note", error=str(e))
                self._transition(item, ItemState.DEGRADED)
                self._transition(item, ItemState.DONE)
                return ItemResult(item, analysis, ItemStatus.DEGRADED, persisted=False, error=str(e))

            self._transition(item, ItemState.DONE)
            return ItemResult(item, analysis, status, persisted=True)

    def _run_item(self, item: WorkItem) -> ItemResult:
        try:
            return self.analyze_item(item)
        except Exception as e:
            logger.exception("Unexpected failure analyzing item", path=display_path(item.path))
            return ItemResult(item, degraded_analysis(item.path), ItemStatus.DEGRADED, error=f"{type(e).__name__}: {e}")

    def run(
        self,
        levels: Iterable[Level | str] = DEFAULT_LEVELS,
        *,
        summarize: bool = True,
        cancel: threading.Event | None = None,
    ) -> AggregateResult:
        """Analyze every work item of the requested granularities.

        Items are drawn lazily from the traversal and executed by up to
        ``max_workers`` threads with at most twice that many queued; results
        keep traversal order. ``cancel`` is checked between items.
        """
        levels = [Level(level) for level in levels]
        result = AggregateResult()

        with ContextScope(agent_id=self.owner_id):
            logger.info(
                "Starting deep dive",
                root=str(self.engine.root),
                max_depth=self.engine.max_depth,
                levels=",".join(level.value for level in levels),
                workers=self.max_workers,
            )
            items = self.engine.traverse(levels)

            if self.max_workers == 1:
                for item in items:
                    if cancel is not None and cancel.is_set():
                        result.cancelled = True
                        break
                    result.add(self._run_item(item))
            else:
                self._run_pooled(items, result, cancel)

            if result.cancelled:
                logger.warning("Deep dive cancelled", completed=len(result.results()))
            elif summarize:
                result.summary = self.summarize(result)

            logger.info("Deep dive complete", **result.counts())
        return result

    def _run_pooled(self, items: Iterable[WorkItem], result: AggregateResult, cancel: threading.Event | None) -> None:
        bound = self.max_workers * 2
        pending: deque = deque()
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="clab-item") as executor:
            for item in items:
                if cancel is not None and cancel.is_set():
                    result.cancelled = True
                    break
                pending.append(executor.submit(contextvars.copy_context().run, self._run_item, item))
                if len(pending) >= bound:
                    result.add(pending.popleft().result())
            while pending:
                result.add(pending.popleft().result())

    def summarize(self, result: AggregateResult) -> dict[str, Any]:
        """Narrative summary across the run; a placeholder on failure."""
        prompt = summary_prompt(self.persona, result.counts(), result.insights(), self.repo_context)
        try:
            response = self.model_service.call(self.model, prompt, temperature=self.temperature, max_tokens=self.max_tokens)
        except ServiceError as e:
            logger.warning("Summary call failed", error=str(e))
            return summary_placeholder()
        try:
            summary = extract_json(response.text)
        except ExtractionError as e:
            logger.warning("No JSON in summary response", error=str(e))
            return summary_placeholder(response.text)
        if not isinstance(summary, dict):
            return summary_placeholder(response.text)
        return summary
