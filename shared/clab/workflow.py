"""
Agent update workflow.

Each persona looks at the repository as a whole, and what it learns is folded
into its persistent AgentState. Personas are processed one after another; a
failing persona is reported and the others still run.
"""

from typing import Any

from clab_logging import ContextScope, get_logger

from .config import LabConfig
from .errors import ClabError, ExtractionError
from .extraction import extract_json
from .model import ModelService
from .personas import Persona, PersonaRegistry
from .prompts import repository_prompt
from .repository import get_repository_context
from .state import AgentState


logger = get_logger("workflow")

FALLBACK_SUMMARY_CHARS = 500
FALLBACK_CONFIDENCE = 50


def run_agent_analysis(
    persona: Persona,
    repo_context: dict[str, Any],
    model_service: ModelService,
    *,
    model: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> dict[str, Any]:
    """One repository-level analysis from ``persona``'s perspective.

    A response without recoverable JSON is turned into a minimal analysis
    built from the raw text.

    Raises:
        ServiceError: If the model call fails.
    """
    response = model_service.call(
        model, repository_prompt(persona, repo_context), temperature=temperature, max_tokens=max_tokens
    )
    try:
        analysis = extract_json(response.text)
    except ExtractionError as e:
        logger.warning("No JSON in agent response, using raw text", agent=persona.id, error=str(e))
        analysis = None
    if not isinstance(analysis, dict):
        return {
            "summary": response.text[:FALLBACK_SUMMARY_CHARS],
            "insights": ["Analysis completed"],
            "entities": {},
            "confidence": FALLBACK_CONFIDENCE,
        }
    return analysis


def load_or_initialize(config: LabConfig, persona: Persona, repo_context: dict[str, Any]) -> AgentState:
    state = AgentState(persona.id, config.states_path)
    if not state.load():
        logger.info("Initializing agent state", agent=persona.id, path=str(state.path))
        state.initialize(persona, repo_context)
    return state


def initialize_agents(
    config: LabConfig,
    registry: PersonaRegistry,
    agents: list[str] | None = None,
    repo_context: dict[str, Any] | None = None,
) -> dict[str, str]:
    """Create a state file for every persona that does not have one yet.

    Returns a mapping of agent id to ``"created"`` or ``"exists"``.

    Raises:
        ConfigError: For unknown persona ids.
        StorageError: If a state cannot be written.
    """
    agents = list(agents or config.agents)
    personas = [registry.get(agent_id) for agent_id in agents]
    repo_context = repo_context or get_repository_context(config.workspace, config.exclusions)

    outcome = {}
    for persona in personas:
        state = AgentState(persona.id, config.states_path)
        if state.exists():
            outcome[persona.id] = "exists"
            continue
        state.initialize(persona, repo_context)
        outcome[persona.id] = "created"
    return outcome


def run_agent_update(
    config: LabConfig,
    registry: PersonaRegistry,
    model_service: ModelService,
    agents: list[str] | None = None,
    repo_context: dict[str, Any] | None = None,
) -> dict[str, dict[str, Any]]:
    """Analyze the repository with each persona and update its state.

    Returns per agent either ``{"success": True, "summary", "insights"}`` or
    ``{"success": False, "error"}``.
    """
    agents = list(agents or config.agents)
    repo_context = repo_context or get_repository_context(config.workspace, config.exclusions)
    results: dict[str, dict[str, Any]] = {}

    for agent_id in agents:
        with ContextScope(agent_id=agent_id):
            logger.info("Processing agent", agent=agent_id)
            try:
                persona = registry.get(agent_id)
                state = load_or_initialize(config, persona, repo_context)
                analysis = run_agent_analysis(
                    persona,
                    repo_context,
                    model_service,
                    model=config.model,
                    temperature=config.temperature,
                    max_tokens=config.max_tokens,
                )
                state.apply_analysis(analysis)
                state.save()
            except ClabError as e:
                logger.error("Agent update failed", agent=agent_id, error=str(e))
                results[agent_id] = {"success": False, "error": str(e)}
                continue

            results[agent_id] = {
                "success": True,
                "summary": analysis.get("summary"),
                "insights": analysis.get("insights") or [],
            }
            logger.info("Agent update complete", agent=agent_id, name=persona.name)

    return results
