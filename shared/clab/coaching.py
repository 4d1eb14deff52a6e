"""
Coaching sessions.

A session runs in three steps:
    1. Ask the model for concrete improvements to the repository
    2. Let each persona discuss and rank those improvements
    3. Merge the discussions into one coaching report

Every step falls back to an empty placeholder when the model call fails or
its answer has no JSON, so a session always produces a report once
improvements were found.
"""

from pathlib import Path
from typing import Any

from clab_logging import ContextScope, get_logger

from .errors import ExtractionError, ServiceError
from .model import ModelService, call_json
from .personas import PersonaRegistry
from .prompts import discussion_prompt, improvements_prompt, report_prompt
from .staleness import to_millis, utc_now
from .state import AgentState


logger = get_logger("coaching")


def discussion_placeholder() -> dict[str, Any]:
    return {
        "perspective": "Discussion unavailable",
        "top_priorities": [],
        "additional_insights": [],
        "risks": [],
        "recommendations": [],
    }


def report_placeholder() -> dict[str, Any]:
    return {
        "executive_summary": "Coaching report generation failed",
        "consensus_priorities": [],
        "quick_wins": [],
        "long_term_investments": [],
        "action_plan": {"immediate": [], "short_term": [], "long_term": []},
        "risks": [],
        "recommendations": [],
    }


def load_agent_insights(states_dir: Path | str, agents: list[str]) -> dict[str, Any]:
    """State documents of the given agents; agents without one are skipped."""
    insights = {}
    for agent_id in agents:
        state = AgentState(agent_id, states_dir)
        if state.load():
            insights[agent_id] = state.state
        else:
            logger.warning("No insights for agent", agent=agent_id)
    return insights


class CoachingSession:
    """Improvement analysis, persona discussion, and consensus report."""

    def __init__(
        self,
        model_service: ModelService,
        registry: PersonaRegistry,
        model: str | None = None,
        agents: list[str] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ):
        self.model_service = model_service
        self.registry = registry
        self.model = model
        self.agents = list(agents) if agents else registry.ids()
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _call_json(self, prompt: str) -> Any:
        return call_json(
            self.model_service, self.model, prompt, temperature=self.temperature, max_tokens=self.max_tokens
        )

    def analyze_improvements(self, repo_context: dict[str, Any], agent_insights: dict[str, Any]) -> list[dict[str, Any]]:
        logger.info("Analyzing potential improvements")
        try:
            data = self._call_json(improvements_prompt(repo_context, agent_insights))
        except (ServiceError, ExtractionError) as e:
            logger.warning("Failed to analyze improvements", error=str(e))
            return []
        improvements = data.get("improvements") if isinstance(data, dict) else None
        if not isinstance(improvements, list):
            return []
        return [i for i in improvements if isinstance(i, dict)]

    def facilitate_discussion(
        self, improvements: list[dict[str, Any]], agent_insights: dict[str, Any]
    ) -> dict[str, dict[str, Any]]:
        """Each persona's view on ``improvements``, keyed by agent id.

        Raises:
            ConfigError: If an agent id has no persona.
        """
        logger.info("Facilitating agent discussion", agents=len(self.agents))
        discussions = {}
        for agent_id in self.agents:
            persona = self.registry.get(agent_id)
            with ContextScope(agent_id=agent_id):
                try:
                    discussion = self._call_json(discussion_prompt(persona, agent_insights.get(agent_id), improvements))
                except (ServiceError, ExtractionError) as e:
                    logger.warning("Failed to get discussion", agent=agent_id, error=str(e))
                    discussion = discussion_placeholder()
            if not isinstance(discussion, dict):
                discussion = discussion_placeholder()
            discussions[agent_id] = {"character": persona.to_dict(), "discussion": discussion}
        return discussions

    def generate_report(self, improvements: list[dict[str, Any]], discussions: dict[str, Any]) -> dict[str, Any]:
        logger.info("Generating coaching report")
        try:
            report = self._call_json(report_prompt(improvements, discussions))
        except (ServiceError, ExtractionError) as e:
            logger.warning("Failed to generate coaching report", error=str(e))
            return report_placeholder()
        if not isinstance(report, dict):
            return report_placeholder()
        return report

    def run(self, repo_context: dict[str, Any], agent_insights: dict[str, Any]) -> dict[str, Any] | None:
        """Full session. Returns None when no improvements were identified."""
        improvements = self.analyze_improvements(repo_context, agent_insights)
        if not improvements:
            logger.info("No improvements identified")
            return None

        discussions = self.facilitate_discussion(improvements, agent_insights)
        report = self.generate_report(improvements, discussions)
        return {
            "improvements": improvements,
            "discussions": discussions,
            "coachingReport": report,
            "timestamp": to_millis(utc_now()),
        }
