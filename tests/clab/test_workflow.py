"""Tests for clab.workflow and clab.coaching."""

import json

import pytest

from clab.coaching import CoachingSession, discussion_placeholder, load_agent_insights, report_placeholder
from clab.config import DEFAULT_PERSONAS_FILE, LabConfig
from clab.errors import ConfigError, ServiceError
from clab.personas import PersonaRegistry
from clab.state import AgentState
from clab.workflow import initialize_agents, run_agent_analysis, run_agent_update


ANALYSIS = {
    "summary": "A small demo",
    "insights": ["One", "Two"],
    "entities": {"components": ["cli"]},
    "confidence": 70,
}


@pytest.fixture
def registry():
    return PersonaRegistry.from_file(DEFAULT_PERSONAS_FILE)


@pytest.fixture
def config(repo):
    return LabConfig(api_key="sk-or-test", workspace=repo, agents=("architect", "educator"))


class TestRunAgentAnalysis:
    """Tests for run_agent_analysis."""

    def test_parses_json(self, persona, make_service):
        service = make_service(lambda prompt: "Result:\n" + json.dumps(ANALYSIS))

        assert run_agent_analysis(persona, {"path": "/repo"}, service) == ANALYSIS
        assert "Analyze this repository" in service.prompts[0]

    def test_falls_back_to_raw_text(self, persona, make_service):
        service = make_service(lambda prompt: "Nothing structured, sorry. " * 40)

        analysis = run_agent_analysis(persona, {}, service)

        assert len(analysis["summary"]) == 500
        assert analysis["insights"] == ["Analysis completed"]
        assert analysis["confidence"] == 50

    def test_service_error_propagates(self, persona, make_service):
        service = make_service(lambda prompt: ServiceError("unauthorized", status_code=401))

        with pytest.raises(ServiceError):
            run_agent_analysis(persona, {}, service)


class TestRunAgentUpdate:
    """Tests for run_agent_update."""

    def test_updates_each_agent_state(self, config, registry, make_service):
        service = make_service(lambda prompt: json.dumps(ANALYSIS))

        results = run_agent_update(config, registry, service)

        assert results == {
            "architect": {"success": True, "summary": "A small demo", "insights": ["One", "Two"]},
            "educator": {"success": True, "summary": "A small demo", "insights": ["One", "Two"]},
        }
        state = AgentState("educator", config.states_path)
        assert state.load()
        assert state.insights() == ["One", "Two"]
        assert state.summary()["confidence"] == 70

    def test_one_failure_does_not_stop_others(self, config, registry, make_service):
        def responder(prompt):
            if "The Architect" in prompt:
                return ServiceError("boom")
            return json.dumps(ANALYSIS)

        results = run_agent_update(config, registry, make_service(responder))

        assert results["architect"] == {"success": False, "error": "boom"}
        assert results["educator"]["success"] is True

    def test_unknown_agent_recorded(self, config, registry, make_service):
        results = run_agent_update(config, registry, make_service(), agents=["astronaut"])

        assert results["astronaut"]["success"] is False
        assert "not found" in results["astronaut"]["error"]

    def test_insights_accumulate_across_runs(self, config, registry, make_service):
        service = make_service(lambda prompt: json.dumps(ANALYSIS))
        run_agent_update(config, registry, service, agents=["architect"])
        run_agent_update(config, registry, service, agents=["architect"])

        state = AgentState("architect", config.states_path)
        state.load()
        assert state.insights() == ["One", "Two", "One", "Two"]

    def test_initialize_agents(self, config, registry):
        assert initialize_agents(config, registry) == {"architect": "created", "educator": "created"}
        assert initialize_agents(config, registry) == {"architect": "exists", "educator": "exists"}

    def test_initialize_unknown_agent(self, config, registry):
        with pytest.raises(ConfigError):
            initialize_agents(config, registry, agents=["astronaut"])


IMPROVEMENTS = {
    "improvements": [
        {"id": "improvement_1", "category": "Testing", "title": "Add tests", "priority": 1},
        {"id": "improvement_2", "category": "Documentation", "title": "Write README", "priority": 2},
    ]
}
DISCUSSION = {"perspective": "Tests first", "top_priorities": [{"improvement_id": "improvement_1"}]}
REPORT = {"executive_summary": "Focus on tests", "quick_wins": ["Add tests"]}


def coaching_responder(prompt):
    if "identify 10-15 specific improvements" in prompt:
        return json.dumps(IMPROVEMENTS)
    if "provide your perspective" in prompt:
        return json.dumps(DISCUSSION)
    if "create a comprehensive coaching report" in prompt:
        return json.dumps(REPORT)
    return "{}"


class TestCoachingSession:
    """Tests for CoachingSession."""

    def test_full_session(self, registry, make_service):
        service = make_service(coaching_responder)
        session = CoachingSession(service, registry, agents=["architect", "philosopher"])

        result = session.run({"path": "/repo"}, {"architect": {"insights": ["x"]}})

        assert result["improvements"] == IMPROVEMENTS["improvements"]
        assert set(result["discussions"]) == {"architect", "philosopher"}
        assert result["discussions"]["architect"]["discussion"] == DISCUSSION
        assert result["discussions"]["architect"]["character"]["name"] == "The Architect"
        assert result["coachingReport"] == REPORT
        assert isinstance(result["timestamp"], int)
        assert len(service.calls) == 4

    def test_no_improvements_returns_none(self, registry, make_service):
        service = make_service(lambda prompt: json.dumps({"improvements": []}))

        assert CoachingSession(service, registry).run({}, {}) is None
        assert len(service.calls) == 1

    def test_improvement_failure_returns_none(self, registry, make_service):
        service = make_service(lambda prompt: ServiceError("down"))

        assert CoachingSession(service, registry).run({}, {}) is None

    def test_discussion_failure_uses_placeholder(self, registry, make_service):
        def responder(prompt):
            if "provide your perspective" in prompt and "The Educator" in prompt:
                return "no json at all"
            return coaching_responder(prompt)

        session = CoachingSession(make_service(responder), registry, agents=["architect", "educator"])
        result = session.run({}, {})

        assert result["discussions"]["educator"]["discussion"] == discussion_placeholder()
        assert result["discussions"]["architect"]["discussion"] == DISCUSSION

    def test_report_failure_uses_placeholder(self, registry, make_service):
        def responder(prompt):
            if "create a comprehensive coaching report" in prompt:
                return ServiceError("timeout")
            return coaching_responder(prompt)

        result = CoachingSession(make_service(responder), registry, agents=["architect"]).run({}, {})

        assert result["coachingReport"] == report_placeholder()
        assert result["coachingReport"]["executive_summary"] == "Coaching report generation failed"

    def test_unknown_agent(self, registry, make_service):
        session = CoachingSession(make_service(coaching_responder), registry, agents=["astronaut"])

        with pytest.raises(ConfigError):
            session.run({}, {})

    def test_load_agent_insights(self, tmp_path, persona):
        AgentState("architect", tmp_path).initialize(persona, {"path": "/repo"})

        insights = load_agent_insights(tmp_path, ["architect", "educator"])

        assert list(insights) == ["architect"]
        assert insights["architect"]["agent"]["id"] == "architect"
