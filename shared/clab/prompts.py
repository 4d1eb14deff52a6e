"""
Prompt templates.

Each builder takes a Persona plus the material to analyze and returns the
prompt text. The JSON shapes requested here are the shapes the rest of clab
reads back (summary, insights, entities, confidence, ...).
"""

import json
from typing import Any

from .keys import Level, display_path
from .personas import Persona


CONTENT_LIMIT = 4000

_LEVEL_ASKS = {
    Level.FILE: "what this file is responsible for and how it is written",
    Level.DIRECTORY: "how this directory is organized and what role it plays",
    Level.MODULE: "what this manifest says about the project's dependencies and build",
    Level.PACKAGE: "what this package provides and how it is consumed",
}


def _header(persona: Persona) -> str:
    return f"You are {persona.name} (Level {persona.level} - {persona.level_name})."


def _render(content: Any) -> str:
    if isinstance(content, str):
        return content[:CONTENT_LIMIT]
    return json.dumps(content, indent=2, ensure_ascii=False)[:CONTENT_LIMIT]


def analysis_prompt(persona: Persona, level: Level, path: str, content: Any, context: str) -> str:
    """Prompt for one work item at ``level``."""
    level = Level(level)
    return f"""{_header(persona)}

Analyze this {level.value}, focusing on {_LEVEL_ASKS[level]}.

Path: {display_path(path)}
Content:
{_render(content)}

Notes from your earlier analyses of related paths:
{context}

From your {persona.level_name} perspective, provide:
1. A summary of what you observe
2. Key insights specific to your domain
3. Entities for your knowledge base
4. Patterns or structures you notice

Respond in JSON format:
{{
  "summary": "Brief overview of this {level.value}",
  "insights": ["insight 1", "insight 2", "insight 3"],
  "entities": {{
    "components": ["component1", "component2"],
    "patterns": ["pattern1"],
    "concepts": ["concept1"]
  }},
  "patterns": ["pattern observed"],
  "relationships": ["relationship to other parts"],
  "confidence": 75
}}"""


def summary_prompt(persona: Persona, counts: dict[str, int], insights: list[str], repo_context: dict[str, Any]) -> str:
    """Prompt for the narrative summary after a deep dive."""
    insight_lines = "\n".join(f"- {insight}" for insight in insights) or "- none recorded"
    return f"""{_header(persona)}

Based on your deep dive analysis, provide a comprehensive summary:

Files Analyzed: {counts.get("files", 0)}
Directories Analyzed: {counts.get("directories", 0)}
Modules Analyzed: {counts.get("modules", 0)}

Insights gathered along the way:
{insight_lines}

Repository Context:
{_render(repo_context)}

From your {persona.level_name} perspective, synthesize:
1. Overall architecture understanding
2. Key patterns across all levels
3. Most important insights
4. Recommendations for improvement

Respond in JSON format:
{{
  "summary": "Comprehensive overview of the codebase",
  "architecture": "Understanding of the overall structure",
  "patterns": ["key patterns observed"],
  "insights": ["most important insights"],
  "recommendations": ["actionable recommendations"],
  "confidence": 85
}}"""


def repository_prompt(persona: Persona, repo_context: dict[str, Any]) -> str:
    """Prompt for a single-persona pass over the repository structure."""
    focus = ", ".join(persona.focus) or persona.level_name
    role = f", a {persona.role}," if persona.role else ""
    return f"""You are {persona.name}{role} operating at Level {persona.level} - {persona.level_name}.

Your focus areas: {focus}

Analyze this repository:
{_render(repo_context)}

Based on your Level {persona.level} perspective, provide:
1. A summary of what you observe (2-3 sentences)
2. 3-5 key insights specific to your domain
3. Relevant entities for your knowledge base
4. Your confidence level (0-100)

Respond in JSON format:
{{
  "summary": "Brief overview of what you see",
  "insights": ["insight 1", "insight 2", "insight 3"],
  "entities": {{
    "components": ["component1", "component2"],
    "patterns": ["pattern1"],
    "concepts": ["concept1"]
  }},
  "confidence": 75
}}"""


def improvements_prompt(repo_context: dict[str, Any], agent_insights: dict[str, Any]) -> str:
    return f"""Based on this repository analysis, identify 10-15 specific improvements that could be made:

Repository Context:
{_render(repo_context)}

Agent Insights:
{_render(agent_insights)}

Identify improvements across these categories:
1. Code Quality - Refactoring, patterns, best practices
2. Architecture - Structure, modularity, scalability
3. Documentation - README, comments, examples
4. Testing - Coverage, test quality, CI/CD
5. Performance - Optimization opportunities
6. Security - Vulnerabilities, best practices
7. Developer Experience - Tooling, workflows, automation
8. Maintainability - Code clarity, dependencies

Respond in JSON format:
{{
  "improvements": [
    {{
      "id": "improvement_1",
      "category": "Code Quality",
      "title": "Extract common validation logic",
      "description": "Create reusable validation functions to reduce duplication",
      "impact": "high",
      "effort": "medium",
      "priority": 1
    }}
  ]
}}"""


def discussion_prompt(persona: Persona, insights: Any, improvements: list[dict[str, Any]]) -> str:
    analysis = _render(insights) if insights else "No analysis available"
    return f"""{_header(persona)}

Based on your analysis and these potential improvements, provide your perspective:

Your Analysis:
{analysis}

Potential Improvements:
{_render(improvements)}

From your {persona.level_name} perspective, discuss:
1. Which improvements align with your domain expertise?
2. What's your priority ranking (top 5)?
3. What additional improvements do you see?
4. What are the risks or considerations?

Respond in JSON format:
{{
  "perspective": "Your domain-specific view on these improvements",
  "top_priorities": [
    {{"improvement_id": "improvement_1", "reason": "Why this matters from your perspective", "priority_score": 9}}
  ],
  "additional_insights": ["Additional improvement you see"],
  "risks": ["Potential risks or considerations"],
  "recommendations": ["Specific actionable recommendations"]
}}"""


def report_prompt(improvements: list[dict[str, Any]], discussions: dict[str, Any]) -> str:
    return f"""Based on the agent discussions, create a comprehensive coaching report:

Improvements Analyzed:
{_render(improvements)}

Agent Discussions:
{_render(discussions)}

Create a coaching report that:
1. Synthesizes the agent perspectives
2. Provides a consensus priority ranking
3. Identifies quick wins vs long-term investments
4. Offers actionable next steps

Respond in JSON format:
{{
  "executive_summary": "High-level overview of key findings",
  "consensus_priorities": [
    {{"improvement_id": "improvement_1", "consensus_score": 8.5, "reason": "Why this is a consensus priority", "quick_win": true}}
  ],
  "quick_wins": ["Improvements that can be done quickly"],
  "long_term_investments": ["Improvements requiring more effort"],
  "action_plan": {{
    "immediate": ["Actions to take this week"],
    "short_term": ["Actions to take this month"],
    "long_term": ["Actions to take this quarter"]
  }},
  "risks": ["Key risks identified by agents"],
  "recommendations": ["Top 3 actionable recommendations"]
}}"""
