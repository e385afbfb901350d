"""Prompt used to turn retrieved context into a structured training plan."""

import json
from typing import Any, Dict, List, Optional

from langchain_core.prompts import ChatPromptTemplate

from formforge.plans.schema import plan_json_schema

HUMAN_TEMPLATE = "Context: {context}\n\nQuestion: {question}"

_INSTRUCTIONS = """You are an experienced calisthenics and strength coach.
Build a complete training program using only the exercises, methods and
principles found in the provided context. When the context is thin, stay
conservative and prefer fundamental bodyweight movements.

Rules:
- Every exercise referenced in the schedule must be listed in "exercises".
- The schedule covers at least five days; rest days keep an empty "routines" list.
- Use only the enumerated values for exercise, routine and structure types.
- Sets, reps and durations may be numbers or short descriptive strings such as "Max" or "30 seconds".
"""

_SCHEMA_BLOCK = """Your output MUST be a valid JSON object conforming to the following schema. \
Do not include any explanatory text or markdown formatting outside of the JSON object itself. \
The entire response should be only the JSON content.

JSON Schema:
```json
{schema}
```

Ensure all required fields are present and the program is consistent."""


def _escape_braces(text: str) -> str:
    # ChatPromptTemplate treats single braces as variables
    return text.replace("{", "{{").replace("}", "}}")


def system_message() -> str:
    schema = json.dumps(plan_json_schema(), indent=2)
    return _INSTRUCTIONS + "\n" + _SCHEMA_BLOCK.replace("{schema}", _escape_braces(schema))


def build_plan_prompt() -> ChatPromptTemplate:
    return ChatPromptTemplate.from_messages(
        [
            ("system", system_message()),
            ("human", HUMAN_TEMPLATE),
        ]
    )


def build_question(query: str, options: Optional[Dict[str, Any]] = None) -> str:
    """Append the caller's preferences to the free-text request."""
    options = options or {}
    lines: List[str] = [query.strip()]

    if options.get("fitness_level"):
        lines.append(f"Fitness level: {options['fitness_level']}")
    if options.get("specific_goals"):
        lines.append("Specific goals: " + ", ".join(options["specific_goals"]))
    if options.get("excluded_exercises"):
        lines.append("Do not include these exercises: " + ", ".join(options["excluded_exercises"]))
    if options.get("include_nutrition") is False:
        lines.append("Omit nutrition_advice.")
    elif options.get("include_nutrition"):
        lines.append("Include nutrition_advice.")
    if options.get("include_hydration") is False:
        lines.append("Omit hydration_advice.")
    elif options.get("include_hydration"):
        lines.append("Include hydration_advice.")

    return "\n".join(lines)
