"""
Tests for model output extraction, plan validation, fallback and prompts.
"""

import json

import pytest

from conftest import fenced

from formforge.errors import ExtractionFailure, SchemaValidationFailure
from formforge.plans.extraction import extract_json, parse_model_json, repair
from formforge.plans.fallback import minimal_plan
from formforge.plans.outcome import FALLBACK_MESSAGE, GENUINE_MESSAGE, resolve_plan
from formforge.plans.prompts import HUMAN_TEMPLATE, build_plan_prompt, build_question
from formforge.plans.schema import validate_plan


class TestExtractJson:
    def test_fenced_json_block(self) -> None:
        assert extract_json('Sure!\n```json\n{"a": 1}\n```\nDone.') == {"a": 1}

    def test_fence_without_language_tag(self) -> None:
        assert extract_json('```\n{"a": [1, 2]}\n```') == {"a": [1, 2]}

    def test_repairs_trailing_commas_and_bare_keys(self) -> None:
        text = "```json\n{program_name: 'x' , 'days': [1, 2,], nested: {ok: true,},}\n```"
        # single-quoted values are not repaired, so use double quotes there
        text = text.replace("'x'", '"x"')
        assert extract_json(text) == {"program_name": "x", "days": [1, 2], "nested": {"ok": True}}

    def test_repair_leaves_colons_inside_values(self) -> None:
        repaired = repair('{"note": "rest: 60s", time: "10:30"}')
        assert json.loads(repaired) == {"note": "rest: 60s", "time": "10:30"}

    def test_repair_leaves_commas_before_colons_inside_strings(self) -> None:
        text = '```json\n{"note": "Rest, then: repeat", "days": [1, 2,],}\n```'
        assert extract_json(text) == {"note": "Rest, then: repeat", "days": [1, 2]}

    def test_repair_leaves_escaped_quotes_inside_strings(self) -> None:
        repaired = repair('{"cue": "say \\"up, go: now\\"", sets: 3,}')
        assert json.loads(repaired) == {"cue": 'say "up, go: now"', "sets": 3}

    def test_parse_model_json_raises_when_nothing_extracts(self) -> None:
        with pytest.raises(ExtractionFailure) as exc:
            parse_model_json("I cannot help with that.")
        assert exc.value.details == {"response_chars": 24}

    def test_whole_body_when_no_fence(self) -> None:
        assert extract_json('  {"a": 1}  ') == {"a": 1}

    def test_unrepairable_fence_does_not_fall_back_to_body(self) -> None:
        assert extract_json('{"a": 1}\n```json\n{"a": \n```') is None

    def test_prose_returns_none(self) -> None:
        assert extract_json("I cannot help with that.") is None
        assert extract_json("") is None


class TestValidatePlan:
    def test_fallback_plan_is_schema_valid(self) -> None:
        plan = validate_plan(minimal_plan())
        assert len(plan.workout_plan.schedule) == 7

    def test_short_schedule_is_rejected(self) -> None:
        plan = minimal_plan()
        plan["workout_plan"]["schedule"] = plan["workout_plan"]["schedule"][:4]
        with pytest.raises(SchemaValidationFailure) as exc:
            validate_plan(plan)
        assert any("schedule" in err["loc"] for err in exc.value.details["errors"])

    def test_unknown_exercise_type_is_rejected(self) -> None:
        plan = minimal_plan()
        plan["exercises"][0]["exercise_type"] = "Yoga"
        with pytest.raises(SchemaValidationFailure):
            validate_plan(plan)

    def test_empty_exercises_is_rejected(self) -> None:
        plan = minimal_plan()
        plan["exercises"] = []
        with pytest.raises(SchemaValidationFailure):
            validate_plan(plan)

    def test_non_object_is_rejected(self) -> None:
        with pytest.raises(SchemaValidationFailure):
            validate_plan([1, 2, 3])


class TestResolvePlan:
    def test_genuine_plan_is_returned_unchanged(self, model_plan) -> None:
        outcome = resolve_plan(fenced(model_plan))

        assert outcome.fallback_used is False
        assert outcome.message == GENUINE_MESSAGE
        assert outcome.error is None
        assert outcome.plan == model_plan

    def test_truncated_output_uses_fallback(self, model_plan) -> None:
        text = fenced(model_plan)
        outcome = resolve_plan(text[: len(text) // 2])

        assert outcome.fallback_used is True
        assert outcome.message == FALLBACK_MESSAGE
        assert outcome.error.startswith("Parsing failed")
        assert outcome.plan == minimal_plan()

    def test_invalid_plan_uses_fallback(self, model_plan) -> None:
        del model_plan["exercises"]
        outcome = resolve_plan(fenced(model_plan))

        assert outcome.fallback_used is True
        assert outcome.error.startswith("Validation failed")

    def test_fallback_is_a_fresh_copy(self) -> None:
        first = minimal_plan()
        first["program_name"] = "mutated"
        assert minimal_plan()["program_name"] == "Basic Calisthenics Training Program"


class TestPrompts:
    def test_prompt_has_system_and_human_messages(self) -> None:
        prompt = build_plan_prompt()
        assert set(prompt.input_variables) == {"context", "question"}

        messages = prompt.format_messages(context="Push-ups build the chest.", question="Plan please")
        assert messages[0].type == "system"
        assert '"program_name"' in messages[0].content
        assert messages[1].content == HUMAN_TEMPLATE.format(context="Push-ups build the chest.", question="Plan please")

    def test_question_appends_options(self) -> None:
        question = build_question(
            "Beginner program",
            {
                "fitness_level": "beginner",
                "specific_goals": ["pull-up", "handstand"],
                "excluded_exercises": ["dips"],
                "include_nutrition": False,
            },
        )
        assert question.splitlines()[0] == "Beginner program"
        assert "Fitness level: beginner" in question
        assert "Specific goals: pull-up, handstand" in question
        assert "Do not include these exercises: dips" in question
        assert "Omit nutrition_advice." in question
