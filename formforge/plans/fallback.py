"""Hand-authored minimal plan used when model output cannot be trusted."""

import copy
from typing import Any, Dict

_REST_DAY = {"focus": "Rest", "routines": []}

_CIRCUIT_A = {
    "routine_name": "Strength Circuit A",
    "routine_type": "Circuit",
    "duration": "3 rounds",
    "exercises_in_routine": [
        {"exercise_name": "Push-up", "sets": "Max", "reps": None, "rest_after_exercise": "60 seconds"},
        {"exercise_name": "Bodyweight Squat", "sets": "Max", "reps": None, "rest_after_exercise": "60 seconds"},
        {"exercise_name": "Plank", "sets": "Max", "duration": "30 seconds", "rest_after_exercise": "60 seconds"},
    ],
}

_CIRCUIT_B = {
    "routine_name": "Strength Circuit B",
    "routine_type": "Circuit",
    "duration": "3 rounds",
    "exercises_in_routine": [
        {
            "exercise_name": "Pull-up (Assisted)",
            "progression_level": "Resistance Band Assisted",
            "sets": "Max",
            "reps": None,
            "rest_after_exercise": "60 seconds",
        },
        {"exercise_name": "Lunge", "sets": "Max", "reps": "10 per leg", "rest_after_exercise": "60 seconds"},
        {"exercise_name": "Plank", "sets": "Max", "duration": "30 seconds", "rest_after_exercise": "60 seconds"},
    ],
}

_MINIMAL_PLAN: Dict[str, Any] = {
    "program_name": "Basic Calisthenics Training Program",
    "program_goal": "Build fundamental strength and movement skills",
    "program_description": (
        "A simplified program focusing on essential bodyweight exercises to "
        "develop basic strength and movement patterns."
    ),
    "required_gear": ["None - bodyweight only"],
    "exercises": [
        {
            "exercise_name": "Push-up",
            "exercise_type": "Basics",
            "description": (
                "Standard push-up with hands shoulder-width apart, body in a straight "
                "line, and lowering the chest to the ground."
            ),
            "target_muscles": ["Chest", "Shoulders", "Triceps", "Core"],
        },
        {
            "exercise_name": "Bodyweight Squat",
            "exercise_type": "Basics",
            "description": (
                "Standing with feet shoulder-width apart, lower your body by bending "
                "knees and hips as if sitting in a chair, then return to standing."
            ),
            "target_muscles": ["Quadriceps", "Glutes", "Hamstrings", "Core"],
        },
        {
            "exercise_name": "Plank",
            "exercise_type": "Static Hold",
            "description": "Support your body on forearms and toes, maintaining a straight line from head to heels.",
            "target_muscles": ["Core", "Shoulders", "Back"],
        },
        {
            "exercise_name": "Pull-up (Assisted)",
            "exercise_type": "Basics",
            "description": (
                "Hanging from a bar, pull yourself up until your chin is over the bar, "
                "using a resistance band for assistance."
            ),
            "target_muscles": ["Back", "Biceps", "Forearms"],
            "progressions": [
                {"level_name": "Resistance Band Assisted", "description": "Use a resistance band for help."},
            ],
        },
        {
            "exercise_name": "Lunge",
            "exercise_type": "Basics",
            "description": (
                "Step forward with one leg, lowering your hips until both knees are "
                "bent at a roughly 90-degree angle."
            ),
            "target_muscles": ["Quadriceps", "Glutes", "Hamstrings"],
        },
    ],
    "workout_plan": {
        "structure_type": "Weekly Split",
        "schedule": [
            {"day": "Day 1", "focus": "Full Body Strength", "routines": [_CIRCUIT_A]},
            {"day": "Day 2", **_REST_DAY},
            {"day": "Day 3", "focus": "Full Body Strength", "routines": [_CIRCUIT_B]},
            {
                "day": "Day 4",
                "focus": "Active Recovery",
                "routines": [{"routine_name": "Light Mobility", "routine_type": "Other", "exercises_in_routine": []}],
            },
            {"day": "Day 5", "focus": "Full Body Strength", "routines": [_CIRCUIT_A]},
            {"day": "Day 6", **_REST_DAY},
            {"day": "Day 7", **_REST_DAY},
        ],
    },
    "nutrition_advice": {
        "overview": "Focus on a balanced diet with sufficient protein for muscle recovery.",
    },
    "hydration_advice": {
        "overview": "Stay well-hydrated throughout the day, especially around workouts.",
        "recommended_intake": "Aim for 2-3 liters of water daily, adjusting based on activity level.",
    },
}


def minimal_plan() -> Dict[str, Any]:
    """A fresh copy of the fallback plan. It satisfies the plan schema."""
    return copy.deepcopy(_MINIMAL_PLAN)
