"""Workout plan schema.

The pydantic models double as the JSON schema shown to the model in the
prompt and as the validator for what comes back.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from formforge.errors import SchemaValidationFailure

MIN_SCHEDULE_DAYS = 5

ExerciseType = Literal[
    "Basics",
    "Skill",
    "Static Hold",
    "Dynamic",
    "Stretch",
    "Mobility Drill",
    "Cardio",
    "Weighted",
    "Freestyle",
    "Other",
]

RoutineType = Literal[
    "Standard Sets/Reps",
    "Circuit",
    "AMRAP",
    "EMOM",
    "Tabata",
    "Warm-up",
    "Cool-down",
    "Greasing the Groove Session",
    "Other",
]

StructureType = Literal[
    "Weekly Split",
    "Circuit Based",
    "AMRAP",
    "EMOM",
    "Tabata",
    "Greasing the Groove",
    "Other",
]

Amount = Optional[Union[int, float, str]]


class ExerciseProgression(BaseModel):
    level_name: str
    description: str


class Exercise(BaseModel):
    exercise_name: str
    exercise_type: ExerciseType
    description: str
    target_muscles: List[str]
    video_url: Optional[str] = None
    progressions: Optional[List[ExerciseProgression]] = None


class ExerciseInRoutine(BaseModel):
    exercise_name: str
    progression_level: Optional[str] = None
    sets: Amount = None
    reps: Amount = None
    duration: Amount = None
    rest_after_exercise: Amount = None
    notes: Optional[str] = None


class Routine(BaseModel):
    routine_name: str
    routine_type: RoutineType
    duration: Optional[str] = None
    notes: Optional[str] = None
    exercises_in_routine: List[ExerciseInRoutine]


class WorkoutDay(BaseModel):
    day: str
    focus: str
    routines: List[Routine]


class WorkoutPlanStructure(BaseModel):
    structure_type: StructureType
    schedule: List[WorkoutDay] = Field(min_length=MIN_SCHEDULE_DAYS)


class NutritionPrinciple(BaseModel):
    principle_name: str
    description: str


class MacronutrientGuidelines(BaseModel):
    calories: Optional[str] = None
    carbohydrates: Optional[str] = None
    protein: Optional[str] = None
    fats: Optional[str] = None


class Meal(BaseModel):
    time: Optional[str] = None
    meal_type: str
    consumption: str


class MealPlan(BaseModel):
    plan_name: str
    meals: List[Meal]


class NutritionAdvice(BaseModel):
    overview: str
    key_principles: Optional[List[NutritionPrinciple]] = None
    macronutrients_guidelines: Optional[MacronutrientGuidelines] = None
    example_meal_plans: Optional[List[MealPlan]] = None


class HydrationAdvice(BaseModel):
    overview: str
    recommended_intake: Optional[str] = None


class WorkoutPlan(BaseModel):
    program_name: str
    program_goal: str
    program_description: str
    required_gear: List[str]
    exercises: List[Exercise] = Field(min_length=1)
    workout_plan: WorkoutPlanStructure
    nutrition_advice: Optional[NutritionAdvice] = None
    hydration_advice: Optional[HydrationAdvice] = None


def plan_json_schema() -> Dict[str, Any]:
    return WorkoutPlan.model_json_schema()


def validate_plan(data: Any) -> WorkoutPlan:
    """Check parsed model output against the plan schema.

    Raises SchemaValidationFailure with the individual error locations.
    """
    if not isinstance(data, dict):
        raise SchemaValidationFailure(f"Expected a JSON object, got {type(data).__name__}")
    try:
        return WorkoutPlan.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
            for err in e.errors()
        ]
        raise SchemaValidationFailure(
            f"Plan does not match schema ({len(errors)} error(s))", errors
        ) from e
