"""
Pydantic schemas for the meal planning profile.

Profile fields travel in camelCase (`activityLevel`, `mealsPerDay`), like
`confirmPassword` and `idToken` on the other request bodies. Updates also
accept the snake_case field names.
"""
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel

from app.models.profile import Diet, Sex, ActivityLevel, Goal


class ProfileForClient(BaseModel):
    """Profile without ids or audit columns."""
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    diet: Optional[Diet] = None
    sex: Optional[Sex] = None
    activity_level: Optional[ActivityLevel] = None
    goal: Optional[Goal] = None
    age: Optional[int] = None
    height: Optional[float] = None
    weight: Optional[float] = None
    calories: Optional[int] = None
    protein: Optional[int] = None
    carbs: Optional[int] = None
    fats: Optional[int] = None
    intolerances: Optional[list[str]] = None
    favorite_cuisines: Optional[list[str]] = None
    meals_per_day: Optional[int] = None


class ProfileUpdate(BaseModel):
    """Partial profile update. Omitted fields are left untouched."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    diet: Optional[Diet] = None
    sex: Optional[Sex] = None
    activity_level: Optional[ActivityLevel] = None
    goal: Optional[Goal] = None
    age: Optional[int] = Field(None, ge=1, le=120)
    height: Optional[float] = Field(None, gt=0, le=300)
    weight: Optional[float] = Field(None, gt=0, le=500)
    calories: Optional[int] = Field(None, ge=0)
    protein: Optional[int] = Field(None, ge=0)
    carbs: Optional[int] = Field(None, ge=0)
    fats: Optional[int] = Field(None, ge=0)
    intolerances: Optional[list[str]] = None
    favorite_cuisines: Optional[list[str]] = None
    meals_per_day: Optional[int] = Field(None, ge=1, le=6)
