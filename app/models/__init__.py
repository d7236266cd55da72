"""
SQLAlchemy models for the Mealplan application.
Import all models here to ensure they're registered with SQLAlchemy.
"""
from app.models.user import User, Role
from app.models.profile import Profile, Diet, Sex, ActivityLevel, Goal

__all__ = [
    "User",
    "Role",
    "Profile",
    "Diet",
    "Sex",
    "ActivityLevel",
    "Goal",
]
