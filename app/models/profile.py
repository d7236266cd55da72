"""
Profile model holding per-user meal planning preferences.
"""
import enum
import uuid
from typing import Optional

from sqlalchemy import ForeignKey, Integer, Float, JSON, Enum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class Diet(str, enum.Enum):
    ANYTHING = "ANYTHING"
    VEGETARIAN = "VEGETARIAN"
    VEGAN = "VEGAN"
    KETOGENIC = "KETOGENIC"
    PALEO = "PALEO"
    PESCETARIAN = "PESCETARIAN"


class Sex(str, enum.Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"


class ActivityLevel(str, enum.Enum):
    SEDENTARY = "SEDENTARY"
    LIGHT = "LIGHT"
    MODERATE = "MODERATE"
    VERYACTIVE = "VERYACTIVE"


class Goal(str, enum.Enum):
    LOSEWEIGHT = "LOSEWEIGHT"
    MAINTAIN = "MAINTAIN"
    GAINWEIGHT = "GAINWEIGHT"


class Profile(Base):
    """Meal planning profile, one per user."""

    __tablename__ = "profiles"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )

    diet: Mapped[Optional[Diet]] = mapped_column(Enum(Diet, native_enum=False), nullable=True)
    sex: Mapped[Optional[Sex]] = mapped_column(Enum(Sex, native_enum=False), nullable=True)
    activity_level: Mapped[Optional[ActivityLevel]] = mapped_column(
        Enum(ActivityLevel, native_enum=False), nullable=True
    )
    goal: Mapped[Optional[Goal]] = mapped_column(Enum(Goal, native_enum=False), nullable=True)

    # Body metrics
    age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    height: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Macro targets
    calories: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    protein: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    carbs: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    fats: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    intolerances: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)
    favorite_cuisines: Mapped[Optional[list[str]]] = mapped_column(JSON, nullable=True)
    meals_per_day: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    user = relationship("User", back_populates="profile")

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, user_id={self.user_id})>"
