"""
Request models for the divination endpoints
"""
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator


def _not_blank(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("must not be empty")
    return value.strip()


NonBlankStr = Annotated[str, AfterValidator(_not_blank)]


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CrystalBallRequest(CamelModel):
    question: NonBlankStr = Field(..., max_length=2000)
    history: List[str] = Field(default_factory=list, max_length=20)


class TarotRequest(CamelModel):
    question: NonBlankStr = Field(..., max_length=1000)
    cards: List[str] = Field(..., min_length=1, max_length=10)
    spread_type: str = Field(default="three-card", alias="spreadType", max_length=100)


class TarotCard(CamelModel):
    name: str
    position: Optional[str] = ""
    meaning: Optional[str] = ""


class TarotSummaryRequest(CamelModel):
    cards: List[TarotCard] = Field(..., min_length=1, max_length=10)
    spread_type: NonBlankStr = Field(..., alias="spreadType", max_length=100)


class NatalChartRequest(CamelModel):
    birth_date: NonBlankStr = Field(..., alias="birthDate", max_length=10)
    birth_place: NonBlankStr = Field(..., alias="birthPlace", max_length=200)
    birth_time: Optional[str] = Field(default=None, alias="birthTime", max_length=8)
    name: Optional[str] = Field(default=None, max_length=100)


class AstrocartographyRequest(NatalChartRequest):
    intention: str = Field(default="general", max_length=200)


class SynastryPerson(CamelModel):
    name: NonBlankStr = Field(..., max_length=100)
    birth_date: NonBlankStr = Field(..., alias="birthDate", max_length=10)


class SynastryRequest(CamelModel):
    person1: SynastryPerson
    person2: SynastryPerson


class NumerologyRequest(CamelModel):
    name: NonBlankStr = Field(..., max_length=200)
    birth_date: NonBlankStr = Field(..., alias="birthDate", max_length=10)
    birth_time: Optional[str] = Field(default=None, alias="birthTime", max_length=8)
    life_path: Optional[int] = Field(default=None, alias="lifePath")
    destiny: Optional[int] = None
    soul: Optional[int] = None
    personality: Optional[int] = None


class HoroscopeRequest(CamelModel):
    sign: NonBlankStr = Field(..., max_length=50)
    period: str = "daily"
    context: List[str] = Field(default_factory=list, max_length=10)

    @field_validator("period")
    @classmethod
    def known_period(cls, value: str) -> str:
        if value not in ("daily", "weekly", "monthly"):
            raise ValueError("period must be daily, weekly or monthly")
        return value


class MentorChatRequest(CamelModel):
    message: NonBlankStr = Field(..., max_length=2000)
