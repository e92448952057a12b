from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError
from typing import List, Optional

SYMPTOMS_MIN_LENGTH = 10
LOCATION_MIN_LENGTH = 2

SYMPTOMS_TOO_SHORT = "Please describe your symptoms in at least 10 characters."
LOCATION_TOO_SHORT = "Please enter your location (at least 2 characters)."


class _WireModel(BaseModel):
    # camelCase on the wire, snake_case in Python; either is accepted on input
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# --- forms ---

class SymptomForm(BaseModel):
    symptoms: str

    @field_validator("symptoms")
    @classmethod
    def _long_enough(cls, v: str) -> str:
        if len(v) < SYMPTOMS_MIN_LENGTH:
            raise PydanticCustomError("symptoms_too_short", SYMPTOMS_TOO_SHORT)
        return v


class LocationForm(BaseModel):
    location: str

    @field_validator("location")
    @classmethod
    def _long_enough(cls, v: str) -> str:
        if len(v) < LOCATION_MIN_LENGTH:
            raise PydanticCustomError("location_too_short", LOCATION_TOO_SHORT)
        return v


# --- symptom analysis ---

class SymptomAnalysisRequest(_WireModel):
    symptoms: str = Field(min_length=1)


class ConditionLikelihood(_WireModel):
    condition: str
    likelihood: float


class SymptomAnalysisResponse(_WireModel):
    conditions: List[ConditionLikelihood]

    def condition_names(self) -> List[str]:
        return [c.condition for c in self.conditions]


# --- remedy recommendation ---

class RemedyRequest(_WireModel):
    symptoms: str = Field(min_length=1)
    location: str
    possible_conditions: str = Field(alias="possibleConditions")


class Remedy(_WireModel):
    name: str
    explanation: str


class OptionalIngredient(_WireModel):
    name: str
    reasoning: str
    availability_note: Optional[str] = Field(default=None, alias="availabilityNote")


class RemedyResponse(_WireModel):
    remedies: List[Remedy]
    optional_ingredients: Optional[List[OptionalIngredient]] = Field(
        default=None, alias="optionalIngredients"
    )


def field_errors(exc) -> dict:
    """Flatten a pydantic ValidationError into {field: first message}."""
    out = {}
    for err in exc.errors():
        name = ".".join(str(p) for p in err.get("loc", ())) or "body"
        out.setdefault(name, err["msg"])
    return out
