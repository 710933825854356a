"""
app/schemas/content_record.py

Default shape rules for one imported content record (a question).
"""

from __future__ import annotations

from typing import Any, Literal, Mapping, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

QuestionType = Literal["numerical_input", "text_input", "mcq", "true_false"]
LifecycleState = Literal["draft", "review", "active", "published", "archived"]


class SolutionStep(BaseModel):
    step: int = Field(..., ge=1)
    action: str = Field(..., min_length=1)
    calculation: str = ""
    result: str | float = ""


class Hint(BaseModel):
    level: int = Field(..., ge=1, le=3)
    text: str = Field(..., min_length=1)


class CommonError(BaseModel):
    type: str = Field(..., min_length=1)
    frequency: float = Field(..., ge=0, le=1)
    description: str = Field(..., min_length=1)


class QuestionData(BaseModel):
    """
    Record payload: what the learner sees and how it is marked.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    text: str = Field(..., min_length=1)
    type: QuestionType
    options: list[str] = Field(default_factory=list)
    correct_answer: str | float | bool
    solution_steps: list[SolutionStep] = Field(..., min_length=1)
    hints: list[Hint] = Field(default_factory=list, max_length=3)

    @model_validator(mode="after")
    def _mcq_needs_options(self) -> QuestionData:
        if self.type == "mcq" and len(self.options) < 2:
            raise ValueError("MCQ questions must have at least 2 options")
        return self


class QuestionMetadata(BaseModel):
    """
    Record attributes: scoring and tagging metadata.
    """

    difficulty_level: int = Field(..., ge=1, le=10)
    expected_time_seconds: int = Field(..., ge=10)
    points: int = Field(..., ge=0)
    tags: list[str] = Field(default_factory=list)
    prerequisites: list[str] = Field(default_factory=list)
    common_errors: list[CommonError] = Field(default_factory=list)


class ContentRecordSchema(BaseModel):
    """
    One record as submitted to the bulk import endpoint.

    `question_code` is the optional explicit identity code; when absent the
    processor generates one from the classification keys.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    question_code: str | None = Field(default=None, min_length=1, max_length=64)
    module_id: int
    micro_skill_id: int
    question_data: QuestionData
    metadata: QuestionMetadata
    status: LifecycleState | None = None


class RecordSchemaValidator(Protocol):
    """
    Shape check applied to every raw record. Returns human-readable errors;
    an empty list means the record is well formed.
    """

    def validate(self, raw: Mapping[str, Any]) -> list[str]:
        ...


def _format_location(loc: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in loc) or "record"


class PydanticRecordSchemaValidator:
    """
    Default RecordSchemaValidator backed by ContentRecordSchema.
    """

    def __init__(self, model: type[BaseModel] = ContentRecordSchema) -> None:
        self._model = model

    def validate(self, raw: Mapping[str, Any]) -> list[str]:
        try:
            self._model.model_validate(dict(raw))
        except ValidationError as exc:
            return [f"{_format_location(error['loc'])}: {error['msg']}" for error in exc.errors()]
        return []
