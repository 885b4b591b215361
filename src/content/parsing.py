# ABOUTME: Extracts and validates the JSON question payload from free-form generator output.
# ABOUTME: Parse failures come back as a ParseError value with a reason; they never crash the caller.

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from src.common.errors import ContentParseError

NO_JSON = "no_json"
INVALID_JSON = "invalid_json"
SCHEMA_MISMATCH = "schema_mismatch"

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_OBJECT = re.compile(r"\{[\s\S]*\}")
_ARRAY = re.compile(r"\[[\s\S]*\]")


class _Payload(BaseModel):
    # Providers answer in snake_case or camelCase; accept both.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class RubricLevel(_Payload):
    points: float = Field(ge=0)
    description: str = ""


class RubricItem(_Payload):
    criterion: str
    max_points: float = Field(ge=0)
    levels: List[RubricLevel] = Field(default_factory=list)


class SubQuestion(_Payload):
    label: str = ""
    question: str
    points: Optional[float] = None
    model_answer: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)


class GeneratedQuestion(_Payload):
    """The question schema the generator is asked to return."""

    question: str = Field(min_length=1)
    model_answer: Optional[str] = None
    source_text: Optional[str] = None
    source_reference: Optional[str] = None
    sub_questions: List[SubQuestion] = Field(default_factory=list)
    options: List[str] = Field(default_factory=list)
    correct_option_index: Optional[int] = None
    rubric: List[RubricItem] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    common_mistakes: List[str] = Field(default_factory=list)
    hints: List[str] = Field(default_factory=list)
    time_estimate: Optional[int] = None

    @model_validator(mode="after")
    def _check_correct_option(self) -> "GeneratedQuestion":
        if self.correct_option_index is not None and self.options:
            if not 0 <= self.correct_option_index < len(self.options):
                raise ValueError(
                    f"correct_option_index {self.correct_option_index} outside {len(self.options)} options"
                )
        return self


@dataclass(frozen=True)
class ParseOk:
    question: GeneratedQuestion
    raw: Any

    ok = True


@dataclass(frozen=True)
class ParseError:
    reason: str
    detail: str = ""

    ok = False

    def to_exception(self) -> ContentParseError:
        return ContentParseError(self.reason, self.detail)


ParseResult = Union[ParseOk, ParseError]


def extract_json(text: Optional[str]) -> Optional[str]:
    """
    Locate the JSON payload in generator output.

    A fenced ```json block wins; otherwise the outermost {...} or [...],
    whichever opens first. Returns None when nothing JSON-shaped is present.
    """

    if not text:
        return None
    fenced = _FENCED_JSON.search(text)
    if fenced and fenced.group(1).strip():
        return fenced.group(1).strip()
    matches = [m for m in (_OBJECT.search(text), _ARRAY.search(text)) if m]
    if not matches:
        return None
    return min(matches, key=lambda m: m.start()).group(0)


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ())) or "<root>"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


def parse_question(text: Optional[str]) -> ParseResult:
    payload = extract_json(text)
    if payload is None:
        return ParseError(NO_JSON, "response contained no JSON object")

    try:
        raw = json.loads(payload)
    except json.JSONDecodeError as exc:
        logger.debug("Generator returned invalid JSON: {}", payload[:500])
        return ParseError(INVALID_JSON, str(exc))

    if isinstance(raw, list):
        if len(raw) != 1:
            return ParseError(SCHEMA_MISMATCH, f"expected one question object, got a list of {len(raw)}")
        raw = raw[0]
    if not isinstance(raw, dict):
        return ParseError(SCHEMA_MISMATCH, f"expected a JSON object, got {type(raw).__name__}")

    try:
        question = GeneratedQuestion.model_validate(raw)
    except ValidationError as exc:
        return ParseError(SCHEMA_MISMATCH, _describe(exc))
    return ParseOk(question=question, raw=raw)


def parse_question_or_raise(text: Optional[str]) -> GeneratedQuestion:
    result = parse_question(text)
    if isinstance(result, ParseError):
        raise result.to_exception()
    return result.question
