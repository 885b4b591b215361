# ABOUTME: Typed activity blocks as a discriminated union keyed on the block "type" field.
# ABOUTME: Each block kind exposes question_text() and correct_answer() without probing field names.

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from src.common.errors import BlockParseError


class _Block(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str = ""
    bloom_level: Optional[str] = None

    def question_text(self) -> str:
        raise NotImplementedError

    def correct_answer(self) -> Any:
        raise NotImplementedError


class MultipleChoiceBlock(_Block):
    type: Literal["multiple-choice"]
    question: str
    options: List[str] = Field(min_length=2)
    correct_answer_text: str = Field(alias="correct_answer")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def question_text(self) -> str:
        return self.question

    def correct_answer(self) -> str:
        return self.correct_answer_text

    def correct_index(self) -> Optional[int]:
        try:
            return self.options.index(self.correct_answer_text)
        except ValueError:
            return None


class FillInBlanksBlock(_Block):
    type: Literal["fill_in_blanks", "fill-in-blanks"]
    text: str
    answers: List[str] = Field(default_factory=list)

    def question_text(self) -> str:
        return self.text

    def correct_answer(self) -> List[str]:
        return list(self.answers)


class OrderingBlock(_Block):
    type: Literal["ordering"]
    instruction: str
    correct_order: List[str] = Field(min_length=2)

    def question_text(self) -> str:
        return self.instruction

    def correct_answer(self) -> List[str]:
        return list(self.correct_order)


class TrueFalseBlock(_Block):
    type: Literal["true_false_speed", "true-false"]
    statement: str
    is_true: bool

    def question_text(self) -> str:
        return self.statement

    def correct_answer(self) -> bool:
        return self.is_true


class CategorizedItem(BaseModel):
    text: str
    category: str


class CategorizationBlock(_Block):
    type: Literal["categorization"]
    question: str
    categories: List[str] = Field(min_length=1)
    items: List[CategorizedItem] = Field(default_factory=list)

    def question_text(self) -> str:
        return self.question

    def correct_answer(self) -> Dict[str, str]:
        return {item.text: item.category for item in self.items}


class OpenQuestionBlock(_Block):
    type: Literal["open-question"]
    question: str
    model_answer: Optional[str] = None

    def question_text(self) -> str:
        return self.question

    def correct_answer(self) -> Optional[str]:
        return self.model_answer


Block = Annotated[
    Union[
        MultipleChoiceBlock,
        FillInBlanksBlock,
        OrderingBlock,
        TrueFalseBlock,
        CategorizationBlock,
        OpenQuestionBlock,
    ],
    Field(discriminator="type"),
]

_BLOCK_ADAPTER: TypeAdapter = TypeAdapter(Block)

BLOCK_TYPES = {
    "multiple-choice",
    "fill_in_blanks",
    "fill-in-blanks",
    "ordering",
    "true_false_speed",
    "true-false",
    "categorization",
    "open-question",
}


def parse_block(raw: Mapping[str, Any]) -> Block:
    """
    Validate a raw block document into its typed kind.

    Stored blocks keep their kind-specific fields under "content"; those are
    merged with the envelope (id, type, metadata.bloomLevel) before validation.
    """

    if not isinstance(raw, Mapping):
        raise BlockParseError(f"block must be a mapping, got {type(raw).__name__}")
    block_type = raw.get("type")
    if block_type not in BLOCK_TYPES:
        raise BlockParseError(f"unknown block type: {block_type!r}")

    content = raw.get("content")
    merged: Dict[str, Any] = dict(content) if isinstance(content, Mapping) else {}
    merged.update({k: v for k, v in raw.items() if k not in ("content", "metadata")})
    metadata = raw.get("metadata") or {}
    if isinstance(metadata, Mapping) and metadata.get("bloomLevel") and "bloom_level" not in merged:
        merged["bloom_level"] = metadata["bloomLevel"]
    if "correctAnswer" in merged and "correct_answer" not in merged:
        merged["correct_answer"] = merged.pop("correctAnswer")

    try:
        return _BLOCK_ADAPTER.validate_python(merged)
    except ValidationError as exc:
        raise BlockParseError(f"malformed {block_type} block {raw.get('id', '')}: {exc}") from exc
