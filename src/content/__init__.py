# ABOUTME: Groups the generative-AI boundary: generator clients, response parsing, and typed blocks.
# ABOUTME: Seeding lives in .seeding and is imported explicitly by the CLI.

from .blocks import parse_block
from .generator import ContentGenerator, GeneratorConfig, build_generator, sanitize_for_prompt
from .parsing import ParseError, ParseOk, extract_json, parse_question

__all__ = [
    "parse_block",
    "ContentGenerator",
    "GeneratorConfig",
    "build_generator",
    "sanitize_for_prompt",
    "ParseError",
    "ParseOk",
    "extract_json",
    "parse_question",
]
