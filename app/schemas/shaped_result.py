"""
What the content-shaping call can hand back.

The AI reply is reduced to exactly one of three cases before anything else
looks at it, so the normalizer never has to guess at a half-parsed dict.
"""

from dataclasses import dataclass
from typing import Tuple, Union

from app.schemas.test_paper import ShapedSection


@dataclass(frozen=True)
class Missing:
    """No usable result: the call failed, returned nothing or broke the schema."""

    reason: str = ""


@dataclass(frozen=True)
class FreeText:
    """An "optimized layout" blob, or any reply that is not JSON."""

    text: str


@dataclass(frozen=True)
class Structured:
    title: str
    sections: Tuple[ShapedSection, ...] = ()


ShapedResult = Union[Missing, FreeText, Structured]
