"""Keyword policy: positive (organic plant) and strong negative (artificial content) substrings."""

from typing import Iterable

from pydantic import BaseModel, ConfigDict, model_validator

DEFAULT_POSITIVE_KEYWORDS: tuple[str, ...] = (
    "tree",
    "sapling",
    "seedling",
    "plant",
    "woody",
    "houseplant",
    "bonsai",
    "perennial",
    "potted",
    "stem",
    "leaf",
    "foliage",
    "flora",
    "botanical",
    "shrub",
    "bush",
    "herb",
)

DEFAULT_STRONG_NEGATIVE_KEYWORDS: tuple[str, ...] = (
    "toy",
    "drawing",
    "painting",
    "illustration",
    "cartoon",
    "screenshot",
    "poster",
    "logo",
    "clipart",
)


def _normalize(keywords: Iterable[str]) -> tuple[str, ...]:
    """Lower-case and strip; drop blanks and repeats, keeping first-seen order."""
    return tuple(dict.fromkeys(k.strip().lower() for k in keywords if k and k.strip()))


class KeywordPolicy(BaseModel):
    """
    Two disjoint, ordered sets of lower-case substrings.

    Loaded once at startup and immutable thereafter (frozen model, tuple fields).
    """

    model_config = ConfigDict(frozen=True)

    positive_keywords: tuple[str, ...]
    strong_negative_keywords: tuple[str, ...]

    @model_validator(mode="before")
    @classmethod
    def _normalize_lists(cls, data):
        if isinstance(data, dict):
            data = dict(data)
            for key in ("positive_keywords", "strong_negative_keywords"):
                if key in data and data[key] is not None:
                    data[key] = _normalize(data[key])
        return data

    @model_validator(mode="after")
    def _check_disjoint(self) -> "KeywordPolicy":
        overlap = set(self.positive_keywords) & set(self.strong_negative_keywords)
        if overlap:
            raise ValueError(
                "Keyword lists must be disjoint; found in both: " + ", ".join(sorted(overlap))
            )
        return self

    @classmethod
    def from_lists(cls, positive: Iterable[str], strong_negative: Iterable[str]) -> "KeywordPolicy":
        return cls(positive_keywords=tuple(positive), strong_negative_keywords=tuple(strong_negative))

    @classmethod
    def default(cls) -> "KeywordPolicy":
        return cls.from_lists(DEFAULT_POSITIVE_KEYWORDS, DEFAULT_STRONG_NEGATIVE_KEYWORDS)
