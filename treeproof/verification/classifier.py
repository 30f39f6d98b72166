"""Label classifier: turn a noisy label set into accept / reject-artificial / reject-no-match.

Matching is plain substring containment against each keyword, not token-boundary aware
("leafy" matches "leaf"). Every label is checked against both keyword lists so the
result carries the full evidence for both signals.
"""

from enum import Enum
from typing import Sequence, Union

from pydantic import BaseModel, Field

from treeproof.ai.schema import Label, LabelSet
from treeproof.verification.policy import KeywordPolicy


class ClassificationOutcome(str, Enum):
    accept = "accept"
    reject_artificial = "reject_artificial"
    reject_no_match = "reject_no_match"


class Classification(BaseModel):
    outcome: ClassificationOutcome
    labels: list[str] = Field(default_factory=list)
    matched_keywords: list[str] = Field(default_factory=list)
    negative_matches: list[str] = Field(default_factory=list)

    @property
    def has_positive(self) -> bool:
        return bool(self.matched_keywords)

    @property
    def has_strong_negative(self) -> bool:
        return bool(self.negative_matches)


LabelsInput = Union[LabelSet, Sequence[Label], Sequence[str]]


def _descriptions(labels: LabelsInput) -> list[str]:
    if isinstance(labels, LabelSet):
        raw = labels.descriptions()
    else:
        raw = [item.description if isinstance(item, Label) else str(item) for item in labels]
    return [d.lower() for d in raw]


def _matches_any(label: str, keywords: Sequence[str]) -> bool:
    return any(keyword in label for keyword in keywords)


def classify(labels: LabelsInput, policy: KeywordPolicy) -> Classification:
    """
    Apply the keyword policy to labels.

    Decision (exhaustive, mutually exclusive):
    - positive match and no strong negative -> accept (evidence: matched labels)
    - any strong negative                   -> reject_artificial (evidence: all labels)
    - neither                               -> reject_no_match (evidence: all labels)
    A label can match both lists; the negative then disqualifies acceptance.
    """
    normalized = _descriptions(labels)
    matched: list[str] = []
    negatives: list[str] = []
    for label in normalized:
        if _matches_any(label, policy.positive_keywords):
            matched.append(label)
        if _matches_any(label, policy.strong_negative_keywords):
            negatives.append(label)

    matched = list(dict.fromkeys(matched))
    negatives = list(dict.fromkeys(negatives))

    if matched and not negatives:
        outcome = ClassificationOutcome.accept
    elif negatives:
        outcome = ClassificationOutcome.reject_artificial
    else:
        outcome = ClassificationOutcome.reject_no_match

    return Classification(
        outcome=outcome,
        labels=normalized,
        matched_keywords=matched,
        negative_matches=negatives,
    )
