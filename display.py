"""Display helpers for the result cards. Nothing here mutates a response."""

from dataclasses import dataclass
from typing import List, Sequence

import pandas as pd

from pydantic_models import ConditionLikelihood, Remedy

MOST_EFFECTIVE_LABEL = "Most Effective"

NO_CONDITIONS = "No specific conditions identified. Please consult a healthcare professional."
NO_REMEDIES = (
    "No specific remedies could be suggested for your symptoms and location. "
    "Please consult a healthcare professional."
)


@dataclass(frozen=True)
class DisplayRemedy:
    name: str
    explanation: str
    most_effective: bool = False


def order_remedies_for_display(remedies: Sequence[Remedy]) -> List[DisplayRemedy]:
    """
    Move the first remedy to the end and mark it "Most Effective".

    With fewer than two remedies the order is kept and nothing is marked.
    """
    items = list(remedies)
    if len(items) < 2:
        return [DisplayRemedy(r.name, r.explanation) for r in items]
    reordered = items[1:] + items[:1]
    last = len(reordered) - 1
    return [
        DisplayRemedy(r.name, r.explanation, most_effective=(i == last))
        for i, r in enumerate(reordered)
    ]


def likelihood_percent(likelihood: float) -> int:
    # progress widgets only take 0..100
    return max(0, min(100, int(round(likelihood * 100))))


def format_likelihood(likelihood: float) -> str:
    return f"{likelihood * 100:.0f}%"


def conditions_frame(conditions: Sequence[ConditionLikelihood]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Condition": [c.condition for c in conditions],
            "Likelihood": [likelihood_percent(c.likelihood) for c in conditions],
        },
        columns=["Condition", "Likelihood"],
    )
