from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional


class Kind(str, Enum):
    BUDGET = "Mes"
    ACTUAL = "Real"

    @property
    def label(self) -> str:
        """Word used in synthesized descriptions."""
        return "Presupuesto" if self is Kind.BUDGET else "Real"


@dataclass(frozen=True)
class CanonicalRecord:
    row_number: int
    date: date
    kind: Kind
    category: str
    channel: str
    amount: float
    description: str
    variance: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row_number": self.row_number,
            "date": self.date.isoformat(),
            "kind": self.kind.value,
            "category": self.category,
            "channel": self.channel,
            "amount": self.amount,
            "description": self.description,
            "variance": self.variance,
        }
