"""Model classes whose annotations are strings that cannot all be evaluated."""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated, Optional

from autocoding import Skip

if TYPE_CHECKING:
    from decimal import Decimal


class Account:
    label: str
    token: Annotated[str, Skip]
    balance: Optional[Decimal]
    reserve: Annotated[Decimal, Skip]

    def __init__(self, label: str = "", token: str = ""):
        self.label = label
        self.token = token
        self.balance = None
        self.reserve = None

    @property
    def currency(self) -> Decimal:
        return self.balance
