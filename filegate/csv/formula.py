from typing import ClassVar

POLICY_REJECT = "reject"
POLICY_NEUTRALIZE = "neutralize"


class FormulaGuard:
    """Detects cells a spreadsheet would evaluate as a formula.

    ``reject`` (default) fails the row. ``neutralize`` prefixes the cell with
    a quote so spreadsheets render it as text.
    """

    TRIGGERS: ClassVar[frozenset[str]] = frozenset({"=", "+", "-", "@", "\t", "\r", "\n"})
    POLICIES: ClassVar[tuple[str, ...]] = (POLICY_REJECT, POLICY_NEUTRALIZE)

    def __init__(self, policy: str = POLICY_REJECT) -> None:
        policy = policy.lower()
        if policy not in self.POLICIES:
            raise ValueError(f"Unknown formula policy '{policy}'. Choose from: {list(self.POLICIES)}")
        self.policy = policy

    @property
    def rejects(self) -> bool:
        return self.policy == POLICY_REJECT

    def triggered_columns(self, row: dict[str, str]) -> list[str]:
        return [column for column, cell in row.items() if cell and cell[0] in self.TRIGGERS]

    def neutralize(self, row: dict[str, str]) -> int:
        """Prefix triggered cells in place; return how many were changed."""
        columns = self.triggered_columns(row)
        for column in columns:
            row[column] = "'" + row[column]
        return len(columns)
