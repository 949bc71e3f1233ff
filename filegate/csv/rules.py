import re
from collections.abc import Callable
from dataclasses import dataclass

_EMAIL_RE = re.compile(r"[\w.\-+]+@[\w\-]+(\.[\w\-]+)*\.\w{2,}")


@dataclass(frozen=True)
class BusinessRule:
    """File-specific check applied to one column of every row."""

    column: str
    predicate: Callable[[str], bool]
    message: str

    def violated_by(self, row: dict[str, str]) -> bool:
        return self.column in row and not self.predicate(row[self.column])


def non_negative_number(value: str) -> bool:
    """Numeric values must be >= 0; non-numeric values are not this rule's concern."""
    try:
        number = float(value)
    except ValueError:
        return True
    return number >= 0


def valid_email(value: str) -> bool:
    return _EMAIL_RE.fullmatch(value) is not None


DEFAULT_RULES: list[BusinessRule] = [
    BusinessRule("salary", non_negative_number, "Negative salary detected"),
    BusinessRule("email", valid_email, "Invalid email format"),
]
