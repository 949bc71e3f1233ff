import csv
import io
from collections.abc import Iterator

from filegate.csv.encoding import CellEncodingError, EncodingValidator
from filegate.csv.formula import FormulaGuard
from filegate.csv.rules import BusinessRule
from filegate.inspection.signatures import Signature
from filegate.logging.logger import Log
from filegate.pipeline.base import PipelineContext, PipelineStep
from filegate.pipeline.exceptions import ContentRejection, StructuralRejection
from filegate.pipeline.models import Category, Finding, Severity

CSV_BINARY_SIGNATURES: list[Signature] = [
    Signature.literal("elf", b"\x7fELF", Severity.CRITICAL, "ELF executable"),
    Signature.literal("pe", b"MZ", Severity.CRITICAL, "Windows executable"),
    Signature.literal("php", b"<?php", Severity.CRITICAL, "PHP code", ignore_case=True),
    Signature.literal("php-short", b"<?", Severity.CRITICAL, "PHP/XML processing instruction"),
    Signature.literal("shebang", b"#!/", Severity.CRITICAL, "Shebang interpreter line"),
    Signature.literal("nul", b"\x00", Severity.CRITICAL, "Null byte injection"),
]


class _LineTooLong(Exception):
    def __init__(self, line_number: int) -> None:
        super().__init__(f"Line {line_number} exceeds maximum length")
        self.line_number = line_number


class _ErrorLog:
    """Row errors, capped so a hostile file cannot flood memory or logs."""

    def __init__(self, cap: int) -> None:
        self._cap = cap
        self.total = 0
        self.findings: list[Finding] = []

    def add(self, category: Category, description: str, location: str) -> None:
        self.total += 1
        if len(self.findings) < self._cap:
            self.findings.append(Finding(category, Severity.CRITICAL, description, location))


def _bounded_lines(text: str, max_length: int) -> Iterator[str]:
    for number, line in enumerate(io.StringIO(text, newline=""), start=1):
        if len(line.rstrip("\r\n")) > max_length:
            raise _LineTooLong(number)
        yield line


class RowLoopStep(PipelineStep):
    """Parses every row through the encoding, formula and business-rule checks.

    Valid rows are staged on the context. Any row error rejects the whole
    file once the loop has finished, so nothing is ever partially imported.
    """

    def __init__(
        self,
        encoding_validator: EncodingValidator,
        formula_guard: FormulaGuard,
        rules: list[BusinessRule],
        max_rows: int,
        max_columns: int,
        max_line_length: int,
        max_errors: int,
    ) -> None:
        self._encoding = encoding_validator
        self._formula = formula_guard
        self._rules = rules
        self._max_rows = max_rows
        self._max_columns = max_columns
        self._max_line_length = max_line_length
        self._max_errors = max_errors

    def run(self, context: PipelineContext) -> PipelineContext:
        text = context.candidate.data.decode("utf-8-sig", "surrogateescape")
        reader = csv.reader(_bounded_lines(text, self._max_line_length), strict=True)
        context.header = self._read_header(reader)
        errors = _ErrorLog(self._max_errors)

        row_number = 0
        try:
            for raw_row in reader:
                if not raw_row:
                    continue
                row_number += 1
                if row_number > self._max_rows:
                    context.add(
                        Category.STRUCTURAL,
                        Severity.INFO,
                        f"Row limit reached; processing truncated after {self._max_rows} rows",
                        f"row {row_number}",
                    )
                    break
                row = self._check_row(context, raw_row, row_number, errors)
                if row is not None:
                    context.rows.append(row)
        except _LineTooLong as exc:
            errors.add(Category.STRUCTURAL, str(exc), f"line {exc.line_number}")
        except csv.Error as exc:
            errors.add(Category.STRUCTURAL, f"Malformed CSV: {exc}", f"row {row_number + 1}")

        if errors.total:
            context.findings.extend(errors.findings)
            context.rows.clear()
            raise ContentRejection(
                f"{errors.total} row error(s), first: {errors.findings[0].description}"
            )
        Log.info(
            f"[{context.batch_id}] CSV staged {len(context.rows)} row(s), "
            f"{context.neutralized_cells} neutralized cell(s)"
        )
        return context

    def _read_header(self, reader: Iterator[list[str]]) -> list[str]:
        try:
            raw_header = next(reader, None)
        except (_LineTooLong, csv.Error) as exc:
            raise StructuralRejection(f"Unreadable CSV header: {exc}") from exc
        if not raw_header or not any(cell.strip() for cell in raw_header):
            raise StructuralRejection("CSV header row is missing")
        if len(raw_header) > self._max_columns:
            raise StructuralRejection(
                f"CSV has {len(raw_header)} columns, limit is {self._max_columns}"
            )
        try:
            header = [self._encoding.normalize(cell).strip() for cell in raw_header]
        except CellEncodingError as exc:
            raise StructuralRejection(f"CSV header: {exc}") from exc
        if len(set(header)) != len(header):
            raise StructuralRejection("CSV header contains duplicate column names")
        if self._formula.triggered_columns(dict(zip(header, header))):
            raise ContentRejection("Formula Injection Detected in CSV header")
        return header

    def _check_row(
        self,
        context: PipelineContext,
        raw_row: list[str],
        row_number: int,
        errors: _ErrorLog,
    ) -> dict[str, str] | None:
        location = f"row {row_number}"
        if len(raw_row) != len(context.header):
            errors.add(
                Category.VALIDATION,
                f"Row {row_number} structural mismatch: {len(raw_row)} columns, "
                f"expected {len(context.header)}",
                location,
            )
            return None

        row: dict[str, str] = {}
        for column, cell in zip(context.header, raw_row):
            try:
                row[column] = self._encoding.normalize(cell)
            except CellEncodingError as exc:
                errors.add(Category.ENCODING, f"Row {row_number}: {exc}", f"{location}, {column}")
                return None

        triggered = self._formula.triggered_columns(row)
        if triggered and self._formula.rejects:
            first = triggered[0]
            errors.add(
                Category.CONTENT,
                f"Row {row_number}: Formula Injection Detected: "
                f"cell starts with {row[first][0]!r}",
                f"{location}, {first}",
            )
            return None

        # rules see the value as written, before any quote prefix
        violations = [rule.message for rule in self._rules if rule.violated_by(row)]
        if violations:
            errors.add(
                Category.VALIDATION, f"Row {row_number}: {', '.join(violations)}", location
            )
            return None
        if triggered:
            context.neutralized_cells += self._formula.neutralize(row)
        return row
