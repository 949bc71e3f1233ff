import csv
import io
from typing import ClassVar

from filegate.config.settings import Settings
from filegate.csv.encoding import CellEncodingError, EncodingValidator
from filegate.csv.formula import FormulaGuard
from filegate.csv.rules import DEFAULT_RULES, BusinessRule
from filegate.csv.steps import CSV_BINARY_SIGNATURES, RowLoopStep
from filegate.database.repositories.csv_import_repository import CsvImportRepository
from filegate.inspection.signatures import ContentSignatureScanner
from filegate.logging.logger import Log
from filegate.pipeline.base import BaseFilePipeline, PipelineContext, PipelineStep
from filegate.pipeline.exceptions import SanitizationFailure
from filegate.pipeline.models import Category, Finding, Severity
from filegate.pipeline.steps import IngressStep, SignatureScanStep

CSV_ALLOWED_MIME_TYPES = frozenset({"text/csv", "text/plain", "application/csv"})


class CsvPipeline(BaseFilePipeline):
    """Row-filtering pipeline: the stored artifact is rebuilt from staged rows."""

    engine: ClassVar[str] = "csv"

    def __init__(
        self,
        steps: list[PipelineStep],
        scanner: ContentSignatureScanner,
        encoding_validator: EncodingValidator,
        formula_guard: FormulaGuard,
        import_repo: CsvImportRepository | None = None,
    ) -> None:
        super().__init__(steps)
        self._scanner = scanner
        self._encoding = encoding_validator
        self._formula = formula_guard
        self._import_repo = import_repo

    def sanitize(self, context: PipelineContext) -> None:
        try:
            with context.output_path.open("x", encoding="utf-8", newline="") as handle:
                writer = csv.DictWriter(handle, fieldnames=context.header, lineterminator="\r\n")
                writer.writeheader()
                writer.writerows(context.rows)
        except (OSError, ValueError) as exc:
            raise SanitizationFailure(f"CSV rewrite failed: {exc}") from exc
        context.output_mime = "text/csv"

    def verify(self, context: PipelineContext) -> list[Finding]:
        data = context.output_path.read_bytes()
        findings = self._scanner.scan(data)
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError:
            return findings + [
                Finding(Category.ENCODING, Severity.CRITICAL, "Sanitized CSV is not valid UTF-8")
            ]

        reader = csv.reader(io.StringIO(text, newline=""), strict=True)
        try:
            for line_number, cells in enumerate(reader, start=1):
                findings.extend(self._verify_cells(cells, line_number))
        except csv.Error as exc:
            findings.append(
                Finding(Category.STRUCTURAL, Severity.CRITICAL, f"Sanitized CSV unparseable: {exc}")
            )
        return findings

    def _verify_cells(self, cells: list[str], line_number: int) -> list[Finding]:
        findings: list[Finding] = []
        for index, cell in enumerate(cells):
            location = f"line {line_number}, column {index + 1}"
            try:
                if self._encoding.normalize(cell) != cell:
                    findings.append(
                        Finding(Category.ENCODING, Severity.CRITICAL, "Cell is not NFC", location)
                    )
            except CellEncodingError as exc:
                findings.append(Finding(Category.ENCODING, Severity.CRITICAL, str(exc), location))
            if cell and cell[0] in self._formula.TRIGGERS:
                findings.append(
                    Finding(Category.CONTENT, Severity.CRITICAL, "Formula trigger survived", location)
                )
        return findings

    def commit(self, context: PipelineContext) -> None:
        if self._import_repo is None:
            Log.debug(f"[{context.batch_id}] no CSV import repository configured")
            return
        self._import_repo.commit_batch(context.batch_id, context.rows)


def build_csv_pipeline(
    settings: Settings,
    import_repo: CsvImportRepository | None = None,
    rules: list[BusinessRule] | None = None,
) -> CsvPipeline:
    """Build the CSV pipeline from settings."""
    scanner = ContentSignatureScanner(CSV_BINARY_SIGNATURES)
    encoding_validator = EncodingValidator()
    formula_guard = FormulaGuard(settings.csv_formula_policy)
    steps: list[PipelineStep] = [
        IngressStep(
            min_size=settings.csv_min_file_size,
            max_size=settings.csv_max_file_size,
            allowed_mimes=CSV_ALLOWED_MIME_TYPES,
        ),
        SignatureScanStep(scanner),
        RowLoopStep(
            encoding_validator=encoding_validator,
            formula_guard=formula_guard,
            rules=DEFAULT_RULES if rules is None else rules,
            max_rows=settings.csv_max_rows,
            max_columns=settings.csv_max_columns,
            max_line_length=settings.csv_max_line_length,
            max_errors=settings.csv_max_error_count,
        ),
    ]
    return CsvPipeline(
        steps=steps,
        scanner=scanner,
        encoding_validator=encoding_validator,
        formula_guard=formula_guard,
        import_repo=import_repo,
    )
