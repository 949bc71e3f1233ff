import json
from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from filegate.pdf.structure import StructuralAnalyzer
from filegate.pipeline.exceptions import StructuralRejection
from filegate.sandbox.process_sandbox import ProcessSandbox, ToolResult

CATALOG = {"/Type": "/Catalog", "/Pages": "2 0 R"}


def _analyzer(result: ToolResult) -> tuple[StructuralAnalyzer, MagicMock]:
    sandbox = MagicMock(spec=ProcessSandbox)
    sandbox.run.return_value = result
    return StructuralAnalyzer(sandbox, "qpdf"), sandbox


@pytest.fixture()
def pdf_path(tmp_path: Path) -> Path:
    path = tmp_path / "in.pdf"
    path.write_bytes(b"%PDF-1.7\n...\nstartxref\n123\n%%EOF\n")
    return path


class TestAnalyze:
    def test_counts_objects_streams_pages(
        self,
        pdf_path: Path,
        qpdf_json: Callable[..., bytes],
        tool_ok: Callable[..., ToolResult],
    ) -> None:
        stdout = qpdf_json(
            {"1 0 R": CATALOG, "2 0 R": {"/Type": "/Pages"}},
            streams={"4 0 R": {"/Length": 44}},
            pages=2,
        )
        analyzer, sandbox = _analyzer(tool_ok(stdout))

        structure = analyzer.analyze(pdf_path)

        assert structure.object_count == 3
        assert structure.stream_count == 1
        assert structure.page_count == 2
        assert structure.xref_sections == 1
        assert structure.incremental_updates == 0
        assert structure.objects["1 0 R"] == CATALOG
        assert structure.objects["4 0 R"] == {"/Length": 44}
        sandbox.run.assert_called_once_with(["qpdf", "--json=2", str(pdf_path)])

    def test_exit_code_3_is_success(
        self,
        pdf_path: Path,
        qpdf_json: Callable[..., bytes],
        tool_ok: Callable[..., ToolResult],
    ) -> None:
        analyzer, _ = _analyzer(tool_ok(qpdf_json({"1 0 R": CATALOG}), exit_code=3))
        assert analyzer.analyze(pdf_path).object_count == 1

    def test_linearized_file_expects_two_xref_sections(
        self,
        tmp_path: Path,
        qpdf_json: Callable[..., bytes],
        tool_ok: Callable[..., ToolResult],
    ) -> None:
        path = tmp_path / "lin.pdf"
        path.write_bytes(b"%PDF-1.7\nstartxref\n1\n%%EOF\nstartxref\n2\n%%EOF\n")
        stdout = qpdf_json({"1 0 R": {"/Linearized": 1, "/L": 900}, "2 0 R": CATALOG})
        analyzer, _ = _analyzer(tool_ok(stdout))

        structure = analyzer.analyze(path)

        assert structure.linearized
        assert structure.xref_sections == 2
        assert structure.incremental_updates == 0

    def test_incremental_update_detected(
        self,
        tmp_path: Path,
        qpdf_json: Callable[..., bytes],
        tool_ok: Callable[..., ToolResult],
    ) -> None:
        path = tmp_path / "inc.pdf"
        path.write_bytes(b"%PDF-1.7\nstartxref\n1\n%%EOF\nstartxref\n2\n%%EOF\n")
        analyzer, _ = _analyzer(tool_ok(qpdf_json({"1 0 R": CATALOG})))

        assert analyzer.analyze(path).incremental_updates == 1

    def test_reads_legacy_json(self, pdf_path: Path, tool_ok: Callable[..., ToolResult]) -> None:
        legacy = {
            "version": 1,
            "pages": [{}],
            "objects": {"1 0 R": CATALOG, "3 0 R": {"/Length": 5}, "trailer": {"/Root": "1 0 R"}},
            "objectinfo": {"3 0 R": {"stream": {"is": True, "length": 5}}},
        }
        analyzer, _ = _analyzer(tool_ok(json.dumps(legacy).encode()))

        structure = analyzer.analyze(pdf_path)

        assert structure.object_count == 2
        assert structure.stream_count == 1
        assert structure.page_count == 1


class TestDecodeOrDie:
    def test_tool_failure(self, pdf_path: Path, tool_ok: Callable[..., ToolResult]) -> None:
        analyzer, _ = _analyzer(tool_ok(b"", exit_code=2))
        with pytest.raises(StructuralRejection, match="exited 2"):
            analyzer.analyze(pdf_path)

    def test_timeout(self, pdf_path: Path, tool_ok: Callable[..., ToolResult]) -> None:
        analyzer, _ = _analyzer(tool_ok(b"", exit_code=-1, timed_out=True))
        with pytest.raises(StructuralRejection, match="timed out"):
            analyzer.analyze(pdf_path)

    def test_invalid_json(self, pdf_path: Path, tool_ok: Callable[..., ToolResult]) -> None:
        analyzer, _ = _analyzer(tool_ok(b"{not json"))
        with pytest.raises(StructuralRejection, match="not valid JSON"):
            analyzer.analyze(pdf_path)

    def test_empty_graph(self, pdf_path: Path, tool_ok: Callable[..., ToolResult]) -> None:
        analyzer, _ = _analyzer(tool_ok(b'{"version": 2, "qpdf": [{}, {}]}'))
        with pytest.raises(StructuralRejection, match="no object graph"):
            analyzer.analyze(pdf_path)
