import pytest
from pydantic import ValidationError

from filegate.config.settings import Settings


class TestSettingsDefaults:
    def test_default_app_env(self) -> None:
        s = Settings()
        assert s.app_env == "dev"

    def test_default_db_port(self) -> None:
        s = Settings()
        assert s.db_port == 5432

    def test_default_rate_limit(self) -> None:
        s = Settings()
        assert s.rate_limit_per_minute == 10

    def test_default_csv_limits(self) -> None:
        s = Settings()
        assert s.csv_max_rows == 10_000
        assert s.csv_max_columns == 50
        assert s.csv_max_line_length == 50_000
        assert s.csv_max_file_size == 5 * 1024 * 1024
        assert s.csv_formula_policy == "reject"

    def test_default_pdf_ceilings(self) -> None:
        s = Settings()
        assert s.pdf_max_object_count == 50_000
        assert s.pdf_max_stream_count == 10_000
        assert s.pdf_max_page_count == 5_000
        assert s.pdf_max_recursion_depth == 50

    def test_default_image_limits(self) -> None:
        s = Settings()
        assert (s.image_max_width, s.image_max_height) == (4000, 4000)
        assert s.image_max_total_pixels == 10_000_000

    def test_flatten_fallback_off_by_default(self) -> None:
        s = Settings()
        assert s.pdf_flatten_fallback is False

    def test_default_tool_timeouts(self) -> None:
        s = Settings()
        assert s.tool_timeout_seconds == 5.0
        assert s.image_tool_timeout_seconds == 10.0


class TestSettingsFromEnv:
    def test_reads_rate_limit_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RATE_LIMIT_PER_MINUTE", "3")
        s = Settings()
        assert s.rate_limit_per_minute == 3

    def test_reads_linearize_flags_as_json(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PDF_LINEARIZE_FLAGS", '["--linearize"]')
        s = Settings()
        assert s.pdf_linearize_flags == ["--linearize"]

    def test_invalid_integer_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CSV_MAX_ROWS", "many")
        with pytest.raises(ValidationError):
            Settings()


class TestIsProduction:
    def test_production_env(self) -> None:
        assert Settings(app_env="Production").is_production is True

    def test_dev_env(self) -> None:
        assert Settings(app_env="dev").is_production is False
