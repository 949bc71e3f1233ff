from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "filegate"
    db_username: str = "filegate"
    db_password: str = "secret"
    db_pool_max_size: int = 10

    quarantine_dir: Path = Path("/var/quarantine/filegate")
    storage_dir: Path = Path("/var/lib/filegate/artifacts")

    rate_limit_per_minute: int = 10
    max_concurrent_uploads: int = 4

    tool_timeout_seconds: float = 5.0
    image_tool_timeout_seconds: float = 10.0
    qpdf_binary: str = "qpdf"
    pdftoppm_binary: str = "pdftoppm"
    img2pdf_binary: str = "img2pdf"
    vips_binary: str = "vips"

    csv_min_file_size: int = 10
    csv_max_file_size: int = 5 * 1024 * 1024
    csv_max_rows: int = 10_000
    csv_max_columns: int = 50
    csv_max_line_length: int = 50_000
    csv_max_error_count: int = 50
    csv_formula_policy: str = "reject"

    pdf_min_file_size: int = 100
    pdf_max_file_size: int = 10 * 1024 * 1024
    pdf_max_object_count: int = 50_000
    pdf_max_stream_count: int = 10_000
    pdf_max_page_count: int = 5_000
    pdf_max_recursion_depth: int = 50
    pdf_linearize_flags: list[str] = [
        "--linearize",
        "--object-streams=disable",
        "--remove-metadata",
    ]
    pdf_cross_check_engine: str = "pymupdf"
    pdf_flatten_fallback: bool = False
    pdf_flatten_dpi: int = 150

    image_min_file_size: int = 100
    image_max_file_size: int = 5 * 1024 * 1024
    image_max_width: int = 4000
    image_max_height: int = 4000
    image_max_total_pixels: int = 10_000_000
    image_engine: str = "vips"

    record_original_hash_on_reject: bool = True

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"
