import argparse
import json
import sys
import uuid
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from filegate.config.settings import Settings
from filegate.database.connection import close_pool, init_pool
from filegate.database.datastore import build_datastore
from filegate.gateway.gateway import Gateway, build_gateway
from filegate.logging.logger import Log
from filegate.pipeline.models import PipelineResult, RequestContext, UploadCandidate


def scan_file(gateway: Gateway, path: Path, client_id: str) -> PipelineResult:
    data = path.read_bytes()
    candidate = UploadCandidate(data=data, filename=path.name, declared_size=len(data))
    request = RequestContext(request_id=uuid.uuid4().hex, client_ip=client_id)
    return gateway.handle(candidate, request)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="filegate",
        description="Validate, sanitize and store files through the upload gateway.",
    )
    parser.add_argument("files", nargs="+", type=Path, help="files to scan")
    parser.add_argument(
        "--client-id",
        default="cli",
        help="identifier used for rate limiting and audit (default: cli)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Entry point: initialize pool -> purge rate limits -> build gateway -> scan files.

    Result lines go to stdout; log records go to stderr.
    """
    args = parse_args(argv)
    settings = Settings()
    Log.configure(settings.log_level, stream=sys.stderr)
    init_pool(settings)

    try:
        datastore = build_datastore(settings.rate_limit_per_minute)
        purged = datastore.rate_limit_purge()
        Log.debug(f"purged {purged} expired rate-limit attempt(s)")
        gateway = build_gateway(settings, datastore)
        with ThreadPoolExecutor(
            max_workers=settings.max_concurrent_uploads, thread_name_prefix="upload"
        ) as executor:
            futures = [
                (path, executor.submit(scan_file, gateway, path, args.client_id))
                for path in args.files
            ]
            exit_code = 0
            for path, future in futures:
                try:
                    result = future.result()
                except OSError as exc:
                    Log.error(f"cannot read {path}: {exc}")
                    print(json.dumps({"file": str(path), "status": "error", "message": "unreadable"}))
                    exit_code = 1
                    continue
                summary = {"file": str(path), **result.to_response(not settings.is_production)}
                print(json.dumps(summary))
                if not result.accepted:
                    exit_code = 1
    finally:
        close_pool()
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
