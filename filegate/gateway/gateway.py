import secrets
from dataclasses import dataclass
from pathlib import PurePath

import psycopg

from filegate.config.settings import Settings
from filegate.csv.pipeline import build_csv_pipeline
from filegate.database.datastore import Datastore, build_datastore
from filegate.database.models import (
    AUDIT_ERROR,
    AUDIT_REJECTED,
    AUDIT_SANITIZED,
    REPUTATION_MALICIOUS,
    REPUTATION_SAFE,
)
from filegate.database.repositories.csv_import_repository import CsvImportRepository
from filegate.gateway.storage import ArtifactStore
from filegate.image.pipeline import build_image_pipeline
from filegate.inspection.hashing import sha256_hex
from filegate.inspection.magic_bytes import MagicByteInspector
from filegate.logging.logger import Log
from filegate.pdf.pipeline import build_pdf_pipeline
from filegate.pipeline.base import BaseFilePipeline, PipelineContext, discard
from filegate.pipeline.exceptions import GatewayError, PolicyRejection, SystemFailure
from filegate.pipeline.models import (
    Category,
    Finding,
    PipelineResult,
    RequestContext,
    ResultStatus,
    SanitizedArtifact,
    UploadCandidate,
)


@dataclass(frozen=True)
class Route:
    mime_types: frozenset[str]
    engine: str


ALLOWED_MAP: dict[str, Route] = {
    "pdf": Route(frozenset({"application/pdf"}), "pdf"),
    "csv": Route(frozenset({"text/csv", "application/csv", "text/plain"}), "csv"),
    "jpg": Route(frozenset({"image/jpeg"}), "image"),
    "jpeg": Route(frozenset({"image/jpeg"}), "image"),
    "png": Route(frozenset({"image/png"}), "image"),
    "gif": Route(frozenset({"image/gif"}), "image"),
    "webp": Route(frozenset({"image/webp"}), "image"),
}

ACCEPTED_MESSAGE = "File sanitized and stored."
ERROR_MESSAGE = SystemFailure.public_message

# critical findings in these categories mark the original bytes as malicious;
# a CSV that merely breaks a business rule is rejected but not blacklisted
THREAT_CATEGORIES = frozenset(
    {
        Category.STRUCTURAL,
        Category.CONTENT,
        Category.ENCODING,
        Category.DIMENSION,
        Category.REPUTATION,
    }
)


def extension_of(filename: str) -> str:
    return PurePath(filename).suffix.lstrip(".").lower()


class Gateway:
    """Single entry point: policy, dispatch, storage, audit.

    Holds no per-request state. Everything a request touches lives in its
    own ``PipelineContext``.
    """

    def __init__(
        self,
        pipelines: dict[str, BaseFilePipeline],
        datastore: Datastore,
        store: ArtifactStore,
        inspector: MagicByteInspector,
        record_original_hash_on_reject: bool = True,
    ) -> None:
        self._pipelines = pipelines
        self._datastore = datastore
        self._store = store
        self._inspector = inspector
        self._record_original_hash = record_original_hash_on_reject

    def handle(self, candidate: UploadCandidate, request: RequestContext) -> PipelineResult:
        batch_id = secrets.token_hex(16)
        Log.info(
            f"[{batch_id}] upload {candidate.filename!r} ({candidate.size} bytes) "
            f"from {request.client_ip} request={request.request_id}"
        )
        try:
            self._datastore.record_audit_start(
                batch_id, candidate.filename, candidate.size, request.client_ip
            )
        except psycopg.Error:
            Log.exception(f"[{batch_id}] audit store unavailable, failing closed")
            return PipelineResult(ResultStatus.ERROR, batch_id, message=ERROR_MESSAGE)

        original_hash = sha256_hex(candidate.data)
        context: PipelineContext | None = None
        route: Route | None = None
        sniffed_mime: str | None = None
        try:
            self._check_rate_limit(request)
            extension = extension_of(candidate.filename)
            route = ALLOWED_MAP.get(extension)
            if route is None:
                raise PolicyRejection(
                    f"Extension {extension!r} is not allowed", code="unsupported-extension"
                )
            sniffed_mime = self._inspector.sniff(candidate.data)
            if sniffed_mime not in route.mime_types:
                raise PolicyRejection(
                    f"Content identifies as {sniffed_mime}, not .{extension}",
                    code="mime-extension-mismatch",
                )

            pipeline = self._pipelines[route.engine]
            context = PipelineContext(
                batch_id=batch_id,
                candidate=candidate,
                extension=extension,
                sniffed_mime=sniffed_mime,
                source_path=self._store.quarantine(candidate.data, extension),
                output_path=self._store.scratch_path(extension),
                original_sha256=original_hash,
            )
            artifact = pipeline.run(context)
            token = self._store.store(artifact)
            try:
                pipeline.commit(context)
            except Exception:
                self._store.delete(token)
                raise
        except GatewayError as exc:
            findings = _collect(context, exc)
            failed = isinstance(exc, SystemFailure)
            Log.info(f"[{batch_id}] rejected ({exc.code}): {exc}")
            result = PipelineResult(
                ResultStatus.ERROR if failed else ResultStatus.REJECTED,
                batch_id,
                findings=findings,
                rejection_code=exc.code,
                message=exc.public_message,
                mime_type=sniffed_mime,
                engine=route.engine if route else None,
            )
            if self._record_original_hash and any(
                f.is_critical and f.category in THREAT_CATEGORIES for f in findings
            ):
                self._safely_upsert(batch_id, original_hash, REPUTATION_MALICIOUS, findings)
            audit_status = AUDIT_ERROR if failed else AUDIT_REJECTED
            return self._finish(result, audit_status, candidate.size, original_hash)
        except Exception:
            Log.exception(f"[{batch_id}] internal failure")
            result = PipelineResult(
                ResultStatus.ERROR,
                batch_id,
                findings=_collect(context, None),
                rejection_code=SystemFailure.code,
                message=ERROR_MESSAGE,
                mime_type=sniffed_mime,
                engine=route.engine if route else None,
            )
            return self._finish(result, AUDIT_ERROR, candidate.size, original_hash)
        finally:
            if context is not None:
                discard(context.source_path, context.output_path)

        result = PipelineResult(
            ResultStatus.SANITIZED,
            batch_id,
            findings=context.findings,
            artifact=artifact,
            artifact_token=token,
            message=ACCEPTED_MESSAGE,
            mime_type=artifact.mime_type,
            engine=route.engine,
        )
        self._safely_upsert(batch_id, artifact.sha256, REPUTATION_SAFE, context.findings)
        result = self._finish(result, AUDIT_SANITIZED, artifact.size, artifact.sha256)
        if not result.accepted:
            self._store.delete(token)
        return result

    def _check_rate_limit(self, request: RequestContext) -> None:
        for identifier in request.identifiers:
            if not self._datastore.rate_limit_check_and_record(identifier):
                raise PolicyRejection(f"Rate limit exceeded for {identifier}", code="rate-limited")

    def _safely_upsert(
        self, batch_id: str, file_hash: str, status: str, findings: list[Finding]
    ) -> None:
        try:
            self._datastore.reputation_upsert(file_hash, status, [f.to_dict() for f in findings])
        except psycopg.Error:
            Log.exception(f"[{batch_id}] reputation update failed")

    def _finish(
        self, result: PipelineResult, audit_status: str, size: int, file_hash: str
    ) -> PipelineResult:
        try:
            self._datastore.record_audit_end(
                result.batch_id,
                audit_status,
                [f.to_dict() for f in result.findings],
                size,
                file_hash,
                result.mime_type,
                result.engine,
            )
        except psycopg.Error:
            Log.exception(f"[{result.batch_id}] audit close failed, failing closed")
            return PipelineResult(
                ResultStatus.ERROR,
                result.batch_id,
                findings=result.findings,
                rejection_code=SystemFailure.code,
                message=ERROR_MESSAGE,
                mime_type=result.mime_type,
                engine=result.engine,
            )
        Log.info(f"[{result.batch_id}] {result.status.value} ({len(result.findings)} finding(s))")
        return result


def _collect(context: PipelineContext | None, exc: GatewayError | None) -> list[Finding]:
    findings = list(context.findings) if context is not None else []
    if exc is not None:
        findings += [f for f in exc.findings if f not in findings]
    return findings


def build_gateway(settings: Settings, datastore: Datastore | None = None) -> Gateway:
    """Wire the gateway from settings. The connection pool must already be open."""
    datastore = datastore or build_datastore(settings.rate_limit_per_minute)
    store = ArtifactStore(settings.quarantine_dir, settings.storage_dir)
    store.ensure_directories()
    inspector = MagicByteInspector()
    pipelines: dict[str, BaseFilePipeline] = {
        "csv": build_csv_pipeline(settings, import_repo=CsvImportRepository()),
        "pdf": build_pdf_pipeline(settings, datastore),
        "image": build_image_pipeline(settings, inspector),
    }
    return Gateway(
        pipelines=pipelines,
        datastore=datastore,
        store=store,
        inspector=inspector,
        record_original_hash_on_reject=settings.record_original_hash_on_reject,
    )
