import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from tempfile import TemporaryDirectory
from typing import Any, Callable, Dict, Optional

from asgiref.sync import async_to_sync
from celery import shared_task
from celery.exceptions import SoftTimeLimitExceeded
from channels.layers import get_channel_layer
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .aggregation import recompute_upload_status
from .exceptions import (
    ConversionTimeout,
    ItemNotFound,
    PreflightError,
    ShopNotFound,
    StorageError,
)
from .models import Shop, Upload, UploadItem
from .utils import file_types
from .utils.checks import (
    ERROR,
    WARNING,
    PreflightCheck,
    PreflightResult,
    count_pdf_pages,
    fold_check,
    run_preflight_checks,
)
from .utils.converters import ConversionResult, convert, needs_conversion
from .utils.plans import get_plan_config
from .utils.storage import (
    CONVERTED_SUFFIX,
    THUMBNAIL_SUFFIX,
    StorageBackend,
    derived_key,
    get_storage_backend,
)
from .utils.thumbnails import THUMBNAIL_CONTENT_TYPE, render_thumbnail

logger = logging.getLogger(__name__)

_channel_layer = None

ProgressPayload = Dict[str, Optional[object]]
ProgressCallback = Callable[[int, str], None]

MAX_ATTEMPTS = getattr(settings, "PREFLIGHT_MAX_ATTEMPTS", 3)


@dataclass(frozen=True)
class PreflightJob:
    upload_id: str
    shop_id: str
    item_id: str
    storage_key: str


def _get_channel_layer():
    global _channel_layer
    if _channel_layer is None:
        _channel_layer = get_channel_layer()
    return _channel_layer


def _publish_progress(upload_id: str, payload: ProgressPayload) -> ProgressPayload:
    try:
        channel_layer = _get_channel_layer()
        if channel_layer is not None:
            async_to_sync(channel_layer.group_send)(
                f"preflight_{upload_id}",
                {"type": "preflight.progress", "payload": payload},
            )
    except Exception:
        logger.exception("Failed to publish preflight progress for upload %s", upload_id)
    return payload


def _report_progress(
    task,
    job: PreflightJob,
    percent: int,
    step: str,
    *,
    status: str = "in_progress",
    error: Optional[str] = None,
) -> ProgressPayload:
    payload: ProgressPayload = {
        "uploadId": job.upload_id,
        "itemId": job.item_id,
        "status": status,
        "step": step,
        "percent": percent,
        "error": error,
    }
    _publish_progress(job.upload_id, payload)
    if task is not None and task.request.id:
        task.update_state(state="PROGRESS", meta=payload)
    return payload


def _retry_countdown(retries: int) -> int:
    return min(settings.PREFLIGHT_MAX_BACKOFF, settings.PREFLIGHT_RETRY_BACKOFF * 2 ** retries)


def _persist_item_result(
    item_id: str,
    status: str,
    result: Dict[str, Any],
    *,
    upload_id: Optional[str] = None,
    **fields: Any,
) -> bool:
    # Only a pending item may take a verdict; terminal statuses never change.
    items = UploadItem.objects.filter(pk=item_id)
    if upload_id is not None:
        items = items.filter(upload_id=upload_id)
    updated = items.filter(
        preflight_status=UploadItem.PreflightStatus.PENDING,
    ).update(
        preflight_status=status,
        preflight_result=result,
        updated_at=timezone.now(),
        **fields,
    )
    if not updated:
        logger.info("Item %s is not pending in upload %s; result discarded.", item_id, upload_id)
    return bool(updated)


def _fail_item(job: PreflightJob, message: str) -> None:
    result = PreflightResult()
    result.add("processing", ERROR, message)
    _persist_item_result(job.item_id, ERROR, result.to_dict(), upload_id=job.upload_id)
    recompute_upload_status(job.upload_id)


def _store_derived(
    storage: StorageBackend,
    original_key: str,
    suffix: str,
    local_path: Path,
    content_type: str,
) -> Optional[str]:
    key = derived_key(original_key, suffix)
    if key == original_key:
        raise ValueError(f"Refusing to overwrite original upload {original_key}")
    try:
        storage.store(key, local_path, content_type)
    except StorageError as exc:
        logger.warning("Could not store derived artifact %s: %s", key, exc)
        return None
    return key


def run_preflight(
    job: PreflightJob,
    *,
    final_attempt: bool = True,
    progress: Optional[ProgressCallback] = None,
) -> Dict[str, Any]:
    """Run every preflight step for one item and persist its verdict."""
    progress = progress or (lambda percent, step: None)

    shop = Shop.objects.filter(pk=job.shop_id).first()
    if shop is None:
        raise ShopNotFound(f"Shop not found: {job.shop_id}")
    item = UploadItem.objects.filter(pk=job.item_id, upload_id=job.upload_id).first()
    if item is None:
        raise ItemNotFound(f"Upload item not found: {job.item_id}")
    if item.is_terminal:
        logger.info("Item %s already processed (%s); skipping.", item.id, item.preflight_status)
        # A previous delivery may have died between persisting and aggregating.
        recompute_upload_status(job.upload_id)
        return {"status": item.preflight_status, "skipped": True}

    config = get_plan_config(shop.plan)
    storage = get_storage_backend(shop)
    progress(5, "loaded")

    with TemporaryDirectory(prefix=f"preflight-{job.item_id}-") as tmp_dir:
        workdir = Path(tmp_dir)
        suffix = PurePosixPath(job.storage_key).suffix or ".tmp"
        original_path = storage.fetch(job.storage_key, workdir / f"original{suffix}")
        file_size = original_path.stat().st_size
        progress(20, "downloaded")

        detected_type = file_types.detect_file_type(original_path)
        label = file_types.file_type_label(detected_type)
        logger.info("Item %s detected as %s (%s bytes)", job.item_id, detected_type, file_size)
        progress(30, "detected")

        analysis_path = original_path
        raster_available = file_types.is_raster(detected_type)
        conversion_check: Optional[PreflightCheck] = None
        converted_key: Optional[str] = None

        if needs_conversion(detected_type):
            try:
                conversion = convert(original_path, workdir / "converted.png", detected_type)
            except ConversionTimeout as exc:
                if not final_attempt:
                    raise
                conversion = ConversionResult(ok=False, error=str(exc))

            if conversion.ok:
                analysis_path = conversion.output_path
                raster_available = True
                if settings.PREFLIGHT_STORE_CONVERTED:
                    converted_key = _store_derived(
                        storage, job.storage_key, CONVERTED_SUFFIX, analysis_path, "image/png"
                    )
            else:
                conversion_check = PreflightCheck(
                    name="conversion",
                    status=WARNING,
                    message=(
                        f"{conversion.error}. Preview could not be rendered; "
                        "the original file is preserved and can be downloaded."
                    ),
                    details={"detectedType": detected_type, "originalPreserved": True},
                )
        progress(50, "converted")

        page_count = count_pdf_pages(original_path) if detected_type == file_types.PDF else None
        result = run_preflight_checks(
            analysis_path,
            detected_type,
            file_size,
            config,
            raster_available=raster_available,
            page_count=page_count,
        )
        if conversion_check is not None:
            fold_check(result, conversion_check)
        progress(70, "checked")

        thumbnail_path, is_placeholder = render_thumbnail(
            analysis_path if raster_available else None,
            workdir / "thumbnail.webp",
            label,
        )
        if raster_available and is_placeholder:
            fold_check(
                result,
                PreflightCheck(
                    name="thumbnail",
                    status=WARNING,
                    message="Preview thumbnail could not be generated; a placeholder is shown instead.",
                ),
            )
        thumbnail_key = None
        if thumbnail_path is not None:
            thumbnail_key = _store_derived(
                storage, job.storage_key, THUMBNAIL_SUFFIX, thumbnail_path, THUMBNAIL_CONTENT_TYPE
            )
        progress(90, "thumbnail")

    overall = result.overall
    _persist_item_result(
        job.item_id,
        overall,
        result.to_dict(),
        upload_id=job.upload_id,
        thumbnail_key=thumbnail_key,
        detected_type=detected_type,
        file_size=file_size,
    )
    recompute_upload_status(job.upload_id)
    progress(100, "completed")
    logger.info("Preflight completed for %s/%s: %s", job.upload_id, job.item_id, overall)

    return {
        "status": overall,
        "checks": [check.to_dict() for check in result.checks],
        "thumbnailKey": thumbnail_key,
        "convertedKey": converted_key,
        "detectedType": detected_type,
    }


@shared_task(
    bind=True,
    name="preflight.process_preflight_item",
    acks_late=True,
    max_retries=MAX_ATTEMPTS - 1,
    rate_limit=getattr(settings, "PREFLIGHT_RATE_LIMIT", "20/m"),
    soft_time_limit=getattr(settings, "PREFLIGHT_SOFT_TIME_LIMIT", 300),
)
def process_preflight_item(self, upload_id: str, shop_id: str, item_id: str, storage_key: str) -> Dict[str, Any]:
    """Preflight one uploaded item; transient failures are retried with backoff."""
    job = PreflightJob(upload_id=upload_id, shop_id=shop_id, item_id=item_id, storage_key=storage_key)
    attempt = self.request.retries + 1
    max_attempts = self.max_retries + 1
    final_attempt = attempt >= max_attempts
    logger.info(
        "Starting preflight upload_id=%s item_id=%s attempt=%s/%s",
        upload_id,
        item_id,
        attempt,
        max_attempts,
    )

    def progress(percent: int, step: str) -> None:
        _report_progress(self, job, percent, step)

    try:
        return run_preflight(job, final_attempt=final_attempt, progress=progress)
    except (ShopNotFound, ItemNotFound) as exc:
        logger.error("Preflight aborted for item %s: %s", item_id, exc)
        message = str(exc)
    except (PreflightError, SoftTimeLimitExceeded) as exc:
        retryable = isinstance(exc, SoftTimeLimitExceeded) or exc.retryable
        if retryable and not final_attempt:
            countdown = _retry_countdown(self.request.retries)
            logger.warning(
                "Preflight attempt %s/%s failed for item %s, retrying in %ss: %s",
                attempt,
                max_attempts,
                item_id,
                countdown,
                exc,
            )
            _report_progress(self, job, 0, "retrying", status="retrying", error=str(exc))
            raise self.retry(exc=exc, countdown=countdown)
        logger.error("Preflight failed permanently for item %s: %s", item_id, exc)
        message = str(exc) or exc.__class__.__name__
        if retryable:
            message = f"{message} (gave up after {attempt} attempts)"
    except Exception as exc:
        logger.exception("Unexpected preflight failure for item %s", item_id)
        message = f"Unexpected processing error: {exc}"

    _fail_item(job, message)
    _report_progress(self, job, 100, "failed", status="failed", error=message)
    return {"status": ERROR, "error": message}


def queue_preflight(item: UploadItem) -> None:
    """Schedule a preflight job for ``item`` once the current transaction commits."""
    payload = item.job_payload()
    transaction.on_commit(lambda: process_preflight_item.delay(**payload))


def queue_upload_preflight(upload: Upload) -> int:
    with transaction.atomic():
        upload.status = Upload.Status.UPLOADED
        upload.save(update_fields=["status", "updated_at"])
        items = list(upload.items.select_related("upload"))
        for item in items:
            queue_preflight(item)
    logger.info("Queued preflight for %s item(s) of upload %s", len(items), upload.id)
    return len(items)
