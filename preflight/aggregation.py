import logging
from typing import Iterable, Optional, Tuple

from django.db import transaction
from django.utils import timezone

from .models import Upload, UploadItem
from .utils.checks import ERROR, OK, WARNING, worst_status

logger = logging.getLogger(__name__)


def compute_upload_status(statuses: Iterable[str], auto_approve: bool) -> Tuple[str, str, bool]:
    """Map terminal item verdicts to ``(upload_status, overall, auto_approved)``."""
    overall = worst_status(statuses)
    if overall == ERROR:
        return Upload.Status.BLOCKED, overall, False
    if overall == WARNING:
        return Upload.Status.NEEDS_REVIEW, overall, False
    if auto_approve:
        return Upload.Status.READY, OK, True
    return Upload.Status.PENDING_APPROVAL, OK, False


def recompute_upload_status(upload_id: str) -> Optional[Upload]:
    """
    Roll item verdicts up into the parent upload.

    Safe to call after every item completes: while any sibling is still
    pending nothing is written and None is returned.
    """
    with transaction.atomic():
        upload = (
            Upload.objects.select_for_update(of=("self",))
            .select_related("shop")
            .filter(pk=upload_id)
            .first()
        )
        if upload is None:
            logger.warning("Upload %s not found while recomputing status.", upload_id)
            return None

        statuses = list(upload.items.values_list("preflight_status", flat=True))
        if not statuses or UploadItem.PreflightStatus.PENDING in statuses:
            logger.debug("Upload %s still has pending items; skipping aggregate.", upload_id)
            return None

        status, overall, auto_approved = compute_upload_status(statuses, upload.shop.auto_approve)
        upload.status = status
        upload.preflight_summary = {
            "overall": overall,
            "completedAt": timezone.now().isoformat(),
            "itemCount": len(statuses),
            "autoApproved": auto_approved,
        }
        upload.save(update_fields=["status", "preflight_summary", "updated_at"])

    logger.info("Upload %s preflight complete: status=%s overall=%s", upload_id, status, overall)
    return upload
