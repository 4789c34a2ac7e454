"""
Tests for rolling item verdicts up into the upload status.
"""

import pytest

from preflight.aggregation import compute_upload_status, recompute_upload_status
from preflight.models import Upload, UploadItem


class TestComputeUploadStatus:
    @pytest.mark.parametrize(
        "statuses,auto_approve,expected",
        [
            (["ok", "error"], True, (Upload.Status.BLOCKED, "error", False)),
            (["warning", "error"], False, (Upload.Status.BLOCKED, "error", False)),
            (["ok", "warning"], True, (Upload.Status.NEEDS_REVIEW, "warning", False)),
            (["ok", "ok"], True, (Upload.Status.READY, "ok", True)),
            (["ok"], False, (Upload.Status.PENDING_APPROVAL, "ok", False)),
        ],
    )
    def test_table(self, statuses, auto_approve, expected):
        assert compute_upload_status(statuses, auto_approve) == expected


@pytest.mark.django_db
class TestRecomputeUploadStatus:
    """Aggregation only happens once every item is terminal."""

    def _item(self, upload, status):
        return UploadItem.objects.create(upload=upload, storage_key=f"k/{status}.png", preflight_status=status)

    def test_pending_sibling_leaves_upload_alone(self, upload):
        self._item(upload, UploadItem.PreflightStatus.OK)
        self._item(upload, UploadItem.PreflightStatus.PENDING)

        assert recompute_upload_status(upload.id) is None

        upload.refresh_from_db()
        assert upload.status == Upload.Status.UPLOADED
        assert upload.preflight_summary is None

    def test_no_items(self, upload):
        assert recompute_upload_status(upload.id) is None

    def test_missing_upload(self, db):
        assert recompute_upload_status("does-not-exist") is None

    def test_all_ok_auto_approved(self, upload):
        self._item(upload, UploadItem.PreflightStatus.OK)
        self._item(upload, UploadItem.PreflightStatus.OK)

        recompute_upload_status(upload.id)

        upload.refresh_from_db()
        assert upload.status == Upload.Status.READY
        assert upload.preflight_summary["overall"] == "ok"
        assert upload.preflight_summary["itemCount"] == 2
        assert upload.preflight_summary["autoApproved"] is True
        assert upload.preflight_summary["completedAt"]

    def test_all_ok_without_auto_approve(self, upload):
        upload.shop.settings = {"autoApprove": False}
        upload.shop.save()
        self._item(upload, UploadItem.PreflightStatus.OK)

        recompute_upload_status(upload.id)

        upload.refresh_from_db()
        assert upload.status == Upload.Status.PENDING_APPROVAL
        assert upload.preflight_summary["autoApproved"] is False

    def test_warning_needs_review(self, upload):
        self._item(upload, UploadItem.PreflightStatus.OK)
        self._item(upload, UploadItem.PreflightStatus.WARNING)

        recompute_upload_status(upload.id)

        upload.refresh_from_db()
        assert upload.status == Upload.Status.NEEDS_REVIEW

    def test_error_blocks(self, upload):
        self._item(upload, UploadItem.PreflightStatus.WARNING)
        self._item(upload, UploadItem.PreflightStatus.ERROR)

        recompute_upload_status(upload.id)

        upload.refresh_from_db()
        assert upload.status == Upload.Status.BLOCKED
        assert upload.preflight_summary["overall"] == "error"
