"""
Print-readiness checks.

``run_preflight_checks`` evaluates a file against a plan's ``PreflightConfig``
and returns an ordered list of named checks. The item verdict is the worst
status across all checks (error > warning > ok).
"""

import io
import logging
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from django.conf import settings
from PIL import Image, ImageCms

from . import file_types
from .plans import PreflightConfig

logger = logging.getLogger(__name__)

OK = "ok"
WARNING = "warning"
ERROR = "error"
SEVERITY = {OK: 0, WARNING: 1, ERROR: 2}

DEFAULT_DPI = 72
HARD_DPI_FACTOR = 0.7
ACCEPTED_COLORSPACES = {"sRGB", "RGB", "CMYK"}
MODE_COLORSPACES = {
    "1": "Gray",
    "L": "Gray",
    "LA": "Gray",
    "La": "Gray",
    "I": "Gray",
    "I;16": "Gray",
    "F": "Gray",
    "P": "Palette",
    "PA": "Palette",
    "RGB": "sRGB",
    "RGBA": "sRGB",
    "RGBa": "sRGB",
    "RGBX": "sRGB",
    "CMYK": "CMYK",
    "YCbCr": "YCbCr",
    "LAB": "Lab",
    "HSV": "HSV",
}
PDF_PAGES_PATTERN = re.compile(r"^Pages:\s+(\d+)", re.MULTILINE)


def worst_status(statuses: Iterable[str]) -> str:
    return max(statuses, key=lambda status: SEVERITY[status], default=OK)


@dataclass
class PreflightCheck:
    name: str
    status: str
    message: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "status": self.status}
        if self.message is not None:
            data["message"] = self.message
        if self.details is not None:
            data["details"] = self.details
        return data


@dataclass
class PreflightResult:
    checks: List[PreflightCheck] = field(default_factory=list)

    @property
    def overall(self) -> str:
        return worst_status(check.status for check in self.checks)

    def add(self, name: str, status: str, message: Optional[str] = None, **details: Any) -> PreflightCheck:
        check = PreflightCheck(name=name, status=status, message=message, details=details or None)
        self.checks.append(check)
        return check

    def to_dict(self) -> Dict[str, Any]:
        return {"overall": self.overall, "checks": [check.to_dict() for check in self.checks]}


def fold_check(result: PreflightResult, check: PreflightCheck) -> PreflightResult:
    result.checks.append(check)
    return result


@dataclass
class ImageInfo:
    width: int
    height: int
    dpi: int
    colorspace: str
    has_alpha: bool
    icc_profile: Optional[str] = None


def _icc_description(raw_profile: bytes) -> Optional[str]:
    try:
        profile = ImageCms.ImageCmsProfile(io.BytesIO(raw_profile))
        return ImageCms.getProfileDescription(profile).strip() or None
    except (ImageCms.PyCMSError, OSError, ValueError, TypeError):
        return None


def inspect_image(path) -> ImageInfo:
    with Image.open(path) as image:
        width, height = image.size
        x_dpi, y_dpi = image.info.get("dpi", (0, 0))
        if x_dpi and y_dpi:
            dpi = int(round((float(x_dpi) + float(y_dpi)) / 2))
        else:
            dpi = DEFAULT_DPI
        has_alpha = "A" in image.getbands() or "a" in image.mode or "transparency" in image.info
        raw_profile = image.info.get("icc_profile")
        return ImageInfo(
            width=width,
            height=height,
            dpi=dpi,
            colorspace=MODE_COLORSPACES.get(image.mode, image.mode),
            has_alpha=has_alpha,
            icc_profile=_icc_description(raw_profile) if raw_profile else None,
        )


def count_pdf_pages(path, timeout: Optional[int] = None) -> Optional[int]:
    """Page count reported by ``pdfinfo``; None when it cannot be determined."""
    try:
        completed = subprocess.run(
            ["pdfinfo", str(path)],
            capture_output=True,
            text=True,
            timeout=timeout or settings.PREFLIGHT_CONVERTER_TIMEOUT,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.warning("pdfinfo failed for %s: %s", path, exc)
        return None
    if completed.returncode != 0:
        return None
    match = PDF_PAGES_PATTERN.search(completed.stdout or "")
    return int(match.group(1)) if match else None


def _check_file_size(result: PreflightResult, file_size: int, config: PreflightConfig) -> None:
    size_mb = round(file_size / (1024 * 1024), 2)
    if size_mb > config.max_file_size_mb:
        result.add(
            "fileSize",
            ERROR,
            f"File size ({size_mb:.2f}MB) exceeds limit ({config.max_file_size_mb}MB)",
            sizeMB=size_mb,
        )
    else:
        result.add("fileSize", OK, f"File size: {size_mb:.2f}MB", sizeMB=size_mb)


def _check_page_count(result: PreflightResult, pages: int, config: PreflightConfig) -> None:
    if pages > config.max_pages:
        result.add("pageCount", ERROR, f"PDF has {pages} pages (max: {config.max_pages})", pages=pages)
    elif pages > 1:
        result.add(
            "pageCount",
            WARNING,
            f"PDF has {pages} pages. Only the first page will be used.",
            pages=pages,
        )
    else:
        result.add("pageCount", OK, "Single page PDF", pages=pages)


def _check_dpi(result: PreflightResult, info: ImageInfo, config: PreflightConfig) -> None:
    if info.dpi < config.min_dpi * HARD_DPI_FACTOR:
        result.add("dpi", ERROR, f"DPI ({info.dpi}) is too low. Minimum: {config.min_dpi}", dpi=info.dpi)
    elif info.dpi < config.required_dpi:
        result.add(
            "dpi",
            WARNING,
            f"DPI ({info.dpi}) is below recommended ({config.required_dpi})",
            dpi=info.dpi,
        )
    else:
        result.add("dpi", OK, f"DPI: {info.dpi}", dpi=info.dpi)


def _check_dimensions(result: PreflightResult, info: ImageInfo, config: PreflightConfig) -> None:
    size = f"{info.width} x {info.height} px"
    if info.width > config.max_width or info.height > config.max_height:
        status = ERROR
        message = f"Dimensions ({size}) exceed maximum {config.max_width} x {config.max_height} px"
    elif info.width < config.min_width or info.height < config.min_height:
        status = WARNING
        message = f"Dimensions ({size}) are below recommended {config.min_width} x {config.min_height} px"
    else:
        status = OK
        message = f"Dimensions: {size}"
    result.add("dimensions", status, message, width=info.width, height=info.height)


def _check_transparency(result: PreflightResult, info: ImageInfo, config: PreflightConfig) -> None:
    if info.has_alpha:
        result.add("transparency", OK, "Has transparency (alpha channel)", hasAlpha=True)
    elif config.require_transparency:
        result.add("transparency", WARNING, "No transparency detected; a transparent background is required", hasAlpha=False)
    else:
        result.add("transparency", OK, "No transparency detected", hasAlpha=False)


def _check_color_profile(result: PreflightResult, info: ImageInfo) -> None:
    details: Dict[str, Any] = {"colorspace": info.colorspace}
    if info.icc_profile:
        details["iccProfile"] = info.icc_profile
    status = OK if info.colorspace in ACCEPTED_COLORSPACES else WARNING
    message = f"Color profile: {info.icc_profile or info.colorspace}"
    if status == WARNING:
        message += " (RGB or CMYK recommended for print)"
    result.add("colorProfile", status, message, **details)


def run_preflight_checks(
    path,
    detected_type: str,
    file_size: int,
    config: PreflightConfig,
    *,
    raster_available: bool = True,
    page_count: Optional[int] = None,
) -> PreflightResult:
    """
    Run every check against the best available raster at ``path``.

    ``raster_available`` is False when ``path`` is a non-raster original left
    over from a failed conversion; the pixel checks are then skipped and a
    single imageAnalysis warning is recorded instead.
    """
    result = PreflightResult()
    _check_file_size(result, file_size, config)

    if detected_type not in config.allowed_formats:
        result.add(
            "format",
            ERROR,
            f"Unsupported file format: {file_types.file_type_label(detected_type)}",
            detectedType=detected_type,
        )
        return result
    result.add(
        "format",
        OK,
        f"Format: {file_types.file_type_label(detected_type)}",
        detectedType=detected_type,
    )

    if detected_type == file_types.PDF and page_count is not None:
        _check_page_count(result, page_count, config)

    if not raster_available:
        # Unrendered originals carry no trustworthy resolution or pixel data.
        result.add(
            "imageAnalysis",
            WARNING,
            "Image properties could not be analyzed without a rendered preview",
        )
        return result

    try:
        info = inspect_image(Path(path))
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        logger.warning("Image analysis failed for %s: %s", path, exc)
        result.add("imageAnalysis", ERROR, "Failed to analyze image properties; the file may be corrupt")
        return result

    _check_dpi(result, info, config)
    _check_dimensions(result, info, config)
    _check_transparency(result, info, config)
    _check_color_profile(result, info)
    return result
