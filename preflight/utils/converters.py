"""
Rasterize non-raster uploads into a flat PNG for analysis and thumbnails.

The PNG produced here is a throwaway artifact. It is never written back over
the customer's original, and the caller keeps using the original storage key
for previews and downloads.
"""

import logging
import struct
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

from django.conf import settings
from PIL import Image, UnidentifiedImageError

from ..exceptions import ConversionTimeout
from . import file_types

logger = logging.getLogger(__name__)

GHOSTSCRIPT_BINARY = "gs"
IMAGEMAGICK_BINARY = "convert"
GHOSTSCRIPT_SAFE_ARGS = [
    "-dSAFER",
    "-dBATCH",
    "-dNOPAUSE",
    "-dNOCACHE",
    "-dNOPLATFONTS",
    "-sDEVICE=png16m",
    "-dMaxBitmap=500000000",
    "-dBufferSpace=1000000",
]
MAX_STDERR_CHARS = 500

CommandBuilder = Callable[[Path, Path, int], List[str]]


@dataclass
class ConversionResult:
    ok: bool
    output_path: Optional[Path] = None
    error: Optional[str] = None


def _ghostscript_pdf(input_path: Path, output_path: Path, dpi: int) -> List[str]:
    return [
        GHOSTSCRIPT_BINARY,
        *GHOSTSCRIPT_SAFE_ARGS,
        f"-r{dpi}",
        "-dFirstPage=1",
        "-dLastPage=1",
        f"-sOutputFile={output_path}",
        str(input_path),
    ]


def _ghostscript_eps(input_path: Path, output_path: Path, dpi: int) -> List[str]:
    return [
        GHOSTSCRIPT_BINARY,
        *GHOSTSCRIPT_SAFE_ARGS,
        f"-r{dpi}",
        "-dEPSCrop",
        f"-sOutputFile={output_path}",
        str(input_path),
    ]


def _imagemagick_flatten(input_path: Path, output_path: Path, dpi: int) -> List[str]:
    # Frame 0 is the merged composite for PSD and the first page for TIFF.
    # The source resolution is carried into the PNG untouched.
    return [
        IMAGEMAGICK_BINARY,
        f"{input_path}[0]",
        "-background",
        "none",
        "-flatten",
        f"png:{output_path}",
    ]


def _imagemagick_render(input_path: Path, output_path: Path, dpi: int) -> List[str]:
    return [
        IMAGEMAGICK_BINARY,
        "-density",
        str(dpi),
        f"{input_path}[0]",
        "-background",
        "none",
        "-flatten",
        "-units",
        "PixelsPerInch",
        "-density",
        str(dpi),
        f"png:{output_path}",
    ]


STRATEGIES: Dict[str, CommandBuilder] = {
    file_types.PDF: _ghostscript_pdf,
    file_types.POSTSCRIPT: _ghostscript_eps,
    file_types.TIFF: _imagemagick_flatten,
    file_types.PSD: _imagemagick_flatten,
    file_types.SVG: _imagemagick_render,
}


def needs_conversion(mime_type: str) -> bool:
    return mime_type in STRATEGIES


def validate_raster(path: Path) -> Optional[str]:
    """Return a description of what is wrong with ``path``, or None if it is a usable PNG."""
    path = Path(path)
    if not path.exists() or path.stat().st_size == 0:
        return "converter produced no output"

    with path.open("rb") as handle:
        header = handle.read(len(file_types.PNG_SIGNATURE))
    if header != file_types.PNG_SIGNATURE:
        return "converter output is not a PNG image"

    try:
        with Image.open(path) as image:
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, struct.error) as exc:
        return f"converter output is truncated or corrupt ({exc})"
    return None


def convert(
    input_path,
    output_path,
    detected_type: str,
    *,
    dpi: Optional[int] = None,
    timeout: Optional[int] = None,
) -> ConversionResult:
    """
    Rasterize ``input_path`` into ``output_path`` using the strategy for ``detected_type``.

    Failures are returned, not raised, so the caller can degrade gracefully.
    A process timeout raises ``ConversionTimeout`` because it may be transient.
    """
    strategy = STRATEGIES.get(detected_type)
    label = file_types.file_type_label(detected_type)
    if strategy is None:
        return ConversionResult(ok=False, error=f"No converter available for {label} files")

    dpi = dpi or settings.PREFLIGHT_CONVERSION_DPI
    timeout = timeout or settings.PREFLIGHT_CONVERTER_TIMEOUT
    input_path = Path(input_path)
    output_path = Path(output_path)
    command = strategy(input_path, output_path, dpi)

    logger.info("Converting %s (%s) to PNG at %s dpi", input_path.name, label, dpi)
    try:
        completed = subprocess.run(command, capture_output=True, timeout=timeout, check=False)
    except subprocess.TimeoutExpired as exc:
        raise ConversionTimeout(f"{command[0]} timed out after {timeout}s converting {label} file") from exc
    except OSError as exc:
        logger.warning("Converter %s could not be started: %s", command[0], exc)
        return ConversionResult(ok=False, error=f"{label} converter is unavailable ({exc})")

    if completed.returncode != 0:
        stderr = (completed.stderr or b"").decode("utf-8", errors="replace").strip()
        logger.warning(
            "Converter %s exited with %s: %s",
            command[0],
            completed.returncode,
            stderr[-MAX_STDERR_CHARS:],
        )
        return ConversionResult(
            ok=False,
            error=f"{label} conversion failed (exit code {completed.returncode})",
        )

    problem = validate_raster(output_path)
    if problem:
        logger.warning("Rejecting conversion output for %s: %s", input_path.name, problem)
        return ConversionResult(ok=False, error=f"{label} conversion failed: {problem}")

    return ConversionResult(ok=True, output_path=output_path)
