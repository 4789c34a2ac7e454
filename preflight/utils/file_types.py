from pathlib import Path

HEADER_SIZE = 512

PNG = "image/png"
JPEG = "image/jpeg"
WEBP = "image/webp"
GIF = "image/gif"
TIFF = "image/tiff"
PSD = "image/vnd.adobe.photoshop"
PDF = "application/pdf"
POSTSCRIPT = "application/postscript"
SVG = "image/svg+xml"
UNKNOWN = "unknown"

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

RASTER_TYPES = {PNG, JPEG, WEBP, GIF}

TYPE_LABELS = {
    PNG: "PNG",
    JPEG: "JPEG",
    WEBP: "WEBP",
    GIF: "GIF",
    TIFF: "TIFF",
    PSD: "PSD",
    PDF: "PDF",
    POSTSCRIPT: "AI/EPS",
    SVG: "SVG",
}

# Checked in order; the first prefix match wins.
_SIGNATURES = [
    (PNG_SIGNATURE, PNG),
    (b"\xff\xd8\xff", JPEG),
    (b"GIF87a", GIF),
    (b"GIF89a", GIF),
    (b"II*\x00", TIFF),
    (b"MM\x00*", TIFF),
    (b"8BPS", PSD),
    (b"%PDF", PDF),
    (b"%!", POSTSCRIPT),
    (b"\xc5\xd0\xd3\xc6", POSTSCRIPT),
]


def sniff_bytes(header: bytes) -> str:
    for signature, mime_type in _SIGNATURES:
        if header.startswith(signature):
            return mime_type

    if header[:4] == b"RIFF" and header[8:12] == b"WEBP":
        return WEBP

    text = header.lstrip(b"\xef\xbb\xbf \t\r\n").lower()
    if text.startswith(b"<svg") or (text.startswith(b"<?xml") and b"<svg" in text):
        return SVG

    return UNKNOWN


def detect_file_type(path) -> str:
    """Return the canonical type of the file at ``path`` from its leading bytes."""
    try:
        with Path(path).open("rb") as handle:
            header = handle.read(HEADER_SIZE)
    except OSError:
        return UNKNOWN
    return sniff_bytes(header)


def is_raster(mime_type: str) -> bool:
    return mime_type in RASTER_TYPES


def file_type_label(mime_type: str) -> str:
    return TYPE_LABELS.get(mime_type, "FILE")
