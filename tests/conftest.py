"""
Pytest configuration and fixtures for the preflight worker tests.
"""

from pathlib import Path

import pytest
from PIL import Image

MINIMAL_PDF = b"""%PDF-1.4
1 0 obj
<< /Type /Catalog /Pages 2 0 R >>
endobj
2 0 obj
<< /Type /Pages /Kids [3 0 R] /Count 1 >>
endobj
3 0 obj
<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] >>
endobj
xref
0 4
0000000000 65535 f
0000000009 00000 n
0000000058 00000 n
0000000115 00000 n
trailer
<< /Size 4 /Root 1 0 R >>
startxref
196
%%EOF"""

# Encapsulated PostScript header with a bounding box and nothing to render.
MINIMAL_EPS = b"%!PS-Adobe-3.0 EPSF-3.0\n%%BoundingBox: 0 0 612 792\n" + b"%\n" * 100

# Header of a layered document followed by padding so it clears the size floor.
MINIMAL_PSD = b"8BPS\x00\x01" + b"\x00" * 6 + b"\x00\x03" + b"\x00\x00\x01\x00" * 2 + b"\x00\x08\x00\x03" + b"\x00" * 200


def write_image(
    path: Path,
    size=(1200, 1200),
    mode: str = "RGB",
    dpi=(300, 300),
    image_format: str = "PNG",
    color="white",
) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    image = Image.new(mode, size, color)
    save_kwargs = {"dpi": dpi} if dpi else {}
    image.save(path, image_format, **save_kwargs)
    return path


@pytest.fixture
def storage_root(settings, tmp_path):
    """Point local storage at an isolated directory for each test."""
    root = tmp_path / "storage"
    root.mkdir()
    settings.PREFLIGHT_LOCAL_STORAGE_PATH = root
    return root


@pytest.fixture
def shop(db):
    from preflight.models import Shop

    return Shop.objects.create(
        shop_domain="test-shop.myshopify.com",
        plan=Shop.Plan.PRO,
        storage_provider=Shop.StorageProvider.LOCAL,
    )


@pytest.fixture
def upload(shop):
    from preflight.models import Upload

    return Upload.objects.create(shop=shop, status=Upload.Status.UPLOADED)


@pytest.fixture
def make_item(upload, storage_root):
    """Create an UploadItem whose original bytes live in local storage."""
    from preflight.models import UploadItem

    def _make_item(key: str, content: bytes = None, *, image: dict = None, target_upload=None):
        path = storage_root / key
        path.parent.mkdir(parents=True, exist_ok=True)
        if image is not None:
            write_image(path, **image)
        else:
            path.write_bytes(content)
        return UploadItem.objects.create(
            upload=target_upload or upload,
            original_name=Path(key).name,
            storage_key=key,
        )

    return _make_item
