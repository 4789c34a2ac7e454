"""
Tests for rasterizing non-raster uploads.
"""

import subprocess
from unittest.mock import patch

import pytest

from conftest import MINIMAL_PDF, MINIMAL_PSD, write_image
from preflight.exceptions import ConversionTimeout
from preflight.utils import file_types
from preflight.utils.converters import convert, needs_conversion, validate_raster


def _completed(returncode=0, stderr=b""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=b"", stderr=stderr)


def _writes_png(size=(600, 600)):
    """Fake converter run that leaves a valid PNG at the requested output path."""

    def _run(command, **kwargs):
        target = command[-1]
        if target.startswith("png:"):
            target = target[len("png:"):]
        elif target.startswith("-sOutputFile="):
            target = target[len("-sOutputFile="):]
        else:
            target = next(arg for arg in command if arg.startswith("-sOutputFile="))[len("-sOutputFile="):]
        write_image(target, size=size)
        return _completed()

    return _run


@pytest.fixture
def pdf_file(tmp_path):
    path = tmp_path / "original.pdf"
    path.write_bytes(MINIMAL_PDF)
    return path


class TestNeedsConversion:
    """Only formats a browser cannot render go through a converter."""

    @pytest.mark.parametrize(
        "mime_type", [file_types.PDF, file_types.POSTSCRIPT, file_types.TIFF, file_types.PSD, file_types.SVG]
    )
    def test_non_raster_formats(self, mime_type):
        assert needs_conversion(mime_type)

    @pytest.mark.parametrize("mime_type", [file_types.PNG, file_types.JPEG, file_types.WEBP, file_types.UNKNOWN])
    def test_raster_and_unknown_formats(self, mime_type):
        assert not needs_conversion(mime_type)


class TestConvert:
    """Converter invocation and post-validation."""

    def test_pdf_success(self, pdf_file, tmp_path):
        output = tmp_path / "converted.png"
        with patch("preflight.utils.converters.subprocess.run", side_effect=_writes_png()) as mock_run:
            result = convert(pdf_file, output, file_types.PDF, dpi=150, timeout=5)

        assert result.ok
        assert result.output_path == output
        assert result.error is None
        command = mock_run.call_args.args[0]
        assert command[0] == "gs"
        assert "-dSAFER" in command
        assert "-dFirstPage=1" in command and "-dLastPage=1" in command
        assert "-r150" in command
        assert command[-1] == str(pdf_file)
        assert mock_run.call_args.kwargs["timeout"] == 5

    def test_original_is_left_untouched(self, pdf_file, tmp_path):
        with patch("preflight.utils.converters.subprocess.run", side_effect=_writes_png()):
            convert(pdf_file, tmp_path / "converted.png", file_types.PDF)
        assert pdf_file.read_bytes() == MINIMAL_PDF

    def test_eps_uses_bounding_box_crop(self, tmp_path):
        source = tmp_path / "logo.eps"
        source.write_bytes(b"%!PS-Adobe-3.0 EPSF-3.0\n" + b"%" * 200)
        with patch("preflight.utils.converters.subprocess.run", side_effect=_writes_png()) as mock_run:
            result = convert(source, tmp_path / "converted.png", file_types.POSTSCRIPT)

        assert result.ok
        assert "-dEPSCrop" in mock_run.call_args.args[0]

    def test_psd_flattens_first_frame(self, tmp_path, settings):
        settings.PREFLIGHT_CONVERSION_DPI = 300
        source = tmp_path / "layers.psd"
        source.write_bytes(MINIMAL_PSD)
        output = tmp_path / "converted.png"
        with patch("preflight.utils.converters.subprocess.run", side_effect=_writes_png()) as mock_run:
            result = convert(source, output, file_types.PSD)

        command = mock_run.call_args.args[0]
        assert result.ok
        assert command[0] == "convert"
        assert f"{source}[0]" in command
        assert "-flatten" in command
        assert command[-1] == f"png:{output}"

    @pytest.mark.parametrize("mime_type,name", [(file_types.TIFF, "scan.tif"), (file_types.PSD, "layers.psd")])
    def test_raster_sources_keep_their_resolution(self, tmp_path, mime_type, name):
        source = tmp_path / name
        source.write_bytes(MINIMAL_PSD)
        with patch("preflight.utils.converters.subprocess.run", side_effect=_writes_png()) as mock_run:
            convert(source, tmp_path / "converted.png", mime_type, dpi=300)

        command = mock_run.call_args.args[0]
        assert "-density" not in command
        assert "-units" not in command

    def test_svg_is_rendered_at_conversion_density(self, tmp_path):
        source = tmp_path / "logo.svg"
        source.write_bytes(b'<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10"></svg>' * 3)
        with patch("preflight.utils.converters.subprocess.run", side_effect=_writes_png()) as mock_run:
            convert(source, tmp_path / "converted.png", file_types.SVG, dpi=300)

        command = mock_run.call_args.args[0]
        assert command[1:3] == ["-density", "300"]
        assert command[-3:-1] == ["-density", "300"]

    def test_nonzero_exit(self, pdf_file, tmp_path):
        with patch(
            "preflight.utils.converters.subprocess.run",
            return_value=_completed(returncode=1, stderr=b"Error: /syntaxerror"),
        ):
            result = convert(pdf_file, tmp_path / "converted.png", file_types.PDF)

        assert not result.ok
        assert result.error == "PDF conversion failed (exit code 1)"

    def test_zero_exit_without_output(self, pdf_file, tmp_path):
        with patch("preflight.utils.converters.subprocess.run", return_value=_completed()):
            result = convert(pdf_file, tmp_path / "converted.png", file_types.PDF)

        assert not result.ok
        assert "no output" in result.error

    def test_zero_exit_with_truncated_png(self, pdf_file, tmp_path):
        output = tmp_path / "converted.png"

        def _truncated(command, **kwargs):
            write_image(output, size=(800, 800), color="red")
            data = output.read_bytes()
            output.write_bytes(data[: len(data) // 2])
            return _completed()

        with patch("preflight.utils.converters.subprocess.run", side_effect=_truncated):
            result = convert(pdf_file, output, file_types.PDF)

        assert not result.ok
        assert "truncated or corrupt" in result.error

    def test_zero_exit_with_non_png_output(self, pdf_file, tmp_path):
        output = tmp_path / "converted.png"

        def _garbage(command, **kwargs):
            output.write_bytes(b"GPL Ghostscript warning text" * 10)
            return _completed()

        with patch("preflight.utils.converters.subprocess.run", side_effect=_garbage):
            result = convert(pdf_file, output, file_types.PDF)

        assert not result.ok
        assert "not a PNG" in result.error

    def test_missing_binary(self, pdf_file, tmp_path):
        with patch("preflight.utils.converters.subprocess.run", side_effect=FileNotFoundError("gs")):
            result = convert(pdf_file, tmp_path / "converted.png", file_types.PDF)

        assert not result.ok
        assert "unavailable" in result.error

    def test_timeout_raises(self, pdf_file, tmp_path):
        with patch(
            "preflight.utils.converters.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="gs", timeout=5),
        ):
            with pytest.raises(ConversionTimeout) as excinfo:
                convert(pdf_file, tmp_path / "converted.png", file_types.PDF, timeout=5)

        assert excinfo.value.retryable

    def test_unsupported_type(self, tmp_path):
        with patch("preflight.utils.converters.subprocess.run") as mock_run:
            result = convert(tmp_path / "x.bin", tmp_path / "converted.png", file_types.UNKNOWN)

        assert not result.ok
        mock_run.assert_not_called()


class TestValidateRaster:
    def test_valid_png(self, tmp_path):
        assert validate_raster(write_image(tmp_path / "ok.png", size=(50, 50))) is None

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.png"
        path.write_bytes(b"")
        assert validate_raster(path) == "converter produced no output"

    def test_jpeg_is_rejected(self, tmp_path):
        path = write_image(tmp_path / "out.png", size=(50, 50), image_format="JPEG")
        assert validate_raster(path) == "converter output is not a PNG image"
