import io

import numpy as np
import pytest
from PIL import Image

from conftest import checkerboard, encode
from lager_intake.scanner.quality_gate import (
    AdmittedImage,
    GateSettings,
    ImageQualityGate,
    Rejected,
    RejectReason,
    laplacian_variance,
)


def decoded_size(data: bytes):
    with Image.open(io.BytesIO(data)) as img:
        return img.format, img.size


def test_sharp_page_is_admitted_as_jpeg(gate, sharp_scan):
    result = gate.admit(sharp_scan)

    assert isinstance(result, AdmittedImage)
    assert (result.width, result.height) == (1600, 1200)
    assert result.sharpness >= gate.settings.min_sharpness
    assert result.mime_type == "image/jpeg"
    assert result.size_bytes == len(result.data)
    assert decoded_size(result.data) == ("JPEG", (1600, 1200))


def test_large_page_is_downscaled_keeping_aspect():
    gate = ImageQualityGate(GateSettings(min_sharpness=0))
    raw = encode(checkerboard(4000, 3000, square=40).convert('L'), 'JPEG', quality=90)

    result = gate.admit(raw)

    assert isinstance(result, AdmittedImage)
    assert (result.width, result.height) == (2500, 1875)
    assert decoded_size(result.data) == ("JPEG", (2500, 1875))


def test_below_resolution_floor_is_rejected(gate):
    result = gate.admit(encode(checkerboard(1000, 800)))

    assert isinstance(result, Rejected)
    assert result.reason == RejectReason.TOO_SMALL
    assert (result.width, result.height) == (1000, 800)


def test_uniform_page_scores_zero_and_is_blurry(gate):
    flat = Image.new('RGB', (2000, 1500), (180, 180, 180))
    result = gate.admit(encode(flat))

    assert isinstance(result, Rejected)
    assert result.reason == RejectReason.BLURRY
    assert result.sharpness == 0.0


def test_transparent_page_lands_on_white(gate):
    transparent = Image.new('RGBA', (1600, 1200), (0, 0, 0, 0))
    result = gate.admit(encode(transparent))

    assert isinstance(result, Rejected)
    assert result.reason == RejectReason.BLURRY
    assert result.sharpness == 0.0


def test_undecodable_bytes_are_rejected(gate):
    result = gate.admit(b"definitely not an image")

    assert isinstance(result, Rejected)
    assert result.reason == RejectReason.UNDECODABLE


def test_exif_orientation_is_applied_before_checks():
    gate = ImageQualityGate(GateSettings(min_sharpness=0))
    exif = Image.Exif()
    exif[0x0112] = 6  # rotated 90 CW on the sensor
    raw = encode(checkerboard(2000, 1600), 'JPEG', quality=90, exif=exif.tobytes())

    result = gate.admit(raw)

    assert isinstance(result, AdmittedImage)
    assert (result.width, result.height) == (1600, 2000)


def test_sharpness_of_pixel_checkerboard(gate):
    # Every interior Laplacian response is +-1020, so variance is 1020^2
    score = gate.sharpness_score(checkerboard(200, 200, square=1))
    assert score == pytest.approx(10404.0)


def test_laplacian_variance_edge_cases():
    assert laplacian_variance(np.zeros((2, 50))) == 0.0
    assert laplacian_variance(np.full((20, 20), 77.0)) == 0.0

    ramp = np.tile(np.arange(30, dtype=np.float64), (30, 1))
    assert laplacian_variance(ramp) == pytest.approx(0.0)


def test_threshold_is_configurable(sharp_scan):
    strict = ImageQualityGate(GateSettings(min_sharpness=1e9))
    result = strict.admit(sharp_scan)
    assert isinstance(result, Rejected)
    assert result.reason == RejectReason.BLURRY


@pytest.mark.parametrize("degrees,expected", [
    (0, (1600, 1200)),
    (90, (1200, 1600)),
    (-90, (1200, 1600)),
    (180, (1600, 1200)),
])
def test_rotate_right_angles(gate, sharp_scan, degrees, expected):
    page = gate.admit(sharp_scan)
    rotated = gate.rotate(page, degrees)

    assert (rotated.width, rotated.height) == expected
    assert decoded_size(rotated.data) == ("JPEG", expected)


def test_rotate_arbitrary_angle_grows_canvas(gate, sharp_scan):
    page = gate.admit(sharp_scan)
    rotated = gate.rotate(page, 30)

    theta = np.deg2rad(30)
    expected_w = abs(1600 * np.cos(theta)) + abs(1200 * np.sin(theta))
    expected_h = abs(1600 * np.sin(theta)) + abs(1200 * np.cos(theta))
    assert abs(rotated.width - expected_w) <= 2
    assert abs(rotated.height - expected_h) <= 2

    with Image.open(io.BytesIO(rotated.data)) as img:
        corner = img.convert('RGB').getpixel((0, 0))
    assert all(channel > 200 for channel in corner)


@pytest.mark.parametrize("square", [1, 2, 3])
def test_fine_checkerboard_is_admitted_by_default_gate(gate, square):
    result = gate.admit(encode(checkerboard(2000, 1500, square=square)))

    assert isinstance(result, AdmittedImage)
    assert result.sharpness >= gate.settings.min_sharpness


def test_scoring_crop_keeps_native_edge_response(gate):
    # 800px centred crop of a 1px checkerboard: every response is +-1020
    result = gate.admit(encode(checkerboard(2000, 1500, square=1)))
    assert result.sharpness == pytest.approx(10404.0)
