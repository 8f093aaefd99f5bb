import io
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest
from PIL import Image

from lager_intake.inbound.registry import InboundRegistry
from lager_intake.scanner.quality_gate import AdmittedImage, ImageQualityGate
from lager_intake.storage.blob_store import LocalBlobStore
from lager_intake.storage.sqlite_store import SQLiteRecordStore


def checkerboard(width: int, height: int, square: int = 16) -> Image.Image:
    """Black/white checkerboard, sharp enough to pass the default gate."""
    ys, xs = np.indices((height, width))
    pattern = (((ys // square) + (xs // square)) % 2 * 255).astype(np.uint8)
    return Image.fromarray(pattern).convert('RGB')


def encode(img: Image.Image, fmt: str = 'PNG', **kwargs) -> bytes:
    buf = io.BytesIO()
    img.save(buf, fmt, **kwargs)
    return buf.getvalue()


class StepClock:
    """Deterministic UTC clock advancing one second per call."""

    def __init__(self, start=datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self):
        self.current = self.current + timedelta(seconds=1)
        return self.current


@pytest.fixture
def store(tmp_path):
    s = SQLiteRecordStore(str(tmp_path / "lager.db"))
    yield s
    s.close()


@pytest.fixture
def blobs(tmp_path):
    return LocalBlobStore(str(tmp_path / "blobs"))


@pytest.fixture
def gate():
    return ImageQualityGate()


@pytest.fixture
def registry(store, blobs, gate):
    return InboundRegistry(store, blobs, gate=gate, clock=StepClock())


@pytest.fixture
def make_page():
    """Factory for small admitted JPEG pages with distinct content."""
    counter = {'n': 0}

    def _make(width: int = 64, height: int = 48) -> AdmittedImage:
        counter['n'] += 1
        shade = (counter['n'] * 37) % 256
        img = Image.new('RGB', (width, height), (shade, 255 - shade, 128))
        return AdmittedImage(data=encode(img, 'JPEG', quality=90), width=width, height=height)

    return _make


@pytest.fixture
def sharp_scan():
    """Encoded 1600x1200 checkerboard page (PNG)."""
    return encode(checkerboard(1600, 1200))
