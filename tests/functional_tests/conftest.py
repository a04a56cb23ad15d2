import random
import sys
from pathlib import Path

import pytest
from PIL import Image

# Add repo root to path for imports
repo_root = Path(__file__).resolve().parent.parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))


@pytest.fixture
def make_noise_image():
    """Factory for deterministic, hard-to-compress RGB images."""
    def _make(width: int, height: int, seed: int = 0) -> Image.Image:
        rng = random.Random(seed)
        return Image.frombytes("RGB", (width, height), rng.randbytes(width * height * 3))
    return _make


@pytest.fixture
def repo_config_path() -> Path:
    return repo_root / "config" / "config.json"
