#!/usr/bin/env python3
"""
Integration Test: Main Orchestrator (ShrinkrayPipeline)

This test verifies the end-to-end file pipeline:
1. Pipeline initialization with the configured engines
2. Single image processing within a budget
3. Directory processing in natural order, skipping unreadable files
4. Command-line entry point exit codes
"""

import io
import json
import sys
from pathlib import Path

import pytest
from PIL import Image

# Add repo root to path for imports
repo_root = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(repo_root))

from shrinkray import ShrinkrayPipeline, main
from utilities import Print


@pytest.fixture
def pipeline(repo_config_path):
    pipeline = ShrinkrayPipeline(config_path=repo_config_path)
    pipeline.initialize()
    return pipeline


def write_png(path: Path, image: Image.Image) -> Path:
    image.save(path, format='PNG')
    return path


def test_pipeline_initialization(pipeline):
    Print("HEADER", "Testing Pipeline Initialization")

    assert pipeline.encoder is not None, "Encoder not initialized"
    assert pipeline.resampler is not None, "Resampler not initialized"
    assert pipeline.reencoder is not None, "Re-encoder not initialized"
    assert pipeline.reencoder.max_dimension == 4096
    assert pipeline.reencoder.quality_max == 0.95
    assert pipeline.reencoder.name == "bounded-size"

    Print("SUCCESS", f"Encoder: {pipeline.encoder.name}, resampler: {pipeline.resampler.name}")


def test_unknown_engine_rejected(repo_config_path):
    with pytest.raises(ValueError):
        ShrinkrayPipeline(config_path=repo_config_path).initialize(encoder_name="nope")


def test_missing_config_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        ShrinkrayPipeline(config_path=tmp_path / "missing.json")


def test_process_before_initialize_raises(repo_config_path, tmp_path):
    pipeline = ShrinkrayPipeline(config_path=repo_config_path)

    with pytest.raises(RuntimeError, match="not initialized"):
        pipeline.process_image(tmp_path / "a.png", tmp_path / "a.jpg")


def test_process_image_within_budget(pipeline, tmp_path, make_noise_image):
    Print("HEADER", "Testing single image processing")
    source = write_png(tmp_path / "noise.png", make_noise_image(500, 400))
    output = tmp_path / "out" / "noise.jpg"

    stats = pipeline.process_image(source, output, max_size_kb=40)

    assert output.exists()
    assert output.stat().st_size == stats['output_size']
    assert stats['budget'] == 40 * 1024
    assert stats['within_budget']
    assert stats['output_size'] <= 40 * 1024
    assert stats['input_size'] == source.stat().st_size
    assert stats['encode_calls'] <= 19
    assert stats['resample_calls'] <= 7
    assert Image.open(output).format == "JPEG"
    Print("SUCCESS", f"{stats['strategy']}: {stats['output_size']:,} bytes")


def test_default_budget_from_config(pipeline, tmp_path):
    source = write_png(tmp_path / "flat.png", Image.new('RGB', (64, 64), 'white'))

    stats = pipeline.process_image(source, tmp_path / "flat.jpg")

    assert stats['budget'] == 500 * 1024
    assert stats['strategy'] == "fast_path"


def test_exif_orientation_applied(pipeline, tmp_path):
    image = Image.new('RGB', (80, 40), 'red')
    exif = Image.Exif()
    exif[0x0112] = 6  # rotate 90 on display
    source = tmp_path / "rotated.jpg"
    image.save(source, format='JPEG', exif=exif.tobytes())

    stats = pipeline.process_image(source, tmp_path / "upright.jpg", max_size_kb=100)

    assert (stats['width'], stats['height']) == (40, 80)


def test_missing_input_raises(pipeline, tmp_path):
    with pytest.raises(FileNotFoundError):
        pipeline.process_image(tmp_path / "nope.png", tmp_path / "nope.jpg")


def test_non_image_raises(pipeline, tmp_path):
    source = tmp_path / "notes.png"
    source.write_text("not an image")

    with pytest.raises(ValueError, match="Not an image"):
        pipeline.process_image(source, tmp_path / "notes.jpg")


def test_process_directory(pipeline, tmp_path, make_noise_image):
    Print("HEADER", "Testing directory processing")
    input_dir = tmp_path / "in"
    input_dir.mkdir()
    for index in (10, 2, 1):
        write_png(input_dir / f"img{index}.png", make_noise_image(200, 150, seed=index))
    (input_dir / "readme.txt").write_text("skip me")
    (input_dir / "broken.png").write_bytes(b"\x89PNG garbage")

    assert [p.name for p in pipeline.find_images(input_dir)] == [
        "broken.png", "img1.png", "img2.png", "img10.png"
    ]

    output_dir = tmp_path / "out"
    result = pipeline.process_directory(input_dir, output_dir, max_size_kb=20)

    assert sorted(result['files']) == ["img1.png", "img10.png", "img2.png"]
    assert list(result['failed']) == ["broken.png"]
    for name in ("img1", "img2", "img10"):
        written = output_dir / f"{name}_shrunk.jpg"
        assert written.exists()
        assert written.stat().st_size <= 20 * 1024
    assert result['total_output_size'] == sum(s['output_size'] for s in result['files'].values())
    Print("SUCCESS", f"{len(result['files'])} images written")


def test_oversized_image_skipped_in_directory(pipeline, tmp_path, monkeypatch):
    input_dir = tmp_path / "in"
    input_dir.mkdir()
    write_png(input_dir / "big.png", Image.new('RGB', (300, 300), 'green'))
    write_png(input_dir / "small.png", Image.new('RGB', (50, 50), 'green'))
    # Pillow refuses images over twice this many pixels
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10000)

    result = pipeline.process_directory(input_dir, tmp_path / "out", max_size_kb=20)

    assert list(result['files']) == ["small.png"]
    assert "too large" in result['failed']["big.png"]
    assert (tmp_path / "out" / "small_shrunk.jpg").exists()


def test_decode_limit_from_config(tmp_path, repo_config_path, monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", Image.MAX_IMAGE_PIXELS)
    config = json.loads(repo_config_path.read_text())
    config['processing']['max_image_pixels'] = 1234567
    custom = tmp_path / "custom.json"
    custom.write_text(json.dumps(config))

    ShrinkrayPipeline(config_path=custom).initialize()

    assert Image.MAX_IMAGE_PIXELS == 1234567


def test_same_stem_inputs_get_distinct_outputs(pipeline, tmp_path):
    Print("HEADER", "Testing output name collisions")
    input_dir = tmp_path / "in"
    input_dir.mkdir()
    write_png(input_dir / "a.png", Image.new('RGB', (40, 40), 'red'))
    Image.new('RGB', (40, 40), 'blue').save(input_dir / "a.bmp", format='BMP')
    output_dir = tmp_path / "out"

    result = pipeline.process_directory(input_dir, output_dir, max_size_kb=20)

    assert result['failed'] == {}
    assert result['files']["a.bmp"]['output_path'] == str(output_dir / "a_shrunk.jpg")
    assert result['files']["a.png"]['output_path'] == str(output_dir / "a-png_shrunk.jpg")
    assert sorted(p.name for p in output_dir.iterdir()) == ["a-png_shrunk.jpg", "a_shrunk.jpg"]
    assert Image.open(output_dir / "a_shrunk.jpg").getpixel((20, 20))[2] > 200


def test_empty_directory_raises(pipeline, tmp_path):
    with pytest.raises(ValueError, match="No images"):
        pipeline.process_directory(tmp_path, tmp_path / "out")


def test_cli_single_file(tmp_path, repo_config_path, make_noise_image):
    source = write_png(tmp_path / "cli.png", make_noise_image(300, 200))
    output = tmp_path / "cli.jpg"

    code = main([str(source), str(output), "--max-kb", "30", "--config", str(repo_config_path)])

    assert code == 0
    assert output.stat().st_size <= 30 * 1024
    assert Image.open(io.BytesIO(output.read_bytes())).format == "JPEG"


def test_cli_custom_config(tmp_path, repo_config_path):
    config = json.loads(repo_config_path.read_text())
    config['processing']['default_max_size_kb'] = 50
    config['reencoding']['max_dimension'] = 100
    custom = tmp_path / "custom.json"
    custom.write_text(json.dumps(config))
    source = write_png(tmp_path / "flat.png", Image.new('RGB', (400, 200), 'blue'))
    output = tmp_path / "flat.jpg"

    assert main([str(source), str(output), "--config", str(custom)]) == 0
    assert Image.open(output).size == (100, 50)


def test_cli_missing_input(tmp_path, repo_config_path):
    code = main([str(tmp_path / "missing.png"), str(tmp_path / "out.jpg"), "--config", str(repo_config_path)])

    assert code == 1


def test_cli_unknown_encoder(tmp_path, repo_config_path):
    source = write_png(tmp_path / "a.png", Image.new('RGB', (10, 10)))

    code = main([str(source), str(tmp_path / "a.jpg"), "--encoder", "gif", "--config", str(repo_config_path)])

    assert code == 2


def test_cli_truncated_image(tmp_path, repo_config_path, make_noise_image):
    source = write_png(tmp_path / "cut.png", make_noise_image(200, 200))
    data = source.read_bytes()
    source.write_bytes(data[:len(data) // 2])

    code = main([str(source), str(tmp_path / "cut.jpg"), "--config", str(repo_config_path)])

    assert code == 2
    assert not (tmp_path / "cut.jpg").exists()


def test_cli_output_is_directory(tmp_path, repo_config_path):
    source = write_png(tmp_path / "a.png", Image.new('RGB', (10, 10)))
    taken = tmp_path / "taken.jpg"
    taken.mkdir()

    code = main([str(source), str(taken), "--config", str(repo_config_path)])

    assert code == 2
    assert taken.is_dir()
