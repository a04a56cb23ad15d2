#!/usr/bin/env python3
"""
Shrinkray: re-encode images to fit a byte budget.

This is the main orchestrator that wires the encoder and resampler engines
into the bounded-size re-encoder and runs it over files on disk.

Architecture:
- Factory pattern for pluggable encoders and resamplers
- Protocol-based contracts for the two collaborators
- The re-encoding policy knows nothing about files or formats

Usage:
    from shrinkray import ShrinkrayPipeline

    pipeline = ShrinkrayPipeline()
    pipeline.initialize()
    pipeline.process_image(Path("photo.png"), Path("photo.jpg"), max_size_kb=500)

Or from command line:
    python shrinkray.py photo.png photo.jpg --max-kb 500
    python shrinkray.py photos/ shrunk/ --max-kb 200
"""

import json
from pathlib import Path
from typing import List, Optional
from datetime import datetime

from natsort import natsorted
from PIL import Image, ImageOps, UnidentifiedImageError

from engines.compression import get_encoder
from engines.resampling import get_resampler
from processors.reencoder import BoundedSizeReencoder
from utilities import Print, format_bytes, memory_usage

DEFAULT_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.webp', '.tiff', '.tif', '.bmp', '.gif')


class ShrinkrayPipeline:
    """
    Main orchestrator for Shrinkray.

    Stages per image:
    1. Load (Pillow, EXIF orientation applied)
    2. Re-encode within the byte budget
    3. Write the encoded bytes

    Attributes:
        config: Loaded configuration dictionary
        encoder: Initialized lossy encoder instance
        resampler: Initialized resampler instance
        reencoder: BoundedSizeReencoder wired to encoder and resampler
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize pipeline with configuration.

        Args:
            config_path: Path to config.json. If None, uses default location.
        """
        self.config = self._load_config(config_path)
        self.encoder = None
        self.resampler = None
        self.reencoder = None
        self._initialized = False

    def _load_config(self, config_path: Optional[Path]) -> dict:
        """Load configuration from JSON file."""
        if config_path is None:
            config_path = Path(__file__).parent / "config" / "config.json"

        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {config_path}\n"
                f"Create config/config.json or specify path with config_path parameter."
            )

        with open(config_path) as f:
            config = json.load(f)

        Print("DEBUG", f"Loaded configuration v{config.get('version', 'unknown')}")
        return config

    def initialize(self, encoder_name: str = "jpeg", resampler_name: str = "pillow") -> None:
        """
        Initialize the encoder, resampler and re-encoder.

        This must be called before any process_* method.

        Raises:
            ValueError: If an engine name is not registered or the
                        re-encoding configuration is invalid
        """
        Print("STARTING", f"Initializing Shrinkray v{self.config.get('version', '0.1.0')}")

        encoder_config = self.config.get('encoders', {}).get(encoder_name, {})
        self.encoder = get_encoder(encoder_name, encoder_config)
        Print("SUCCESS", f"Encoder: {self.encoder.name}")

        resampler_config = self.config.get('resamplers', {}).get(resampler_name, {})
        self.resampler = get_resampler(resampler_name, resampler_config)
        Print("SUCCESS", f"Resampler: {self.resampler.name}")

        self.reencoder = BoundedSizeReencoder(
            self.encoder,
            self.resampler,
            self.config.get('reencoding', {})
        )
        Print("SUCCESS", f"Re-encoder: {self.reencoder.name} (max dimension {self.reencoder.max_dimension}px)")

        # Images are decoded at full size before the dimension cap applies,
        # so Pillow's decompression bomb limit stays on unless configured.
        max_pixels = self.config.get('processing', {}).get('max_image_pixels')
        if max_pixels is not None:
            Image.MAX_IMAGE_PIXELS = max_pixels
            Print("DEBUG", f"Decode limit: {max_pixels:,} pixels")

        self._initialized = True
        Print("SUCCESS", "Pipeline initialized")

    def _budget_bytes(self, max_size_kb: Optional[int]) -> int:
        if max_size_kb is None:
            max_size_kb = self.config.get('processing', {}).get('default_max_size_kb', 500)
        return int(max_size_kb) * 1024

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("Pipeline not initialized. Call initialize() first.")

    def process_image(
        self,
        input_path: Path,
        output_path: Path,
        max_size_kb: Optional[int] = None
    ) -> dict:
        """
        Re-encode a single image file to fit the budget.

        Args:
            input_path: Path to the source image
            output_path: Path for the encoded output
            max_size_kb: Budget in kilobytes (default: from config)

        Returns:
            dict with processing statistics:
                - input_size, output_size, budget: Byte counts
                - within_budget: False only for a best-effort floor result
                - strategy, quality, width, height: How the output was made
                - encode_calls, resample_calls: Collaborator call counts
                - processing_time: Time in seconds

        Raises:
            RuntimeError: If pipeline not initialized or re-encoding fails
            FileNotFoundError: If input image doesn't exist
            ValueError: If the input is not a readable image
        """
        self._require_initialized()

        input_path = Path(input_path)
        output_path = Path(output_path)

        if not input_path.exists():
            raise FileNotFoundError(f"Input image not found: {input_path}")

        budget = self._budget_bytes(max_size_kb)
        start_time = datetime.now()
        input_size = input_path.stat().st_size

        Print("STATE", f"Processing: {input_path.name} ({format_bytes(input_size)}, budget {format_bytes(budget)})")

        try:
            with Image.open(input_path) as img:
                img.load()
                image = ImageOps.exif_transpose(img)
        except UnidentifiedImageError as e:
            raise ValueError(f"Not an image: {input_path}") from e
        except Image.DecompressionBombError as e:
            raise ValueError(f"Image too large to decode: {input_path} ({e})") from e
        except OSError as e:
            raise ValueError(f"Could not read image {input_path}: {e}") from e

        report = self.reencoder.reencode_with_report(image, budget)
        if report is None:
            raise RuntimeError(f"Could not re-encode {input_path.name}")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(report.data)

        processing_time = (datetime.now() - start_time).total_seconds()

        stats = {
            'input_size': input_size,
            'output_size': report.size,
            'budget': budget,
            'within_budget': report.within_budget,
            'strategy': report.strategy,
            'quality': report.quality,
            'width': report.width,
            'height': report.height,
            'encode_calls': report.encode_calls,
            'resample_calls': report.resample_calls,
            'processing_time': processing_time,
            'output_path': str(output_path)
        }

        if report.within_budget:
            Print("SUCCESS", f"{output_path.name}: {format_bytes(report.size)} via {report.strategy} "
                             f"({report.width}x{report.height}, q={report.quality:.2f})")
        else:
            Print("WARNING", f"{output_path.name}: {format_bytes(report.size)} exceeds budget (best effort)")

        return stats

    def _output_path_for(self, input_path: Path, output_dir: Path, claimed: set) -> Path:
        """
        Output path for input_path that no earlier file in this run has used.

        photo.png and photo.bmp would both become photo_shrunk.jpg, so a
        later clash keeps the source extension: photo-bmp_shrunk.jpg.

        Raises:
            ValueError: If both names are already taken
        """
        suffix = self.config.get('processing', {}).get('output_suffix', '')
        candidates = (
            f"{input_path.stem}{suffix}{self.encoder.extension}",
            f"{input_path.stem}-{input_path.suffix.lstrip('.').lower()}{suffix}{self.encoder.extension}",
        )
        for name in candidates:
            if name not in claimed:
                claimed.add(name)
                return output_dir / name
        raise ValueError(f"Output name for {input_path.name} collides with another input")

    def find_images(self, input_dir: Path) -> List[Path]:
        """Return naturally sorted list of image files in input_dir."""
        extensions = tuple(self.config.get('processing', {}).get('extensions', DEFAULT_EXTENSIONS))
        files = [f for f in Path(input_dir).iterdir() if f.is_file() and f.suffix.lower() in extensions]
        return natsorted(files, key=lambda p: p.name)

    def process_directory(
        self,
        input_dir: Path,
        output_dir: Path,
        max_size_kb: Optional[int] = None
    ) -> dict:
        """
        Re-encode every image in input_dir into output_dir.

        A file that cannot be processed is reported and skipped.

        Returns:
            dict with:
                - files: {filename: stats} for each processed file
                - failed: {filename: error message}
                - total_input_size, total_output_size: Byte counts
                - processing_time: Time in seconds
        """
        self._require_initialized()

        input_dir = Path(input_dir)
        output_dir = Path(output_dir)

        if not input_dir.is_dir():
            raise FileNotFoundError(f"Input directory not found: {input_dir}")

        images = self.find_images(input_dir)
        if not images:
            raise ValueError(f"No images found in {input_dir}")

        start_time = datetime.now()
        Print("STATE", f"Processing {len(images)} image{'s' if len(images) != 1 else ''}")

        files = {}
        failed = {}
        claimed = set()

        for index, image_path in enumerate(images, 1):
            Print("PROGRESS", f"Image {index}/{len(images)}: {image_path.name}")
            try:
                files[image_path.name] = self.process_image(
                    image_path,
                    self._output_path_for(image_path, output_dir, claimed),
                    max_size_kb=max_size_kb
                )
            except (RuntimeError, ValueError, OSError) as e:
                Print("FAILURE", f"{image_path.name}: {e}")
                failed[image_path.name] = str(e)

        total_input = sum(s['input_size'] for s in files.values())
        total_output = sum(s['output_size'] for s in files.values())
        processing_time = (datetime.now() - start_time).total_seconds()

        Print("COMPLETED", f"{len(files)} written, {len(failed)} failed")
        Print("INFO", f"Total: {format_bytes(total_input)} -> {format_bytes(total_output)}")
        Print("INFO", f"Time: {processing_time:.1f} seconds")
        Print("DEBUG", memory_usage())

        return {
            'files': files,
            'failed': failed,
            'total_input_size': total_input,
            'total_output_size': total_output,
            'processing_time': processing_time
        }


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description='Shrinkray: re-encode images to fit a byte budget',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  shrinkray photo.png photo.jpg
  shrinkray photo.png photo.jpg --max-kb 200
  shrinkray photos/ shrunk/ --max-kb 500
        """
    )

    parser.add_argument('input', type=Path, help='Input image file or directory')
    parser.add_argument('output', type=Path, help='Output file or directory')
    parser.add_argument('--max-kb', type=int, default=None, help='Budget in kilobytes (default: from config)')
    parser.add_argument('--encoder', default='jpeg', help='Encoder engine (default: jpeg)')
    parser.add_argument('--resampler', default='pillow', help='Resampler engine (default: pillow)')
    parser.add_argument('--config', type=Path, default=None, help='Path to config.json')

    args = parser.parse_args(argv)

    try:
        pipeline = ShrinkrayPipeline(config_path=args.config)
        pipeline.initialize(encoder_name=args.encoder, resampler_name=args.resampler)

        if args.input.is_dir():
            stats = pipeline.process_directory(args.input, args.output, max_size_kb=args.max_kb)
            return 2 if stats['failed'] else 0

        pipeline.process_image(args.input, args.output, max_size_kb=args.max_kb)
        return 0

    except FileNotFoundError as e:
        Print("FAILURE", str(e))
        return 1
    except (RuntimeError, ValueError, OSError) as e:
        Print("FAILURE", str(e))
        return 2
    except KeyboardInterrupt:
        Print("WARNING", "Interrupted by user")
        return 130
    except Exception as e:
        Print("FAILURE", f"Unexpected error: {e}")
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    import sys
    sys.exit(main())
