"""
Bounded-size image re-encoder.

Given an image and a byte budget, produce lossy-encoded bytes that fit the
budget while keeping as much fidelity as possible:

1. Cap the longest side at max_dimension (one resample, done once).
2. Fast path: encode at quality_max; return if it already fits.
3. Binary search over quality for a fixed number of iterations.
4. If no quality fits, shrink the image: one area-based estimate, then
   compounding progressive downscales, then a final encode at the
   minimum quality that is returned even if it is still too large.

Every encode and resample goes through the two collaborators passed in,
so the policy is independent of the image library. The amount of work per
call is bounded by the configured iteration counts.
"""

import math
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

from engines.compression.base import LossyEncoder
from engines.resampling.base import Resampler
from utilities import Print, format_bytes

# Reference policy
MAX_DIMENSION = 4096
QUALITY_MIN = 0.1
QUALITY_MAX = 0.95
SEARCH_ITERATIONS = 10
RESIZE_QUALITY = 0.7
RESIZE_STEP = 0.9
MAX_RESIZE_ATTEMPTS = 5
MIN_SCALE = 0.1
ESTIMATE_MARGIN = 0.9
FALLBACK_QUALITY = 0.1

STRATEGY_FAST_PATH = "fast_path"
STRATEGY_QUALITY_SEARCH = "quality_search"
STRATEGY_SINGLE_SHOT = "single_shot_resize"
STRATEGY_PROGRESSIVE = "progressive_resize"
STRATEGY_FLOOR = "floor"


@dataclass
class ReencodeReport:
    """Outcome of one successful re-encode."""
    data: bytes
    strategy: str
    quality: float
    width: int
    height: int
    encode_calls: int
    resample_calls: int
    within_budget: bool

    @property
    def size(self) -> int:
        return len(self.data)


class _CallCounter:
    """Counts collaborator calls for a single re-encode."""

    def __init__(self, encoder: LossyEncoder, resampler: Resampler):
        self._encoder = encoder
        self._resampler = resampler
        self.encodes = 0
        self.resamples = 0

    def encode(self, image: Any, quality: float) -> Optional[bytes]:
        self.encodes += 1
        data = self._encoder.encode(image, quality)
        return data or None

    def resample(self, image: Any, width: float, height: float) -> Optional[Any]:
        self.resamples += 1
        return self._resampler.resample(image, max(1, int(round(width))), max(1, int(round(height))))


class BoundedSizeReencoder:
    """
    Re-encodes images so the output never exceeds a byte budget.

    Attributes:
        encoder: LossyEncoder used for every encode
        resampler: Resampler used for every resize
        max_dimension: Longest side allowed before searching
        quality_min, quality_max: Bounds of the quality search
        search_iterations: Fixed number of binary-search steps
        resize_quality: Quality used while resizing
        resize_step: Per-attempt compounding scale factor
        max_resize_attempts: Cap on progressive resize attempts
        min_scale: Scales at or below this are not attempted
        estimate_margin: Safety margin applied to the area-based estimate
        fallback_quality: Quality of the best-effort floor result
    """

    def __init__(self, encoder: LossyEncoder, resampler: Resampler, config: Optional[dict] = None):
        config = config or {}
        self.encoder = encoder
        self.resampler = resampler
        self.max_dimension = config.get('max_dimension', MAX_DIMENSION)
        self.quality_min = config.get('quality_min', QUALITY_MIN)
        self.quality_max = config.get('quality_max', QUALITY_MAX)
        self.search_iterations = config.get('search_iterations', SEARCH_ITERATIONS)
        self.resize_quality = config.get('resize_quality', RESIZE_QUALITY)
        self.resize_step = config.get('resize_step', RESIZE_STEP)
        self.max_resize_attempts = config.get('max_resize_attempts', MAX_RESIZE_ATTEMPTS)
        self.min_scale = config.get('min_scale', MIN_SCALE)
        self.estimate_margin = config.get('estimate_margin', ESTIMATE_MARGIN)
        self.fallback_quality = config.get('fallback_quality', FALLBACK_QUALITY)

        if not 0.0 <= self.quality_min <= self.quality_max <= 1.0:
            raise ValueError(
                f"Invalid quality bounds: min={self.quality_min}, max={self.quality_max}"
            )
        if self.max_dimension < 1:
            raise ValueError(f"max_dimension must be positive, got {self.max_dimension}")

    @property
    def name(self) -> str:
        return "bounded-size"

    def reencode(self, image: Any, max_size_bytes: int) -> Optional[bytes]:
        """
        Re-encode image to at most max_size_bytes.

        Returns:
            Encoded bytes, or None if the budget is not positive or the
            encoder could not produce any output. The floor result may
            exceed the budget when no strategy can reach it.
        """
        report = self.reencode_with_report(image, max_size_bytes)
        return report.data if report is not None else None

    def reencode_kb(self, image: Any, max_size_kb: int) -> Optional[bytes]:
        """Same as reencode() with the budget given in kilobytes (1 KB = 1024 bytes)."""
        if max_size_kb <= 0:
            return None
        return self.reencode(image, max_size_kb * 1024)

    def reencode_with_report(self, image: Any, max_size_bytes: int) -> Optional[ReencodeReport]:
        """Run the re-encode and return the bytes along with how they were produced."""
        if max_size_bytes <= 0:
            Print("DEBUG", f"Rejected non-positive budget: {max_size_bytes}")
            return None
        if image.width <= 0 or image.height <= 0:
            Print("DEBUG", f"Rejected empty image: {image.width}x{image.height}")
            return None

        calls = _CallCounter(self.encoder, self.resampler)

        def report(data: bytes, strategy: str, quality: float, source: Any) -> ReencodeReport:
            result = ReencodeReport(
                data=data,
                strategy=strategy,
                quality=quality,
                width=source.width,
                height=source.height,
                encode_calls=calls.encodes,
                resample_calls=calls.resamples,
                within_budget=len(data) <= max_size_bytes
            )
            Print("DEBUG",
                f"{strategy}: {result.width}x{result.height} q={quality:.3f} "
                f"{format_bytes(result.size)} / {format_bytes(max_size_bytes)} "
                f"({calls.encodes} encodes, {calls.resamples} resamples)"
            )
            return result

        working = self._constrain_dimensions(image, calls)

        initial = calls.encode(working, self.quality_max)
        if initial is None:
            Print("WARNING", "Encoder produced no output for working image")
            return None
        if len(initial) <= max_size_bytes:
            return report(initial, STRATEGY_FAST_PATH, self.quality_max, working)

        best = self._search_quality(working, max_size_bytes, calls)
        if best is not None:
            data, quality = best
            return report(data, STRATEGY_QUALITY_SEARCH, quality, working)

        Print("DEBUG", "Quality search found no candidate, resizing")
        return self._reencode_by_resizing(working, max_size_bytes, calls, report)

    def _constrain_dimensions(self, image: Any, calls: _CallCounter) -> Any:
        """Scale image down so its longest side is max_dimension."""
        longest = max(image.width, image.height)
        if longest <= self.max_dimension:
            return image

        scale = self.max_dimension / longest
        resized = calls.resample(image, image.width * scale, image.height * scale)
        if resized is None:
            Print("WARNING", f"Could not cap {image.width}x{image.height}, using original dimensions")
            return image
        return resized

    def _search_quality(
        self,
        image: Any,
        max_size_bytes: int,
        calls: _CallCounter
    ) -> Optional[Tuple[bytes, float]]:
        """
        Binary search for the highest quality whose output fits.

        Returns:
            (bytes, quality) of the last accepted candidate, or None
        """
        lo, hi = self.quality_min, self.quality_max
        best = None

        for _ in range(self.search_iterations):
            mid = (lo + hi) / 2
            data = calls.encode(image, mid)
            if data is None:
                break

            if len(data) <= max_size_bytes:
                best = (data, mid)
                lo = mid
            else:
                hi = mid

        return best

    def _reencode_by_resizing(
        self,
        working: Any,
        max_size_bytes: int,
        calls: _CallCounter,
        report: Callable[..., ReencodeReport]
    ) -> Optional[ReencodeReport]:
        """Shrink the image until a moderate-quality encode fits."""
        sample = calls.encode(working, self.resize_quality)
        if sample is not None and len(sample) > max_size_bytes:
            # Encoded size scales roughly with pixel area
            scale = math.sqrt(max_size_bytes / len(sample)) * self.estimate_margin
            if self.min_scale < scale < 1.0:
                estimated = calls.resample(working, working.width * scale, working.height * scale)
                if estimated is not None:
                    data = calls.encode(estimated, self.resize_quality)
                    if data is not None and len(data) <= max_size_bytes:
                        return report(data, STRATEGY_SINGLE_SHOT, self.resize_quality, estimated)

        current = working
        scale_factor = self.resize_step
        attempts = 0

        while scale_factor > self.min_scale and attempts < self.max_resize_attempts:
            attempts += 1

            resized = calls.resample(current, current.width * scale_factor, current.height * scale_factor)
            if resized is None:
                break
            data = calls.encode(resized, self.resize_quality)
            if data is None:
                break

            if len(data) <= max_size_bytes:
                return report(data, STRATEGY_PROGRESSIVE, self.resize_quality, resized)

            current = resized
            scale_factor *= self.resize_step

        floor = calls.encode(current, self.fallback_quality)
        if floor is None:
            Print("WARNING", "Encoder produced no output for floor result")
            return None

        result = report(floor, STRATEGY_FLOOR, self.fallback_quality, current)
        if not result.within_budget:
            Print("WARNING",
                f"Budget unreachable: best effort {format_bytes(result.size)} "
                f"exceeds {format_bytes(max_size_bytes)}"
            )
        return result
