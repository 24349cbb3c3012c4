"""
Depth CSV Artifact Reader/Writer

Parses and produces the ``x,y,depth_meters`` artifact exchanged between
capture, cropping and reconstruction. Comment lines are carried verbatim so
calibration metadata survives any number of crop generations.
"""

import logging
import math
import os
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

import numpy as np

from ..data_models import CameraIntrinsics, DepthSampleStore
from ..exceptions import DepthArtifactIOError
from ..utils.config_manager import ConfigManager

PathLike = Union[str, Path]

INTRINSICS_PREFIX = "# Camera Intrinsics:"
DIMENSIONS_PREFIX = "# Reference Dimensions:"
HEADER_MARKER = "x,y,depth"


def _parse_key_values(line: str, prefix: str) -> dict:
    values = {}
    for part in line[len(prefix):].strip().split(","):
        key_value = part.strip().split("=")
        if len(key_value) != 2:
            continue
        try:
            values[key_value[0].strip()] = float(key_value[1])
        except ValueError:
            continue
    return values


def parse_camera_intrinsics(lines: Iterable[str]) -> Optional[CameraIntrinsics]:
    """
    Extract intrinsics from ``# Camera Intrinsics`` / ``# Reference Dimensions`` lines.

    Returns:
        CameraIntrinsics when all six values are present, otherwise None
    """
    values = {}
    for line in lines:
        if line.startswith(INTRINSICS_PREFIX):
            parsed = _parse_key_values(line, INTRINSICS_PREFIX)
            values.update({k: v for k, v in parsed.items() if k in ('fx', 'fy', 'cx', 'cy')})
        elif line.startswith(DIMENSIONS_PREFIX):
            parsed = _parse_key_values(line, DIMENSIONS_PREFIX)
            values.update({k: v for k, v in parsed.items() if k in ('width', 'height')})

    required = ('fx', 'fy', 'cx', 'cy', 'width', 'height')
    if not all(k in values for k in required):
        return None

    return CameraIntrinsics(fx=values['fx'], fy=values['fy'], cx=values['cx'], cy=values['cy'],
                            ref_width=values['width'], ref_height=values['height'])


def _parse_row(line: str) -> Optional[Tuple[float, float, float]]:
    components = line.split(",")
    if len(components) < 3:
        return None
    try:
        x, y, depth = (float(c) for c in components[:3])
    except ValueError:
        return None
    if not (math.isfinite(x) and math.isfinite(y)):
        return None
    if not math.isfinite(depth) or depth <= 0:
        return None
    return x, y, depth


class DepthCSVReader:
    """Lenient parser for depth CSV artifacts."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def parse(self, content: str) -> DepthSampleStore:
        """
        Parse artifact text into a sample store.

        Malformed rows, rows with fewer than three fields and rows whose depth
        is not a positive finite number are dropped silently.

        Args:
            content: Full CSV text

        Returns:
            DepthSampleStore with intrinsics (if present) and metadata lines
        """
        lines = content.splitlines()
        metadata: List[str] = []
        rows: List[Tuple[float, float, float]] = []
        dropped = 0

        for line in lines:
            if line.startswith("#"):
                metadata.append(line)
                continue
            if HEADER_MARKER in line or not line.strip():
                continue

            row = _parse_row(line)
            if row is None:
                dropped += 1
                continue
            rows.append(row)

        intrinsics = parse_camera_intrinsics(metadata)
        if intrinsics is None:
            self.logger.debug("No camera intrinsics found in CSV")

        self.logger.debug(f"Parsed {len(rows)} valid depth samples ({dropped} rows dropped)")

        samples = np.array(rows, dtype=np.float64).reshape(-1, 3)
        return DepthSampleStore(samples, intrinsics, tuple(metadata))

    def read(self, path: PathLike) -> DepthSampleStore:
        """
        Read and parse an artifact from disk.

        Raises:
            DepthArtifactIOError: If the file cannot be read or decoded
        """
        try:
            content = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise DepthArtifactIOError(path, str(e)) from e

        store = self.parse(content)
        self.logger.info(f"Loaded {len(store)} depth samples from {path}")
        return store


class DepthCSVWriter:
    """Serializes sample stores back into the CSV artifact format."""

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        """
        Initialize CSV writer.

        Args:
            config_manager: Configuration manager instance
        """
        self.config = config_manager or ConfigManager()
        self.logger = logging.getLogger(__name__)

        csv_config = self.config.get_csv_params()
        self.header = csv_config.get('header', 'x,y,depth_meters')
        self.depth_precision = int(csv_config.get('depth_precision', 6))

    def format(self, store: DepthSampleStore) -> str:
        """Render a store as artifact text (no trailing newline)."""
        lines = [self.header]
        lines.extend(store.metadata_lines)
        for x, y, depth in store.samples:
            lines.append(f"{float(x)!r},{float(y)!r},{depth:.{self.depth_precision}f}")
        return "\n".join(lines)

    def write(self, path: PathLike, store: DepthSampleStore) -> Path:
        """
        Write a store to disk, replacing any existing file atomically.

        An empty store still produces a file holding the header and metadata.

        Raises:
            DepthArtifactIOError: If the file cannot be written
        """
        path = Path(path)
        content = self.format(store)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(content)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise DepthArtifactIOError(path, str(e)) from e

        self.logger.info(f"Wrote {len(store)} depth samples to {path}")
        return path
