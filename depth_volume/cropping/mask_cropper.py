"""
Segmentation Mask Cropper

Selects depth samples covered by a rasterized binary mask shown over the
display-space depth image, and composites masks from successive taps.
"""

import logging
from dataclasses import dataclass
from functools import reduce
from pathlib import Path
from typing import Iterable, Optional, Union

import cv2
import numpy as np

from ..data_models import CropResult, DepthSampleStore, DisplayRect
from ..exceptions import DepthArtifactIOError
from ..storage.depth_csv import DepthCSVWriter
from ..utils.config_manager import ConfigManager
from .display_transform import DisplayTransform

DEFAULT_MASK_THRESHOLD = 128


@dataclass(eq=False)
class MaskImage:
    """RGBA mask bitmap; the red channel carries the painted value."""
    pixels: np.ndarray  # HxWx4 uint8, RGBA

    @classmethod
    def from_array(cls, array: np.ndarray) -> "MaskImage":
        """
        Wrap a gray, RGB or RGBA array (bool arrays map to 0/255).

        Args:
            array: HxW, HxWx3 (RGB) or HxWx4 (RGBA) array
        """
        array = np.asarray(array)
        if array.dtype == bool:
            array = array.astype(np.uint8) * 255
        elif array.dtype != np.uint8:
            array = np.clip(array, 0, 255).astype(np.uint8)

        if array.ndim == 2:
            alpha = np.full(array.shape, 255, dtype=np.uint8)
            pixels = np.dstack([array, array, array, alpha])
        elif array.ndim == 3 and array.shape[2] == 3:
            alpha = np.full(array.shape[:2], 255, dtype=np.uint8)
            pixels = np.dstack([array, alpha])
        elif array.ndim == 3 and array.shape[2] == 4:
            pixels = array.copy()
        else:
            raise ValueError(f"Unsupported mask array shape: {array.shape}")

        return cls(pixels=np.ascontiguousarray(pixels))

    @classmethod
    def from_painted(cls, painted: np.ndarray) -> "MaskImage":
        """Opaque white where painted, transparent black elsewhere."""
        painted = np.asarray(painted, dtype=bool)
        pixels = np.zeros((*painted.shape, 4), dtype=np.uint8)
        pixels[painted] = 255
        return cls(pixels=pixels)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "MaskImage":
        """
        Load a mask image with OpenCV.

        Raises:
            DepthArtifactIOError: If the image cannot be read
        """
        image = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if image is None:
            raise DepthArtifactIOError(path, "could not read mask image")

        if image.ndim == 3 and image.shape[2] == 4:
            image = cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
        elif image.ndim == 3 and image.shape[2] == 3:
            image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        if image.dtype == np.uint16:
            image = (image >> 8).astype(np.uint8)

        return cls.from_array(image)

    def save(self, path: Union[str, Path]) -> None:
        """Write the mask as an image file (format from the suffix)."""
        try:
            written = cv2.imwrite(str(path), cv2.cvtColor(self.pixels, cv2.COLOR_RGBA2BGRA))
        except cv2.error as e:
            raise DepthArtifactIOError(path, f"could not write mask image: {e}") from e
        if not written:
            raise DepthArtifactIOError(path, "could not write mask image")

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def red(self) -> np.ndarray:
        return self.pixels[:, :, 0]

    @property
    def alpha(self) -> np.ndarray:
        return self.pixels[:, :, 3]

    def painted(self, threshold: int = DEFAULT_MASK_THRESHOLD) -> np.ndarray:
        """Boolean coverage: non-transparent and red above threshold."""
        return (self.alpha > 0) & (self.red > threshold)

    def resized(self, width: int, height: int) -> "MaskImage":
        """Nearest-neighbour resize (keeps the mask binary)."""
        if (width, height) == (self.width, self.height):
            return self
        return MaskImage(cv2.resize(self.pixels, (width, height), interpolation=cv2.INTER_NEAREST))


def composite_masks(existing: Optional[MaskImage],
                    new: MaskImage,
                    threshold: int = DEFAULT_MASK_THRESHOLD) -> MaskImage:
    """
    Union of two masks' painted regions.

    The result has the larger of the two resolutions on each axis; the
    smaller mask is scaled up with nearest-neighbour sampling.
    """
    if existing is None:
        return new

    width = max(existing.width, new.width)
    height = max(existing.height, new.height)

    painted = (existing.resized(width, height).painted(threshold) |
               new.resized(width, height).painted(threshold))
    return MaskImage.from_painted(painted)


def fold_masks(masks: Iterable[MaskImage], threshold: int = DEFAULT_MASK_THRESHOLD) -> Optional[MaskImage]:
    """Accumulate a sequence of tap masks into one mask (None for no masks)."""
    return reduce(lambda acc, mask: composite_masks(acc, mask, threshold), masks, None)


class MaskCropper:
    """Crops sample stores with a segmentation mask displayed over the depth image."""

    def __init__(self, config_manager: Optional[ConfigManager] = None,
                 writer: Optional[DepthCSVWriter] = None):
        """
        Initialize mask cropper.

        Args:
            config_manager: Configuration manager instance
            writer: CSV writer used by :meth:`crop_to_file`
        """
        self.config = config_manager or ConfigManager()
        self.logger = logging.getLogger(__name__)
        self.writer = writer or DepthCSVWriter(self.config)

        crop_config = self.config.get_cropping_params()
        self.threshold = int(crop_config.get('mask_threshold', DEFAULT_MASK_THRESHOLD))

        self.logger.info(f"Mask cropper initialized: threshold={self.threshold}")

    def sample_mask(self,
                    mask: MaskImage,
                    display_points: np.ndarray,
                    display_rect: DisplayRect) -> np.ndarray:
        """
        Look up mask coverage for display-space points.

        Args:
            mask: Mask bitmap
            display_points: Nx2 display coordinates
            display_rect: Where the mask is shown in display coordinates

        Returns:
            Boolean array, True where the red channel exceeds the threshold
        """
        included = np.zeros(display_points.shape[0], dtype=bool)
        if display_points.shape[0] == 0 or display_rect.width <= 0 or display_rect.height <= 0:
            return included

        mask_x = np.floor((display_points[:, 0] - display_rect.x) / display_rect.width * mask.width).astype(np.int64)
        mask_y = np.floor((display_points[:, 1] - display_rect.y) / display_rect.height * mask.height).astype(np.int64)

        in_bounds = (mask_x >= 0) & (mask_x < mask.width) & (mask_y >= 0) & (mask_y < mask.height)
        included[in_bounds] = mask.red[mask_y[in_bounds], mask_x[in_bounds]] > self.threshold
        return included

    def crop(self,
             store: DepthSampleStore,
             mask: MaskImage,
             display_rect: Optional[DisplayRect] = None,
             transform: Optional[DisplayTransform] = None) -> CropResult:
        """
        Keep samples whose display coordinate falls on a painted mask pixel.

        Args:
            store: Samples to crop
            mask: Mask bitmap
            display_rect: Mask placement in display coordinates. Defaults to
                covering the whole display image.
            transform: Sensor/display transform of the full sample set

        Returns:
            CropResult wrapping a new store
        """
        transform = transform or DisplayTransform.from_store(store)
        if display_rect is None:
            display_width, display_height = transform.display_size
            display_rect = DisplayRect(0.0, 0.0, float(display_width), float(display_height))

        display = transform.store_to_display(store)
        selected = self.sample_mask(mask, display, display_rect)

        cropped = store.subset(selected).with_metadata(
            f"# Cropped with segmentation mask ({mask.width}x{mask.height})")
        accepted = int(selected.sum())

        self.logger.info(f"Cropped {accepted} of {len(store)} samples with segmentation mask")
        if accepted == 0:
            self.logger.warning("Mask crop selected no samples")

        return CropResult(store=cropped, accepted_count=accepted, total_count=len(store), method="mask")

    def crop_to_file(self,
                     store: DepthSampleStore,
                     mask: MaskImage,
                     output_path: Union[str, Path],
                     display_rect: Optional[DisplayRect] = None,
                     transform: Optional[DisplayTransform] = None) -> CropResult:
        """Crop and persist the accepted subset as a CSV artifact."""
        result = self.crop(store, mask, display_rect, transform)
        self.writer.write(output_path, result.store)
        return result
