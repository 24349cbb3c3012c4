"""
Cropping Module

Implements outline and mask cropping of depth samples in display space.
"""

from .display_transform import DisplayTransform
from .polygon_cropper import PolygonCropper
from .mask_cropper import MaskCropper, MaskImage, composite_masks, fold_masks

__all__ = ['DisplayTransform', 'PolygonCropper', 'MaskCropper', 'MaskImage', 'composite_masks', 'fold_masks']
