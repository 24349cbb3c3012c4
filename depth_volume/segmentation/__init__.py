"""
Segmentation Module

Implements outline proposals from depth discontinuities.
"""

from .depth_gradient_segmenter import DepthGradientSegmenter

__all__ = ['DepthGradientSegmenter']
