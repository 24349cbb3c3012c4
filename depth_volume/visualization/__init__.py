"""
Visualization Module

Renders depth samples as colorized display-space images and writes
summary figures.
"""

from .depth_renderer import DepthVisualizer, rasterize_depth
from .report import save_volume_report

__all__ = ['DepthVisualizer', 'rasterize_depth', 'save_volume_report']
