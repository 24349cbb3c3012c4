"""
3D Reconstruction Module

Implements pinhole back-projection of depth samples into point clouds.
"""

from .back_projector import BackProjector, bounding_box, center_point_clouds

__all__ = ['BackProjector', 'bounding_box', 'center_point_clouds']
