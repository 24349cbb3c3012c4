"""
Volume Module

Implements budgeted voxelization, volume estimation and mesh export.
"""

from .voxelizer import Voxelizer
from .mesh_exporter import MeshExporter, PRIMARY_COLOR, REFINEMENT_COLOR

__all__ = ['Voxelizer', 'MeshExporter', 'PRIMARY_COLOR', 'REFINEMENT_COLOR']
