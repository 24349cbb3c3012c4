"""
Depth Artifact Storage Module

Reads and writes the depth CSV artifact.
"""

from .depth_csv import DepthCSVReader, DepthCSVWriter, parse_camera_intrinsics

__all__ = ['DepthCSVReader', 'DepthCSVWriter', 'parse_camera_intrinsics']
