"""
Volume Report Figure

Saves a three-panel matplotlib summary of one pipeline run: the colorized
depth image, a top view of the point cloud and the depth distribution.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import cv2
import matplotlib.pyplot as plt
import numpy as np

from ..data_models import PipelineResult
from ..exceptions import DepthArtifactIOError

logger = logging.getLogger(__name__)


def save_volume_report(result: PipelineResult,
                       path: Union[str, Path],
                       depth_image: Optional[np.ndarray] = None) -> None:
    """
    Write a summary figure for a pipeline result.

    Args:
        result: Pipeline output
        path: Image path (format from the suffix)
        depth_image: Optional BGR depth visualization to show in the first panel

    Raises:
        DepthArtifactIOError: If the figure cannot be written
    """
    points = result.point_cloud
    fig, (ax1, ax2, ax3) = plt.subplots(1, 3, figsize=(15, 5))

    if depth_image is not None and depth_image.size > 0:
        ax1.imshow(cv2.cvtColor(depth_image, cv2.COLOR_BGR2RGB))
    ax1.set_title('Depth (display space)')
    ax1.axis('off')

    if points.shape[0] > 0:
        scatter = ax2.scatter(points[:, 0], points[:, 1], c=points[:, 2], cmap='viridis', s=1, alpha=0.6)
        plt.colorbar(scatter, ax=ax2, label='Z (meters)')
    ax2.set_xlabel('X (meters)')
    ax2.set_ylabel('Y (meters)')
    ax2.set_title('Top View (X-Y plane)')
    ax2.grid(True, alpha=0.3)

    if points.shape[0] > 0:
        ax3.hist(points[:, 2], bins=50, alpha=0.7, color='skyblue', edgecolor='black')
    ax3.set_xlabel('Depth Z (meters)')
    ax3.set_ylabel('Number of Points')
    ax3.set_title(f"Volume {result.volume.total_volume_cm3:.1f} cm³ ({result.volume.voxel_count} voxels)")
    ax3.grid(True, alpha=0.3)

    plt.tight_layout()
    try:
        fig.savefig(str(path), dpi=150, bbox_inches='tight')
    except (OSError, ValueError) as e:
        raise DepthArtifactIOError(path, f"could not write volume report: {e}") from e
    finally:
        plt.close(fig)
    logger.info(f"Saved volume report to {path}")
