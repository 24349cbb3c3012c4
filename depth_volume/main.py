"""
Main entry point for the depth volume estimation pipeline
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np

from depth_volume.cropping.mask_cropper import MaskImage
from depth_volume.exceptions import DepthArtifactIOError, MissingCalibrationError
from depth_volume.pipeline import PipelineRequest, VolumePipeline
from depth_volume.segmentation.depth_gradient_segmenter import DepthGradientSegmenter
from depth_volume.storage.depth_csv import DepthCSVReader, DepthCSVWriter
from depth_volume.utils.config_manager import ConfigManager
from depth_volume.visualization.depth_renderer import DepthVisualizer
from depth_volume.visualization.report import save_volume_report

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_MISSING_CALIBRATION = 2


def load_outline(path: str) -> np.ndarray:
    """
    Read display-space outline vertices from a CSV of ``x,y`` rows.

    Header, comment and malformed lines are skipped.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            lines = f.read().splitlines()
    except OSError as e:
        raise DepthArtifactIOError(path, str(e)) from e

    vertices: List[Tuple[float, float]] = []
    for line in lines:
        fields = line.strip().split(',')
        if len(fields) < 2 or line.startswith('#'):
            continue
        try:
            vertices.append((float(fields[0]), float(fields[1])))
        except ValueError:
            continue
    return np.array(vertices, dtype=np.float64).reshape(-1, 2)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Estimate object volume from depth-camera samples"
    )

    parser.add_argument("--csv", type=str, required=True,
                        help="Depth CSV artifact (x,y,depth_meters with intrinsics comments)")
    parser.add_argument("--config", type=str, help="Path to configuration file")

    region = parser.add_mutually_exclusive_group()
    region.add_argument("--outline", type=str,
                        help="CSV of display-space x,y outline vertices")
    region.add_argument("--mask", type=str, help="Segmentation mask image (display space)")
    region.add_argument("--auto-segment", action="store_true",
                        help="Propose the outline from depth gradients")

    parser.add_argument("--refine-mask", type=str,
                        help="Second mask restricting the solid to the columns it covers")
    parser.add_argument("--mode", choices=["accuracy", "latency"],
                        help="Voxel budget preset (default from config)")
    parser.add_argument("--sample-width", type=float, help="Override the sample grid width used to rescale intrinsics")
    parser.add_argument("--sample-height", type=float, help="Override the sample grid height used to rescale intrinsics")

    parser.add_argument("--cropped-csv", type=str, help="Write the cropped samples as CSV")
    parser.add_argument("--mesh", type=str, help="Write the voxel mesh (.ply, .obj, .stl)")
    parser.add_argument("--point-cloud", type=str, help="Write the point cloud (.ply, .pcd)")
    parser.add_argument("--depth-image", type=str, help="Write the colorized depth image")
    parser.add_argument("--report", type=str, help="Write a summary figure")
    parser.add_argument("--summary-json", type=str, help="Write the volume summary as JSON")

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def _sample_resolution(args) -> Optional[Tuple[float, float]]:
    if args.sample_width is None and args.sample_height is None:
        return None
    if args.sample_width is None or args.sample_height is None:
        raise ValueError("--sample-width and --sample-height must be given together")
    return args.sample_width, args.sample_height


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the depth volume pipeline."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger = logging.getLogger("depth_volume.main")

    # Load configuration
    try:
        config = ConfigManager(args.config)
        logger.info(f"Loaded configuration from: {config.config_path}")
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading configuration: {e}")
        return EXIT_ERROR

    try:
        store = DepthCSVReader().read(args.csv)

        outline = load_outline(args.outline) if args.outline else None
        if args.auto_segment:
            segmentation = DepthGradientSegmenter(config).segment(store)
            if not segmentation.found:
                print("Depth-gradient segmentation found no outline")
                return EXIT_ERROR
            outline = segmentation.outline

        request = PipelineRequest(
            store=store,
            outline=outline,
            mask=MaskImage.from_file(args.mask) if args.mask else None,
            refinement_mask=MaskImage.from_file(args.refine_mask) if args.refine_mask else None,
            sample_resolution=_sample_resolution(args),
            mode=args.mode,
        )

        pipeline = VolumePipeline(config)
        result = pipeline.run(request)
        exporter = pipeline.mesh_exporter

        if args.cropped_csv:
            DepthCSVWriter(config).write(args.cropped_csv, result.cropped_store)
        if args.mesh:
            exporter.export_mesh(result.voxel_grid, args.mesh, mesh=result.mesh)
        if args.point_cloud:
            exporter.export_point_cloud(result.point_cloud, args.point_cloud)

        visualizer = DepthVisualizer(config)
        if args.depth_image:
            visualizer.save(store, args.depth_image)
        if args.report:
            save_volume_report(result, args.report, visualizer.render(store))

        summary = exporter.summarize(result.voxel_grid, result.mesh)
        if args.summary_json:
            exporter.export_summary(summary, args.summary_json)

    except MissingCalibrationError as e:
        print(f"Error: {e}")
        return EXIT_MISSING_CALIBRATION
    except (DepthArtifactIOError, ValueError) as e:
        print(f"Error: {e}")
        return EXIT_ERROR

    print("Depth Volume Estimation")
    print("=" * 50)
    print(f"Input: {Path(args.csv).name} ({len(store)} samples, {len(result.cropped_store)} selected)")
    print(f"Voxels: {summary.voxel_count} of size {summary.voxel_size * 1000:.3f} mm")
    print(f"Volume: {summary.volume_cubic_cm:.2f} cm^3 ({summary.volume_liters:.4f} L)")
    if result.refinement_volume is not None:
        print(f"Refinement mask volume: {result.refinement_volume.total_volume_cm3:.2f} cm^3")

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
