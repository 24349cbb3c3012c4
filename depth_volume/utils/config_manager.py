"""
Configuration Management System

Handles loading, validation, and management of system parameters.
"""

import yaml
from typing import Dict, Any, Optional
from pathlib import Path


FLAT_CLOUD_POLICIES = ('single_layer', 'empty')
QUALITY_MODES = ('accuracy', 'latency')


class ConfigManager:
    """Manages configuration parameters for the depth volume pipeline."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to configuration file. If None, uses default config.
        """
        self.config_path = config_path or self._get_default_config_path()
        self.config = self._load_config()
        self._validate_config()

    def _get_default_config_path(self) -> str:
        """Get path to default configuration file."""
        package_dir = Path(__file__).parent.parent
        return str(package_dir / "config" / "default_config.yaml")

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        try:
            with open(self.config_path, 'r') as file:
                config = yaml.safe_load(file)
            return config or {}
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Error parsing configuration file: {e}")

    def _validate_config(self) -> None:
        """Validate configuration parameters for consistency and feasibility."""
        # Validate CSV formatting
        csv_config = self.config.get('csv', {})
        if int(csv_config.get('depth_precision', 6)) < 0:
            raise ValueError("csv depth_precision must be non-negative")

        # Validate cropping parameters
        crop = self.config.get('cropping', {})
        if float(crop.get('simplify_epsilon', 1.0)) < 0:
            raise ValueError("simplify_epsilon must be non-negative")
        threshold = int(crop.get('mask_threshold', 128))
        if not 0 <= threshold <= 255:
            raise ValueError("mask_threshold must be within 0-255")

        # Validate sample resolution
        bp = self.config.get('back_projection', {})
        for key in ('sample_width', 'sample_height'):
            if bp.get(key) is not None and float(bp[key]) <= 0:
                raise ValueError("Sample resolution must be positive")

        # Validate voxel budgets
        vox = self.config.get('voxelizer', {})
        if int(vox.get('voxel_budget', 1_000_000)) < 1 or int(vox.get('fast_voxel_budget', 50_000)) < 1:
            raise ValueError("Voxel budgets must be at least 1")
        if float(vox.get('growth_factor', 1.01)) <= 1.0:
            raise ValueError("growth_factor must be greater than 1.0")
        if int(vox.get('column_tolerance', 1)) < 0:
            raise ValueError("column_tolerance must be non-negative")
        if vox.get('flat_cloud_policy', 'single_layer') not in FLAT_CLOUD_POLICIES:
            raise ValueError(f"flat_cloud_policy must be one of {FLAT_CLOUD_POLICIES}")

        # Validate segmentation parameters
        seg = self.config.get('segmentation', {})
        if int(seg.get('blur_kernel_size', 5)) % 2 == 0:
            raise ValueError("blur_kernel_size must be odd")
        percentile = float(seg.get('gradient_percentile', 85))
        if not 0 <= percentile < 100:
            raise ValueError("gradient_percentile must be within [0, 100)")
        if float(seg.get('min_aspect_ratio', 0.2)) >= float(seg.get('max_aspect_ratio', 5.0)):
            raise ValueError("min_aspect_ratio must be less than max_aspect_ratio")

        # Validate pipeline mode
        mode = self.config.get('pipeline', {}).get('quality_mode', 'accuracy')
        if mode not in QUALITY_MODES:
            raise ValueError(f"quality_mode must be one of {QUALITY_MODES}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'voxelizer.voxel_budget')
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'voxelizer.voxel_budget')
            value: Value to set
        """
        keys = key.split('.')
        config_ref = self.config

        for k in keys[:-1]:
            if k not in config_ref:
                config_ref[k] = {}
            config_ref = config_ref[k]

        config_ref[keys[-1]] = value
        self._validate_config()

    def save(self, output_path: Optional[str] = None) -> None:
        """
        Save current configuration to file.

        Args:
            output_path: Path to save configuration. If None, overwrites current file.
        """
        save_path = output_path or self.config_path

        with open(save_path, 'w') as file:
            yaml.dump(self.config, file, default_flow_style=False, indent=2)

    def get_csv_params(self) -> Dict[str, Any]:
        """Get CSV artifact parameters as a dictionary."""
        return self.config.get('csv', {})

    def get_cropping_params(self) -> Dict[str, Any]:
        """Get cropping parameters as a dictionary."""
        return self.config.get('cropping', {})

    def get_back_projection_params(self) -> Dict[str, Any]:
        """Get back-projection parameters as a dictionary."""
        return self.config.get('back_projection', {})

    def get_voxelizer_params(self) -> Dict[str, Any]:
        """Get voxelizer parameters as a dictionary."""
        return self.config.get('voxelizer', {})

    def get_segmentation_params(self) -> Dict[str, Any]:
        """Get depth-gradient segmentation parameters as a dictionary."""
        return self.config.get('segmentation', {})

    def get_visualization_params(self) -> Dict[str, Any]:
        """Get depth visualization parameters as a dictionary."""
        return self.config.get('visualization', {})

    def get_pipeline_params(self) -> Dict[str, Any]:
        """Get pipeline parameters as a dictionary."""
        return self.config.get('pipeline', {})

    def voxel_budget_for_mode(self, mode: Optional[str] = None) -> int:
        """
        Resolve the voxel budget for a quality mode.

        Args:
            mode: 'accuracy' or 'latency'. If None, uses pipeline.quality_mode.
        """
        mode = mode or self.get('pipeline.quality_mode', 'accuracy')
        if mode not in QUALITY_MODES:
            raise ValueError(f"Unknown quality mode: {mode}")
        key = 'voxelizer.voxel_budget' if mode == 'accuracy' else 'voxelizer.fast_voxel_budget'
        return int(self.get(key, 1_000_000 if mode == 'accuracy' else 50_000))
