"""YAML schema validation for settings and project files.

Provides centralized validation using pydantic:
    - Settings schema (pointmapper.v1): calibration epsilon, palette,
      grid-scan, region-grow, export, upload and logging sections
    - Project schema (pointmapper_project.v1): image path plus location
      and recognition points, as read and written by the CLI

Every section is fully defaulted, so ``SettingsV1()`` is the built-in
configuration and an empty YAML file is valid.

Usage:
    from pointmapper.utils import validators

    settings = validators.load_settings("configs/pointmapper_v1.yaml")
    project = validators.load_project("session.yaml")
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


DENSITY_MIN = 1
DENSITY_MAX = 10


# ============================================================================
# SETTINGS SCHEMA V1
# ============================================================================

class CalibrationSettings(BaseModel):
    """Affine solver settings."""
    epsilon: float = Field(1e-10, gt=0.0, description="Minimum |det| for non-collinear references")


class PaletteSettings(BaseModel):
    """Palette extraction and color-picking settings."""
    max_colors: int = Field(10, ge=1, le=64, description="Palette size cap")
    sample_stride: int = Field(4, ge=1, description="Grid step (px) for sampling")
    distinct_threshold: float = Field(40.0, ge=0.0, description="Min RGB distance between palette colors")
    brightness_threshold: Optional[float] = Field(
        None, ge=0.0, le=255.0,
        description="Drop colors brighter than this (perceived brightness); None disables"
    )
    merge_threshold: float = Field(12.0, ge=0.0, description="Dedup distance when merging picks into the palette")
    pick_dedup: float = Field(8.0, ge=0.0, description="Picks closer than this to an existing pick are ignored")


class GridScanSettings(BaseModel):
    """Exhaustive grid-scan color matching."""
    tolerance: float = Field(40.0, ge=0.0, description="Max RGB distance to any target color")
    max_points: int = Field(4000, ge=1, description="Hard cap on emitted points")
    default_density: int = Field(5, ge=DENSITY_MIN, le=DENSITY_MAX)


class RegionGrowSettings(BaseModel):
    """Flood-fill region growth."""
    tolerance: float = Field(10.0, ge=0.0, description="Max RGB distance to the target color")
    max_scan: int = Field(200_000, ge=1, description="Hard cap on visited pixels")
    max_points: int = Field(4000, ge=1, description="Hard cap on emitted points")


class ExportSettings(BaseModel):
    """Coordinate formatting for exports."""
    precision: int = Field(2, ge=0, le=10, description="Decimal places")
    round: bool = Field(True, description="Round (True) or truncate toward zero (False)")
    unlabeled_name: str = Field("Unlabeled", min_length=1)


class UploadSettings(BaseModel):
    """Upload collaborator settings."""
    upload_dir: str = Field("uploads", description="Directory receiving uploaded images")
    url_prefix: str = Field("/uploads", description="URL path prefix of stored files")
    allowed_mime_types: List[str] = Field(
        default_factory=lambda: ["image/png", "image/jpeg", "image/jpg"]
    )
    max_content_length: int = Field(16 * 1024 * 1024, ge=1, description="Bytes")

    @field_validator('url_prefix')
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        if not v.startswith('/') or v.endswith('/'):
            raise ValueError(f"url_prefix must start with '/' and not end with '/', got {v!r}")
        return v


class LoggingSettings(BaseModel):
    """Arguments forwarded to logging_config.setup_logging."""
    log_level: str = Field("INFO")
    log_file: Optional[str] = None
    json_format: bool = Field(False, alias="json")
    color: bool = True

    model_config = ConfigDict(populate_by_name=True)

    @field_validator('log_level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return v


class SettingsV1(BaseModel):
    """Top-level settings file (pointmapper.v1)."""
    schema_version: str = Field("pointmapper.v1", alias="schema")
    calibration: CalibrationSettings = Field(default_factory=CalibrationSettings)
    palette: PaletteSettings = Field(default_factory=PaletteSettings)
    grid_scan: GridScanSettings = Field(default_factory=GridScanSettings)
    region_grow: RegionGrowSettings = Field(default_factory=RegionGrowSettings)
    export: ExportSettings = Field(default_factory=ExportSettings)
    upload: UploadSettings = Field(default_factory=UploadSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "pointmapper.v1":
            raise ValueError(f"Expected schema 'pointmapper.v1', got '{v}'")
        return v


# ============================================================================
# PROJECT SCHEMA V1
# ============================================================================

class LocationPointEntry(BaseModel):
    """Calibration reference in a project file."""
    pixel_x: float = Field(..., allow_inf_nan=False)
    pixel_y: float = Field(..., allow_inf_nan=False)
    real_x: float = Field(0.0, allow_inf_nan=False)
    real_y: float = Field(0.0, allow_inf_nan=False)


class RecognitionPointEntry(BaseModel):
    """Recognition point in a project file; real coordinates are derived."""
    pixel_x: float = Field(..., allow_inf_nan=False)
    pixel_y: float = Field(..., allow_inf_nan=False)
    label: str = ""


class ProjectV1(BaseModel):
    """Annotation project (pointmapper_project.v1)."""
    schema_version: str = Field("pointmapper_project.v1", alias="schema")
    image: str = Field(..., min_length=1, description="Path to the image, relative to the project file")
    location_points: List[LocationPointEntry] = Field(default_factory=list)
    recognition_points: List[RecognitionPointEntry] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "pointmapper_project.v1":
            raise ValueError(f"Expected schema 'pointmapper_project.v1', got '{v}'")
        return v

    @model_validator(mode='after')
    def validate_pixels_non_negative(self) -> 'ProjectV1':
        for kind, entries in (("location", self.location_points),
                              ("recognition", self.recognition_points)):
            for i, p in enumerate(entries):
                if p.pixel_x < 0 or p.pixel_y < 0:
                    raise ValueError(
                        f"{kind}_points[{i}] has negative pixel coordinates "
                        f"({p.pixel_x}, {p.pixel_y})"
                    )
        return self

    def image_path(self, project_path: Union[str, Path]) -> Path:
        """Resolve ``image`` relative to the project file's directory."""
        image = Path(self.image)
        if image.is_absolute():
            return image
        return Path(project_path).parent / image


# ============================================================================
# PUBLIC API
# ============================================================================

def validate_density(density: int) -> int:
    """Check a user density value.

    Raises
    ------
    ValueError
        If ``density`` is not an int in [1, 10].
    """
    if isinstance(density, bool) or not isinstance(density, int):
        raise ValueError(f"Density must be an integer, got {density!r}")
    if not DENSITY_MIN <= density <= DENSITY_MAX:
        raise ValueError(f"Density must be in [{DENSITY_MIN}, {DENSITY_MAX}], got {density}")
    return density


def load_settings(path: Optional[Union[str, Path]] = None) -> SettingsV1:
    """Load and validate settings from YAML.

    Parameters
    ----------
    path : Union[str, Path], optional
        Path to a pointmapper.v1 YAML file; None returns built-in defaults

    Returns
    -------
    SettingsV1
        Validated settings

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If validation fails (message names the file and offending field)
    """
    if path is None:
        return SettingsV1()

    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    data = fs.load_yaml(path)
    try:
        return SettingsV1(**data)
    except Exception as e:
        raise ValueError(f"Settings validation failed at {path}: {e}") from e


def load_project(path: Union[str, Path]) -> ProjectV1:
    """Load and validate an annotation project from YAML.

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If validation fails
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Project file not found: {path}")

    data = fs.load_yaml(path)
    try:
        return ProjectV1(**data)
    except Exception as e:
        raise ValueError(f"Project validation failed at {path}: {e}") from e


def project_to_dict(project: ProjectV1) -> Dict[str, Any]:
    """Serialize a project for YAML output (uses the ``schema`` alias)."""
    return project.model_dump(by_alias=True)
