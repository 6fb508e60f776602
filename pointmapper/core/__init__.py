"""Domain core: calibration, point model, color sampling, selection, export.

Modules depend only on pointmapper.utils and on each other in this order:
    calibration → points → selection
    palette, region (pixel arrays only)
    export (reads recognition points)

Convenience imports:
    from pointmapper.core import AffineCalibrator, PointStore, Exporter
"""

from .calibration import AffineCalibrator, AffineMatrix, find_reference_points
from .export import CoordinateFormat, Exporter, ExportFormat
from .palette import PaletteExtractor, PickedColors, unify_colors
from .points import LocationPoint, PointStore, RecognitionPoint
from .region import RegionResult, RegionSelector
from .selection import GeometricSelector

__all__ = [
    'AffineCalibrator',
    'AffineMatrix',
    'find_reference_points',
    'CoordinateFormat',
    'Exporter',
    'ExportFormat',
    'PaletteExtractor',
    'PickedColors',
    'unify_colors',
    'LocationPoint',
    'PointStore',
    'RecognitionPoint',
    'RegionResult',
    'RegionSelector',
    'GeometricSelector',
]
