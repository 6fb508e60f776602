"""Point Mapper: image-to-world calibration and point annotation.

Calibrates an image's pixel space against a real-world coordinate system
from three reference points, then populates, selects and labels
recognition points (manually or by color/region sampling) and exports the
labeled set as JSON, XML, CSV or an HTML spreadsheet table.

Architecture layers (strict one-way dependency):
    cli, server → session → core/{calibration,points,palette,region,selection,export} → utils/
    imaging → utils/

Key invariants:
    - Pixel coordinates are in natural image pixels (top-left origin, +Y down)
    - Pixel buffers are read-only uint8 (H, W, 3) RGB arrays
    - Calibration is a state, not an exception: invalid calibration gates tools
    - Scan and flood-fill are bounded by hard iteration/point caps
    - YAML-only configs
"""

__version__ = "1.2.0"
