"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Config and project-file validation (validators)
    - Color math (color)
    - Point-in-shape tests (geometry)
    - Atomic I/O and image loading (fs)
    - Unified logging (logging_config)

No module in utils/ may import from upper layers (core, session, server, cli).

Convenience imports:
    from pointmapper.utils import fs, color, validators
    from pointmapper.utils.logging_config import setup_logging, get_logger
"""

from . import color
from . import fs
from . import geometry
from . import logging_config
from . import validators

from .logging_config import get_logger, push_context, setup_logging

__all__ = [
    # Modules
    'color',
    'fs',
    'geometry',
    'logging_config',
    'validators',
    # Direct exports
    'setup_logging',
    'get_logger',
    'push_context',
]
