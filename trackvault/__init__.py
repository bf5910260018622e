"""Trackvault - Core application modules.

Provides:
- Configuration constants and environment overrides
- SQLite track model and the serialized store handle
- Error taxonomy shared by the HTTP service
- Filesystem utilities: upload directory, atomic writes
"""

__version__ = "0.1.0"
