"""
Blender Python API wrapper for type checking.

Re-exports bpy with type suppression so the Blender bridge can import
from here without ty errors. Only the bridge and the glTF pipeline import
this module; the atlas engine itself never needs Blender.

Usage:
    from notso_atlas._bpy import bpy
"""

from typing import Any

# type: ignore - bpy is Blender's dynamic module, not statically typed
import bpy as _bpy  # noqa: PLC0414

# Re-export with Any type to suppress downstream ty errors
bpy: Any = _bpy
