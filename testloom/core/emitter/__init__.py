"""Target emission driven by declarative target profiles."""

from .emitter import EmitResult, UnitEmitter, emit, output_path
from .profile import TargetProfile, load_profile_file
from .registry import ProfileRegistry, load_profile

__all__ = [
    "EmitResult",
    "ProfileRegistry",
    "TargetProfile",
    "UnitEmitter",
    "emit",
    "load_profile",
    "load_profile_file",
    "output_path",
]
