"""Target profile registry.

Simple dict-based registry.  Built-in profiles ship as YAML files in the
``profiles/`` directory next to this module and are registered on first
use.  A profile can also be loaded directly from a file path.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List

from ..diagnostics import ProfileError
from .profile import TargetProfile, load_profile_file

logger = logging.getLogger(__name__)

BUILTIN_PROFILE_DIR = Path(__file__).parent / "profiles"


class ProfileRegistry:
    """Registry for target profiles.

    Class-level store so the pipeline can call
    ``ProfileRegistry.get_profile(...)`` without holding an instance.
    """

    _profiles: Dict[str, TargetProfile] = {}
    _builtins_loaded = False

    @classmethod
    def register(cls, profile: TargetProfile) -> None:
        """Register a profile instance under its name."""
        cls._profiles[profile.name] = profile
        logger.info(
            "Registered target profile: %s (%s)",
            profile.name,
            profile.display_name,
        )

    @classmethod
    def load_builtins(cls) -> None:
        if cls._builtins_loaded:
            return
        for path in sorted(BUILTIN_PROFILE_DIR.glob("*.yaml")):
            cls.register(load_profile_file(path))
        cls._builtins_loaded = True

    @classmethod
    def get_profile(cls, name: str) -> TargetProfile:
        """Get a profile by name.  Raises ProfileError when unknown."""
        cls.load_builtins()
        profile = cls._profiles.get(name)
        if profile is None:
            known = ", ".join(sorted(cls._profiles))
            raise ProfileError(f"unknown target profile '{name}' (known: {known})")
        return profile

    @classmethod
    def list_profiles(cls) -> List[Dict[str, Any]]:
        """List all registered profiles with metadata."""
        cls.load_builtins()
        return [
            {
                "name": p.name,
                "display_name": p.display_name,
                "language": p.language,
                "version": p.version,
                "delegate_strategy": p.delegate_strategy,
            }
            for p in sorted(cls._profiles.values(), key=lambda p: p.name)
        ]


def load_profile(name_or_path: str) -> TargetProfile:
    """Resolve a profile by registry name, or load it from a YAML path."""
    path = Path(name_or_path)
    if path.suffix in (".yaml", ".yml") or path.is_file():
        if not path.is_file():
            raise ProfileError(f"profile file not found: {name_or_path}")
        return load_profile_file(path)
    return ProfileRegistry.get_profile(name_or_path)
