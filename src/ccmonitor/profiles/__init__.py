"""Launch profile models and loader exports."""

from .loader import LaunchProfile, LaunchSpec, ProfileLoadError, ProfileLoader, build_launch

__all__ = [
    "LaunchProfile",
    "LaunchSpec",
    "ProfileLoadError",
    "ProfileLoader",
    "build_launch",
]
