"""Camera pose from known square fiducial markers."""

from .config import LocatorConfig
from .node import MarkerPoseNode

__all__ = ["LocatorConfig", "MarkerPoseNode"]
