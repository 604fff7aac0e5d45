"""facerig - drive an avatar rig from real-time face tracking."""

__version__ = "0.1.0"
