# API endpoints
from . import gate_passes

__all__ = ["gate_passes"]
