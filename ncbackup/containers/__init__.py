"""Container access for ncbackup."""

from .health import HealthChecker
from .manager import ContainerManager

__all__ = ["ContainerManager", "HealthChecker"]
