"""Robot content sync."""

from robot_core.sync.orchestrator import RobotSyncOrchestrator

__all__ = ["RobotSyncOrchestrator"]
