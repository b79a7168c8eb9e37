"""Services module for the soak harness."""

from .report_generator import ReportGenerator
from .run_controller import SoakRunController
from .run_engine import RunEngine
from .run_manager import RunManager, load_result

__all__ = [
    "ReportGenerator",
    "RunEngine",
    "RunManager",
    "SoakRunController",
    "load_result",
]
