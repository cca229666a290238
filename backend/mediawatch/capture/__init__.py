"""
Capture — the downstream worker that drains the dispatch queue.
"""

from .worker import CaptureWorker, DrainReport, copy_to_output

__all__ = ["CaptureWorker", "DrainReport", "copy_to_output"]
