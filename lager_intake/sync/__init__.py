"""
Sync Layer

Pending-upload counting and acknowledgement.
"""

from .tracker import SyncTracker, SyncReport, SimulatedUploader, Uploader

__all__ = [
    'SyncTracker',
    'SyncReport',
    'SimulatedUploader',
    'Uploader',
]
