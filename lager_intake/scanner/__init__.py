"""
Scanner Layer

Image admission for captured pages and content hashing.
"""

from .validation import ContentHasher
from .quality_gate import (
    ImageQualityGate,
    GateSettings,
    AdmittedImage,
    Rejected,
    RejectReason,
    laplacian_variance,
)

__all__ = [
    'ContentHasher',
    'ImageQualityGate',
    'GateSettings',
    'AdmittedImage',
    'Rejected',
    'RejectReason',
    'laplacian_variance',
]
