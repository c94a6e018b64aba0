"""
UniLink FaceID - Face Descriptor Authentication Core

Enrollment, storage and nearest-neighbour verification of 128-dimensional
face descriptors used as an alternative login factor for the UniLink
campus ride-sharing application.

The package never touches pixels or HTTP requests: callers hand it
already-extracted descriptors and receive verdicts back.
"""

__version__ = "1.0.0"
__author__ = "UniLink Team"
__email__ = "dev@unilink.app"
