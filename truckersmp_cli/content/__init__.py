"""
Content Layer.

This package is responsible for all content file operations: downloading
manifest entries and validating local files against their hashes.
"""

from .downloader import BatchDownloader, DownloadOutcome, DownloadTask
from .integrity import HashVerifier, VerificationResult
from .progress import NullProgressSink, ProgressSink

__all__ = [
    "BatchDownloader",
    "DownloadOutcome",
    "DownloadTask",
    "HashVerifier",
    "NullProgressSink",
    "ProgressSink",
    "VerificationResult",
]
