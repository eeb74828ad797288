"""
Utils package __init__.py
"""

# Import order is important to avoid circular imports
from .error_handling import ErrorHandler, setup_logging, handle_errors
from .downloader import FileDownloader, DownloadResult, DownloadProgress
from .checksum import ChecksumVerifier, VerificationResult, calculate_checksum, find_checksum
from .extractor import ArchiveExtractor, ExtractionResult

__all__ = [
    'ErrorHandler', 'setup_logging', 'handle_errors',
    'FileDownloader', 'DownloadResult', 'DownloadProgress',
    'ChecksumVerifier', 'VerificationResult', 'calculate_checksum', 'find_checksum',
    'ArchiveExtractor', 'ExtractionResult',
]
