"""AI receipt scanning service package."""

from verdant.services.scanner.gemini_scanner import (
    ReceiptScanner,
    ScanError,
    ScanFailedError,
    UnsupportedDocumentError,
    decode_data_uri,
    extract_json_object,
)

__all__ = [
    "ReceiptScanner",
    "ScanError",
    "ScanFailedError",
    "UnsupportedDocumentError",
    "decode_data_uri",
    "extract_json_object",
]
