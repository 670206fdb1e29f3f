"""Import/export and reporting package."""

from verdant.transfer.report import format_amount, generate_report
from verdant.transfer.service import (
    DataTransferService,
    InvalidDocumentError,
    parse_document,
)

__all__ = [
    "DataTransferService",
    "InvalidDocumentError",
    "format_amount",
    "generate_report",
    "parse_document",
]
