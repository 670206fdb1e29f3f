"""
Import/Export Service

Round-trips the whole data set through the portable document:

    {
      "expenses":   [{id, title, amount, date, category, paymentMode}, ...],
      "categories": [{id, name}, ...],
      "reminders":  [{id, title, amount, date}, ...],
      "settings":   {id, monthlyBudget}
    }

Saving the document to a file (or opening one) is the caller's concern;
this service only produces and consumes the in-memory shape and its JSON.
"""

import json
from typing import Any, Union

import structlog

from verdant.models.expense import ExportDocument
from verdant.services.storage import ExpenseStorageInterface


logger = structlog.get_logger(__name__)


class InvalidDocumentError(ValueError):
    """The import payload is not a usable export document."""
    pass


def parse_document(data: Union[ExportDocument, dict[str, Any], str, bytes]) -> ExportDocument:
    """
    Accept a document, a decoded JSON object, or raw JSON text.

    Raises:
        InvalidDocumentError: If the payload is not JSON or not an object
        pydantic.ValidationError: If a record inside it is malformed
    """
    if isinstance(data, ExportDocument):
        return data
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise InvalidDocumentError(f"Import file is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise InvalidDocumentError("Import file must contain a JSON object")
    return ExportDocument.model_validate(data)


class DataTransferService:
    """Export, import and report over an ExpenseStorageInterface."""

    def __init__(self, storage: ExpenseStorageInterface):
        self._storage = storage

    async def export(self) -> ExportDocument:
        """Read the whole store, untransformed."""
        return await self._storage.export_all()

    async def export_json(self, indent: int = 2) -> str:
        document = await self.export()
        return document.to_json(indent=indent)

    async def import_document(
        self,
        data: Union[ExportDocument, dict[str, Any], str, bytes],
    ) -> ExportDocument:
        """
        Validate then import. Every record is validated before the store
        is touched, so a malformed file changes nothing.

        Returns:
            The parsed document that was imported
        """
        document = parse_document(data)
        await self._storage.import_all(document)
        logger.info(
            "document_imported",
            collections=[
                name
                for name in ("expenses", "categories", "reminders", "settings")
                if getattr(document, name) is not None
            ],
        )
        return document

    async def import_json(self, text: Union[str, bytes]) -> ExportDocument:
        return await self.import_document(text)
