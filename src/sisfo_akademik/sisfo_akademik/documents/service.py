from __future__ import annotations

import logging
import os
import time
import uuid
from datetime import datetime
from typing import Callable, Sequence

from ..applications.repository import ApplicationRepository
from ..common.datetime_utils import now_utc
from ..common.deadline import Deadline
from ..common.validators import require_non_empty
from ..core.constants import DEFAULT_OPERATION_TIMEOUT_SECONDS, MAX_DOCUMENT_SIZE_BYTES
from ..core.exceptions import FileTooLargeError, NotFoundError, ValidationError
from .model import ApplicationDocument, UploadedFile
from .repository import DocumentRepository
from .storage import LocalFileStorage

logger = logging.getLogger(__name__)


class DocumentService:
    def __init__(
        self,
        documents: DocumentRepository,
        applications: ApplicationRepository,
        storage: LocalFileStorage,
        *,
        max_size: int = MAX_DOCUMENT_SIZE_BYTES,
        timeout: float = DEFAULT_OPERATION_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = now_utc,
        monotonic: Callable[[], float] = time.monotonic,
        id_factory: Callable[[], uuid.UUID] = uuid.uuid4,
    ):
        self._documents = documents
        self._applications = applications
        self._storage = storage
        self._max_size = int(max_size)
        self._timeout = float(timeout)
        self._clock = clock
        self._monotonic = monotonic
        self._id_factory = id_factory

    def _deadline(self) -> Deadline:
        return Deadline.start(self._timeout, clock=self._monotonic)

    def upload(self, application_id: uuid.UUID, document_type: str, file: UploadedFile) -> ApplicationDocument:
        """Store the file, then record its metadata.

        If the metadata insert fails the stored file is removed before the
        error propagates.
        """

        deadline = self._deadline()
        doc_type = require_non_empty(document_type, "document_type")
        if not file.filename:
            raise ValidationError("file is required")
        if file.size > self._max_size:
            raise FileTooLargeError(
                "File too large",
                detail=f"{file.size} bytes exceeds the {self._max_size} byte limit",
            )

        deadline.check("load application")
        if self._applications.get_by_id(application_id) is None:
            raise NotFoundError("Application not found", detail=f"application {application_id} does not exist")

        document_id = self._id_factory()
        _, ext = os.path.splitext(os.path.basename(file.filename))
        stored_name = f"{document_id}{ext.lower()}"

        deadline.check("store document")
        file_url = self._storage.save(stored_name, file.stream)

        now = self._clock()
        document = ApplicationDocument(
            id=document_id,
            application_id=application_id,
            document_type=doc_type,
            file_url=file_url,
            file_name=file.filename,
            file_size=int(file.size),
            uploaded_at=now,
            created_at=now,
            updated_at=now,
        )
        try:
            deadline.check("record document")
            self._documents.create(document)
        except Exception:
            self._storage.remove(file_url)
            raise

        logger.info("document %s uploaded application=%s type=%s size=%d", document.id, application_id, doc_type, file.size)
        return document

    def list_by_application(self, application_id: uuid.UUID) -> Sequence[ApplicationDocument]:
        deadline = self._deadline()
        deadline.check("list documents")
        return self._documents.list_by_application(application_id)

    def get(self, document_id: uuid.UUID) -> ApplicationDocument:
        deadline = self._deadline()
        deadline.check("load document")
        document = self._documents.get_by_id(document_id)
        if document is None:
            raise NotFoundError("Document not found", detail=f"document {document_id} does not exist")
        return document

    def delete(self, document_id: uuid.UUID) -> None:
        deadline = self._deadline()
        document = self.get(document_id)

        deadline.check("delete document")
        if not self._documents.soft_delete(document_id, self._clock()):
            raise NotFoundError("Document not found", detail=f"document {document_id} does not exist")

        if not self._storage.remove(document.file_url):
            logger.warning("stored file for document %s was not removed (%s)", document_id, document.file_url)
        logger.info("document %s deleted", document_id)
