from __future__ import annotations

from flask import Flask, request

from ..common.http import success
from ..common.validators import require_uuid
from ..core.constants import ADMISSION_API_PREFIX
from ..core.exceptions import ValidationError
from ..container import AdmissionContainer
from .model import UploadedFile


def _file_size(storage) -> int:
    stream = storage.stream
    position = stream.tell()
    stream.seek(0, 2)
    size = stream.tell()
    stream.seek(position)
    return size


def register(app: Flask, container: AdmissionContainer) -> None:
    prefix = ADMISSION_API_PREFIX
    documents = container.document_service

    @app.route(f"{prefix}/applications/<application_id>/documents", methods=["POST"], endpoint="upload_document")
    def upload_document(application_id: str):
        aid = require_uuid(application_id, "application_id")
        storage = request.files.get("file")
        if storage is None or not storage.filename:
            raise ValidationError("file is required")

        uploaded = UploadedFile(filename=storage.filename, size=_file_size(storage), stream=storage.stream)
        document = documents.upload(aid, request.form.get("document_type", ""), uploaded)
        return success(document, 201)

    @app.route(f"{prefix}/applications/<application_id>/documents", methods=["GET"], endpoint="list_documents")
    def list_documents(application_id: str):
        aid = require_uuid(application_id, "application_id")
        return success(list(documents.list_by_application(aid)))

    @app.route(f"{prefix}/documents/<document_id>", methods=["GET"], endpoint="get_document")
    def get_document(document_id: str):
        return success(documents.get(require_uuid(document_id, "document_id")))

    @app.route(f"{prefix}/documents/<document_id>", methods=["DELETE"], endpoint="delete_document")
    def delete_document(document_id: str):
        documents.delete(require_uuid(document_id, "document_id"))
        return success({"message": "Document deleted"})
