from __future__ import annotations

import logging

from django.http import FileResponse, HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from portal import documents_services
from portal.documents_services import (
    DocumentError,
    DocumentNotFoundError,
    ShareLinkError,
    serialize_document,
)
from portal.models import Document
from portal.permissions import json_login_required
from portal.views_utils import _normalize_str, json_error, json_not_found, parse_bool, request_data

logger = logging.getLogger(__name__)


def _owned_folder(request: HttpRequest, folder_id: object) -> Document | None:
    if _normalize_str(folder_id) in ("", "null", "root"):
        return None
    return documents_services.get_owned_document(owner=request.user, document_id=folder_id)


def _file_response(document: Document) -> HttpResponse:
    if not document.file:
        return json_not_found()
    try:
        handle = document.file.open("rb")
    except FileNotFoundError:
        logger.warning("Stored document file is missing document_id=%s", document.id)
        return json_not_found()
    return FileResponse(handle, as_attachment=True, filename=document.name, content_type=document.mime_type or None)


@require_http_methods(["GET", "POST"])
@json_login_required
def documents_collection(request: HttpRequest) -> JsonResponse:
    if request.method == "POST":
        return _folder_create(request)

    try:
        folder = _owned_folder(request, request.GET.get("parent"))
    except DocumentNotFoundError:
        return json_not_found()

    documents = documents_services.list_documents(owner=request.user, parent=folder)
    return JsonResponse(
        {
            "ok": True,
            "parent_id": folder.id if folder is not None else None,
            "breadcrumbs": [{"id": f.id, "name": f.name} for f in documents_services.breadcrumbs(folder=folder)],
            "documents": [serialize_document(d) for d in documents],
        }
    )


def _folder_create(request: HttpRequest) -> JsonResponse:
    try:
        data = request_data(request)
        folder = documents_services.create_folder(
            name=data.get("name") or "",
            owner=request.user,
            parent=_owned_folder(request, data.get("parent_id")),
        )
    except DocumentNotFoundError:
        return json_not_found()
    except (ValueError, DocumentError) as exc:
        return json_error(str(exc))
    return JsonResponse({"ok": True, "document": serialize_document(folder)}, status=201)


@require_POST
@json_login_required
def document_upload(request: HttpRequest) -> JsonResponse:
    try:
        document = documents_services.upload_document(
            upload=request.FILES.get("file"),
            owner=request.user,
            parent=_owned_folder(request, request.POST.get("parent_id")),
        )
    except DocumentNotFoundError:
        return json_not_found()
    except DocumentError as exc:
        return json_error(str(exc))
    return JsonResponse({"ok": True, "document": serialize_document(document)}, status=201)


@require_POST
@json_login_required
def document_rename(request: HttpRequest, document_id: int) -> JsonResponse:
    try:
        document = documents_services.get_owned_document(owner=request.user, document_id=document_id)
        data = request_data(request)
        document = documents_services.rename_document(
            document=document,
            name=data.get("name") or "",
            actor=request.user,
        )
    except DocumentNotFoundError:
        return json_not_found()
    except (ValueError, DocumentError) as exc:
        return json_error(str(exc))
    return JsonResponse({"ok": True, "document": serialize_document(document)})


@require_POST
@json_login_required
def document_move(request: HttpRequest, document_id: int) -> JsonResponse:
    try:
        document = documents_services.get_owned_document(owner=request.user, document_id=document_id)
        data = request_data(request)
        document = documents_services.move_document(
            document=document,
            parent=_owned_folder(request, data.get("parent_id")),
            actor=request.user,
        )
    except DocumentNotFoundError:
        return json_not_found()
    except (ValueError, DocumentError) as exc:
        return json_error(str(exc))
    return JsonResponse({"ok": True, "document": serialize_document(document)})


@require_POST
@json_login_required
def document_delete(request: HttpRequest, document_id: int) -> JsonResponse:
    try:
        document = documents_services.get_owned_document(owner=request.user, document_id=document_id)
    except DocumentNotFoundError:
        return json_not_found()

    removed = documents_services.delete_document(document=document, actor=request.user)
    return JsonResponse({"ok": True, "document_id": document_id, "removed": removed})


@require_POST
@json_login_required
def document_share(request: HttpRequest, document_id: int) -> JsonResponse:
    try:
        document = documents_services.get_owned_document(owner=request.user, document_id=document_id)
        data = request_data(request)
    except DocumentNotFoundError:
        return json_not_found()
    except ValueError as exc:
        return json_error(str(exc))

    document = documents_services.set_document_shared(
        document=document,
        shared=parse_bool(data.get("shared")),
        actor=request.user,
    )
    return JsonResponse({"ok": True, "document": serialize_document(document)})


@require_POST
@json_login_required
def document_share_link(request: HttpRequest, document_id: int) -> JsonResponse:
    try:
        document = documents_services.get_owned_document(owner=request.user, document_id=document_id)
    except DocumentNotFoundError:
        return json_not_found()

    link = documents_services.generate_share_link(document=document, actor=request.user)
    return JsonResponse(
        {
            "ok": True,
            "document_id": link.document.id,
            "is_folder": link.document.is_folder,
            "token": link.token,
            "url": link.url,
            "expires_at": link.expires_at.isoformat(),
        }
    )


@require_GET
@json_login_required
def document_download(request: HttpRequest, document_id: int) -> HttpResponse:
    try:
        document = documents_services.get_owned_document(owner=request.user, document_id=document_id)
    except DocumentNotFoundError:
        return json_not_found()
    return _file_response(document)


@require_GET
def shared_document(request: HttpRequest, token: str) -> JsonResponse:
    try:
        document = documents_services.resolve_share_link(token)
    except ShareLinkError as exc:
        return json_error(str(exc), status=404)

    return JsonResponse(
        {
            "ok": True,
            "document": serialize_document(document),
            "files": [serialize_document(f) for f in documents_services.shared_files(document=document)],
        }
    )


@require_GET
def shared_document_download(request: HttpRequest, token: str) -> HttpResponse:
    try:
        document = documents_services.shared_file(token=token, file_id=request.GET.get("file"))
    except ShareLinkError as exc:
        return json_error(str(exc), status=404)
    except DocumentNotFoundError:
        return json_not_found()
    except DocumentError as exc:
        return json_error(str(exc))
    return _file_response(document)
