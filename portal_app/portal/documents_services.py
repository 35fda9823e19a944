from __future__ import annotations

import datetime
import logging
import mimetypes
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import PurePath

from django.conf import settings
from django.core import signing
from django.core.files.storage import Storage
from django.core.files.uploadedfile import UploadedFile
from django.db import transaction
from django.urls import reverse
from django.utils import timezone

from portal import live
from portal.activity_log import actor_identity, log_document_action
from portal.models import Document
from portal.tokens import DOCUMENT_SHARE_TOKEN_PURPOSE, make_signed_token, read_purpose_token

logger = logging.getLogger(__name__)

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


class DocumentError(Exception):
    pass


class DocumentNotFoundError(DocumentError):
    def __init__(self, message: str = "Document not found") -> None:
        super().__init__(message)


class ShareLinkError(DocumentError):
    pass


@dataclass(frozen=True)
class ShareLink:
    document: Document
    token: str
    url: str
    expires_at: datetime.datetime


def document_kind(mime_type: str) -> str:
    mime = str(mime_type or "").lower()
    if "pdf" in mime:
        return Document.Kind.pdf
    if "word" in mime or "document" in mime:
        return Document.Kind.doc
    if "image" in mime:
        return Document.Kind.image
    if "sheet" in mime or "excel" in mime or "csv" in mime:
        return Document.Kind.spreadsheet
    return Document.Kind.other


def format_file_size(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    unit = 0
    while unit < len(_SIZE_UNITS) - 1 and size >= 1024 ** (unit + 1):
        unit += 1
    text = f"{size / 1024**unit:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_SIZE_UNITS[unit]}"


def _clean_name(name: object) -> str:
    text = str(name or "").strip()
    if not text:
        raise DocumentError("Please enter a name")
    if "/" in text or "\\" in text:
        raise DocumentError("Names cannot contain slashes")
    if len(text) > 255:
        raise DocumentError("Names must be 255 characters or fewer")
    return text


def _check_parent(*, owner: object, parent: Document | None) -> None:
    if parent is None:
        return
    if parent.owner_id != owner.pk:
        raise DocumentNotFoundError("Folder not found")
    if not parent.is_folder:
        raise DocumentError("Destination must be a folder")


def _publish(document: Document) -> None:
    live.publish(live.documents_changed, owner_id=document.owner_id, parent_id=document.parent_id)


def get_owned_document(*, owner: object, document_id: object) -> Document:
    try:
        pk = int(str(document_id))
    except ValueError as exc:
        raise DocumentNotFoundError() from exc
    document = Document.objects.filter(pk=pk, owner=owner).first()
    if document is None:
        raise DocumentNotFoundError()
    return document


def list_documents(*, owner: object, parent: Document | None = None) -> list[Document]:
    """Folders first, then files, each alphabetically."""

    documents = list(Document.objects.filter(owner=owner, parent=parent))
    documents.sort(key=lambda d: (not d.is_folder, d.name.casefold(), d.id))
    return documents


def breadcrumbs(*, folder: Document | None) -> list[Document]:
    trail: list[Document] = []
    current = folder
    while current is not None:
        trail.append(current)
        current = current.parent
    trail.reverse()
    return trail


def _descendants(document: Document) -> list[Document]:
    found: list[Document] = []
    frontier = [document.id]
    while frontier:
        children = list(Document.objects.filter(parent_id__in=frontier))
        found.extend(children)
        frontier = [child.id for child in children if child.is_folder]
    return found


@transaction.atomic
def create_folder(*, name: str, owner: object, parent: Document | None = None) -> Document:
    _check_parent(owner=owner, parent=parent)
    _username, display_name = actor_identity(owner)
    folder = Document.objects.create(
        owner=owner,
        parent=parent,
        name=_clean_name(name),
        kind=Document.Kind.folder,
        created_by_name=display_name,
    )
    log_document_action(
        action="created_folder",
        document_name=folder.name,
        actor=owner,
        metadata={"document_id": folder.id},
    )
    _publish(folder)
    return folder


@transaction.atomic
def upload_document(*, upload: UploadedFile | None, owner: object, parent: Document | None = None) -> Document:
    if upload is None:
        raise DocumentError("Please choose a file to upload")
    _check_parent(owner=owner, parent=parent)

    name = _clean_name(PurePath(str(upload.name or "")).name)
    size = int(upload.size or 0)
    max_bytes = int(settings.DOCUMENT_MAX_UPLOAD_BYTES)
    if size > max_bytes:
        raise DocumentError(
            f'File "{name}" exceeds the maximum size of {format_file_size(max_bytes)} '
            f"({size / 1024 / 1024:.2f}MB)"
        )

    mime_type = str(getattr(upload, "content_type", "") or "") or (mimetypes.guess_type(name)[0] or "")
    _username, display_name = actor_identity(owner)
    document = Document.objects.create(
        owner=owner,
        parent=parent,
        name=name,
        kind=document_kind(mime_type),
        file=upload,
        size=size,
        mime_type=mime_type,
        created_by_name=display_name,
    )
    log_document_action(
        action="uploaded",
        document_name=document.name,
        actor=owner,
        metadata={"document_id": document.id, "size": size},
    )
    logger.info("Document uploaded document_id=%s size=%s", document.id, size)
    _publish(document)
    return document


@transaction.atomic
def rename_document(*, document: Document, name: str, actor: object | None = None) -> Document:
    locked = Document.objects.select_for_update().get(pk=document.pk)
    old_name = locked.name
    locked.name = _clean_name(name)
    locked.save(update_fields=["name", "updated_at"])

    log_document_action(
        action="renamed",
        document_name=locked.name,
        actor=actor,
        metadata={"document_id": locked.id, "old_name": old_name},
    )
    _publish(locked)
    return locked


@transaction.atomic
def move_document(*, document: Document, parent: Document | None, actor: object | None = None) -> Document:
    locked = Document.objects.select_for_update().get(pk=document.pk)
    _check_parent(owner=locked.owner, parent=parent)

    ancestor = parent
    while ancestor is not None:
        if ancestor.pk == locked.pk:
            raise DocumentError("A folder cannot be moved into itself")
        ancestor = ancestor.parent

    old_parent_id = locked.parent_id
    locked.parent = parent
    locked.save(update_fields=["parent", "updated_at"])

    log_document_action(
        action="moved",
        document_name=locked.name,
        actor=actor,
        metadata={"document_id": locked.id, "from": old_parent_id, "to": locked.parent_id},
    )
    live.publish(live.documents_changed, owner_id=locked.owner_id, parent_id=old_parent_id)
    _publish(locked)
    return locked


def _delete_stored_files(storage: Storage, names: Iterable[str]) -> None:
    for name in names:
        try:
            storage.delete(name)
        except OSError:
            logger.exception("Failed to delete stored document file name=%s", name)


@transaction.atomic
def delete_document(*, document: Document, actor: object | None = None) -> int:
    """Delete a file, or a folder with everything below it. Returns the number of rows removed."""

    doomed = [document, *_descendants(document)]
    stored = [d.file.name for d in doomed if d.file]
    Document.objects.filter(pk=document.pk).delete()

    storage = Document._meta.get_field("file").storage
    transaction.on_commit(lambda: _delete_stored_files(storage, stored))

    log_document_action(
        action="deleted",
        document_name=document.name,
        actor=actor,
        metadata={"document_id": document.id, "removed": len(doomed)},
    )
    _publish(document)
    return len(doomed)


@transaction.atomic
def set_document_shared(*, document: Document, shared: bool, actor: object | None = None) -> Document:
    locked = Document.objects.select_for_update().get(pk=document.pk)
    if locked.shared == bool(shared):
        return locked

    locked.shared = bool(shared)
    locked.save(update_fields=["shared", "updated_at"])
    log_document_action(
        action="shared" if locked.shared else "unshared",
        document_name=locked.name,
        actor=actor,
        metadata={"document_id": locked.id},
    )
    _publish(locked)
    return locked


def share_link_url(*, token: str) -> str:
    base = str(settings.PUBLIC_BASE_URL or "").strip().rstrip("/")
    return f"{base}{reverse('api-shared-document', args=[token])}"


def generate_share_link(*, document: Document, actor: object | None = None) -> ShareLink:
    """Sign a public link for a document or folder and mark it shared.

    Links stop resolving when they expire or when sharing is turned off.
    """

    document = set_document_shared(document=document, shared=True, actor=actor)
    token = make_signed_token({"p": DOCUMENT_SHARE_TOKEN_PURPOSE, "doc": document.id})
    ttl = int(settings.DOCUMENT_SHARE_LINK_TTL_SECONDS)
    return ShareLink(
        document=document,
        token=token,
        url=share_link_url(token=token),
        expires_at=timezone.now() + datetime.timedelta(seconds=ttl),
    )


def resolve_share_link(token: str) -> Document:
    try:
        payload = read_purpose_token(
            token,
            purpose=DOCUMENT_SHARE_TOKEN_PURPOSE,
            max_age_seconds=int(settings.DOCUMENT_SHARE_LINK_TTL_SECONDS),
        )
    except signing.SignatureExpired as exc:
        raise ShareLinkError("This share link has expired or does not exist") from exc
    except signing.BadSignature as exc:
        raise ShareLinkError("Invalid share link") from exc

    document = Document.objects.filter(pk=payload.get("doc")).first()
    if document is None:
        raise ShareLinkError("The shared file or folder no longer exists")
    if not document.shared:
        raise ShareLinkError("This share link has expired or does not exist")
    return document


def shared_files(*, document: Document) -> list[Document]:
    """Every file reachable through a share: the file itself, or all files below a folder."""

    if not document.is_folder:
        return [document]
    files = [d for d in _descendants(document) if not d.is_folder]
    files.sort(key=lambda d: (d.name.casefold(), d.id))
    return files


def shared_file(*, token: str, file_id: object | None = None) -> Document:
    document = resolve_share_link(token)
    if file_id in (None, ""):
        if document.is_folder:
            raise DocumentError("Choose a file from the shared folder")
        return document

    for candidate in shared_files(document=document):
        if str(candidate.id) == str(file_id).strip():
            return candidate
    raise DocumentNotFoundError("File not found in the shared folder")


def serialize_document(document: Document) -> dict[str, object]:
    return {
        "id": document.id,
        "name": document.name,
        "type": document.kind,
        "size": document.size,
        "size_display": format_file_size(document.size) if document.size is not None else "",
        "mime_type": document.mime_type,
        "parent_id": document.parent_id,
        "created_by_name": document.created_by_name,
        "shared": document.shared,
        "created_at": document.created_at.isoformat(),
        "updated_at": document.updated_at.isoformat(),
    }


def subscribe_documents(
    *,
    owner: object,
    parent: Document | None,
    callback: Callable[[list[Document]], None],
) -> live.Subscription:
    owner_id = owner.pk
    parent_id = parent.id if parent is not None else None
    return live.subscribe(
        signal=live.documents_changed,
        snapshot=lambda: list_documents(owner=owner, parent=parent),
        callback=callback,
        match=lambda kwargs: kwargs.get("owner_id") == owner_id and kwargs.get("parent_id") == parent_id,
    )
