from __future__ import annotations

import json
from pathlib import Path
from tempfile import mkdtemp
from urllib.parse import urlparse

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from django.urls import reverse

from portal.documents_services import (
    DocumentError,
    DocumentNotFoundError,
    ShareLinkError,
    breadcrumbs,
    create_folder,
    delete_document,
    document_kind,
    format_file_size,
    generate_share_link,
    list_documents,
    move_document,
    rename_document,
    resolve_share_link,
    set_document_shared,
    shared_file,
    shared_files,
    upload_document,
)
from portal.models import ActivityLogEntry, Document
from portal.tests.factories import make_user

_test_media_root = Path(mkdtemp(prefix="portal_test_documents_"))


def _upload(name: str = "minutes.pdf", content: bytes = b"%PDF-1.4 minutes", content_type: str = "application/pdf"):
    return SimpleUploadedFile(name, content, content_type=content_type)


def test_document_kind() -> None:
    assert document_kind("application/pdf") == "pdf"
    assert document_kind("application/vnd.openxmlformats-officedocument.wordprocessingml.document") == "doc"
    assert document_kind("image/png") == "image"
    assert document_kind("text/csv") == "spreadsheet"
    assert document_kind("application/zip") == "other"


def test_format_file_size() -> None:
    assert format_file_size(0) == "0 Bytes"
    assert format_file_size(512) == "512 Bytes"
    assert format_file_size(1024) == "1 KB"
    assert format_file_size(1536) == "1.5 KB"
    assert format_file_size(5 * 1024 * 1024) == "5 MB"


@override_settings(MEDIA_ROOT=_test_media_root)
class DocumentServiceTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.owner = make_user("ada")
        self.other = make_user("alan")

    def test_folders_and_uploads(self) -> None:
        folder = create_folder(name=" Minutes ", owner=self.owner)
        document = upload_document(upload=_upload(), owner=self.owner, parent=folder)

        self.assertEqual(folder.kind, Document.Kind.folder)
        self.assertEqual(folder.name, "Minutes")
        self.assertEqual(document.name, "minutes.pdf")
        self.assertEqual(document.kind, Document.Kind.pdf)
        self.assertEqual(document.size, len(b"%PDF-1.4 minutes"))
        self.assertTrue(document.file.name.startswith("documents/"))
        self.assertEqual(
            list(ActivityLogEntry.objects.order_by("id").values_list("action", flat=True)),
            ["Document created folder", "Document uploaded"],
        )

    def test_listing_puts_folders_first_and_is_per_owner(self) -> None:
        upload_document(upload=_upload("b.pdf"), owner=self.owner)
        create_folder(name="Zeta", owner=self.owner)
        upload_document(upload=_upload("A.pdf"), owner=self.owner)
        create_folder(name="Theirs", owner=self.other)

        self.assertEqual([d.name for d in list_documents(owner=self.owner)], ["Zeta", "A.pdf", "b.pdf"])

    def test_upload_size_limit(self) -> None:
        with override_settings(DOCUMENT_MAX_UPLOAD_BYTES=4):
            with self.assertRaisesMessage(DocumentError, 'File "minutes.pdf" exceeds the maximum size'):
                upload_document(upload=_upload(), owner=self.owner)
        with self.assertRaisesMessage(DocumentError, "Please choose a file to upload"):
            upload_document(upload=None, owner=self.owner)
        self.assertFalse(Document.objects.exists())

    def test_parent_must_be_own_folder(self) -> None:
        theirs = create_folder(name="Theirs", owner=self.other)
        file = upload_document(upload=_upload(), owner=self.owner)

        with self.assertRaises(DocumentNotFoundError):
            create_folder(name="Sneaky", owner=self.owner, parent=theirs)
        with self.assertRaisesMessage(DocumentError, "Destination must be a folder"):
            create_folder(name="Inside a file", owner=self.owner, parent=file)

    def test_rename_validates_name(self) -> None:
        folder = create_folder(name="Drafts", owner=self.owner)

        renamed = rename_document(document=folder, name="Final", actor=self.owner)
        self.assertEqual(renamed.name, "Final")
        self.assertEqual(ActivityLogEntry.objects.first().metadata["old_name"], "Drafts")

        with self.assertRaisesMessage(DocumentError, "Please enter a name"):
            rename_document(document=folder, name="  ")
        with self.assertRaisesMessage(DocumentError, "Names cannot contain slashes"):
            rename_document(document=folder, name="a/b")

    def test_move_and_breadcrumbs(self) -> None:
        outer = create_folder(name="Outer", owner=self.owner)
        inner = create_folder(name="Inner", owner=self.owner, parent=outer)
        file = upload_document(upload=_upload(), owner=self.owner)

        move_document(document=file, parent=inner, actor=self.owner)

        self.assertEqual([d.name for d in list_documents(owner=self.owner, parent=inner)], ["minutes.pdf"])
        self.assertEqual([f.name for f in breadcrumbs(folder=inner)], ["Outer", "Inner"])

        moved_back = move_document(document=file, parent=None)
        self.assertIsNone(moved_back.parent_id)

    def test_folder_cannot_move_into_itself(self) -> None:
        outer = create_folder(name="Outer", owner=self.owner)
        inner = create_folder(name="Inner", owner=self.owner, parent=outer)

        with self.assertRaisesMessage(DocumentError, "A folder cannot be moved into itself"):
            move_document(document=outer, parent=inner)
        with self.assertRaisesMessage(DocumentError, "A folder cannot be moved into itself"):
            move_document(document=outer, parent=outer)

        inner.refresh_from_db()
        self.assertEqual(inner.parent_id, outer.id)

    def test_delete_folder_removes_subtree_and_files(self) -> None:
        outer = create_folder(name="Outer", owner=self.owner)
        inner = create_folder(name="Inner", owner=self.owner, parent=outer)
        file = upload_document(upload=_upload(), owner=self.owner, parent=inner)
        stored_path = Path(file.file.path)
        self.assertTrue(stored_path.exists())

        with self.captureOnCommitCallbacks(execute=True):
            removed = delete_document(document=outer, actor=self.owner)

        self.assertEqual(removed, 3)
        self.assertFalse(Document.objects.exists())
        self.assertFalse(stored_path.exists())
        entry = ActivityLogEntry.objects.first()
        self.assertEqual(entry.description, "Deleted document: Outer")
        self.assertEqual(entry.metadata["removed"], 3)

    def test_share_link_resolves_until_unshared(self) -> None:
        file = upload_document(upload=_upload(), owner=self.owner)

        link = generate_share_link(document=file, actor=self.owner)

        self.assertTrue(link.document.shared)
        self.assertEqual(urlparse(link.url).path, reverse("api-shared-document", args=[link.token]))
        self.assertEqual(resolve_share_link(link.token), file)
        self.assertEqual(shared_file(token=link.token), file)

        set_document_shared(document=file, shared=False, actor=self.owner)
        with self.assertRaisesMessage(ShareLinkError, "expired or does not exist"):
            resolve_share_link(link.token)

    def test_share_link_errors(self) -> None:
        file = upload_document(upload=_upload(), owner=self.owner)
        link = generate_share_link(document=file)

        with self.assertRaisesMessage(ShareLinkError, "Invalid share link"):
            resolve_share_link(link.token + "x")

        with override_settings(DOCUMENT_SHARE_LINK_TTL_SECONDS=-1):
            with self.assertRaisesMessage(ShareLinkError, "expired or does not exist"):
                resolve_share_link(link.token)

        Document.objects.filter(pk=file.pk).delete()
        with self.assertRaisesMessage(ShareLinkError, "no longer exists"):
            resolve_share_link(link.token)

    def test_shared_folder_exposes_only_its_files(self) -> None:
        folder = create_folder(name="Board", owner=self.owner)
        sub = create_folder(name="2026", owner=self.owner, parent=folder)
        agenda = upload_document(upload=_upload("agenda.pdf"), owner=self.owner, parent=sub)
        outside = upload_document(upload=_upload("private.pdf"), owner=self.owner)

        link = generate_share_link(document=folder)

        self.assertEqual(shared_files(document=folder), [agenda])
        self.assertEqual(shared_file(token=link.token, file_id=agenda.id), agenda)
        with self.assertRaises(DocumentNotFoundError):
            shared_file(token=link.token, file_id=outside.id)
        with self.assertRaisesMessage(DocumentError, "Choose a file from the shared folder"):
            shared_file(token=link.token)


@override_settings(MEDIA_ROOT=_test_media_root)
class DocumentApiTests(TestCase):
    def setUp(self) -> None:
        super().setUp()
        self.owner = make_user("ada")
        self.other = make_user("alan")

    def _post_json(self, url: str, payload: dict[str, object]):
        return self.client.post(url, data=json.dumps(payload), content_type="application/json")

    def test_requires_login(self) -> None:
        self.assertEqual(self.client.get(reverse("api-documents")).status_code, 401)
        self.assertEqual(self.client.post(reverse("api-document-upload")).status_code, 401)

    def test_folder_upload_list_download(self) -> None:
        self.client.force_login(self.owner)

        resp = self._post_json(reverse("api-documents"), {"name": "Minutes"})
        self.assertEqual(resp.status_code, 201)
        folder_id = resp.json()["document"]["id"]

        resp = self.client.post(reverse("api-document-upload"), {"file": _upload(), "parent_id": str(folder_id)})
        self.assertEqual(resp.status_code, 201)
        document = resp.json()["document"]
        self.assertEqual(document["type"], "pdf")
        self.assertEqual(document["size_display"], "16 Bytes")

        resp = self.client.get(reverse("api-documents"), {"parent": folder_id})
        body = resp.json()
        self.assertEqual(body["breadcrumbs"], [{"id": folder_id, "name": "Minutes"}])
        self.assertEqual([d["name"] for d in body["documents"]], ["minutes.pdf"])

        resp = self.client.get(reverse("api-document-download", args=[document["id"]]))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(b"".join(resp.streaming_content), b"%PDF-1.4 minutes")
        self.assertIn("attachment", resp["Content-Disposition"])

    def test_upload_error_is_reported(self) -> None:
        self.client.force_login(self.owner)
        resp = self.client.post(reverse("api-document-upload"), {})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"ok": False, "error": "Please choose a file to upload"})

    def test_other_users_documents_are_not_found(self) -> None:
        theirs = create_folder(name="Theirs", owner=self.other)
        self.client.force_login(self.owner)

        self.assertEqual(self.client.get(reverse("api-documents"), {"parent": theirs.id}).status_code, 404)
        self.assertEqual(
            self._post_json(reverse("api-document-rename", args=[theirs.id]), {"name": "Mine"}).status_code,
            404,
        )
        self.assertEqual(self.client.post(reverse("api-document-delete", args=[theirs.id])).status_code, 404)
        resp = self._post_json(reverse("api-documents"), {"name": "x", "parent_id": theirs.id})
        self.assertEqual(resp.status_code, 404)
        self.assertTrue(Document.objects.filter(pk=theirs.pk, name="Theirs").exists())

    def test_rename_move_delete(self) -> None:
        folder = create_folder(name="Archive", owner=self.owner)
        file = upload_document(upload=_upload(), owner=self.owner)
        self.client.force_login(self.owner)

        resp = self._post_json(reverse("api-document-rename", args=[file.id]), {"name": "2026 minutes.pdf"})
        self.assertEqual(resp.json()["document"]["name"], "2026 minutes.pdf")

        resp = self._post_json(reverse("api-document-move", args=[file.id]), {"parent_id": folder.id})
        self.assertEqual(resp.json()["document"]["parent_id"], folder.id)

        resp = self._post_json(reverse("api-document-move", args=[folder.id]), {"parent_id": file.id})
        self.assertEqual(resp.status_code, 400)

        resp = self.client.post(reverse("api-document-delete", args=[folder.id]))
        self.assertEqual(resp.json(), {"ok": True, "document_id": folder.id, "removed": 2})

    def test_public_share_flow(self) -> None:
        file = upload_document(upload=_upload(), owner=self.owner)
        self.client.force_login(self.owner)

        resp = self.client.post(reverse("api-document-share-link", args=[file.id]))
        self.assertEqual(resp.status_code, 200)
        token = resp.json()["token"]
        self.assertFalse(resp.json()["is_folder"])

        self.client.logout()
        resp = self.client.get(reverse("api-shared-document", args=[token]))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([f["name"] for f in resp.json()["files"]], ["minutes.pdf"])

        resp = self.client.get(reverse("api-shared-document-download", args=[token]))
        self.assertEqual(b"".join(resp.streaming_content), b"%PDF-1.4 minutes")

        self.client.force_login(self.owner)
        resp = self._post_json(reverse("api-document-share", args=[file.id]), {"shared": False})
        self.assertFalse(resp.json()["document"]["shared"])

        self.client.logout()
        resp = self.client.get(reverse("api-shared-document", args=[token]))
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["error"], "This share link has expired or does not exist")
