"""Attachment storage tests (tmp_path as upload root)."""

from __future__ import annotations

from pathlib import Path

from pms.services.attachment_storage import AttachmentStorage


def test_delete_existing_file(tmp_path: Path) -> None:
    target = tmp_path / "uploads" / "comments" / "documents" / "brief.pdf"
    target.parent.mkdir(parents=True)
    target.write_bytes(b"%PDF")

    storage = AttachmentStorage(tmp_path)
    assert storage.delete("/uploads/comments/documents/brief.pdf") is True
    assert not target.exists()


def test_missing_file_is_not_an_error(tmp_path: Path) -> None:
    assert AttachmentStorage(tmp_path).delete("/uploads/nope.png") is False


def test_path_outside_root_is_refused(tmp_path: Path) -> None:
    root = tmp_path / "root"
    root.mkdir()
    outside = tmp_path / "secret.txt"
    outside.write_text("keep me")

    storage = AttachmentStorage(root)
    assert storage.path_for("../secret.txt") is None
    assert storage.delete("../secret.txt") is False
    assert outside.exists()


def test_delete_all_counts_removed(tmp_path: Path) -> None:
    for name in ("a.png", "b.png"):
        (tmp_path / name).write_bytes(b"x")
    removed = AttachmentStorage(tmp_path).delete_all(["/a.png", "/b.png", "/c.png"])
    assert removed == 2
