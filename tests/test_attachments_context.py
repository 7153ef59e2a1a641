"""
Tests for board attachments and context assembly.

Covers:
  - filename sanitization, extension allow-list, batch validation
  - text extraction for text-like files only
  - persist_attachment: file on disk, row fields, chips
  - constraints heuristics (English and Russian), thread context, titles,
    attachment summaries, board input
"""

import json
import os

import pytest

from boardroom.core.exceptions import UnsupportedAttachmentError
from boardroom.models import db
from boardroom.models.board import BoardAttachment, BoardMessage, BoardThread
from boardroom.services.attachment_service import (
    UploadedFile,
    chips_json,
    extract_text,
    is_text_like,
    persist_attachment,
    sanitize_file_name,
    validate_uploads,
)
from boardroom.services.board_context import (
    DEFAULT_THREAD_TITLE,
    build_attachment_summary,
    build_board_input,
    build_context_from_messages,
    build_thread_title,
    derive_constraints_from_text,
    human_size,
    merge_context,
    sanitize_text,
)


def _thread_with_message(workspace_id):
    thread = BoardThread(workspace_id=workspace_id, title="t")
    db.session.add(thread)
    db.session.flush()
    message = BoardMessage(workspace_id=workspace_id, thread_id=thread.id, role="user", content="idea")
    db.session.add(message)
    db.session.flush()
    return thread, message


# ── Attachment validation ──────────────────────────────────────────────


class TestFileNames:
    @pytest.mark.parametrize("raw, expected", [
        ("report.pdf", "report.pdf"),
        ("../../etc/passwd", "passwd"),
        ("C:\\Users\\me\\plan v2.docx", "plan_v2.docx"),
        ("бюджет.xlsx", "______.xlsx"),
        ("", "file"),
        (None, "file"),
    ])
    def test_sanitize_file_name(self, raw, expected):
        assert sanitize_file_name(raw) == expected

    def test_text_like_by_extension_or_mime(self):
        assert is_text_like("notes.md", None)
        assert is_text_like("data.bin", "text/plain")
        assert is_text_like("x.pdf", "application/json")
        assert not is_text_like("photo.png", "image/png")


class TestValidateUploads:
    def test_supported_batch_passes(self):
        validate_uploads([UploadedFile("a.txt", b"x"), UploadedFile("b.PNG", b"x")])

    def test_unsupported_extension_rejects_batch(self):
        with pytest.raises(UnsupportedAttachmentError) as exc:
            validate_uploads([UploadedFile("ok.txt", b"x"), UploadedFile("setup.exe", b"MZ")])
        assert ".exe" in str(exc.value)

    def test_no_extension_rejected(self):
        with pytest.raises(UnsupportedAttachmentError):
            validate_uploads([UploadedFile("Makefile", b"all:")])


class TestExtractText:
    def test_text_file_is_extracted(self):
        upload = UploadedFile("notes.txt", "line1\r\nline2\x00".encode(), "text/plain")
        assert extract_text(upload, "notes.txt") == "line1\nline2"

    def test_binary_file_has_no_text(self):
        assert extract_text(UploadedFile("deck.pdf", b"%PDF-1.7", "application/pdf"), "deck.pdf") is None

    def test_empty_text_is_none(self):
        assert extract_text(UploadedFile("empty.csv", b"   ", "text/csv"), "empty.csv") is None


class TestPersistAttachment:
    def test_writes_file_and_row(self, workspace_id, tmp_path):
        thread, message = _thread_with_message(workspace_id)
        upload = UploadedFile("plan notes.md", b"# Plan\nbudget: 10k", "text/markdown")

        att = persist_attachment(workspace_id, thread.id, message.id, upload, str(tmp_path))

        assert att.id is not None
        assert att.file_name == "plan_notes.md"
        assert att.size == len(upload.data)
        assert att.extracted_text == "# Plan\nbudget: 10k"
        assert att.storage_path.startswith(f"{thread.id}/")
        assert att.storage_path.endswith("-plan_notes.md")
        with open(os.path.join(str(tmp_path), att.storage_path), "rb") as fh:
            assert fh.read() == upload.data

    def test_chips_keep_order(self, workspace_id, tmp_path):
        thread, message = _thread_with_message(workspace_id)
        atts = [
            persist_attachment(workspace_id, thread.id, message.id, UploadedFile(name, b"x"), str(tmp_path))
            for name in ("b.txt", "a.png")
        ]
        chips = json.loads(chips_json(atts))
        assert [c["filename"] for c in chips] == ["b.txt", "a.png"]
        assert set(chips[0]) == {"id", "filename", "mime", "size"}

    def test_unsupported_file_not_written(self, workspace_id, tmp_path):
        thread, message = _thread_with_message(workspace_id)
        with pytest.raises(UnsupportedAttachmentError):
            persist_attachment(workspace_id, thread.id, message.id, UploadedFile("run.sh", b"x"), str(tmp_path))
        assert not os.path.exists(os.path.join(str(tmp_path), str(thread.id)))
        assert BoardAttachment.query.count() == 0


# ── Context assembly ───────────────────────────────────────────────────


class TestConstraints:
    def test_constraint_lines_english(self):
        text = "Grow sales by 20%\nBudget: 50k\nDeadline: end of Q3\nNice to have: CRM"
        assert derive_constraints_from_text(text) == "Budget: 50k; Deadline: end of Q3"

    def test_constraint_lines_russian(self):
        text = "Рост продаж на 20%\nБюджет 2 млн\nСроки: 3 месяца"
        assert derive_constraints_from_text(text) == "Бюджет 2 млн; Сроки: 3 месяца"

    def test_inline_constraint(self):
        text = "We want to grow. Our budget: no more than 10k per month. Thanks"
        assert derive_constraints_from_text(text) == "no more than 10k per month"

    def test_no_constraints(self):
        assert derive_constraints_from_text("рост продаж на 20%") == ""
        assert derive_constraints_from_text(None) == ""


class TestContextHelpers:
    def test_sanitize_text(self):
        assert sanitize_text(" a\r\nb\x00 ", 10) == "a\nb"
        assert sanitize_text("a\rb\r\nc") == "a\nb\nc"
        assert sanitize_text(42) == ""
        assert sanitize_text("abcdef", 3) == "abc"

    @pytest.mark.parametrize("size, expected", [
        (0, "0 B"), (None, "0 B"), (512, "512 B"), (2048, "2 KB"), (5 * 1024 * 1024, "5.0 MB"),
    ])
    def test_human_size(self, size, expected):
        assert human_size(size) == expected

    def test_thread_title_first_eight_words(self):
        assert build_thread_title("one two three four five six seven eight nine") == \
            "one two three four five six seven eight"
        assert build_thread_title("   ") == DEFAULT_THREAD_TITLE

    def test_context_uses_last_messages_with_labels(self):
        messages = [BoardMessage(role="user", content=f"m{i}") for i in range(10)]
        messages.append(BoardMessage(role="chair", content="Decision: HOLD"))
        context = build_context_from_messages(messages)
        lines = context.split("\n")
        assert len(lines) == 8
        assert lines[0] == "User: m3"
        assert lines[-1] == "Chairman: Decision: HOLD"

    def test_attachment_summary(self):
        atts = [
            BoardAttachment(file_name="notes.txt", mime="text/plain", size=2048, extracted_text="a\n\nb"),
            BoardAttachment(file_name="pic.png", mime="image/png", size=10, extracted_text=None),
            BoardAttachment(file_name="deck.pdf", mime="application/pdf", size=10, extracted_text=None),
        ]
        summary = build_attachment_summary(atts).split("\n")
        assert summary[0] == "1. notes.txt (text/plain, 2 KB): a b"
        assert summary[1].endswith("image attached")
        assert summary[2].endswith("available to review")

    def test_board_input_derives_constraints(self):
        board_input = build_board_input("Launch in Spain\nBudget: 20k", None, None, "ctx", "")
        assert board_input["goal"] == "growth"
        assert board_input["constraints"] == "Budget: 20k"
        assert board_input["critique_mode"] == "hard_truth"

    def test_explicit_constraints_win(self):
        board_input = build_board_input("Budget: 20k", "sales", "two people", "", "")
        assert board_input["constraints"] == "two people"
        assert board_input["goal"] == "sales"

    def test_merge_context_skips_empty(self):
        assert merge_context("a", "", "b") == "a\n\nb"
