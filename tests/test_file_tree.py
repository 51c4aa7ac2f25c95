"""Unit tests for the in-memory attachment index"""

import dataclasses

import pytest

from app.services.attachments import (
    AttachmentValidationError,
    ExtensionNotAllowedError,
    FileTree,
    MissingExtensionError,
    PathDepthExceededError,
    normalize_path,
)
from conftest import make_metadata


def _child(node, name):
    matches = [c for c in node.children if c.name == name]
    assert len(matches) == 1, f"expected one child named {name!r}"
    return matches[0]


class TestValidation:
    def test_normalize_path(self):
        assert normalize_path("/images//sub/") == "images/sub"
        assert normalize_path("") == ""

    def test_depth_boundary(self, file_tree):
        assert file_tree.validate_path("a/b/c/d/e/f/g/h/i/j") == "a/b/c/d/e/f/g/h/i/j"
        with pytest.raises(PathDepthExceededError, match="maximum allowed depth of 10"):
            file_tree.validate_path("a/b/c/d/e/f/g/h/i/j/k")

    def test_depth_ignores_empty_segments(self, file_tree):
        assert file_tree.validate_path("//a//b//") == "a/b"

    def test_extension_is_case_insensitive(self, file_tree):
        assert file_tree.validate_extension("photo.JPG") == "jpg"

    def test_disallowed_extension(self, file_tree):
        with pytest.raises(ExtensionNotAllowedError, match=r"Extension \.exe is not allowed"):
            file_tree.validate_extension("archive.exe")

    def test_missing_extension(self, file_tree):
        with pytest.raises(MissingExtensionError, match="File must have an extension"):
            file_tree.validate_extension("noext")
        with pytest.raises(MissingExtensionError):
            file_tree.validate_extension("trailing.")

    def test_validation_errors_are_value_errors(self):
        assert issubclass(PathDepthExceededError, AttachmentValidationError)
        assert issubclass(AttachmentValidationError, ValueError)

    def test_allowed_extensions_are_lowercased(self):
        tree = FileTree(allowed_extensions=["PNG", ".Pdf"])
        assert tree.allowed_extensions == {"png", "pdf"}


class TestFileOperations:
    def test_add_and_get(self, file_tree):
        metadata = make_metadata(1, "images/a.jpg")
        assert file_tree.add_file(metadata) is True
        assert file_tree.get_file(1, "images/a.jpg") == metadata
        assert file_tree.get_file(1, "/images/a.jpg/") == metadata
        assert file_tree.get_file(2, "images/a.jpg") is None

    def test_add_normalizes_stored_path(self, file_tree):
        file_tree.add_file(make_metadata(1, "/images//a.jpg"))
        assert file_tree.get_file(1, "images/a.jpg").path == "images/a.jpg"

    def test_rejected_file_leaves_index_untouched(self, file_tree):
        with pytest.raises(ExtensionNotAllowedError):
            file_tree.add_file(make_metadata(1, "bin/tool.exe"))
        with pytest.raises(PathDepthExceededError):
            file_tree.add_file(make_metadata(1, "a/b/c/d/e/f/g/h/i/j/k.jpg"))
        with pytest.raises(AttachmentValidationError):
            file_tree.add_file(make_metadata(1, "/", original_name="a.jpg"))
        assert len(file_tree) == 0

    def test_extension_checked_against_original_name(self, file_tree):
        metadata = make_metadata(1, "docs/stored.pdf", original_name="virus.exe")
        with pytest.raises(ExtensionNotAllowedError):
            file_tree.add_file(metadata)

    def test_re_add_overwrites_silently(self, file_tree):
        file_tree.add_file(make_metadata(1, "images/a.jpg", size=10))
        file_tree.add_file(make_metadata(1, "images/a.jpg", size=99))

        assert file_tree.get_file(1, "images/a.jpg").size == 99
        files = file_tree.get_files_by_owner(1)
        assert len(files) == 1
        assert files[0].size == 99

    def test_delete_file(self, file_tree):
        file_tree.add_file(make_metadata(1, "images/a.jpg"))
        assert file_tree.delete_file(1, "/images/a.jpg") is True
        assert file_tree.get_file(1, "images/a.jpg") is None
        assert file_tree.delete_file(1, "images/a.jpg") is False

    def test_files_by_owner_do_not_leak_across_prefixes(self, file_tree):
        file_tree.add_file(make_metadata(1, "a.jpg"))
        file_tree.add_file(make_metadata(11, "b.jpg"))
        assert [m.path for m in file_tree.get_files_by_owner(1)] == ["a.jpg"]
        assert [m.path for m in file_tree.get_files_by_owner(11)] == ["b.jpg"]

    def test_many_files_survive_index_resizes(self):
        tree = FileTree(allowed_extensions=["txt"], capacity=16)
        for i in range(300):
            tree.add_file(make_metadata(i % 3, f"folder{i % 7}/file{i}.txt"))
        assert len(tree) == 300
        assert len(tree.get_files_by_owner(0)) == 100
        assert tree.get_file(2, "folder5/file299.txt") is not None

    def test_clear(self, file_tree):
        file_tree.add_file(make_metadata(1, "a.jpg"))
        file_tree.add_file(make_metadata(2, "b.jpg"))
        file_tree.clear()
        assert len(file_tree) == 0
        assert file_tree.get_files_by_owner(1) == []


class TestTree:
    def test_build_tree(self, file_tree):
        file_tree.add_file(make_metadata(1, "images/a.jpg"))
        file_tree.add_file(make_metadata(1, "images/sub/b.png"))
        file_tree.add_file(make_metadata(2, "c.pdf"))

        root = file_tree.build_tree(1)
        assert (root.name, root.type, root.path) == ("root", "folder", "/")
        assert [c.name for c in root.children] == ["images"]

        images = _child(root, "images")
        assert images.type == "folder"
        assert images.path == "images"
        assert sorted(c.name for c in images.children) == ["a.jpg", "sub"]

        a = _child(images, "a.jpg")
        assert a.type == "file"
        assert a.path == "images/a.jpg"
        assert a.extension == "jpg"
        assert a.children is None

        sub = _child(images, "sub")
        assert sub.type == "folder"
        assert sub.path == "images/sub"
        b = _child(sub, "b.png")
        assert (b.type, b.path, b.size) == ("file", "images/sub/b.png", 100)

    def test_owners_are_isolated(self, file_tree):
        file_tree.add_file(make_metadata(1, "images/a.jpg"))
        file_tree.add_file(make_metadata(2, "c.pdf"))

        root = file_tree.build_tree(2)
        assert len(root.children) == 1
        c = root.children[0]
        assert (c.name, c.type, c.path) == ("c.pdf", "file", "c.pdf")

        names = []
        stack = [file_tree.build_tree(1)]
        while stack:
            node = stack.pop()
            names.append(node.name)
            stack.extend(node.children or [])
        assert "c.pdf" not in names

    def test_file_node_carries_metadata(self, file_tree):
        metadata = make_metadata(3, "docs/report.pdf", size=2048, original_name="Q1 Report.PDF")
        file_tree.add_file(metadata)
        node = file_tree.build_tree(3).children[0].children[0]
        assert node.original_name == "Q1 Report.PDF"
        assert node.stored_name == "report.pdf"
        assert node.mime_type == "application/octet-stream"
        assert node.size == 2048
        assert node.created_at == metadata.created_at == node.updated_at

    def test_tree_is_rebuilt_each_call(self, file_tree):
        file_tree.add_file(make_metadata(1, "a.jpg"))
        first = file_tree.build_tree(1)
        first.children.clear()
        assert len(file_tree.build_tree(1).children) == 1

    def test_empty_owner_tree(self, file_tree):
        root = file_tree.build_tree(42)
        assert root.children == []


class TestDeleteFolder:
    def test_scoped_to_folder_prefix(self, file_tree):
        file_tree.add_file(make_metadata(1, "images/a.jpg"))
        file_tree.add_file(make_metadata(1, "images/sub/b.png"))
        file_tree.add_file(make_metadata(1, "images2/c.png"))
        file_tree.add_file(make_metadata(2, "images/d.jpg"))

        assert file_tree.delete_folder(1, "/images/") == 2
        assert file_tree.get_file(1, "images/a.jpg") is None
        assert file_tree.get_file(1, "images/sub/b.png") is None
        assert file_tree.get_file(1, "images2/c.png") is not None
        assert file_tree.get_file(2, "images/d.jpg") is not None

    def test_exact_path_match_counts(self, file_tree):
        file_tree.add_file(make_metadata(1, "docs/readme.txt"))
        assert file_tree.delete_folder(1, "docs/readme.txt") == 1

    def test_missing_folder(self, file_tree):
        file_tree.add_file(make_metadata(1, "images/a.jpg"))
        assert file_tree.delete_folder(1, "videos") == 0
        assert file_tree.delete_folder(1, "") == 0
        assert len(file_tree) == 1


class TestStats:
    def test_stats(self, file_tree):
        file_tree.add_file(make_metadata(1, "a.jpg", size=10))
        file_tree.add_file(make_metadata(1, "images/b.jpg", size=20))
        file_tree.add_file(make_metadata(1, "images/deep/nested/c.png", size=30))
        file_tree.add_file(make_metadata(2, "other.pdf", size=1000))

        stats = file_tree.get_stats(1)
        assert stats.total_files == 3
        assert stats.total_size == 60
        assert stats.files_by_extension == {"jpg": 2, "png": 1}
        assert stats.max_depth == 4

    def test_stats_for_unknown_owner(self, file_tree):
        assert dataclasses.asdict(file_tree.get_stats(99)) == {
            "total_files": 0,
            "total_size": 0,
            "files_by_extension": {},
            "max_depth": 0,
        }
