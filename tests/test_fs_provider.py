# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""Unit tests for tinydav.fs_provider"""

import os
import shutil
import sys
import unittest

import pytest

from tests.util import A_TXT_DATA, A_TXT_ETAG, create_test_folder
from tinydav.dav_error import DAVError
from tinydav.fs_provider import FilesystemProvider, join_member_path, to_href_path


class FilesystemProviderTest(unittest.TestCase):
    """Read, write, and list files."""

    def setUp(self):
        self.root_path = create_test_folder("tinydav-test-provider")
        self.provider = FilesystemProvider(self.root_path, stat_workers=2)

    def tearDown(self):
        shutil.rmtree(self.root_path, ignore_errors=True)

    def testInit(self):
        self.assertRaises(
            ValueError, FilesystemProvider, os.path.join(self.root_path, "missing")
        )
        self.assertRaises(ValueError, FilesystemProvider, self.root_path, stat_workers=0)
        assert FilesystemProvider().root_folder_path is None
        assert "tinydav-test-provider" in repr(self.provider)

    def testMemberPath(self):
        assert join_member_path(os.curdir, "a.txt") == "a.txt"
        assert join_member_path("docs", "a.txt") == os.path.join("docs", "a.txt")

    def testReadFile(self):
        content = self.provider.read_file(os.path.join("docs", "a.txt"))
        assert content.data == A_TXT_DATA
        assert content.etag == A_TXT_ETAG
        assert content.path == os.path.join("docs", "a.txt")

        self.assertRaises(OSError, self.provider.read_file, "missing.txt")
        # Folders can't be read
        self.assertRaises(OSError, self.provider.read_file, "docs")

    def testWriteFile(self):
        path = os.path.join("docs", "b.txt")
        etag = self.provider.write_file(path, b"hello")
        assert etag == self.provider.read_file(path).etag
        assert self.provider.read_file(path).data == b"hello"

        # Overwrite with shorter content (truncate)
        self.provider.write_file(path, b"x")
        assert self.provider.read_file(path).data == b"x"

        # Parent folders are not created
        self.assertRaises(
            OSError,
            self.provider.write_file,
            os.path.join("missing", "b.txt"),
            b"hello",
        )

    def testListDirectory(self):
        entries = self.provider.get_directory_entries("docs")
        entries = {e.name: e for e in entries}
        assert sorted(entries.keys()) == ["a.txt", "sub"]
        assert entries["a.txt"].path == os.path.join("docs", "a.txt")
        assert entries["a.txt"].is_collection is False
        assert entries["sub"].path == os.path.join("docs", "sub")
        assert entries["sub"].is_collection is True

        # Members of the root are reported by name
        entries = self.provider.get_directory_entries(os.curdir)
        assert [(e.path, e.is_collection) for e in entries] == [("docs", True)]

        assert self.provider.get_directory_entries(os.path.join("docs", "sub")) == []

    def testListDirectoryErrors(self):
        with self.assertRaises(DAVError) as cm:
            self.provider.get_directory_entries("missing")
        assert cm.exception.value == 404
        assert cm.exception.context_info == "failed to read directory"

        # Not a folder
        with self.assertRaises(DAVError) as cm:
            self.provider.get_directory_entries(os.path.join("docs", "a.txt"))
        assert cm.exception.value == 404

    @pytest.mark.skipif(
        sys.platform != "linux", reason="requires byte string file names"
    )
    def testListDirectoryNonUtf8Name(self):
        """Undecodable bytes of a file name are replaced in the reported path."""
        docs = os.fsencode(os.path.join(self.root_path, "docs"))
        with open(os.path.join(docs, b"bad\xff.txt"), "wb") as f:
            f.write(b"x")

        entries = {e.path: e for e in self.provider.get_directory_entries("docs")}
        path = os.path.join("docs", "bad�.txt")
        assert path in entries
        assert entries[path].is_collection is False
        path.encode("utf-8")

        assert to_href_path("a.txt") == "a.txt"
        assert to_href_path("bad\udcff.txt") == "bad�.txt"
        assert to_href_path("äöü") == "äöü"

    @pytest.mark.skipif(sys.platform == "win32", reason="requires symlinks")
    def testListDirectoryBrokenLink(self):
        """A member that can't be stat'ed fails the whole listing."""
        os.symlink(
            os.path.join(self.root_path, "nowhere"),
            os.path.join(self.root_path, "docs", "broken"),
        )
        with self.assertRaises(DAVError) as cm:
            self.provider.get_directory_entries("docs")
        assert cm.exception.value == 500
        assert cm.exception.context_info is None


if __name__ == "__main__":
    unittest.main()
