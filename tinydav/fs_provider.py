# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Implementation of a provider that serves resources from a file system.

:class:`~tinydav.fs_provider.FilesystemProvider` maps resolved request paths
to files and folders. It does not know about HTTP: read and write errors are
passed to the caller as ``OSError``, only the directory lister signals its
failures as :class:`~tinydav.dav_error.DAVError`.

Paths are used as-is: '..' segments are not removed and access is not
confined to `root_folder`.
"""

import os
import stat
from concurrent.futures import ThreadPoolExecutor, wait
from typing import List

from tinydav import util
from tinydav.dav_error import HTTP_INTERNAL_ERROR, HTTP_NOT_FOUND, DAVError

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)

#: Number of threads that stat directory members in parallel
DEFAULT_STAT_WORKERS = 8


# ========================================================================
# FileContent
# ========================================================================
class FileContent:
    """A file that was read completely, together with its fingerprint."""

    def __init__(self, path: str, etag: str, data: bytes):
        self.path = path
        self.etag = etag
        self.data = data

    def __repr__(self):
        return f"{self.__class__.__name__}({self.path!r}, etag={self.etag!r})"


# ========================================================================
# DirectoryEntry
# ========================================================================
class DirectoryEntry:
    """One member of a listed directory.

    `path` is the value that is reported as <href>.
    """

    def __init__(self, name: str, path: str, is_collection: bool):
        self.name = name
        self.path = path
        self.is_collection = is_collection

    def __repr__(self):
        kind = "collection" if self.is_collection else "file"
        return f"{self.__class__.__name__}({self.path!r}, {kind})"


def join_member_path(dir_path: str, name: str) -> str:
    """Return the reported path of a directory member.

    Members of the current directory are reported by name only
    (``'a.txt'`` instead of ``'./a.txt'``).
    """
    if dir_path == os.curdir:
        return name
    return os.path.join(dir_path, name)


def to_href_path(path: str) -> str:
    """Return `path` as text that can be encoded as UTF-8.

    ``os.listdir()`` returns names that are not valid UTF-8 with surrogate
    escapes; each undecodable byte becomes U+FFFD.
    """
    return os.fsencode(path).decode("utf-8", "replace")


# ========================================================================
# FilesystemProvider
# ========================================================================
class FilesystemProvider:
    """Read, write, and list files below an optional root folder.

    Args:
        root_folder (str | None): prepended to all paths. If None, paths are
            used relative to the current working directory.
        stat_workers (int): max. number of threads used to stat the members
            of a listed directory
    """

    def __init__(self, root_folder=None, *, stat_workers=DEFAULT_STAT_WORKERS):
        if root_folder is not None:
            root_folder = os.path.abspath(root_folder)
            if not os.path.isdir(root_folder):
                raise ValueError(f"Invalid root path: {root_folder}")
        if stat_workers < 1:
            raise ValueError(f"Invalid stat_workers: {stat_workers!r}")

        self.root_folder_path = root_folder
        self.stat_workers = stat_workers

    def __repr__(self):
        root = self.root_folder_path or os.curdir
        return f"{self.__class__.__name__} for path {root!r}"

    def _loc_to_file_path(self, path: str) -> str:
        """Return the file system path for a resolved request path."""
        if self.root_folder_path is None:
            return path
        return os.path.join(self.root_folder_path, path)

    def read_file(self, path: str) -> FileContent:
        """Read a file completely and calculate its ETag.

        Raises:
            OSError: missing file, is a directory, permission denied, ...
        """
        fp = self._loc_to_file_path(path)
        with open(fp, "rb") as f:
            data = f.read()
        return FileContent(path, util.calc_hexdigest(data), data)

    def write_file(self, path: str, data: bytes) -> str:
        """Create or overwrite a file and return the ETag of the new content.

        Parent folders are not created.

        Raises:
            OSError:
        """
        fp = self._loc_to_file_path(path)
        with open(fp, "wb") as f:
            f.write(data)
        _logger.debug(f"Wrote {len(data)} bytes to {fp!r}")
        return util.calc_hexdigest(data)

    def get_directory_entries(self, path: str) -> List[DirectoryEntry]:
        """Return the direct members of a folder (in ``os.listdir()`` order).

        All members are stat'ed in parallel (symlinks are followed). If any of
        them fails, the whole listing fails.

        Raises:
            DAVError(HTTP_NOT_FOUND): the folder could not be listed
            DAVError(HTTP_INTERNAL_ERROR): a member could not be stat'ed
        """
        fp = self._loc_to_file_path(path)
        try:
            names = os.listdir(fp)
        except OSError as e:
            raise DAVError(
                HTTP_NOT_FOUND, "failed to read directory", src_exception=e
            ) from None

        if not names:
            return []

        with ThreadPoolExecutor(
            max_workers=min(self.stat_workers, len(names)),
            thread_name_prefix="tinydav-stat",
        ) as pool:
            futures = [pool.submit(os.stat, os.path.join(fp, n)) for n in names]
            wait(futures)

        res = []
        for name, future in zip(names, futures):
            try:
                st = future.result()
            except OSError as e:
                _logger.error(f"Could not stat {os.path.join(fp, name)!r}: {e}")
                raise DAVError(HTTP_INTERNAL_ERROR, src_exception=e) from None
            res.append(
                DirectoryEntry(
                    name,
                    to_href_path(join_member_path(path, name)),
                    stat.S_ISDIR(st.st_mode),
                )
            )
        return res
