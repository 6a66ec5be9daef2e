# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
    Test helpers.

Example:
    root_path = create_test_folder("tinydav-test")
    ... test methods
    shutil.rmtree(root_path)
"""

import io
import os
import shutil
from tempfile import gettempdir

#: Content of 'docs/a.txt' and its MD5 fingerprint
A_TXT_DATA = b"hi"
A_TXT_ETAG = "49f68a5c8493ec2c0bf489821c21fc3b"

# ==============================================================================
# create_test_folder
# ==============================================================================


def write_test_file(path, data):
    with open(path, "wb") as f:
        f.write(data)
    return path


def create_test_folder(name):
    """Create a fresh folder in the temp directory::

        <name>/
            docs/
                a.txt  ('hi')
                sub/
    """
    path = os.path.join(gettempdir(), name)
    shutil.rmtree(path, ignore_errors=True)
    os.makedirs(os.path.join(path, "docs", "sub"))
    write_test_file(os.path.join(path, "docs", "a.txt"), A_TXT_DATA)
    return path


# ==============================================================================
# make_environ
# ==============================================================================


def make_environ(body=b"", *, content_length=None, **extra):
    """Return a minimal WSGI environ that reads the request body from `body`."""
    environ = {
        "REQUEST_METHOD": "PUT",
        "SCRIPT_NAME": "",
        "PATH_INFO": "/",
        "QUERY_STRING": "",
        "wsgi.input": io.BytesIO(body),
    }
    if content_length is not None:
        environ["CONTENT_LENGTH"] = str(content_length)
    environ.update(extra)
    return environ
