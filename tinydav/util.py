# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Helpers shared by the TinyDAV modules: configuration access, logging setup,
request URL mapping, request body collection and response shortcuts.
"""

import importlib
import logging
import os
import re
import sys
from email.utils import formatdate
from hashlib import md5
from urllib.parse import quote, unquote, urlsplit

from tinydav import __version__
from tinydav.dav_error import (
    HTTP_BAD_REQUEST,
    HTTP_MULTI_STATUS,
    HTTP_NO_CONTENT,
    HTTP_NOT_MODIFIED,
    HTTP_REQUEST_ENTITY_TOO_LARGE,
    DAVError,
    as_DAVError,
    get_http_status_string,
)
from tinydav.xml_tools import xml_to_bytes

__docformat__ = "reStructuredText"

#: Name of the package logger; every module logger is a child of it
BASE_LOGGER_NAME = "tinydav"
_logger = logging.getLogger(BASE_LOGGER_NAME)

#: 'major.minor.micro' of the running interpreter
PYTHON_VERSION = "{}.{}.{}".format(*sys.version_info[:3])

#: Product tokens for the `Server` header and the startup banner.
#: server_cli shortens both when ``suppress_version_info`` is set.
public_tinydav_info = f"TinyDAV/{__version__}"
public_python_info = f"Python/{PYTHON_VERSION}"

#: Size of one `wsgi.input` read (bytes)
DEFAULT_BLOCK_SIZE = 8192
#: Maximum number of such reads per request body
DEFAULT_MAX_BODY_CHUNKS = 1000000

# '%' not followed by two hex digits
_re_bad_percent_escape = re.compile(r"%(?![0-9A-Fa-f]{2})")

# Verbosity -> level of the 'tinydav' logger
_VERBOSE_LEVELS = {
    0: logging.CRITICAL,
    1: logging.ERROR,
    2: logging.WARNING,
    3: logging.INFO,
}


class NO_DEFAULT:
    """Marker for a missing `default` argument."""


# ========================================================================
# Configuration
# ========================================================================


def get_dict_value(d, key_path, default=NO_DEFAULT):
    """Look up a dotted `key_path` like ``'fs_provider.stat_workers'`` in `d`.

    Raises:
        KeyError: if the path does not exist and no `default` was passed
    """
    value = d
    try:
        for key in key_path.split("."):
            value = value[key]
    except (KeyError, TypeError):
        if default is NO_DEFAULT:
            raise KeyError(key_path) from None
        return default
    return value


def get_dict_section(d, key_path):
    """Return the sub-dict at `key_path`, or ``{}`` if it is missing or empty.

    A YAML entry without value (``fs_provider:``) is loaded as None.
    """
    return get_dict_value(d, key_path, None) or {}


def deep_update(d, u):
    """Merge `u` into `d` in place, descending into nested dicts.

    Dicts from `u` are copied, so later updates of `d` do not modify `u`.
    """
    for key, value in u.items():
        if isinstance(value, dict):
            target = d.get(key)
            if isinstance(target, dict):
                deep_update(target, value)
            else:
                d[key] = deep_update({}, value)
        else:
            d[key] = value
    return d


def fix_path(path, config=None, *, must_exist=True):
    """Return `path` as absolute path (None if `path` is empty).

    '~' and environment variables are expanded. A relative path is taken
    relative to the folder of ``config["_config_file"]`` if set, else to the
    current working directory.

    Raises:
        ValueError: `must_exist` is set and the path does not exist
    """
    if not path:
        return None

    path = os.path.expandvars(os.path.expanduser(path))
    if not os.path.isabs(path):
        config_file = (config or {}).get("_config_file")
        base = os.path.dirname(config_file) if config_file else os.getcwd()
        path = os.path.abspath(os.path.join(base, path))

    if must_exist and not os.path.exists(path):
        raise ValueError(f"Path does not exist: {path!r}")
    return path


def dynamic_import_class(name):
    """Return the class `ClassName` for a ``'package.module.ClassName'`` string."""
    module_name, _, class_name = name.rpartition(".")
    if not module_name:
        raise ValueError(f"Expected 'module.ClassName', got {name!r}")
    module = importlib.import_module(module_name)
    return getattr(module, class_name)


# ========================================================================
# Logging
# ========================================================================


def init_logging(config):
    """Attach a stdout handler to the 'tinydav' logger and set its level.

    Called by TinyDAVApp unless ``logging.enable`` is false.

    ``verbose`` maps to the base logger level:
    0: CRITICAL, 1: ERROR, 2: WARNING (-q), 3: INFO (default), 4+: DEBUG (-v).

    From verbose 3 on, the module loggers listed in ``logging.enable_loggers``
    (e.g. ``["request_server"]``) are switched to DEBUG.
    """
    from tinydav.default_conf import DEFAULT_LOGGER_DATE_FORMAT, DEFAULT_LOGGER_FORMAT

    verbose = config.get("verbose", 3)
    log_opts = config.get("logging") or {}

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            log_opts.get("logger_format", DEFAULT_LOGGER_FORMAT),
            log_opts.get("logger_date_format", DEFAULT_LOGGER_DATE_FORMAT),
        )
    )

    logger = logging.getLogger(BASE_LOGGER_NAME)
    logger.setLevel(_VERBOSE_LEVELS.get(max(verbose, 0), logging.DEBUG))
    logger.propagate = False
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    logger.addHandler(handler)

    if verbose >= 3:
        for name in log_opts.get("enable_loggers") or []:
            get_module_logger(name.strip()).setLevel(logging.DEBUG)


def get_module_logger(name):
    """Return the logger 'tinydav.<name>' (`name` may already have the prefix)."""
    if not name.startswith(BASE_LOGGER_NAME + "."):
        name = f"{BASE_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


# ========================================================================
# Request URL
# ========================================================================


def re_encode_wsgi(s):
    """Return a PEP 3333 'latin-1' environ string decoded as UTF-8.

    `s` is returned unchanged if it was not UTF-8.
    """
    try:
        return s.encode("iso-8859-1").decode("utf-8")
    except UnicodeError:
        return s


def get_request_url(environ):
    """Return the percent-encoded request target (path and query string).

    cheroot and gunicorn provide the raw target as ``REQUEST_URI`` or
    ``RAW_URI``. Without it, the target is rebuilt by quoting
    ``SCRIPT_NAME + PATH_INFO``.
    """
    url = environ.get("REQUEST_URI") or environ.get("RAW_URI")
    if url:
        if not url.startswith("/"):
            # absolute-form, e.g. 'http://host:8080/path?query'
            parts = urlsplit(url)
            url = parts.path or "/"
            if parts.query:
                url = f"{url}?{parts.query}"
        return url

    path = environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", "")
    url = quote(re_encode_wsgi(path))
    if environ.get("QUERY_STRING"):
        url = f"{url}?{environ['QUERY_STRING']}"
    return url


def _unquote_segment(seg):
    if _re_bad_percent_escape.search(seg):
        raise DAVError(HTTP_BAD_REQUEST, f"Invalid URL encoding: {seg!r}")
    try:
        return unquote(seg, errors="strict")
    except UnicodeDecodeError as e:
        raise DAVError(
            HTTP_BAD_REQUEST, f"Invalid URL encoding: {seg!r}", src_exception=e
        ) from None


def resolve_url_path(url):
    """Map a request target to a relative file system path.

    The query string and one leading '/' are dropped, each '/'-separated
    segment is percent-decoded and the decoded parts are joined again with
    ``os.path.join()``. An empty result maps to ``os.curdir``.

    Decoded segments are joined as plain text, so an encoded '%2F' acts as a
    separator and never produces an absolute path.

    Example: ``'/docs/my%20file.txt?x=1'`` -> ``'docs/my file.txt'``

    Note:
        '.' and '..' segments are kept as they are.

    Raises:
        DAVError(HTTP_BAD_REQUEST): malformed percent-encoding
    """
    url = url.split("?", 1)[0]
    if url.startswith("/"):
        url = url[1:]

    decoded = "/".join(_unquote_segment(seg) for seg in url.split("/"))
    return os.path.join(*decoded.split("/")) or os.curdir


# ========================================================================
# Request body
# ========================================================================


def get_content_length(environ):
    """Return CONTENT_LENGTH as int (0 if missing, negative or malformed)."""
    try:
        return max(0, int(environ.get("CONTENT_LENGTH") or 0))
    except ValueError:
        return 0


def is_chunked(environ):
    """Return True for a request body sent with chunked transfer encoding."""
    return "chunked" in environ.get("HTTP_TRANSFER_ENCODING", "").lower()


def has_request_body(environ):
    """Return True if the client announced a request body."""
    return get_content_length(environ) > 0 or is_chunked(environ)


def stream_request_body(environ, block_size=DEFAULT_BLOCK_SIZE):
    """Yield the request body in chunks of at most `block_size` bytes.

    With CONTENT_LENGTH, exactly that many bytes are read. Without it,
    `wsgi.input` is read to EOF if the server terminates the stream
    (``wsgi.input_terminated`` or chunked encoding); otherwise the body is
    empty.

    Sets ``tinydav.some_input_read`` after the first chunk and
    ``tinydav.all_input_read`` when the body is complete.

    Raises:
        DAVError(HTTP_BAD_REQUEST): the stream ended early
    """
    if environ.get("CONTENT_LENGTH"):
        remaining = get_content_length(environ)
    elif environ.get("wsgi.input_terminated") or is_chunked(environ):
        remaining = None
    else:
        remaining = 0

    wsgi_input = environ["wsgi.input"]
    while remaining is None or remaining > 0:
        size = block_size if remaining is None else min(block_size, remaining)
        try:
            buf = wsgi_input.read(size)
        except OSError as e:
            raise DAVError(
                HTTP_BAD_REQUEST, "Incomplete request body", src_exception=e
            ) from None
        if not buf:
            if remaining:
                raise DAVError(HTTP_BAD_REQUEST, "Incomplete request body")
            break
        environ["tinydav.some_input_read"] = 1
        if remaining is not None:
            remaining -= len(buf)
        yield buf

    environ["tinydav.all_input_read"] = 1


def read_request_body(
    environ, block_size=DEFAULT_BLOCK_SIZE, *, max_chunks=DEFAULT_MAX_BODY_CHUNKS
):
    """Return the whole request body as bytes.

    Reading stops with 413 as soon as chunk number `max_chunks + 1` arrives;
    the limit counts reads, not bytes. The response then closes the
    connection and the partial body is discarded.

    Raises:
        DAVError(HTTP_REQUEST_ENTITY_TOO_LARGE):
        DAVError(HTTP_BAD_REQUEST): see stream_request_body()
    """
    chunks = []
    for buf in stream_request_body(environ, block_size):
        if len(chunks) == max_chunks:
            _logger.warning(f"Request body exceeds {max_chunks} chunks.")
            fail(HTTP_REQUEST_ENTITY_TOO_LARGE, add_headers=[("Connection", "close")])
        chunks.append(buf)
    return b"".join(chunks)


# ========================================================================
# Responses
# ========================================================================


def fail(value, context_info=None, **kwargs):
    """Raise a DAVError for a status code (or wrap an exception)."""
    if isinstance(value, Exception):
        e = as_DAVError(value)
    else:
        e = DAVError(value, context_info, **kwargs)
    _logger.debug(f"Raising {e!r}")
    raise e


def get_rfc1123_time(secs=None):
    """Return an HTTP date, e.g. ``'Sun, 06 Nov 1994 08:49:37 GMT'``."""
    return formatdate(timeval=secs, localtime=False, usegmt=True)


def send_status_response(environ, start_response, e, *, add_headers=None):
    """Send a status-only response for a DAVError or an int status code.

    204 and 304 have no body and no `Content-Type`. Other codes get the
    plain text `context_info` of the DAVError as body.
    """
    if not isinstance(e, DAVError):
        e = DAVError(e)

    headers = [("Date", get_rfc1123_time())]
    headers.extend(add_headers or [])
    headers.extend(e.add_headers)

    if e.value in (HTTP_NO_CONTENT, HTTP_NOT_MODIFIED):
        start_response(get_http_status_string(e), [("Content-Length", "0")] + headers)
        return [b""]

    content_type, body = e.get_response_page()
    start_response(
        get_http_status_string(e),
        [("Content-Type", content_type), ("Content-Length", str(len(body)))] + headers,
    )
    return [body]


def send_multi_status_response(environ, start_response, multistatus_el):
    """Send a '207 Multi-Status' response with the serialized element."""
    body = xml_to_bytes(multistatus_el)
    start_response(
        get_http_status_string(HTTP_MULTI_STATUS),
        [
            ("Content-Type", "application/xml; charset=utf-8"),
            ("Content-Length", str(len(body))),
            ("Date", get_rfc1123_time()),
        ],
    )
    return [body]


# ========================================================================
# ETags
# ========================================================================


def calc_hexdigest(data):
    """Return the MD5 hex digest (32 lowercase characters) of bytes or str.

    Used as content fingerprint (ETag), not as a security feature.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return md5(data).hexdigest()


def parse_if_match_header(value):
    """Return the entity tags of an `If-Match` header as list of plain strings.

    Quotes and a ``W/`` prefix are removed, so ``abc``, ``"abc"`` and
    ``W/"abc"`` all compare equal to the unquoted ETag we send.

    Raises:
        DAVError(HTTP_BAD_REQUEST): a tag contains a stray '"'
    """
    res = []
    for token in value.split(","):
        token = token.strip().removeprefix("W/")
        if len(token) >= 2 and token[0] == token[-1] == '"':
            token = token[1:-1]
        if '"' in token:
            raise DAVError(HTTP_BAD_REQUEST, f"Invalid ETag format: {value!r}")
        if token:
            res.append(token)
    return res
