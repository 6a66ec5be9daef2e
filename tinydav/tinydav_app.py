# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
The WSGI application object that is handed to the server.

:class:`TinyDAVApp` merges the options into :data:`DEFAULT_CONFIG`, validates
them, sets up logging and builds the application stack::

    ErrorPrinter -> (other middleware) -> RequestServer -> FilesystemProvider

Every request gets these ``environ`` entries:

``tinydav.config``
    The merged configuration dict.
``tinydav.provider``
    The :class:`~tinydav.fs_provider.FilesystemProvider`.
``tinydav.verbose``
    The verbosity level (0-4+).
"""

import copy
import inspect
import platform
import time

from tinydav import __version__, util
from tinydav.default_conf import DEFAULT_CONFIG
from tinydav.fs_provider import FilesystemProvider
from tinydav.mw.base_mw import BaseMiddleware
from tinydav.request_server import RequestServer

__docformat__ = "reStructuredText"

_logger = util.get_module_logger(__name__)

# (key path, minimum) of options that must be integers
_INT_OPTIONS = (
    ("port", 0),
    ("block_size", 1),
    ("max_body_chunks", 1),
    ("fs_provider.stat_workers", 1),
    ("verbose", 0),
)


def _check_config(config):
    """Raise ValueError listing every invalid option."""
    errors = []
    for key_path, min_value in _INT_OPTIONS:
        val = util.get_dict_value(config, key_path, None)
        # bool is an int subclass, but `port: yes` is a mistake
        if type(val) is not int or val < min_value:
            errors.append(f"Option {key_path!r} must be an integer >= {min_value}.")

    root_path = config.get("root_path")
    if root_path is not None and not isinstance(root_path, str):
        errors.append(f"Option 'root_path' must be a string: {root_path!r}.")

    if not isinstance(config.get("middleware_stack"), (list, tuple)):
        errors.append("Option 'middleware_stack' must be a list.")

    if errors:
        raise ValueError("Invalid configuration:\n  - " + "\n  - ".join(errors))
    return True


# ========================================================================
# TinyDAVApp
# ========================================================================
class TinyDAVApp:
    def __init__(self, config=None):
        self.config = util.deep_update(copy.deepcopy(DEFAULT_CONFIG), config or {})
        config = self.config

        if config["logging"].get("enable") is not False:
            util.init_logging(config)

        _check_config(config)
        self.verbose = config["verbose"]

        self.provider = FilesystemProvider(
            util.fix_path(config.get("root_path"), config),
            stat_workers=util.get_dict_section(config, "fs_provider").get(
                "stat_workers", 8
            ),
        )
        self.request_server = RequestServer(self.provider, config)
        self.middleware = self._build_middleware_stack(config["middleware_stack"])
        self.application = (
            self.middleware[0] if self.middleware else self.request_server
        )

        _logger.info(
            f"TinyDAV/{__version__} Python/{util.PYTHON_VERSION} "
            f"{platform.platform(aliased=True)}"
        )
        _logger.debug(f"Middleware stack: {self.middleware}")
        _logger.info(f"Serving {self.provider}")
        _logger.warning(
            "Request paths are not confined to the root folder and "
            "there is no authentication: only serve trusted clients."
        )

    def _build_middleware_stack(self, entries):
        """Instantiate `entries` around the RequestServer.

        Return the active middleware, outermost first.
        """
        stack = []
        next_app = self.request_server
        # Each entry wraps the one after it, so build from the inside out
        for entry in reversed(entries):
            if isinstance(entry, str):
                entry = util.dynamic_import_class(entry)
            if inspect.isclass(entry):
                if not issubclass(entry, BaseMiddleware):
                    raise ValueError(
                        f"Middleware class must extend BaseMiddleware: {entry}"
                    )
                app = entry(self, next_app, self.config)
            else:
                app = entry

            is_disabled = getattr(app, "is_disabled", None)
            if callable(is_disabled) and is_disabled():
                _logger.warning(f"Skipping disabled middleware {app!r}.")
                continue
            stack.insert(0, app)
            next_app = app
        return stack

    def __call__(self, environ, start_response):
        environ["tinydav.config"] = self.config
        environ["tinydav.provider"] = self.provider
        environ["tinydav.verbose"] = self.verbose

        start_time = time.time()

        def _start_response_wrapper(status, response_headers, exc_info=None):
            names = [name.lower() for name, _value in response_headers]
            for name in set(names):
                if names.count(name) > 1:
                    _logger.error(f"Duplicate header in response: {name}")

            # A body that was announced but not read completely is still in
            # the socket, so the connection cannot be reused.
            if (
                util.has_request_body(environ)
                and not environ.get("tinydav.all_input_read")
                and "connection" not in names
            ):
                _logger.debug("Request body not consumed: closing connection.")
                response_headers.append(("Connection", "close"))

            if self.verbose >= 3:
                self._log_request(environ, status, time.time() - start_time)
            return start_response(status, response_headers, exc_info)

        app_iter = self.application(environ, _start_response_wrapper)
        try:
            yield from app_iter
        finally:
            if hasattr(app_iter, "close"):
                app_iter.close()

    def _log_request(self, environ, status, elapsed):
        extra = []
        for key, label in (
            ("CONTENT_LENGTH", "length"),
            ("HTTP_TRANSFER_ENCODING", "transfer-enc"),
            ("HTTP_DEPTH", "depth"),
            ("HTTP_IF_MATCH", "if-match"),
        ):
            if environ.get(key):
                extra.append(f"{label}={environ[key]}")
        if self.verbose >= 4 and environ.get("HTTP_USER_AGENT"):
            extra.append(f"agent={environ['HTTP_USER_AGENT']!r}")
        extra.append(f"elap={elapsed:.3f}sec")

        _logger.info(
            f"{environ.get('REMOTE_ADDR', '-')} "
            f'"{environ.get("REQUEST_METHOD")} {util.get_request_url(environ)}" '
            f"{', '.join(extra)} -> {status}"
        )
