"""
server_cli
==========

:Author: Martin Wendt
:Copyright: Licensed under the MIT license, see LICENSE file in this package.

The `tinydav` command: build a configuration and serve TinyDAVApp with cheroot
or wsgiref.

Options are taken from, in increasing priority:

    1. :data:`~tinydav.default_conf.DEFAULT_CONFIG`
    2. a YAML or JSON5 file (``--config FILE``; else ``tinydav.yaml`` or
       ``tinydav.json`` in the current folder, unless ``--no-config``)
    3. ``--host``, ``--port``, ``--root``, ``--server``, ``-v`` and ``-q``
"""

import argparse
import copy
import logging
import os
import sys

import yaml
from json5 import load as json_load

from tinydav import __version__, util
from tinydav.default_conf import DEFAULT_CONFIG, DEFAULT_VERBOSE
from tinydav.tinydav_app import TinyDAVApp

__docformat__ = "reStructuredText"

#: Looked up in the current folder if no --config is passed
DEFAULT_CONFIG_FILES = ("tinydav.yaml", "tinydav.json")

_logger = logging.getLogger("tinydav")

_DESCRIPTION = """\
Serve a folder with a minimal WebDAV protocol (PROPFIND, GET, PUT).

Examples:

  Serve the current folder on http://localhost:8000:
    tinydav

  Serve /temp on all interfaces:
    tinydav --host=0.0.0.0 --port=80 --root=/temp

WARNING: there is no authentication and request paths are not confined to
the root folder. Only use this for trusted clients.
"""


def _abs_path(value):
    return os.path.abspath(os.path.expanduser(value))


def _init_command_line_options(args=None):
    """Return (options dict, parser) for the command line `args`."""
    parser = argparse.ArgumentParser(
        prog="tinydav",
        description=_DESCRIPTION,
        epilog="Licensed under the MIT license.",
        allow_abbrev=False,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("-p", "--port", type=int, help="port (default: 8000)")
    # '-h' is --help
    parser.add_argument(
        "-H", "--host", help="interface to bind (default: localhost, 0.0.0.0: all)"
    )
    parser.add_argument(
        "-r",
        "--root",
        dest="root_path",
        type=_abs_path,
        help="folder that request paths are relative to (default: current folder)",
    )
    parser.add_argument(
        "--server",
        choices=sorted(SUPPORTED_SERVERS),
        help="WSGI server (default: cheroot)",
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="more output (repeatable)"
    )
    parser.add_argument(
        "-q", "--quiet", action="count", default=0, help="less output (repeatable)"
    )

    config_group = parser.add_mutually_exclusive_group()
    config_group.add_argument(
        "-c",
        "--config",
        dest="config_file",
        type=_abs_path,
        help="YAML or JSON5 file (default: tinydav.yaml or tinydav.json)",
    )
    config_group.add_argument(
        "--no-config", action="store_true", help="ignore default configuration files"
    )
    parser.add_argument(
        "-V", "--version", action="version", version=f"TinyDAV/{__version__}"
    )

    opts = parser.parse_args(args)

    if opts.root_path and not os.path.isdir(opts.root_path):
        parser.error(f"{opts.root_path} is not a directory")

    if opts.config_file:
        if not os.path.isfile(opts.config_file):
            parser.error(f"Could not find configuration file {opts.config_file}")
    elif not opts.no_config:
        for name in DEFAULT_CONFIG_FILES:
            if os.path.isfile(name):
                opts.config_file = os.path.abspath(name)
                break

    cli_opts = vars(opts)
    # None: keep the configured verbosity
    delta = cli_opts.pop("verbose") - cli_opts.pop("quiet")
    cli_opts["verbose"] = DEFAULT_VERBOSE + delta if delta else None
    return cli_opts, parser


def _read_config_file(config_file, _verbose):
    """Return the options of a '.yaml' or '.json' (JSON5) file as dict.

    ``_config_file`` and ``_config_root`` are added, so relative paths in the
    file can be resolved.
    """
    config_file = os.path.abspath(config_file)
    if not os.path.exists(config_file):
        raise RuntimeError(f"Couldn't open configuration file {config_file!r}.")

    if config_file.endswith(".json"):
        loader = json_load
    elif config_file.endswith(".yaml"):
        loader = yaml.safe_load
    else:
        raise RuntimeError(
            f"Unsupported config file format (expected yaml or json): {config_file}"
        )

    with open(config_file, encoding="utf-8-sig") as fp:
        # An empty YAML file is loaded as None
        conf = loader(fp) or {}

    conf["_config_file"] = config_file
    conf["_config_root"] = os.path.dirname(config_file)
    return conf


def _init_config(args=None):
    """Return (command line options, merged configuration dict)."""
    cli_opts, _parser = _init_command_line_options(args)

    config = copy.deepcopy(DEFAULT_CONFIG)
    config["_config_file"] = None
    config["_config_root"] = os.getcwd()

    if cli_opts["config_file"]:
        util.deep_update(
            config, _read_config_file(cli_opts["config_file"], cli_opts["verbose"])
        )

    for key in ("port", "host", "server", "root_path", "verbose"):
        if cli_opts.get(key) is not None:
            config[key] = cli_opts[key]

    if config["verbose"] >= 3:
        print(f"Configuration file: {config['_config_file'] or '(none)'}")

    if config["suppress_version_info"]:
        util.public_tinydav_info = "TinyDAV"
        util.public_python_info = f"Python/{sys.version_info[0]}"

    return cli_opts, config


def _run_cheroot(app, config, _server):
    """Run TinyDAV using cheroot.server (https://cheroot.cherrypy.dev/)."""
    from cheroot import wsgi

    version = (
        f"{util.public_tinydav_info} {wsgi.Server.version} {util.public_python_info}"
    )
    _logger.info(f"Running {version}")
    _logger.info(f"Serving on http://{config['host']}:{config['port']} ...")

    server_args = {
        "bind_addr": (config["host"], config["port"]),
        "wsgi_app": app,
        "server_name": version,
        "numthreads": 50,
    }
    server_args.update(util.get_dict_section(config, "server_args"))
    server = wsgi.Server(**server_args)

    try:
        server.start()
    except KeyboardInterrupt:
        _logger.warning("Caught Ctrl-C, shutting down...")
    finally:
        server.stop()


def _strip_hop_by_hop_headers(app):
    """Return `app` wrapped so that hop-by-hop headers like 'Connection' are dropped.

    wsgiref rejects them (and closes every connection after one request).
    """
    from wsgiref.util import is_hop_by_hop

    def _app(environ, start_response):
        def _start_response(status, response_headers, exc_info=None):
            response_headers = [
                (k, v) for k, v in response_headers if not is_hop_by_hop(k)
            ]
            return start_response(status, response_headers, exc_info)

        return app(environ, _start_response)

    return _app


def _run_wsgiref(app, config, _server):
    """Run TinyDAV using wsgiref.simple_server (single threaded)."""
    from wsgiref.simple_server import WSGIRequestHandler, make_server

    version = f"{util.public_tinydav_info} {WSGIRequestHandler.server_version}"
    _logger.info(f"Running {version} ...")
    _logger.warning("wsgiref is single threaded and not meant for production.")

    WSGIRequestHandler.server_version = version
    httpd = make_server(config["host"], config["port"], _strip_hop_by_hop_headers(app))
    try:
        httpd.serve_forever()
    except KeyboardInterrupt:
        _logger.warning("Caught Ctrl-C, shutting down...")


SUPPORTED_SERVERS = {
    "cheroot": _run_cheroot,
    "wsgiref": _run_wsgiref,
}


def run():
    _cli_opts, config = _init_config()

    # TinyDAVApp calls util.init_logging(config)
    config["logging"]["enable"] = True
    app = TinyDAVApp(config)

    handler = SUPPORTED_SERVERS.get(config["server"])
    if not handler:
        raise RuntimeError(
            f"Unsupported server type {config['server']!r} "
            f"(expected one of {', '.join(SUPPORTED_SERVERS)})"
        )
    handler(app, config, config["server"])


if __name__ == "__main__":
    run()
