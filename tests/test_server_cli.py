# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""Unit tests for tinydav.server.server_cli"""

import os
import shutil
import unittest
from tempfile import mkdtemp

import pytest

from tinydav.default_conf import DEFAULT_CONFIG
from tinydav.server import server_cli
from tinydav.tinydav_app import TinyDAVApp


class ConfigFileTest(unittest.TestCase):
    """Read YAML and JSON5 configuration files."""

    def setUp(self):
        self.tmp_path = mkdtemp(prefix="tinydav-test-cli")

    def tearDown(self):
        shutil.rmtree(self.tmp_path, ignore_errors=True)

    def _write(self, name, text):
        path = os.path.join(self.tmp_path, name)
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        return path

    def testYaml(self):
        path = self._write(
            "tinydav.yaml",
            "port: 8123\n"
            "root_path: '.'\n"
            "fs_provider:\n"
            "  stat_workers: 2\n",
        )
        conf = server_cli._read_config_file(path, 3)
        assert conf["port"] == 8123
        assert conf["fs_provider"] == {"stat_workers": 2}
        assert conf["_config_file"] == path
        assert conf["_config_root"] == self.tmp_path

        # root_path is relative to the config file
        conf["logging"] = {"enable": False}
        app = TinyDAVApp(conf)
        assert app.provider.root_folder_path == self.tmp_path
        assert app.provider.stat_workers == 2

    def testEmptyYaml(self):
        path = self._write("empty.yaml", "")
        conf = server_cli._read_config_file(path, 3)
        assert conf["_config_file"] == path

    def testJson5(self):
        path = self._write(
            "tinydav.json",
            "{\n"
            "  // comments and trailing commas are allowed\n"
            "  host: '0.0.0.0',\n"
            '  "block_size": 4096,\n'
            "}\n",
        )
        conf = server_cli._read_config_file(path, 3)
        assert conf["host"] == "0.0.0.0"
        assert conf["block_size"] == 4096

    def testUnsupported(self):
        path = self._write("tinydav.ini", "[x]\n")
        self.assertRaises(RuntimeError, server_cli._read_config_file, path, 3)
        self.assertRaises(
            RuntimeError,
            server_cli._read_config_file,
            os.path.join(self.tmp_path, "missing.yaml"),
            3,
        )


class CommandLineTest(unittest.TestCase):
    """Merge command line options into the configuration."""

    def setUp(self):
        self.tmp_path = mkdtemp(prefix="tinydav-test-cli")

    def tearDown(self):
        shutil.rmtree(self.tmp_path, ignore_errors=True)

    def testDefaults(self):
        _cli_opts, config = server_cli._init_config(["--no-config", "-q"])
        assert config["port"] == DEFAULT_CONFIG["port"]
        assert config["host"] == "localhost"
        assert config["server"] == "cheroot"
        assert config["root_path"] is None
        assert config["verbose"] == 2

    def testOptions(self):
        _cli_opts, config = server_cli._init_config(
            [
                "--no-config",
                "-p",
                "8081",
                "-H",
                "0.0.0.0",
                "--root",
                self.tmp_path,
                "--server",
                "wsgiref",
                "-vv",
            ]
        )
        assert config["port"] == 8081
        assert config["host"] == "0.0.0.0"
        assert config["root_path"] == os.path.abspath(self.tmp_path)
        assert config["server"] == "wsgiref"
        assert config["verbose"] == 5

    def testConfigFile(self):
        path = os.path.join(self.tmp_path, "my.yaml")
        with open(path, "w", encoding="utf-8") as f:
            f.write("port: 9000\nhost: 127.0.0.1\nmax_body_chunks: 10\n")

        _cli_opts, config = server_cli._init_config(["-q", "--config", path])
        assert config["port"] == 9000
        assert config["host"] == "127.0.0.1"
        assert config["max_body_chunks"] == 10
        assert config["block_size"] == DEFAULT_CONFIG["block_size"]

        # Command line overrides file
        _cli_opts, config = server_cli._init_config(
            ["-q", "--config", path, "--port", "9001"]
        )
        assert config["port"] == 9001

    def testVerbose(self):
        path = os.path.join(self.tmp_path, "quiet.yaml")
        with open(path, "w", encoding="utf-8") as f:
            f.write("verbose: 1\n")

        # The config file wins unless -v or -q is passed
        _cli_opts, config = server_cli._init_config(["--config", path])
        assert config["verbose"] == 1
        _cli_opts, config = server_cli._init_config(["--config", path, "-v"])
        assert config["verbose"] == 4
        _cli_opts, config = server_cli._init_config(["--config", path, "-v", "-q"])
        assert config["verbose"] == 1

    def testVersion(self):
        with pytest.raises(SystemExit) as cm:
            server_cli._init_config(["--version"])
        assert cm.value.code == 0

    def testInvalidOptions(self):
        with pytest.raises(SystemExit):
            server_cli._init_config(["--root", os.path.join(self.tmp_path, "missing")])
        with pytest.raises(SystemExit):
            server_cli._init_config(["--server", "gunicorn"])
        with pytest.raises(SystemExit):
            server_cli._init_config(["-c", os.path.join(self.tmp_path, "missing.yaml")])

    def testHopByHopFilter(self):
        """wsgiref must not see 'Connection' headers."""
        sent = []

        def _app(environ, start_response):
            start_response(
                "200 OK", [("Content-Type", "text/plain"), ("Connection", "close")]
            )
            return [b""]

        def _start_response(status, headers, exc_info=None):
            sent.append((status, headers))

        app = server_cli._strip_hop_by_hop_headers(_app)
        assert app({}, _start_response) == [b""]
        assert sent == [("200 OK", [("Content-Type", "text/plain")])]


if __name__ == "__main__":
    unittest.main()
