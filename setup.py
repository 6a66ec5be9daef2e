#!/usr/bin/env python

from setuptools import find_packages, setup

from tinydav._version import __version__

with open("README.md", encoding="utf-8") as f:
    readme = f.read()

# cheroot is the server of the `tinydav` command
install_requires = ["cheroot", "defusedxml", "json5", "PyYAML"]
tests_require = ["pytest", "WebTest"]

setup(
    name="TinyDAV",
    version=__version__,
    author="Martin Wendt",
    author_email="wsgidav@wwwendt.de",
    description="Minimal WebDAV file server (PROPFIND, GET, PUT) based on WSGI",
    long_description=readme,
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 4 - Beta",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3 :: Only",
        "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
    ],
    keywords="webdav wsgi file server",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=install_requires,
    extras_require={"test": tests_require},
    zip_safe=False,
    entry_points={"console_scripts": ["tinydav = tinydav.server.server_cli:run"]},
)
