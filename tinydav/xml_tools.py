# (c) 2009-2024 Martin Wendt and contributors; see WsgiDAV https://github.com/mar10/wsgidav
# Licensed under the MIT license:
# http://www.opensource.org/licenses/mit-license.php
"""
Small wrapper for the etree package, used to build the PROPFIND multistatus
document.
"""

import logging

# Safe defaults for parsing
from defusedxml import ElementTree as etree

# defusedxml doesn't define these non-parsing related objects
from xml.etree.ElementTree import Element, SubElement, tostring

etree.Element = Element
etree.SubElement = SubElement
etree.tostring = tostring

__docformat__ = "reStructuredText"

_logger = logging.getLogger("tinydav")

#: Prepended verbatim, so the header does not depend on the etree flavor
XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>'

#: Status line that is reported for every listed member
MEMBER_STATUS = "HTTP/1.1 200 OK"


# ========================================================================
# XML
# ========================================================================


def string_to_xml(text):
    """Convert XML string into etree.Element."""
    try:
        return etree.XML(text)
    except Exception:
        _logger.error(f"Error parsing XML string: {text!r}")
        raise


def xml_to_bytes(element):
    """Serialize a {DAV:} element tree as UTF-8 with an encoding header.

    'DAV:' is emitted as the default namespace, so the result reads
    ``<multistatus xmlns="DAV:"><response>...``.
    """
    xml = etree.tostring(element, encoding="unicode", default_namespace="DAV:")
    return (XML_DECLARATION + xml).encode("utf-8")


def make_multistatus_el():
    return etree.Element("{DAV:}multistatus")


def add_member_response(multistatus_el, href, *, is_collection):
    """Append a <response> element for one directory member.

    ::

        <response>
          <status>HTTP/1.1 200 OK</status>
          <href>{href}</href>
          <propstat><prop><resourcetype><collection/></resourcetype></prop></propstat>
        </response>

    The <propstat> block is only added for collections.
    """
    response_el = etree.SubElement(multistatus_el, "{DAV:}response")
    etree.SubElement(response_el, "{DAV:}status").text = MEMBER_STATUS
    etree.SubElement(response_el, "{DAV:}href").text = href
    if is_collection:
        propstat_el = etree.SubElement(response_el, "{DAV:}propstat")
        prop_el = etree.SubElement(propstat_el, "{DAV:}prop")
        resourcetype_el = etree.SubElement(prop_el, "{DAV:}resourcetype")
        etree.SubElement(resourcetype_el, "{DAV:}collection")
    return response_el
