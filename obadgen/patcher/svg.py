"""
Bakes Open Badge verification data into SVG images.

The document is streamed through a SAX parser and written back event by
event. The root ``<svg>`` element gets the ``openbadges`` namespace
declaration, and its first child is made to be the badge marker::

    <svg xmlns="http://www.w3.org/2000/svg" xmlns:openbadges="http://openbadges.org">
        <openbadges:assertion verify="https://example.org/assertion.json"></openbadges:assertion>
        <!-- rest of SVG content -->
    </svg>

See https://www.imsglobal.org/sites/default/files/Badges/OBv2p0Final/baking/index.html#svgs
"""
import logging
from enum import Enum, auto
from typing import Optional
from xml.etree import ElementTree as ET
from xml.sax import SAXException, make_parser
from xml.sax.handler import feature_namespaces, property_lexical_handler
from xml.sax.saxutils import XMLGenerator
from xml.sax.xmlreader import AttributesNSImpl

from obadgen.constants import (
    ASSERTION_ELEMENT,
    OPENBADGES_NAMESPACE,
    OPENBADGES_PREFIX,
    SVG_NAMESPACE,
    VERIFY_ATTRIBUTE,
)
from obadgen.patcher.errors import ImageFormatError, VerifyAlreadySet

logger = logging.getLogger(__name__)

ASSERTION_NAME = (OPENBADGES_NAMESPACE, ASSERTION_ELEMENT)
VERIFY_NAME = (None, VERIFY_ATTRIBUTE)
XML_WHITESPACE = " \t\r\n"


class State(Enum):
    WAITING_FOR_ROOT = auto()
    PENDING_ASSERTION = auto()
    STREAMING = auto()


def is_svg_root(name) -> bool:
    uri, local_name = name
    return local_name.lower() == "svg" and uri in (None, SVG_NAMESPACE)


def verify_name(attrs: AttributesNSImpl):
    """
    Returns the name of the ``verify`` attribute of an assertion, or None.

    The attribute is matched by local name; one without a namespace is preferred.
    """
    if VERIFY_NAME in attrs:
        return VERIFY_NAME
    for name in attrs.getNames():
        if name[1] == VERIFY_ATTRIBUTE:
            return name
    return None


def with_verify(attrs: AttributesNSImpl, verify: str, name=VERIFY_NAME) -> AttributesNSImpl:
    """Returns a copy of ``attrs`` with the attribute ``name`` set to ``verify``."""
    values = dict(attrs.items())
    qnames = {n: attrs.getQNameByName(n) for n in attrs.getNames()}
    values[name] = verify
    qnames.setdefault(name, VERIFY_ATTRIBUTE)
    return AttributesNSImpl(values, qnames)


class BakingHandler(XMLGenerator):
    """
    Re-emits the SAX events of an SVG document, baking in the badge marker.

    Decisions are made by a three state machine:

    - ``WAITING_FOR_ROOT``: events are forwarded until the root ``<svg>``
      element, which gets the ``openbadges`` namespace declaration.
    - ``PENDING_ASSERTION``: the next event decides. An existing
      ``openbadges:assertion`` is kept, overwritten or rejected,
      anything else gets a new assertion inserted in front of it.
      Whitespace between the root and its first child is not an event here.
    - ``STREAMING``: everything else is forwarded unchanged.
    """

    def __init__(self, out, verify: str, fail_if_verify_present: bool = False):
        super().__init__(out, encoding="utf-8", short_empty_elements=True)
        self.verify = verify
        self.fail_if_verify_present = fail_if_verify_present
        self.state = State.WAITING_FOR_ROOT
        # declarations are held back until the element they belong to is written
        self._prefix_mappings = []

    def _declare_prefixes(self):
        for prefix, uri in self._prefix_mappings:
            super().startPrefixMapping(prefix, uri)
        self._prefix_mappings = []

    def _ensure_namespace(self):
        uri = dict(self._prefix_mappings).get(OPENBADGES_PREFIX)
        if uri is None:
            logger.info("Namespace 'openbadges' is *NOT* present!")
            self._prefix_mappings.append((OPENBADGES_PREFIX, OPENBADGES_NAMESPACE))
        elif uri == OPENBADGES_NAMESPACE:
            logger.info("Namespace 'openbadges' is present!")
        else:
            raise ImageFormatError(f"Prefix '{OPENBADGES_PREFIX}' is bound to '{uri}', "
                                   f"expected '{OPENBADGES_NAMESPACE}'")

    def _add_assertion(self):
        attrs = AttributesNSImpl({VERIFY_NAME: self.verify}, {VERIFY_NAME: VERIFY_ATTRIBUTE})
        super().startElementNS(ASSERTION_NAME, None, attrs)
        super().endElementNS(ASSERTION_NAME, None)

    def _first_child(self, name, attrs):
        """Handles the first element after ``<svg ...>``, returning the attributes to write it with."""
        if name != ASSERTION_NAME:
            logger.info("openbadges:assertion - not yet present (as first element after '<svg ...>') -> adding it!")
            self._add_assertion()
            return attrs

        verify_attr = verify_name(attrs)
        present = attrs.get(verify_attr) if verify_attr else None
        if present is None:
            # The attribute-less assertion is left as it is, and a new one precedes it
            logger.info("openbadges:assertion - present without 'verify' -> adding another one!")
            self._add_assertion()
        elif present == self.verify:
            logger.info("openbadges:assertion - verify is already set to the desired value!")
        elif self.fail_if_verify_present:
            raise VerifyAlreadySet(present=present, proposed=self.verify)
        else:
            logger.info("openbadges:assertion - verify is already set to another value -> overwriting!")
            attrs = with_verify(attrs, self.verify, verify_attr)
        return attrs

    def _leave_pending(self):
        if self.state is State.PENDING_ASSERTION:
            logger.info("openbadges:assertion - not yet present (as first child of '<svg ...>') -> adding it!")
            self._add_assertion()
            self.state = State.STREAMING

    # ContentHandler

    def startPrefixMapping(self, prefix, uri):
        self._prefix_mappings.append((prefix, uri))

    def startElementNS(self, name, qname, attrs):
        if self.state is State.WAITING_FOR_ROOT:
            if not is_svg_root(name):
                raise ImageFormatError(f"Root element is {name[1]!r}, expected 'svg'")
            self._ensure_namespace()
            self.state = State.PENDING_ASSERTION
        elif self.state is State.PENDING_ASSERTION:
            attrs = self._first_child(name, attrs)
            self.state = State.STREAMING
        self._declare_prefixes()
        super().startElementNS(name, qname, attrs)

    def endElementNS(self, name, qname):
        self._leave_pending()
        super().endElementNS(name, qname)

    def characters(self, content):
        if content.strip(XML_WHITESPACE):
            self._leave_pending()
        super().characters(content)

    def processingInstruction(self, target, data):
        self._leave_pending()
        super().processingInstruction(target, data)

    # LexicalHandler

    def comment(self, content):
        self._leave_pending()
        self._finish_pending_start_element()
        self._write(f"<!--{content}-->")

    def startDTD(self, name, public_id, system_id):
        if public_id:
            self._write(f'<!DOCTYPE {name} PUBLIC "{public_id}" "{system_id}">')
        elif system_id:
            self._write(f'<!DOCTYPE {name} SYSTEM "{system_id}">')
        else:
            self._write(f"<!DOCTYPE {name}>")

    def endDTD(self):
        pass

    # CDATA sections are written as escaped character data
    def startCDATA(self):
        pass

    def endCDATA(self):
        pass


def rewrite(input_path, output_path, verify: str, fail_if_verify_present: bool = False) -> None:
    """
    Bakes ``verify`` into an SVG image.

    Args:
        input_path: Path of the SVG to read.
        output_path: Path of the SVG to write; created or truncated.
        verify (str): The payload, a hosted assertion URL or a (signed) assertion.
        fail_if_verify_present (bool): Refuse to replace an assertion holding a different payload.

    Raises:
        VerifyAlreadySet: If ``fail_if_verify_present`` is set and the image carries another payload.
            The destination is left partially written.
        ImageFormatError: If the source is not well formed XML with an ``<svg>`` root.
        OSError: If reading or writing fails.
    """
    logger.debug("Opening input file '%s' and output file '%s' ...", input_path, output_path)
    with open(input_path, "rb") as source, open(output_path, "wb") as target:
        handler = BakingHandler(target, verify, fail_if_verify_present)
        parser = make_parser()
        parser.setFeature(feature_namespaces, True)
        parser.setContentHandler(handler)
        parser.setProperty(property_lexical_handler, handler)
        try:
            parser.parse(source)
        except SAXException as e:
            raise ImageFormatError(f"Failed to decode SVG: {e}") from e


def extract(input_path) -> Optional[str]:
    """Returns the payload baked into an SVG image, or None if there is none."""
    tag = f"{{{OPENBADGES_NAMESPACE}}}{ASSERTION_ELEMENT}"
    with open(input_path, "rb") as source:
        try:
            for _event, elem in ET.iterparse(source, events=("start",)):
                if elem.tag != tag:
                    continue
                if VERIFY_ATTRIBUTE in elem.attrib:
                    return elem.get(VERIFY_ATTRIBUTE)
                for key, value in elem.attrib.items():
                    if key.rpartition("}")[2] == VERIFY_ATTRIBUTE:
                        return value
        except ET.ParseError as e:
            raise ImageFormatError(f"Failed to decode SVG: {e}") from e
    return None
