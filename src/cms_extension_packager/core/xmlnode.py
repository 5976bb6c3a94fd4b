"""Tagged XML tree used to read extension manifests.

ElementTree elements are converted into two node kinds:

- ``Scalar``: an element with text only (no attributes, no children)
- ``Element``: anything else, with its attributes, text and children

Children are grouped by tag name into lists, so a section read with
``children('filename')`` behaves the same whether the manifest declares
one ``<filename>`` or many.
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

from ..errors import ManifestError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Node:
    """Common accessors for both node kinds."""

    tag: str
    value: str = ""

    @property
    def attributes(self) -> dict[str, str]:
        return {}

    @property
    def sequence(self) -> tuple["Node", ...]:
        return ()

    @property
    def text(self) -> str:
        return self.value.strip()

    def attr(self, name: str, default: str = "") -> str:
        return self.attributes.get(name, default)

    def extract_attributes(self, defaults: dict[str, str] | None = None) -> dict[str, str]:
        """Project the node's attributes over caller defaults.

        Args:
            defaults: Values used for attributes the node does not carry

        Returns:
            Flat attribute mapping; every key of ``defaults`` is present

        Example:
            >>> node.extract_attributes({'folder': '', 'destination': ''})
            {'folder': 'media', 'destination': ''}
        """
        result = dict(defaults or {})
        result.update(self.attributes)
        return result

    def children(self, name: str) -> list["Node"]:
        return [n for n in self.sequence if n.tag == name]

    def child(self, name: str) -> "Node | None":
        for node in self.sequence:
            if node.tag == name:
                return node
        return None

    def child_text(self, name: str, default: str = "") -> str:
        node = self.child(name)
        return node.text if node is not None else default


@dataclass(frozen=True)
class Scalar(Node):
    """Text-only element."""


@dataclass(frozen=True)
class Element(Node):
    """Element with attributes and/or children.

    Attributes:
        attrs: Attribute mapping as declared
        items: Child nodes in document order
    """

    attrs: dict[str, str] = field(default_factory=dict)
    items: tuple[Node, ...] = ()

    @property
    def attributes(self) -> dict[str, str]:
        return self.attrs

    @property
    def sequence(self) -> tuple[Node, ...]:
        return self.items

    @property
    def grouped(self) -> dict[str, list[Node]]:
        """Children grouped by tag, in first-occurrence order."""
        groups: dict[str, list[Node]] = {}
        for node in self.items:
            groups.setdefault(node.tag, []).append(node)
        return groups


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1] if tag.startswith("{") else tag


def from_etree(elem: ET.Element) -> Node:
    """Convert an ElementTree element into a tagged node."""
    tag = _local_name(elem.tag)
    value = elem.text or ""
    children = [c for c in elem if isinstance(c.tag, str)]
    if not elem.attrib and not children:
        return Scalar(tag=tag, value=value)
    return Element(
        tag=tag,
        value=value,
        attrs={_local_name(k): v for k, v in elem.attrib.items()},
        items=tuple(from_etree(c) for c in children),
    )


def parse_xml(data: bytes | str, source: str = "<string>") -> Element:
    """Parse XML content into a tagged tree.

    The root is always returned as an Element, even when it carries
    neither attributes nor children.

    Args:
        data: XML document
        source: Name used in error messages

    Returns:
        Root element

    Raises:
        ManifestError: If the XML is malformed
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise ManifestError(f"Malformed XML in {source}: {e}") from e
    logger.debug("Parsed XML document %s", source)
    node = from_etree(root)
    if isinstance(node, Scalar):
        return Element(tag=node.tag, value=node.value)
    return node  # type: ignore[return-value]
