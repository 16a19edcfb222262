# targetgen
# Copyright (c) 2017-2020 Arm Limited
# Copyright (c) 2021-2023 Chris Reed
# Copyright (c) 2026 targetgen authors
# SPDX-License-Identifier: Apache-2.0
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from dataclasses import (dataclass, field)
from enum import Enum
import io
import logging
from typing import (Dict, IO, Iterator, List, Optional, Union)
from xml.etree.ElementTree import (Element, ElementTree, ParseError)

from ..core.exceptions import (DuplicateDevice, MalformedDescriptor)
from ..utility.mask import parse_int

LOG = logging.getLogger(__name__)

class NodeKind(Enum):
    """@brief Level of a node in the device hierarchy."""
    PACK = 0
    FAMILY = 1
    SUBFAMILY = 2
    DEVICE = 3
    VARIANT = 4

## Map from XML tag to node kind and the attribute holding the node's name.
_NODE_TAGS = {
    'family': (NodeKind.FAMILY, 'Dfamily'),
    'subFamily': (NodeKind.SUBFAMILY, 'DsubFamily'),
    'device': (NodeKind.DEVICE, 'Dname'),
    'variant': (NodeKind.VARIANT, 'Dvariant'),
    }

@dataclass(frozen=True)
class ProcessorDecl:
    """@brief A `<processor>` element, with only the attributes written on it."""
    attributes: Dict[str, str] = field(default_factory=dict)
    location: str = ""

    @property
    def pname(self) -> Optional[str]:
        """@brief The Pname attribute. Optional if there is only one processor."""
        return self.attributes.get('Pname')

    @property
    def dcore(self) -> Optional[str]:
        return self.attributes.get('Dcore')

    def inherit(self, parent: Optional["ProcessorDecl"]) -> "ProcessorDecl":
        """@brief Return a copy with attributes not set on this declaration taken from `parent`."""
        if parent is None:
            return self
        attrs = dict(parent.attributes)
        attrs.update(self.attributes)
        return ProcessorDecl(attrs, self.location)

@dataclass(frozen=True)
class MemoryDecl:
    """@brief A `<memory>` element.

    Attributes that are not written in the document are None.
    """
    ## The 'name' attribute, or 'id' for the legacy form, or a name generated from the range.
    name: str
    start: int
    size: int
    ## True if the name came from a legacy 'id' attribute such as IROM1 or IRAM1.
    is_legacy_id: bool = False
    access: Optional[str] = None
    default: bool = False
    startup: bool = False
    uninit: bool = False
    alias: Optional[str] = None
    pname: Optional[str] = None
    location: str = ""

@dataclass(frozen=True)
class AlgorithmRef:
    """@brief An `<algorithm>` element referencing a flash algorithm in the pack."""
    ## Path of the algorithm image as written in the document.
    path: str
    start: int
    size: int
    ram_start: Optional[int] = None
    ram_size: Optional[int] = None
    default: bool = False
    style: Optional[str] = None
    pname: Optional[str] = None
    location: str = ""

@dataclass
class FamilyNode:
    """@brief One node of the device hierarchy.

    Nodes only hold what is declared on their own element. Inheritance from ancestors is left to
    the resolver. Parent and children are stored as indices into the owning FamilyTree.
    """
    index: int
    kind: NodeKind
    name: str
    depth: int
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)
    location: str = ""
    vendor: Optional[str] = None
    description: Optional[str] = None
    processors: List[ProcessorDecl] = field(default_factory=list)
    memories: List[MemoryDecl] = field(default_factory=list)
    algorithms: List[AlgorithmRef] = field(default_factory=list)
    tree: Optional["FamilyTree"] = field(default=None, repr=False, compare=False)

    @property
    def is_leaf_device(self) -> bool:
        """@brief Whether the node is a concrete device variant.

        This is every variant, plus every device with no variant children.
        """
        if self.kind is NodeKind.VARIANT:
            return True
        if self.kind is NodeKind.DEVICE:
            assert self.tree is not None
            return not any(self.tree[c].kind is NodeKind.VARIANT for c in self.children)
        return False

    def ancestors(self) -> Iterator["FamilyNode"]:
        """@brief Iterate from this node up to the root, this node first."""
        assert self.tree is not None
        node: Optional[FamilyNode] = self
        while node is not None:
            yield node
            node = self.tree[node.parent] if node.parent is not None else None

class FamilyTree:
    """@brief Arena of FamilyNode objects for one family description document.

    Node 0 is a root node of kind PACK, with the `<family>` elements as its children.
    """

    def __init__(self, pack_vendor: Optional[str] = None, pack_name: Optional[str] = None,
            pack_version: Optional[str] = None) -> None:
        self.pack_vendor = pack_vendor
        self.pack_name = pack_name
        self.pack_version = pack_version
        self.nodes: List[FamilyNode] = []

    @property
    def root(self) -> FamilyNode:
        return self.nodes[0]

    def add_node(self, kind: NodeKind, name: str, parent: Optional[int], location: str) -> FamilyNode:
        depth = 0 if parent is None else self.nodes[parent].depth + 1
        node = FamilyNode(index=len(self.nodes), kind=kind, name=name, depth=depth, parent=parent,
                location=location, tree=self)
        self.nodes.append(node)
        if parent is not None:
            self.nodes[parent].children.append(node.index)
        return node

    def iter_variants(self) -> Iterator[FamilyNode]:
        """@brief Iterate over concrete device variants in document order."""
        for node in self.nodes:
            if node.is_leaf_device:
                yield node

    def find(self, name: str) -> Optional[FamilyNode]:
        """@brief Return the device or variant node with the given name, or None."""
        for node in self.nodes:
            if node.kind in (NodeKind.DEVICE, NodeKind.VARIANT) and node.name == name:
                return node
        return None

    def __getitem__(self, index: int) -> FamilyNode:
        return self.nodes[index]

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[FamilyNode]:
        return iter(self.nodes)

    def __repr__(self) -> str:
        return "<FamilyTree@%x pack=%s.%s nodes=%d>" % (id(self), self.pack_vendor, self.pack_name, len(self.nodes))

def _get_bool_attribute(elem: Element, name: str, default: bool = False) -> bool:
    """@brief Extract an XML attribute with a boolean value.

    Supports "true"/"false" or "1"/"0" as the attribute values. Leading and trailing whitespace
    is stripped, and the comparison is case-insensitive.

    @param elem ElementTree.Element object.
    @param name String for the attribute name.
    @param default An optional default value if the attribute is missing. If not provided,
        the default is False.
    """
    if name not in elem.attrib:
        return default
    else:
        value = elem.attrib[name].strip().lower()
        if value in ("true", "1"):
            return True
        elif value in ("false", "0"):
            return False
        else:
            return default

class _Parser:
    """@brief Recursive descent over the family/subFamily/device/variant elements."""

    def __init__(self, document: ElementTree) -> None:
        self._doc = document
        root = document.getroot()
        release = root.find('releases/release')
        self._tree = FamilyTree(
                pack_vendor=root.findtext('vendor'),
                pack_name=root.findtext('name'),
                pack_version=release.attrib.get('version') if release is not None else None,
                )
        # Device and variant names seen so far.
        self._names: Dict[str, str] = {}

    def parse(self) -> FamilyTree:
        pack_node = self._tree.add_node(NodeKind.PACK, self._tree.pack_name or "", None, "")
        for i, family in enumerate(self._doc.iter('family'), start=1):
            self._parse_node(family, pack_node.index, "", i)
        LOG.debug("parsed %s: %d nodes", self._tree.pack_name, len(self._tree))
        return self._tree

    def _get_int(self, elem: Element, name: str, location: str, required: bool = True) -> Optional[int]:
        if name not in elem.attrib:
            if required:
                raise MalformedDescriptor(f"<{elem.tag}> missing required '{name}' attribute", location)
            return None
        try:
            return parse_int(elem.attrib[name])
        except ValueError:
            raise MalformedDescriptor(
                    f"<{elem.tag}> '{name}' attribute is invalid ('{elem.attrib[name]}')", location) from None

    def _parse_node(self, elem: Element, parent: int, parent_location: str, position: int) -> None:
        kind, name_attr = _NODE_TAGS[elem.tag]
        # Both device and variant may have 'Dname'.
        name = elem.attrib.get(name_attr) or elem.attrib.get('Dname')
        location = f"{parent_location}/{elem.tag}" if parent_location else elem.tag
        if not name:
            raise MalformedDescriptor(f"<{elem.tag}> missing required '{name_attr}' attribute",
                    f"{location}[{position}]")
        location += f"[{name}]"

        if kind in (NodeKind.DEVICE, NodeKind.VARIANT):
            if name in self._names:
                raise DuplicateDevice(name)
            self._names[name] = location

        node = self._tree.add_node(kind, name, parent, location)
        if 'Dvendor' in elem.attrib:
            # The vendor has the form "Name:ID".
            node.vendor = elem.attrib['Dvendor'].split(':')[0]

        counts: Dict[str, int] = {}
        children: List[Element] = []
        for child in elem:
            counts[child.tag] = counts.get(child.tag, 0) + 1
            child_location = f"{location}/{child.tag}[{counts[child.tag]}]"
            if child.tag == 'processor':
                node.processors.append(ProcessorDecl(dict(child.attrib), child_location))
            elif child.tag == 'memory':
                memory = self._parse_memory(child, child_location)
                if memory is not None:
                    node.memories.append(memory)
            elif child.tag == 'algorithm':
                algo = self._parse_algorithm(child, child_location)
                if algo is not None:
                    node.algorithms.append(algo)
            elif child.tag == 'description':
                node.description = (child.text or "").strip()
            # Save any elements that we will recurse into.
            elif child.tag in _NODE_TAGS:
                children.append(child)

        child_counts: Dict[str, int] = {}
        for child in children:
            child_counts[child.tag] = child_counts.get(child.tag, 0) + 1
            self._parse_node(child, node.index, location, child_counts[child.tag])

    def _parse_memory(self, elem: Element, location: str) -> Optional[MemoryDecl]:
        """@brief Parse a memory element.

        Attributes:
        - `Pname`: optional str
        - `id`: optional str, deprecated in favour of `name`
        - `name`: optional str, overrides `id` if both are present
        - `access`: optional str
        - `start`: int
        - `size`: int
        - `default`: optional, if true indicates the region needs no special provisions for accessing,
            default false
        - `startup`: optional, if true use the region for boot code, default false
        - `init`: optional, deprecated, if true don't zeroise the memory, default false
        - `uninit`, optional, if true the memory should not be initialised, default false
        - `alias`: optional, another region's name
        """
        start = self._get_int(elem, 'start', location)
        size = self._get_int(elem, 'size', location)
        assert start is not None and size is not None
        if size == 0:
            LOG.debug("ignoring zero sized memory at %s", location)
            return None

        is_legacy_id = False
        if 'name' in elem.attrib: # 'name' takes precedence over 'id'.
            name = elem.attrib['name']
        elif 'id' in elem.attrib:
            name = elem.attrib['id']
            is_legacy_id = True
        else:
            # Neither option for memory name was specified, so use the address range.
            name = "%08x:%08x" % (start, size)

        return MemoryDecl(
                name=name,
                start=start,
                size=size,
                is_legacy_id=is_legacy_id,
                access=elem.attrib.get('access'),
                default=_get_bool_attribute(elem, 'default'),
                startup=_get_bool_attribute(elem, 'startup'),
                uninit=_get_bool_attribute(elem, 'uninit') or _get_bool_attribute(elem, 'init'),
                alias=elem.attrib.get('alias'),
                pname=elem.attrib.get('Pname'),
                location=location,
                )

    def _parse_algorithm(self, elem: Element, location: str) -> Optional[AlgorithmRef]:
        """@brief Parse an algorithm element.

        Any algorithm elements with a 'style' attribute not set to 'Keil' (case-insensitive) are
        skipped.

        Attributes:
        - `Pname`: optional str
        - `name`: str
        - `start`: int
        - `size`: int
        - `RAMstart`: optional int
        - `RAMsize`: optional int
        - `default`: optional bool
        - `style`: optional str
        """
        # We only support Keil FLM style flash algorithms.
        style = elem.attrib.get('style')
        if (style is not None) and (style.lower() != 'keil'):
            LOG.debug("%s: skipping non-Keil flash algorithm at %s", self._tree.pack_name, location)
            return None

        path = elem.attrib.get('name')
        if not path:
            raise MalformedDescriptor("<algorithm> missing required 'name' attribute", location)

        start = self._get_int(elem, 'start', location)
        size = self._get_int(elem, 'size', location)
        assert start is not None and size is not None
        return AlgorithmRef(
                path=path,
                start=start,
                size=size,
                ram_start=self._get_int(elem, 'RAMstart', location, required=False),
                ram_size=self._get_int(elem, 'RAMsize', location, required=False),
                default=_get_bool_attribute(elem, 'default'),
                style=style,
                pname=elem.attrib.get('Pname'),
                location=location,
                )

def parse(document: Union[bytes, str, IO[bytes]]) -> FamilyTree:
    """@brief Parse a family description (.pdsc) document.

    @param document The document as bytes, as a path, or as an open binary file.
    @return A FamilyTree. Its root node is of kind PACK.

    @exception MalformedDescriptor The document is not valid XML, or a required element or
        attribute is missing or invalid.
    @exception DuplicateDevice A device or variant name is declared more than once.
    """
    if isinstance(document, (bytes, bytearray)):
        document = io.BytesIO(bytes(document))
    try:
        doc = ElementTree(file=document)
    except ParseError as err:
        raise MalformedDescriptor(f"invalid family description XML: {err}") from err
    return _Parser(doc).parse()
