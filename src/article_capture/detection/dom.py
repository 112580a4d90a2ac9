"""
Module: detection.dom

Purpose:
    Lightweight document tree used by the region detector. The tree is a
    detached, serializable copy of the live DOM: every node carries a
    structural locator (a CSS path of nth-child steps) so that elements
    picked in Python can be found again inside the browser.

Key Classes:
    - DomNode: One element with the attributes detection needs
    - Selector: Parsed simple CSS selector (tag, .class, [attr="v"], descendant)

Key Functions:
    - tree_from_html(): Build a tree from static HTML (BeautifulSoup)
    - tree_from_snapshot(): Build a tree from a browser snapshot dict
    - select_first(): querySelector equivalent over a DomNode tree

Dependencies:
    - bs4 (BeautifulSoup) + html5lib: browser-conformant HTML parsing for
      offline detection

Used By:
    - detection.scoring: Text/link metrics over the tree
    - detection.detector: Region and noise detection
    - capture.browser: Snapshot of the live page
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

logger = logging.getLogger(__name__)

_DISPLAY_NONE_RE = re.compile(r"display\s*:\s*none", re.IGNORECASE)
_VISIBILITY_RE = re.compile(r"visibility\s*:\s*(hidden|visible|collapse)", re.IGNORECASE)


@dataclass(eq=False)
class DomNode:
    """
    Element of a detached document tree.

    Attributes:
        tag: Lower-case tag name, used for matching
        id: Element id ("" if none)
        class_name: Raw class attribute ("" if none)
        role: ARIA role attribute
        itemprop: Microdata itemprop attribute
        text_length: Length of the trimmed textContent
        visible: False when the element's computed display is none or its
            visibility is hidden
        children: Element children in document order
        parent: Parent element (None for the root)
        locator: Structural CSS path, e.g. "html > body:nth-child(2)"
        local_name: Case-preserving element name for locator steps (SVG
            elements such as foreignObject keep their camelCase name)

    Example:
        >>> root = tree_from_html("<main><p>Hello</p></main>")
        >>> root.find_all({"p"})[0].locator
        'html > body:nth-child(2) > main:nth-child(1) > p:nth-child(1)'
    """

    tag: str
    id: str = ""
    class_name: str = ""
    role: str = ""
    itemprop: str = ""
    text_length: int = 0
    visible: bool = True
    children: List["DomNode"] = field(default_factory=list)
    parent: Optional["DomNode"] = field(default=None, repr=False)
    locator: str = ""
    local_name: str = ""

    @property
    def step_name(self) -> str:
        return self.local_name or self.tag

    @property
    def class_and_id(self) -> str:
        """Class and id joined for pattern matching."""
        return f"{self.class_name} {self.id}"

    @property
    def classes(self) -> List[str]:
        return self.class_name.split()

    def get_attribute(self, name: str) -> str:
        return {
            "id": self.id,
            "class": self.class_name,
            "role": self.role,
            "itemprop": self.itemprop,
        }.get(name, "")

    def iter_descendants(self) -> Iterator["DomNode"]:
        """Yield all descendants in document order (self excluded)."""
        stack = list(reversed(self.children))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def iter_tree(self) -> Iterator["DomNode"]:
        """Yield self, then all descendants in document order."""
        yield self
        yield from self.iter_descendants()

    def find_all(self, tags: Iterable[str]) -> List["DomNode"]:
        """Descendants whose tag is in tags (querySelectorAll)."""
        wanted = set(tags)
        return [n for n in self.iter_descendants() if n.tag in wanted]

    def closest(self, tags: Iterable[str]) -> Optional["DomNode"]:
        """Nearest inclusive ancestor whose tag is in tags (Element.closest)."""
        wanted = set(tags)
        node: Optional[DomNode] = self
        while node is not None:
            if node.tag in wanted:
                return node
            node = node.parent
        return None

    def find_by_tag(self, tag: str) -> Optional["DomNode"]:
        for node in self.iter_tree():
            if node.tag == tag:
                return node
        return None


# ─────────────────────────────────────────────────────────────────────────────
# Selectors
# ─────────────────────────────────────────────────────────────────────────────

_COMPOUND_RE = re.compile(
    r'(?P<tag>^[a-zA-Z][a-zA-Z0-9-]*)|\.(?P<cls>[\w-]+)|\[(?P<attr>[\w-]+)="(?P<val>[^"]*)"\]'
)


@dataclass(frozen=True)
class _Compound:
    tag: Optional[str]
    classes: Tuple[str, ...]
    attrs: Tuple[Tuple[str, str], ...]

    def matches(self, node: DomNode) -> bool:
        if self.tag and node.tag != self.tag:
            return False
        node_classes = node.classes
        if any(c not in node_classes for c in self.classes):
            return False
        return all(node.get_attribute(k) == v for k, v in self.attrs)


@dataclass(frozen=True)
class Selector:
    """
    Parsed simple CSS selector.

    Supports tag names, .class, [attr="value"], compounds of those, and
    the descendant combinator (whitespace). This covers every query the
    detector issues.

    Example:
        >>> Selector.parse('article .post-content').compounds[0].tag
        'article'
    """

    text: str
    compounds: Tuple[_Compound, ...]

    @classmethod
    def parse(cls, text: str) -> "Selector":
        compounds = []
        for part in text.split():
            tag = None
            classes: List[str] = []
            attrs: List[Tuple[str, str]] = []
            consumed = 0
            for match in _COMPOUND_RE.finditer(part):
                if match.start() != consumed:
                    break
                consumed = match.end()
                if match.group("tag"):
                    tag = match.group("tag").lower()
                elif match.group("cls"):
                    classes.append(match.group("cls"))
                else:
                    attrs.append((match.group("attr"), match.group("val")))
            if consumed != len(part):
                raise ValueError(f"Unsupported selector: {text!r}")
            compounds.append(_Compound(tag, tuple(classes), tuple(attrs)))
        if not compounds:
            raise ValueError("Empty selector")
        return cls(text=text, compounds=tuple(compounds))

    def matches(self, node: DomNode) -> bool:
        *ancestors, last = self.compounds
        if not last.matches(node):
            return False
        current = node.parent
        for compound in reversed(ancestors):
            while current is not None and not compound.matches(current):
                current = current.parent
            if current is None:
                return False
            current = current.parent
        return True


def select_first(root: DomNode, selector: str | Selector) -> Optional[DomNode]:
    """
    First element in document order matching selector (querySelector).

    Args:
        root: Tree root (the document element)
        selector: Selector text or parsed Selector

    Returns:
        Matching node, or None
    """
    parsed = selector if isinstance(selector, Selector) else Selector.parse(selector)
    for node in root.iter_tree():
        if parsed.matches(node):
            return node
    return None


# ─────────────────────────────────────────────────────────────────────────────
# Builders
# ─────────────────────────────────────────────────────────────────────────────

def assign_locators(root: DomNode) -> DomNode:
    """
    Link parents and assign structural locators in place.

    The root gets its bare name; every other element gets
    "<parent locator> > name:nth-child(k)" with k counted among element
    siblings, matching document.querySelector semantics. Steps use the
    case-preserving local name since type selectors are case-sensitive
    for SVG and MathML elements.
    """
    root.parent = None
    root.locator = root.step_name
    stack = [root]
    while stack:
        node = stack.pop()
        for index, child in enumerate(node.children, start=1):
            child.parent = node
            child.locator = f"{node.locator} > {child.step_name}:nth-child({index})"
            stack.append(child)
    return root


def tree_from_snapshot(data: Optional[Dict[str, Any]]) -> Optional[DomNode]:
    """
    Build a tree from a browser snapshot.

    The snapshot is the JSON produced by the in-page snapshot script:
    {"tag", "name", "id", "cls", "role", "itemprop", "textLength",
    "visible", "children": [...]}. "name" is the element's localName and
    defaults to "tag" when absent.

    Args:
        data: Snapshot of document.documentElement, or None

    Returns:
        Root DomNode, or None when the document has no root element
    """
    if not data or not data.get("tag"):
        return None

    def _build(item: Dict[str, Any]) -> DomNode:
        tag = str(item.get("tag", ""))
        return DomNode(
            tag=tag.lower(),
            local_name=str(item.get("name") or tag.lower()),
            id=item.get("id") or "",
            class_name=item.get("cls") or "",
            role=item.get("role") or "",
            itemprop=item.get("itemprop") or "",
            text_length=int(item.get("textLength") or 0),
            visible=bool(item.get("visible", True)),
            children=[_build(child) for child in item.get("children") or []],
        )

    root = assign_locators(_build(data))
    logger.debug(f"Snapshot tree built: {sum(1 for _ in root.iter_tree())} elements")
    return root


def tree_from_html(html: str) -> Optional[DomNode]:
    """
    Build a tree from static HTML.

    The document is parsed with html5lib, which builds the same tree a
    browser does (implied head and body, auto-closed paragraphs, foreign
    content names), so locators resolve in the live page.

    Visibility is approximated from markup: the hidden attribute or an
    inline display:none hides the element itself; inline visibility is
    inherited by descendants like the computed style would be.

    Args:
        html: HTML document or fragment

    Returns:
        Root DomNode (the html element), or None for an empty document

    Example:
        >>> tree_from_html("").__class__
        <class 'NoneType'>
    """
    if not html or not html.strip():
        return None

    soup = BeautifulSoup(html, "html5lib")
    html_tag = soup.find("html")
    if html_tag is None:
        return None

    def _build(tag: Tag, inherited_hidden: bool) -> Tuple[DomNode, str]:
        style = tag.get("style") or ""
        visibility = _VISIBILITY_RE.search(style)
        hidden_by_visibility = inherited_hidden
        if visibility:
            hidden_by_visibility = visibility.group(1).lower() != "visible"
        display_none = tag.has_attr("hidden") or bool(_DISPLAY_NONE_RE.search(style))

        children: List[DomNode] = []
        text_parts: List[str] = []
        for child in tag.children:
            if isinstance(child, Comment):
                continue
            if isinstance(child, NavigableString):
                text_parts.append(str(child))
            elif isinstance(child, Tag):
                child_node, child_text = _build(child, hidden_by_visibility)
                children.append(child_node)
                if child_node.tag != "head":
                    text_parts.append(child_text)

        text = "".join(text_parts)
        classes = tag.get("class") or []
        node = DomNode(
            tag=tag.name.lower(),
            local_name=tag.name,
            id=tag.get("id") or "",
            class_name=" ".join(classes) if isinstance(classes, list) else str(classes),
            role=tag.get("role") or "",
            itemprop=tag.get("itemprop") or "",
            text_length=len(text.strip()),
            visible=not (display_none or hidden_by_visibility),
            children=children,
        )
        return node, text

    root, _ = _build(html_tag, False)
    return assign_locators(root)
