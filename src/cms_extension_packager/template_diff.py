"""Comparison of a component against a reference template.

A component template is a directory tree whose file and folder names
may contain ``{{placeholder}}`` tokens, e.g.
``admin/models/{{com_name}}.php``. Rendering the template names with
the component's values and comparing both trees shows files the
component is missing or has in excess. Template files that are empty
(or only whitespace) are reported as well.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field

from .backends.base import EntryInfo, EntryKind, StorageBackend
from .core.manifest import PLACEHOLDER_PATTERN
from .errors import NotFoundError
from .paths import basename, join_path, relative_to

logger = logging.getLogger(__name__)

IGNORED_FILES = frozenset({"index.html"})

# Bytes read when checking whether a template file is blank
_BLANK_CHECK_BYTES = 8192


@dataclass
class TreeNode:
    """One entry of a FileTree.

    Attributes:
        name: Entry name ('' for the root)
        kind: File, directory or other
        parent: Index of the parent node (None for the root)
        size: Size in bytes as reported by the backend
        children: Indices of child nodes in listing order
    """

    name: str
    kind: EntryKind
    parent: int | None = None
    size: int = 0
    children: list[int] = field(default_factory=list)


class FileTree:
    """Directory tree stored as a flat list of nodes.

    Nodes refer to each other by index, so a tree can be walked in
    either direction without nested containers.

    Example:
        >>> tree = FileTree.from_backend(backend, '/templates/component')
        >>> sorted(tree.files())
        ['admin/{{com_name}}.php', 'site/index.html']
    """

    def __init__(self, root: str):
        self.root = root
        self.nodes: list[TreeNode] = [TreeNode("", EntryKind.DIR)]

    @classmethod
    def from_backend(cls, backend: StorageBackend, root: str) -> "FileTree":
        """Build the tree of everything below ``root``.

        Raises:
            NotFoundError: If ``root`` is not a directory
            StorageIOError: If a directory cannot be listed
        """
        if not backend.is_directory(root):
            raise NotFoundError(f"Directory not found: {root}", root)
        tree = cls(root)
        index_of: dict[str, int] = {"": 0}

        def visit(is_dir: bool, full_path: str, info: EntryInfo) -> bool:
            relative = relative_to(full_path, root)
            parent_path = relative.rsplit("/", 1)[0] if "/" in relative else ""
            index_of[relative] = tree.add(info.name, info.kind, index_of[parent_path], info.size)
            return True

        backend.iterate(root, True, visit)
        return tree

    def add(self, name: str, kind: EntryKind, parent: int, size: int = 0) -> int:
        self.nodes.append(TreeNode(name, kind, parent, size))
        index = len(self.nodes) - 1
        self.nodes[parent].children.append(index)
        return index

    def path(self, index: int) -> str:
        """Path of a node relative to the tree root."""
        parts: list[str] = []
        node = self.nodes[index]
        while node.parent is not None:
            parts.append(node.name)
            node = self.nodes[node.parent]
        return "/".join(reversed(parts))

    def file_indices(self) -> Iterator[int]:
        stack = list(reversed(self.nodes[0].children))
        while stack:
            index = stack.pop()
            node = self.nodes[index]
            if node.kind is EntryKind.DIR:
                stack.extend(reversed(node.children))
            else:
                yield index

    def files(self) -> Iterator[str]:
        """Relative paths of every non-directory node, depth-first."""
        for index in self.file_indices():
            yield self.path(index)

    def __len__(self) -> int:
        return len(self.nodes) - 1


def render_placeholders(text: str, values: dict[str, str]) -> str:
    """Replace ``{{name}}`` tokens with their values; unknown tokens stay."""
    return PLACEHOLDER_PATTERN.sub(lambda m: values.get(m.group(1).strip(), m.group(0)), text)


@dataclass
class TemplateDiff:
    """Differences between a component and its template.

    Attributes:
        missing_from_template: Component files with no template counterpart
        missing_from_component: Rendered template files the component lacks
        empty_template_files: Template files that are empty or blank
    """

    missing_from_template: list[str] = field(default_factory=list)
    missing_from_component: list[str] = field(default_factory=list)
    empty_template_files: list[str] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not (self.missing_from_template or self.missing_from_component or self.empty_template_files)

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "missing_from_template": list(self.missing_from_template),
            "missing_from_component": list(self.missing_from_component),
            "empty_template_files": list(self.empty_template_files),
        }


def compare_with_template(
    backend: StorageBackend,
    component_dir: str,
    template_dir: str,
    placeholders: dict[str, str],
) -> TemplateDiff:
    """Compare a component directory with a template directory.

    Args:
        backend: Backend both directories are read from
        component_dir: Root of the component
        template_dir: Root of the template
        placeholders: Values for ``{{name}}`` tokens in template paths

    Returns:
        TemplateDiff with relative paths; ``index.html`` files are ignored

    Raises:
        NotFoundError: If either directory is missing
        StorageIOError: If a directory or template file cannot be read
    """
    component = FileTree.from_backend(backend, component_dir)
    template = FileTree.from_backend(backend, template_dir)

    component_files = [p for p in component.files() if basename(p) not in IGNORED_FILES]
    rendered = {
        render_placeholders(p, placeholders): p
        for p in template.files()
        if basename(p) not in IGNORED_FILES
    }
    component_set = set(component_files)

    diff = TemplateDiff(
        missing_from_template=[p for p in component_files if p not in rendered],
        missing_from_component=[p for p in rendered if p not in component_set],
    )
    for index in template.file_indices():
        node = template.nodes[index]
        relative = template.path(index)
        if basename(relative) in IGNORED_FILES:
            continue
        if node.size == 0 or not backend.read_file(join_path(template_dir, relative))[:_BLANK_CHECK_BYTES].strip():
            diff.empty_template_files.append(relative)

    logger.debug(
        "Template diff: %d extra, %d missing, %d empty",
        len(diff.missing_from_template),
        len(diff.missing_from_component),
        len(diff.empty_template_files),
    )
    return diff


def find_placeholders(backend: StorageBackend, directory: str) -> dict[str, list[str]]:
    """Placeholder names used in the files below ``directory``.

    Returns:
        ``{relative file: [placeholder names]}`` for files using any

    Raises:
        NotFoundError: If the directory is missing
        StorageIOError: If a file cannot be read
    """
    tree = FileTree.from_backend(backend, directory)
    found: dict[str, list[str]] = {}
    for relative in tree.files():
        text = backend.read_file(join_path(directory, relative)).decode("utf-8", errors="replace")
        names = [n.strip() for n in PLACEHOLDER_PATTERN.findall(text) if n.strip()]
        if names:
            found[relative] = list(dict.fromkeys(names))
    return found
