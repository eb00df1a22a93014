"""File tree rendering for tool descriptions.

Renders a virtual file tree as a ``<file_system>`` block that can be
embedded once per session into a tool description
(``ToolRouter.embed_file_tree``).
"""

import fnmatch
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

DEFAULT_HEADER = "Available files and directories:"
DEFAULT_DESCRIPTION = (
    "You have access to the following files. Use the Read, Glob, and Grep tools to explore them."
)


class FileNodeType(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(kw_only=True)
class FileNode:
    """A node in a virtual file tree.

    Attributes:
        path: Virtual path (e.g., "docs/readme.md")
        type: File or directory
        description: Optional description shown in the prompt
        mime_type: MIME type for multimodal content
        metadata: Provider-specific metadata (storage key, database id, ...)
        children: Child nodes for directories
    """

    path: str
    type: FileNodeType = FileNodeType.FILE
    description: Optional[str] = None
    mime_type: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    children: List["FileNode"] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.path.rstrip("/").rsplit("/", 1)[-1] or self.path

    @property
    def is_directory(self) -> bool:
        return self.type == FileNodeType.DIRECTORY


def _is_excluded(path: str, exclude_patterns: Sequence[str]) -> bool:
    return any(fnmatch.fnmatch(path, pattern) for pattern in exclude_patterns)


def _render_node(
    node: FileNode,
    depth: int,
    indent: str,
    max_depth: Optional[int],
    exclude_patterns: Sequence[str],
    show_descriptions: bool,
    show_mime_types: bool,
) -> List[str]:
    if max_depth is not None and depth > max_depth:
        return []
    if _is_excluded(node.path, exclude_patterns):
        return []

    line = f"{indent}{node.name}/" if node.is_directory else f"{indent}{node.name}"
    if show_mime_types and node.mime_type:
        line += f" [{node.mime_type}]"
    if show_descriptions and node.description:
        line += f" - {node.description}"

    lines = [line]
    if node.is_directory:
        for child in node.children:
            lines.extend(
                _render_node(
                    child,
                    depth + 1,
                    indent + "  ",
                    max_depth,
                    exclude_patterns,
                    show_descriptions,
                    show_mime_types,
                )
            )
    return lines


def render_file_tree(
    nodes: Iterable[FileNode],
    max_depth: Optional[int] = None,
    exclude_patterns: Sequence[str] = (),
    show_descriptions: bool = True,
    show_mime_types: bool = False,
    header: str = DEFAULT_HEADER,
    description: str = DEFAULT_DESCRIPTION,
) -> str:
    """Render nodes as a ``<file_system>`` block.

    Example:
        render_file_tree([
            FileNode(path="docs", type=FileNodeType.DIRECTORY, children=[
                FileNode(path="docs/readme.md", description="Project docs"),
            ]),
            FileNode(path="src/index.py", description="Entry point"),
        ])

        # <file_system>
        # Available files and directories:
        #
        # docs/
        #   readme.md - Project docs
        # index.py - Entry point
        # </file_system>
    """
    lines: List[str] = []
    for node in nodes:
        lines.extend(
            _render_node(
                node, 0, "", max_depth, exclude_patterns, show_descriptions, show_mime_types
            )
        )

    if not lines:
        return f"<file_system>\n{header}\n\n{description}\n\n(no files available)\n</file_system>"
    body = "\n".join(lines)
    return f"<file_system>\n{header}\n\n{body}\n</file_system>"


def flatten_file_tree(nodes: Iterable[FileNode]) -> List[str]:
    """All file paths in the tree (directories excluded)."""
    paths: List[str] = []
    for node in nodes:
        if not node.is_directory:
            paths.append(node.path)
        paths.extend(flatten_file_tree(node.children))
    return paths


def find_node_by_path(path: str, nodes: Iterable[FileNode]) -> Optional[FileNode]:
    for node in nodes:
        if node.path == path:
            return node
        found = find_node_by_path(path, node.children)
        if found is not None:
            return found
    return None


def is_path_in_scope(path: str, scoped_nodes: Iterable[FileNode]) -> bool:
    return path in flatten_file_tree(scoped_nodes)


__all__ = [
    "FileNode",
    "FileNodeType",
    "find_node_by_path",
    "flatten_file_tree",
    "is_path_in_scope",
    "render_file_tree",
]
