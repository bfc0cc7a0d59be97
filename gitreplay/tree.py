"""File tree built from a revision's path list."""

from __future__ import annotations

from collections.abc import Collection, Iterable

from rich.text import Text
from rich.tree import Tree

from gitreplay.models import TreeNode


class FileTree:
    """Nodes keyed by path; each directory maps child names to nodes."""

    def __init__(self) -> None:
        self.root = TreeNode(name="", path="", is_dir=True)
        self.nodes: dict[str, TreeNode] = {"": self.root}

    @classmethod
    def from_paths(cls, paths: Iterable[str]) -> FileTree:
        tree = cls()
        for path in paths:
            tree.add(path)
        return tree

    def add(self, path: str) -> TreeNode:
        parts = [part for part in path.split("/") if part]
        parent = self.root
        for depth, part in enumerate(parts):
            node_path = "/".join(parts[: depth + 1])
            node = parent.children.get(part)
            if node is None:
                node = TreeNode(name=part, path=node_path, is_dir=depth < len(parts) - 1)
                parent.children[part] = node
                self.nodes[node_path] = node
            elif depth < len(parts) - 1:
                node.is_dir = True
            parent = node
        return parent

    def __contains__(self, path: object) -> bool:
        return path in self.nodes

    def files(self) -> list[str]:
        return sorted(path for path, node in self.nodes.items() if not node.is_dir)

    def to_rich(
        self,
        label: str = ".",
        highlight: str | None = None,
        changed: Collection[str] = frozenset(),
    ) -> Tree:
        """Rich tree; ``highlight`` is reversed, other ``changed`` paths are yellow."""
        rich_tree = Tree(label)
        self._fill(rich_tree, self.root, highlight, changed)
        return rich_tree

    def _fill(
        self, branch: Tree, node: TreeNode, highlight: str | None, changed: Collection[str]
    ) -> None:
        # Directories first, then files, each alphabetically.
        ordered = sorted(node.children.values(), key=lambda n: (not n.is_dir, n.name))
        for child in ordered:
            if child.is_dir:
                sub = branch.add(Text(f"{child.name}/", style="bold"))
                self._fill(sub, child, highlight, changed)
            elif child.path == highlight:
                branch.add(Text(child.name, style="reverse"))
            elif child.path in changed:
                branch.add(Text(child.name, style="yellow"))
            else:
                branch.add(Text(child.name))
