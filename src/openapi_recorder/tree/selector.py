"""Dotted path selectors over JSON-like trees.

A selector such as ``paths.*.*.parameters`` names every node reachable by
descending one level per segment, where ``*`` stands for any key of a map
or any index of a list. A selector only matches nodes at exactly its own
depth: branches that end early, or run deeper, are not matched.

Concrete paths are tuples of map keys and list indices.
"""

from typing import Any, Iterator, Sequence

from pydantic import BaseModel, ConfigDict

from openapi_recorder.errors import SelectorDepthMismatch

WILDCARD = "*"


class PathSelector(BaseModel):
    """An immutable selector made of literal and wildcard segments."""

    model_config = ConfigDict(frozen=True)

    segments: tuple[str, ...]

    @classmethod
    def parse(cls, selector: str) -> "PathSelector":
        """Parse a dot-separated selector string."""
        return cls.from_segments(selector.split("."))

    @classmethod
    def from_segments(cls, segments: Sequence[Any]) -> "PathSelector":
        """Build a selector from segments, which may themselves contain dots."""
        parts = tuple(str(s) for s in segments)
        if not parts or any(p == "" for p in parts):
            raise ValueError(f"invalid selector segments: {list(segments)!r}")
        return cls(segments=parts)

    @property
    def depth(self) -> int:
        return len(self.segments)

    @property
    def has_wildcard(self) -> bool:
        return WILDCARD in self.segments

    def __str__(self) -> str:
        return ".".join(self.segments)


def as_selector(selector: "str | PathSelector") -> PathSelector:
    if isinstance(selector, PathSelector):
        return selector
    return PathSelector.parse(selector)


def matched_paths(tree: Any, selector: "str | PathSelector") -> list[tuple]:
    """Return the concrete paths in ``tree`` denoted by ``selector``, pre-order."""
    return list(_match(tree, as_selector(selector).segments, ()))


def all_field_paths(tree: Any) -> list[tuple]:
    """Return the path to every node of ``tree``, containers included, pre-order."""
    paths: list[tuple] = []
    for key, child in _children(tree):
        paths.append((key,))
        paths.extend((key,) + sub for sub in all_field_paths(child))
    return paths


def matched_paths_deeply_nested(tree: Any, begin: str, end: str) -> list[tuple]:
    """Match ``begin.<any number of *>.end`` at every depth the tree reaches."""
    begin_parts = tuple(begin.split("."))
    end_parts = tuple(end.split("."))
    depths = sorted({len(p) for p in all_field_paths(tree)})

    result: list[tuple] = []
    for depth in depths:
        diff = depth - len(begin_parts) - len(end_parts)
        if diff < 0:
            continue
        selector = PathSelector.from_segments(begin_parts + (WILDCARD,) * diff + end_parts)
        result.extend(matched_paths(tree, selector))
    return result


def dig(tree: Any, path: Sequence[Any]) -> Any:
    """Resolve a concrete path.

    Raises:
        SelectorDepthMismatch: If any step of the path does not exist.
    """
    node = tree
    for depth, key in enumerate(path):
        if isinstance(node, dict):
            found = _lookup(node, key)
            if found is _MISSING:
                raise SelectorDepthMismatch(tuple(path), depth)
            node = found
        elif isinstance(node, list) and _is_index(key) and int(key) < len(node):
            node = node[int(key)]
        else:
            raise SelectorDepthMismatch(tuple(path), depth)
    return node


def exists(tree: Any, path: Sequence[Any]) -> bool:
    try:
        dig(tree, path)
    except SelectorDepthMismatch:
        return False
    return True


# -- internals ----------------------------------------------------------------

_MISSING = object()


def _children(node: Any) -> Iterator[tuple[Any, Any]]:
    if isinstance(node, dict):
        return iter(list(node.items()))
    if isinstance(node, list):
        return iter(list(enumerate(node)))
    return iter(())


def _match(node: Any, segments: tuple[str, ...], prefix: tuple) -> Iterator[tuple]:
    if not segments:
        yield prefix
        return
    head, rest = segments[0], segments[1:]
    for key, child in _children(node):
        if head == WILDCARD or _key_matches(key, head):
            yield from _match(child, rest, prefix + (key,))


def _key_matches(key: Any, segment: str) -> bool:
    # YAML may load status codes as integer keys; compare them as text.
    if isinstance(key, bool):
        return str(key).lower() == segment
    return str(key) == segment


def _lookup(node: dict, key: Any) -> Any:
    if key in node:
        return node[key]
    for k, v in node.items():
        if _key_matches(k, str(key)):
            return v
    return _MISSING


def _is_index(key: Any) -> bool:
    if isinstance(key, bool):
        return False
    if isinstance(key, int):
        return key >= 0
    return isinstance(key, str) and key.isdigit()
