from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

ScalarValue = Union[None, bool, int, float, str]


@dataclass(frozen=True)
class Scalar:
    value: ScalarValue = None

    def __post_init__(self) -> None:
        if self.value is not None and not isinstance(self.value, (bool, int, float, str)):
            raise TypeError(f"Unsupported scalar type: {type(self.value).__name__}")


@dataclass(frozen=True)
class Seq:
    items: Tuple["Node", ...] = ()

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator["Node"]:
        return iter(self.items)


@dataclass(frozen=True)
class Map:
    """Ordered mapping with unique string keys."""

    entries: Tuple[Tuple[str, "Node"], ...] = ()

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for key, _ in self.entries:
            if not isinstance(key, str):
                raise TypeError(f"Mapping keys must be strings, got {type(key).__name__}")
            if key in seen:
                raise ValueError(f"Duplicate mapping key: {key}")
            seen.add(key)

    def __len__(self) -> int:
        return len(self.entries)

    def keys(self) -> List[str]:
        return [k for k, _ in self.entries]

    def get(self, key: str) -> Optional["Node"]:
        for k, v in self.entries:
            if k == key:
                return v
        return None

    def __getitem__(self, key: str) -> "Node":
        node = self.get(key)
        if node is None:
            raise KeyError(key)
        return node


Node = Union[Scalar, Seq, Map]


def as_node(obj: Any) -> Node:
    """Convert plain Python data (dict/list/tuple/scalars) into a tree.

    dict order is taken as the mapping order.
    """

    if isinstance(obj, (Scalar, Seq, Map)):
        return obj
    if isinstance(obj, Mapping):
        return Map(tuple((k, as_node(v)) for k, v in obj.items()))
    if isinstance(obj, (list, tuple)):
        return Seq(tuple(as_node(v) for v in obj))
    return Scalar(obj)


def to_python(node: Node) -> Any:
    if isinstance(node, Scalar):
        return node.value
    if isinstance(node, Seq):
        return [to_python(n) for n in node.items]
    if isinstance(node, Map):
        out: Dict[str, Any] = {}
        for k, v in node.entries:
            out[k] = to_python(v)
        return out
    raise TypeError(f"Not a tree node: {type(node).__name__}")


def map_scalar(node: Map, key: str) -> ScalarValue:
    """Return a scalar field of a mapping node, or None when absent/composite."""
    child = node.get(key)
    if isinstance(child, Scalar):
        return child.value
    return None


def seq_of_maps(nodes: Sequence[Node]) -> List[Map]:
    out: List[Map] = []
    for n in nodes:
        if not isinstance(n, Map):
            raise TypeError(f"Expected mapping node, got {type(n).__name__}")
        out.append(n)
    return out
