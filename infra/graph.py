"""Declarative resource graph shared by all builders.

Builders declare resources as nodes keyed by a stable name. A node's spec
holds the keyword arguments later passed to the Pulumi constructor; any
value that comes from another resource is written as a ``Ref`` and turns
into a dependency edge. Nothing here talks to a cloud API.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

from infra.errors import DuplicateResourceError, GraphError, UnresolvedReferenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ref:
    """Output ``attr`` of the resource named ``name``.

    ``attr`` may be a dotted path (``metadata.name``). ``transform`` is
    applied to the resolved output.
    """

    name: str
    attr: str = "id"
    transform: Optional[Callable[[Any], Any]] = None


@dataclass(frozen=True)
class DependencyEdge:
    consumer: str
    producer: str


@dataclass(frozen=True)
class ResourceNode:
    name: str
    kind: str
    spec: dict[str, Any]
    depends_on: tuple[str, ...] = ()
    provider: Optional[str] = None
    owner: Optional[str] = None

    def producers(self) -> list[str]:
        """Names this node depends on, in first-seen order."""
        names: list[str] = []
        if self.provider:
            names.append(self.provider)
        names.extend(self.depends_on)
        names.extend(ref.name for ref in iter_refs(self.spec))
        return list(dict.fromkeys(names))


@dataclass(frozen=True)
class ResourceHandle:
    """Handle returned to builders for a declared node."""

    name: str
    kind: str

    def ref(self, attr: str = "id", transform: Optional[Callable[[Any], Any]] = None) -> Ref:
        return Ref(self.name, attr, transform)


def iter_refs(value: Any) -> Iterator[Ref]:
    """Yield every ``Ref`` nested in dicts, lists and tuples."""
    if isinstance(value, Ref):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from iter_refs(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_refs(item)


@dataclass
class ResourceGraph:
    """Ordered set of resource nodes plus their dependency edges."""

    nodes: dict[str, ResourceNode] = field(default_factory=dict)
    ownership: dict[str, list[str]] = field(default_factory=dict)

    def add(
        self,
        name: str,
        kind: str,
        spec: dict[str, Any],
        depends_on: list[ResourceHandle] | None = None,
        provider: ResourceHandle | None = None,
        owner: str | None = None,
    ) -> ResourceHandle:
        """Declare a resource.

        Every producer (explicit dependency, provider or ``Ref`` in the
        spec) must already be declared, so insertion order is always a
        valid install order.
        """
        if name in self.nodes:
            raise DuplicateResourceError(name)

        node = ResourceNode(
            name=name,
            kind=kind,
            spec=spec,
            depends_on=tuple(h.name for h in depends_on or []),
            provider=provider.name if provider else None,
            owner=owner,
        )
        for producer in node.producers():
            if producer not in self.nodes:
                raise UnresolvedReferenceError(name, producer)

        self.nodes[name] = node
        if owner:
            self.ownership.setdefault(owner, []).append(name)
        logger.debug("Declared %s (%s)", name, kind)
        return ResourceHandle(name, kind)

    def __contains__(self, name: str) -> bool:
        return name in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def get(self, name: str) -> ResourceNode:
        return self.nodes[name]

    def handle(self, name: str) -> ResourceHandle:
        node = self.nodes[name]
        return ResourceHandle(node.name, node.kind)

    def of_kind(self, kind: str) -> list[ResourceNode]:
        return [n for n in self.nodes.values() if n.kind == kind]

    def children(self, owner: str) -> list[str]:
        return list(self.ownership.get(owner, []))

    @property
    def edges(self) -> list[DependencyEdge]:
        return [
            DependencyEdge(node.name, producer)
            for node in self.nodes.values()
            for producer in node.producers()
        ]

    def validate(self) -> None:
        """Check references resolve and the graph is acyclic."""
        for node in self.nodes.values():
            for producer in node.producers():
                if producer not in self.nodes:
                    raise UnresolvedReferenceError(node.name, producer)
        self.topological_order()

    def topological_order(self) -> list[str]:
        """Linearize the graph so every producer precedes its consumers.

        Ties are broken by declaration order, so identical graphs always
        produce the same order.
        """
        position = {name: i for i, name in enumerate(self.nodes)}
        indegree = {name: 0 for name in self.nodes}
        consumers: dict[str, list[str]] = {name: [] for name in self.nodes}
        for edge in self.edges:
            indegree[edge.consumer] += 1
            consumers[edge.producer].append(edge.consumer)

        ready = deque(name for name in self.nodes if indegree[name] == 0)
        order: list[str] = []
        while ready:
            name = ready.popleft()
            order.append(name)
            released = []
            for consumer in consumers[name]:
                indegree[consumer] -= 1
                if indegree[consumer] == 0:
                    released.append(consumer)
            ready.extend(sorted(released, key=position.__getitem__))

        if len(order) != len(self.nodes):
            stuck = sorted(set(self.nodes) - set(order), key=position.__getitem__)
            raise GraphError(f"Dependency cycle between: {', '.join(stuck)}")
        return order
