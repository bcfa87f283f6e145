"""Build the directed resource dependency graph from declared resources."""

import networkx as nx
from typing import List, Dict, Set, Optional
from ..contracts.resources import ResourceNode, StateSnapshot
from ..ingest.references import collect_references
from ..kinds.registry import KindRegistry
from ..utils.errors import (
    CycleError,
    DanglingReferenceError,
    DuplicateIdError,
    InvalidReferenceError,
)
from ..utils.logging import get_logger

logger = get_logger("graph.resource_graph")

# Three-colour marks for cycle detection
WHITE, GREY, BLACK = 0, 1, 2


class ResourceGraph:
    """Directed dependency graph: nodes=resources, edges=dependent -> dependency."""

    def __init__(self):
        self.graph = nx.DiGraph()
        self._nodes: Dict[str, ResourceNode] = {}

    def add_node(self, node: ResourceNode) -> None:
        """Add a resource node to the arena and graph."""
        if node.logical_id in self._nodes:
            raise DuplicateIdError(node.logical_id)
        self._nodes[node.logical_id] = node
        self.graph.add_node(node.logical_id)

    def add_dependency(self, dependent_id: str, dependency_id: str) -> None:
        """Record that dependent_id references dependency_id."""
        self.graph.add_edge(dependent_id, dependency_id)
        logger.debug(f"Added dependency edge: {dependent_id} -> {dependency_id}")

    def get_node(self, logical_id: str) -> Optional[ResourceNode]:
        return self._nodes.get(logical_id)

    def get_all_nodes(self) -> List[ResourceNode]:
        return list(self._nodes.values())

    def node_ids(self) -> List[str]:
        return list(self._nodes)

    def __contains__(self, logical_id: str) -> bool:
        return logical_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def dependencies_of(self, logical_id: str) -> Set[str]:
        """Direct dependencies of a resource."""
        if logical_id not in self.graph:
            return set()
        return set(self.graph.successors(logical_id))

    def dependents_of(self, logical_id: str) -> Set[str]:
        """Direct dependents of a resource."""
        if logical_id not in self.graph:
            return set()
        return set(self.graph.predecessors(logical_id))

    def get_downstream_resources(self, logical_id: str) -> Set[str]:
        """All resources that transitively depend on the given resource."""
        if logical_id not in self.graph:
            return set()
        return set(nx.ancestors(self.graph, logical_id))

    def get_upstream_resources(self, logical_id: str) -> Set[str]:
        """All resources the given resource transitively depends on."""
        if logical_id not in self.graph:
            return set()
        return set(nx.descendants(self.graph, logical_id))

    def edges(self) -> List[tuple]:
        return list(self.graph.edges())

    def find_cycle(self) -> Optional[List[str]]:
        """
        Find a dependency cycle using iterative three-colour DFS.

        Returns:
            The cycle as a node sequence closed on its first node, or None
        """
        color = {node_id: WHITE for node_id in self._nodes}

        for root in sorted(self._nodes):
            if color[root] != WHITE:
                continue
            path: List[str] = []
            stack = [(root, iter(sorted(self.dependencies_of(root))))]
            color[root] = GREY
            path.append(root)

            while stack:
                node_id, children = stack[-1]
                advanced = False
                for child in children:
                    if child not in color:
                        continue
                    if color[child] == GREY:
                        start = path.index(child)
                        return path[start:] + [child]
                    if color[child] == WHITE:
                        color[child] = GREY
                        path.append(child)
                        stack.append((child, iter(sorted(self.dependencies_of(child)))))
                        advanced = True
                        break
                if not advanced:
                    color[node_id] = BLACK
                    path.pop()
                    stack.pop()

        return None

    def topological_order(self) -> List[str]:
        """Logical ids ordered dependencies-first (ties broken by id)."""
        return list(nx.lexicographical_topological_sort(self.graph.reverse(copy=False), key=str))


def build_graph(nodes: List[ResourceNode], registry: KindRegistry) -> ResourceGraph:
    """
    Build a validated dependency graph from resource nodes.

    Edges come from property references and explicit dependencies. Each
    node's dependencies list is rewritten to the full, sorted set.

    Raises:
        DuplicateIdError: On logical id collision
        UnknownKindError: If a node's kind is not registered
        DanglingReferenceError: If a reference targets a missing logical id
        InvalidReferenceError: If a reference names an undeclared output
        CycleError: If references form a cycle
    """
    graph = ResourceGraph()
    for node in nodes:
        graph.add_node(node)

    for node in nodes:
        registry.get(node.kind, node.logical_id)
        targets = set()

        for dep_id in node.dependencies:
            if dep_id not in graph:
                raise DanglingReferenceError(node.logical_id, dep_id, "depends_on")
            targets.add(dep_id)

        for name, value in node.properties.items():
            for ref in collect_references(value, name):
                target = graph.get_node(ref.target)
                if target is None:
                    raise DanglingReferenceError(node.logical_id, ref.target, ref.location)
                if ref.attribute is not None:
                    target_kind = registry.get(target.kind, target.logical_id)
                    if not target_kind.declares_output(ref.attribute):
                        raise InvalidReferenceError(
                            f"Resource '{node.logical_id}' references '{ref.expression}' "
                            f"but kind '{target.kind}' declares outputs: {', '.join(target_kind.outputs)}"
                        )
                targets.add(ref.target)

        if node.logical_id in targets:
            raise CycleError([node.logical_id, node.logical_id])

        for target_id in sorted(targets):
            graph.add_dependency(node.logical_id, target_id)
        node.dependencies = sorted(targets)

    cycle = graph.find_cycle()
    if cycle:
        raise CycleError(cycle)

    logger.info(f"Built resource graph with {graph.graph.number_of_nodes()} nodes and {graph.graph.number_of_edges()} edges")
    return graph


def graph_from_snapshot(snapshot: StateSnapshot) -> ResourceGraph:
    """Graph of applied resources using recorded dependencies (missing targets ignored)."""
    graph = ResourceGraph()
    for node in snapshot.resources.values():
        graph.add_node(node)
    for node in snapshot.resources.values():
        for dep_id in node.dependencies:
            if dep_id in graph:
                graph.add_dependency(node.logical_id, dep_id)
            else:
                logger.debug(f"Recorded dependency not in state: {node.logical_id} -> {dep_id}")
    return graph
