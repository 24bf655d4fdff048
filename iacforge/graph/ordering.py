"""
Stable topological ordering shared by the builder and every emitter.

Kahn's algorithm where ties between ready resources are broken by their
position in the input, so identical input always yields identical order.
"""
import heapq
from typing import Dict, Iterable, List, Mapping, Sequence, Set, Tuple

from iacforge.errors import CyclicDependencyError


def build_dependents(
    names: Sequence[str], dependencies: Mapping[str, Iterable[str]]
) -> Dict[str, Tuple[str, ...]]:
    """Invert dependency edges: dependency name -> dependents in input order."""
    dependents: Dict[str, List[str]] = {n: [] for n in names}
    for name in names:
        for dep in dict.fromkeys(dependencies.get(name, ())):
            dependents[dep].append(name)
    return {n: tuple(d) for n, d in dependents.items()}


def _find_cycle(
    names: Sequence[str], dependencies: Mapping[str, Iterable[str]], remaining: Set[str]
) -> List[str]:
    # Every unprocessed node still has an unprocessed dependency, so walking
    # those edges from any of them must revisit a node.
    position = {n: i for i, n in enumerate(names)}
    node = next(n for n in names if n in remaining)
    path: List[str] = []
    seen: Dict[str, int] = {}
    while node not in seen:
        seen[node] = len(path)
        path.append(node)
        node = next(d for d in dependencies.get(node, ()) if d in remaining)
    cycle = path[seen[node]:]
    start = min(range(len(cycle)), key=lambda i: position[cycle[i]])
    return cycle[start:] + cycle[:start]


def topological_order(
    names: Sequence[str], dependencies: Mapping[str, Iterable[str]]
) -> List[str]:
    """
    Return names ordered so every dependency precedes its dependents.

    Raises CyclicDependencyError naming the cycle, starting from the member
    that appears earliest in the input.
    """
    position = {n: i for i, n in enumerate(names)}
    dependents = build_dependents(names, dependencies)
    in_degree = {n: len(set(dependencies.get(n, ()))) for n in names}

    ready = [(position[n], n) for n in names if in_degree[n] == 0]
    heapq.heapify(ready)

    order: List[str] = []
    while ready:
        _, name = heapq.heappop(ready)
        order.append(name)
        for dependent in dependents[name]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                heapq.heappush(ready, (position[dependent], dependent))

    if len(order) < len(names):
        remaining = set(names) - set(order)
        raise CyclicDependencyError(_find_cycle(names, dependencies, remaining))
    return order
