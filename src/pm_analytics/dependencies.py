"""Cross-initiative dependency analysis.

Edge ``A -> B`` means initiative A depends on B: some issue in A is blocked
by an issue in B (or, equivalently, an issue in B blocks one in A). Links
between issues of the same initiative are ignored here.
"""

from collections import defaultdict, deque

from pm_analytics.models import (
    BlockingRoot,
    DependencyEdge,
    DependencyMatrix,
    DependencyPair,
    Initiative,
)

NO_DEPENDENCY = "—"

SEVERITY_RANK = {"high": 3, "medium": 2, "low": 1}


def edge_severity(open_count: int) -> str:
    if open_count >= 3:
        return "high"
    if open_count >= 1:
        return "medium"
    return "low"


def _membership(initiatives) -> dict[int, list[str]]:
    """Issue iid -> slugs of the initiatives containing it."""
    members = defaultdict(list)
    for initiative in initiatives:
        for issue in initiative.issues:
            members[issue.iid].append(initiative.slug)
    return members


def build_dependency_graph(initiatives) -> list[DependencyEdge]:
    """Dependency edges between distinct initiatives, ordered by (source, target)."""
    members = _membership(initiatives)
    issues_by_iid = {issue.iid: issue for i in initiatives for issue in i.issues}

    pairs_by_edge: dict[tuple[str, str], dict[tuple[int, int], DependencyPair]] = defaultdict(dict)
    for issue in sorted(issues_by_iid.values(), key=lambda i: i.iid):
        for link in sorted(issue.links, key=lambda l: (l.target_iid, l.relation)):
            if link.relation == "blocked_by":
                blocked_iid, blocking_iid = issue.iid, link.target_iid
            elif link.relation == "blocks":
                blocked_iid, blocking_iid = link.target_iid, issue.iid
            else:
                continue

            blocking = issues_by_iid.get(blocking_iid)
            if blocking is None or blocked_iid not in members:
                continue

            for source in members[blocked_iid]:
                for target in members[blocking_iid]:
                    if source == target:
                        continue
                    # the same fact may be recorded on both sides of the link
                    pairs_by_edge[(source, target)].setdefault(
                        (blocked_iid, blocking_iid),
                        DependencyPair(
                            blocked_iid=blocked_iid,
                            blocking_iid=blocking_iid,
                            relation=link.relation,
                            is_open=blocking.is_open,
                        ),
                    )

    edges = []
    for (source, target), pairs_by_key in sorted(pairs_by_edge.items()):
        pairs = tuple(pairs_by_key[key] for key in sorted(pairs_by_key))
        open_count = sum(1 for pair in pairs if pair.is_open)
        edges.append(DependencyEdge(
            source=source,
            target=target,
            pairs=pairs,
            count=len(pairs),
            open_count=open_count,
            severity=edge_severity(open_count),
        ))
    return edges


def _blocks_graph(edges) -> dict[str, list[str]]:
    """Reverse adjacency: blocker -> initiatives it blocks."""
    graph = defaultdict(list)
    for edge in edges:
        graph[edge.target].append(edge.source)
    return graph


def cascade_impact(root: str, edges) -> tuple[list[str], bool]:
    """Initiatives transitively blocked by ``root``.

    Returns:
        (sorted impacted slugs, whether a cycle is reachable from root)
    """
    graph = _blocks_graph(edges)
    impacted: set[str] = set()
    queue = deque([root])
    seen = {root}
    while queue:
        for blocked in graph.get(queue.popleft(), []):
            if blocked not in seen:
                seen.add(blocked)
                impacted.add(blocked)
                queue.append(blocked)
    return sorted(impacted), _has_cycle(root, graph)


def _has_cycle(start: str, graph: dict[str, list[str]]) -> bool:
    """Iterative three-colour DFS over the subgraph reachable from ``start``."""
    visiting, done = {start}, set()
    stack = [(start, iter(graph.get(start, [])))]
    while stack:
        node, children = stack[-1]
        child = next(children, None)
        if child is None:
            stack.pop()
            visiting.discard(node)
            done.add(node)
        elif child in visiting:
            return True
        elif child not in done:
            visiting.add(child)
            stack.append((child, iter(graph.get(child, []))))
    return False


def find_blocking_roots(edges, initiatives) -> list[BlockingRoot]:
    """Initiatives holding up others through open dependencies."""
    names = {initiative.slug: initiative.name for initiative in initiatives}
    open_edges = defaultdict(list)
    for edge in edges:
        if edge.open_count > 0:
            open_edges[edge.target].append(edge)

    roots = []
    for slug, blocking in open_edges.items():
        impacted, ambiguous = cascade_impact(slug, edges)
        roots.append(BlockingRoot(
            initiative=slug,
            name=names.get(slug, slug),
            severity=max((e.severity for e in blocking), key=SEVERITY_RANK.__getitem__),
            blocked_initiatives=tuple(sorted(e.source for e in blocking)),
            total_blocked_issues=sum(e.open_count for e in blocking),
            cascade_impact=tuple(impacted),
            ambiguous=ambiguous,
        ))

    roots.sort(key=lambda r: (-SEVERITY_RANK[r.severity], -len(r.blocked_initiatives), r.initiative))
    return roots


def dependency_matrix(edges, initiatives) -> DependencyMatrix:
    """Square table of open dependency counts; rows depend on columns."""
    slugs = tuple(initiative.slug for initiative in initiatives)
    open_counts = {(edge.source, edge.target): edge.open_count for edge in edges}
    cells = tuple(
        tuple(open_counts.get((row, col), NO_DEPENDENCY) for col in slugs)
        for row in slugs
    )
    return DependencyMatrix(initiatives=slugs, cells=cells)


def _components(graph: dict[str, list[str]], nodes) -> list[list[str]]:
    """Strongly connected components, sinks first (iterative Tarjan)."""
    index: dict[str, int] = {}
    low: dict[str, int] = {}
    stack: list[str] = []
    on_stack: set[str] = set()
    components = []

    for root in nodes:
        if root in index:
            continue
        index[root] = low[root] = len(index)
        stack.append(root)
        on_stack.add(root)
        work = [(root, iter(graph.get(root, ())))]
        while work:
            node, successors = work[-1]
            for target in successors:
                if target not in index:
                    index[target] = low[target] = len(index)
                    stack.append(target)
                    on_stack.add(target)
                    work.append((target, iter(graph.get(target, ()))))
                    break
                if target in on_stack:
                    low[node] = min(low[node], index[target])
            else:
                work.pop()
                if work:
                    parent = work[-1][0]
                    low[parent] = min(low[parent], low[node])
                if low[node] == index[node]:
                    members = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        members.append(member)
                        if member == node:
                            break
                    components.append(sorted(members))
    return components


def _better(candidate, current) -> bool:
    length, weight, path, _ = candidate
    best_length, best_weight, best_path, _ = current
    if length != best_length:
        return length > best_length
    if weight != best_weight:
        return weight > best_weight
    return path < best_path


def find_critical_path(edges, initiatives: list[Initiative]) -> tuple[list[str], bool]:
    """Longest dependency chain, following "depends on" edges.

    Cycles are collapsed into a single step listing their members in slug
    order, so the search stays linear in the size of the graph. Ties are
    broken by the summed open counts along the chain, then by the slugs
    themselves.

    Returns:
        (chain of slugs, whether a collapsed cycle lies on the chain)
    """
    if not edges:
        return [], False

    graph = defaultdict(list)
    open_counts = {}
    for edge in edges:
        graph[edge.source].append(edge.target)
        open_counts[(edge.source, edge.target)] = edge.open_count
    for targets in graph.values():
        targets.sort()

    nodes = sorted({initiative.slug for initiative in initiatives}
                   | {edge.source for edge in edges} | {edge.target for edge in edges})
    components = _components(graph, nodes)
    component_of = {slug: i for i, members in enumerate(components) for slug in members}

    # Tarjan emits sinks first, so successors are always resolved already.
    best_from = []
    overall = (0, 0, [], False)
    for i, members in enumerate(components):
        inner = 0
        links: dict[int, int] = {}
        for source in members:
            for target in graph.get(source, ()):
                j = component_of[target]
                if j == i:
                    inner += open_counts[(source, target)]
                else:
                    links[j] = max(links.get(j, 0), open_counts[(source, target)])

        cyclic = len(members) > 1
        chain = (len(members), inner, members, cyclic)
        for j, link in links.items():
            length, weight, path, ambiguous = best_from[j]
            candidate = (len(members) + length, inner + link + weight,
                         members + path, cyclic or ambiguous)
            if _better(candidate, chain):
                chain = candidate
        best_from.append(chain)
        if _better(chain, overall):
            overall = chain

    return overall[2], overall[3]
