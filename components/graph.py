# components/graph.py
from components.node import Capsule
from utils.errors import CycleDetected, DuplicateIdentifier
from utils.logger import get_logger

logger = get_logger("graph")

IN_PROGRESS = 1
DONE = 2


def topological_sort(roots):
    """
    Depth-first, post-order linearization of every node reachable from
    `roots`. Roots and dependencies are visited in list order, so the
    result is deterministic for a fixed graph.

    Uses an explicit stack with three-colour marking: a node met again
    while still in progress closes a cycle and raises CycleDetected; a
    done node is never revisited, which is where shared nodes collapse
    to a single entry. Two distinct nodes with one identifier raise
    DuplicateIdentifier.
    """
    state = {}         # node -> IN_PROGRESS | DONE; absent means unvisited
    owners = {}        # identifier -> node
    order = []

    def enter(node):
        owner = owners.setdefault(node.identifier, node)
        if owner is not node:
            logger.error("Identifier %s bound by %r and %r", node.identifier, owner, node)
            raise DuplicateIdentifier(node.identifier)
        state[node] = IN_PROGRESS

    for root in roots:
        if state.get(root) == DONE:
            continue
        enter(root)
        stack = [(root, iter(root.dependencies))]

        while stack:
            node, pending = stack[-1]
            for dep in pending:
                mark = state.get(dep)
                if mark == DONE:
                    continue
                if mark == IN_PROGRESS:
                    path = [n for n, _ in stack]
                    cycle = [n.identifier for n in path[path.index(dep):]] + [dep.identifier]
                    logger.error("Cycle detected: %s", " -> ".join(cycle))
                    raise CycleDetected(dep.identifier, cycle)
                enter(dep)
                stack.append((dep, iter(dep.dependencies)))
                break
            else:
                stack.pop()
                state[node] = DONE
                order.append(node)

    logger.debug("Initialization order: %s", [n.identifier for n in order])
    return order


class DependencyGraph:
    def __init__(self, roots):
        self.roots = list(roots)
        self.order = topological_sort(self.roots)
        self.nodes = {node.identifier: node for node in self.order}
        logger.info("Built dependency graph with %d nodes from %d roots",
                    len(self.nodes), len(self.roots))

    def capsules(self):
        return [node for node in self.order if isinstance(node, Capsule)]

    def position(self, identifier):
        return self.order.index(self.nodes[identifier])

    def assert_acyclic(self):
        """
        Explicit validation hook; re-walks the graph since node dependency
        lists are plain lists and may have been edited after construction.
        """
        self.order = topological_sort(self.roots)
        self.nodes = {node.identifier: node for node in self.order}

    def __contains__(self, identifier):
        return identifier in self.nodes

    def __len__(self):
        return len(self.order)

    def __repr__(self):
        lines = ["DependencyGraph:"]
        for node in self.order:
            deps = [d.identifier for d in node.dependencies]
            lines.append(f"  {node.identifier}: {type(node).__name__}, deps={deps}")
        return "\n".join(lines)
