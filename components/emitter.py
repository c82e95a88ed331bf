# components/emitter.py
from collections import namedtuple

from components.graph import DependencyGraph
from components.platform import DefaultSchedulerTimer
from utils.errors import DuplicateIdentifier
from utils.logger import get_logger

logger = get_logger("emitter")

Initialization = namedtuple(
    "Initialization", ["identifier", "before_init", "init_expr", "after_init", "type_decl"]
)
Statement = namedtuple("Statement", ["kind", "identifier", "fragment"])
BoardType = namedtuple("BoardType", ["name", "fields"])

BEFORE_INIT = "before_init"
BINDING = "binding"
AFTER_INIT = "after_init"


class Emission:
    """
    Everything the renderer needs, in emission order:
        initializations : list[Initialization]
        dispatch_table  : list[(driver_number, identifier)]
        board_type      : BoardType(name, fields)
    """

    def __init__(self, initializations, dispatch_table, board_type):
        self.initializations = list(initializations)
        self.dispatch_table = list(dispatch_table)
        self.board_type = board_type

    def statements(self):
        out = []
        for init in self.initializations:
            if init.before_init:
                out.append(Statement(BEFORE_INIT, init.identifier, init.before_init))
            if init.init_expr:
                out.append(Statement(BINDING, init.identifier, init.init_expr))
            if init.after_init:
                out.append(Statement(AFTER_INIT, init.identifier, init.after_init))
        return out

    def identifiers(self):
        return [init.identifier for init in self.initializations]

    def __eq__(self, other):
        if not isinstance(other, Emission):
            return NotImplemented
        return (self.initializations == other.initializations
                and self.dispatch_table == other.dispatch_table
                and self.board_type == other.board_type)

    def __repr__(self):
        return (f"Emission({len(self.initializations)} nodes, "
                f"{len(self.dispatch_table)} drivers, board={self.board_type.name})")


class Emitter:
    def __init__(self, context):
        self.context = context

    def emit(self):
        """
        Sort the graph reachable from the context roots and fold it into an
        Emission. Sorting errors propagate before anything is produced.
        """
        logger.info("Emitting initialization code")
        graph = DependencyGraph(self.context.roots())

        initializations = []
        for node in graph.order:
            init = Initialization(
                node.identifier,
                node.before_init(),
                node.init_expr(),
                node.after_init(),
                node.type_decl(),
            )
            initializations.append(init)
            logger.debug("Node %s: before=%s init=%s after=%s",
                         node.identifier, init.before_init is not None,
                         init.init_expr is not None, init.after_init is not None)

        capsules = graph.capsules()
        emission = Emission(
            initializations,
            dispatch_table(capsules),
            board_type(self.context.platform, capsules),
        )
        logger.info("Emitted %d nodes, %d syscall drivers", len(initializations), len(emission.dispatch_table))
        return emission


def dispatch_table(capsules):
    table = []
    bound = {}
    for capsule in capsules:
        owner = bound.setdefault(capsule.driver_number, capsule.identifier)
        if owner != capsule.identifier:
            logger.error("Driver number %#x used by %s and %s",
                         capsule.driver_number, owner, capsule.identifier)
            raise DuplicateIdentifier(
                capsule.identifier,
                f"Driver number {capsule.driver_number:#x} is used by both '{owner}' and '{capsule.identifier}'",
            )
        table.append((capsule.driver_number, capsule.identifier))
    return table


def board_type(platform, capsules):
    fields = [capsule.type_decl() for capsule in capsules]
    fields.append(f"{platform.scheduler.identifier}: &'static {platform.scheduler.type_signature}")
    timer = platform.scheduler_timer
    if isinstance(timer, DefaultSchedulerTimer):
        fields.append(f"{timer.identifier}: {timer.type_signature}")
    else:
        fields.append(f"{timer.identifier}: &'static {timer.type_signature}")
    if platform.syscall_filter is not None:
        fields.append(f"{platform.syscall_filter.identifier}: &'static {platform.syscall_filter.type_signature}")
    return BoardType(platform.type_signature, fields)
