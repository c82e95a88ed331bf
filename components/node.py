# components/node.py
from utils.errors import ConfigurationInvalid


class Node:
    def __init__(self, identifier, type_signature=None, dependencies=None):
        """
        identifier     : str, name bound to the value this node produces
        type_signature : str or None, opaque type fragment for the renderer
        dependencies   : list[Node], nodes bound before this one's init runs

        Every node whose identifier appears in one of this node's fragments
        must be listed in `dependencies`; the emitter never reads fragments.
        """
        self.identifier = identifier
        self.type_signature = type_signature
        self.dependencies = list(dependencies or [])

    def before_init(self):
        return None

    def init_expr(self):
        return None

    def after_init(self):
        return None

    def type_decl(self):
        return None

    def __repr__(self):
        deps = [d.identifier for d in self.dependencies]
        return f"{type(self).__name__}({self.identifier!r}, deps={deps})"


class Capsule(Node):
    """
    A driver exposed to userspace. `driver_number` is the syscall driver
    number dispatched to this capsule by the board.
    """

    def __init__(self, identifier, type_signature, driver_number, dependencies=None):
        if isinstance(driver_number, bool) or not isinstance(driver_number, int) or driver_number < 0:
            raise ConfigurationInvalid(
                f"Capsule '{identifier}' has invalid driver number {driver_number!r}"
            )
        super().__init__(identifier, type_signature, dependencies)
        self.driver_number = driver_number

    def type_decl(self):
        return f"{self.identifier}: &'static {self.type_signature}"

    def __repr__(self):
        deps = [d.identifier for d in self.dependencies]
        return (f"{type(self).__name__}({self.identifier!r}, "
                f"driver={self.driver_number:#x}, deps={deps})")
