# utils/errors.py


class ConfiguratorError(Exception):
    pass


class UnsupportedCapability(ConfiguratorError):
    """
    A peripheral or capsule kind does not exist on the selected chip.
    Recoverable: the builder omits the capsule unless it was required.
    """

    def __init__(self, kind, chip=None):
        self.kind = kind
        self.chip = chip
        where = f" on chip {chip}" if chip else ""
        super().__init__(f"{_name(kind)} is not supported{where}")


class CycleDetected(ConfiguratorError):
    def __init__(self, identifier, cycle=None):
        self.identifier = identifier
        self.cycle = list(cycle or [identifier])
        super().__init__(
            f"Dependency cycle through '{identifier}': {' -> '.join(self.cycle)}"
        )


class DuplicateIdentifier(ConfiguratorError):
    def __init__(self, identifier, message=None):
        self.identifier = identifier
        super().__init__(message or f"Two distinct nodes are bound to '{identifier}'")


class ConfigurationInvalid(ConfiguratorError):
    pass


def _name(kind):
    return getattr(kind, "name", str(kind))
