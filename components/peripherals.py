# components/peripherals.py
from enum import Enum

from components.node import Node
from utils.errors import UnsupportedCapability
from utils.logger import get_logger

logger = get_logger("peripherals")


class PeripheralKind(Enum):
    UART = "uart"
    TIMER = "timer"
    GPIO = "gpio"
    SPI = "spi"
    I2C = "i2c"
    BLE = "ble"
    FLASH = "flash"
    TEMPERATURE = "temperature"
    RNG = "rng"
    HMAC = "hmac"
    AES = "aes"
    PATTGEN = "pattgen"
    SYSTEM_RESET_CONTROLLER = "system_reset_controller"
    ALERT_HANDLER = "alert_handler"


class Peripheral(Node):
    """
    Leaf descriptor of a fixed hardware resource. It has no dependencies;
    `constructor` is the expression that creates the peripheral and `setup`
    an optional statement run once it is bound.
    """
    kind = None

    def __init__(self, identifier, type_signature, constructor=None, setup=None):
        super().__init__(identifier, type_signature)
        self.constructor = constructor
        self.setup = setup

    def init_expr(self):
        if self.constructor is None:
            return None
        return f"kernel::static_init!({self.type_signature}, {self.constructor})"

    def after_init(self):
        return self.setup

    def __str__(self):
        return self.identifier


class Uart(Peripheral):
    kind = PeripheralKind.UART


class Timer(Peripheral):
    kind = PeripheralKind.TIMER

    def __init__(self, identifier, type_signature, constructor=None, setup=None, frequency=0):
        super().__init__(identifier, type_signature, constructor, setup)
        self.frequency = frequency


class GpioPin(Peripheral):
    kind = PeripheralKind.GPIO

    def __init__(self, identifier, type_signature, constructor=None, setup=None, index=0):
        super().__init__(identifier, type_signature, constructor, setup)
        self.index = index


class Spi(Peripheral):
    kind = PeripheralKind.SPI


class I2c(Peripheral):
    kind = PeripheralKind.I2C


class BleAdvertisement(Peripheral):
    kind = PeripheralKind.BLE


class Flash(Peripheral):
    kind = PeripheralKind.FLASH

    def __init__(self, identifier, type_signature, constructor=None, setup=None,
                 page_type=None, page_size=512, pages_per_bank=256):
        super().__init__(identifier, type_signature, constructor, setup)
        self.page_type = page_type
        self.page_size = page_size
        self.pages_per_bank = pages_per_bank


class Temperature(Peripheral):
    kind = PeripheralKind.TEMPERATURE


class Rng(Peripheral):
    kind = PeripheralKind.RNG


class Hmac(Peripheral):
    kind = PeripheralKind.HMAC


class Aes(Peripheral):
    kind = PeripheralKind.AES


class Pattgen(Peripheral):
    kind = PeripheralKind.PATTGEN


class SystemResetController(Peripheral):
    kind = PeripheralKind.SYSTEM_RESET_CONTROLLER


class AlertHandler(Peripheral):
    kind = PeripheralKind.ALERT_HANDLER


class DefaultPeripherals(Node):
    """
    Aggregate of every peripheral a chip exposes. It depends on all of its
    descriptors (plus any chip-specific `extra` nodes, such as a flash
    protection configuration) and binds them into the chip's peripheral
    struct.

    Typed accessors return a non-empty list of descriptors or raise
    UnsupportedCapability for kinds the chip lacks.
    """

    def __init__(self, type_signature, constructor, catalog, extra=None,
                 identifier="peripherals", chip_name=None):
        self.catalog = {}
        for kind, descriptors in catalog.items():
            descriptors = list(descriptors)
            for d in descriptors:
                assert d.kind is kind, f"{d.identifier} is a {d.kind}, not a {kind}"
            if descriptors:
                self.catalog[kind] = descriptors
        self.extra = list(extra or [])
        self.constructor = constructor
        self.chip_name = chip_name

        dependencies = list(self.extra)
        for kind in PeripheralKind:
            dependencies.extend(self.catalog.get(kind, []))
        super().__init__(identifier, type_signature, dependencies)

    def init_expr(self):
        args = ", ".join(d.identifier for d in self.dependencies)
        return f"kernel::static_init!({self.type_signature}, {self.constructor}({args}))"

    def supports(self, kind):
        return kind in self.catalog

    def get(self, kind):
        descriptors = self.catalog.get(kind)
        if not descriptors:
            logger.debug("Peripheral kind %s not supported by %s", kind.name, self.chip_name)
            raise UnsupportedCapability(kind, self.chip_name)
        return list(descriptors)

    def owns(self, descriptor):
        kind = getattr(descriptor, "kind", None)
        return any(d is descriptor for d in self.catalog.get(kind, []))

    def uart(self):
        return self.get(PeripheralKind.UART)

    def timer(self):
        return self.get(PeripheralKind.TIMER)

    def gpio(self):
        return self.get(PeripheralKind.GPIO)

    def spi(self):
        return self.get(PeripheralKind.SPI)

    def i2c(self):
        return self.get(PeripheralKind.I2C)

    def ble(self):
        return self.get(PeripheralKind.BLE)

    def flash(self):
        return self.get(PeripheralKind.FLASH)

    def temp(self):
        return self.get(PeripheralKind.TEMPERATURE)

    def rng(self):
        return self.get(PeripheralKind.RNG)

    def hmac(self):
        return self.get(PeripheralKind.HMAC)

    def aes(self):
        return self.get(PeripheralKind.AES)

    def pattgen(self):
        return self.get(PeripheralKind.PATTGEN)

    def system_reset_controller(self):
        return self.get(PeripheralKind.SYSTEM_RESET_CONTROLLER)

    def alert_handler(self):
        return self.get(PeripheralKind.ALERT_HANDLER)
