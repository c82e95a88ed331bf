# config/configuration.py
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from components.capsules import LedType, Lsm303AccelDataRate, Lsm303MagnetoDataRate, Lsm303Range, Lsm303Scale
from components.peripherals import PeripheralKind
from components.platform import SchedulerType, SyscallFilterType
from utils.errors import ConfigurationInvalid
from utils.logger import get_logger

logger = get_logger("configuration")

DEFAULT_PLATFORM_TYPE = "AutogeneratedPlatform"
DEFAULT_STACK_SIZE = 0x900


class CapsuleKind(Enum):
    ALARM = "alarm"
    LED = "led"
    SPI = "spi"
    I2C = "i2c"
    BLE = "ble"
    FLASH = "flash"
    LSM303AGR = "lsm303agr"
    CONSOLE = "console"
    TEMPERATURE = "temperature"
    RNG = "rng"
    GPIO = "gpio"
    HMAC = "hmac"
    KV_DRIVER = "kv_driver"
    AES = "aes"
    INFO_FLASH = "info_flash"
    LLDB = "lldb"
    PATTGEN = "pattgen"
    SYSTEM_RESET_CONTROLLER = "system_reset_controller"
    ALERT_HANDLER = "alert_handler"


# Parameter records. `fields` lists the peripheral-valued fields with the
# peripheral kind they must hold; a tuple-valued field holds several.

@dataclass(frozen=True)
class AlarmParams:
    timer: object
    fields = (("timer", PeripheralKind.TIMER),)


@dataclass(frozen=True)
class LedParams:
    led_type: LedType
    pins: Tuple[object, ...]
    fields = (("pins", PeripheralKind.GPIO),)


@dataclass(frozen=True)
class SpiParams:
    spi: object
    fields = (("spi", PeripheralKind.SPI),)


@dataclass(frozen=True)
class I2cParams:
    i2c: object
    fields = (("i2c", PeripheralKind.I2C),)


@dataclass(frozen=True)
class BleParams:
    ble: object
    timer: object
    fields = (("ble", PeripheralKind.BLE), ("timer", PeripheralKind.TIMER))


@dataclass(frozen=True)
class FlashParams:
    flash: object
    buffer_size: int
    fields = (("flash", PeripheralKind.FLASH),)


@dataclass(frozen=True)
class Lsm303agrParams:
    i2c: object
    accel_data_rate: Lsm303AccelDataRate
    low_power: bool
    accel_scale: Lsm303Scale
    accel_high_resolution: bool
    temperature: bool
    mag_data_rate: Lsm303MagnetoDataRate
    mag_range: Lsm303Range
    fields = (("i2c", PeripheralKind.I2C),)


@dataclass(frozen=True)
class ConsoleParams:
    uart: object
    baud_rate: int
    fields = (("uart", PeripheralKind.UART),)


@dataclass(frozen=True)
class TemperatureParams:
    temp: object
    fields = (("temp", PeripheralKind.TEMPERATURE),)


@dataclass(frozen=True)
class RngParams:
    rng: object
    fields = (("rng", PeripheralKind.RNG),)


@dataclass(frozen=True)
class GpioParams:
    pins: Tuple[object, ...]
    fields = (("pins", PeripheralKind.GPIO),)


@dataclass(frozen=True)
class HmacParams:
    hmac: object
    length: int
    fields = (("hmac", PeripheralKind.HMAC),)


@dataclass(frozen=True)
class KvDriverParams:
    flash: object
    fields = (("flash", PeripheralKind.FLASH),)


@dataclass(frozen=True)
class AesParams:
    aes: object
    number_of_blocks: int
    fields = (("aes", PeripheralKind.AES),)


@dataclass(frozen=True)
class InfoFlashParams:
    flash: object
    fields = (("flash", PeripheralKind.FLASH),)


@dataclass(frozen=True)
class LldbParams:
    uart: object
    baud_rate: int
    fields = (("uart", PeripheralKind.UART),)


@dataclass(frozen=True)
class PattgenParams:
    pattgen: object
    fields = (("pattgen", PeripheralKind.PATTGEN),)


@dataclass(frozen=True)
class SystemResetControllerParams:
    system_reset_controller: object
    fields = (("system_reset_controller", PeripheralKind.SYSTEM_RESET_CONTROLLER),)


@dataclass(frozen=True)
class AlertHandlerParams:
    alert_handler: object
    fields = (("alert_handler", PeripheralKind.ALERT_HANDLER),)


PARAMS = {
    CapsuleKind.ALARM: AlarmParams,
    CapsuleKind.LED: LedParams,
    CapsuleKind.SPI: SpiParams,
    CapsuleKind.I2C: I2cParams,
    CapsuleKind.BLE: BleParams,
    CapsuleKind.FLASH: FlashParams,
    CapsuleKind.LSM303AGR: Lsm303agrParams,
    CapsuleKind.CONSOLE: ConsoleParams,
    CapsuleKind.TEMPERATURE: TemperatureParams,
    CapsuleKind.RNG: RngParams,
    CapsuleKind.GPIO: GpioParams,
    CapsuleKind.HMAC: HmacParams,
    CapsuleKind.KV_DRIVER: KvDriverParams,
    CapsuleKind.AES: AesParams,
    CapsuleKind.INFO_FLASH: InfoFlashParams,
    CapsuleKind.LLDB: LldbParams,
    CapsuleKind.PATTGEN: PattgenParams,
    CapsuleKind.SYSTEM_RESET_CONTROLLER: SystemResetControllerParams,
    CapsuleKind.ALERT_HANDLER: AlertHandlerParams,
}

# Integer parameters that must be strictly positive.
_POSITIVE = ("baud_rate", "buffer_size", "length", "number_of_blocks")


def required_peripherals(params):
    """Peripheral kinds a parameter record needs from the chip."""
    kinds = []
    for _, kind in params.fields:
        if kind not in kinds:
            kinds.append(kind)
    return kinds


def referenced_peripherals(params):
    """(field name, expected kind, descriptor) for every peripheral a record references."""
    out = []
    for name, kind in params.fields:
        value = getattr(params, name)
        if isinstance(value, (tuple, list)):
            out.extend((name, kind, v) for v in value)
        else:
            out.append((name, kind, value))
    return out


class Configuration:
    """
    The user's board configuration: at most one parameter record per
    capsule kind, plus the platform-wide settings.

    Created empty, mutated through `update*` / `remove`, and read once by
    the graph builder.
    """

    def __init__(self, platform_type=DEFAULT_PLATFORM_TYPE, scheduler=SchedulerType.ROUND_ROBIN,
                 process_count=0, stack_size=DEFAULT_STACK_SIZE, syscall_filter=SyscallFilterType.NONE):
        self.platform_type = platform_type
        self.scheduler = scheduler
        self.process_count = process_count
        self.stack_size = stack_size
        self.syscall_filter = syscall_filter
        self.required = set()
        self._capsules = {}

    def capsules(self):
        """Configured (kind, params) pairs, in CapsuleKind declaration order."""
        return [(kind, self._capsules[kind]) for kind in CapsuleKind if kind in self._capsules]

    def capsule(self, kind):
        return self._capsules.get(kind)

    def update(self, kind, params):
        expected = PARAMS[kind]
        if not isinstance(params, expected):
            raise ConfigurationInvalid(
                f"{kind.name} expects {expected.__name__}, got {type(params).__name__}"
            )
        if kind in self._capsules:
            logger.debug("Replacing %s configuration", kind.name)
        self._capsules[kind] = params

    def remove(self, kind):
        self._capsules.pop(kind, None)
        self.required.discard(kind)

    def require(self, kind):
        """
        Mark a kind as explicitly required: if the chip cannot provide it,
        building fails instead of silently dropping the capsule.
        """
        self.required.add(kind)

    def update_console(self, uart, baud_rate):
        self.update(CapsuleKind.CONSOLE, ConsoleParams(uart, baud_rate))

    def update_alarm(self, timer):
        self.update(CapsuleKind.ALARM, AlarmParams(timer))

    def update_spi(self, spi):
        self.update(CapsuleKind.SPI, SpiParams(spi))

    def update_i2c(self, i2c):
        self.update(CapsuleKind.I2C, I2cParams(i2c))

    def update_ble(self, ble, timer):
        self.update(CapsuleKind.BLE, BleParams(ble, timer))

    def update_temp(self, temp):
        self.update(CapsuleKind.TEMPERATURE, TemperatureParams(temp))

    def update_rng(self, rng):
        self.update(CapsuleKind.RNG, RngParams(rng))

    def update_lsm303agr(self, i2c, accel_data_rate, low_power, accel_scale,
                         accel_high_resolution, temperature, mag_data_rate, mag_range):
        self.update(CapsuleKind.LSM303AGR, Lsm303agrParams(
            i2c, accel_data_rate, low_power, accel_scale,
            accel_high_resolution, temperature, mag_data_rate, mag_range,
        ))

    def update_flash(self, flash, buffer_size):
        self.update(CapsuleKind.FLASH, FlashParams(flash, buffer_size))

    def update_gpio(self, pins):
        self.update(CapsuleKind.GPIO, GpioParams(tuple(pins)))

    def update_led(self, led_type, pins):
        self.update(CapsuleKind.LED, LedParams(led_type, tuple(pins)))

    def update_hmac(self, hmac, length):
        self.update(CapsuleKind.HMAC, HmacParams(hmac, length))

    def update_aes(self, aes, number_of_blocks):
        self.update(CapsuleKind.AES, AesParams(aes, number_of_blocks))

    def update_kv_driver(self, flash):
        self.update(CapsuleKind.KV_DRIVER, KvDriverParams(flash))

    def update_info_flash(self, flash):
        self.update(CapsuleKind.INFO_FLASH, InfoFlashParams(flash))

    def update_lldb(self, uart, baud_rate):
        self.update(CapsuleKind.LLDB, LldbParams(uart, baud_rate))

    def update_pattgen(self, pattgen):
        self.update(CapsuleKind.PATTGEN, PattgenParams(pattgen))

    def update_system_reset_controller(self, system_reset_controller):
        self.update(CapsuleKind.SYSTEM_RESET_CONTROLLER, SystemResetControllerParams(system_reset_controller))

    def update_alert_handler(self, alert_handler):
        self.update(CapsuleKind.ALERT_HANDLER, AlertHandlerParams(alert_handler))

    def update_scheduler(self, scheduler_type):
        self.scheduler = scheduler_type

    def update_process_count(self, process_count):
        self.process_count = process_count

    def update_stack_size(self, stack_size):
        self.stack_size = stack_size

    def update_syscall_filter(self, syscall_filter):
        self.syscall_filter = syscall_filter

    def validate(self):
        """
        Chip-independent checks, run before any graph node is built.
        Raises ConfigurationInvalid on the first problem found.
        """
        if not self.platform_type or not str(self.platform_type).isidentifier():
            raise ConfigurationInvalid(f"Invalid platform type name {self.platform_type!r}")
        if not isinstance(self.process_count, int) or self.process_count < 0:
            raise ConfigurationInvalid(f"Process count must be a non-negative integer, got {self.process_count!r}")
        if not isinstance(self.stack_size, int) or self.stack_size <= 0:
            raise ConfigurationInvalid(f"Stack size must be a positive integer, got {self.stack_size!r}")

        for kind in sorted(self.required, key=lambda k: k.name):
            if kind not in self._capsules:
                raise ConfigurationInvalid(f"{kind.name} is required but not configured")

        for kind, params in self.capsules():
            for name in _POSITIVE:
                value = getattr(params, name, None)
                if value is not None and (not isinstance(value, int) or value <= 0):
                    raise ConfigurationInvalid(f"{kind.name}: {name} must be a positive integer, got {value!r}")
            if hasattr(params, "pins") and not params.pins:
                raise ConfigurationInvalid(f"{kind.name}: at least one pin is needed")
            for name, expected, descriptor in referenced_peripherals(params):
                if getattr(descriptor, "kind", None) is not expected:
                    raise ConfigurationInvalid(
                        f"{kind.name}: {name} must be a {expected.name} peripheral, got {descriptor!r}"
                    )
        logger.debug("Configuration valid: %d capsules", len(self._capsules))

    def __repr__(self):
        kinds = [kind.name for kind, _ in self.capsules()]
        return (f"Configuration(type={self.platform_type}, capsules={kinds}, "
                f"scheduler={self.scheduler.name}, processes={self.process_count})")
