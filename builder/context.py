# builder/context.py
from components.capsules import (
    AesCapsule, AlarmDriver, AlertHandlerCapsule, AppFlash, BleRadio, Console, Gpio,
    HmacCapsule, I2CMasterDriver, InfoFlash, KvDriver, Led, Lldb, Lsm303agr,
    PattgenCapsule, RngCapsule, SpiController, SystemResetControllerCapsule,
    TemperatureCapsule,
)
from components.peripherals import PeripheralKind
from components.platform import (
    DefaultSchedulerTimer, Platform, Scheduler, SyscallFilter, SyscallFilterType,
    VirtualSchedulerTimer,
)
from components.virtualizers import MuxAes, MuxAlarm, MuxFlash, MuxI2c, MuxSpi, MuxUart, VirtualMuxAlarm
from config.configuration import CapsuleKind, referenced_peripherals, required_peripherals
from utils.errors import ConfigurationInvalid, UnsupportedCapability
from utils.logger import get_logger

logger = get_logger("context")


def _console(p, visited):
    return Console(MuxUart.insert_get(p.uart, visited, baud_rate=p.baud_rate))


def _lldb(p, visited):
    return Lldb(MuxUart.insert_get(p.uart, visited, baud_rate=p.baud_rate))


def _alarm(p, visited):
    return AlarmDriver(MuxAlarm.insert_get(p.timer, visited))


def _ble(p, visited):
    return BleRadio(p.ble, MuxAlarm.insert_get(p.timer, visited))


def _spi(p, visited):
    return SpiController(MuxSpi.insert_get(p.spi, visited))


def _lsm303agr(p, visited):
    return Lsm303agr(
        MuxI2c.insert_get(p.i2c, visited),
        p.accel_data_rate, p.low_power, p.accel_scale,
        p.accel_high_resolution, p.temperature, p.mag_data_rate, p.mag_range,
    )


def _flash(p, visited):
    return AppFlash(MuxFlash.insert_get(p.flash, visited), p.buffer_size)


def _kv_driver(p, visited):
    return KvDriver(MuxFlash.insert_get(p.flash, visited))


def _aes(p, visited):
    return AesCapsule(MuxAes.insert_get(p.aes, visited), p.number_of_blocks)


BUILDERS = {
    CapsuleKind.ALARM: _alarm,
    CapsuleKind.LED: lambda p, visited: Led(p.led_type, list(p.pins)),
    CapsuleKind.SPI: _spi,
    CapsuleKind.I2C: lambda p, visited: I2CMasterDriver(p.i2c),
    CapsuleKind.BLE: _ble,
    CapsuleKind.FLASH: _flash,
    CapsuleKind.LSM303AGR: _lsm303agr,
    CapsuleKind.CONSOLE: _console,
    CapsuleKind.TEMPERATURE: lambda p, visited: TemperatureCapsule(p.temp),
    CapsuleKind.RNG: lambda p, visited: RngCapsule(p.rng),
    CapsuleKind.GPIO: lambda p, visited: Gpio(list(p.pins)),
    CapsuleKind.HMAC: lambda p, visited: HmacCapsule(p.hmac, p.length),
    CapsuleKind.KV_DRIVER: _kv_driver,
    CapsuleKind.AES: _aes,
    CapsuleKind.INFO_FLASH: lambda p, visited: InfoFlash(p.flash),
    CapsuleKind.LLDB: _lldb,
    CapsuleKind.PATTGEN: lambda p, visited: PattgenCapsule(p.pattgen),
    CapsuleKind.SYSTEM_RESET_CONTROLLER: lambda p, visited: SystemResetControllerCapsule(p.system_reset_controller),
    CapsuleKind.ALERT_HANDLER: lambda p, visited: AlertHandlerCapsule(p.alert_handler),
}


class Context:
    """
    The glue between the user's chip-agnostic configuration and the node
    graph used for code generation. Build it with `Context.from_config`.
    """

    def __init__(self, chip, platform, process_count, stack_size):
        self.chip = chip
        self.platform = platform
        self.process_count = process_count
        self.stack_size = stack_size

    def roots(self):
        # The chip is bound first so the platform is the last node emitted.
        return [self.chip, self.platform]

    @classmethod
    def from_config(cls, chip, config):
        logger.info("Building context for chip %s: %s", chip.name, config)
        config.validate()
        selected = resolve(chip, config)

        # Owned by this build only; shared virtualizers are looked up here.
        visited = {}
        capsules = []
        for kind, params in selected:
            capsule = BUILDERS[kind](params, visited)
            logger.debug("Built %r for %s", capsule, kind.name)
            capsules.append(capsule)

        scheduler = Scheduler.insert_get(config.scheduler, visited)
        scheduler_timer = build_scheduler_timer(chip, visited)
        syscall_filter = None
        if config.syscall_filter is not SyscallFilterType.NONE:
            syscall_filter = SyscallFilter(config.syscall_filter)

        platform = Platform(config.platform_type, capsules, scheduler, scheduler_timer, syscall_filter)
        logger.info("Platform %s with capsules %s", config.platform_type,
                    [c.identifier for c in capsules])
        return cls(chip, platform, config.process_count, config.stack_size)


def resolve(chip, config):
    """
    Check every configured capsule against the chip before anything is built.
    Capsules needing a peripheral kind the chip lacks are dropped, unless
    the kind was explicitly required. Returns the (kind, params) pairs to build.
    """
    selected = []
    for kind, params in config.capsules():
        try:
            for peripheral_kind in required_peripherals(params):
                chip.peripherals.get(peripheral_kind)
        except UnsupportedCapability as e:
            if kind in config.required:
                logger.error("Required capsule %s unavailable: %s", kind.name, e)
                raise
            logger.warning("Skipping capsule %s: %s", kind.name, e)
            continue

        for name, _, descriptor in referenced_peripherals(params):
            if not chip.peripherals.owns(descriptor):
                raise ConfigurationInvalid(
                    f"{kind.name}: {name} refers to {descriptor!r}, which is not a peripheral of {chip.name}"
                )
        selected.append((kind, params))

    check_shared_uarts(selected)
    return selected


def check_shared_uarts(selected):
    """
    Capsules sharing one UART share its MuxUart, so they must agree on the
    baud rate. Raises ConfigurationInvalid naming both users otherwise.
    """
    users = {}
    for kind, params in selected:
        uart = getattr(params, "uart", None)
        if uart is None:
            continue
        first = users.setdefault(id(uart), (kind, params.baud_rate))
        if first[1] != params.baud_rate:
            logger.error("%s and %s disagree on the baud rate of %s", first[0].name, kind.name, uart.identifier)
            raise ConfigurationInvalid(
                f"{first[0].name} uses {uart.identifier} at {first[1]} baud, "
                f"{kind.name} cannot use it at {params.baud_rate}"
            )


def build_scheduler_timer(chip, visited):
    if chip.has_systick():
        return chip.systick()
    if chip.supports(PeripheralKind.TIMER):
        timer = chip.peripherals.timer()[0]
        mux_alarm = MuxAlarm.insert_get(timer, visited)
        logger.debug("No systick on %s, scheduling on %s", chip.name, mux_alarm.identifier)
        return VirtualSchedulerTimer(VirtualMuxAlarm(mux_alarm, "scheduler_timer"))
    logger.warning("Chip %s has neither systick nor timer, using the unit scheduler timer", chip.name)
    return DefaultSchedulerTimer()
