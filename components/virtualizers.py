# components/virtualizers.py
import re

from components.node import Node
from utils.errors import ConfigurationInvalid
from utils.logger import get_logger

logger = get_logger("virtualizers")


def _ident(name):
    return re.sub(r"\W", "_", name).strip("_").lower()


class Virtualizer(Node):
    """
    Shared wrapper letting several capsules use one physical peripheral.

    Instances must be obtained through `insert_get`, which keeps at most one
    virtualizer of a given class per peripheral instance in the `visited`
    registry owned by the caller.
    """
    prefix = None
    # constructor parameters that must agree between all users of one instance
    shared_params = ()

    def __init__(self, peripheral, type_signature, dependencies=None):
        identifier = f"{self.prefix}_{_ident(peripheral.identifier)}"
        super().__init__(identifier, type_signature, [peripheral] + list(dependencies or []))
        self.peripheral = peripheral

    @classmethod
    def insert_get(cls, peripheral, visited, **params):
        """
        peripheral : the descriptor to wrap, keyed by identity
        visited    : dict registry, mutated in place
        params     : constructor parameters forwarded on first insertion
        """
        key = (cls, id(peripheral))
        existing = visited.get(key)
        if existing is None:
            node = cls(peripheral, **params)
            visited[key] = node
            logger.debug("Registered %s for %s", node.identifier, peripheral.identifier)
            return node

        for name in cls.shared_params:
            if name in params and getattr(existing, name) != params[name]:
                logger.error("Conflicting %s for %s: %r != %r",
                             name, existing.identifier, getattr(existing, name), params[name])
                raise ConfigurationInvalid(
                    f"{existing.identifier} is shared with {name}={getattr(existing, name)!r}, "
                    f"cannot also use {name}={params[name]!r}"
                )
        logger.debug("Reusing %s for %s", existing.identifier, peripheral.identifier)
        return existing


class MuxUart(Virtualizer):
    prefix = "mux_uart"
    shared_params = ("baud_rate",)

    def __init__(self, uart, baud_rate=115200):
        super().__init__(uart, "capsules_core::virtualizers::virtual_uart::MuxUart<'static>")
        self.baud_rate = baud_rate

    def init_expr(self):
        return (
            f"components::console::UartMuxComponent::new({self.peripheral.identifier}, {self.baud_rate})"
            f".finalize(components::uart_mux_component_static!())"
        )


class MuxAlarm(Virtualizer):
    prefix = "mux_alarm"

    def __init__(self, timer):
        super().__init__(
            timer,
            f"capsules_core::virtualizers::virtual_alarm::MuxAlarm<'static, {timer.type_signature}>",
        )

    def init_expr(self):
        return (
            f"components::alarm::AlarmMuxComponent::new({self.peripheral.identifier})"
            f".finalize(components::alarm_mux_component_static!({self.peripheral.type_signature}))"
        )


class VirtualMuxAlarm(Node):
    """
    One user's alarm on top of a shared MuxAlarm. Not deduplicated: every
    user gets its own, named after the user.
    """

    def __init__(self, mux_alarm, user):
        self.mux_alarm = mux_alarm
        timer_ty = mux_alarm.peripheral.type_signature
        super().__init__(
            f"{_ident(user)}_virtual_alarm",
            f"capsules_core::virtualizers::virtual_alarm::VirtualMuxAlarm<'static, {timer_ty}>",
            [mux_alarm],
        )

    def init_expr(self):
        return (
            f"kernel::static_init!({self.type_signature}, "
            f"capsules_core::virtualizers::virtual_alarm::VirtualMuxAlarm::new({self.mux_alarm.identifier}))"
        )

    def after_init(self):
        return f"{self.identifier}.setup();"


class MuxSpi(Virtualizer):
    prefix = "mux_spi"

    def __init__(self, spi):
        super().__init__(
            spi, f"capsules_core::virtualizers::virtual_spi::MuxSpiMaster<'static, {spi.type_signature}>"
        )

    def init_expr(self):
        return (
            f"components::spi::SpiMuxComponent::new({self.peripheral.identifier})"
            f".finalize(components::spi_mux_component_static!({self.peripheral.type_signature}))"
        )


class MuxI2c(Virtualizer):
    prefix = "mux_i2c"

    def __init__(self, i2c):
        super().__init__(
            i2c, f"capsules_core::virtualizers::virtual_i2c::MuxI2C<'static, {i2c.type_signature}>"
        )

    def init_expr(self):
        return (
            f"components::i2c::I2CMuxComponent::new({self.peripheral.identifier}, None)"
            f".finalize(components::i2c_mux_component_static!({self.peripheral.type_signature}))"
        )


class MuxFlash(Virtualizer):
    prefix = "mux_flash"

    def __init__(self, flash):
        super().__init__(
            flash, f"capsules_core::virtualizers::virtual_flash::MuxFlash<'static, {flash.type_signature}>"
        )

    def init_expr(self):
        return (
            f"components::flash::FlashMuxComponent::new({self.peripheral.identifier})"
            f".finalize(components::flash_mux_component_static!({self.peripheral.type_signature}))"
        )


class MuxAes(Virtualizer):
    prefix = "mux_aes"

    def __init__(self, aes):
        super().__init__(
            aes,
            f"capsules_core::virtualizers::virtual_aes_ccm::MuxAES128CCM<'static, {aes.type_signature}>",
        )

    def init_expr(self):
        return (
            f"kernel::static_init!({self.type_signature}, "
            f"capsules_core::virtualizers::virtual_aes_ccm::MuxAES128CCM::new({self.peripheral.identifier}))"
        )

    def after_init(self):
        return (
            f"kernel::deferred_call::DeferredCallClient::register({self.identifier});\n"
            f"kernel::hil::symmetric_encryption::AES128::set_client({self.peripheral.identifier}, {self.identifier});"
        )
