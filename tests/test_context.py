# tests/test_context.py
import pytest

from builder.context import Context, resolve
from chips.earlgrey import EarlGrey
from chips.microbit import MicroBit
from chips.mock import MockChip
from components.capsules import LedType, Lsm303AccelDataRate, Lsm303MagnetoDataRate, Lsm303Range, Lsm303Scale
from components.emitter import Emitter
from components.graph import DependencyGraph
from components.peripherals import BleAdvertisement, PeripheralKind, Uart
from components.platform import DefaultSchedulerTimer, SysTick, SyscallFilterType, VirtualSchedulerTimer
from components.virtualizers import MuxAlarm, MuxFlash, MuxI2c, MuxUart
from config.configuration import CapsuleKind, Configuration
from utils.errors import ConfigurationInvalid, CycleDetected, UnsupportedCapability
from utils.logger import get_logger

logger = get_logger("test_context", logfile="logs/test_context.log")


def build_console_alarm(chip):
    config = Configuration()
    config.update_console(chip.peripherals.uart()[0], 115200)
    config.update_alarm(chip.peripherals.timer()[0])
    return config


def build_full_mock(chip):
    p = chip.peripherals
    config = build_console_alarm(chip)
    config.update_lldb(p.uart()[0], 115200)
    config.update_led(LedType.LED_HIGH, p.gpio()[:2])
    config.update_gpio(p.gpio()[2:])
    config.update_spi(p.spi()[0])
    config.update_i2c(p.i2c()[0])
    config.update_lsm303agr(
        p.i2c()[0], Lsm303AccelDataRate.DATA_RATE_25HZ, False, Lsm303Scale.SCALE_2G,
        False, True, Lsm303MagnetoDataRate.DATA_RATE_3_0HZ, Lsm303Range.RANGE_4_7G,
    )
    config.update_flash(p.flash()[0], 512)
    config.update_kv_driver(p.flash()[0])
    config.update_info_flash(p.flash()[0])
    config.update_temp(p.temp()[0])
    config.update_rng(p.rng()[0])
    config.update_hmac(p.hmac()[0], 32)
    config.update_aes(p.aes()[0], 7)
    config.update_process_count(4)
    return config


def graph_of(context):
    return DependencyGraph(context.roots())


def nodes_of_type(graph, cls):
    return [n for n in graph.order if isinstance(n, cls)]


def test_console_alarm_scenario():
    chip = MockChip()
    context = Context.from_config(chip, build_console_alarm(chip))
    graph = graph_of(context)
    pos = graph.position
    logger.info("Order: %s", [n.identifier for n in graph.order])

    assert pos("uart0") < pos("mux_uart_uart0") < pos("console")
    assert pos("timer0") < pos("mux_alarm_timer0") < pos("alarm")
    assert graph.order[-1] is context.platform
    assert [c.identifier for c in context.platform.capsules] == ["alarm", "console"]


def test_every_dependency_bound_first():
    chip = MockChip()
    graph = graph_of(Context.from_config(chip, build_full_mock(chip)))
    seen = set()
    for node in graph.order:
        for dep in node.dependencies:
            assert dep in seen, f"{node.identifier} emitted before {dep.identifier}"
        seen.add(node)


def test_console_and_lldb_share_mux_uart():
    chip = MockChip()
    config = build_console_alarm(chip)
    config.update_lldb(chip.peripherals.uart()[0], 115200)
    graph = graph_of(Context.from_config(chip, config))

    muxes = nodes_of_type(graph, MuxUart)
    assert len(muxes) == 1
    assert graph.nodes["console"].mux_uart is graph.nodes["lldb"].mux_uart
    assert "mux_uart_uart0" in graph.nodes["console"].init_expr()
    assert "mux_uart_uart0" in graph.nodes["lldb"].init_expr()


def test_distinct_uarts_get_distinct_muxes():
    chip = MockChip()
    config = build_console_alarm(chip)
    config.update_lldb(chip.peripherals.uart()[1], 115200)
    graph = graph_of(Context.from_config(chip, config))
    assert sorted(m.identifier for m in nodes_of_type(graph, MuxUart)) == ["mux_uart_uart0", "mux_uart_uart1"]


def test_conflicting_baud_rates_rejected():
    chip = MockChip()
    config = build_console_alarm(chip)
    config.update_lldb(chip.peripherals.uart()[0], 9600)
    with pytest.raises(ConfigurationInvalid):
        Context.from_config(chip, config)


def test_baud_conflict_found_before_building(monkeypatch):
    chip = MockChip()
    config = build_console_alarm(chip)
    config.update_lldb(chip.peripherals.uart()[0], 9600)
    built = []
    monkeypatch.setattr(MuxUart, "insert_get", classmethod(lambda cls, *a, **kw: built.append(a)))

    with pytest.raises(ConfigurationInvalid) as info:
        resolve(chip, config)
    assert "uart0" in str(info.value)
    with pytest.raises(ConfigurationInvalid):
        Context.from_config(chip, config)
    assert built == []


def test_alarm_and_scheduler_timer_share_mux_alarm():
    chip = MockChip()
    context = Context.from_config(chip, build_console_alarm(chip))
    graph = graph_of(context)

    timer = context.platform.scheduler_timer
    assert isinstance(timer, VirtualSchedulerTimer)
    assert len(nodes_of_type(graph, MuxAlarm)) == 1
    assert timer.virtual_alarm.mux_alarm is graph.nodes["alarm"].mux_alarm


def test_flash_users_share_mux_flash():
    chip = MockChip()
    graph = graph_of(Context.from_config(chip, build_full_mock(chip)))
    assert len(nodes_of_type(graph, MuxFlash)) == 1
    assert len(nodes_of_type(graph, MuxI2c)) == 1
    assert graph.nodes["app_flash"].mux_flash is graph.nodes["kv_driver"].mux_flash


def test_identifiers_unique():
    chip = MockChip()
    graph = graph_of(Context.from_config(chip, build_full_mock(chip)))
    identifiers = [n.identifier for n in graph.order]
    assert len(identifiers) == len(set(identifiers))


def test_idempotent_emission():
    first_chip, second_chip = MockChip(), MockChip()
    first = Emitter(Context.from_config(first_chip, build_full_mock(first_chip))).emit()
    second = Emitter(Context.from_config(second_chip, build_full_mock(second_chip))).emit()
    assert first == second


def test_insertion_order_does_not_matter():
    chip = MockChip()
    forward = build_console_alarm(chip)

    backward = Configuration()
    backward.update_alarm(chip.peripherals.timer()[0])
    backward.update_console(chip.peripherals.uart()[0], 115200)

    assert (Emitter(Context.from_config(chip, forward)).emit()
            == Emitter(Context.from_config(chip, backward)).emit())


def test_removed_capsule_absent():
    chip = MockChip()
    config = build_console_alarm(chip)
    config.remove(CapsuleKind.CONSOLE)
    config.remove(CapsuleKind.CONSOLE)
    graph = graph_of(Context.from_config(chip, config))

    assert "console" not in graph
    assert "mux_uart_uart0" not in graph
    assert "alarm" in graph


def test_unsupported_capsule_skipped():
    chip = MockChip()
    config = build_console_alarm(chip)
    config.update_ble(BleAdvertisement("ble0", "mock::ble::Ble<'static>"), chip.peripherals.timer()[0])
    context = Context.from_config(chip, config)
    assert "ble_radio" not in [c.identifier for c in context.platform.capsules]


def test_required_unsupported_capsule_fails():
    chip = MockChip()
    config = build_console_alarm(chip)
    config.update_ble(BleAdvertisement("ble0", "mock::ble::Ble<'static>"), chip.peripherals.timer()[0])
    config.require(CapsuleKind.BLE)
    with pytest.raises(UnsupportedCapability) as info:
        Context.from_config(chip, config)
    assert info.value.kind is PeripheralKind.BLE


def test_foreign_peripheral_rejected():
    chip = MockChip()
    config = Configuration()
    config.update_console(Uart("uart0", "mock::uart::Uart<'static>", "mock::uart::Uart::new(0)"), 115200)
    with pytest.raises(ConfigurationInvalid):
        Context.from_config(chip, config)


def test_cycle_surfaces_from_emit():
    chip = MockChip()
    context = Context.from_config(chip, build_console_alarm(chip))
    context.platform.scheduler.dependencies.append(context.platform)
    with pytest.raises(CycleDetected):
        Emitter(context).emit()


def test_syscall_filter_node():
    chip = MockChip()
    config = build_console_alarm(chip)
    config.update_syscall_filter(SyscallFilterType.TBF_HEADER_FILTER_DEFAULT_ALLOW)
    context = Context.from_config(chip, config)
    assert context.platform.syscall_filter is not None
    assert "syscall_filter" in graph_of(context)


def test_earlgrey_uses_unit_scheduler_timer():
    chip = EarlGrey()
    context = Context.from_config(chip, build_console_alarm(chip))
    assert isinstance(context.platform.scheduler_timer, DefaultSchedulerTimer)
    assert "flash_memory_protection_configuration" in graph_of(context)


def test_earlgrey_opentitan_capsules():
    chip = EarlGrey()
    p = chip.peripherals
    config = build_console_alarm(chip)
    config.update_hmac(p.hmac()[0], 32)
    config.update_aes(p.aes()[0], 7)
    config.update_rng(p.rng()[0])
    config.update_pattgen(p.pattgen()[0])
    config.update_system_reset_controller(p.system_reset_controller()[0])
    config.update_alert_handler(p.alert_handler()[0])
    config.update_kv_driver(p.flash()[0])
    config.update_info_flash(p.flash()[0])
    emission = Emitter(Context.from_config(chip, config)).emit()

    identifiers = emission.identifiers()
    assert len(identifiers) == len(set(identifiers))
    assert identifiers.index("aes0") < identifiers.index("mux_aes_aes0") < identifiers.index("aes")
    assert identifiers[-1] == "platform"


def test_microbit_uses_systick():
    chip = MicroBit()
    config = build_console_alarm(chip)
    config.update_ble(chip.peripherals.ble()[0], chip.peripherals.timer()[0])
    context = Context.from_config(chip, config)

    assert isinstance(context.platform.scheduler_timer, SysTick)
    graph = graph_of(context)
    assert graph.nodes["ble_radio"].mux_alarm is graph.nodes["alarm"].mux_alarm


def main():
    chip = MockChip()
    context = Context.from_config(chip, build_full_mock(chip))
    logger.info("%r", graph_of(context))


if __name__ == "__main__":
    main()
