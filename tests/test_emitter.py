# tests/test_emitter.py
import pytest

from builder.context import Context
from chips.earlgrey import EarlGrey
from chips.mock import MockChip
from components.emitter import AFTER_INIT, BEFORE_INIT, BINDING, Emitter, dispatch_table
from components.node import Capsule
from config.configuration import Configuration
from utils.errors import DuplicateIdentifier
from utils.logger import get_logger

logger = get_logger("test_emitter", logfile="logs/test_emitter.log")


def build_emission(chip, **extra):
    p = chip.peripherals
    config = Configuration()
    config.update_console(p.uart()[0], 115200)
    config.update_alarm(p.timer()[0])
    if extra.get("flash"):
        config.update_flash(p.flash()[0], 512)
    if extra.get("aes"):
        config.update_aes(p.aes()[0], 7)
    return Emitter(Context.from_config(chip, config)).emit()


def test_dispatch_table_follows_emission_order():
    emission = build_emission(MockChip())
    logger.info("Dispatch: %s", emission.dispatch_table)
    assert emission.dispatch_table == [(0x0, "alarm"), (0x1, "console")]


def test_duplicate_driver_number_rejected():
    a = Capsule("first", "First", 0x90000)
    b = Capsule("second", "Second", 0x90000)
    with pytest.raises(DuplicateIdentifier):
        dispatch_table([a, b])


def test_board_type_fields():
    emission = build_emission(MockChip())
    board = emission.board_type
    assert board.name == "AutogeneratedPlatform"
    assert board.fields[0].startswith("alarm: &'static capsules_core::alarm::AlarmDriver")
    assert board.fields[1] == "console: &'static capsules_core::console::Console<'static>"
    assert board.fields[2].startswith("scheduler: &'static kernel::scheduler::round_robin")
    assert board.fields[3].startswith("scheduler_timer: &'static ")


def test_unit_scheduler_timer_field():
    emission = build_emission(EarlGrey())
    assert emission.board_type.fields[-1] == "scheduler_timer: ()"


def test_statements_skip_missing_hooks():
    emission = build_emission(MockChip(), flash=True)
    statements = emission.statements()
    kinds = {(s.identifier, s.kind) for s in statements}

    assert ("app_flash", BEFORE_INIT) in kinds
    assert ("app_flash", BINDING) in kinds
    assert ("scheduler_timer_virtual_alarm", AFTER_INIT) in kinds
    assert ("console", BEFORE_INIT) not in kinds
    assert all(s.fragment for s in statements)


def test_before_init_precedes_binding():
    emission = build_emission(MockChip(), aes=True)
    statements = [(s.identifier, s.kind) for s in emission.statements()]
    assert statements.index(("aes", BEFORE_INIT)) < statements.index(("aes", BINDING))
    assert statements.index(("mux_aes_aes0", AFTER_INIT)) < statements.index(("aes", BEFORE_INIT))


def test_initializations_match_graph():
    emission = build_emission(MockChip())
    identifiers = emission.identifiers()
    assert identifiers[0] == "mpu"
    assert identifiers[-1] == "platform"
    assert identifiers.index("chip") < identifiers.index("platform")


def main():
    emission = build_emission(MockChip(), flash=True, aes=True)
    for statement in emission.statements():
        logger.info("%s %s", statement.kind, statement.identifier)


if __name__ == "__main__":
    main()
