# tests/test_configuration.py
import pytest

from chips.mock import MockChip
from config.configuration import AlarmParams, CapsuleKind, Configuration, ConsoleParams
from utils.errors import ConfigurationInvalid
from utils.logger import get_logger

logger = get_logger("test_configuration", logfile="logs/test_configuration.log")


def build_config():
    chip = MockChip()
    config = Configuration()
    config.update_console(chip.peripherals.uart()[0], 115200)
    config.update_alarm(chip.peripherals.timer()[0])
    return chip, config


def test_capsules_in_kind_order():
    _, config = build_config()
    assert [kind for kind, _ in config.capsules()] == [CapsuleKind.ALARM, CapsuleKind.CONSOLE]


def test_update_replaces_entry():
    chip, config = build_config()
    config.update_console(chip.peripherals.uart()[1], 9600)
    params = config.capsule(CapsuleKind.CONSOLE)
    assert params.uart is chip.peripherals.uart()[1]
    assert params.baud_rate == 9600
    assert len(config.capsules()) == 2


def test_remove_missing_is_noop():
    _, config = build_config()
    config.remove(CapsuleKind.LED)
    assert config.capsule(CapsuleKind.LED) is None
    assert len(config.capsules()) == 2


def test_remove_clears_requirement():
    _, config = build_config()
    config.require(CapsuleKind.CONSOLE)
    config.remove(CapsuleKind.CONSOLE)
    assert CapsuleKind.CONSOLE not in config.required
    config.validate()


def test_update_checks_params_type():
    chip, config = build_config()
    with pytest.raises(ConfigurationInvalid):
        config.update(CapsuleKind.CONSOLE, AlarmParams(chip.peripherals.timer()[0]))


def test_valid_configuration():
    _, config = build_config()
    config.validate()


@pytest.mark.parametrize("mutate", [
    lambda chip, c: c.update_console(chip.peripherals.uart()[0], 0),
    lambda chip, c: c.update_gpio([]),
    lambda chip, c: c.update_hmac(chip.peripherals.hmac()[0], -32),
    lambda chip, c: c.update_aes(chip.peripherals.aes()[0], 0),
    lambda chip, c: c.update_flash(chip.peripherals.flash()[0], 0),
    lambda chip, c: c.update_process_count(-1),
    lambda chip, c: c.update_stack_size(0),
    lambda chip, c: c.require(CapsuleKind.SPI),
    lambda chip, c: c.update_console(chip.peripherals.timer()[0], 115200),
    lambda chip, c: setattr(c, "platform_type", "not a type"),
])
def test_invalid_configuration(mutate):
    chip, config = build_config()
    mutate(chip, config)
    with pytest.raises(ConfigurationInvalid):
        config.validate()


def test_params_are_frozen():
    chip, _ = build_config()
    params = ConsoleParams(chip.peripherals.uart()[0], 115200)
    with pytest.raises(AttributeError):
        params.baud_rate = 9600


def main():
    _, config = build_config()
    logger.info("%s", config)


if __name__ == "__main__":
    main()
