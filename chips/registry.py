# chips/registry.py
from chips.earlgrey import EarlGrey
from chips.microbit import MicroBit
from chips.mock import MockChip
from utils.errors import ConfigurationInvalid

CHIPS = {
    MockChip.name: MockChip,
    EarlGrey.name: EarlGrey,
    MicroBit.name: MicroBit,
}


def chip_names():
    return sorted(CHIPS)


def get_chip(name):
    """Instantiate a fresh chip catalog by name."""
    try:
        factory = CHIPS[name.lower()]
    except KeyError:
        raise ConfigurationInvalid(
            f"unknown chip {name!r}, expected one of {', '.join(chip_names())}"
        ) from None
    return factory()
