# config/loader.py
import dataclasses
import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from components.peripherals import PeripheralKind
from components.platform import SchedulerType, SyscallFilterType
from config.configuration import (
    DEFAULT_PLATFORM_TYPE, DEFAULT_STACK_SIZE, PARAMS, CapsuleKind, Configuration,
)
from utils.errors import ConfigurationInvalid, UnsupportedCapability
from utils.logger import get_logger

logger = get_logger("loader")


# =========================
# Pydantic models
# =========================

class PeripheralRef(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: str
    index: int = 0


class ConfigFile(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    platform_type: str = Field(DEFAULT_PLATFORM_TYPE, alias="TYPE")
    capsules: Dict[str, Dict[str, Any]] = Field(default_factory=dict, alias="CAPSULES")
    scheduler: str = Field(SchedulerType.ROUND_ROBIN.name, alias="SCHEDULER")
    process_count: int = Field(0, alias="PROCESS_COUNT")
    stack_size: int = Field(DEFAULT_STACK_SIZE, alias="STACK_SIZE")
    syscall_filter: str = Field(SyscallFilterType.NONE.name, alias="SYSCALL_FILTER")
    required: List[str] = Field(default_factory=list, alias="REQUIRED")


# =========================
# Helpers
# =========================

def _enum(enum_cls, name, what):
    try:
        return enum_cls[name]
    except KeyError:
        choices = ", ".join(m.name for m in enum_cls)
        raise ConfigurationInvalid(f"Unknown {what} {name!r}, expected one of {choices}") from None


def _lookup(chip, kind, index):
    """Descriptor `index` of `kind` on the chip. GPIO pins are looked up by pin number."""
    descriptors = chip.peripherals.get(kind)
    if kind is PeripheralKind.GPIO:
        for pin in descriptors:
            if pin.index == index:
                return pin
    elif 0 <= index < len(descriptors):
        return descriptors[index]
    raise ConfigurationInvalid(
        f"{chip.name} has no {kind.name} peripheral with index {index} ({len(descriptors)} available)"
    )


def _resolve_ref(chip, raw, expected):
    try:
        ref = PeripheralRef.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationInvalid(f"Malformed peripheral reference {raw!r}: {e}") from e
    kind = _enum(PeripheralKind, ref.kind, "peripheral kind")
    if kind is not expected:
        raise ConfigurationInvalid(f"Expected a {expected.name} peripheral, got {kind.name}")
    return _lookup(chip, kind, ref.index)


def _convert(value, field_type, what):
    if isinstance(field_type, type) and issubclass(field_type, Enum):
        if not isinstance(value, str):
            raise ConfigurationInvalid(f"{what} must be a {field_type.__name__} name, got {value!r}")
        return _enum(field_type, value, what)
    if field_type is bool and not isinstance(value, bool):
        raise ConfigurationInvalid(f"{what} must be a boolean, got {value!r}")
    if field_type is int and (isinstance(value, bool) or not isinstance(value, int)):
        raise ConfigurationInvalid(f"{what} must be an integer, got {value!r}")
    return value


def _build_params(chip, kind, raw):
    params_cls = PARAMS[kind]
    peripheral_fields = dict(params_cls.fields)
    names = [f.name for f in dataclasses.fields(params_cls)]

    unknown = sorted(set(raw) - set(names))
    if unknown:
        raise ConfigurationInvalid(f"{kind.name}: unknown parameters {unknown}")
    missing = [n for n in names if n not in raw]
    if missing:
        raise ConfigurationInvalid(f"{kind.name}: missing parameters {missing}")

    values = {}
    for f in dataclasses.fields(params_cls):
        value = raw[f.name]
        what = f"{kind.name}.{f.name}"
        if f.name in peripheral_fields:
            expected = peripheral_fields[f.name]
            if getattr(f.type, "__origin__", None) is tuple:
                if not isinstance(value, list):
                    raise ConfigurationInvalid(f"{what} must be a list of peripheral references")
                values[f.name] = tuple(_resolve_ref(chip, v, expected) for v in value)
            else:
                values[f.name] = _resolve_ref(chip, value, expected)
        else:
            values[f.name] = _convert(value, f.type, what)
    return params_cls(**values)


def _ref(chip, descriptor):
    kind = descriptor.kind
    if kind is PeripheralKind.GPIO:
        return {"kind": kind.name, "index": descriptor.index}
    return {"kind": kind.name, "index": chip.peripherals.get(kind).index(descriptor)}


def _dump_value(chip, value):
    if isinstance(value, tuple):
        return [_dump_value(chip, v) for v in value]
    if isinstance(value, Enum):
        return value.name
    if hasattr(value, "kind") and isinstance(value.kind, PeripheralKind):
        return _ref(chip, value)
    return value


# =========================
# Public API
# =========================

def parse_configuration(text, chip):
    """
    Build a Configuration from JSON text, resolving peripheral references
    against `chip`.

    text : str
    chip : Chip

    Capsules needing a peripheral kind the chip lacks are dropped with a
    warning, unless listed in REQUIRED.
    """
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationInvalid(f"Configuration is not valid JSON: {e}") from e
    try:
        model = ConfigFile.model_validate(document)
    except ValidationError as e:
        raise ConfigurationInvalid(f"Malformed configuration: {e}") from e

    config = Configuration(
        platform_type=model.platform_type,
        scheduler=_enum(SchedulerType, model.scheduler, "scheduler"),
        process_count=model.process_count,
        stack_size=model.stack_size,
        syscall_filter=_enum(SyscallFilterType, model.syscall_filter, "syscall filter"),
    )
    for name in model.required:
        config.require(_enum(CapsuleKind, name, "capsule kind"))

    for name, raw in model.capsules.items():
        kind = _enum(CapsuleKind, name, "capsule kind")
        try:
            params = _build_params(chip, kind, raw)
        except UnsupportedCapability as e:
            if kind in config.required:
                logger.error("Required capsule %s unavailable: %s", kind.name, e)
                raise
            logger.warning("Dropping capsule %s from configuration: %s", kind.name, e)
            continue
        config.update(kind, params)

    logger.info("Loaded %s", config)
    return config


def load_configuration(path, chip):
    path = Path(path)
    logger.info("Reading configuration %s", path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationInvalid(f"Cannot read configuration {path}: {e}") from e
    return parse_configuration(text, chip)


def dump_configuration(config, chip):
    """Serialize `config` back to the JSON layout read by `parse_configuration`."""
    capsules = {}
    for kind, params in config.capsules():
        capsules[kind.name] = {
            f.name: _dump_value(chip, getattr(params, f.name)) for f in dataclasses.fields(params)
        }
    model = ConfigFile(
        platform_type=config.platform_type,
        capsules=capsules,
        scheduler=config.scheduler.name,
        process_count=config.process_count,
        stack_size=config.stack_size,
        syscall_filter=config.syscall_filter.name,
        required=sorted(k.name for k in config.required),
    )
    return json.dumps(model.model_dump(by_alias=True), indent=2) + "\n"
