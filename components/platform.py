# components/platform.py
from enum import Enum

from components.node import Node
from utils.errors import UnsupportedCapability
from utils.logger import get_logger

logger = get_logger("platform")


class SchedulerType(Enum):
    ROUND_ROBIN = "RoundRobin"
    COOPERATIVE = "Cooperative"


class SyscallFilterType(Enum):
    NONE = "None"
    TBF_HEADER_FILTER_DEFAULT_ALLOW = "TbfHeaderFilterDefaultAllow"


_SCHEDULERS = {
    SchedulerType.ROUND_ROBIN: (
        "kernel::scheduler::round_robin::RoundRobinSched<'static>",
        "components::sched::round_robin::RoundRobinComponent::new(&*core::ptr::addr_of!(PROCESSES))"
        ".finalize(components::round_robin_component_static!(NUM_PROCS))",
    ),
    SchedulerType.COOPERATIVE: (
        "kernel::scheduler::cooperative::CooperativeSched<'static>",
        "components::sched::cooperative::CooperativeComponent::new(&*core::ptr::addr_of!(PROCESSES))"
        ".finalize(components::cooperative_component_static!(NUM_PROCS))",
    ),
}


class Scheduler(Node):
    def __init__(self, scheduler_type):
        type_signature, self._init = _SCHEDULERS[scheduler_type]
        super().__init__("scheduler", type_signature)
        self.scheduler_type = scheduler_type

    @classmethod
    def insert_get(cls, scheduler_type, visited):
        key = (cls, scheduler_type)
        if key not in visited:
            visited[key] = cls(scheduler_type)
            logger.debug("Registered %s scheduler", scheduler_type.value)
        return visited[key]

    def init_expr(self):
        return self._init


class DefaultSchedulerTimer(Node):
    """Unit scheduler timer, for chips that preempt through their own systick."""

    def __init__(self):
        super().__init__("scheduler_timer", "()")

    def init_expr(self):
        return "()"


class VirtualSchedulerTimer(Node):
    def __init__(self, virtual_alarm):
        super().__init__(
            "scheduler_timer",
            f"components::virtual_scheduler_timer::VirtualSchedulerTimerComponentType<{virtual_alarm.mux_alarm.peripheral.type_signature}>",
            [virtual_alarm],
        )
        self.virtual_alarm = virtual_alarm

    def init_expr(self):
        return (
            f"kernel::static_init!({self.type_signature}, "
            f"kernel::platform::scheduler_timer::VirtualSchedulerTimer::new({self.virtual_alarm.identifier}))"
        )


class SyscallFilter(Node):
    def __init__(self, filter_type):
        super().__init__("syscall_filter", f"capsules_system::process_checker::basic::{filter_type.value}")
        self.filter_type = filter_type

    def init_expr(self):
        return f"kernel::static_init!({self.type_signature}, {self.type_signature} {{}})"


class Platform(Node):
    """
    Root grouping the configured capsules, the scheduler and the scheduler
    timer into the board struct.
    """

    def __init__(self, platform_type, capsules, scheduler, scheduler_timer, syscall_filter=None):
        dependencies = list(capsules) + [scheduler, scheduler_timer]
        if syscall_filter is not None:
            dependencies.append(syscall_filter)
        super().__init__("platform", platform_type, dependencies)
        self.capsules = list(capsules)
        self.scheduler = scheduler
        self.scheduler_timer = scheduler_timer
        self.syscall_filter = syscall_filter

    def init_expr(self):
        fields = [f"{n.identifier}," for n in self.capsules + [self.scheduler, self.scheduler_timer]]
        if self.syscall_filter is not None:
            fields.append(f"{self.syscall_filter.identifier},")
        return f"{self.type_signature} {{ {' '.join(fields)} }}"


class MemoryProtection(Node):
    """Memory protection setup of the chip (MPU, PMP or ePMP)."""

    def __init__(self, identifier, type_signature, constructor):
        super().__init__(identifier, type_signature)
        self.constructor = constructor

    def init_expr(self):
        return self.constructor


class Chip(Node):
    """
    Root for the chip's always-present infrastructure: the peripheral
    aggregate and the memory protection setup. Subclasses are the
    per-chip catalogs.
    """
    name = None

    def __init__(self, type_signature, peripherals, memory_protection, constructor,
                 systick=None, identifier="chip"):
        super().__init__(identifier, type_signature, [memory_protection, peripherals])
        self.peripherals = peripherals
        self.memory_protection = memory_protection
        self.constructor = constructor
        self._systick = systick

    def init_expr(self):
        return f"kernel::static_init!({self.type_signature}, {self.constructor})"

    def has_systick(self):
        return self._systick is not None

    def systick(self):
        if self._systick is None:
            raise UnsupportedCapability("SYSTICK", self.name)
        return self._systick

    def supports(self, kind):
        return self.peripherals.supports(kind)

    def before_boot(self):
        """Chip prelude run before the platform is set up, if any."""
        return None


class SysTick(Node):
    """Chip-provided scheduler timer (e.g. the Cortex-M SysTick)."""

    def __init__(self, type_signature, constructor):
        super().__init__("scheduler_timer", type_signature)
        self.constructor = constructor

    def init_expr(self):
        return f"kernel::static_init!({self.type_signature}, {self.constructor})"
