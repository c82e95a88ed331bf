# render/rust.py
import os
import stat
import tempfile
from pathlib import Path

from components.emitter import AFTER_INIT, BEFORE_INIT, BINDING
from components.platform import DefaultSchedulerTimer
from utils.logger import get_logger

logger = get_logger("render")

INDENT = "    "

HEADER = """\
//! GENERATED BY TOCKGEN.

#![no_std]
#![cfg_attr(not(doc), no_main)]

use kernel::component::Component;
use kernel::platform::{KernelResources, SyscallDriverLookup};

pub mod io;
"""


def _indent(text, depth=1):
    pad = INDENT * depth
    return "\n".join(pad + line if line.strip() else line for line in text.splitlines())


def render_globals(context):
    chip_type = context.chip.type_signature
    return f"""\
pub const NUM_PROCS: usize = {context.process_count};
const FAULT_RESPONSE: capsules_system::process_policies::PanicFaultPolicy =
    capsules_system::process_policies::PanicFaultPolicy {{}};
static mut PROCESSES: [Option<&'static dyn kernel::process::Process>; NUM_PROCS] = [None; NUM_PROCS];
static mut CHIP: Option<&'static {chip_type}> = None;

#[no_mangle]
#[link_section = ".stack_buffer"]
pub static mut STACK_MEMORY: [u8; {context.stack_size:#x}] = [0; {context.stack_size:#x}];
"""


def render_board_struct(board_type):
    fields = "\n".join(f"{INDENT}{field}," for field in board_type.fields)
    return f"struct {board_type.name} {{\n{fields}\n}}\n"


def render_dispatch(board_type, dispatch_table):
    arms = [f"{driver_number:#x} => f(Some(self.{identifier}))," for driver_number, identifier in dispatch_table]
    arms.append("_ => f(None),")
    body = _indent("\n".join(arms), 3)
    return f"""\
impl SyscallDriverLookup for {board_type.name} {{
    fn with_driver<F, R>(&self, driver_num: usize, f: F) -> R
    where
        F: FnOnce(Option<&dyn kernel::syscall::SyscallDriver>) -> R,
    {{
        match driver_num {{
{body}
        }}
    }}
}}
"""


def render_kernel_resources(context):
    platform = context.platform
    chip_type = context.chip.type_signature
    scheduler = platform.scheduler
    timer = platform.scheduler_timer
    timer_ref = f"&self.{timer.identifier}" if isinstance(timer, DefaultSchedulerTimer) else f"self.{timer.identifier}"

    if platform.syscall_filter is not None:
        filter_type = platform.syscall_filter.type_signature
        filter_ref = f"self.{platform.syscall_filter.identifier}"
    else:
        filter_type, filter_ref = "()", "&()"

    return f"""\
impl KernelResources<{chip_type}> for {platform.type_signature} {{
    type SyscallDriverLookup = Self;
    type SyscallFilter = {filter_type};
    type ProcessFault = ();
    type Scheduler = {scheduler.type_signature};
    type SchedulerTimer = {timer.type_signature};
    type WatchDog = ();
    type ContextSwitchCallback = ();

    fn syscall_driver_lookup(&self) -> &Self::SyscallDriverLookup {{
        self
    }}
    fn syscall_filter(&self) -> &Self::SyscallFilter {{
        {filter_ref}
    }}
    fn process_fault(&self) -> &Self::ProcessFault {{
        &()
    }}
    fn scheduler(&self) -> &Self::Scheduler {{
        self.{scheduler.identifier}
    }}
    fn scheduler_timer(&self) -> &Self::SchedulerTimer {{
        {timer_ref}
    }}
    fn watchdog(&self) -> &Self::WatchDog {{
        &()
    }}
    fn context_switch_callback(&self) -> &Self::ContextSwitchCallback {{
        &()
    }}
}}
"""


def render_statement(statement):
    if statement.kind == BINDING:
        return f"let {statement.identifier} = {statement.fragment};"
    if statement.kind in (BEFORE_INIT, AFTER_INIT):
        return statement.fragment
    raise ValueError(f"Unknown statement kind {statement.kind!r}")


def render_setup(context, emission):
    chip = context.chip
    platform = context.platform
    lines = [
        "let board_kernel = kernel::static_init!(kernel::Kernel, "
        "kernel::Kernel::new(&*core::ptr::addr_of!(PROCESSES)));",
        "let memory_allocation_cap = kernel::create_capability!("
        "kernel::capabilities::MemoryAllocationCapability);",
    ]
    prelude = chip.before_boot()
    if prelude:
        lines.append(prelude)
    lines.append("")
    lines.extend(render_statement(s) for s in emission.statements())
    lines.append("")
    lines.append(f"CHIP = Some({chip.identifier});")
    lines.append(f"""\
let process_management_capability =
    kernel::create_capability!(kernel::capabilities::ProcessManagementCapability);
extern "C" {{
    static _sapps: u8;
    static _eapps: u8;
    static mut _sappmem: u8;
    static _eappmem: u8;
}}
kernel::process::load_processes(
    board_kernel,
    {chip.identifier},
    core::slice::from_raw_parts(
        core::ptr::addr_of!(_sapps),
        core::ptr::addr_of!(_eapps) as usize - core::ptr::addr_of!(_sapps) as usize,
    ),
    core::slice::from_raw_parts_mut(
        core::ptr::addr_of_mut!(_sappmem),
        core::ptr::addr_of!(_eappmem) as usize - core::ptr::addr_of!(_sappmem) as usize,
    ),
    &mut *core::ptr::addr_of_mut!(PROCESSES),
    &FAULT_RESPONSE,
    &process_management_capability,
)
.unwrap_or_else(|err| {{
    kernel::debug!("Error loading processes!");
    kernel::debug!("{{:?}}", err);
}});

(board_kernel, {platform.identifier}, {chip.identifier})""")
    body = _indent("\n".join(lines))
    return f"""\
unsafe fn setup() -> (
    &'static kernel::Kernel,
    {platform.type_signature},
    &'static {chip.type_signature},
) {{
{body}
}}
"""


def render_main_fn(context):
    return f"""\
#[no_mangle]
pub unsafe fn main() {{
    let main_loop_capability = kernel::create_capability!(kernel::capabilities::MainLoopCapability);
    let (board_kernel, platform, chip) = setup();
    board_kernel.kernel_loop(
        &platform,
        chip,
        None::<&kernel::ipc::IPC<{context.process_count}>>,
        &main_loop_capability,
    );
}}
"""


def render_main(context, emission):
    """
    Assemble the board's main.rs from a built context and its emission.

    context  : Context
    emission : Emission (from Emitter(context).emit())
    """
    sections = [
        HEADER,
        render_globals(context),
        render_board_struct(emission.board_type),
        render_dispatch(emission.board_type, emission.dispatch_table),
        render_kernel_resources(context),
        render_setup(context, emission),
        render_main_fn(context),
    ]
    text = "\n".join(sections)
    logger.debug("Rendered main.rs: %d lines", text.count("\n"))
    return text


def _target_mode(path):
    if path.exists():
        return stat.S_IMODE(path.stat().st_mode)
    # mkstemp creates 0600; give new files the mode a plain open() would
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def write_to_file(path, text):
    """
    Write `text` to `path` atomically: the content goes to a temporary file
    in the same directory which then replaces the target. A failure leaves
    no partial file behind.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.chmod(tmp, _target_mode(path))
        os.replace(tmp, path)
    except BaseException:
        logger.error("Failed writing %s, removing %s", path, tmp)
        os.unlink(tmp)
        raise
    logger.info("Wrote %s", path)
    return path
