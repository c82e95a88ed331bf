# tests/test_render.py
import os
import stat

import pytest

from builder.context import Context
from chips.earlgrey import EarlGrey
from chips.mock import MockChip
from components.emitter import Emitter
from config.configuration import Configuration
from render.rust import render_main, write_to_file
from utils.logger import get_logger

logger = get_logger("test_render", logfile="logs/test_render.log")


def build_main_rs(chip, process_count=4):
    config = Configuration()
    config.update_console(chip.peripherals.uart()[0], 115200)
    config.update_alarm(chip.peripherals.timer()[0])
    config.update_process_count(process_count)
    context = Context.from_config(chip, config)
    return render_main(context, Emitter(context).emit())


def test_render_sections():
    text = build_main_rs(MockChip())

    assert text.startswith("//! GENERATED BY TOCKGEN.")
    assert "pub const NUM_PROCS: usize = 4;" in text
    assert "pub static mut STACK_MEMORY: [u8; 0x900] = [0; 0x900];" in text
    assert "struct AutogeneratedPlatform {" in text
    assert "0x1 => f(Some(self.console))," in text
    assert "0x0 => f(Some(self.alarm))," in text
    assert "impl KernelResources<mock::chip::Mock<'static, mock::chip::MockDefaultPeripherals<'static>>>" in text
    assert "let board_kernel = " in text
    assert "let memory_allocation_cap = " in text
    assert "(board_kernel, platform, chip)" in text
    assert "pub unsafe fn main()" in text


def test_render_binding_order():
    text = build_main_rs(MockChip())
    order = [text.index(f"let {name} = ") for name in
             ("board_kernel", "uart0", "mux_uart_uart0", "console", "platform")]
    assert order == sorted(order)


def test_render_unit_scheduler_timer():
    text = build_main_rs(EarlGrey())
    assert "&self.scheduler_timer" in text
    assert "earlgrey::chip::configure_trap_handler();" in text


def test_render_is_deterministic():
    assert build_main_rs(MockChip()) == build_main_rs(MockChip())


def test_write_to_file(tmp_path):
    path = tmp_path / "board" / "main.rs"
    write_to_file(path, "fn main() {}\n")
    assert path.read_text(encoding="utf-8") == "fn main() {}\n"
    assert os.listdir(path.parent) == ["main.rs"]


def test_failed_write_leaves_nothing(tmp_path, monkeypatch):
    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", broken_replace)
    path = tmp_path / "main.rs"
    with pytest.raises(OSError):
        write_to_file(path, "fn main() {}\n")
    assert not path.exists()
    assert os.listdir(tmp_path) == []


def test_written_file_mode_matches_plain_write(tmp_path):
    plain = tmp_path / "plain.rs"
    plain.write_text("fn main() {}\n", encoding="utf-8")
    path = write_to_file(tmp_path / "main.rs", "fn main() {}\n")
    assert stat.S_IMODE(path.stat().st_mode) == stat.S_IMODE(plain.stat().st_mode)


def test_rewrite_keeps_existing_mode(tmp_path):
    path = tmp_path / "main.rs"
    path.write_text("old\n", encoding="utf-8")
    os.chmod(path, 0o640)
    write_to_file(path, "new\n")
    assert stat.S_IMODE(path.stat().st_mode) == 0o640
    assert path.read_text(encoding="utf-8") == "new\n"


def main():
    text = build_main_rs(MockChip())
    logger.info("Rendered %d lines", text.count("\n"))


if __name__ == "__main__":
    main()
