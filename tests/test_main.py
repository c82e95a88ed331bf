# tests/test_main.py
import json
import logging

import main as cli
from utils.logger import configure, get_logger

logger = get_logger("test_main", logfile="logs/test_main.log")


def build_config_file(tmp_path, capsules=None):
    path = tmp_path / "board.json"
    document = {
        "TYPE": "MockBoard",
        "PROCESS_COUNT": 2,
        "CAPSULES": capsules if capsules is not None else {
            "CONSOLE": {"uart": {"kind": "UART", "index": 0}, "baud_rate": 115200},
            "ALARM": {"timer": {"kind": "TIMER", "index": 0}},
        },
    }
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


def run(config, output, *extra):
    return cli.main(["--chip", "mock", "--config", str(config), "--output", str(output), *extra])


def file_handlers(name):
    return [h for h in logging.getLogger(f"tockgen.{name}").handlers if isinstance(h, logging.FileHandler)]


def test_cli_generates_main(tmp_path):
    config = build_config_file(tmp_path)
    output = tmp_path / "out" / "main.rs"

    assert run(config, output) == 0
    text = output.read_text(encoding="utf-8")
    assert "struct MockBoard {" in text


def test_cli_log_file(tmp_path):
    config = build_config_file(tmp_path)
    log_file = tmp_path / "logs" / "tockgen.log"

    try:
        assert run(config, tmp_path / "main.rs", "--log-file", str(log_file), "--verbose") == 0
        assert "Wrote" in log_file.read_text(encoding="utf-8")
    finally:
        configure()


def test_repeated_runs_log_once_per_run(tmp_path):
    config = build_config_file(tmp_path)
    first_log = tmp_path / "first.log"
    second_log = tmp_path / "second.log"

    try:
        for _ in range(2):
            assert run(config, tmp_path / "main.rs", "--log-file", str(first_log)) == 0
        assert len(file_handlers("render")) == 1
        assert first_log.read_text(encoding="utf-8").count("Wrote") == 2

        assert run(config, tmp_path / "main.rs", "--log-file", str(second_log)) == 0
        assert first_log.read_text(encoding="utf-8").count("Wrote") == 2
        assert second_log.read_text(encoding="utf-8").count("Wrote") == 1

        assert run(config, tmp_path / "main.rs") == 0
        assert file_handlers("render") == []
    finally:
        configure()


def test_cli_bad_configuration(tmp_path):
    config = build_config_file(tmp_path, {"CONSOLE": {"uart": {"kind": "UART", "index": 9}, "baud_rate": 115200}})
    output = tmp_path / "main.rs"

    assert run(config, output) == 1
    assert not output.exists()


def test_cli_unknown_chip(tmp_path):
    config = build_config_file(tmp_path)
    output = tmp_path / "main.rs"
    assert cli.main(["--chip", "z80", "--config", str(config), "--output", str(output)]) == 1
    assert not output.exists()


def main():
    logger.info("Chips available: %s", ", ".join(cli.chip_names()))


if __name__ == "__main__":
    main()
