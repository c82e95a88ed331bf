# main.py
import argparse
import logging
import sys

from builder.context import Context
from chips.registry import chip_names, get_chip
from components.emitter import Emitter
from config.loader import load_configuration
from render.rust import render_main, write_to_file
from utils.errors import ConfiguratorError
from utils.logger import configure, get_logger

logger = get_logger("main", level=logging.INFO)


def generate(chip_name, config_path, output):
    """
    Load -> build -> sort/emit -> render -> write. Returns the written path.
    """
    chip = get_chip(chip_name)
    config = load_configuration(config_path, chip)
    context = Context.from_config(chip, config)
    emission = Emitter(context).emit()
    text = render_main(context, emission)
    return write_to_file(output, text)


def parse_args(argv):
    parser = argparse.ArgumentParser(description="Generate a Tock board main.rs from a JSON configuration.")
    parser.add_argument("--chip", required=True, help=f"Target chip ({', '.join(chip_names())}).")
    parser.add_argument("--config", required=True, help="Path to the board configuration JSON.")
    parser.add_argument("--output", default="main.rs", help="Path of the generated main.rs.")
    parser.add_argument("--log-file", default=None, help="Also write the log to this file.")
    parser.add_argument("--verbose", action="store_true", help="Log every node as it is emitted.")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(sys.argv[1:] if argv is None else argv)
    configure(level=logging.DEBUG if args.verbose else logging.INFO, logfile=args.log_file)

    logger.info("Generating %s for chip %s from %s", args.output, args.chip, args.config)
    try:
        path = generate(args.chip, args.config, args.output)
    except ConfiguratorError as e:
        logger.error("Generation failed: %s", e)
        return 1

    logger.info("Done: %s", path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
