from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import NoReturn, TextIO

from dissect.regdump.dump import DumpOptions, RegistryDumper
from dissect.regdump.exceptions import BadArgumentError, Error
from dissect.regdump.regf import RegistryHive

log = logging.getLogger(__name__)
log.setLevel(os.getenv("DISSECT_LOG_REGDUMP", "CRITICAL"))

USAGE = """\
Dump a registry hive as text, one line per value.

regdump [-hkstTv] HIVE...

-h  use hexadecimal for type & size, placed before key
-k  keys only (implies -t)
-s  include the entire string data (excluding trailing nulls)
-t  include key timestamp (seconds)
-T  include key timestamp (full resolution)
-v  values only
"""

HELP_ARGS = ("/?", "-?", "--help")


class ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        raise BadArgumentError(message)


def build_parser() -> ArgumentParser:
    # -h is taken by the hexadecimal type column, help is handled separately
    parser = ArgumentParser(prog="regdump", usage="regdump [-hkstTv] HIVE...", add_help=False)
    parser.add_argument("-h", action="store_true", dest="hex_type")
    parser.add_argument("-k", action="store_true", dest="only_keys")
    parser.add_argument("-s", action="store_true", dest="all_string")
    parser.add_argument("-t", action="store_true", dest="time_sec")
    parser.add_argument("-T", action="store_true", dest="time_full")
    parser.add_argument("-v", action="store_true", dest="only_values")
    parser.add_argument("hives", nargs="*", metavar="HIVE")
    return parser


def load_hive(path: str) -> RegistryHive:
    with Path(path).open("rb") as fh:
        return RegistryHive(fh)


def report(path: str, message: str) -> None:
    print(f"{path}: {message}", file=sys.stderr)


def dump_hives(paths: list[str], options: DumpOptions, out: TextIO) -> int:
    """Dump every hive in ``paths`` to ``out``, returning 1 if any of them failed."""
    rc = 0
    show_hive = len(paths) > 1

    for idx, path in enumerate(paths):
        try:
            hive = load_hive(path)
        except OSError as e:
            report(path, e.strerror or str(e))
            rc = 1
            continue
        except MemoryError:
            report(path, "insufficient memory.")
            rc = 1
            continue
        except Error as e:
            report(path, f"{e}.")
            rc = 1
            continue

        if show_hive:
            out.write(f"{path}\n\n")

        try:
            RegistryDumper(hive, options).dump(out)
        except MemoryError:
            report(path, "insufficient memory.")
            rc = 1
        except Error as e:
            report(path, f"{e}.")
            rc = 1

        if show_hive and idx + 1 < len(paths):
            out.write("\n")

    return rc


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv

    if not argv or argv[0] in HELP_ARGS:
        print(USAGE, end="")
        return 0

    # Options are only recognized before the first hive, everything after it is a hive path
    split = next((idx for idx, arg in enumerate(argv) if not arg.startswith("-")), len(argv))

    try:
        args = build_parser().parse_args([*argv[:split], "--", *argv[split:]])
    except BadArgumentError as e:
        print(f"regdump: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(format="%(name)s: %(levelname)s: %(message)s")

    options = DumpOptions(
        hex_type=args.hex_type,
        all_string=args.all_string,
        only_values=args.only_values,
        only_keys=args.only_keys,
        time_sec=args.time_sec or args.only_keys,
        time_full=args.time_full,
    )
    log.debug("Dumping %d hive(s) with %r", len(args.hives), options)

    return dump_hives(args.hives, options, sys.stdout)


if __name__ == "__main__":
    sys.exit(main())
