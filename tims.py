#!/usr/bin/env python3
"""
tims: TIMS assembler + emulator CLI

Usage:
    python tims.py <program.tims> [-l N | la-N] [--memory memory.dat]
                   [--mirror memory_f.dat] [--assemble-only] [--listing]
                   [--trace] [--max-steps N] [--dump] [-v] [-q] [--log-file F]

Pipeline:
    1. clear the memory store
    2. assemble <program> to <program>Asm.<ext>
    3. load the assembled words at the load address (relocating operands)
    4. execute from the load address until END

Examples:
    python tims.py hello.tims                 # load at word 0 and run
    python tims.py hello.tims -l 20           # load at word 20
    python tims.py hello.tims la-20           # same, legacy form
    python tims.py hello.tims --assemble-only --listing
"""

import argparse
import logging
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler

from tims_assembler import Assembler, AssemblerError, BadProgram, __version__
from tims_emulator import (Memory, MemoryAccessError, MirrorAccessError,
                           RelocationError, TimsEmulator, StopReason)
from tims_emulator.config import MEMORY_FILE, FORMATTED_MEMORY_FILE, NUM_MEM_WORDS
from tims_emulator.emu import EmulatorInputError

log = logging.getLogger("tims")


def setup_logging(console_level: int = logging.WARNING,
                  log_file: Optional[Path] = None) -> logging.Logger:
    """Configure the root logger: rich console handler, optional log file.

    The file handler captures everything (DEBUG+) with the pipe-separated
    format; the console only shows console_level and above, on stderr so
    it never mixes with program output.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.DEBUG)

    ch = RichHandler(
        console=Console(stderr=True),
        level=console_level,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    ch.setLevel(console_level)
    root.addHandler(ch)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_file), encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-7s | %(name)s | %(funcName)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        root.addHandler(fh)
        log.info("=" * 60)
        log.info("Log started %s", datetime.now().isoformat(timespec="seconds"))
        log.info("=" * 60)

    return log


def parse_int_arg(value: str) -> int:
    """Parse an integer argument that may be hex (0x...) or decimal."""
    value = value.strip()
    if value.startswith("0x") or value.startswith("0X"):
        return int(value, 16)
    return int(value)


def _load_address(value: str) -> int:
    try:
        addr = parse_int_arg(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}") from None
    if not 0 <= addr < NUM_MEM_WORDS:
        raise argparse.ArgumentTypeError(
            f"load address must be 0-{NUM_MEM_WORDS - 1}, got {addr}")
    return addr


_LEGACY_LOAD_ADDRESS = re.compile(r"la-(\d+)")

# Options whose next argv token is their value, not a positional
_VALUE_OPTIONS = {"-l", "--load-address", "-o", "--output", "--memory",
                  "--mirror", "--max-steps", "--log-file"}


def _expand_legacy_args(argv: List[str]) -> List[str]:
    """Rewrite the legacy 'la-N' load-address token to '--load-address N'."""
    out = []
    prev = None
    for arg in argv:
        m = _LEGACY_LOAD_ADDRESS.fullmatch(arg)
        if m and prev not in _VALUE_OPTIONS:
            out.extend(["--load-address", m.group(1)])
        else:
            out.append(arg)
        prev = arg
    return out


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tims",
        description="Assemble, load and run a TIMS program",
    )
    parser.add_argument("program", help="TIMS assembly source file")
    parser.add_argument("-l", "--load-address", type=_load_address, default=0,
                        help="Store word to load the program at (default: 0)")
    parser.add_argument("-o", "--output",
                        help="Assembled word file (default: <name>Asm.<ext>)")
    parser.add_argument("--memory", default=MEMORY_FILE,
                        help=f"Raw memory store file (default: {MEMORY_FILE})")
    parser.add_argument("--mirror", default=FORMATTED_MEMORY_FILE,
                        help=f"Formatted memory dump file (default: {FORMATTED_MEMORY_FILE})")
    parser.add_argument("--assemble-only", action="store_true",
                        help="Stop after assembly")
    parser.add_argument("--listing", action="store_true",
                        help="Print the assembly listing")
    parser.add_argument("--trace", action="store_true",
                        help="Print an instruction trace after the run (to stderr)")
    parser.add_argument("--max-steps", type=int, default=None,
                        help="Stop after this many instructions (default: no limit)")
    parser.add_argument("--dump", action="store_true",
                        help="Print the memory table after the run")
    parser.add_argument("--verbose", "-v", action="count", default=0,
                        help="Increase verbosity (-v, -vv)")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Only report errors")
    parser.add_argument("--log-file", type=Path, default=None,
                        help="Write a full DEBUG log to this file")
    parser.add_argument("--version", action="version",
                        version=f"tims {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(_expand_legacy_args(sys.argv[1:] if argv is None else argv))

    if args.quiet:
        level = logging.ERROR
    elif args.verbose == 0:
        level = logging.WARNING
    elif args.verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG
    setup_logging(level, args.log_file)

    try:
        memory = Memory(args.memory, args.mirror, resume=False)
        memory.clear()

        # Assemble
        asm = Assembler()
        try:
            output = asm.assemble_file(args.program, args.output)
        except BadProgram as e:
            if args.listing:
                print(asm.get_listing())
            print(f"\n{e.message}\n", file=sys.stderr)
            return 1
        print(f'\nAssembled "{args.program}" to "{output}"\n')
        if args.listing:
            print(asm.get_listing())
        if args.assemble_only:
            return 0

        # Load
        emu = TimsEmulator(memory)
        emu.load_file(output, args.load_address)
        print(f'\nLoaded "{output}" to TIMS memory word {args.load_address}\n')

        # Execute
        emu.enable_trace(args.trace)
        reason = emu.run(max_steps=args.max_steps)
        if args.trace:
            print(emu.get_trace(), file=sys.stderr)
        if args.dump:
            print(memory.format_table())
        if reason is StopReason.TIMEOUT:
            print(f"Stopped after {args.max_steps} steps without reaching END",
                  file=sys.stderr)
            return 1

    except AssemblerError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (MemoryAccessError, MirrorAccessError) as e:
        print(f"Memory error: {e}", file=sys.stderr)
        return 1
    except RelocationError as e:
        print(f"Load error: {e}", file=sys.stderr)
        return 1
    except EmulatorInputError as e:
        print(f"Input error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130

    return 0


if __name__ == "__main__":
    sys.exit(main())
