# src/fibhex/cli.py

"""
fibhex - exact Fibonacci numbers in hexadecimal

Description:
    Computes F(k) with the fast-doubling method on a self-contained
    arbitrary-precision engine and prints it as uppercase hex digits.
    Accepts a single index, an inclusive range (a..b), or runs an
    interactive loop when no index is given.

usage: see fibhex -h
"""

from __future__ import annotations

import argparse
import faulthandler
import os
import sys
import textwrap
import time
import traceback
from importlib.resources import files as pkg_files

from colorama import Fore, Style
from colorama import init as colorama_init

from fibhex import __version__ as _ver
from fibhex import config as CONFIG
from fibhex.bignum import BignumError, to_hex
from fibhex.fibonacci import fib_magnitude, make_allocator
from fibhex.fmt import format_result, format_stats
from fibhex.output_manager import OutputManager, is_split_target
from fibhex.progress import Progress
from fibhex.runtime import APPLY, CFG, ensure_runtime_deps
from fibhex.runtime import current as _rt_current
from fibhex.utility import (
    UserInputError,
    clear_screen,
    flatten_dotted,
    parse_index_range,
    typename,
    validate_output_setting,
)
from fibhex.workspace import ensure_workspace_seeded, seed_workspace, workspace_dir

COMMANDS = {"init", "where", "active", "profiles"}
_TWO_ARGS = 2


def _install_loud_error_handlers(debug: bool) -> None:
    if not debug:
        return
    try:
        faulthandler.enable()
    except (AttributeError, OSError, ValueError):
        pass  # stderr has no file descriptor (captured or redirected)

    def _excepthook(exc_type, exc, tb):
        sys.stderr.write("\n[UNCAUGHT EXCEPTION]\n")
        traceback.print_exception(exc_type, exc, tb, file=sys.stderr)
        sys.stderr.flush()
    sys.excepthook = _excepthook


def _print_user_error(msg: str) -> None:
    """Uniform, one-line friendly error."""
    prefix = f"{Fore.RED}Error:{Style.RESET_ALL}"
    if not (msg.startswith("Invalid input:") or msg.startswith("Error:")):
        msg = f"{prefix} {msg}"
    print(msg, file=sys.stderr)


def _max_index() -> int:
    return int(CFG("LIMITS.MAX_INDEX", 50_000))


def _resolve_inputs(items: list[str]) -> tuple[str | None, range | None]:
    """Return (word, indices) from the first two positionals.

      - one item: an index or range -> (None, range); anything else -> (word, None)
      - two items: (word, range) when the second is an index or range
    """
    if not items:
        return None, None
    first = parse_index_range(items[0], max_index=_max_index())
    if first is not None:
        return None, first
    if len(items) > 1:
        return items[0], parse_index_range(items[1], max_index=_max_index())
    return items[0], None


# ---- argparse ----
def _build_parser() -> argparse.ArgumentParser:

    epilog = textwrap.dedent("""\
    commands:
      init
          Create the workspace and copy the packaged profiles if missing.

      init overwrite
          Meant for developers. Requires environment variable FIBHEX_DEV=1.
          Replaces the workspace profiles with the packaged ones.

      profiles
          List the available profiles with their descriptions.

      active
          Show the profile remembered by the interactive mode.

      where
          Show the workspace and package paths.
    """)

    p = argparse.ArgumentParser(
        description="fibhex — exact Fibonacci numbers in hexadecimal",
        usage=(
            "fibhex [[profile] [index | a..b]] [--output OUTPUT] [--quiet] [--full] [--no-stats] [--verify] [--debug]\n"
            "       fibhex init | where | active | profiles\n"
            "       fibhex -h | --help\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=epilog,
    )
    p.add_argument("items", nargs="*", metavar="[[profile] index]",
                   help="optional profile name followed by an index or an inclusive range a..b")
    p.add_argument("--output", default=None, help="Write results to a file, or to dir/F<k>.txt when it ends in '/'")
    p.add_argument("--quiet", action="store_true", help="Suppress screen output (files are still written)")
    p.add_argument("--full", action="store_true", help="Never abbreviate long results on screen")
    p.add_argument("--no-stats", action="store_true", help="Omit the digits/bits/limbs/time line")
    p.add_argument("--verify", action="store_true", help="Cross-check every result against gmpy2")
    p.add_argument("--debug", action="store_true", help="Trace the doubling steps and show full tracebacks")
    p.add_argument("--version", action="version", version=f"fibhex {_ver}")
    return p


def main(argv=None) -> int:
    """Thin wrapper: catch friendly errors, hide tracebacks unless debug."""
    try:
        return _main_impl(argv)
    except UserInputError as e:
        _print_user_error(str(e))
        return 2
    except BignumError as e:
        _print_user_error(f"{e.__class__.__name__}: {e}")
        return 1
    except KeyboardInterrupt:
        print("Aborted by user.", file=sys.stderr)
        return 130
    except Exception as e:
        if _rt_current().debug or "--debug" in (argv or sys.argv):
            raise
        # VerificationError lands here too: it is a wrong answer, not bad input
        print(f"Unexpected error: {e.__class__.__name__}: {e}", file=sys.stderr)
        print("Run with --debug for a full traceback.", file=sys.stderr)
        return 1


# ---- computing ----
def compute(k: int, om: OutputManager, *, full: bool, verify: bool, stats: bool) -> str:
    """Compute F(k), optionally cross-check it, and write it to om."""
    alloc = make_allocator()
    t0 = time.perf_counter()
    with fib_magnitude(k, alloc) as fk:
        limbs = fk.length
        digits = to_hex(fk)
    elapsed = time.perf_counter() - t0

    if _rt_current().debug:
        print(f"[debug] F({k}): live limbs after release: {alloc.live}", file=sys.stderr)

    if verify:
        from fibhex.verify import cross_check
        cross_check(k, digits)

    om.write(format_result(k, digits, full=full))
    if stats:
        om.write(format_stats(digits, limbs=limbs, peak=alloc.peak, seconds=elapsed))
    return digits


def run_indices(indices: range, *, output: str | None, quiet: bool, full: bool,
                verify: bool, stats: bool) -> list[str]:
    """Compute every index in `indices`; per-index files in split mode, one stream otherwise."""
    results: list[str] = []
    # screen lines already show progress; the bar is for quiet runs into files
    progress = Progress(len(indices), enabled=len(indices) > 1 and quiet and bool(output), stream=sys.stderr)
    shared = None if is_split_target(output) else OutputManager(output_file=output, quiet=quiet)
    try:
        for done, k in enumerate(indices):
            progress.update(done, f"F({k})")
            om = shared or OutputManager(output_file=output, quiet=quiet, index=k)
            try:
                results.append(compute(k, om, full=full, verify=verify, stats=stats))
            finally:
                if om is not shared:
                    om.close()
    finally:
        progress.done()
        if shared is not None:
            shared.close()
    return results


def _apply_profile(name: str, *, debug: bool) -> str:
    """Load and install a profile; fall back to built-in defaults when absent."""
    if CONFIG.has_profile(name):
        selected = CONFIG.load_settings(name)
    else:
        selected = CONFIG.default_settings()
    APPLY(selected)
    if debug:
        _rt_current().debug = True
        print(f"[debug] active profile: {selected.name}", file=sys.stderr)
        if selected._source:
            print(f"[debug] profile file: {selected._source}", file=sys.stderr)
        for k, v in sorted(flatten_dotted(selected.as_dict()).items(), key=lambda t: t[0].lower()):
            print(f"        {k:.<40} {v!r} ({typename(v)})", file=sys.stderr)
    return selected.name


def _run_command(cmd: str, items: list[str]) -> int:
    if cmd == "init":
        if len(items) == _TWO_ARGS and items[1] == "overwrite":
            if os.environ.get("FIBHEX_DEV") != "1":
                print("Refusing to overwrite: set FIBHEX_DEV=1 to enable developer overwrite.")
                return 2
            ws, copied = seed_workspace(overwrite=True)
            print(f"Workspace ready at: {ws} (overwrote existing files)")
        else:
            ws, copied = ensure_workspace_seeded()
            print(f"Workspace ready at: {ws}")
        print(f"Copied -> profiles: {copied}")
        return 0
    if cmd == "where":
        print(f"Workspace: {workspace_dir()}")
        print(f"Package:   {pkg_files('fibhex')}")
        return 0
    if cmd == "active":
        print(f"Active profile: {CONFIG.read_current_profile() or 'default'}")
        return 0
    print_profiles()
    return 0


def print_profiles() -> None:
    for name, desc in CONFIG.list_profiles_with_descriptions():
        print(f"  {Fore.CYAN}{name:<12}{Style.RESET_ALL} {desc}")


# ---- main ----
def _main_impl(argv=None) -> int:
    colorama_init(autoreset=True)

    parser = _build_parser()
    args = parser.parse_args(argv)
    rt = _rt_current()
    rt.debug = bool(args.debug)
    _install_loud_error_handlers(args.debug)

    ensure_workspace_seeded()

    if args.items and args.items[0] in COMMANDS:
        return _run_command(args.items[0], args.items)

    try:
        output = validate_output_setting(args.output)
    except ValueError as e:
        print(f"Fatal error in --output: {e}", file=sys.stderr)
        return 1

    # Profile first (it sets LIMITS.MAX_INDEX), then the index.
    word = args.items[0] if args.items else None
    if word is not None and parse_index_range(word, max_index=sys.maxsize) is not None:
        word = None
    if word is not None and not CONFIG.has_profile(word):
        print(f"Unknown profile: '{word}'")
        print("Available profiles:", ", ".join(CONFIG.list_all_profiles()))
        return 2
    profile_name = _apply_profile(word or CONFIG.read_current_profile() or "default", debug=args.debug)

    _, indices = _resolve_inputs(args.items)

    verify = args.verify or bool(CFG("VERIFY.CROSS_CHECK", False))
    if verify and not ensure_runtime_deps(("gmpy2",), strict=True):
        return 1

    def target() -> str | None:
        # CLI --output overrides the profile's OUTPUT_FILE
        return output if output is not None else (CFG("OUTPUT.OUTPUT_FILE", "") or None)

    options = {"quiet": args.quiet, "full": args.full, "verify": verify, "stats": not args.no_stats}

    if indices is not None:
        run_indices(indices, output=target(), **options)
        return 0

    return _repl(profile_name, target, options)


def _repl(profile_name: str, target, options: dict) -> int:
    if not _rt_current().debug:
        clear_screen()
    print(f"{Fore.YELLOW}{Style.BRIGHT}fibhex v{_ver} — exact Fibonacci numbers in hex{Style.RESET_ALL}")

    current_profile = profile_name
    while True:
        try:
            prompt = f"\nProfile: {current_profile} — Enter an index, a..b, or a profile (h=Help, q=Quit): "
            user_input = input(prompt).strip()
            low = user_input.lower()

            if low in {"", "q", "quit"}:
                break

            if low in {"h", "help"}:
                print("  <k>         compute F(k)")
                print("  <a>..<b>    compute F(a) .. F(b)")
                print("  <profile>   switch profile (p lists them)")
                print("  debug on|off|status")
                print("  q           quit")
                continue

            if low in {"p", "profiles"}:
                print_profiles()
                continue

            if low.startswith("debug"):
                parts = low.split()
                rt = _rt_current()
                if len(parts) == 1 or parts[1] == "status":
                    print(f"Debug is currently {'ON' if rt.debug else 'OFF'}.")
                elif parts[1] in {"on", "off"}:
                    rt.debug = parts[1] == "on"
                    print(f"Debug mode {'enabled' if rt.debug else 'disabled'} for this session.")
                else:
                    print("Usage: DEBUG [on|off|status]")
                continue

            try:
                indices = parse_index_range(user_input, max_index=_max_index())
            except UserInputError as e:
                msg = str(e).replace("Invalid input:", f"{Fore.RED}Invalid input:{Style.RESET_ALL}", 1)
                print(msg, file=sys.stderr)
                continue

            if indices is not None:
                try:
                    run_indices(indices, output=target(), **options)
                except BignumError as e:
                    _print_user_error(f"{e.__class__.__name__}: {e}")
                continue

            if CONFIG.has_profile(user_input):
                current_profile = _apply_profile(user_input, debug=_rt_current().debug)
                CONFIG.write_current_profile(user_input)
                print(f"Applied profile: {current_profile}")
                continue

            print(f"{Fore.RED}Invalid input: {Style.RESET_ALL}'{user_input}'. Type H for help.")
        except (EOFError, KeyboardInterrupt):
            print()
            break
        except Exception as e:
            if _rt_current().debug:
                traceback.print_exc()
            else:
                _print_user_error(f"{e.__class__.__name__}: {e}")
            continue
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
