# output_manager.py

import os

from fibhex.fmt import strip_ansi
from fibhex.workspace import workspace_dir


def resolve_output_path(path: str, workspace_root: str) -> str:
    """
    Resolve user-provided output path.

    Rules:
    - '~' expanded to user home
    - Absolute paths unchanged
    - Relative paths are relative to workspace_root
    """
    if not path:
        raise ValueError("Output path is empty")

    path = os.path.expanduser(path)
    if os.path.isabs(path):
        return os.path.normpath(path)
    return os.path.normpath(os.path.join(workspace_root, path))


def is_split_target(output_file: str | None) -> bool:
    """True for '.', './' or any path ending in '/': one file per index."""
    return bool(output_file) and (output_file in (".", "./") or output_file.endswith("/"))


class OutputManager:
    """
    Handles all printing/output, including to screen and/or file.

    Usage:
        # Split mode (one file per index, F<k>.txt):
        om = OutputManager(output_file="results/", index=42)
        om.write("Hello")   # prints and buffers; file written on close()
        om.close()

        # Single file (append all runs to one file):
        om = OutputManager(output_file="results/all.txt")
        om.write("Hello")   # prints and appends
        om.close()
    """

    def __init__(self, output_file: str | None = None, quiet: bool = False, index: int | None = None):
        """
        Parameters:
            output_file:
                None or ""       => screen only
                "." or "./"      => per-index files in the workspace
                endswith "/"     => per-index files in specified dir
                path/to/file.txt => append all runs to this file
            quiet: if True, no output to screen (only to file)
            index: Fibonacci index, used for the filename in per-index mode
        """
        self.quiet = quiet
        self.output_file = output_file or ""
        self.index = index
        self._buffer: list[str] = []

        self._mode: str = "none"     # "none" | "split" | "single"
        self._path: str | None = None
        workspace = str(workspace_dir())

        if is_split_target(self.output_file):
            if index is None:
                raise ValueError("An index must be provided when outputting to a directory.")
            directory = resolve_output_path(self.output_file, workspace)
            os.makedirs(directory, exist_ok=True)
            self._mode = "split"
            self._path = os.path.join(directory, f"F{index}.txt")

        elif self.output_file:
            path = resolve_output_path(self.output_file, workspace)
            parent = os.path.dirname(path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            self._mode = "single"
            self._path = path

    @property
    def path(self) -> str | None:
        return self._path

    def write(self, *args, sep: str = " ", end: str = "\n") -> None:
        """Write to screen and file (if configured)."""
        text = sep.join(str(a) for a in args) + end
        self._buffer.append(text)

        if not self.quiet:
            print(text, end="")

        if self._mode == "single":
            with open(self._path, "a", encoding="utf-8") as fh:
                fh.write(strip_ansi(text))
        # split mode writes once, on close()

    def write_screen(self, *args, sep: str = " ", end: str = "\n", flush: bool = True) -> None:
        """Write only to the screen, never to the file."""
        if self.quiet:
            return
        print(*args, sep=sep, end=end, flush=flush)

    def getvalue(self) -> str:
        """Returns everything written (with color codes)."""
        return "".join(self._buffer)

    def close(self) -> None:
        """Write the per-index file (split mode) or a run separator (single mode)."""
        if not self._buffer:
            return
        if self._mode == "split":
            with open(self._path, "w", encoding="utf-8") as fh:
                fh.write(strip_ansi("".join(self._buffer)))
        elif self._mode == "single":
            with open(self._path, "a", encoding="utf-8") as fh:
                fh.write("\n")  # one empty line between runs
        self._buffer.clear()

    def __enter__(self) -> "OutputManager":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
