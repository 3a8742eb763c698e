"""Module entry point for the pys3ftp command line client."""
import os
import sys

from .cli import main


def run() -> None:
    code = main()
    try:
        sys.stdout.flush()
    except BrokenPipeError:
        # Reader went away (e.g. piped into head); keep interpreter shutdown quiet.
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
    sys.exit(code)


if __name__ == "__main__":
    run()
