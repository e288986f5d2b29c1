"""Entry point for `python -m clocked`."""

import sys


def main():
    from clocked.app import run
    sys.exit(run())


if __name__ == "__main__":
    main()
