"""Child-process entry point for the page-count cross check.

``python -m filegate.pdf.cross_check.runner ENGINE PATH`` prints the page
count. Exit status 1 means the parser rejected the document.
"""

import argparse
import sys
from pathlib import Path

from filegate.pdf.cross_check.exceptions import PageCountError
from filegate.pdf.cross_check.factory import PageCounterFactory


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="filegate-page-count")
    parser.add_argument("engine", choices=sorted(PageCounterFactory.ADAPTERS))
    parser.add_argument("path", type=Path)
    args = parser.parse_args(argv)

    counter = PageCounterFactory.ADAPTERS[args.engine]()
    try:
        pages = counter.count_pages(args.path)
    except PageCountError as exc:
        print(exc, file=sys.stderr)
        return 1
    print(pages)
    return 0


if __name__ == "__main__":
    sys.exit(main())
