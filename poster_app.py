#!/usr/bin/env python3
"""Poster Tiler - Split one image across many printer pages to build a poster."""

import sys

from controller import MainWindow, PosterApp


def main():
    import argparse
    parser = argparse.ArgumentParser(description="Poster Tiler")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("file", nargs="?", default=None,
                        help="Open a .poster project or an image")
    args = parser.parse_args()

    if args.debug:
        import logging
        logging.basicConfig(level=logging.DEBUG)

    app = PosterApp(sys.argv)
    app.setApplicationName("Poster Tiler")
    window = MainWindow()
    window.show()

    # Connect macOS file-open events (double-click a .poster in Finder)
    app.file_open_requested.connect(window.open_file)

    # Handle command-line file argument
    if args.file:
        window.open_file(args.file)

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
