#!/usr/bin/env python3
"""nixhash — compute and convert Nix hashes."""

import argparse
import fnmatch
import os
import sys

from nixhash import hash as nixhash
from nixhash.config import load_settings
from nixhash.logging_config import configure_logging


def _exclude_filter(patterns):
    if not patterns:
        return None

    def filter(path: str) -> bool:
        name = os.path.basename(path)
        return not any(fnmatch.fnmatch(name, p) for p in patterns)

    return filter


def _print(h, fmt):
    print(h.to_string(fmt, True))


def cmd_path(args):
    filter = _exclude_filter(args.exclude)
    for path in args.paths:
        result = nixhash.hash_path(args.type, path, filter)
        _print(result.hash, args.format)


def cmd_file(args):
    for path in args.paths:
        _print(nixhash.hash_file(args.type, path), args.format)


def cmd_string(args):
    text = sys.stdin.read() if args.text == "-" else args.text
    _print(nixhash.hash_string(args.type, text), args.format)


def cmd_convert(args):
    for s in args.hashes:
        _print(nixhash.parse_any(s, args.type), args.to)


def build_parser(settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nixhash", description="Compute and convert Nix hashes")
    sub = parser.add_subparsers(dest="command")

    def add_type(p, default):
        p.add_argument("--type", type=nixhash.parse_hash_type, default=default,
                       help="md5, sha1, sha256 or sha512")

    def add_format(p, flag="--format"):
        p.add_argument(flag, type=nixhash.parse_hash_format, default=settings.hash_format,
                       help="base16, nix32, base64 or sri")

    # path
    p = sub.add_parser("path", help="Hash the NAR serialization of paths")
    p.add_argument("paths", nargs="+")
    p.add_argument("--exclude", action="append", default=[], metavar="GLOB",
                   help="Leave out directory entries whose name matches GLOB")
    add_type(p, settings.hash_algo)
    add_format(p)
    p.set_defaults(func=cmd_path)

    # file
    p = sub.add_parser("file", help="Hash file contents (flat, not NAR)")
    p.add_argument("paths", nargs="+")
    add_type(p, settings.hash_algo)
    add_format(p)
    p.set_defaults(func=cmd_file)

    # string
    p = sub.add_parser("string", help="Hash a string")
    p.add_argument("text", nargs="?", default="-", help="Text to hash (or - for stdin)")
    add_type(p, settings.hash_algo)
    add_format(p)
    p.set_defaults(func=cmd_string)

    # convert
    p = sub.add_parser("convert", help="Convert hashes between formats")
    p.add_argument("hashes", nargs="+")
    add_type(p, None)
    add_format(p, "--to")
    p.set_defaults(func=cmd_convert)

    return parser


def main(argv=None):
    try:
        settings = load_settings()
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    configure_logging(settings.log_level)

    parser = build_parser(settings)
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1
    try:
        args.func(args)
    except (nixhash.BadHash, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
