# Copyright 2026 The ucdTab Authors. All Rights Reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from . import WriterBuilder
import argparse
import logging
import sys


logger = logging.getLogger("ucdTab")

KINDS = ("set", "map", "string", "codepoint")


def _parse_pairs(parser, items, valueType):
    # Parse codepoint:value pairs
    pairs = {}
    try:
        for item in items:
            if ":" not in item:
                parser.error(f"map kinds require 'codepoint:value' format, got: {item}")
            cp_str, value_str = item.split(":", 1)
            cp = int(cp_str, 0)
            if cp < 0:
                parser.error(f"negative codepoint not allowed: {cp}")
            pairs[cp] = valueType(value_str)
    except ValueError as e:
        parser.error(f"invalid codepoint:value pair: {e}")
    return pairs


def _int(s):
    return int(s, 0)


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="ucdTab",
        description="Write a set or map of codepoints as a Rust table.",
    )
    parser.add_argument(
        "data",
        nargs="*",
        help=(
            "codepoints, or codepoint:value pairs for the map kinds "
            "(reads from stdin if not provided)"
        ),
    )
    parser.add_argument(
        "--kind",
        choices=KINDS,
        default="set",
        help=(
            "set of codepoints, or map from codepoint to unsigned integer, "
            "string or codepoint (default: set)"
        ),
    )
    parser.add_argument(
        "--name",
        default="data",
        help="name of the generated table (default: data)",
    )
    parser.add_argument(
        "--chars",
        action="store_true",
        help="emit char literals instead of u32 literals",
    )
    parser.add_argument(
        "--trie-set",
        action="store_true",
        help="emit sets as a ucd_trie::TrieSet instead of a slice of ranges",
    )
    parser.add_argument(
        "--columns",
        type=int,
        default=79,
        help="best effort line width of the output (default: 79)",
    )
    parser.add_argument(
        "--ucd-version",
        metavar="X.Y.Z",
        help="Unicode version to record in the header",
    )
    parser.add_argument(
        "-i",
        "--input",
        type=str,
        metavar="FILE",
        help="read data from FILE (default: positional args or stdin)",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        metavar="FILE",
        help="write output to FILE instead of stdout",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="log the artifacts that are written",
    )

    parsed = parser.parse_args(args)

    logging.basicConfig(format="{message}", style="{")
    logging.getLogger("ucdTab").setLevel(
        logging.DEBUG if parsed.verbose else logging.WARNING
    )

    # Read data from input file, positional args, or stdin
    if parsed.input:
        with open(parsed.input, "r") as f:
            parsed.data = f.read().strip().split()
        if not parsed.data:
            parser.error(f"no data in input file: {parsed.input}")
    elif not parsed.data:
        stdin_text = sys.stdin.read().strip()
        if not stdin_text:
            parser.error("no data provided (use positional args, -i, or stdin)")
        parsed.data = stdin_text.split()

    if parsed.kind == "set":
        try:
            data = [_int(x) for x in parsed.data]
        except ValueError as e:
            parser.error(f"invalid codepoint in data: {e}")
    elif parsed.kind == "string":
        data = _parse_pairs(parser, parsed.data, str)
    else:
        data = _parse_pairs(parser, parsed.data, _int)

    version = None
    if parsed.ucd_version:
        try:
            version = tuple(int(x) for x in parsed.ucd_version.split("."))
        except ValueError:
            version = ()
        if len(version) != 3:
            parser.error(f"--ucd-version must look like X.Y.Z, got: {parsed.ucd_version}")

    builder = WriterBuilder(parsed.name)
    builder.columns(parsed.columns)
    builder.char_literals(parsed.chars)
    builder.trie_set(parsed.trie_set)
    if version:
        builder.ucd_version(*version)

    argv = ["ucdTab"] + list(args) if args is not None else None
    out = open(parsed.output, "w") if parsed.output else sys.stdout
    writer = builder.from_writer(out, argv=argv)
    try:
        if parsed.kind == "set":
            writer.ranges(parsed.name, data)
        elif parsed.kind == "map":
            writer.ranges_to_unsigned_integer(parsed.name, data)
        elif parsed.kind == "string":
            writer.codepoint_to_string(parsed.name, data)
        else:
            writer.codepoint_to_codepoint(parsed.name, data)
    except ValueError as e:
        parser.error(str(e))
    finally:
        writer.close()
        if parsed.output:
            out.close()

    logger.info("wrote %s table %s", parsed.kind, parsed.name)
    return 0


if __name__ == "__main__":
    sys.exit(main())
