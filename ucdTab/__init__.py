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

"""
Emit Unicode codepoint sets and maps as compact Rust data tables.

Overview
--------

Given an already-computed set of codepoints, or a map keyed by
codepoints or strings, this module writes Rust source that embeds the
data in one of a few representations:

  - **Range slices**: sorted ``(start, end)`` or ``(start, end, value)``
    tuples, binary-searchable at runtime.  Consecutive codepoints that
    share a value are collapsed into one run.
  - **Bitmap tries**: a ``::ucd_trie::TrieSet`` literal, see
    :mod:`ucdTab.trie`.
  - **FSTs**: a set or map blob written next to the Rust file and
    loaded lazily with ``include_bytes!``.  Codepoint keys are 4-byte
    big-endian; string values are packed into the u64 value slot.
  - **DFAs**: dense or sparse ``regex_automata`` automata, written in
    both byte orders with a loader per ``target_endian``.

Building FSTs and DFAs is not done here.  Callers hand in objects that
satisfy the small protocols below (``FstBuilder``, ``Automaton``,
``Regex``) and this module only serializes and frames the bytes.

Code generation
---------------

``WriterBuilder`` collects the options and produces a ``Writer``.  Each
``Writer`` method emits one named item; the first call also writes a
provenance header.  Items are accumulated through ``LineWriter``, which
packs tokens into lines of at most ``columns`` characters on a best
effort basis.

Rust syntax details (literal styles, slice declarations, string
escaping) live in ``LanguageRust``.
"""

import collections
import enum
import logging
import os
import struct
import sys
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    TextIO,
    Tuple,
    Union,
)

from .trie import TrieSet, flattenTrie


__all__ = [
    "ABSENT",
    "Backend",
    "CapabilityError",
    "ConfigurationError",
    "LanguageRust",
    "LineWriter",
    "ReservedValueError",
    "TrieBuilder",
    "ValueTooWideError",
    "Writer",
    "WriterBuilder",
    "WriterError",
    "WriterOptions",
    "constName",
    "dfaFileName",
    "fnName",
    "frameAutomata",
    "moduleName",
    "packStr",
    "smallestUnsignedType",
    "smallestWidth",
    "stateIdType",
    "toRangeValues",
    "toRanges",
    "typeName",
    "u32Key",
    "unpackStr",
]

__version__ = "1.0.0"

logger = logging.getLogger(__name__)


class WriterError(ValueError):
    """Base class for data or configuration the writer refuses to emit."""


class CapabilityError(WriterError):
    """The configured backend has no encoding for the requested shape."""


class ValueTooWideError(WriterError):
    """A value does not fit in the slot it is destined for."""


class ReservedValueError(WriterError):
    """A value collides with a byte or sentinel the encoding reserves."""


class ConfigurationError(WriterError):
    """The writer, or an automaton handed to it, is set up in an
    unsupported way."""


# Identifier policy.
#
# Property names and values are pretty uniform, particularly the
# canonical variants used to produce variable names, so these don't
# need to do much.  Only ASCII letters change case, as in Rust's
# make_ascii_uppercase.


def _asciiUpper(s):
    return "".join(c.upper() if "a" <= c <= "z" else c for c in s)


def _asciiLower(s):
    return "".join(c.lower() if "A" <= c <= "Z" else c for c in s)


def constName(s):
    """Heuristically produce a Rust constant name.

    Age values have a ``.`` in them, so that becomes ``_``.

    >>> constName('Script_Extensions')
    'SCRIPT_EXTENSIONS'
    >>> constName('V1.1')
    'V1_1'
    """
    return _asciiUpper(s.replace(".", "_"))


def typeName(s):
    """Heuristically produce a Rust type name.

    >>> typeName('simple')
    'Simple'
    >>> typeName('SCRIPT')
    'SCRIPT'
    >>> typeName('dot.separated')
    'DotSeparated'
    >>> typeName('white \\tspace')
    'WhiteSpace'
    """
    if all("A" <= c <= "Z" or "0" <= c <= "9" for c in s):
        return s

    components = []
    component = []
    for c in s + " ":
        if c.isspace() or c in "._-":
            components.append("".join(component))
            component = []
        else:
            component.append(c)

    out = []
    for component in components:
        lower = _asciiLower(component)
        if lower:
            out.append(lower[0].upper() + lower[1:])
    return "".join(out)


def moduleName(s):
    """
    >>> moduleName('GENERAL_CATEGORY')
    'general_category'
    """
    return _asciiLower(s)


def fnName(s):
    """
    >>> fnName('Simple Case.Folding-Map')
    'simple_case_folding_map'
    """
    return "".join(
        "_" if c.isspace() or c in ".-" else c for c in _asciiLower(s)
    )


# Interval compression.


def toRanges(codepoints: Iterable[int]) -> List[Tuple[int, int]]:
    """Collapse sorted, duplicate-free codepoints into inclusive runs.

    >>> toRanges([1, 2, 3, 5, 7, 8])
    [(1, 3), (5, 5), (7, 8)]
    >>> toRanges([])
    []
    """
    ranges = []
    for cp in codepoints:
        if ranges and ranges[-1][1] + 1 == cp:
            ranges[-1] = (ranges[-1][0], cp)
        else:
            ranges.append((cp, cp))
    return ranges


def toRangeValues(pairs: Iterable[Tuple[int, Any]]) -> List[Tuple[int, int, Any]]:
    """Collapse key-sorted ``(codepoint, value)`` pairs into inclusive
    runs of consecutive codepoints that share a value.

    >>> toRangeValues([(1, 'a'), (2, 'a'), (3, 'b'), (5, 'b')])
    [(1, 2, 'a'), (3, 3, 'b'), (5, 5, 'b')]
    """
    ranges = []
    for cp, value in pairs:
        if ranges and ranges[-1][1] + 1 == cp and ranges[-1][2] == value:
            ranges[-1] = (ranges[-1][0], cp, value)
        else:
            ranges.append((cp, cp, value))
    return ranges


# Width selection.


def smallestWidth(maxV: int) -> int:
    """Returns the narrowest unsigned integer width, in bits, that can
    store every value in ``[0, maxV]``.

    >>> smallestWidth(0)
    8
    >>> smallestWidth(256)
    16
    >>> smallestWidth(65536)
    32
    >>> smallestWidth(2**32)
    64
    """
    if maxV < 0:
        raise ValueTooWideError("negative value %d has no unsigned type" % maxV)

    if maxV <= 255:
        return 8
    if maxV <= 65535:
        return 16
    if maxV <= 4294967295:
        return 32
    if maxV <= 18446744073709551615:
        return 64

    raise ValueTooWideError("value %d does not fit in 64 bits" % maxV)


def smallestUnsignedType(maxV: int) -> str:
    """
    >>> smallestUnsignedType(255)
    'u8'
    >>> smallestUnsignedType(70000)
    'u32'
    """
    return "u%d" % smallestWidth(maxV)


# String packing.


def packStr(s: Union[str, bytes]) -> int:
    """Pack a short string into a u64.

    The least significant byte of the result is the first byte of the
    (UTF-8 encoded) string.  Strings of more than 8 bytes, and strings
    with a NUL byte, are rejected since the zero byte delimits the end.

    >>> hex(packStr('AB'))
    '0x4241'
    """
    data = s.encode("utf-8") if isinstance(s, str) else bytes(s)
    if len(data) > 8:
        raise ValueTooWideError("cannot encode string %r (too long)" % (s,))
    if 0 in data:
        raise ReservedValueError("cannot encode string %r (contains NUL byte)" % (s,))

    value = 0
    for i, b in enumerate(data):
        value |= b << (i * 8)
    return value


def unpackStr(value: int, encoding: Optional[str] = "utf-8") -> Union[str, bytes]:
    """Inverse of ``packStr``.  With ``encoding=None`` the raw bytes are
    returned.

    >>> unpackStr(packStr('YEO'))
    'YEO'
    """
    if not 0 <= value <= 18446744073709551615:
        raise ValueTooWideError("packed string %d does not fit in 64 bits" % value)

    data = bytearray()
    while value:
        data.append(value & 0xFF)
        value >>= 8
    if encoding is None:
        return bytes(data)
    return data.decode(encoding)


def u32Key(cp: int) -> bytes:
    """Return the given codepoint as a 4-byte big-endian FST key.

    >>> u32Key(0x1F600)
    b'\\x00\\x01\\xf6\\x00'
    """
    if not 0 <= cp <= 0xFFFFFFFF:
        raise ValueTooWideError("FST key 0x%X does not fit in 32 bits" % cp)
    return struct.pack(">I", cp)


# Automaton framing.


_stateIdTypes = {1: "u8", 2: "u16", 4: "u32", 8: "u64"}

_byteOrders = (("big", "bigendian"), ("little", "littleendian"))


def stateIdType(size: int) -> str:
    """Return the unsigned integer type for a state id of ``size`` bytes.

    >>> stateIdType(2)
    'u16'
    """
    typ = _stateIdTypes.get(size)
    if typ is None:
        raise ConfigurationError("unsupported DFA state id size: %r" % (size,))
    return typ


def dfaFileName(name: str, direction: Optional[str], byteOrder: str) -> str:
    """
    >>> dfaFileName('WHITE_SPACE', None, 'big')
    'white_space.bigendian.dfa'
    >>> dfaFileName('WHITE_SPACE', 'rev', 'little')
    'white_space.rev.littleendian.dfa'
    """
    parts = [moduleName(name)]
    if direction:
        parts.append(direction)
    parts.append(dict(_byteOrders)[byteOrder])
    parts.append("dfa")
    return ".".join(parts)


class Automaton(Protocol):
    """A constructed DFA.  Only its serializations are used."""

    state_id_size: int

    def to_bytes_big_endian(self) -> bytes: ...

    def to_bytes_little_endian(self) -> bytes: ...


class Regex(Protocol):
    """A forward/reverse pair of DFAs."""

    def forward(self) -> Automaton: ...

    def reverse(self) -> Automaton: ...


class FstArtifact(Protocol):
    def serialize(self) -> bytes: ...


class FstBuilder(Protocol):
    """Builds FSTs from keys (and values) given in sorted order."""

    def build_set(self, keys: Sequence[bytes]) -> FstArtifact: ...

    def build_map(self, pairs: Sequence[Tuple[bytes, int]]) -> FstArtifact: ...


class TrieBuilder(Protocol):
    """Builds a trie from sorted codepoints.  The result must expose the
    six ``ucd_trie::TrieSet`` arrays as attributes (see ``flattenTrie``)."""

    def from_codepoints(self, codepoints: Sequence[int]) -> Any: ...


def frameAutomata(
    name: str, automata: Mapping[Optional[str], Automaton]
) -> Dict[Tuple[Optional[str], str], Tuple[str, bytes]]:
    """Serialize automata in both byte orders.

    ``automata`` maps a direction (``None`` for a lone DFA, or
    ``'fwd'``/``'rev'`` for a regex) to an automaton.  Every automaton
    must share one supported state id size.

    Returns an ordered mapping from ``(direction, byteOrder)`` to
    ``(fileName, bytes)``, big-endian entries first.
    """
    sizes = {a.state_id_size for a in automata.values()}
    for size in sizes:
        stateIdType(size)
    if len(sizes) > 1:
        raise ConfigurationError(
            "forward and reverse DFAs disagree on state id size: %s"
            % sorted(sizes)
        )

    framed = collections.OrderedDict()
    for byteOrder, _ in _byteOrders:
        for direction, automaton in automata.items():
            if byteOrder == "big":
                data = automaton.to_bytes_big_endian()
            else:
                data = automaton.to_bytes_little_endian()
            fileName = dfaFileName(name, direction, byteOrder)
            framed[(direction, byteOrder)] = (fileName, bytes(data))
    return framed


# Output.


class _Absent:
    """Padding for flat codepoint tables.

    Rendered as ``!0`` with numeric literals and ``'\\0'`` with char
    literals.
    """

    def __repr__(self):
        return "ABSENT"


ABSENT = _Absent()


def _rustEscape(c, quote):
    if c == "\\":
        return "\\\\"
    if c == quote:
        return "\\" + quote
    if c == "\0":
        return "\\0"
    if c == "\t":
        return "\\t"
    if c == "\r":
        return "\\r"
    if c == "\n":
        return "\\n"
    if c.isprintable():
        return c
    return "\\u{%x}" % ord(c)


class LanguageRust:
    """Rust syntax used by the writer.

    ``charLiterals`` selects ``char`` literals for codepoints instead of
    ``u32`` literals.  Codepoints that aren't Unicode scalar values have
    no ``char`` literal; ``codepoint()`` returns None for them and the
    writer silently drops the entry.
    """

    name = "rust"

    def __init__(self, *, charLiterals=False):
        self.charLiterals = charLiterals

    def codepoint_type(self):
        return "char" if self.charLiterals else "u32"

    def codepoint(self, cp):
        if cp is ABSENT:
            return "'\\0'" if self.charLiterals else "!0"
        if self.charLiterals:
            if not 0 <= cp <= 0x10FFFF or 0xD800 <= cp <= 0xDFFF:
                return None
            return self.char_literal(chr(cp))
        if cp == 0xFFFFFFFF:
            # Same bits as the flat-table padding; writing it as !0 keeps
            # tables readable without changing their meaning.
            return "!0"
        return str(cp)

    def reserved_codepoint(self):
        """The real codepoint whose literal is the same as ABSENT's."""
        return 0 if self.charLiterals else 0xFFFFFFFF

    def char_literal(self, c):
        return "'%s'" % _rustEscape(c, "'")

    def str_literal(self, s):
        return '"%s"' % "".join(_rustEscape(c, '"') for c in s)

    def declare_slice(self, name, elementType):
        return "pub const %s: &'static [%s] = &[" % (name, elementType)

    def tuple_type(self, *types):
        return "(%s)" % ", ".join(types)

    def u64_literal(self, value):
        return "0x%X" % value if value else "0"


class LineWriter:
    """Accumulates tokens into lines of at most ``columns`` characters.

    The limit is best effort: a token that doesn't fit on a line of its
    own is still written whole.  ``indent`` starts every line begun by
    ``write_token`` and counts toward the limit.
    """

    def __init__(self, file: TextIO, columns: int = 79, indent: str = "  ") -> None:
        self.file = file
        self.columns = columns
        self.indent = indent
        self.line = ""

    def write_token(self, s: str) -> None:
        if len(self.line or self.indent) + len(s) > self.columns:
            self.flush_line()
        if not self.line:
            self.line = self.indent
        self.line += s

    def set_indent(self, indent: str) -> None:
        self.indent = indent

    def flush_line(self) -> None:
        if not self.line:
            return
        self.file.write(self.line.rstrip())
        self.file.write("\n")
        self.line = ""

    def write(self, s: str) -> None:
        """Write raw text, after terminating any pending line."""
        self.flush_line()
        self.file.write(s)

    def flush(self) -> None:
        self.flush_line()
        self.file.flush()


class Backend(enum.Enum):
    """How codepoint sets and maps are represented."""

    INLINE = "inline"
    FST = "fst"
    TRIE = "trie"


WriterOptions = collections.namedtuple(
    "WriterOptions",
    ["name", "columns", "charLiterals", "backend", "fstDir", "dfaDir", "ucdVersion"],
)


class WriterBuilder:
    """Configuration for ``Writer`` objects.

    The name given corresponds to the Rust module name to use when
    applicable.  Setters return the builder so they can be chained.
    """

    def __init__(self, name: str) -> None:
        self.opts = WriterOptions(
            name=name,
            columns=79,
            charLiterals=False,
            backend=Backend.INLINE,
            fstDir=None,
            dfaDir=None,
            ucdVersion=None,
        )
        self.trieBuilder = TrieSet

    def columns(self, columns: int) -> "WriterBuilder":
        """Set the column limit.  It is adhered to on a best effort basis."""
        self.opts = self.opts._replace(columns=columns)
        return self

    def char_literals(self, yes: bool = True) -> "WriterBuilder":
        """Emit ``char`` literals instead of ``u32`` literals.  Surrogate
        codepoints are silently dropped when writing."""
        self.opts = self.opts._replace(charLiterals=yes)
        return self

    def trie_set(
        self, yes: bool = True, trieBuilder: Optional[TrieBuilder] = None
    ) -> "WriterBuilder":
        """Emit a trie instead of a slice of ranges for codepoint sets.

        ``trieBuilder`` replaces the bundled ``ucdTab.trie.TrieSet``.
        """
        backend = Backend.TRIE if yes else Backend.INLINE
        self.opts = self.opts._replace(backend=backend)
        if trieBuilder is not None:
            self.trieBuilder = trieBuilder
        return self

    def ucd_version(self, major: int, minor: int, patch: int) -> "WriterBuilder":
        self.opts = self.opts._replace(ucdVersion=(major, minor, patch))
        return self

    def from_writer(self, file: TextIO, *, argv: Optional[Sequence[str]] = None) -> "Writer":
        return Writer(file, self.opts, trieBuilder=self.trieBuilder, argv=argv)

    def from_stdout(self, *, argv: Optional[Sequence[str]] = None) -> "Writer":
        return self.from_writer(sys.stdout, argv=argv)

    def from_fst_dir(
        self,
        fstDir: str,
        fstBuilder: FstBuilder,
        *,
        argv: Optional[Sequence[str]] = None,
    ) -> "Writer":
        """Write FSTs into ``fstDir``, along with ``<name>.rs`` that
        loads them."""
        opts = self.opts._replace(backend=Backend.FST, fstDir=fstDir)
        return self._from_dir(fstDir, opts, fstBuilder=fstBuilder, argv=argv)

    def from_dfa_dir(self, dfaDir: str, *, argv: Optional[Sequence[str]] = None) -> "Writer":
        """Write DFAs into ``dfaDir``, along with ``<name>.rs`` that
        loads them."""
        opts = self.opts._replace(dfaDir=dfaDir)
        return self._from_dir(dfaDir, opts, argv=argv)

    def _from_dir(self, directory, opts, *, fstBuilder=None, argv=None):
        path = os.path.join(directory, "%s.rs" % moduleName(opts.name))
        f = open(path, "w")
        try:
            return Writer(
                f,
                opts,
                fstBuilder=fstBuilder,
                trieBuilder=self.trieBuilder,
                argv=argv,
                ownsFile=True,
            )
        except BaseException:
            f.close()
            raise


class Writer:
    """A writer of various kinds of Unicode data.

    A writer takes as input various forms of Unicode data and writes
    that data in the output format its options select.  Every public
    method emits one item.  Checks that can reject the data run before
    anything is written for that call.
    """

    def __init__(
        self,
        file: TextIO,
        opts: WriterOptions,
        *,
        fstBuilder: Optional[FstBuilder] = None,
        trieBuilder: TrieBuilder = TrieSet,
        argv: Optional[Sequence[str]] = None,
        ownsFile: bool = False,
    ) -> None:
        if opts.backend is Backend.FST and fstBuilder is None:
            raise ConfigurationError("the FST backend needs an FST builder")
        self.opts = opts
        self.file = file
        self.wtr = LineWriter(file, columns=opts.columns)
        self.language = LanguageRust(charLiterals=opts.charLiterals)
        self.fstBuilder = fstBuilder
        self.trieBuilder = trieBuilder
        self.argv = list(sys.argv if argv is None else argv)
        self.wroteHeader = False
        self.ownsFile = ownsFile

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self) -> None:
        self.wtr.flush()
        if self.ownsFile:
            self.file.close()

    @property
    def fst(self):
        return self.opts.backend is Backend.FST

    # Sets.

    def names(self, names: Iterable[str]) -> None:
        """Write a sorted sequence of string names that map to Unicode
        set names."""
        lang = self.language
        if self.opts.backend is Backend.FST:
            ty = "::fst::Set<&'static [u8]>"
        elif self.opts.backend is Backend.TRIE:
            ty = "&'static ::ucd_trie::TrieSet"
        else:
            charty = lang.codepoint_type()
            ty = "&'static [%s]" % lang.tuple_type(charty, charty)

        self.header()
        self.separator()
        self._writeln(lang.declare_slice("BY_NAME", lang.tuple_type("&'static str", ty)))
        for name in sorted(names):
            self.wtr.write_token("(%s, %s), " % (lang.str_literal(name), constName(name)))
        self._writeln("];")
        self.wtr.flush()

    def ranges(self, name: str, codepoints: Iterable[int]) -> None:
        """Write a set of codepoints.

        With a slice, codepoints are written as sorted ranges.  An FST
        represents every codepoint explicitly, and a trie stores one
        bit per codepoint.
        """
        codepoints = sorted(set(codepoints))
        name = constName(name)
        if self.opts.backend is Backend.FST:
            artifact = self.fstBuilder.build_set([u32Key(cp) for cp in codepoints])
        elif self.opts.backend is Backend.TRIE:
            trie = self.trieBuilder.from_codepoints(codepoints)

        self.header()
        self.separator()
        if self.opts.backend is Backend.FST:
            self._fst(name, artifact, False)
        elif self.opts.backend is Backend.TRIE:
            self._trie_set(name, trie)
        else:
            self._ranges_slice(name, toRanges(codepoints))
        self.wtr.flush()

    def ranges_to_combined(self, name: str, enumMap: Mapping[str, Iterable[int]]) -> None:
        """Write the union of all the sets in ``enumMap`` as one set."""
        union = set()
        for codepoints in enumMap.values():
            union.update(codepoints)
        self.ranges(name, union)

    def _ranges_slice(self, name, table):
        lang = self.language
        ty = lang.codepoint_type()
        self._writeln(lang.declare_slice(name, lang.tuple_type(ty, ty)))
        for start, end in table:
            start, end = lang.codepoint(start), lang.codepoint(end)
            if start is not None and end is not None:
                self.wtr.write_token("(%s, %s), " % (start, end))
        self._writeln("];")

    def _trie_set(self, name, trie):
        lang = self.language
        self._writeln(
            "pub const %s: &'static ::ucd_trie::TrieSet = "
            "&::ucd_trie::TrieSet {" % name
        )
        self.wtr.set_indent("    ")
        for field, typ, values in flattenTrie(trie):
            self._writeln("  %s: &[" % field)
            for v in values:
                literal = lang.u64_literal(v) if typ == "u64" else str(v)
                self.wtr.write_token("%s, " % literal)
            self._writeln("  ],")
        self.wtr.set_indent("  ")
        self._writeln("};")

    # Enumerations.

    def ranges_to_enum(self, name: str, enumMap: Mapping[str, Iterable[int]]) -> None:
        """Write a map from codepoint ranges to an index into a list of
        the enumeration's value names.

        This emits two items: ``<NAME>_ENUM``, the sorted value names,
        and ``<NAME>``, the ranges-to-index map.
        """
        variants = sorted(enumMap)
        table = {}
        for i, variant in enumerate(variants):
            for cp in enumMap[variant]:
                table[cp] = i

        lang = self.language
        self.header()
        self.separator()
        self._writeln(lang.declare_slice("%s_ENUM" % constName(name), "&'static str"))
        for variant in variants:
            self.wtr.write_token("%s, " % lang.str_literal(variant))
        self._writeln("];")
        self.ranges_to_unsigned_integer(name, table)

    def ranges_to_rust_enum(
        self,
        name: str,
        variants: Sequence[str],
        enumMap: Mapping[str, Iterable[int]],
    ) -> None:
        """Write a Rust enum with a variant for each of ``variants``,
        and a map from codepoint ranges to those variants.

        Variants are numbered implicitly, in the order given.
        """
        enumName = typeName(name)
        ranges = self._enum_ranges(enumMap)

        self.header()
        self.separator()
        self._writeln("#[derive(Clone, Copy, Debug, Hash, Eq, PartialEq)]")
        self._writeln("pub enum %s {" % enumName)
        for variant in variants:
            self.wtr.write_token("%s, " % typeName(variant))
        self._writeln("}\n")
        self._ranges_to_enum_slice(constName(name), enumName, ranges)
        self.wtr.flush()

    def ranges_to_rust_enum_with_custom_discriminants(
        self,
        name: str,
        variantsMap: Mapping[int, str],
        enumMap: Mapping[str, Iterable[int]],
    ) -> None:
        """Like ``ranges_to_rust_enum``, but ``variantsMap`` maps each
        custom discriminant to its variant."""
        if self.fst:
            raise CapabilityError(
                "cannot emit an enum with custom discriminants as an FST"
            )
        enumName = typeName(name)
        ranges = self._enum_ranges(enumMap)

        self.header()
        self.separator()
        self._writeln(
            "#[derive(Clone, Copy, Debug, Hash, Eq, PartialEq, Ord, PartialOrd)]"
        )
        self._writeln("pub enum %s {" % enumName)
        for discriminant in sorted(variantsMap):
            self.wtr.write_token(
                "%s = %d, " % (typeName(variantsMap[discriminant]), discriminant)
            )
        self._writeln("}\n")
        self._ranges_to_enum_slice(constName(name), enumName, ranges)
        self.wtr.flush()

    def _enum_ranges(self, enumMap):
        table = {}
        for variant in sorted(enumMap):
            for cp in enumMap[variant]:
                table[cp] = variant
        return toRangeValues((cp, typeName(table[cp])) for cp in sorted(table))

    def _ranges_to_enum_slice(self, name, enumType, table):
        lang = self.language
        ty = lang.codepoint_type()
        self._writeln(lang.declare_slice(name, lang.tuple_type(ty, ty, enumType)))
        for start, end, variant in table:
            start, end = lang.codepoint(start), lang.codepoint(end)
            if start is not None and end is not None:
                self.wtr.write_token(
                    "(%s, %s, %s::%s), " % (start, end, enumType, variant)
                )
        self._writeln("];")

    # Integer maps.

    def ranges_to_unsigned_integer(self, name: str, table: Mapping[int, int]) -> None:
        """Write a map that associates ranges of codepoints with an
        unsigned integer.  The smallest numeric type is used."""
        pairs = sorted(table.items())
        if min((v for _, v in pairs), default=0) < 0:
            raise ValueTooWideError("cannot emit negative values in %s" % name)
        numType = smallestUnsignedType(max((v for _, v in pairs), default=0))

        name = constName(name)
        if self.fst:
            artifact = self.fstBuilder.build_map([(u32Key(k), v) for k, v in pairs])

        self.header()
        self.separator()
        if self.fst:
            self._fst(name, artifact, True)
        else:
            self._ranges_to_unsigned_integer_slice(name, numType, toRangeValues(pairs))
        self.wtr.flush()

    def _ranges_to_unsigned_integer_slice(self, name, numType, table):
        lang = self.language
        ty = lang.codepoint_type()
        self._writeln(lang.declare_slice(name, lang.tuple_type(ty, ty, numType)))
        for start, end, num in table:
            start, end = lang.codepoint(start), lang.codepoint(end)
            if start is not None and end is not None:
                self.wtr.write_token("(%s, %s, %d), " % (start, end, num))
        self._writeln("];")

    # String maps.

    def string_to_string(self, name: str, table: Mapping[str, str]) -> None:
        """Write a map that associates strings to strings.

        The only supported output format is a sorted slice, which can be
        binary searched.
        """
        if self.fst:
            raise CapabilityError("cannot emit string->string map as an FST")

        lang = self.language
        self.header()
        self.separator()
        self._writeln(
            lang.declare_slice(
                constName(name), lang.tuple_type("&'static str", "&'static str")
            )
        )
        for k in sorted(table):
            self.wtr.write_token(
                "(%s, %s), " % (lang.str_literal(k), lang.str_literal(table[k]))
            )
        self._writeln("];")
        self.wtr.flush()

    def string_to_string_to_string(
        self, name: str, table: Mapping[str, Mapping[str, str]]
    ) -> None:
        """Write a map that associates strings to another map from
        strings to strings, as nested sorted slices."""
        if self.fst:
            raise CapabilityError("cannot emit string->string->string map as an FST")

        lang = self.language
        pair = lang.tuple_type("&'static str", "&'static str")
        self.header()
        self.separator()
        self._writeln(
            lang.declare_slice(
                constName(name), lang.tuple_type("&'static str", "&'static [%s]" % pair)
            )
        )
        for k1 in sorted(table):
            self.wtr.write_token("(%s, &[" % lang.str_literal(k1))
            inner = table[k1]
            for k2 in sorted(inner):
                self.wtr.write_token(
                    "(%s, %s), " % (lang.str_literal(k2), lang.str_literal(inner[k2]))
                )
            self.wtr.write_token("]), ")
            self.wtr.flush_line()
        self._writeln("];")
        self.wtr.flush()

    def codepoint_to_string(self, name: str, table: Mapping[int, str]) -> None:
        """Write a map that associates codepoints to strings.

        As an FST, this is a map from codepoint to u64 where the string
        is packed into the u64 (see ``packStr``).  One string that
        can't be packed fails the whole call.
        """
        pairs = sorted(table.items())
        name = constName(name)
        if self.fst:
            packed = [(u32Key(k), packStr(v)) for k, v in pairs]
            artifact = self.fstBuilder.build_map(packed)

        self.header()
        self.separator()
        if self.fst:
            self._fst(name, artifact, True)
        else:
            lang = self.language
            self._writeln(
                lang.declare_slice(name, lang.tuple_type(lang.codepoint_type(), "&'static str"))
            )
            for cp, s in pairs:
                cp = lang.codepoint(cp)
                if cp is not None:
                    self.wtr.write_token("(%s, %s), " % (cp, lang.str_literal(s)))
            self._writeln("];")
        self.wtr.flush()

    def string_to_codepoint(self, name: str, table: Mapping[str, int]) -> None:
        """Write a map that associates strings to codepoints."""
        pairs = sorted(table.items())
        name = constName(name)
        if self.fst:
            artifact = self.fstBuilder.build_map([(k.encode("utf-8"), v) for k, v in pairs])

        self.header()
        self.separator()
        if self.fst:
            self._fst(name, artifact, True)
        else:
            lang = self.language
            self._writeln(
                lang.declare_slice(name, lang.tuple_type("&'static str", lang.codepoint_type()))
            )
            for s, cp in pairs:
                cp = lang.codepoint(cp)
                if cp is not None:
                    self.wtr.write_token("(%s, %s), " % (lang.str_literal(s), cp))
            self._writeln("];")
        self.wtr.flush()

    def string_to_u64(self, name: str, table: Mapping[str, int]) -> None:
        """Write a map that associates strings to u64 values."""
        pairs = sorted(table.items())
        for k, v in pairs:
            if not 0 <= v <= 18446744073709551615:
                raise ValueTooWideError("value %d for %r does not fit in a u64" % (v, k))
        name = constName(name)
        if self.fst:
            artifact = self.fstBuilder.build_map([(k.encode("utf-8"), v) for k, v in pairs])

        self.header()
        self.separator()
        if self.fst:
            self._fst(name, artifact, True)
        else:
            lang = self.language
            self._writeln(lang.declare_slice(name, lang.tuple_type("&'static str", "u64")))
            for s, n in pairs:
                self.wtr.write_token("(%s, %d), " % (lang.str_literal(s), n))
            self._writeln("];")
        self.wtr.flush()

    # Codepoint maps.

    def codepoint_to_codepoint(self, name: str, table: Mapping[int, int]) -> None:
        """Write a map that associates codepoints with other codepoints.

        As an FST, keys are 32-bit big endian and values are the
        destination codepoints.
        """
        pairs = sorted(table.items())
        name = constName(name)
        if self.fst:
            artifact = self.fstBuilder.build_map([(u32Key(k), v) for k, v in pairs])

        self.header()
        self.separator()
        if self.fst:
            self._fst(name, artifact, True)
        else:
            self._ranges_slice(name, pairs)
        self.wtr.flush()

    def codepoint_to_codepoint_fn(self, name: str, table: Mapping[int, int]) -> None:
        """Write a function that maps codepoints to other codepoints with
        a match expression.  The fallback branch returns None, so no
        destination may be 0."""
        pairs = sorted(table.items())
        for _, to in pairs:
            if to == 0:
                raise ValueTooWideError(
                    "destination codepoint must not be 0 (NUL) for "
                    "rust-match output format"
                )

        self.header()
        self.separator()
        self._writeln("use std::num::NonZeroU32;")
        self.separator()
        self._writeln("pub fn %s(cp: u32) -> Option<NonZeroU32> {" % fnName(name))
        self.wtr.set_indent("    ")
        self.wtr.write_token(
            "// new_unchecked is safe as ucdTab checks that the destination"
        )
        self.wtr.flush_line()
        self.wtr.write_token("// codepoint is non-zero at code generation time.")
        self.wtr.flush_line()
        self.wtr.write_token("unsafe {")
        self.wtr.flush_line()
        self.wtr.set_indent("        ")
        self.wtr.write_token("match cp {")
        self.wtr.flush_line()
        self.wtr.set_indent("            ")
        for frm, to in pairs:
            self.wtr.write_token("%d => Some(NonZeroU32::new_unchecked(%d))," % (frm, to))
            self.wtr.flush_line()
        self.wtr.write_token("_ => None,")
        self.wtr.flush_line()
        self.wtr.set_indent("        ")
        self.wtr.write_token("}")
        self.wtr.flush_line()
        self.wtr.set_indent("    ")
        self.wtr.write_token("}")
        self.wtr.flush_line()
        self.wtr.set_indent("  ")
        self._writeln("}")
        self.wtr.flush()

    def multi_codepoint_to_codepoint(
        self, name: str, table: Mapping[int, Iterable[int]], flat: bool = False
    ) -> None:
        """Write a map that associates codepoints with possibly many
        other codepoints.  Each value set is written sorted.

        This does not support the FST format.
        """
        if self.fst:
            raise CapabilityError("cannot emit codepoint multimaps as an FST")
        self.codepoint_to_codepoints(
            name, {k: sorted(set(vs)) for k, vs in table.items()}, flat
        )

    def codepoint_to_codepoints(
        self, name: str, table: Mapping[int, Sequence[int]], flat: bool = False
    ) -> None:
        """Write a map that associates codepoints with a sequence of
        other codepoints.

        With ``flat``, every value is a ``[cp; 3]`` array padded with
        ABSENT, so no sequence may be longer than 3 and no real value
        may collide with the padding's literal.

        This does not support the FST format.
        """
        if self.fst:
            raise CapabilityError("cannot emit codepoint->codepoints map as an FST")

        lang = self.language
        pairs = sorted((k, list(vs)) for k, vs in table.items())
        if flat:
            reserved = lang.reserved_codepoint()
            for k, vs in pairs:
                if len(vs) > 3:
                    raise CapabilityError(
                        "flat-table representation cannot be used when value "
                        "arrays may contain more than 3 entries"
                    )
                if reserved in vs:
                    raise ReservedValueError(
                        "flat-table representation cannot be used when %s is "
                        "present in the value array for %d, since it is used "
                        "as padding" % (lang.codepoint(ABSENT), k)
                    )

        ty = lang.codepoint_type()
        self.header()
        self.separator()
        if flat:
            self._writeln(lang.declare_slice(constName(name), "(%s, [%s; 3])" % (ty, ty)))
        else:
            self._writeln(
                lang.declare_slice(constName(name), "(%s, &'static [%s])" % (ty, ty))
            )
        for k, vs in pairs:
            # Keys and values must all be representable in the chosen
            # codepoint format, or the entry is dropped.
            kstr = lang.codepoint(k)
            if kstr is None:
                continue
            if flat:
                vs = (vs + [ABSENT] * 3)[:3]
                prefix = ""
            else:
                prefix = "&"
            vstrs = [lang.codepoint(v) for v in vs]
            if None in vstrs:
                continue

            self.wtr.write_token("(%s, %s[" % (kstr, prefix))
            if len(vstrs) == 1:
                self.wtr.write_token(vstrs[0])
            else:
                for v in vstrs:
                    self.wtr.write_token("%s, " % v)
            self.wtr.write_token("]), ")
        self._writeln("];")
        self.wtr.flush()

    # Automata.

    def dense_dfa(self, name: str, dfa: Automaton) -> None:
        idType = stateIdType(dfa.state_id_size)
        self._dfa(name, dfa, "DenseDFA", "DenseDFA<&'static [%s], %s>" % (idType, idType))

    def sparse_dfa(self, name: str, dfa: Automaton) -> None:
        idType = stateIdType(dfa.state_id_size)
        self._dfa(name, dfa, "SparseDFA", "SparseDFA<&'static [u8], %s>" % idType)

    def dense_regex(self, name: str, regex: Regex) -> None:
        idType = stateIdType(regex.forward().state_id_size)
        self._regex(
            name,
            regex,
            "DenseDFA",
            "Regex<::regex_automata::DenseDFA<&'static [%s], %s>>" % (idType, idType),
        )

    def sparse_regex(self, name: str, regex: Regex) -> None:
        idType = stateIdType(regex.forward().state_id_size)
        self._regex(
            name,
            regex,
            "SparseDFA",
            "Regex<::regex_automata::SparseDFA<&'static [u8], %s>>" % idType,
        )

    def _require_dfa_dir(self):
        if self.opts.dfaDir is None:
            raise CapabilityError("DFAs can only be written to a DFA directory")

    def _dfa(self, name, dfa, shortType, fullType):
        self._require_dfa_dir()
        framed = frameAutomata(name, {None: dfa})
        alignTo = stateIdType(dfa.state_id_size)
        name = constName(name)

        self.header()
        self.separator()
        for fileName, data in framed.values():
            self._write_blob(self.opts.dfaDir, fileName, data)

        for i, byteOrder in enumerate(("big", "little")):
            if i:
                self.separator()
            fileName, _ = framed[(None, byteOrder)]
            self._writeln('#[cfg(target_endian = "%s")]' % byteOrder)
            self._writeln(
                "pub static %s: ::once_cell::sync::Lazy<::regex_automata::%s> ="
                % (name, fullType)
            )
            self._writeln("  ::once_cell::sync::Lazy::new(|| {")
            self._write_dfa_deserialize(shortType, alignTo, fileName)
            self._writeln("  });")
        self.wtr.flush()

    def _regex(self, name, regex, shortType, fullType):
        self._require_dfa_dir()
        forward, reverse = regex.forward(), regex.reverse()
        framed = frameAutomata(name, collections.OrderedDict([("fwd", forward), ("rev", reverse)]))
        alignTo = stateIdType(forward.state_id_size)
        name = constName(name)

        self.header()
        self.separator()
        for fileName, data in framed.values():
            self._write_blob(self.opts.dfaDir, fileName, data)

        for i, byteOrder in enumerate(("big", "little")):
            if i:
                self.separator()
            self._writeln('#[cfg(target_endian = "%s")]' % byteOrder)
            self._writeln(
                "pub static %s: ::once_cell::sync::Lazy<::regex_automata::%s> ="
                % (name, fullType)
            )
            self._writeln("  ::once_cell::sync::Lazy::new(|| {")
            for direction in ("fwd", "rev"):
                fileName, _ = framed[(direction, byteOrder)]
                self._writeln("    let %s = {" % direction)
                self._write_dfa_deserialize(shortType, alignTo, fileName)
                self._writeln("    };")
            self._writeln("    ::regex_automata::Regex::from_dfas(fwd, rev)")
            self._writeln("  });")
        self.wtr.flush()

    def _write_dfa_deserialize(self, shortType, alignTo, fileName):
        # The zero-length array gives the embedded bytes the alignment of
        # the state id type, which from_bytes requires.
        lang = self.language
        self._writeln("    #[repr(C)]")
        self._writeln("    struct Aligned<B: ?Sized> {")
        self._writeln("        _align: [%s; 0]," % alignTo)
        self._writeln("        bytes: B,")
        self._writeln("    }")
        self._writeln()
        self._writeln("    static ALIGNED: &'static Aligned<[u8]> = &Aligned {")
        self._writeln("        _align: [],")
        self._writeln("        bytes: *include_bytes!(%s)," % lang.str_literal(fileName))
        self._writeln("    };")
        self._writeln()
        self._writeln(
            "    assert_eq!(ALIGNED.bytes.as_ptr() as usize "
            "%% ::core::mem::align_of::<%s>(), 0);" % alignTo
        )
        self._writeln("    unsafe {")
        self._writeln(
            "      ::regex_automata::%s::from_bytes(&ALIGNED.bytes)" % shortType
        )
        self._writeln("    }")

    # FSTs.

    def _fst(self, name, artifact, isMap):
        lang = self.language
        fileName = "%s.fst" % moduleName(name)
        self._write_blob(self.opts.fstDir, fileName, artifact.serialize())

        ty = "Map" if isMap else "Set"
        self._writeln(
            "pub static %s: ::once_cell::sync::Lazy<::fst::%s<&'static [u8]>> ="
            % (name, ty)
        )
        self._writeln("  ::once_cell::sync::Lazy::new(|| {")
        self._writeln("    ::fst::%s::from(::fst::raw::Fst::new(" % ty)
        self._writeln("      &include_bytes!(%s)[..]).unwrap())" % lang.str_literal(fileName))
        self._writeln("  });")

    def _write_blob(self, directory, fileName, data):
        path = os.path.join(directory, fileName)
        with open(path, "wb") as f:
            f.write(data)
        logger.debug("wrote %d bytes to %s", len(data), path)

    # Text.

    def header(self) -> None:
        """Write the provenance header, once per writer."""
        if self.wroteHeader:
            return
        argv = []
        if self.argv:
            argv.append(os.path.basename(self.argv[0]))
        for arg in self.argv[1:]:
            if "\n" in arg:
                argv.append("[snip (arg too long)]")
            else:
                argv.append(arg)

        self._writeln("// DO NOT EDIT THIS FILE. IT WAS AUTOMATICALLY GENERATED BY:")
        self._writeln("//")
        self._writeln("//   %s" % " ".join(argv))
        self._writeln("//")
        if self.opts.ucdVersion is not None:
            self._writeln("// Unicode version: %d.%d.%d." % tuple(self.opts.ucdVersion))
            self._writeln("//")
        self._writeln("// ucdTab %s generated this file." % __version__)
        self.wroteHeader = True

    def separator(self) -> None:
        self.wtr.write("\n")

    def _writeln(self, s=""):
        self.wtr.write(s + "\n")
