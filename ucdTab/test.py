import doctest
import io
import os
import random
import struct
import subprocess
import sys

import pytest

import ucdTab
from ucdTab import (
    ABSENT,
    Backend,
    CapabilityError,
    ConfigurationError,
    LanguageRust,
    LineWriter,
    ReservedValueError,
    ValueTooWideError,
    Writer,
    WriterBuilder,
    WriterError,
    constName,
    dfaFileName,
    fnName,
    frameAutomata,
    moduleName,
    packStr,
    smallestUnsignedType,
    smallestWidth,
    stateIdType,
    toRangeValues,
    toRanges,
    typeName,
    u32Key,
    unpackStr,
)
from ucdTab.trie import TRIE_ARRAYS, TrieSet, flattenTrie
from ucdTab.__main__ import main


ARGV = ["/usr/local/bin/ucd-gen", "script", "--chars"]

HEADER = (
    "// DO NOT EDIT THIS FILE. IT WAS AUTOMATICALLY GENERATED BY:\n"
    "//\n"
    "//   ucd-gen script --chars\n"
    "//\n"
    "// ucdTab %s generated this file.\n" % ucdTab.__version__
)


# ── Collaborator stand-ins ─────────────────────────────────────────


class FakeFst:
    def __init__(self, data):
        self.data = data

    def serialize(self):
        return self.data


class FakeFstBuilder:
    """Records what it is asked to build; serializes to a readable blob."""

    def __init__(self):
        self.calls = []

    def build_set(self, keys):
        keys = list(keys)
        self.calls.append(("set", keys))
        return FakeFst(b"SET" + b"".join(keys))

    def build_map(self, pairs):
        pairs = list(pairs)
        self.calls.append(("map", pairs))
        return FakeFst(b"MAP" + b"".join(k + struct.pack(">Q", v) for k, v in pairs))


class FakeDFA:
    def __init__(self, tag, state_id_size=2):
        self.tag = tag
        self.state_id_size = state_id_size

    def to_bytes_big_endian(self):
        return b"BE:" + self.tag

    def to_bytes_little_endian(self):
        return b"LE:" + self.tag


class FakeRegex:
    def __init__(self, state_id_size=2, reverse_state_id_size=None):
        if reverse_state_id_size is None:
            reverse_state_id_size = state_id_size
        self._fwd = FakeDFA(b"fwd", state_id_size)
        self._rev = FakeDFA(b"rev", reverse_state_id_size)

    def forward(self):
        return self._fwd

    def reverse(self):
        return self._rev


def _writer(chars=False, trie=False, columns=None, version=None, argv=ARGV):
    builder = WriterBuilder("test")
    builder.char_literals(chars).trie_set(trie)
    if columns is not None:
        builder.columns(columns)
    if version is not None:
        builder.ucd_version(*version)
    out = io.StringIO()
    return builder.from_writer(out, argv=argv), out


def _fst_writer(tmp_path):
    fst = FakeFstBuilder()
    writer = WriterBuilder("test").from_fst_dir(str(tmp_path), fst, argv=ARGV)
    return writer, fst


def _read(path):
    with open(path) as f:
        return f.read()


def _readb(path):
    with open(path, "rb") as f:
        return f.read()


# ── Identifier policy ──────────────────────────────────────────────


class TestTypeName:
    def test_simple(self):
        assert typeName("simple") == "Simple"

    def test_all_caps_passthrough(self):
        assert typeName("SCRIPT") == "SCRIPT"
        assert typeName("V1") == "V1"

    def test_dot_separated(self):
        assert typeName("dot.separated") == "DotSeparated"

    def test_dash_separated(self):
        assert typeName("dash-separated") == "DashSeparated"

    def test_whitespace(self):
        assert typeName("white \tspace") == "WhiteSpace"

    def test_snake_case(self):
        assert typeName("snake_case") == "SnakeCase"

    def test_mixed_case_is_lowered(self):
        assert typeName("Grapheme_Cluster_Break") == "GraphemeClusterBreak"
        assert typeName("LV") == "LV"
        assert typeName("Extend_ExtCccZwj") == "ExtendExtccczwj"


class TestNames:
    def test_const_name(self):
        assert constName("Alphabetic") == "ALPHABETIC"
        assert constName("V10.0") == "V10_0"

    def test_const_name_ascii_only(self):
        assert constName("straße") == "STRAßE"

    def test_module_name(self):
        assert moduleName("WHITE_SPACE") == "white_space"

    def test_fn_name(self):
        assert fnName("Simple Case-Folding.Map") == "simple_case_folding_map"


# ── Interval compression ───────────────────────────────────────────


def _expand(ranges):
    out = []
    for start, end in ranges:
        out.extend(range(start, end + 1))
    return out


class TestToRanges:
    def test_empty(self):
        assert toRanges([]) == []

    def test_single(self):
        assert toRanges([0x41]) == [(0x41, 0x41)]

    def test_merges_adjacent(self):
        assert toRanges([1, 2, 3, 10, 11, 20]) == [(1, 3), (10, 11), (20, 20)]

    def test_passes_through_surrogates_and_large_values(self):
        assert toRanges([0xD7FF, 0xD800, 0xFFFFFFFF]) == [
            (0xD7FF, 0xD800),
            (0xFFFFFFFF, 0xFFFFFFFF),
        ]

    def test_minimal_random(self):
        rng = random.Random(1234)
        for _ in range(50):
            cps = sorted(set(rng.randrange(0, 300) for _ in range(rng.randrange(0, 120))))
            ranges = toRanges(cps)
            assert _expand(ranges) == cps
            for (s1, e1), (s2, e2) in zip(ranges, ranges[1:]):
                assert s1 <= e1 < s2 <= e2
                assert e1 + 1 < s2
            assert toRanges(_expand(ranges)) == ranges


class TestToRangeValues:
    def test_empty(self):
        assert toRangeValues([]) == []

    def test_splits_on_value_change(self):
        pairs = [(1, 5), (2, 5), (3, 6), (4, 6), (6, 6)]
        assert toRangeValues(pairs) == [(1, 2, 5), (3, 4, 6), (6, 6, 6)]

    def test_adjacent_runs_differ(self):
        rng = random.Random(99)
        pairs = [(cp, rng.randrange(3)) for cp in range(200) if rng.random() < 0.8]
        runs = toRangeValues(pairs)
        for (s1, e1, v1), (s2, e2, v2) in zip(runs, runs[1:]):
            assert e1 < s2
            assert e1 + 1 < s2 or v1 != v2
        expanded = [(cp, v) for s, e, v in runs for cp in range(s, e + 1)]
        assert expanded == pairs


# ── Width selection ────────────────────────────────────────────────


class TestSmallestWidth:
    def test_boundaries(self):
        assert smallestWidth(0) == 8
        assert smallestWidth(255) == 8
        assert smallestWidth(256) == 16
        assert smallestWidth(65535) == 16
        assert smallestWidth(65536) == 32
        assert smallestWidth(2**32 - 1) == 32
        assert smallestWidth(2**32) == 64
        assert smallestWidth(2**64 - 1) == 64

    def test_too_wide(self):
        with pytest.raises(ValueTooWideError):
            smallestWidth(2**64)

    def test_negative(self):
        with pytest.raises(ValueTooWideError):
            smallestWidth(-1)

    def test_type_names(self):
        assert smallestUnsignedType(0) == "u8"
        assert smallestUnsignedType(300) == "u16"
        assert smallestUnsignedType(0x10FFFF) == "u32"
        assert smallestUnsignedType(2**40) == "u64"


# ── String packing ─────────────────────────────────────────────────


class TestPackStr:
    @pytest.mark.parametrize("s", ["G", "GG", "YEO", "ABCDEFGH", "", "é", "한"])
    def test_round_trip(self, s):
        assert unpackStr(packStr(s)) == s

    def test_byte_order(self):
        assert packStr("G") == 0x47
        assert packStr("AB") == 0x4241
        assert packStr("ABCDEFGH") == 0x4847464544434241

    def test_empty(self):
        assert packStr("") == 0

    def test_bytes_input(self):
        assert unpackStr(packStr(b"\xff\x01"), encoding=None) == b"\xff\x01"

    def test_too_long(self):
        with pytest.raises(ValueTooWideError):
            packStr("ABCDEFGHI")

    def test_too_long_after_encoding(self):
        # Five two-byte characters are ten bytes.
        with pytest.raises(ValueTooWideError):
            packStr("ééééé")

    def test_nul(self):
        with pytest.raises(ReservedValueError):
            packStr("AB\x00CD")

    def test_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            packStr("AB\x00CD")

    def test_unpack_out_of_range(self):
        with pytest.raises(ValueTooWideError):
            unpackStr(2**64)


class TestU32Key:
    def test_big_endian(self):
        assert u32Key(0x41) == b"\x00\x00\x00\x41"
        assert u32Key(0x10FFFF) == b"\x00\x10\xff\xff"

    def test_sort_order_matches_numeric(self):
        cps = [5, 0x100, 0x41, 0x10000]
        assert sorted(u32Key(cp) for cp in cps) == [u32Key(cp) for cp in sorted(cps)]

    @pytest.mark.parametrize("cp", [2**32, -1])
    def test_out_of_range(self, cp):
        with pytest.raises(ValueTooWideError):
            u32Key(cp)

    def test_wide_key_rejected_before_output(self, tmp_path):
        writer, fst = _fst_writer(tmp_path)
        with pytest.raises(ValueTooWideError):
            writer.codepoint_to_codepoint("lower", {2**32: 1})
        assert fst.calls == []
        assert not writer.wroteHeader
        writer.close()


# ── Trie ───────────────────────────────────────────────────────────


class TestTrieSet:
    def test_empty(self):
        trie = TrieSet.from_codepoints([])
        assert trie.tree1_level1 == [0] * 32
        assert trie.tree2_level1 == []
        assert trie.tree2_level2 == []
        assert trie.tree3_level1 == []
        assert trie.tree3_level2 == []
        assert trie.tree3_level3 == []
        assert 0x41 not in trie
        assert 0x1000 not in trie
        assert 0x10000 not in trie

    def test_tier1_bits(self):
        trie = TrieSet.from_codepoints([0, 0x41, 0x7FF])
        assert trie.tree1_level1[0] == 1
        assert trie.tree1_level1[1] == 1 << 1
        assert trie.tree1_level1[31] == 1 << 63
        assert trie.tree2_level1 == []

    def test_tier2_layout(self):
        trie = TrieSet.from_codepoints([0x800, 0x801, 0xFFFF])
        assert len(trie.tree2_level1) == 992
        assert trie.tree2_level2[trie.tree2_level1[0]] == 0b11
        assert trie.tree2_level2[trie.tree2_level1[-1]] == 1 << 63
        assert trie.tree3_level1 == []

    def test_tier3_layout(self):
        trie = TrieSet.from_codepoints([0x10000, 0x10FFFF])
        assert len(trie.tree3_level1) == 256
        assert len(trie.tree3_level2) % 64 == 0
        assert trie.tree2_level1 == []
        assert 0x10000 in trie
        assert 0x10FFFF in trie
        assert 0x10001 not in trie

    def test_dedup(self):
        # Every chunk in tier 2 is either empty or has bit 0 set.
        cps = list(range(0x800, 0x10000, 64))
        trie = TrieSet.from_codepoints(cps)
        assert sorted(trie.tree2_level2) == [1]

    def test_contains_matches_input(self):
        rng = random.Random(7)
        cps = set(rng.randrange(0, 0x110000) for _ in range(500))
        cps.update(range(0x1F300, 0x1F400))
        trie = TrieSet.from_codepoints(sorted(cps))
        probes = set(rng.randrange(0, 0x110000) for _ in range(5000)) | cps
        for cp in probes:
            assert trie.contains(cp) == (cp in cps)

    def test_out_of_range_not_contained(self):
        trie = TrieSet.from_codepoints([0x10FFFF])
        assert 0x110000 not in trie

    def test_negative_not_contained(self):
        trie = TrieSet.from_codepoints([0x7FF])
        assert 0x7FF in trie
        assert not trie.contains(-1)
        assert -64 not in trie

    def test_invalid_codepoint(self):
        with pytest.raises(ValueError):
            TrieSet.from_codepoints([0x110000])

    def test_gives_up_on_too_many_leaves(self):
        cps = []
        for i in range(300):
            base = (0x20 + i) * 64
            bits = i + 1
            cps.extend(base + j for j in range(bits.bit_length()) if bits >> j & 1)
        with pytest.raises(ValueError):
            TrieSet.from_codepoints(cps)

    def test_flatten_order(self):
        trie = TrieSet.from_codepoints([0x41, 0x4E00, 0x20000])
        arrays = flattenTrie(trie)
        assert [(name, typ) for name, typ, _ in arrays] == list(TRIE_ARRAYS)
        assert [name for name, _, _ in arrays] == [
            "tree1_level1",
            "tree2_level1",
            "tree2_level2",
            "tree3_level1",
            "tree3_level2",
            "tree3_level3",
        ]
        assert arrays[0][2] == trie.tree1_level1
        assert trie.arrays() == arrays

    def test_u8_arrays_fit(self):
        trie = TrieSet.from_codepoints(range(0, 0x110000, 97))
        for name, typ, values in flattenTrie(trie):
            if typ == "u8":
                assert all(0 <= v <= 255 for v in values)
            else:
                assert all(0 <= v < 2**64 for v in values)


# ── Line writer ────────────────────────────────────────────────────


class TestLineWriter:
    def test_wraps_before_limit(self):
        out = io.StringIO()
        w = LineWriter(out, columns=20, indent="  ")
        for i in range(30):
            w.write_token("%d, " % i)
        w.flush()
        lines = out.getvalue().splitlines()
        assert len(lines) > 1
        assert all(len(line) <= 20 for line in lines)
        assert all(line.startswith("  ") for line in lines)
        assert ", ".join(str(i) for i in range(30)) + "," == " ".join(
            line.strip() for line in lines
        )

    def test_long_token_intact(self):
        out = io.StringIO()
        w = LineWriter(out, columns=10, indent="")
        w.write_token("ab ")
        w.write_token("x" * 25)
        w.write_token("cd")
        w.flush()
        assert out.getvalue() == "ab\n" + "x" * 25 + "\ncd\n"

    def test_flush_line_empty_is_noop(self):
        out = io.StringIO()
        w = LineWriter(out)
        w.flush_line()
        w.flush_line()
        assert out.getvalue() == ""

    def test_trailing_whitespace_trimmed(self):
        out = io.StringIO()
        w = LineWriter(out, indent="")
        w.write_token("a, ")
        w.flush_line()
        assert out.getvalue() == "a,\n"

    def test_indent_once_per_line(self):
        out = io.StringIO()
        w = LineWriter(out, indent="    ")
        w.write_token("a")
        w.write_token("b")
        w.flush_line()
        w.set_indent("")
        w.write_token("c")
        w.flush_line()
        assert out.getvalue() == "    ab\nc\n"

    def test_raw_write_flushes_pending(self):
        out = io.StringIO()
        w = LineWriter(out, indent="")
        w.write_token("a")
        w.write("raw\n")
        assert out.getvalue() == "a\nraw\n"


class TestLanguageRust:
    def test_numeric(self):
        lang = LanguageRust()
        assert lang.codepoint_type() == "u32"
        assert lang.codepoint(0x41) == "65"
        assert lang.codepoint(0xD800) == "55296"
        assert lang.codepoint(0xFFFFFFFF) == "!0"
        assert lang.codepoint(ABSENT) == "!0"
        assert lang.reserved_codepoint() == 0xFFFFFFFF

    def test_chars(self):
        lang = LanguageRust(charLiterals=True)
        assert lang.codepoint_type() == "char"
        assert lang.codepoint(0x41) == "'A'"
        assert lang.codepoint(0x27) == "'\\''"
        assert lang.codepoint(0x5C) == "'\\\\'"
        assert lang.codepoint(0x0A) == "'\\n'"
        assert lang.codepoint(0x7F) == "'\\u{7f}'"
        assert lang.codepoint(0xD800) is None
        assert lang.codepoint(0x110000) is None
        assert lang.codepoint(ABSENT) == "'\\0'"
        assert lang.reserved_codepoint() == 0

    def test_str_literal(self):
        lang = LanguageRust()
        assert lang.str_literal('a"b') == '"a\\"b"'
        assert lang.str_literal("it's") == '"it\'s"'
        assert lang.str_literal("\x00\t") == '"\\0\\t"'


# ── Writer: header and options ─────────────────────────────────────


class TestHeader:
    def test_written_once(self):
        writer, out = _writer()
        writer.ranges("a", [1])
        writer.ranges("b", [2])
        assert out.getvalue().count("DO NOT EDIT") == 1
        assert out.getvalue().startswith(HEADER)
        assert writer.wroteHeader

    def test_unwritten_until_first_call(self):
        writer, out = _writer()
        assert not writer.wroteHeader
        assert out.getvalue() == ""

    def test_newline_args_redacted(self):
        writer, out = _writer(argv=["gen", "ok", "multi\nline"])
        writer.ranges("a", [1])
        assert "//   gen ok [snip (arg too long)]\n" in out.getvalue()
        assert "multi" not in out.getvalue()

    def test_version(self):
        writer, out = _writer(version=(15, 1, 0))
        writer.ranges("a", [1])
        assert "// Unicode version: 15.1.0.\n//\n" in out.getvalue()

    def test_no_version(self):
        writer, out = _writer()
        writer.ranges("a", [1])
        assert "Unicode version" not in out.getvalue()


class TestBuilder:
    def test_defaults(self):
        opts = WriterBuilder("x").opts
        assert opts.columns == 79
        assert opts.backend is Backend.INLINE
        assert not opts.charLiterals

    def test_trie_backend(self):
        assert WriterBuilder("x").trie_set().opts.backend is Backend.TRIE
        assert WriterBuilder("x").trie_set().trie_set(False).opts.backend is Backend.INLINE

    def test_fst_needs_builder(self):
        opts = WriterBuilder("x").opts._replace(backend=Backend.FST)
        with pytest.raises(ConfigurationError):
            Writer(io.StringIO(), opts)

    def test_fst_dir_creates_module(self, tmp_path):
        writer = WriterBuilder("Script").from_fst_dir(str(tmp_path), FakeFstBuilder())
        writer.close()
        assert os.path.exists(os.path.join(str(tmp_path), "script.rs"))
        assert writer.file.closed

    def test_caller_sink_not_closed(self):
        writer, out = _writer()
        writer.close()
        assert not out.closed

    def test_columns(self):
        writer, out = _writer(columns=30)
        writer.ranges("a", range(0, 200, 2))
        for line in out.getvalue().splitlines():
            assert len(line) <= 30 or line.startswith("//") or line.startswith("pub")


# ── Writer: sets ───────────────────────────────────────────────────


class TestRanges:
    def test_slice(self):
        writer, out = _writer()
        writer.ranges("Foo", [5, 3, 1, 2])
        assert out.getvalue() == HEADER + (
            "\n"
            "pub const FOO: &'static [(u32, u32)] = &[\n"
            "  (1, 3), (5, 5),\n"
            "];\n"
        )

    def test_empty(self):
        writer, out = _writer()
        writer.ranges("Foo", [])
        assert out.getvalue().endswith("pub const FOO: &'static [(u32, u32)] = &[\n];\n")

    def test_chars_drop_surrogates(self):
        writer, out = _writer(chars=True)
        writer.ranges("Foo", [0x41, 0x42, 0xD800])
        text = out.getvalue()
        assert "pub const FOO: &'static [(char, char)] = &[\n" in text
        assert "  ('A', 'B'),\n" in text
        assert "55296" not in text

    def test_wraps_at_79(self):
        writer, out = _writer()
        writer.ranges("Foo", range(0, 4000, 2))
        body = out.getvalue().split("= &[\n", 1)[1]
        assert all(len(line) <= 79 for line in body.splitlines())

    def test_trie(self):
        writer, out = _writer(trie=True)
        writer.ranges("Foo", [0x41])
        text = out.getvalue()
        assert (
            "pub const FOO: &'static ::ucd_trie::TrieSet = &::ucd_trie::TrieSet {\n"
            in text
        )
        assert "    0, 0x2, 0, 0," in text
        positions = [text.index("  %s: &[\n" % name) for name, _ in TRIE_ARRAYS]
        assert positions == sorted(positions)
        assert text.endswith("  ],\n};\n")

    def test_trie_builder(self):
        class Builder:
            def __init__(self):
                self.calls = []

            def from_codepoints(self, codepoints):
                self.calls.append(list(codepoints))
                return TrieSet([7] * 32, [1], [2], [3], [4], [5])

        builder = Builder()
        out = io.StringIO()
        writer = WriterBuilder("test").trie_set(trieBuilder=builder).from_writer(
            out, argv=ARGV
        )
        writer.ranges("Foo", [0x42, 0x41, 0x41])
        text = out.getvalue()
        assert builder.calls == [[0x41, 0x42]]
        assert "    0x7, 0x7," in text
        assert "  tree2_level1: &[\n    1,\n  ],\n" in text
        assert "  tree3_level3: &[\n    0x5,\n  ],\n" in text

    def test_trie_builder_kept_by_trie_set(self):
        builder = WriterBuilder("test").trie_set(trieBuilder=object)
        assert builder.trie_set().trieBuilder is object
        assert WriterBuilder("test").trieBuilder is TrieSet

    def test_trie_resets_indent(self):
        writer, out = _writer(trie=True)
        writer.ranges("Foo", [0x41])
        writer.ranges_to_unsigned_integer("Bar", {1: 1})
        assert "\n  (1, 1, 1),\n" in out.getvalue()

    def test_fst(self, tmp_path):
        writer, fst = _fst_writer(tmp_path)
        with writer:
            writer.ranges("Foo", [3, 1])
        assert fst.calls == [("set", [u32Key(1), u32Key(3)])]
        assert _readb(os.path.join(str(tmp_path), "foo.fst")) == (
            b"SET" + u32Key(1) + u32Key(3)
        )
        text = _read(os.path.join(str(tmp_path), "test.rs"))
        assert text.startswith(HEADER)
        assert (
            "pub static FOO: ::once_cell::sync::Lazy<::fst::Set<&'static [u8]>> =\n"
            in text
        )
        assert '      &include_bytes!("foo.fst")[..]).unwrap())\n' in text

    def test_combined(self):
        writer, out = _writer()
        writer.ranges_to_combined("Foo", {"a": [1, 2], "b": [3], "c": [7]})
        assert "  (1, 3), (7, 7),\n" in out.getvalue()


class TestNamesTable:
    def test_inline(self):
        writer, out = _writer()
        writer.names(["beta", "Alpha"])
        text = out.getvalue()
        assert (
            "pub const BY_NAME: &'static [(&'static str, &'static [(u32, u32)])] = &[\n"
            in text
        )
        assert '  ("Alpha", ALPHA), ("beta", BETA),\n' in text

    def test_trie(self):
        writer, out = _writer(trie=True)
        writer.names(["x"])
        assert "&'static ::ucd_trie::TrieSet)] = &[" in out.getvalue()

    def test_fst(self, tmp_path):
        writer, _ = _fst_writer(tmp_path)
        with writer:
            writer.names(["x"])
        text = _read(os.path.join(str(tmp_path), "test.rs"))
        assert "(&'static str, ::fst::Set<&'static [u8]>)" in text


# ── Writer: enumerations and integers ──────────────────────────────


class TestEnums:
    def test_ranges_to_enum(self):
        writer, out = _writer()
        writer.ranges_to_enum("gc", {"Lu": [0x41, 0x42], "Ll": [0x61]})
        text = out.getvalue()
        assert "pub const GC_ENUM: &'static [&'static str] = &[\n" in text
        assert '  "Ll", "Lu",\n' in text
        assert "pub const GC: &'static [(u32, u32, u8)] = &[\n" in text
        assert "  (65, 66, 1), (97, 97, 0),\n" in text
        assert text.count("DO NOT EDIT") == 1

    def test_ranges_to_enum_fst(self, tmp_path):
        writer, fst = _fst_writer(tmp_path)
        with writer:
            writer.ranges_to_enum("gc", {"Lu": [0x41], "Ll": [0x61]})
        assert fst.calls == [("map", [(u32Key(0x41), 1), (u32Key(0x61), 0)])]
        assert os.path.exists(os.path.join(str(tmp_path), "gc.fst"))

    def test_rust_enum(self):
        writer, out = _writer()
        writer.ranges_to_rust_enum(
            "grapheme_cluster_break",
            ["Other", "CR", "LF"],
            {"CR": [13], "LF": [10], "Other": [11, 12]},
        )
        text = out.getvalue()
        assert "#[derive(Clone, Copy, Debug, Hash, Eq, PartialEq)]\n" in text
        assert "pub enum GraphemeClusterBreak {\n  Other, CR, LF,\n}\n\n" in text
        assert (
            "pub const GRAPHEME_CLUSTER_BREAK: "
            "&'static [(u32, u32, GraphemeClusterBreak)] = &[\n" in text
        )
        assert "(10, 10, GraphemeClusterBreak::LF)," in text
        assert "(11, 12, GraphemeClusterBreak::Other)," in text
        assert "(13, 13, GraphemeClusterBreak::CR)," in text
        body = text.split("= &[\n")[1]
        assert body.index("::LF") < body.index("::Other") < body.index("::CR")

    def test_rust_enum_custom_discriminants(self):
        writer, out = _writer()
        writer.ranges_to_rust_enum_with_custom_discriminants(
            "bidi_class", {2: "right", 1: "left"}, {"left": [0x41], "right": [0x5D0]}
        )
        text = out.getvalue()
        assert "PartialEq, Ord, PartialOrd)]\n" in text
        assert "pub enum BidiClass {\n  Left = 1, Right = 2,\n}\n" in text
        assert "(65, 65, BidiClass::Left), (1488, 1488, BidiClass::Right)," in text

    def test_custom_discriminants_reject_fst(self, tmp_path):
        writer, _ = _fst_writer(tmp_path)
        with pytest.raises(CapabilityError):
            writer.ranges_to_rust_enum_with_custom_discriminants(
                "x", {0: "a"}, {"a": [1]}
            )
        assert not writer.wroteHeader
        writer.close()
        assert _read(os.path.join(str(tmp_path), "test.rs")) == ""


class TestUnsignedInteger:
    def test_width_from_max(self):
        writer, out = _writer()
        writer.ranges_to_unsigned_integer("ccc", {1: 5, 2: 5, 3: 300})
        text = out.getvalue()
        assert "pub const CCC: &'static [(u32, u32, u16)] = &[\n" in text
        assert "  (1, 2, 5), (3, 3, 300),\n" in text

    def test_empty_is_u8(self):
        writer, out = _writer()
        writer.ranges_to_unsigned_integer("ccc", {})
        assert "(u32, u32, u8)" in out.getvalue()

    def test_u64(self):
        writer, out = _writer()
        writer.ranges_to_unsigned_integer("big", {1: 2**40})
        assert "(u32, u32, u64)" in out.getvalue()

    def test_negative_rejected(self):
        writer, out = _writer()
        with pytest.raises(ValueTooWideError):
            writer.ranges_to_unsigned_integer("neg", {1: -1})
        assert out.getvalue() == ""

    def test_fst(self, tmp_path):
        writer, fst = _fst_writer(tmp_path)
        with writer:
            writer.ranges_to_unsigned_integer("ccc", {2: 7, 1: 3})
        assert fst.calls == [("map", [(u32Key(1), 3), (u32Key(2), 7)])]
        text = _read(os.path.join(str(tmp_path), "test.rs"))
        assert "::fst::Map<&'static [u8]>" in text


# ── Writer: strings ────────────────────────────────────────────────


class TestStringMaps:
    def test_string_to_string(self):
        writer, out = _writer()
        writer.string_to_string("aliases", {"b": 'x"y', "a": "z"})
        text = out.getvalue()
        assert (
            "pub const ALIASES: &'static [(&'static str, &'static str)] = &[\n" in text
        )
        assert '  ("a", "z"), ("b", "x\\"y"),\n' in text

    def test_string_to_string_to_string(self):
        writer, out = _writer()
        writer.string_to_string_to_string(
            "values", {"sc": {"latn": "Latin", "grek": "Greek"}, "gc": {"lu": "Lu"}}
        )
        text = out.getvalue()
        assert "[(&'static str, &'static [(&'static str, &'static str)])]" in text
        assert '  ("gc", &[("lu", "Lu"), ]),\n' in text
        assert '  ("sc", &[("grek", "Greek"), ("latn", "Latin"), ]),\n' in text

    @pytest.mark.parametrize(
        "method, data",
        [
            ("string_to_string", {"a": "b"}),
            ("string_to_string_to_string", {"a": {"b": "c"}}),
        ],
    )
    def test_reject_fst(self, tmp_path, method, data):
        writer, fst = _fst_writer(tmp_path)
        with pytest.raises(CapabilityError):
            getattr(writer, method)("x", data)
        assert not writer.wroteHeader
        assert fst.calls == []
        writer.close()

    def test_codepoint_to_string(self):
        writer, out = _writer()
        writer.codepoint_to_string("jamo", {0x1100: "G", 0x1101: "GG"})
        text = out.getvalue()
        assert "pub const JAMO: &'static [(u32, &'static str)] = &[\n" in text
        assert '  (4352, "G"), (4353, "GG"),\n' in text

    def test_codepoint_to_string_long_inline(self):
        writer, out = _writer()
        writer.codepoint_to_string("names", {0x41: "LATIN CAPITAL LETTER A"})
        assert '"LATIN CAPITAL LETTER A"' in out.getvalue()

    def test_codepoint_to_string_fst(self, tmp_path):
        writer, fst = _fst_writer(tmp_path)
        with writer:
            writer.codepoint_to_string("jamo", {0x1101: "GG", 0x1100: "G"})
        assert fst.calls == [
            ("map", [(u32Key(0x1100), packStr("G")), (u32Key(0x1101), packStr("GG"))])
        ]
        assert os.path.exists(os.path.join(str(tmp_path), "jamo.fst"))

    @pytest.mark.parametrize(
        "value, error", [("ABCDEFGHI", ValueTooWideError), ("A\x00", ReservedValueError)]
    )
    def test_codepoint_to_string_fst_rejects(self, tmp_path, value, error):
        writer, fst = _fst_writer(tmp_path)
        with pytest.raises(error):
            writer.codepoint_to_string("jamo", {0x1100: "G", 0x1101: value})
        assert fst.calls == []
        assert not writer.wroteHeader
        assert not os.path.exists(os.path.join(str(tmp_path), "jamo.fst"))
        writer.close()

    def test_string_to_codepoint(self):
        writer, out = _writer(chars=True)
        writer.string_to_codepoint("by_name", {"LATIN SMALL LETTER A": 0x61})
        text = out.getvalue()
        assert "pub const BY_NAME: &'static [(&'static str, char)] = &[\n" in text
        assert "(\"LATIN SMALL LETTER A\", 'a')," in text

    def test_string_to_codepoint_fst(self, tmp_path):
        writer, fst = _fst_writer(tmp_path)
        with writer:
            writer.string_to_codepoint("by_name", {"b": 2, "a": 1})
        assert fst.calls == [("map", [(b"a", 1), (b"b", 2)])]

    def test_string_to_u64(self):
        writer, out = _writer()
        writer.string_to_u64("counts", {"x": 2**40})
        text = out.getvalue()
        assert "pub const COUNTS: &'static [(&'static str, u64)] = &[\n" in text
        assert '  ("x", 1099511627776),\n' in text

    def test_string_to_u64_too_wide(self):
        writer, out = _writer()
        with pytest.raises(ValueTooWideError):
            writer.string_to_u64("counts", {"x": 2**64})
        assert out.getvalue() == ""


# ── Writer: codepoint maps ─────────────────────────────────────────


class TestCodepointMaps:
    def test_codepoint_to_codepoint(self):
        writer, out = _writer()
        writer.codepoint_to_codepoint("lower", {0x42: 0x62, 0x41: 0x61})
        assert "  (65, 97), (66, 98),\n" in out.getvalue()

    def test_codepoint_to_codepoint_fst(self, tmp_path):
        writer, fst = _fst_writer(tmp_path)
        with writer:
            writer.codepoint_to_codepoint("lower", {0x41: 0x61})
        assert fst.calls == [("map", [(u32Key(0x41), 0x61)])]

    def test_fn(self):
        writer, out = _writer()
        writer.codepoint_to_codepoint_fn("Simple Fold", {0x41: 0x61, 0x42: 0x62})
        text = out.getvalue()
        assert "use std::num::NonZeroU32;\n\npub fn simple_fold(cp: u32)" in text
        assert "    unsafe {\n        match cp {\n" in text
        assert "            65 => Some(NonZeroU32::new_unchecked(97)),\n" in text
        assert "            _ => None,\n        }\n    }\n}\n" in text

    def test_fn_resets_indent(self):
        writer, out = _writer()
        writer.codepoint_to_codepoint_fn("f", {1: 2})
        writer.ranges("after", [1])
        assert "\n  (1, 1),\n" in out.getvalue()

    def test_fn_rejects_zero(self):
        writer, out = _writer()
        with pytest.raises(WriterError) as e:
            writer.codepoint_to_codepoint_fn("err", {1: 0})
        assert "destination codepoint must not be 0" in str(e.value)
        assert out.getvalue() == ""

    def test_codepoints(self):
        writer, out = _writer()
        writer.codepoint_to_codepoints("decomp", {4: [5], 1: [2, 3]})
        text = out.getvalue()
        assert "pub const DECOMP: &'static [(u32, &'static [u32])] = &[\n" in text
        assert "  (1, &[2, 3, ]), (4, &[5]),\n" in text

    def test_codepoints_flat(self):
        writer, out = _writer()
        writer.codepoint_to_codepoints("upper", {1: [2], 3: [4, 5, 6]}, flat=True)
        text = out.getvalue()
        assert "pub const UPPER: &'static [(u32, [u32; 3])] = &[\n" in text
        assert "(1, [2, !0, !0, ]), (3, [4, 5, 6, ])," in text

    def test_codepoints_flat_chars(self):
        writer, out = _writer(chars=True)
        writer.codepoint_to_codepoints("upper", {0x61: [0x41]}, flat=True)
        assert "('a', ['A', '\\0', '\\0', ])," in out.getvalue()

    def test_codepoints_flat_too_many(self):
        writer, out = _writer()
        with pytest.raises(CapabilityError):
            writer.codepoint_to_codepoints("upper", {1: [1, 2, 3, 4]}, flat=True)
        assert out.getvalue() == ""

    def test_codepoints_flat_reserved_numeric(self):
        writer, out = _writer()
        with pytest.raises(ReservedValueError):
            writer.codepoint_to_codepoints("upper", {1: [0xFFFFFFFF]}, flat=True)
        assert out.getvalue() == ""

    def test_codepoints_flat_reserved_chars(self):
        writer, out = _writer(chars=True)
        with pytest.raises(ReservedValueError):
            writer.codepoint_to_codepoints("upper", {1: [0]}, flat=True)
        assert out.getvalue() == ""

    def test_codepoints_flat_zero_ok_numeric(self):
        writer, out = _writer()
        writer.codepoint_to_codepoints("upper", {1: [0]}, flat=True)
        assert "(1, [0, !0, !0, ])," in out.getvalue()

    def test_codepoints_chars_drop_surrogate_entries(self):
        writer, out = _writer(chars=True)
        writer.codepoint_to_codepoints("m", {0x41: [0xD800], 0x42: [0x43]})
        text = out.getvalue()
        assert "('B', &['C'])," in text
        assert "'A'" not in text

    def test_multi(self):
        writer, out = _writer()
        writer.multi_codepoint_to_codepoint("multi", {1: {3, 2}, 5: {6}})
        assert "  (1, &[2, 3, ]), (5, &[6]),\n" in out.getvalue()

    @pytest.mark.parametrize(
        "method", ["codepoint_to_codepoints", "multi_codepoint_to_codepoint"]
    )
    def test_reject_fst(self, tmp_path, method):
        writer, _ = _fst_writer(tmp_path)
        with pytest.raises(CapabilityError):
            getattr(writer, method)("m", {1: [2, 3]})
        assert not writer.wroteHeader
        writer.close()


# ── Automata ───────────────────────────────────────────────────────


class TestFraming:
    def test_state_id_type(self):
        assert [stateIdType(n) for n in (1, 2, 4, 8)] == ["u8", "u16", "u32", "u64"]

    @pytest.mark.parametrize("size", [0, 3, 16])
    def test_state_id_type_unsupported(self, size):
        with pytest.raises(ConfigurationError):
            stateIdType(size)

    def test_file_names(self):
        assert dfaFileName("V1.1", None, "little") == "v1.1.littleendian.dfa"
        assert dfaFileName("X", "fwd", "big") == "x.fwd.bigendian.dfa"

    def test_frame_regex(self):
        framed = frameAutomata("WORD", {"fwd": FakeDFA(b"f"), "rev": FakeDFA(b"r")})
        assert list(framed) == [
            ("fwd", "big"),
            ("rev", "big"),
            ("fwd", "little"),
            ("rev", "little"),
        ]
        assert framed[("rev", "little")] == ("word.rev.littleendian.dfa", b"LE:r")
        assert framed[("fwd", "big")] == ("word.fwd.bigendian.dfa", b"BE:f")

    def test_frame_mismatched_sizes(self):
        with pytest.raises(ConfigurationError):
            frameAutomata("W", {"fwd": FakeDFA(b"f", 2), "rev": FakeDFA(b"r", 4)})


class TestDFA:
    def _writer(self, tmp_path):
        return WriterBuilder("test").from_dfa_dir(str(tmp_path), argv=ARGV)

    def test_requires_dfa_dir(self):
        writer, out = _writer()
        with pytest.raises(CapabilityError):
            writer.dense_dfa("x", FakeDFA(b"x"))
        assert out.getvalue() == ""

    def test_dense(self, tmp_path):
        with self._writer(tmp_path) as writer:
            writer.dense_dfa("Word", FakeDFA(b"w", state_id_size=2))
        d = str(tmp_path)
        assert _readb(os.path.join(d, "word.bigendian.dfa")) == b"BE:w"
        assert _readb(os.path.join(d, "word.littleendian.dfa")) == b"LE:w"
        text = _read(os.path.join(d, "test.rs"))
        big = text.index('#[cfg(target_endian = "big")]')
        little = text.index('#[cfg(target_endian = "little")]')
        assert big < text.index('include_bytes!("word.bigendian.dfa")') < little
        assert little < text.index('include_bytes!("word.littleendian.dfa")')
        assert (
            "pub static WORD: ::once_cell::sync::Lazy<"
            "::regex_automata::DenseDFA<&'static [u16], u16>> =" in text
        )
        assert text.count("        _align: [u16; 0],\n") == 2
        assert text.count(
            "    assert_eq!(ALIGNED.bytes.as_ptr() as usize "
            "% ::core::mem::align_of::<u16>(), 0);\n"
        ) == 2
        assert "::regex_automata::DenseDFA::from_bytes(&ALIGNED.bytes)" in text

    def test_sparse(self, tmp_path):
        with self._writer(tmp_path) as writer:
            writer.sparse_dfa("Word", FakeDFA(b"w", state_id_size=4))
        text = _read(os.path.join(str(tmp_path), "test.rs"))
        assert "SparseDFA<&'static [u8], u32>" in text
        assert "_align: [u32; 0]," in text

    def test_unsupported_state_id(self, tmp_path):
        writer = self._writer(tmp_path)
        with pytest.raises(ConfigurationError):
            writer.dense_dfa("Word", FakeDFA(b"w", state_id_size=3))
        writer.close()
        assert sorted(os.listdir(str(tmp_path))) == ["test.rs"]
        assert _read(os.path.join(str(tmp_path), "test.rs")) == ""

    def test_dense_regex(self, tmp_path):
        with self._writer(tmp_path) as writer:
            writer.dense_regex("Word", FakeRegex(state_id_size=8))
        d = str(tmp_path)
        assert sorted(os.listdir(d)) == [
            "test.rs",
            "word.fwd.bigendian.dfa",
            "word.fwd.littleendian.dfa",
            "word.rev.bigendian.dfa",
            "word.rev.littleendian.dfa",
        ]
        assert _readb(os.path.join(d, "word.rev.bigendian.dfa")) == b"BE:rev"
        text = _read(os.path.join(d, "test.rs"))
        assert "Regex<::regex_automata::DenseDFA<&'static [u64], u64>>" in text
        assert text.count("    ::regex_automata::Regex::from_dfas(fwd, rev)\n") == 2
        assert text.count("    let fwd = {\n") == 2
        little = text.index('#[cfg(target_endian = "little")]')
        assert text.index('"word.rev.bigendian.dfa"') < little
        assert text.index('"word.rev.littleendian.dfa"') > little

    def test_sparse_regex(self, tmp_path):
        with self._writer(tmp_path) as writer:
            writer.sparse_regex("Word", FakeRegex(state_id_size=1))
        text = _read(os.path.join(str(tmp_path), "test.rs"))
        assert "Regex<::regex_automata::SparseDFA<&'static [u8], u8>>" in text

    def test_regex_mismatched(self, tmp_path):
        writer = self._writer(tmp_path)
        with pytest.raises(ConfigurationError):
            writer.dense_regex("Word", FakeRegex(2, 4))
        writer.close()
        assert sorted(os.listdir(str(tmp_path))) == ["test.rs"]


# ── Doctests ───────────────────────────────────────────────────────


def test_doctests():
    assert doctest.testmod(ucdTab).failed == 0


# ── CLI ────────────────────────────────────────────────────────────


class TestMain:
    def test_set(self, capsys):
        assert main(["--name", "foo", "1", "2", "3", "0x10"]) == 0
        out = capsys.readouterr().out
        assert "//   ucdTab --name foo 1 2 3 0x10\n" in out
        assert "  (1, 3), (16, 16),\n" in out

    def test_map(self, capsys):
        main(["--kind", "map", "--name", "ccc", "1:230", "2:230", "3:1"])
        assert "  (1, 2, 230), (3, 3, 1),\n" in capsys.readouterr().out

    def test_string(self, capsys):
        main(["--kind", "string", "0x1100:G"])
        assert '(4352, "G"),' in capsys.readouterr().out

    def test_codepoint_chars(self, capsys):
        main(["--kind", "codepoint", "--chars", "65:97"])
        assert "('A', 'a')," in capsys.readouterr().out

    def test_trie(self, capsys):
        main(["--trie-set", "65"])
        assert "::ucd_trie::TrieSet" in capsys.readouterr().out

    def test_version(self, capsys):
        main(["--ucd-version", "15.0.0", "65"])
        assert "// Unicode version: 15.0.0." in capsys.readouterr().out

    def test_bad_version(self):
        with pytest.raises(SystemExit):
            main(["--ucd-version", "15.0", "65"])

    def test_bad_pair(self):
        with pytest.raises(SystemExit):
            main(["--kind", "map", "65"])

    def test_input_output(self, tmp_path):
        src = os.path.join(str(tmp_path), "in.txt")
        dst = os.path.join(str(tmp_path), "out.rs")
        with open(src, "w") as f:
            f.write("1 2 3\n")
        assert main(["-i", src, "-o", dst]) == 0
        assert "  (1, 3),\n" in _read(dst)

    def test_invalid_trie_codepoint(self):
        with pytest.raises(SystemExit):
            main(["--trie-set", "0x110000"])


class TestCLI:
    def _run(self, *args, input=None):
        result = subprocess.run(
            [sys.executable, "-m", "ucdTab", *args],
            capture_output=True,
            text=True,
            input=input,
        )
        return result

    def test_help(self):
        r = self._run("--help")
        assert r.returncode == 0
        assert "ucdTab" in r.stdout

    def test_stdin(self):
        r = self._run("--name", "x", input="65 66\n")
        assert r.returncode == 0
        assert "pub const X: &'static [(u32, u32)] = &[" in r.stdout

    def test_no_data(self):
        r = self._run(input="")
        assert r.returncode != 0
        assert "no data provided" in r.stderr

    def test_empty_string_value(self):
        r = self._run("--kind", "string", "65:", "66:x")
        assert r.returncode == 0
        assert '(65, ""), (66, "x"),' in r.stdout

    def test_writer_error_reported(self):
        r = self._run("--kind", "map", "65:-1")
        assert r.returncode != 0
        assert "negative" in r.stderr
