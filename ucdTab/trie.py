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
Three-tier bitmap trie over the Unicode codespace.

The codespace is cut into 64-codepoint chunks, each stored as a u64
bitmap (bit ``j`` of chunk ``i`` is codepoint ``64 * i + j``).  Chunks
are split into three tiers with increasing indirection:

  - **Tier 1**, U+0000..U+07FF: the 32 chunks stored directly in
    ``tree1_level1``.
  - **Tier 2**, U+0800..U+FFFF: one u8 per chunk in ``tree2_level1``
    indexing the distinct bitmaps in ``tree2_level2``.
  - **Tier 3**, U+10000..U+10FFFF: one u8 per 4096 codepoints in
    ``tree3_level1`` indexing a block of 64 u8s in ``tree3_level2``,
    each of which indexes the distinct bitmaps in ``tree3_level3``.

Tiers 2 and 3 are left empty when no codepoint falls inside them.  The
layout is that of ``ucd_trie::TrieSet``, whose readers find each array
by position, so ``flattenTrie`` always yields them in the same order.
"""

import collections
from typing import Iterable, List, Tuple


__all__ = [
    "CHUNK_SIZE",
    "TRIE_ARRAYS",
    "TrieSet",
    "flattenTrie",
]

CHUNK_SIZE = 64

TRIE_ARRAYS = (
    ("tree1_level1", "u64"),
    ("tree2_level1", "u8"),
    ("tree2_level2", "u64"),
    ("tree3_level1", "u8"),
    ("tree3_level2", "u8"),
    ("tree3_level3", "u64"),
)


class _IdMapping(collections.defaultdict):
    """Assigns sequential u8 IDs to new keys, remembering them in order.

    ``children`` lists the keys in ID order, which is the order their
    data is laid out in the child array.
    """

    def __init__(self):
        collections.defaultdict.__init__(self)
        self.children = []

    def __missing__(self, key):
        v = len(self)
        if v > 255:
            raise ValueError("trie gave up: more than 256 distinct children")
        self[key] = v
        self.children.append(key)
        return v


def _compressLeaves(chunks):
    """Deduplicate bitmaps: returns the per-chunk indices and the
    distinct bitmaps."""
    mapping = _IdMapping()
    root = [mapping[chunk] for chunk in chunks]
    return root, list(mapping.children)


def _compressBlocks(indices, size):
    """Deduplicate ``size``-long blocks of indices: returns the
    per-block indices and the distinct blocks, concatenated."""
    mapping = _IdMapping()
    root = [
        mapping[tuple(indices[i : i + size])] for i in range(0, len(indices), size)
    ]
    children = []
    for block in mapping.children:
        children.extend(block)
    return root, children


class TrieSet:
    """A set of codepoints as a three-tier bitmap trie."""

    def __init__(
        self,
        tree1_level1: List[int],
        tree2_level1: List[int],
        tree2_level2: List[int],
        tree3_level1: List[int],
        tree3_level2: List[int],
        tree3_level3: List[int],
    ) -> None:
        self.tree1_level1 = tree1_level1
        self.tree2_level1 = tree2_level1
        self.tree2_level2 = tree2_level2
        self.tree3_level1 = tree3_level1
        self.tree3_level2 = tree3_level2
        self.tree3_level3 = tree3_level3

    @classmethod
    def from_codepoints(cls, codepoints: Iterable[int]) -> "TrieSet":
        chunks = [0] * (0x110000 // CHUNK_SIZE)
        for cp in codepoints:
            if not 0 <= cp <= 0x10FFFF:
                raise ValueError("invalid codepoint: 0x%X" % cp)
            chunks[cp // CHUNK_SIZE] |= 1 << (cp % CHUNK_SIZE)

        tree1_level1 = chunks[: 0x800 // CHUNK_SIZE]

        tree2_level1, tree2_level2 = _compressLeaves(
            chunks[0x800 // CHUNK_SIZE : 0x10000 // CHUNK_SIZE]
        )
        if tree2_level2 == [0]:
            tree2_level1, tree2_level2 = [], []

        mid, tree3_level3 = _compressLeaves(chunks[0x10000 // CHUNK_SIZE :])
        tree3_level1, tree3_level2 = _compressBlocks(mid, CHUNK_SIZE)
        if tree3_level3 == [0]:
            tree3_level1, tree3_level2, tree3_level3 = [], [], []

        return cls(
            tree1_level1,
            tree2_level1,
            tree2_level2,
            tree3_level1,
            tree3_level2,
            tree3_level3,
        )

    def contains(self, cp: int) -> bool:
        if cp < 0:
            return False
        if cp < 0x800:
            return _chunkContains(cp, self.tree1_level1[cp >> 6])

        if cp < 0x10000:
            i = (cp >> 6) - 0x20
            if i >= len(self.tree2_level1):
                return False
            return _chunkContains(cp, self.tree2_level2[self.tree2_level1[i]])

        i = (cp >> 12) - 0x10
        if i >= len(self.tree3_level1):
            return False
        child = self.tree3_level1[i]
        leaf = self.tree3_level2[(child << 6) + ((cp >> 6) & 0x3F)]
        return _chunkContains(cp, self.tree3_level3[leaf])

    __contains__ = contains

    def arrays(self) -> List[Tuple[str, str, List[int]]]:
        return flattenTrie(self)


def _chunkContains(cp, chunk):
    return (chunk >> (cp & 0x3F)) & 1 == 1


def flattenTrie(trie) -> List[Tuple[str, str, List[int]]]:
    """Project any trie exposing the six tier attributes onto
    ``(field, type, values)`` triples, in ``TRIE_ARRAYS`` order."""
    return [(field, typ, list(getattr(trie, field))) for field, typ in TRIE_ARRAYS]
