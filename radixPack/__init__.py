# Copyright 2019 Facebook Inc. All Rights Reserved.
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
Compile a static word dictionary into a compact exact-match lookup artifact.

Overview
--------

Given a closed list of ``(key, value)`` pairs (e.g. English words and
their kana transliterations), this module produces a small, self-contained
lookup artifact that answers ``lookup(key) -> value`` in time proportional
to the key length, without storing either the keys or the values verbatim.

The compiler has two halves:

**Radix automaton** (keys):
  - ``buildTrie`` inserts every key one character per node and attaches
    the value at the terminal node.  A second, different value for the
    same key is a corruption and raises ``ConflictingValueError``.
  - ``compressTrie`` collapses every chain of single-child, non-terminal
    nodes into one multi-character edge.  Children are visited in
    ascending code point order, so the result is reproducible.  Among
    the edges of a node the first characters are pairwise distinct, so
    descent never needs to backtrack.

**Value codec** (values):
  - Values are deduplicated in first-occurrence order; many keys may
    share one value index.
  - ``buildHuffmanCodes`` builds a prefix-free code over the characters
    of the distinct values.  Ties are broken by insertion order so the
    same input always yields the same table.
  - ``ValueCodec`` packs every distinct value, in index order, into one
    MSB-first bitstream, recording each value's exact bit length and,
    every ``checkpointSpan`` values, the cumulative bit offset.  Finding
    the start of value ``i`` costs at most ``checkpointSpan - 1``
    additions, never a scan from bit zero.

Code generation
---------------

``CompiledDictionary.genCode()`` flattens the automaton into an arena of
``(valueIndex, ((label, child), ...))`` tuples (node 0 is the root) and
registers it, together with the codec tables, in a ``Code`` object.
``Code.print_code()`` then emits the artifact through a ``Language``:

  - ``LanguagePython`` writes a self-contained Python module: the tables
    as literals plus a tiny interpreter, a memoized decoder and a public
    lookup function.
  - ``LanguageJSON`` writes only the tables, as one JSON document that
    ``Matcher.fromJSON`` loads.

``Matcher`` is the in-process runtime over the same tables.  Lookup is a
total function: anything that is not a compiled key, including
non-strings and the empty string, yields ``NOT_FOUND``.
"""

import sys
import base64
import collections
import functools
import heapq
import io
import json
import keyword
from math import log2
from functools import partial
from typing import Union, List, Dict, Any, Tuple, TextIO, Iterable


__all__ = [
    "NOT_FOUND",
    "DEFAULT_CHECKPOINT_SPAN",
    "CompileError",
    "EmptyInputError",
    "EmptyValueSetError",
    "ConflictingValueError",
    "NonDeterministicOutputError",
    "DictionaryEntry",
    "TrieNode",
    "RadixNode",
    "RadixEdge",
    "buildTrie",
    "compressTrie",
    "buildRadixTree",
    "buildHuffmanCodes",
    "ValueCodec",
    "Code",
    "Language",
    "LanguagePython",
    "LanguageJSON",
    "languages",
    "languageClasses",
    "Matcher",
    "CompiledDictionary",
    "compile_dictionary",
    "generate_lookup_module",
    "generate_word_list",
]

__version__ = "1.0.0"


NOT_FOUND = None

DEFAULT_CHECKPOINT_SPAN = 128


class CompileError(Exception):
    """Base class for failures detected while compiling a dictionary.

    Compilation is a pure function of its input, so none of these are
    worth retrying: either the entries or the compiler are wrong.
    """


class EmptyInputError(CompileError, ValueError):
    """There is nothing to compile (no entries, or no distinct values)."""


class EmptyValueSetError(EmptyInputError):
    pass


class ConflictingValueError(CompileError, ValueError):
    """The same key reached the trie with two different values."""

    def __init__(self, key, existing, value):
        super().__init__(
            "duplicate key with conflicting value: %r (%r != %r)"
            % (key, existing, value)
        )
        self.key = key
        self.existing = existing
        self.value = value


class NonDeterministicOutputError(CompileError, RuntimeError):
    """Two compilations of the same input produced different artifacts."""


DictionaryEntry = collections.namedtuple("DictionaryEntry", "key value")


def _checkEntry(key, value):
    if not isinstance(key, str) or not isinstance(value, str):
        raise TypeError("keys and values must be strings: %r" % ((key, value),))
    if not key:
        raise ValueError("empty key (value %r)" % value)
    if not value:
        raise ValueError("empty value for key %r" % key)
    if key != key.strip().lower():
        raise ValueError("key %r is not normalized" % key)


class TrieNode:
    """Build-time trie node: optional value plus one child per character."""

    __slots__ = ("value", "children")

    def __init__(self):
        self.value = None
        self.children = {}


def buildTrie(entries: Iterable[Tuple[str, str]]) -> Tuple[TrieNode, int]:
    """Insert every entry into a per-character trie.

    Returns ``(root, nodeCount)``.  Re-inserting a key with the same
    value is harmless; a different value raises ConflictingValueError.

    >>> root, count = buildTrie([("to", "a"), ("tea", "b")])
    >>> count
    5
    >>> root.children["t"].children["o"].value
    'a'
    """
    root = TrieNode()
    nodeCount = 1
    for key, value in entries:
        _checkEntry(key, value)
        node = root
        for char in key:
            child = node.children.get(char)
            if child is None:
                child = node.children[char] = TrieNode()
                nodeCount += 1
            node = child
        if node.value is not None and node.value != value:
            raise ConflictingValueError(key, node.value, value)
        node.value = value
    return root, nodeCount


RadixEdge = collections.namedtuple("RadixEdge", "label node")


class RadixNode:
    """Path-compressed node: optional value plus edges sorted by label.

    No two edges of a node start with the same character.
    """

    __slots__ = ("value", "edges")

    def __init__(self, value=None, edges=()):
        self.value = value
        self.edges = list(edges)

    def countNodes(self):
        count = 0
        stack = [self]
        while stack:
            node = stack.pop()
            count += 1
            stack.extend(edge.node for edge in node.edges)
        return count

    def countEdges(self):
        return self.countNodes() - 1

    def items(self):
        """Yield ``(key, value)`` for every terminal, in sorted key order."""
        stack = [("", self)]
        while stack:
            prefix, node = stack.pop()
            if node.value is not None:
                yield prefix, node.value
            for edge in reversed(node.edges):
                stack.append((prefix + edge.label, edge.node))

    def keys(self):
        return [key for key, _ in self.items()]

    def __repr__(self):
        return "%s(%r, %r)" % (
            self.__class__.__name__,
            self.value,
            [edge.label for edge in self.edges],
        )


def compressTrie(node: TrieNode) -> RadixNode:
    """Rewrite a trie into a radix tree.

    Each edge absorbs every following node that has exactly one child
    and no value of its own.

    >>> root, _ = buildTrie([("car", "1"), ("cat", "2"), ("dog", "3")])
    >>> radix = compressTrie(root)
    >>> [edge.label for edge in radix.edges]
    ['ca', 'dog']
    >>> [edge.label for edge in radix.edges[0].node.edges]
    ['r', 't']
    """
    root = RadixNode(node.value)
    stack = [(node, root)]
    while stack:
        trieNode, radixNode = stack.pop()
        for char in sorted(trieNode.children):
            label = char
            cursor = trieNode.children[char]
            while cursor.value is None and len(cursor.children) == 1:
                nextChar, cursor = next(iter(cursor.children.items()))
                label += nextChar
            child = RadixNode(cursor.value)
            radixNode.edges.append(RadixEdge(label, child))
            stack.append((cursor, child))
    return root


def buildRadixTree(entries):
    """Returns ``(radixRoot, trieNodeCount)``."""
    root, trieNodeCount = buildTrie(entries)
    return compressTrie(root), trieNodeCount


class HuffmanNode:
    __slots__ = ("char", "freq", "left", "right")

    def __init__(self, char, freq, left=None, right=None):
        self.char = char
        self.freq = freq
        self.left = left
        self.right = right


def buildHuffmanCodes(values: Iterable[str]) -> Dict[str, str]:
    """Build a prefix-free code over the characters of ``values``.

    Every occurrence of a character inside a value counts once.  The
    two lightest nodes are merged repeatedly; the first one popped
    becomes the ``0`` branch.  Equal frequencies are ordered by an
    insertion sequence (leaves by first occurrence, merged nodes after
    all leaves, in creation order), so the table is reproducible.

    A single-symbol alphabet gets the one-bit code ``"0"``.

    >>> sorted(buildHuffmanCodes(["aab"]).items())
    [('a', '1'), ('b', '0')]
    >>> buildHuffmanCodes(["zzz"])
    {'z': '0'}
    """
    freq = collections.Counter()
    for value in values:
        freq.update(value)
    if not freq:
        raise EmptyValueSetError("cannot build Huffman codes for an empty value set")

    heap = [
        (count, seq, HuffmanNode(char, count))
        for seq, (char, count) in enumerate(freq.items())
    ]
    heapq.heapify(heap)
    seq = len(heap)
    while len(heap) > 1:
        freq0, _, left = heapq.heappop(heap)
        freq1, _, right = heapq.heappop(heap)
        parent = HuffmanNode(None, freq0 + freq1, left, right)
        heapq.heappush(heap, (parent.freq, seq, parent))
        seq += 1

    codes = {}
    stack = [(heap[0][2], "")]
    while stack:
        node, prefix = stack.pop()
        if node.char is not None:
            codes[node.char] = prefix or "0"
            continue
        stack.append((node.right, prefix + "1"))
        stack.append((node.left, prefix + "0"))
    return codes


def _bitOffset(checkpoints, bitLengths, span, index):
    """Start bit of value ``index``: nearest checkpoint plus the lengths
    of the values between it and ``index``."""
    block = index // span
    return checkpoints[block] + sum(bitLengths[block * span : index])


def _decodeBits(data, decodeMap, start, length):
    out = []
    code = ""
    for bit in range(start, start + length):
        code += "1" if (data[bit >> 3] >> (7 - (bit & 7))) & 1 else "0"
        char = decodeMap.get(code)
        if char is not None:
            out.append(char)
            code = ""
    return "".join(out)


class ValueCodec:
    """Huffman-packed store of the distinct values.

    Attributes:
      - ``values``:      the distinct values, in index order.
      - ``valueToIndex``: value -> index.
      - ``codes``:       char -> bit string; ``decodeMap`` is its inverse.
      - ``data``:        the packed bitstream, MSB-first, zero-padded.
      - ``bitLengths``:  exact bit length of every value.
      - ``checkpoints``: bit offset of every ``checkpointSpan``-th value.
    """

    def __init__(self, values, checkpointSpan=DEFAULT_CHECKPOINT_SPAN):
        values = list(values)
        if not isinstance(checkpointSpan, int) or checkpointSpan < 1:
            raise ValueError("checkpointSpan must be a positive integer")
        if not values:
            raise EmptyValueSetError("no distinct values to pack")

        self.values = values
        self.valueToIndex = {v: i for i, v in enumerate(values)}
        if len(self.valueToIndex) != len(values):
            raise ValueError("values must be distinct")
        self.checkpointSpan = checkpointSpan
        self.codes = buildHuffmanCodes(values)
        self.decodeMap = {code: char for char, code in self.codes.items()}
        self.bitLengths = []
        self.checkpoints = []
        self.data, self.totalBits = self._pack()

    @classmethod
    def fromEntries(cls, entries, checkpointSpan=DEFAULT_CHECKPOINT_SPAN):
        """Deduplicate the entry values by equality, keeping first occurrence."""
        values = list(dict.fromkeys(value for _, value in entries))
        return cls(values, checkpointSpan)

    def _pack(self):
        out = bytearray()
        acc = 0
        nBits = 0
        totalBits = 0
        for i, value in enumerate(self.values):
            if i % self.checkpointSpan == 0:
                self.checkpoints.append(totalBits)
            length = 0
            for char in value:
                code = self.codes[char]
                acc = (acc << len(code)) | int(code, 2)
                nBits += len(code)
                length += len(code)
                while nBits >= 8:
                    nBits -= 8
                    out.append((acc >> nBits) & 0xFF)
                acc &= (1 << nBits) - 1
            self.bitLengths.append(length)
            totalBits += length
        if nBits:
            out.append((acc << (8 - nBits)) & 0xFF)
        return bytes(out), totalBits

    def offset(self, index):
        return _bitOffset(self.checkpoints, self.bitLengths, self.checkpointSpan, index)

    def linearOffset(self, index):
        """Reference offset, summed from bit zero."""
        return sum(self.bitLengths[:index])

    def decode(self, index):
        return _decodeBits(
            self.data, self.decodeMap, self.offset(index), self.bitLengths[index]
        )

    def decodeAll(self):
        """Reference decode: walk the whole stream from bit zero."""
        out = []
        start = 0
        for length in self.bitLengths:
            out.append(_decodeBits(self.data, self.decodeMap, start, length))
            start += length
        return out

    def __len__(self):
        return len(self.values)


def _flatten(root, valueToIndex):
    """Lay the radix tree out breadth-first as an arena of tuples."""
    order = [root]
    nodes = []
    i = 0
    while i < len(order):
        node = order[i]
        i += 1
        edges = []
        for edge in node.edges:
            edges.append((edge.label, len(order)))
            order.append(edge.node)
        if node.value is None:
            value = None
        elif node.value in valueToIndex:
            value = valueToIndex[node.value]
        else:
            raise CompileError("missing value index for %r" % node.value)
        nodes.append((value, tuple(edges)))
    return tuple(nodes)


class Matcher:
    """Lookup runtime over the flattened automaton and the packed values.

    The tables are never modified after construction.  Decoded values
    are memoized per value index with ``functools.lru_cache``, which is
    safe to share between threads; ``precompute=True`` decodes every
    value up front instead.
    """

    def __init__(
        self,
        nodes,
        data,
        bitLengths,
        checkpoints,
        checkpointSpan,
        decodeMap,
        entryCount,
        *,
        precompute=False,
    ):
        # Index each node's edges by first character.
        self.nodes = tuple(
            (value, {label[0]: (label, child) for label, child in edges})
            for value, edges in nodes
        )
        self.data = bytes(data)
        self.bitLengths = tuple(bitLengths)
        self.checkpoints = tuple(checkpoints)
        self.checkpointSpan = checkpointSpan
        self.decodeMap = dict(decodeMap)
        self.entryCount = entryCount
        self._decode = functools.lru_cache(maxsize=None)(self._decodeIndex)
        if precompute:
            for i in range(len(self.bitLengths)):
                self._decode(i)

    @classmethod
    def fromJSON(cls, text, **kwargs):
        doc = json.loads(text)
        return cls(
            doc["nodes"],
            base64.b64decode(doc["data"]),
            doc["bit_lengths"],
            doc["checkpoints"],
            doc["checkpoint_span"],
            doc["decode_map"],
            doc["entry_count"],
            **kwargs,
        )

    def _decodeIndex(self, index):
        start = _bitOffset(self.checkpoints, self.bitLengths, self.checkpointSpan, index)
        return _decodeBits(self.data, self.decodeMap, start, self.bitLengths[index])

    def match(self, key):
        """Value index for ``key``, or None."""
        n = len(key)
        offset = 0
        value, edges = self.nodes[0]
        while offset < n:
            edge = edges.get(key[offset])
            if edge is None:
                return None
            label, child = edge
            if not key.startswith(label, offset):
                return None
            offset += len(label)
            value, edges = self.nodes[child]
        return value

    def lookup(self, candidate):
        if not isinstance(candidate, str):
            return NOT_FOUND
        key = candidate.strip().lower()
        if not key:
            return NOT_FOUND
        index = self.match(key)
        if index is None:
            return NOT_FOUND
        return self._decode(index)

    def __contains__(self, candidate):
        return self.lookup(candidate) is not NOT_FOUND

    def __len__(self):
        return self.entryCount


class Constant:
    """A named table or scalar registered for code generation."""

    def __init__(self, kind, shortName, value, *, private=True):
        assert kind in ("array", "bytes", "map", "scalar")
        self.kind = kind
        self.shortName = shortName
        self.value = value
        self.private = private


class Function:
    """A generated function: argument names plus body lines."""

    def __init__(self, args, body, *, decorators=(), private=True):
        self.args = args
        self.body = body
        self.decorators = decorators
        self.private = private


def _isIdentifier(name):
    return isinstance(name, str) and name.isidentifier() and not keyword.iskeyword(name)


class Code:
    """Accumulator for generated constants and functions.

    ``genCode()`` registers the tables of a compiled dictionary with
    ``addConstant`` and, for languages that carry a runtime, the lookup
    functions with ``addFunction``.  Re-registering a function with the
    same name must repeat the same definition.

    Call ``print_code()`` to emit everything in the target language.
    """

    def __init__(self, namespace: str = "lookup") -> None:
        if not _isIdentifier(namespace):
            raise ValueError("namespace %r is not a valid identifier" % namespace)
        self.namespace = namespace
        self.source = "unknown"
        self.entryCount = 0
        self.constants = collections.OrderedDict()
        self.functions = collections.OrderedDict()

    def nameFor(self, name: str, private: bool = True) -> str:
        if private:
            return "_%s_%s" % (self.namespace, name)
        return ("%s_%s" % (self.namespace, name)).upper()

    def describe(self, source: str, entryCount: int) -> None:
        self.source = source
        self.entryCount = entryCount

    def addConstant(self, kind: str, name: str, value: Any, *, private: bool = True) -> str:
        fullName = self.nameFor(name, private)
        if fullName in self.constants:
            raise ValueError("constant %s registered twice" % fullName)
        self.constants[fullName] = Constant(kind, name, value, private=private)
        return fullName

    def addFunction(
        self,
        name: str,
        args: Tuple[str, ...],
        body: List[str],
        *,
        decorators: Tuple[str, ...] = (),
        private: bool = True,
    ) -> str:
        if private:
            name = "_%s_%s" % (self.namespace, name)
        if name in self.functions:
            assert self.functions[name].args == args
            assert self.functions[name].body == body
            assert self.functions[name].decorators == decorators
        else:
            self.functions[name] = Function(
                args, body, decorators=decorators, private=private
            )
        return name

    def print_code(
        self,
        *,
        file: TextIO = sys.stdout,
        indent: Union[int, str] = 0,
        language: Union[str, "Language"] = "python",
    ) -> None:
        if isinstance(indent, int):
            indent *= " "
        printn = partial(print, file=file, sep="")
        println = partial(printn, indent)

        if isinstance(language, str):
            language = languages[language]

        language.print_code(self, print=println)


def _safeLabel(label):
    return " ".join(str(label).splitlines()) or "unknown"


class Language:
    """Base class for artifact backends.

    The base ``print_code`` walks the accumulated constants and then the
    functions; backends override the per-item printers, or ``print_code``
    itself when the artifact is not a sequence of declarations.
    """

    name = None
    has_runtime = False

    def print_code(self, code, *, print=print):
        self.print_preamble(code, print=print)
        for name, constant in code.constants.items():
            self.print_constant(name, constant, print=print)
        for name, function in code.functions.items():
            self.print_function(name, function, print=print)

    def genRuntime(self, code, name, tables):
        """Register the lookup functions; returns the public function name."""
        return None


class LanguagePython(Language):
    name = "python"
    has_runtime = True
    width = 78

    def print_preamble(self, code, *, print=print):
        print(
            "# auto-generated by radixPack; source: %s; entries: %d"
            % (_safeLabel(code.source), code.entryCount)
        )
        print()
        if code.functions or any(
            c.kind == "bytes" for c in code.constants.values()
        ):
            print("import base64")
            print("import functools")
            print()

    def print_constant(self, name, constant, *, print=print):
        value = constant.value
        if constant.kind == "scalar":
            print("%s = %r" % (name, value))
        elif constant.kind == "bytes":
            text = base64.b64encode(value).decode("ascii")
            step = self.width - 6
            print("%s = base64.b64decode(" % name)
            for i in range(0, len(text), step):
                print('    "%s"' % text[i : i + step])
            print(")")
        elif constant.kind == "map":
            print("%s = {" % name)
            for k, v in value.items():
                print("    %r: %r," % (k, v))
            print("}")
        else:
            self.print_array(name, value, print=print)
        print()

    def print_array(self, name, values, *, print=print):
        print("%s = (" % name)
        if all(isinstance(v, int) for v in values):
            w = max((len(str(v)) for v in values), default=1)
            n = 1 << int(round(log2(self.width / (w + 1))))
            if (w + 2) * n <= self.width:
                w += 1
            for i in range(0, len(values), n):
                line = values[i : i + n]
                print("  " + "".join("%*s," % (w, v) for v in line))
        else:
            for v in values:
                print("    %r," % (v,))
        print(")")

    def print_function(self, name, function, *, print=print):
        print()
        for decorator in function.decorators:
            print("@%s" % decorator)
        print("def %s(%s):" % (name, ", ".join(function.args)))
        for line in function.body:
            print(("    " + line) if line else "")
        print()

    def genRuntime(self, code, name, tables):
        t = tables
        offset = code.addFunction(
            "offset",
            ("i",),
            [
                "j = i // %s" % t["span"],
                "return %s[j] + sum(%s[j * %s : i])"
                % (t["checkpoints"], t["lengths"], t["span"]),
            ],
        )
        decode = code.addFunction(
            "decode",
            ("i",),
            [
                "out = []",
                'code = ""',
                "start = %s(i)" % offset,
                "for bit in range(start, start + %s[i]):" % t["lengths"],
                '    code += "1" if (%s[bit >> 3] >> (7 - (bit & 7))) & 1 else "0"'
                % t["data"],
                "    char = %s.get(code)" % t["codes"],
                "    if char is not None:",
                "        out.append(char)",
                '        code = ""',
                'return "".join(out)',
            ],
            decorators=("functools.lru_cache(maxsize=None)",),
        )
        match = code.addFunction(
            "match",
            ("k",),
            [
                "n = len(k)",
                "o = 0",
                "value, edges = %s[0]" % t["nodes"],
                "while o < n:",
                "    for label, child in edges:",
                "        if label[0] == k[o]:",
                "            break",
                "    else:",
                "        return None",
                "    if not k.startswith(label, o):",
                "        return None",
                "    o += len(label)",
                "    value, edges = %s[child]" % t["nodes"],
                "return value",
            ],
        )
        if not _isIdentifier(name):
            raise ValueError("lookup name %r is not a valid identifier" % name)
        if name in code.functions or name in code.constants or name in ("base64", "functools"):
            raise ValueError("lookup name %r clashes with a generated name" % name)
        return code.addFunction(
            name,
            ("raw",),
            [
                "if not isinstance(raw, str):",
                "    return None",
                "k = raw.strip().lower()",
                "if not k:",
                "    return None",
                "i = %s(k)" % match,
                "return None if i is None else %s(i)" % decode,
            ],
            private=False,
        )


class LanguageJSON(Language):
    """Data-only artifact: one JSON object keyed by short table names."""

    name = "json"

    def print_code(self, code, *, print=print):
        doc = collections.OrderedDict()
        doc["source"] = _safeLabel(code.source)
        for constant in code.constants.values():
            value = constant.value
            if constant.kind == "bytes":
                value = base64.b64encode(value).decode("ascii")
            doc[constant.shortName] = value
        print(json.dumps(doc, ensure_ascii=False, separators=(",", ":")))


languageClasses = {
    "python": LanguagePython,
    "json": LanguageJSON,
}

languages = {k: v() for k, v in languageClasses.items()}


class CompiledDictionary:
    """The result of ``compile_dictionary``.

    Holds the radix tree, its arena layout (``nodes``), the value codec
    and build statistics.  ``entryCount`` is the number of distinct keys.
    """

    def __init__(self, root, codec, trieNodeCount, sourceLabel="unknown"):
        self.root = root
        self.codec = codec
        self.sourceLabel = sourceLabel
        self.nodes = _flatten(root, codec.valueToIndex)
        self.entryCount = sum(1 for value, _ in self.nodes if value is not None)
        self.trieNodeCount = trieNodeCount
        self.radixNodeCount = len(self.nodes)
        self.radixEdgeCount = sum(len(edges) for _, edges in self.nodes)

    def words(self):
        return self.root.keys()

    def matcher(self, *, precompute=False):
        codec = self.codec
        return Matcher(
            self.nodes,
            codec.data,
            codec.bitLengths,
            codec.checkpoints,
            codec.checkpointSpan,
            codec.decodeMap,
            self.entryCount,
            precompute=precompute,
        )

    def genCode(self, code, name="lookup", language="python"):
        """Register tables (and runtime, if the language has one) in ``code``.

        Returns the name of the public lookup function, or None for
        data-only languages.
        """
        if isinstance(language, str):
            language = languages[language]

        codec = self.codec
        code.describe(self.sourceLabel, self.entryCount)
        tables = {
            "nodes": code.addConstant("array", "nodes", self.nodes),
            "data": code.addConstant("bytes", "data", codec.data),
            "lengths": code.addConstant("array", "bit_lengths", codec.bitLengths),
            "checkpoints": code.addConstant("array", "checkpoints", codec.checkpoints),
            "span": code.addConstant("scalar", "checkpoint_span", codec.checkpointSpan),
            "codes": code.addConstant("map", "decode_map", codec.decodeMap),
        }
        code.addConstant("scalar", "entry_count", self.entryCount, private=False)
        return language.genRuntime(code, name, tables)


def _entryList(entries):
    if isinstance(entries, dict):
        entries = entries.items()
    return [DictionaryEntry(*entry) for entry in entries]


def compile_dictionary(
    entries: Union[Iterable[Tuple[str, str]], Dict[str, str]],
    source_label: str = "unknown",
    checkpointSpan: int = DEFAULT_CHECKPOINT_SPAN,
) -> CompiledDictionary:
    """Compile entries into a radix automaton plus a packed value store.

    Args:
        entries: ``(key, value)`` pairs with unique, non-empty, already
            normalized keys and non-empty values, or a dict of the same.
        source_label: Human-readable provenance, embedded in artifacts.
        checkpointSpan: Number of values between decode checkpoints.

    Raises:
        EmptyInputError: If there are no entries.
        ConflictingValueError: If a key occurs with two different values.
        ValueError, TypeError: If an entry is empty or not a string pair.
    """
    entries = _entryList(entries)
    if not entries:
        raise EmptyInputError("cannot compile a dictionary with zero entries")
    root, trieNodeCount = buildRadixTree(entries)
    codec = ValueCodec.fromEntries(entries, checkpointSpan)
    return CompiledDictionary(root, codec, trieNodeCount, source_label)


def _render(entries, source_label, language, name, namespace, checkpointSpan):
    compiled = compile_dictionary(entries, source_label, checkpointSpan)
    code = Code(namespace)
    compiled.genCode(code, name, language=language)
    out = io.StringIO()
    code.print_code(file=out, language=language)
    return out.getvalue()


def generate_lookup_module(
    entries: Union[Iterable[Tuple[str, str]], Dict[str, str]],
    source_label: str = "unknown",
    *,
    language: Union[str, Language] = "python",
    name: str = "lookup",
    namespace: str = "lookup",
    checkpointSpan: int = DEFAULT_CHECKPOINT_SPAN,
) -> str:
    """Generate the lookup artifact text for ``entries``.

    The artifact is generated twice and the two renderings compared;
    any difference raises NonDeterministicOutputError.
    """
    entries = _entryList(entries)
    first = _render(entries, source_label, language, name, namespace, checkpointSpan)
    second = _render(entries, source_label, language, name, namespace, checkpointSpan)
    if first != second:
        raise NonDeterministicOutputError(
            "non-deterministic output detected during code generation"
        )
    return first


def generate_word_list(
    entries: Union[Iterable[Tuple[str, str]], Dict[str, str]],
    source_label: str = "unknown",
    *,
    language: Union[str, Language] = "python",
    namespace: str = "lookup",
) -> str:
    """Generate the companion artifact: every key, sorted, once."""
    words = tuple(sorted({key for key, _ in _entryList(entries)}))
    code = Code(namespace)
    code.describe(source_label, len(words))
    code.addConstant("array", "sorted_words", words, private=False)
    code.addConstant("scalar", "entry_count", len(words), private=False)
    out = io.StringIO()
    code.print_code(file=out, language=language)
    return out.getvalue()


if __name__ == "__main__":
    import doctest

    sys.exit(doctest.testmod().failed)
