import json
import os
import random
import subprocess
import sys

import pytest

import radixPack
from radixPack import (
    NOT_FOUND,
    CompileError,
    ConflictingValueError,
    EmptyInputError,
    EmptyValueSetError,
    NonDeterministicOutputError,
    Code,
    DictionaryEntry,
    LanguageJSON,
    LanguagePython,
    Matcher,
    RadixNode,
    ValueCodec,
    buildHuffmanCodes,
    buildRadixTree,
    buildTrie,
    compile_dictionary,
    compressTrie,
    generate_lookup_module,
    generate_word_list,
    languages,
)
from radixPack.__main__ import main, prepare_entries  # noqa: F401


SAMPLE = {"hello": "ハロー", "world": "ワールド", "zip": "ジップ"}

KANA = "アイウエオカキクケコサシスセソタチツテトナニヌネノハヒフヘホマミムメモヤユヨラリルレロワン"


def _random_dictionary(n, seed=0):
    rng = random.Random(seed)
    record = {}
    while len(record) < n:
        key = "".join(rng.choice("abcdefghijklmnopqrstuvwxyz'") for _ in range(rng.randint(1, 9)))
        value = "".join(rng.choice(KANA) for _ in range(rng.randint(1, 7)))
        record[key] = value
    return sorted(record.items())


def _load_module(source):
    """Execute a generated Python artifact and return its namespace."""
    namespace = {}
    exec(compile(source, "<generated>", "exec"), namespace)
    return namespace


def _walk(node):
    stack = [node]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(edge.node for edge in node.edges)


# ── Trie builder ───────────────────────────────────────────────────


class TestBuildTrie:
    def test_node_count(self):
        _, count = buildTrie([("ab", "x"), ("ac", "y")])
        assert count == 4

    def test_shared_prefix_reuses_nodes(self):
        _, count = buildTrie([("abc", "x"), ("abd", "y"), ("ab", "z")])
        assert count == 5

    def test_value_on_terminal(self):
        root, _ = buildTrie([("hi", "ハイ")])
        assert root.value is None
        assert root.children["h"].value is None
        assert root.children["h"].children["i"].value == "ハイ"

    def test_conflicting_value(self):
        with pytest.raises(ConflictingValueError) as info:
            buildTrie([("cat", "キャット"), ("cat", "カット")])
        assert info.value.key == "cat"
        assert info.value.existing == "キャット"
        assert info.value.value == "カット"

    def test_conflict_is_compile_error(self):
        with pytest.raises(CompileError):
            buildTrie([("a", "x"), ("a", "y")])

    def test_same_value_twice_is_accepted(self):
        root, count = buildTrie([("cat", "キャット"), ("cat", "キャット")])
        assert count == 4
        assert root.children["c"].children["a"].children["t"].value == "キャット"

    def test_empty_key_rejected(self):
        with pytest.raises(ValueError):
            buildTrie([("", "x")])

    def test_empty_value_rejected(self):
        with pytest.raises(ValueError):
            buildTrie([("a", "")])

    def test_unnormalized_key_rejected(self):
        for key in ("Hello", " zip", "cat\n", "ZIP"):
            with pytest.raises(ValueError, match="not normalized"):
                buildTrie([(key, "x")])
        with pytest.raises(ValueError):
            compile_dictionary([("Hello", "ハロー"), (" zip", "ジップ")])

    def test_inner_space_allowed(self):
        root, _ = buildTrie([("ice cream", "アイスクリーム")])
        assert root.children["i"] is not None

    def test_non_string_rejected(self):
        with pytest.raises(TypeError):
            buildTrie([("a", 1)])
        with pytest.raises(TypeError):
            buildTrie([(None, "x")])


# ── Radix compactor ────────────────────────────────────────────────


class TestCompressTrie:
    def test_single_key_is_one_edge(self):
        root, _ = buildRadixTree([("hello", "ハロー")])
        assert [edge.label for edge in root.edges] == ["hello"]
        leaf = root.edges[0].node
        assert leaf.value == "ハロー"
        assert leaf.edges == []

    def test_branching(self):
        root, _ = buildRadixTree([("cat", "1"), ("car", "2")])
        assert [edge.label for edge in root.edges] == ["ca"]
        inner = root.edges[0].node
        assert inner.value is None
        assert [edge.label for edge in inner.edges] == ["r", "t"]

    def test_terminal_stops_chain(self):
        root, _ = buildRadixTree([("ca", "1"), ("cat", "2"), ("cats", "3")])
        assert [edge.label for edge in root.edges] == ["ca"]
        ca = root.edges[0].node
        assert ca.value == "1"
        assert [edge.label for edge in ca.edges] == ["t"]
        cat = ca.edges[0].node
        assert cat.value == "2"
        assert [edge.label for edge in cat.edges] == ["s"]

    def test_edges_sorted_by_code_point(self):
        root, _ = buildRadixTree([("zoo", "1"), ("apple", "2"), ("mango", "3"), ("'em", "4")])
        assert [edge.label for edge in root.edges] == ["'em", "apple", "mango", "zoo"]

    def test_insertion_order_does_not_matter(self):
        entries = _random_dictionary(200, seed=3)
        a = compile_dictionary(entries)
        b = compile_dictionary(list(reversed(entries)))
        labels = lambda c: [[label for label, _ in edges] for _, edges in c.nodes]
        assert labels(a) == labels(b)
        assert list(a.root.items()) == list(b.root.items())

    def test_edge_disjointness(self):
        root, _ = buildRadixTree(_random_dictionary(500, seed=1))
        for node in _walk(root):
            firsts = [edge.label[0] for edge in node.edges]
            assert len(firsts) == len(set(firsts))

    def test_chains_are_maximal(self):
        root, _ = buildRadixTree(_random_dictionary(500, seed=2))
        for node in _walk(root):
            for edge in node.edges:
                child = edge.node
                assert child.value is not None or len(child.edges) != 1

    def test_fewer_nodes_than_trie(self):
        entries = _random_dictionary(300, seed=4)
        root, trieNodeCount = buildRadixTree(entries)
        assert root.countNodes() <= trieNodeCount
        assert root.countEdges() == root.countNodes() - 1

    def test_items_sorted(self):
        entries = _random_dictionary(300, seed=5)
        root, _ = buildRadixTree(entries)
        assert list(root.items()) == sorted(entries)
        assert root.keys() == sorted(k for k, _ in entries)

    def test_deep_nested_keys(self):
        entries = [("a" * n, "ア") for n in range(1, 3001)]
        root, trieNodeCount = buildRadixTree(entries)
        assert trieNodeCount == 3001
        assert root.countNodes() == 3001
        matcher = compile_dictionary(entries).matcher()
        assert matcher.lookup("a" * 3000) == "ア"
        assert matcher.lookup("a" * 3001) is NOT_FOUND

    def test_compress_empty_trie(self):
        root, _ = buildTrie([])
        radix = compressTrie(root)
        assert isinstance(radix, RadixNode)
        assert radix.value is None and radix.edges == []


# ── Huffman codes ──────────────────────────────────────────────────


class TestHuffmanCodes:
    def test_single_symbol(self):
        assert buildHuffmanCodes(["ンンン"]) == {"ン": "0"}

    def test_two_symbols_frequency(self):
        assert buildHuffmanCodes(["aab"]) == {"a": "1", "b": "0"}

    def test_tie_uses_first_occurrence(self):
        assert buildHuffmanCodes(["ab"]) == {"a": "0", "b": "1"}
        assert buildHuffmanCodes(["ba"]) == {"b": "0", "a": "1"}

    def test_empty_raises(self):
        with pytest.raises(EmptyValueSetError):
            buildHuffmanCodes([])
        with pytest.raises(EmptyInputError):
            buildHuffmanCodes([""])

    def test_prefix_free(self):
        values = [v for _, v in _random_dictionary(400, seed=6)]
        codes = list(buildHuffmanCodes(values).values())
        for a in codes:
            for b in codes:
                if a != b:
                    assert not b.startswith(a)

    def test_every_character_has_a_code(self):
        values = [v for _, v in _random_dictionary(400, seed=7)]
        codes = buildHuffmanCodes(values)
        assert set(codes) == set("".join(values))

    def test_frequent_symbols_get_shorter_codes(self):
        codes = buildHuffmanCodes(["a" * 50 + "b" * 10 + "c" * 5 + "d"])
        assert len(codes["a"]) <= len(codes["b"]) <= len(codes["c"]) <= len(codes["d"])

    def test_deterministic(self):
        values = [v for _, v in _random_dictionary(400, seed=8)]
        first = buildHuffmanCodes(values)
        for _ in range(5):
            assert buildHuffmanCodes(values) == first


# ── Value codec ────────────────────────────────────────────────────


class TestValueCodec:
    def test_pack_two_symbols(self):
        codec = ValueCodec(["ab"])
        assert codec.data == b"\x40"
        assert codec.bitLengths == [2]
        assert codec.checkpoints == [0]
        assert codec.totalBits == 2

    def test_pack_single_symbol(self):
        codec = ValueCodec(["aaa"])
        assert codec.data == b"\x00"
        assert codec.bitLengths == [3]
        assert codec.decode(0) == "aaa"

    def test_dedup_by_value(self):
        entries = [("cat", "キャット"), ("kat", "キャット"), ("dog", "ドッグ")]
        codec = ValueCodec.fromEntries(entries)
        assert codec.values == ["キャット", "ドッグ"]
        assert codec.valueToIndex["キャット"] == 0

    def test_first_occurrence_order(self):
        entries = [("a", "z"), ("b", "y"), ("c", "z"), ("d", "x")]
        assert ValueCodec.fromEntries(entries).values == ["z", "y", "x"]

    def test_empty_value_set(self):
        with pytest.raises(EmptyValueSetError):
            ValueCodec([])

    def test_duplicate_values_rejected(self):
        with pytest.raises(ValueError):
            ValueCodec(["a", "a"])

    def test_bad_checkpoint_span(self):
        with pytest.raises(ValueError):
            ValueCodec(["a"], checkpointSpan=0)

    def test_checkpoints(self):
        values = ["ア" * (i % 5 + 1) + "イ" * (i % 3) for i in range(11)]
        codec = ValueCodec(values, checkpointSpan=4)
        assert len(codec.checkpoints) == 3
        for k, checkpoint in enumerate(codec.checkpoints):
            assert checkpoint == codec.linearOffset(k * 4)

    def test_byte_length_and_padding(self):
        values = sorted({v for _, v in _random_dictionary(300, seed=9)})
        codec = ValueCodec(values)
        assert codec.totalBits == sum(codec.bitLengths)
        assert len(codec.data) == (codec.totalBits + 7) // 8
        padding = len(codec.data) * 8 - codec.totalBits
        assert codec.data[-1] & ((1 << padding) - 1) == 0

    def test_decode_fidelity(self):
        values = list(dict.fromkeys(v for _, v in _random_dictionary(1000, seed=10)))
        codec = ValueCodec(values)
        assert len(codec.checkpoints) > 2
        assert codec.decodeAll() == values
        for i, value in enumerate(values):
            assert codec.offset(i) == codec.linearOffset(i)
            assert codec.decode(i) == value

    def test_decode_map_is_inverse(self):
        codec = ValueCodec(["ハロー", "ワールド"])
        for char, code in codec.codes.items():
            assert codec.decodeMap[code] == char


# ── Compiler and runtime ──────────────────────────────────────────


class TestMatcher:
    def setup_method(self):
        self.compiled = compile_dictionary(SAMPLE, "sample")
        self.matcher = self.compiled.matcher()

    def test_round_trip(self):
        assert self.matcher.lookup("hello") == "ハロー"
        assert self.matcher.lookup("world") == "ワールド"
        assert self.matcher.lookup("zip") == "ジップ"

    def test_not_found(self):
        assert self.matcher.lookup("xyz") is NOT_FOUND
        assert self.matcher.lookup("") is NOT_FOUND
        assert self.matcher.lookup("   ") is NOT_FOUND

    def test_prefix_and_extension_not_found(self):
        assert self.matcher.lookup("hell") is NOT_FOUND
        assert self.matcher.lookup("helloo") is NOT_FOUND
        assert self.matcher.lookup("zi") is NOT_FOUND
        assert self.matcher.lookup("zipper") is NOT_FOUND

    def test_mismatch_inside_edge(self):
        assert self.matcher.lookup("help") is NOT_FOUND
        assert self.matcher.lookup("worle") is NOT_FOUND

    def test_non_string_input(self):
        for candidate in (None, 42, b"hello", ["hello"], object()):
            assert self.matcher.lookup(candidate) is NOT_FOUND

    def test_trims_and_lowercases(self):
        assert self.matcher.lookup("  Hello ") == "ハロー"
        assert self.matcher.lookup("ZIP") == "ジップ"

    def test_entry_count(self):
        assert self.compiled.entryCount == 3
        assert self.matcher.entryCount == 3
        assert len(self.matcher) == 3

    def test_contains(self):
        assert "world" in self.matcher
        assert "word" not in self.matcher

    def test_shared_value_index(self):
        compiled = compile_dictionary([("cat", "キャット"), ("kat", "キャット")])
        assert compiled.codec.values == ["キャット"]
        matcher = compiled.matcher()
        assert matcher.match("cat") == matcher.match("kat") == 0
        assert matcher.lookup("cat") == matcher.lookup("kat") == "キャット"

    def test_memoized_decode(self):
        self.matcher.lookup("hello")
        self.matcher.lookup("hello")
        info = self.matcher._decode.cache_info()
        assert info.hits == 1
        assert info.misses == 1

    def test_precompute(self):
        matcher = self.compiled.matcher(precompute=True)
        assert matcher._decode.cache_info().currsize == 3
        assert matcher.lookup("world") == "ワールド"

    def test_large_dictionary(self):
        entries = _random_dictionary(3000, seed=11)
        compiled = compile_dictionary(entries)
        matcher = compiled.matcher()
        assert compiled.entryCount == len(entries)
        for key, value in entries:
            assert matcher.lookup(key) == value
        keys = {k for k, _ in entries}
        rng = random.Random(12)
        for _ in range(500):
            probe = "".join(rng.choice("abcdefghij") for _ in range(rng.randint(1, 10)))
            if probe not in keys:
                assert matcher.lookup(probe) is NOT_FOUND

    def test_words_agree_with_entry_count(self):
        entries = _random_dictionary(200, seed=13)
        compiled = compile_dictionary(entries)
        assert compiled.words() == sorted(k for k, _ in entries)
        assert len(compiled.words()) == compiled.entryCount

    def test_arena_layout(self):
        nodes = compile_dictionary([("ab", "x"), ("ac", "y")]).nodes
        assert nodes == (
            (None, (("a", 1),)),
            (None, (("b", 2), ("c", 3))),
            (0, ()),
            (1, ()),
        )

    def test_stats(self):
        compiled = compile_dictionary([("ab", "x"), ("ac", "y")])
        assert compiled.trieNodeCount == 4
        assert compiled.radixNodeCount == 4
        assert compiled.radixEdgeCount == 3

    def test_empty_input(self):
        with pytest.raises(EmptyInputError):
            compile_dictionary([])
        with pytest.raises(EmptyInputError):
            compile_dictionary({})

    def test_conflict_rejected(self):
        with pytest.raises(ConflictingValueError):
            compile_dictionary([("cat", "キャット"), ("cat", "カット")])

    def test_accepts_entry_tuples(self):
        entries = [DictionaryEntry("zip", "ジップ")]
        assert compile_dictionary(entries).matcher().lookup("zip") == "ジップ"


class TestDeterminism:
    def test_compile_twice(self):
        entries = _random_dictionary(800, seed=14)
        a = compile_dictionary(entries)
        b = compile_dictionary(entries)
        assert a.nodes == b.nodes
        assert a.codec.codes == b.codec.codes
        assert a.codec.data == b.codec.data
        assert a.codec.bitLengths == b.codec.bitLengths
        assert a.codec.checkpoints == b.codec.checkpoints

    def test_generate_twice(self, language):
        entries = _random_dictionary(300, seed=15)
        assert generate_lookup_module(entries, "x", language=language) == (
            generate_lookup_module(entries, "x", language=language)
        )

    def test_self_check_failure(self, monkeypatch):
        outputs = iter(["first", "second"])
        monkeypatch.setattr(radixPack, "_render", lambda *args: next(outputs))
        with pytest.raises(NonDeterministicOutputError):
            generate_lookup_module(SAMPLE)


# ── Generated artifacts ───────────────────────────────────────────


@pytest.fixture(params=["python", "json"])
def language(request):
    return request.param


def _lookup_for(source, language, name="lookup"):
    if language == "python":
        return _load_module(source)[name]
    return Matcher.fromJSON(source).lookup


class TestEndToEnd:
    """Generate the artifact, load it, and check every key."""

    def test_sample(self, language):
        lookup = _lookup_for(generate_lookup_module(SAMPLE, language=language), language)
        assert lookup("hello") == "ハロー"
        assert lookup("zip") == "ジップ"
        assert lookup("xyz") is None
        assert lookup("") is None
        assert lookup(None) is None

    def test_random(self, language):
        entries = _random_dictionary(1500, seed=16)
        lookup = _lookup_for(generate_lookup_module(entries, language=language), language)
        for key, value in entries:
            assert lookup(key) == value
        assert lookup("0") is None

    def test_small_checkpoint_span(self, language):
        entries = _random_dictionary(100, seed=17)
        source = generate_lookup_module(entries, language=language, checkpointSpan=3)
        lookup = _lookup_for(source, language)
        for key, value in entries:
            assert lookup(key) == value

    def test_single_entry(self, language):
        lookup = _lookup_for(generate_lookup_module({"a": "ア"}, language=language), language)
        assert lookup("a") == "ア"
        assert lookup("aa") is None

    def test_special_characters(self, language):
        entries = {"don't": "ドント", 'say "hi"': "セイ\\ハイ", "o'clock": "オクロック"}
        lookup = _lookup_for(generate_lookup_module(entries, language=language), language)
        for key, value in entries.items():
            assert lookup(key) == value


class TestGeneratedPython:
    def test_public_names(self):
        module = _load_module(generate_lookup_module(SAMPLE))
        public = sorted(k for k in module if not k.startswith("_"))
        assert public == ["LOOKUP_ENTRY_COUNT", "base64", "functools", "lookup"]
        assert module["LOOKUP_ENTRY_COUNT"] == 3

    def test_custom_names(self):
        source = generate_lookup_module(SAMPLE, name="to_kana", namespace="kana")
        module = _load_module(source)
        assert module["to_kana"]("world") == "ワールド"
        assert module["KANA_ENTRY_COUNT"] == 3
        assert "_kana_nodes" in module

    def test_header(self):
        source = generate_lookup_module(SAMPLE, "data/word-kana.json")
        assert source.splitlines()[0] == (
            "# auto-generated by radixPack; source: data/word-kana.json; entries: 3"
        )

    def test_label_cannot_escape_comment(self):
        source = generate_lookup_module(SAMPLE, "evil\nraise SystemExit")
        assert "\nraise SystemExit" not in source
        assert _load_module(source)["lookup"]("zip") == "ジップ"

    def test_generated_decode_is_memoized(self):
        module = _load_module(generate_lookup_module(SAMPLE))
        module["lookup"]("hello")
        module["lookup"]("hello")
        assert module["_lookup_decode"].cache_info().hits == 1

    def test_matches_in_process_runtime(self):
        entries = _random_dictionary(400, seed=18)
        module = _load_module(generate_lookup_module(entries))
        compiled = compile_dictionary(entries)
        assert module["_lookup_nodes"] == compiled.nodes
        assert module["_lookup_data"] == compiled.codec.data
        assert list(module["_lookup_bit_lengths"]) == compiled.codec.bitLengths


class TestGeneratedJSON:
    def test_document(self):
        doc = json.loads(generate_lookup_module(SAMPLE, "sample", language="json"))
        assert doc["source"] == "sample"
        assert doc["entry_count"] == 3
        assert doc["checkpoint_span"] == 128
        assert set(doc) == {
            "source",
            "nodes",
            "data",
            "bit_lengths",
            "checkpoints",
            "checkpoint_span",
            "decode_map",
            "entry_count",
        }

    def test_precompute_from_json(self):
        matcher = Matcher.fromJSON(
            generate_lookup_module(SAMPLE, language="json"), precompute=True
        )
        assert matcher._decode.cache_info().currsize == 3
        assert matcher.lookup("hello") == "ハロー"


class TestCode:
    def test_names(self):
        code = Code("kana")
        assert code.nameFor("nodes") == "_kana_nodes"
        assert code.nameFor("entry_count", private=False) == "KANA_ENTRY_COUNT"

    def test_duplicate_constant(self):
        code = Code()
        code.addConstant("scalar", "x", 1)
        with pytest.raises(ValueError):
            code.addConstant("scalar", "x", 2)

    def test_function_dedup(self):
        code = Code()
        a = code.addFunction("f", ("i",), ["return i"])
        b = code.addFunction("f", ("i",), ["return i"])
        assert a == b == "_lookup_f"
        assert len(code.functions) == 1

    def test_json_has_no_runtime(self):
        code = Code()
        assert compile_dictionary(SAMPLE).genCode(code, language="json") is None
        assert not code.functions

    def test_python_has_runtime(self):
        code = Code()
        assert compile_dictionary(SAMPLE).genCode(code, language=LanguagePython()) == "lookup"
        assert list(code.functions) == [
            "_lookup_offset",
            "_lookup_decode",
            "_lookup_match",
            "lookup",
        ]

    def test_default_namespace(self):
        assert Code().namespace == "lookup"
        module = _load_module(generate_lookup_module(SAMPLE))
        assert module["LOOKUP_ENTRY_COUNT"] == 3
        assert "_lookup_match" in module

    def test_invalid_namespace(self):
        for namespace in ("to-kana", "", "class", "1x"):
            with pytest.raises(ValueError):
                Code(namespace)

    def test_invalid_lookup_name(self):
        for name in ("to-kana", "def", "", "_lookup_match", "LOOKUP_ENTRY_COUNT", "base64"):
            with pytest.raises(ValueError):
                generate_lookup_module(SAMPLE, name=name)

    def test_json_ignores_lookup_name(self):
        doc = json.loads(generate_lookup_module(SAMPLE, name="to-kana", language="json"))
        assert doc["entry_count"] == 3

    def test_languages(self):
        assert isinstance(languages["python"], LanguagePython)
        assert isinstance(languages["json"], LanguageJSON)


class TestWordList:
    def test_python(self):
        entries = [("zip", "ジップ"), ("hello", "ハロー"), ("world", "ワールド")]
        module = _load_module(generate_word_list(entries, "sample"))
        assert module["LOOKUP_SORTED_WORDS"] == ("hello", "world", "zip")
        assert module["LOOKUP_ENTRY_COUNT"] == 3

    def test_json(self):
        doc = json.loads(generate_word_list(SAMPLE, "sample", language="json"))
        assert doc["sorted_words"] == ["hello", "world", "zip"]
        assert doc["entry_count"] == 3

    def test_agrees_with_matcher(self):
        entries = _random_dictionary(500, seed=19)
        module = _load_module(generate_word_list(entries))
        compiled = compile_dictionary(entries)
        assert list(module["LOOKUP_SORTED_WORDS"]) == compiled.words()
        assert module["LOOKUP_ENTRY_COUNT"] == compiled.entryCount


# ── CLI ────────────────────────────────────────────────────────────


ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class TestPrepareEntries:
    def test_normalizes_and_sorts(self):
        entries = prepare_entries({" Zip ": " ジップ ", "Hello": "ハロー", " ": "x", "y": ""})
        assert entries == [("hello", "ハロー"), ("zip", "ジップ")]

    def test_collapses_identical_pairs(self):
        assert prepare_entries({"Cat": "キャット", "cat": "キャット"}) == [
            ("cat", "キャット")
        ]


class TestCLI:
    def _run(self, *args, input=None):
        env = dict(os.environ, PYTHONIOENCODING="utf-8")
        return subprocess.run(
            [sys.executable, "-m", "radixPack", *args],
            capture_output=True,
            text=True,
            encoding="utf-8",
            input=input,
            cwd=ROOT,
            env=env,
        )

    def _write_json(self, tmp_path, record):
        path = tmp_path / "dict.json"
        path.write_text(json.dumps(record, ensure_ascii=False), encoding="utf-8")
        return str(path)

    def test_help(self):
        r = self._run("--help")
        assert r.returncode == 0
        assert "radixPack" in r.stdout

    def test_no_data(self):
        r = self._run(input="")
        assert r.returncode != 0
        assert "usage" in r.stderr.lower()

    def test_pairs(self):
        r = self._run("hello=ハロー", "zip=ジップ")
        assert r.returncode == 0
        assert "def lookup(raw):" in r.stdout
        assert "entryCount=2" in r.stderr
        assert _load_module(r.stdout)["lookup"]("zip") == "ジップ"

    def test_bad_pair(self):
        r = self._run("hello")
        assert r.returncode == 2
        assert "word=value" in r.stderr

    def test_stdin_json(self):
        r = self._run("--language", "json", input=json.dumps(SAMPLE))
        assert r.returncode == 0
        assert Matcher.fromJSON(r.stdout).lookup("world") == "ワールド"

    def test_stdin_not_object(self):
        r = self._run(input="[1, 2]")
        assert r.returncode == 2
        assert "JSON object" in r.stderr

    def test_stdin_invalid_json(self):
        r = self._run(input="{nope")
        assert r.returncode == 2
        assert "invalid JSON" in r.stderr

    def test_non_string_value(self):
        r = self._run(input='{"a": 1}')
        assert r.returncode == 2

    def test_conflict_after_lowercasing(self):
        r = self._run(input=json.dumps({"Cat": "キャット", "cat": "カット"}))
        assert r.returncode == 1
        assert "conflicting value" in r.stderr

    def test_min_entries(self):
        r = self._run("--min-entries", "5", "a=ア")
        assert r.returncode == 2
        assert "suspiciously low" in r.stderr

    def test_name_flags(self):
        r = self._run("--name", "to_kana", "--namespace", "kana", "a=ア")
        assert r.returncode == 0
        assert "def to_kana(raw):" in r.stdout
        assert "KANA_ENTRY_COUNT = 1" in r.stdout

    def test_invalid_identifiers(self):
        r = self._run("--name", "to-kana", "a=ア")
        assert r.returncode == 2
        assert "valid Python identifier" in r.stderr
        r = self._run("--namespace", "my ns", "a=ア")
        assert r.returncode == 2
        r = self._run("--name", "_lookup_match", "a=ア")
        assert r.returncode == 2
        assert "clashes" in r.stderr

    def test_files_and_check(self, tmp_path):
        src = self._write_json(tmp_path, SAMPLE)
        out = str(tmp_path / "matcher.py")
        words = str(tmp_path / "words.py")
        args = ["-i", src, "-o", out, "--word-list-output", words]

        r = self._run("--check", *args)
        assert r.returncode == 1
        assert "missing" in r.stderr

        r = self._run(*args)
        assert r.returncode == 0
        assert "outputPath=" in r.stderr
        with open(out, encoding="utf-8") as f:
            assert _load_module(f.read())["lookup"]("hello") == "ハロー"
        with open(words, encoding="utf-8") as f:
            assert _load_module(f.read())["LOOKUP_SORTED_WORDS"] == ("hello", "world", "zip")

        r = self._run("--check", *args)
        assert r.returncode == 0
        assert "up to date (3 entries)" in r.stderr

        self._write_json(tmp_path, dict(SAMPLE, cat="キャット"))
        r = self._run("--check", *args)
        assert r.returncode == 1
        assert "outdated" in r.stderr

    def test_check_requires_output(self):
        r = self._run("--check", "a=ア")
        assert r.returncode == 2

    def test_source_label(self, tmp_path):
        src = self._write_json(tmp_path, SAMPLE)
        r = self._run("-i", src, "--source-label", "data/word-kana.json")
        assert r.returncode == 0
        assert "source: data/word-kana.json;" in r.stdout

    def test_checkpoint_span(self):
        r = self._run("--checkpoint-span", "2", "a=ア", "b=ビー", "c=シー")
        assert r.returncode == 0
        assert "_lookup_checkpoint_span = 2" in r.stdout
        r = self._run("--checkpoint-span", "0", "a=ア")
        assert r.returncode == 2

    def test_analyze(self):
        r = self._run("--analyze", input=json.dumps(SAMPLE))
        assert r.returncode == 0
        assert "Compilation Analysis" in r.stdout
        assert "Radix nodes:" in r.stdout
        assert "Distinct values: 3" in r.stdout

    def test_main_in_process(self, capsys):
        assert main(["a=ア"]) == 0
        captured = capsys.readouterr()
        assert "def lookup(raw):" in captured.out
        assert "radixNodes=2" in captured.err
