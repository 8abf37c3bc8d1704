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

from . import *
import argparse
import json
import keyword
import os
import sys


def prepare_entries(record):
    """Turn a ``{word: value}`` mapping into sorted, trimmed entries.

    Keys are trimmed and lowercased, values trimmed; pairs that end up
    empty are dropped.  Duplicates that survive lowercasing are left for
    the compiler to accept (same value) or reject (different value).
    """
    entries = set()
    for key, value in record.items():
        key = key.strip().lower()
        value = value.strip()
        if key and value:
            entries.add(DictionaryEntry(key, value))
    return sorted(entries)


def _load_record(parser, text, source):
    try:
        record = json.loads(text)
    except ValueError as e:
        parser.error(f"invalid JSON in {source}: {e}")
    if not isinstance(record, dict):
        parser.error(f"{source} must hold a JSON object of word: value pairs")
    for key, value in record.items():
        if not isinstance(value, str):
            parser.error(f"invalid value for {key!r} in {source}: expected a string")
    return record


def _check_file(path, expected, what):
    """Returns an error message if ``path`` does not hold ``expected``."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            current = f.read()
    except FileNotFoundError:
        return f"Generated {what} is missing. Regenerate it.\nTarget: {path}"
    if current != expected:
        return f"Generated {what} is outdated. Regenerate it.\nTarget: {path}"
    return None


def _print_analysis(compiled, entries):
    codec = compiled.codec
    raw_bytes = sum(len(v.encode("utf-8")) for v in codec.values)
    n_chars = sum(len(v) for v in codec.values)

    print("Compilation Analysis")
    print("=" * 70)
    print(f"Source: {compiled.sourceLabel}")
    print(f"Entries: {len(entries)} pairs, {compiled.entryCount} distinct keys")
    print()
    print("Automaton")
    print("-" * 70)
    print(f"Trie nodes:   {compiled.trieNodeCount}")
    print(f"Radix nodes:  {compiled.radixNodeCount}")
    print(f"Radix edges:  {compiled.radixEdgeCount}")
    if compiled.radixNodeCount:
        print(
            f"Node reduction: {compiled.trieNodeCount / compiled.radixNodeCount:.2f}x"
        )
    print()
    print("Values")
    print("-" * 70)
    print(f"Distinct values: {len(codec)}")
    print(f"Alphabet size:   {len(codec.codes)}")
    print(f"Longest code:    {max(len(c) for c in codec.codes.values())} bits")
    print(f"Packed bits:     {codec.totalBits} ({len(codec.data)} bytes)")
    print(f"Raw UTF-8 bytes: {raw_bytes}")
    if codec.data:
        print(f"Compression ratio: {raw_bytes / len(codec.data):.2f}x")
    if n_chars:
        print(f"Average code length: {codec.totalBits / n_chars:.2f} bits/char")
    print(
        f"Checkpoints: {len(codec.checkpoints)} (every {codec.checkpointSpan} values)"
    )


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="radixPack",
        description=(
            "Compile a word: value dictionary into a compact exact-match "
            "lookup artifact."
        ),
    )
    parser.add_argument(
        "data",
        nargs="*",
        help=(
            "word=value pairs to compile "
            "(reads a JSON object from --input or stdin if not provided)"
        ),
    )
    parser.add_argument(
        "-i",
        "--input",
        type=str,
        metavar="FILE",
        help="read a JSON object of word: value pairs from FILE",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        metavar="FILE",
        help="write the lookup artifact to FILE instead of stdout",
    )
    parser.add_argument(
        "--word-list-output",
        type=str,
        metavar="FILE",
        help="also write the sorted word list artifact to FILE",
    )
    parser.add_argument(
        "--language",
        choices=sorted(languageClasses),
        default="python",
        help="artifact language (default: python)",
    )
    parser.add_argument(
        "--name",
        default="lookup",
        help="name of the generated lookup function (default: lookup)",
    )
    parser.add_argument(
        "--namespace",
        default="lookup",
        help="prefix for generated table names (default: lookup)",
    )
    parser.add_argument(
        "--checkpoint-span",
        type=int,
        default=DEFAULT_CHECKPOINT_SPAN,
        help=(
            "number of values between decode checkpoints "
            f"(default: {DEFAULT_CHECKPOINT_SPAN})"
        ),
    )
    parser.add_argument(
        "--min-entries",
        type=int,
        default=1,
        help="fail if fewer entries than this are read (default: 1)",
    )
    parser.add_argument(
        "--source-label",
        type=str,
        help="provenance label embedded in the artifacts (default: input path)",
    )
    parser.add_argument(
        "--analyze",
        action="store_true",
        help="show compilation statistics instead of generating code",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="compare against existing output files instead of writing them",
    )

    parsed = parser.parse_args(args)

    if parsed.checkpoint_span < 1:
        parser.error("--checkpoint-span must be positive")
    if parsed.check and not parsed.output:
        parser.error("--check requires --output")
    for option, value in (("--name", parsed.name), ("--namespace", parsed.namespace)):
        if not value.isidentifier() or keyword.iskeyword(value):
            parser.error(f"{option} must be a valid Python identifier, got: {value}")

    # Read data from input file, positional args, or stdin
    if parsed.input:
        with open(parsed.input, "r", encoding="utf-8") as f:
            record = _load_record(parser, f.read(), parsed.input)
        source_label = os.path.relpath(parsed.input).replace("\\", "/")
    elif parsed.data:
        record = {}
        for item in parsed.data:
            if "=" not in item:
                parser.error(f"expected 'word=value' pairs, got: {item}")
            key, value = item.split("=", 1)
            record[key] = value
        source_label = "<args>"
    else:
        stdin_text = sys.stdin.read().strip()
        if not stdin_text:
            parser.error("no data provided (use positional args, -i, or stdin)")
        record = _load_record(parser, stdin_text, "<stdin>")
        source_label = "<stdin>"

    if parsed.source_label is not None:
        source_label = parsed.source_label

    entries = prepare_entries(record)
    if not entries:
        parser.error("no data provided")
    if len(entries) < parsed.min_entries:
        parser.error(
            f"entry count is suspiciously low ({len(entries)} < {parsed.min_entries})"
        )

    try:
        compiled = compile_dictionary(entries, source_label, parsed.checkpoint_span)

        if parsed.analyze:
            _print_analysis(compiled, entries)
            return 0

        output = generate_lookup_module(
            entries,
            source_label,
            language=parsed.language,
            name=parsed.name,
            namespace=parsed.namespace,
            checkpointSpan=parsed.checkpoint_span,
        )
    except CompileError as e:
        parser.exit(1, f"{parser.prog}: error: {e}\n")
    except ValueError as e:
        parser.error(str(e))

    word_list = None
    if parsed.word_list_output:
        word_list = generate_word_list(
            entries,
            source_label,
            language=parsed.language,
            namespace=parsed.namespace,
        )

    if parsed.check:
        problems = [_check_file(parsed.output, output, "matcher")]
        if word_list is not None:
            problems.append(
                _check_file(parsed.word_list_output, word_list, "word list")
            )
        problems = [p for p in problems if p]
        if problems:
            for problem in problems:
                print(problem, file=sys.stderr)
            return 1
        print(
            f"[{parser.prog}] up to date ({compiled.entryCount} entries)",
            file=sys.stderr,
        )
        return 0

    # Handle output files
    if parsed.output:
        with open(parsed.output, "w", encoding="utf-8") as f:
            f.write(output)
    else:
        sys.stdout.write(output)
    if word_list is not None:
        with open(parsed.word_list_output, "w", encoding="utf-8") as f:
            f.write(word_list)

    log = f"[{parser.prog}]"
    print(f"{log} source={source_label}", file=sys.stderr)
    if parsed.output:
        print(f"{log} outputPath={parsed.output}", file=sys.stderr)
    if word_list is not None:
        print(f"{log} wordListOutputPath={parsed.word_list_output}", file=sys.stderr)
    print(f"{log} entryCount={compiled.entryCount}", file=sys.stderr)
    print(f"{log} trieNodes={compiled.trieNodeCount}", file=sys.stderr)
    print(f"{log} radixNodes={compiled.radixNodeCount}", file=sys.stderr)
    print(f"{log} radixEdges={compiled.radixEdgeCount}", file=sys.stderr)
    print(f"{log} distinctValues={len(compiled.codec)}", file=sys.stderr)
    print(f"{log} packedBytes={len(compiled.codec.data)}", file=sys.stderr)

    return 0


if __name__ == "__main__":
    sys.exit(main())
