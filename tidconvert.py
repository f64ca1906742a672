#!/usr/bin/env python3
# tidconvert.py
#
# Convert between TiddlyWiki .tiddler (HTML <div> + <pre>) and .tid
# ("key: value" header lines, blank line, body) files.

from __future__ import annotations

import argparse
import re
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from tiddlercrypt import FormatError, TiddlerCryptError, eprint, read_document, write_document_atomic


_DIV_OPEN_RE = re.compile(r"<div([^>]*)>")
_ATTR_RE = re.compile(r"""(\w+)\s*=\s*["']([^"']*)["']""")
_PRE_BODY_RE = re.compile(r"<pre>\s*(.*?)\s*</pre>", re.S)


# =========================
# Text conversion
# =========================

def tiddler_to_tid(text: str) -> str:
    m = _DIV_OPEN_RE.search(text)
    if m is None:
        raise FormatError("Could not find opening div tag.")
    fields = "".join(f"{key}: {value}\n" for key, value in _ATTR_RE.findall(m.group(1)))

    body = _PRE_BODY_RE.search(text)
    return f"{fields}\n{body.group(1) if body else ''}"


def parse_tid_fields(lines: Sequence[str]) -> List[Tuple[str, str]]:
    fields = []
    for line in lines:
        key, sep, value = line.partition(":")
        if sep:
            fields.append((key.strip(), value.strip()))
    return fields


def tid_to_tiddler(text: str) -> str:
    lines = text.split("\n")
    blank = next((i for i, line in enumerate(lines) if line.strip() == ""), len(lines))
    attributes = "".join(f' {key}="{value}"' for key, value in parse_tid_fields(lines[:blank]))
    body = "\n".join(lines[blank + 1:])
    return f"<div{attributes}>\n<pre>{body}</pre>\n</div>"


# =========================
# Files
# =========================

def convert_file(path: Path) -> Optional[Path]:
    """Write the converted sibling file. Returns None for unsupported extensions."""
    if path.suffix == ".tiddler":
        out_path = path.with_suffix(".tid")
        converted = tiddler_to_tid(read_document(path))
    elif path.suffix == ".tid":
        out_path = path.with_suffix(".tiddler")
        converted = tid_to_tiddler(read_document(path))
    else:
        return None
    write_document_atomic(out_path, converted)
    return out_path


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="tidconvert",
        description="Convert .tiddler files to .tid and .tid files to .tiddler (written next to the source).",
    )
    p.add_argument("files", nargs="+", help="One or more .tid / .tiddler files.")
    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    failed = False
    for name in args.files:
        path = Path(name)
        if not path.exists():
            eprint(f"Error: File not found - {path}")
            failed = True
            continue
        try:
            out_path = convert_file(path)
        except TiddlerCryptError as ex:
            eprint(f"Error: {path}: {ex}")
            failed = True
            continue
        if out_path is None:
            print(f"Skipping: {path} is not a .tid or .tiddler file.")
        else:
            print(f"Converted {path} to {out_path}")
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
