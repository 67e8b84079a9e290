"""
Source import scanning.

Go files are parsed in "imports only" mode: the package clause and the
import declarations that follow it are tokenized and checked, and parsing
stops at the first top-level declaration that is not an import. The rest of
the file is never looked at.
"""

import os
import re
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, List, NamedTuple, Optional, Sequence, Set, Union

from .error_handling import (
    ErrorCategory,
    SourceParseError,
    get_error_handler,
    log_parsing_error,
)
from .structured_logging import get_scanner_logger

PathLike = Union[str, Path]

DEFAULT_SKIP_DIRS = ("Godeps",)
DEFAULT_SOURCE_EXTENSION = ".go"

# Token kinds
IDENT = "IDENT"
STRING = "STRING"
SEMICOLON = "SEMICOLON"
LPAREN = "LPAREN"
RPAREN = "RPAREN"
PERIOD = "PERIOD"
OTHER = "OTHER"
EOF = "EOF"

GO_KEYWORDS = frozenset(
    [
        "break", "case", "chan", "const", "continue", "default", "defer",
        "else", "fallthrough", "for", "func", "go", "goto", "if", "import",
        "interface", "map", "package", "range", "return", "select", "struct",
        "switch", "type", "var",
    ]
)
# Keywords after which a newline still ends the statement
_SEMICOLON_KEYWORDS = frozenset(["break", "continue", "fallthrough", "return"])

_TOKEN_RE = re.compile(
    r"""
    (?P<newline>\n)
    |(?P<space>[ \t\r]+)
    |(?P<line_comment>//[^\n]*)
    |(?P<block_comment>/\*)
    |(?P<ident>[^\W\d]\w*)
    |(?P<string>")
    |(?P<raw_string>`)
    |(?P<punct>[();.])
    |(?P<other>.)
    """,
    re.VERBOSE,
)

_PUNCT_KINDS = {"(": LPAREN, ")": RPAREN, ";": SEMICOLON, ".": PERIOD}

_SIMPLE_ESCAPES = {
    "a": b"\a",
    "b": b"\b",
    "f": b"\f",
    "n": b"\n",
    "r": b"\r",
    "t": b"\t",
    "v": b"\v",
    "\\": b"\\",
    '"': b'"',
}
_HEX_ESCAPE_LENGTHS = {"x": 2, "u": 4, "U": 8}

_ILLEGAL_IMPORT_CHARS = frozenset("!\"#$%&'()*,:;<=>?[\\]^{|}`\ufffd")


class Token(NamedTuple):
    kind: str
    value: str
    line: int
    column: int

    def describe(self) -> str:
        if self.kind == EOF:
            return "EOF"
        if self.kind == SEMICOLON:
            return "newline" if self.value == "\n" else "';'"
        if self.kind == STRING:
            return f"STRING {self.value!r}"
        return f"'{self.value}'"


class _Lexer:
    """Lazy tokenizer for the subset of Go needed to read import headers."""

    def __init__(self, source: str, filename: str):
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.line_start = 0
        self.insert_semicolon = False

    def _column(self, pos: int) -> int:
        return pos - self.line_start + 1

    def _advance_to(self, end: int) -> None:
        newlines = self.source.count("\n", self.pos, end)
        if newlines:
            self.line += newlines
            self.line_start = self.source.rindex("\n", self.pos, end) + 1
        self.pos = end

    def error(self, message: str, line: int, column: int) -> SourceParseError:
        return SourceParseError(self.filename, line, column, message)

    def tokens(self) -> Iterator[Token]:
        source = self.source
        while True:
            line, column = self.line, self._column(self.pos)

            if self.pos >= len(source):
                if self.insert_semicolon:
                    self.insert_semicolon = False
                    yield Token(SEMICOLON, "\n", line, column)
                yield Token(EOF, "", line, column)
                return

            match = _TOKEN_RE.match(source, self.pos)
            kind = match.lastgroup
            text = match.group()

            if kind == "newline":
                self._advance_to(match.end())
                if self.insert_semicolon:
                    self.insert_semicolon = False
                    yield Token(SEMICOLON, "\n", line, column)
                continue

            if kind in ("space", "line_comment"):
                self.pos = match.end()
                continue

            if kind == "block_comment":
                end = source.find("*/", self.pos + 2)
                if end < 0:
                    raise self.error("comment not terminated", line, column)
                spans_lines = "\n" in source[self.pos:end]
                self._advance_to(end + 2)
                if spans_lines and self.insert_semicolon:
                    self.insert_semicolon = False
                    yield Token(SEMICOLON, "\n", line, column)
                continue

            if kind == "ident":
                self.pos = match.end()
                self.insert_semicolon = (
                    text not in GO_KEYWORDS or text in _SEMICOLON_KEYWORDS
                )
                yield Token(IDENT, text, line, column)
                continue

            if kind == "string":
                value = self._scan_interpreted_string(line, column)
                self.insert_semicolon = True
                yield Token(STRING, value, line, column)
                continue

            if kind == "raw_string":
                end = source.find("`", self.pos + 1)
                if end < 0:
                    raise self.error("raw string literal not terminated", line, column)
                value = source[self.pos + 1:end].replace("\r", "")
                self._advance_to(end + 1)
                self.insert_semicolon = True
                yield Token(STRING, value, line, column)
                continue

            self.pos = match.end()
            if kind == "punct":
                self.insert_semicolon = text == ")"
                yield Token(_PUNCT_KINDS[text], text, line, column)
            else:
                self.insert_semicolon = False
                yield Token(OTHER, text, line, column)

    def _scan_interpreted_string(self, line: int, column: int) -> str:
        source = self.source
        pos = self.pos + 1
        value = bytearray()

        while True:
            if pos >= len(source) or source[pos] == "\n":
                raise self.error("string literal not terminated", line, column)
            char = source[pos]
            if char == '"':
                break
            if char != "\\":
                value += char.encode("utf-8")
                pos += 1
                continue

            escape_column = self._column(pos)
            esc = source[pos + 1:pos + 2]
            if esc in _SIMPLE_ESCAPES:
                value += _SIMPLE_ESCAPES[esc]
                pos += 2
            elif esc in _HEX_ESCAPE_LENGTHS:
                digits = source[pos + 2:pos + 2 + _HEX_ESCAPE_LENGTHS[esc]]
                if len(digits) != _HEX_ESCAPE_LENGTHS[esc] or not re.fullmatch(
                    r"[0-9A-Fa-f]+", digits
                ):
                    raise self.error("illegal character in escape sequence", line, escape_column)
                code = int(digits, 16)
                if esc == "x":
                    value.append(code)
                else:
                    if code > 0x10FFFF or 0xD800 <= code <= 0xDFFF:
                        raise self.error(
                            "escape sequence is invalid Unicode code point", line, escape_column
                        )
                    value += chr(code).encode("utf-8")
                pos += 2 + len(digits)
            elif esc and esc in "01234567":
                digits = source[pos + 1:pos + 4]
                if not re.fullmatch(r"[0-7]{3}", digits):
                    raise self.error("illegal character in escape sequence", line, escape_column)
                code = int(digits, 8)
                if code > 255:
                    raise self.error("octal escape value > 255", line, escape_column)
                value.append(code)
                pos += 4
            else:
                raise self.error("unknown escape sequence", line, escape_column)

        self._advance_to(pos + 1)
        return value.decode("utf-8", errors="replace")


def is_valid_import_path(path: str) -> bool:
    """Mirror the import path check performed by the Go parser."""
    if not path:
        return False
    for char in path:
        if not char.isprintable() or char.isspace() or char in _ILLEGAL_IMPORT_CHARS:
            return False
    return True


class _ImportParser:
    def __init__(self, source: str, filename: str):
        self.lexer = _Lexer(source, filename)
        self._tokens = self.lexer.tokens()
        self.token = Token(EOF, "", 1, 1)
        self.next()

    def next(self) -> None:
        self.token = next(self._tokens, self.token)

    def error(self, message: str, token: Optional[Token] = None) -> SourceParseError:
        token = token or self.token
        return self.lexer.error(message, token.line, token.column)

    def expect(self, kind: str, expected: str) -> Token:
        token = self.token
        if token.kind != kind:
            raise self.error(f"expected {expected}, found {token.describe()}")
        self.next()
        return token

    def expect_statement_end(self) -> None:
        if self.token.kind == EOF:
            return
        self.expect(SEMICOLON, "';'")

    def parse(self) -> List[str]:
        if self.token.kind != IDENT or self.token.value != "package":
            raise self.error(f"expected 'package', found {self.token.describe()}")
        self.next()

        name = self.expect(IDENT, "'IDENT'")
        if name.value == "_":
            raise self.error("invalid package name _", name)
        self.expect_statement_end()

        imports: List[str] = []
        while self.token.kind == IDENT and self.token.value == "import":
            self.next()
            if self.token.kind == LPAREN:
                self.next()
                while self.token.kind not in (RPAREN, EOF):
                    imports.append(self.parse_import_spec())
                    if self.token.kind == RPAREN:
                        break
                    self.expect(SEMICOLON, "';'")
                self.expect(RPAREN, "')'")
            else:
                imports.append(self.parse_import_spec())
            self.expect_statement_end()
        return imports

    def parse_import_spec(self) -> str:
        if self.token.kind == PERIOD:
            self.next()
        elif self.token.kind == IDENT and self.token.value not in GO_KEYWORDS:
            self.next()

        token = self.token
        if token.kind != STRING:
            raise self.error(f"missing import path, found {token.describe()}")
        self.next()
        if not is_valid_import_path(token.value):
            raise self.error(f"invalid import path: {token.value!r}", token)
        return token.value


def parse_imports(source: str, filename: str = "<source>") -> List[str]:
    """
    Parse the package clause and import declarations of a Go source file.

    Args:
        source: File contents
        filename: Name used in error positions

    Returns:
        List[str]: Import paths in declaration order

    Raises:
        SourceParseError: If the header is malformed
    """
    if source.startswith("\ufeff"):
        source = source[1:]
    return _ImportParser(source, filename).parse()


@dataclass
class ImportScanResult:
    """Distinct import paths of a source tree plus every per-file error."""

    imports: Set[str] = field(default_factory=set)
    errors: List[SourceParseError] = field(default_factory=list)
    files_scanned: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors

    def sorted_imports(self) -> List[str]:
        return sorted(self.imports)


def iter_source_files(
    root: PathLike,
    skip_dirs: Sequence[str] = DEFAULT_SKIP_DIRS,
    extension: str = DEFAULT_SOURCE_EXTENSION,
    on_error: Optional[Callable[[OSError], None]] = None,
) -> Iterator[Path]:
    """
    Yield regular source files below ``root`` in lexical order.

    Directories named in ``skip_dirs`` are never descended into. Symlinks are
    not followed and symlinked files are not yielded.
    """
    root_path = Path(root)
    skip = set(skip_dirs)
    if root_path.name in skip:
        return

    if root_path.is_file():
        if root_path.name.endswith(extension) and not root_path.is_symlink():
            yield root_path
        return

    for dirpath, dirnames, filenames in os.walk(root_path, onerror=on_error):
        dirnames[:] = sorted(d for d in dirnames if d not in skip)
        for name in sorted(filenames):
            if not name.endswith(extension):
                continue
            path = Path(dirpath) / name
            try:
                mode = path.lstat().st_mode
            except OSError as e:
                if on_error:
                    on_error(e)
                continue
            if stat.S_ISREG(mode):
                yield path


def scan_imports(
    root: PathLike,
    skip_dirs: Sequence[str] = DEFAULT_SKIP_DIRS,
    extension: str = DEFAULT_SOURCE_EXTENSION,
) -> ImportScanResult:
    """
    Collect the import paths used anywhere in a source tree.

    A file that fails to parse does not stop the walk; its error is recorded
    and the scan continues so every problem is reported at once.

    Args:
        root: Directory to walk
        skip_dirs: Directory names excluded from the walk (vendored copies)
        extension: Source file extension

    Returns:
        ImportScanResult: Import set, errors and number of files parsed
    """
    result = ImportScanResult()

    def record_walk_error(err: OSError) -> None:
        filename = err.filename if err.filename is not None else str(root)
        result.errors.append(
            SourceParseError(str(filename), 0, 0, err.strerror or str(err))
        )
        get_error_handler().warning(
            ErrorCategory.FILESYSTEM,
            f"Cannot read {filename}: {err.strerror or err}",
            "imports.scan_imports",
            exception=err,
            details={"root": str(root)},
        )

    for path in iter_source_files(root, skip_dirs, extension, record_walk_error):
        try:
            source = path.read_bytes().decode("utf-8", errors="replace")
        except OSError as e:
            record_walk_error(e)
            continue

        result.files_scanned += 1
        try:
            result.imports.update(parse_imports(source, str(path)))
        except SourceParseError as e:
            result.errors.append(e)
            log_parsing_error(e, "imports.scan_imports")

    get_scanner_logger().info(
        "import_scan_complete",
        root=str(root),
        files_scanned=result.files_scanned,
        imports=len(result.imports),
        errors=len(result.errors),
    )
    return result
