"""Lexical tokenization of JavaScript/TypeScript-style source text.

The learner and drift detector only talk to the :class:`Tokenizer` interface, so
an AST-backed implementation can replace :class:`RegexTokenizer` without
touching them.
"""

import posixpath
import re
from dataclasses import dataclass

from .models import NamingStyle

VARIABLE_PATTERN = re.compile(r"\b(let|const|var)\s+([a-zA-Z_$][a-zA-Z0-9_$]*)")
FUNCTION_PATTERN = re.compile(
    r"(?:function\s+([a-zA-Z_$][a-zA-Z0-9_$]*)"
    r"|(?:const|let)\s+([a-zA-Z_$][a-zA-Z0-9_$]*)\s*=\s*(?:async\s+)?(?:\([^)]*\)\s*=>|\([^)]*\)))"
)
CONSTANT_PATTERN = re.compile(r"\bconst\s+([A-Z][A-Z0-9_]*)\s*=")
# Top-level `const` bound to a number, string, template or boolean literal
LITERAL_CONSTANT_PATTERN = re.compile(
    r"^(?:export\s+)?const\s+([a-zA-Z_$][a-zA-Z0-9_$]*)\s*=\s*(?:-?\d|['\"`]|true\b|false\b)",
    re.MULTILINE,
)
IMPORT_PATTERN = re.compile(r"import\s+.*?\s+from\s+['\"`]([^'\"`]+)['\"`]")

SINGLE_LINE_COMMENT = re.compile(r"//.*$", re.MULTILINE)
MULTI_LINE_COMMENT = re.compile(r"/\*(?!\*)[\s\S]*?\*/")
DOC_COMMENT = re.compile(r"/\*\*[\s\S]*?\*/")

NAMED_EXPORT = re.compile(r"export\s+(?:const|let|var|function|class)")
DEFAULT_EXPORT = re.compile(r"export\s+default")

_CAMEL = re.compile(r"^[a-z][a-zA-Z0-9]*$")
_SNAKE = re.compile(r"^[a-z][a-z0-9_]*$")
_UPPER = re.compile(r"^[A-Z][A-Z0-9_]*$")
_PASCAL = re.compile(r"^[A-Z][a-zA-Z0-9]*$")
_KEBAB = re.compile(r"^[a-z][a-z0-9-]*$")
_WORD = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z0-9]+")

DENSITY_LEVELS = ("none", "low", "medium", "high")


@dataclass(frozen=True)
class Token:
    """A declaration-like identifier found in source text."""

    kind: str
    name: str
    offset: int


@dataclass(frozen=True)
class ImportToken:
    """A module specifier from an ``import ... from '...'`` statement."""

    path: str
    offset: int

    @property
    def is_relative(self) -> bool:
        return self.path.startswith(".")

    @property
    def has_extension(self) -> bool:
        return posixpath.splitext(self.path)[1] != ""

    @property
    def library(self) -> str:
        return self.path.split("/")[0]


@dataclass(frozen=True)
class CommentStats:
    """Comment counts for one piece of source text."""

    single: int
    multi: int
    jsdoc: int
    line_count: int

    @property
    def total(self) -> int:
        return self.single + self.multi + self.jsdoc

    @property
    def ratio(self) -> float:
        return self.total / self.line_count if self.line_count else 0.0

    @property
    def density(self) -> str:
        return density_bucket(self.ratio)

    @property
    def dominant_style(self) -> str | None:
        """Most used comment style, or None when there are no comments."""
        if self.total == 0:
            return None
        if self.jsdoc >= self.single and self.jsdoc >= self.multi:
            return "jsdoc"
        if self.multi >= self.single:
            return "multi"
        return "single"


def density_bucket(ratio: float) -> str:
    """Bucket a comment-lines / total-lines ratio."""
    if ratio > 0.2:
        return "high"
    if ratio > 0.1:
        return "medium"
    if ratio > 0.05:
        return "low"
    return "none"


def detect_naming_style(name: str) -> NamingStyle:
    """Classify an identifier's casing.

    Single-word lower-case names (``count``) carry no casing signal and are
    reported as unknown.
    """
    if _CAMEL.match(name) and any(c.isupper() for c in name):
        return NamingStyle.CAMEL_CASE
    if _SNAKE.match(name) and "_" in name:
        return NamingStyle.SNAKE_CASE
    if _UPPER.match(name):
        return NamingStyle.UPPER_CASE
    if _PASCAL.match(name):
        return NamingStyle.PASCAL_CASE
    if _KEBAB.match(name) and "-" in name:
        return NamingStyle.KEBAB_CASE
    return NamingStyle.UNKNOWN


def split_words(name: str) -> list[str]:
    words: list[str] = []
    for part in re.split(r"[_\-]+", name):
        words.extend(_WORD.findall(part))
    return [w.lower() for w in words]


def convert_naming_style(name: str, target: NamingStyle | str) -> str:
    """Rewrite ``name`` in the ``target`` casing; unknown targets return it unchanged."""
    words = split_words(name)
    if not words:
        return name
    try:
        target = NamingStyle(target)
    except ValueError:
        return name
    if target == NamingStyle.CAMEL_CASE:
        return words[0] + "".join(w.capitalize() for w in words[1:])
    if target == NamingStyle.PASCAL_CASE:
        return "".join(w.capitalize() for w in words)
    if target == NamingStyle.SNAKE_CASE:
        return "_".join(words)
    if target == NamingStyle.KEBAB_CASE:
        return "-".join(words)
    if target == NamingStyle.UPPER_CASE:
        return "_".join(words).upper()
    return name


def line_of(content: str, offset: int) -> int:
    """1-based line number of a character offset."""
    return content.count("\n", 0, offset) + 1


def column_of(content: str, offset: int) -> int:
    """1-based column of a character offset."""
    return offset - content.rfind("\n", 0, offset)


class Tokenizer:
    """Interface for lexical extraction used by learning and drift detection."""

    def variables(self, content: str) -> list[Token]:
        raise NotImplementedError

    def functions(self, content: str) -> list[Token]:
        raise NotImplementedError

    def constants(self, content: str) -> list[Token]:
        raise NotImplementedError

    def imports(self, content: str) -> list[ImportToken]:
        raise NotImplementedError

    def comments(self, content: str) -> CommentStats:
        raise NotImplementedError

    def exports(self, content: str) -> tuple[int, int]:
        """Return ``(named, default)`` export counts."""
        raise NotImplementedError

    def export_style(self, content: str) -> str | None:
        named, default = self.exports(content)
        if named and default:
            return "mixed"
        if named:
            return "named"
        if default:
            return "default"
        return None


class RegexTokenizer(Tokenizer):
    """Regex-based tokenizer for JavaScript/TypeScript-like sources."""

    def variables(self, content: str) -> list[Token]:
        tokens = []
        for match in VARIABLE_PATTERN.finditer(content):
            keyword, name = match.group(1), match.group(2)
            # UPPER_CASE consts are constants, not variables
            if keyword == "const" and _UPPER.match(name):
                continue
            tokens.append(Token("variable", name, match.start()))
        return tokens

    def functions(self, content: str) -> list[Token]:
        tokens = []
        for match in FUNCTION_PATTERN.finditer(content):
            name = match.group(1) or match.group(2)
            if name:
                tokens.append(Token("function", name, match.start()))
        return tokens

    def constants(self, content: str) -> list[Token]:
        """UPPER_CASE `const` bindings anywhere, plus top-level literal bindings."""
        found = {}
        for pattern in (CONSTANT_PATTERN, LITERAL_CONSTANT_PATTERN):
            for match in pattern.finditer(content):
                found.setdefault(match.start(1), match.group(1))
        return [
            Token("constant", name, content.rfind("const", 0, offset))
            for offset, name in sorted(found.items())
        ]

    def imports(self, content: str) -> list[ImportToken]:
        return [
            ImportToken(match.group(1), match.start())
            for match in IMPORT_PATTERN.finditer(content)
        ]

    def comments(self, content: str) -> CommentStats:
        return CommentStats(
            single=len(SINGLE_LINE_COMMENT.findall(content)),
            multi=len(MULTI_LINE_COMMENT.findall(content)),
            jsdoc=len(DOC_COMMENT.findall(content)),
            line_count=len(content.split("\n")),
        )

    def exports(self, content: str) -> tuple[int, int]:
        return len(NAMED_EXPORT.findall(content)), len(DEFAULT_EXPORT.findall(content))
