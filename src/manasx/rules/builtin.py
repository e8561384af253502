"""Built-in organizational rule evaluators."""

import re
from typing import Optional

from ..models import NamingStyle, PatternProfile, Rule, Violation
from ..tokenizer import RegexTokenizer, column_of, detect_naming_style, line_of
from .registry import register

EVAL_CALL = re.compile(r"\beval\(")
DANGEROUS_HTML = re.compile(r"\b(innerHTML|outerHTML)\b")
RAW_FETCH = re.compile(r"\bfetch\(")

SYNC_FS_FUNCTIONS = [
    "readFileSync",
    "writeFileSync",
    "appendFileSync",
    "existsSync",
    "statSync",
    "readdirSync",
    "mkdirSync",
]

_tokenizer = RegexTokenizer()


def make_violation(
    rule: Rule,
    file_path: str,
    content: str,
    offset: Optional[int],
    message: str,
    **extra,
) -> Violation:
    """Build a rule violation positioned at ``offset`` (line 1 when None)."""
    line, column = (1, 1) if offset is None else (line_of(content, offset), column_of(content, offset))
    return Violation(
        rule_id=rule.id,
        category=rule.category,
        severity=rule.severity,
        message=message,
        file=file_path,
        line=line,
        column=column,
        source="rule",
        **extra,
    )


@register("security/no-eval")
def no_eval(content: str, file_path: str, rule: Rule, profile: Optional[PatternProfile]) -> list[Violation]:
    message = rule.message or "eval() usage is prohibited for security reasons"
    return [
        make_violation(rule, file_path, content, match.start(), message, actual="eval(")
        for match in EVAL_CALL.finditer(content)
    ]


@register("security/no-dangerous-html")
def no_dangerous_html(
    content: str, file_path: str, rule: Rule, profile: Optional[PatternProfile]
) -> list[Violation]:
    return [
        make_violation(
            rule,
            file_path,
            content,
            match.start(),
            rule.message or f"Direct {match.group(1)} manipulation can lead to XSS vulnerabilities",
            actual=match.group(1),
        )
        for match in DANGEROUS_HTML.finditer(content)
    ]


@register("security/require-company-fetch")
def require_company_fetch(
    content: str, file_path: str, rule: Rule, profile: Optional[PatternProfile]
) -> list[Violation]:
    wrapper = rule.parameters.get("wrapperName") or "companyFetch"
    match = RAW_FETCH.search(content)
    if match is None or wrapper in content:
        return []
    return [
        make_violation(
            rule,
            file_path,
            content,
            match.start(),
            rule.message or f"Use {wrapper} instead of raw fetch()",
            expected=wrapper,
            actual="fetch",
            suggestion=f"Replace fetch() with {wrapper}()",
        )
    ]


@register("performance/no-sync-fs")
def no_sync_fs(content: str, file_path: str, rule: Rule, profile: Optional[PatternProfile]) -> list[Violation]:
    names = rule.parameters.get("functions") or SYNC_FS_FUNCTIONS
    pattern = re.compile(r"\b(" + "|".join(re.escape(name) for name in names) + r")\b")
    violations = []
    for match in pattern.finditer(content):
        name = match.group(1)
        violations.append(
            make_violation(
                rule,
                file_path,
                content,
                match.start(),
                rule.message or f"Avoid synchronous file operation: {name}",
                actual=name,
                suggestion=f"Use the asynchronous fs.promises equivalent of {name}",
            )
        )
    return violations


@register("architecture/feature-folder-structure")
def feature_folder_structure(
    content: str, file_path: str, rule: Rule, profile: Optional[PatternProfile]
) -> list[Violation]:
    min_depth = int(rule.parameters.get("minDepth", 2))
    if len(file_path.split("/")) >= min_depth:
        return []
    return [
        make_violation(
            rule,
            file_path,
            content,
            None,
            rule.message or "File should follow feature folder structure",
            expected=f"at least {min_depth} path segments",
            actual=file_path,
        )
    ]


# The older id is kept so configurations written before the rename still resolve
@register("naming/camelcase-variable-naming", "naming/camelcase-variables")
def camelcase_variable_naming(
    content: str, file_path: str, rule: Rule, profile: Optional[PatternProfile]
) -> list[Violation]:
    if profile is None or profile.recommendations.naming.variables != NamingStyle.CAMEL_CASE.value:
        return []

    violations = []
    for token in _tokenizer.variables(content):
        style = detect_naming_style(token.name)
        if style in (NamingStyle.CAMEL_CASE, NamingStyle.UNKNOWN):
            continue
        violations.append(
            make_violation(
                rule,
                file_path,
                content,
                token.offset,
                rule.message or f"Variable '{token.name}' should use camelCase naming",
                expected=NamingStyle.CAMEL_CASE.value,
                actual=style.value,
            )
        )
    return violations
