"""Pattern learning: extract dominant conventions from an existing source tree."""

import json
import logging
import os
from datetime import datetime
from fnmatch import fnmatch
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .config import DEFAULT_EXTENSIONS, DEFAULT_IGNORE_DIRS
from .models import (
    ArchitectureRecommendations,
    CommentRecommendations,
    Confidence,
    ImportRecommendations,
    NamingRecommendations,
    NamingStyle,
    PatternProfile,
    Recommendations,
    TestingRecommendations,
)
from .tokenizer import RegexTokenizer, Tokenizer, detect_naming_style

logger = logging.getLogger(__name__)

TOP_N = 10


def is_ignored_dir(name: str, ignore_patterns: list[str]) -> bool:
    """Check a directory name against exact names and fnmatch patterns."""
    return any(name == pattern or fnmatch(name, pattern) for pattern in ignore_patterns)


def find_code_files(
    root: str | Path,
    extensions: list[str] | None = None,
    ignore_patterns: list[str] | None = None,
    max_files: int | None = None,
) -> list[Path]:
    """Collect source files under ``root`` with an explicit stack.

    Directories that cannot be listed are skipped with a warning. Collection
    stops once ``max_files`` files have been found.
    """
    extensions = list(extensions or DEFAULT_EXTENSIONS)
    ignore_patterns = list(DEFAULT_IGNORE_DIRS if ignore_patterns is None else ignore_patterns)

    files: list[Path] = []
    stack = [Path(root)]

    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.warning(f"Skipping directory {current}: {e}")
            continue

        subdirs = []
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    if not is_ignored_dir(entry.name, ignore_patterns):
                        subdirs.append(Path(entry.path))
                elif entry.is_file() and os.path.splitext(entry.name)[1] in extensions:
                    files.append(Path(entry.path))
                    if max_files is not None and len(files) >= max_files:
                        return files
            except OSError as e:
                logger.warning(f"Skipping {entry.path}: {e}")

        # Reverse so the alphabetically first subdirectory is visited next
        stack.extend(reversed(subdirs))

    return files


def is_test_file(file_name: str) -> bool:
    return (
        ".test." in file_name
        or ".spec." in file_name
        or file_name.endswith("Test.js")
        or file_name.endswith("Spec.js")
    )


def most_common(tally: dict[str, int]) -> str | None:
    """Mode of a tally; the first key wins ties and all-zero tallies give None."""
    best, best_count = None, 0
    for key, count in tally.items():
        if count > best_count:
            best, best_count = key, count
    return best


def top_keys(tally: dict[str, int], limit: int = TOP_N) -> list[str]:
    ranked = sorted(tally.items(), key=lambda item: -item[1])
    return [key for key, _ in ranked[:limit]]


def confidence_for(files_analyzed: int) -> Confidence:
    if files_analyzed < 10:
        return Confidence.LOW
    if files_analyzed < 50:
        return Confidence.MEDIUM
    return Confidence.HIGH


def _bump(tally: dict[str, int], key: str, amount: int = 1) -> None:
    tally[key] = tally.get(key, 0) + amount


def _empty_counts() -> dict[str, Any]:
    return {
        "naming": {
            "variables": {"camelCase": 0, "snake_case": 0, "PascalCase": 0},
            "functions": {"camelCase": 0, "snake_case": 0, "PascalCase": 0},
            "constants": {"UPPER_CASE": 0, "camelCase": 0, "PascalCase": 0},
            "files": {"camelCase": 0, "kebab-case": 0, "snake_case": 0, "PascalCase": 0},
        },
        "imports": {
            "style": {"relative": 0, "absolute": 0},
            "extensions": {"explicit": 0, "implicit": 0},
            "libraries": {},
        },
        "architecture": {
            "folderStructure": {},
            "fileTypes": {},
            "exportStyles": {"named": 0, "default": 0, "mixed": 0},
        },
        "testing": {
            "fileNaming": {"spec": 0, "test": 0},
            "framework": {},
        },
        "comments": {
            "style": {"single": 0, "multi": 0, "jsdoc": 0},
            "density": {"high": 0, "medium": 0, "low": 0, "none": 0},
        },
    }


class PatternLearner:
    """Learn a project's conventions from its existing files."""

    def __init__(self, tokenizer: Tokenizer | None = None):
        self.tokenizer = tokenizer or RegexTokenizer()

    def learn(
        self,
        directory: str | Path,
        extensions: list[str] | None = None,
        ignore_patterns: list[str] | None = None,
        max_files: int = 1000,
    ) -> PatternProfile:
        """Run one learning pass over ``directory``.

        Args:
            directory: Root of the source tree
            extensions: File extensions to analyze
            ignore_patterns: Directory names or fnmatch patterns to skip
            max_files: Upper bound on files collected

        Returns:
            The learned pattern profile

        Raises:
            FileNotFoundError: If ``directory`` does not exist
        """
        root = Path(directory)
        if not root.is_dir():
            raise FileNotFoundError(f"Directory does not exist: {directory}")

        logger.info(f"Learning patterns from {root}...")
        files = find_code_files(root, extensions, ignore_patterns, max_files)
        logger.info(f"Found {len(files)} files to analyze")

        counts = _empty_counts()
        analyzed = 0
        for index, file_path in enumerate(files, start=1):
            try:
                content = file_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Error analyzing {file_path}: {e}")
                continue

            self._analyze_file(counts, content, file_path, root)
            analyzed += 1

            if index % 50 == 0:
                logger.info(f"Processed {index}/{len(files)} files...")

        profile = self._consolidate(counts, analyzed)
        logger.info(
            f"Pattern learning completed: {analyzed} files, confidence {profile.confidence.value}"
        )
        return profile

    def _analyze_file(
        self, counts: dict[str, Any], content: str, file_path: Path, root: Path
    ) -> None:
        relative = file_path.relative_to(root).as_posix()
        self._analyze_naming(counts["naming"], content, file_path)
        self._analyze_imports(counts, content)
        self._analyze_architecture(counts["architecture"], file_path, relative)
        self._analyze_testing(counts["testing"], content, file_path.name)
        self._analyze_comments(counts["comments"], content)

    def _analyze_naming(self, naming: dict[str, Any], content: str, file_path: Path) -> None:
        file_style = detect_naming_style(file_path.stem)
        if file_style != NamingStyle.UNKNOWN:
            _bump(naming["files"], file_style.value)

        for key, tokens in (
            ("variables", self.tokenizer.variables(content)),
            ("functions", self.tokenizer.functions(content)),
            ("constants", self.tokenizer.constants(content)),
        ):
            for token in tokens:
                style = detect_naming_style(token.name)
                if style != NamingStyle.UNKNOWN:
                    _bump(naming[key], style.value)

    def _analyze_imports(self, counts: dict[str, Any], content: str) -> None:
        imports = counts["imports"]
        for token in self.tokenizer.imports(content):
            if token.is_relative:
                _bump(imports["style"], "relative")
            else:
                _bump(imports["style"], "absolute")
                _bump(imports["libraries"], token.library)
            _bump(imports["extensions"], "explicit" if token.has_extension else "implicit")

        export_style = self.tokenizer.export_style(content)
        if export_style:
            _bump(counts["architecture"]["exportStyles"], export_style)

    def _analyze_architecture(
        self, architecture: dict[str, Any], file_path: Path, relative: str
    ) -> None:
        parts = relative.split("/")
        if len(parts) > 1:
            _bump(architecture["folderStructure"], "/".join(parts[:-1]))
        _bump(architecture["fileTypes"], file_path.suffix)

    def _analyze_testing(self, testing: dict[str, Any], content: str, file_name: str) -> None:
        if not is_test_file(file_name):
            return
        if ".spec." in file_name:
            _bump(testing["fileNaming"], "spec")
        if ".test." in file_name:
            _bump(testing["fileNaming"], "test")
        if "describe(" in content or "it(" in content:
            _bump(testing["framework"], "jest/mocha")
        if "test(" in content:
            _bump(testing["framework"], "jest")

    def _analyze_comments(self, comments: dict[str, Any], content: str) -> None:
        stats = self.tokenizer.comments(content)
        _bump(comments["style"], "single", stats.single)
        _bump(comments["style"], "multi", stats.multi)
        _bump(comments["style"], "jsdoc", stats.jsdoc)
        _bump(comments["density"], stats.density)

    def _consolidate(self, counts: dict[str, Any], files_analyzed: int) -> PatternProfile:
        naming = counts["naming"]
        imports = counts["imports"]
        architecture = counts["architecture"]
        testing = counts["testing"]
        comments = counts["comments"]

        recommendations = Recommendations(
            naming=NamingRecommendations(
                variables=most_common(naming["variables"]),
                functions=most_common(naming["functions"]),
                constants=most_common(naming["constants"]),
                files=most_common(naming["files"]),
            ),
            imports=ImportRecommendations(
                style=most_common(imports["style"]),
                extensions=most_common(imports["extensions"]),
                popular_libraries=top_keys(imports["libraries"]),
            ),
            architecture=ArchitectureRecommendations(
                export_style=most_common(architecture["exportStyles"]),
                common_folders=top_keys(architecture["folderStructure"]),
            ),
            testing=TestingRecommendations(
                file_naming=most_common(testing["fileNaming"]),
                framework=most_common(testing["framework"]),
            ),
            comments=CommentRecommendations(
                style=most_common(comments["style"]),
                density=most_common(comments["density"]),
            ),
        )

        return PatternProfile(
            timestamp=datetime.now(),
            confidence=confidence_for(files_analyzed),
            files_analyzed=files_analyzed,
            recommendations=recommendations,
            raw_counts=counts,
        )


def save_profile(profile: PatternProfile, path: str | Path) -> Path:
    """Write a profile as camelCase JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(profile.to_json_dict(), f, indent=2)
    logger.info(f"Patterns saved to {path}")
    return path


def load_profile(path: str | Path) -> PatternProfile | None:
    """Read a saved profile; returns None with a warning when missing or invalid."""
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return PatternProfile.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Could not load patterns from {path}: {e}")
        return None
