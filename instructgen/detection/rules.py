"""Declarative technology indicator rules and their evaluation."""

from __future__ import annotations

from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from ..models import Confidence, IndicatorRule

GLOB = "glob"
EXACT = "exact"
CONTENT = "content"

_GLOB_CHARS = ("*", "?", "[")

INDICATOR_RULES: Tuple[IndicatorRule, ...] = (
    IndicatorRule("csharp", "C#", ("*.csproj", "*.cs"), ("*.sln", "global.json"), "cs"),
    IndicatorRule(
        "typescript", "TypeScript", ("tsconfig.json", "*.ts"), ("package.json:typescript",), "ts"
    ),
    IndicatorRule(
        "javascript",
        "JavaScript",
        ("package.json", "*.js"),
        (".eslintrc*", "webpack.config.js"),
        "js",
    ),
    IndicatorRule(
        "python",
        "Python",
        ("requirements.txt", "*.py"),
        ("pyproject.toml", "setup.py", "Pipfile"),
        "py",
    ),
    IndicatorRule(
        "java",
        "Java",
        ("pom.xml", "build.gradle", "*.java"),
        ("settings.gradle", "gradlew"),
        "java",
    ),
    IndicatorRule("react", "React", ("package.json:react",), ("*.jsx", "*.tsx"), "jsx"),
    IndicatorRule("angular", "Angular", ("angular.json",), ("*.component.ts",), "ts"),
    IndicatorRule("vue", "Vue", ("package.json:vue",), ("*.vue", "vue.config.js"), "vue"),
    IndicatorRule("golang", "Go", ("go.mod", "*.go"), ("go.sum",), "go"),
    IndicatorRule("rust", "Rust", ("Cargo.toml", "*.rs"), ("Cargo.lock",), "rs"),
    IndicatorRule("dotnet", ".NET", ("*.csproj:Microsoft.NET.Sdk",), ("global.json",), "cs"),
)

_RULES_BY_TECHNOLOGY: Dict[str, IndicatorRule] = {rule.technology: rule for rule in INDICATOR_RULES}

_DISPLAY_NAMES = {
    "csharp": "C#",
    "dotnet": ".NET",
    "typescript": "TypeScript",
    "javascript": "JavaScript",
    "golang": "Go",
}


@dataclass(frozen=True)
class IndicatorPattern:
    """Parsed form of an indicator string such as ``*.cs`` or ``package.json:react``."""

    raw: str
    kind: str
    target: str
    keyword: Optional[str] = None

    @property
    def target_is_glob(self) -> bool:
        return any(char in self.target for char in _GLOB_CHARS)


@dataclass(frozen=True)
class ProjectTree:
    """Relative POSIX paths of every file under a project root."""

    root: Path
    files: Tuple[str, ...]

    def matching(self, pattern: str) -> List[str]:
        """Return files anywhere in the tree whose name matches ``pattern``."""
        return [path for path in self.files if fnmatchcase(path.rsplit("/", 1)[-1], pattern)]

    def has_root_file(self, name: str) -> bool:
        return name in self.files


@dataclass
class RuleEvaluation:
    """Indicators matched for one rule and the resulting confidence."""

    technology: str
    matched: List[str] = field(default_factory=list)
    primary_hits: int = 0
    secondary_hits: int = 0
    confidence: Optional[Confidence] = None


TextReader = Callable[[Path], str]


def parse_pattern(raw: str) -> IndicatorPattern:
    if ":" in raw:
        target, keyword = raw.split(":", 1)
        return IndicatorPattern(raw=raw, kind=CONTENT, target=target, keyword=keyword)
    if any(char in raw for char in _GLOB_CHARS):
        return IndicatorPattern(raw=raw, kind=GLOB, target=raw)
    return IndicatorPattern(raw=raw, kind=EXACT, target=raw)


def match_pattern(
    pattern: IndicatorPattern,
    tree: ProjectTree,
    read_text: TextReader,
    warnings: Optional[List[str]] = None,
) -> Optional[str]:
    """Return a human-readable indicator when ``pattern`` matches the tree."""
    if pattern.kind == GLOB:
        found = tree.matching(pattern.target)
        return f"{pattern.target} ({len(found)} found)" if found else None

    if pattern.kind == EXACT:
        return pattern.target if tree.has_root_file(pattern.target) else None

    if pattern.target_is_glob:
        candidates = tree.matching(pattern.target)
    elif tree.has_root_file(pattern.target):
        candidates = [pattern.target]
    else:
        candidates = []

    keyword = (pattern.keyword or "").lower()
    for candidate in candidates:
        try:
            content = read_text(tree.root / candidate)
        except (OSError, UnicodeDecodeError) as exc:
            if warnings is not None:
                warnings.append(f"Failed to read {candidate}: {exc}")
            continue
        if keyword in content.lower():
            return f"{pattern.target} (contains {pattern.keyword})"
    return None


def confidence_for(primary_total: int, primary_hits: int, secondary_hits: int) -> Optional[Confidence]:
    """Classify a rule's matches; ``None`` means the technology was not seen at all."""
    if primary_hits == 0 and secondary_hits == 0:
        return None
    if primary_total and primary_hits == primary_total:
        return Confidence.HIGH
    if secondary_hits:
        return Confidence.MEDIUM
    return Confidence.LOW


def evaluate_rule(
    rule: IndicatorRule,
    tree: ProjectTree,
    read_text: TextReader,
    warnings: Optional[List[str]] = None,
) -> RuleEvaluation:
    """Test every primary and secondary pattern of ``rule`` against ``tree``."""
    evaluation = RuleEvaluation(technology=rule.technology)

    for raw in rule.primary:
        found = match_pattern(parse_pattern(raw), tree, read_text, warnings)
        if found is not None:
            evaluation.matched.append(found)
            evaluation.primary_hits += 1

    for raw in rule.secondary:
        found = match_pattern(parse_pattern(raw), tree, read_text, warnings)
        if found is not None:
            evaluation.matched.append(found)
            evaluation.secondary_hits += 1

    evaluation.confidence = confidence_for(
        len(rule.primary), evaluation.primary_hits, evaluation.secondary_hits
    )
    return evaluation


def get_rule(technology: str) -> Optional[IndicatorRule]:
    return _RULES_BY_TECHNOLOGY.get(technology.lower())


def display_name(technology: str) -> str:
    """Human-readable name, e.g. ``csharp`` -> ``C#``."""
    key = technology.lower()
    rule = _RULES_BY_TECHNOLOGY.get(key)
    if rule is not None:
        return rule.display_name
    if key in _DISPLAY_NAMES:
        return _DISPLAY_NAMES[key]
    if not technology:
        return technology
    return technology[0].upper() + technology[1:]


def default_extension(technology: str) -> str:
    rule = _RULES_BY_TECHNOLOGY.get(technology.lower())
    if rule is not None and rule.extension:
        return rule.extension
    return technology.lower()


def default_apply_to(technology: str) -> List[str]:
    return [f"**/*.{default_extension(technology)}"]
