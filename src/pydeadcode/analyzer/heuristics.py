"""Confidence weights and the framework rule tables behind them."""
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_RULES_DIR = Path(__file__).parent.parent / "rules"

# Reason codes attached to findings, in the order they are evaluated
NO_REFERENCES = "no-references"
EXPORTED = "exported"
REGISTRATION_DECORATOR = "registration-decorator"
DYNAMIC_STRING_USE = "dynamic-string-use"
FRAMEWORK_ENTRY_NAME = "framework-entry-name"
PARTIAL_PARSE = "partial-parse"
LIVE_CLASS_MEMBER = "live-class-member"
MAGIC_NAME = "magic-name"
MODULE_VARIABLE = "module-variable"

REASON_DESCRIPTIONS: Dict[str, str] = {
    NO_REFERENCES: "no resolved reference anywhere in the analyzed files",
    EXPORTED: "listed in __all__, part of the module's public API",
    REGISTRATION_DECORATOR: "decorated with a framework registration decorator",
    DYNAMIC_STRING_USE: "name appears in a string literal (getattr/importlib style use)",
    FRAMEWORK_ENTRY_NAME: "name is called implicitly by a test runner or entry point",
    PARTIAL_PARSE: "file had syntax errors, some references may be missing",
    LIVE_CLASS_MEMBER: "dunder method of a class that is in use, called through the class itself",
    MAGIC_NAME: "dunder name, usually invoked implicitly by the interpreter",
    MODULE_VARIABLE: "module-level variable",
}


@dataclass(frozen=True)
class ConfidenceWeights:
    """Magnitudes of the confidence adjustments.

    Every finding starts at ``base_confidence``, is capped at ``export_cap``
    when exported, and each other applicable reason lowers it. The magic-name
    reduction comes last and is the only one that can take a score below 1.
    """
    base_confidence: int = 100
    magic_name_penalty: int = 60
    export_cap: int = 10
    registration_penalty: int = 35
    dynamic_string_penalty: int = 30
    entry_point_penalty: int = 40
    partial_parse_penalty: int = 10
    live_class_dunder_penalty: int = 30


@dataclass(frozen=True)
class HeuristicRules:
    """Framework knowledge loaded from the JSON rule files.

    Attributes:
        registration_decorators: Decorator names (final dotted segment or full
            dotted path) that register the decorated function with a framework
        entry_names: Exact function/method names invoked implicitly
        entry_prefixes: Function/method name prefixes invoked implicitly
        class_prefixes: Class name prefixes collected implicitly (``Test``)
    """
    registration_decorators: frozenset = field(default_factory=frozenset)
    entry_names: frozenset = field(default_factory=frozenset)
    entry_prefixes: Tuple[str, ...] = ()
    class_prefixes: Tuple[str, ...] = ()

    @classmethod
    def load(cls, rules_dir: Optional[Path] = None) -> "HeuristicRules":
        """Load and merge every ``*.json`` rule file in ``rules_dir``.

        Malformed files are skipped with a warning; a missing directory yields
        empty tables.
        """
        rules_dir = Path(rules_dir) if rules_dir is not None else DEFAULT_RULES_DIR
        if not rules_dir.exists():
            logger.warning("Rules directory not found: %s", rules_dir)
            return cls()

        decorators = set()
        names = set()
        prefixes = []
        class_prefixes = []

        for json_file in sorted(rules_dir.glob("*.json")):
            try:
                with open(json_file, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Skipping rule file %s: %s", json_file.name, e)
                continue

            if not isinstance(data, dict):
                logger.warning(
                    "Rule file %s is malformed (expected dict, got %s). Skipping.",
                    json_file.name, type(data).__name__,
                )
                continue

            decorators.update(data.get('registration_decorators', []))
            names.update(data.get('exact_matches', []))
            prefixes.extend(p for p in data.get('prefix_matches', []) if p not in prefixes)
            class_prefixes.extend(p for p in data.get('class_prefixes', []) if p not in class_prefixes)

        logger.debug(
            "Loaded %d registration decorators, %d entry names from %s",
            len(decorators), len(names), rules_dir,
        )
        return cls(
            registration_decorators=frozenset(decorators),
            entry_names=frozenset(names),
            entry_prefixes=tuple(prefixes),
            class_prefixes=tuple(class_prefixes),
        )

    def is_registration_decorator(self, decorator: str) -> bool:
        """Check a raw decorator such as ``@app.route("/")``.

        Matches when the full dotted name or its final segment is listed.
        """
        dotted = decorator_name(decorator)
        if not dotted:
            return False
        return dotted in self.registration_decorators or dotted.split('.')[-1] in self.registration_decorators

    def is_entry_function(self, name: str) -> bool:
        return name in self.entry_names or any(name.startswith(p) for p in self.entry_prefixes)

    def is_entry_class(self, name: str) -> bool:
        return any(name.startswith(p) for p in self.class_prefixes)


def decorator_name(decorator: str) -> str:
    """Dotted name of a decorator, without ``@`` and call arguments.

    >>> decorator_name('@app.route("/users")')
    'app.route'
    """
    text = decorator.strip().lstrip('@').strip()
    paren = text.find('(')
    if paren != -1:
        text = text[:paren]
    return ''.join(text.split())
