"""Reachability and confidence scoring over the resolved project index."""
import logging
from typing import AbstractSet, List, Optional, Tuple

from . import heuristics as h
from .heuristics import ConfidenceWeights, HeuristicRules
from .models import Finding, ReferenceKind, ResolutionConfidence, ScopeKind, Symbol, SymbolKind
from .resolver import ProjectIndex

logger = logging.getLogger(__name__)

_LIVE_CONFIDENCE = (ResolutionConfidence.EXACT, ResolutionConfidence.PROBABLE)


class ReachabilityEngine:
    """Score every symbol nothing refers to.

    A symbol is live when at least one EXACT or PROBABLE edge from a
    non-dynamic reference reaches it, wherever that reference sits (a
    recursive call counts). Every other symbol becomes a Finding whose
    confidence starts at ``weights.base_confidence`` and is lowered by each
    mitigating reason.
    """

    def __init__(self, index: ProjectIndex, weights: Optional[ConfidenceWeights] = None,
                 rules: Optional[HeuristicRules] = None):
        self.index = index
        self.weights = weights or ConfidenceWeights()
        self.rules = rules if rules is not None else HeuristicRules.load()

    def score(self) -> List[Finding]:
        """Return findings for all non-live symbols, in index order."""
        status = {symbol_id: self._liveness(symbol_id) for symbol_id in self.index.symbols}
        live = {symbol_id for symbol_id, (is_live, _) in status.items() if is_live}

        findings = []
        for symbol in self.index.symbols.values():
            is_live, dynamic = status[symbol.id]
            if is_live:
                continue
            confidence, reasons = self.confidence(symbol, dynamic, self._owner_is_live(symbol, live))
            findings.append(Finding(symbol=symbol, confidence=confidence, reasons=reasons))

        logger.debug("%d of %d symbols have no live reference", len(findings), len(self.index.symbols))
        return findings

    def _liveness(self, symbol_id: str) -> Tuple[bool, bool]:
        """(live, has dynamic string use) for one symbol."""
        dynamic = False
        for ref, confidence in self.index.incoming(symbol_id):
            if ref.kind == ReferenceKind.DYNAMIC_STRING_USE:
                dynamic = True
                continue
            if confidence in _LIVE_CONFIDENCE:
                return True, dynamic
        return False, dynamic

    def _owner_is_live(self, symbol: Symbol, live: AbstractSet[str]) -> bool:
        """Whether ``symbol`` is a member of a class that is itself in use."""
        scope = self.index.scopes.get(symbol.scope_id)
        return scope is not None and scope.kind == ScopeKind.CLASS and scope.owner_id in live

    def confidence(self, symbol: Symbol, dynamic: bool = False,
                   owner_live: bool = False) -> Tuple[int, Tuple[str, ...]]:
        """Compute the confidence score and reason codes for an unreferenced symbol.

        The export cap is applied first and the other reductions are
        subtracted from it. Until the magic-name reduction the score is kept
        within 1..100, so a dunder always ends strictly below a plain symbol
        that is otherwise identical.

        Args:
            symbol: Symbol without live references
            dynamic: Whether a string literal names the symbol
            owner_live: Whether the symbol's class is in use

        Returns:
            (confidence clamped to 0..100, reason codes in evaluation order)
        """
        w = self.weights
        score = w.base_confidence
        reasons = [h.NO_REFERENCES]

        if symbol.exported:
            score = min(score, w.export_cap)
            reasons.append(h.EXPORTED)

        if any(self.rules.is_registration_decorator(d) for d in symbol.decorators):
            score -= w.registration_penalty
            reasons.append(h.REGISTRATION_DECORATOR)

        if dynamic:
            score -= w.dynamic_string_penalty
            reasons.append(h.DYNAMIC_STRING_USE)

        if self._is_entry_name(symbol):
            score -= w.entry_point_penalty
            reasons.append(h.FRAMEWORK_ENTRY_NAME)

        if self.index.is_partial(symbol.file):
            score -= w.partial_parse_penalty
            reasons.append(h.PARTIAL_PARSE)

        if symbol.is_dunder and owner_live:
            score -= w.live_class_dunder_penalty
            reasons.append(h.LIVE_CLASS_MEMBER)

        score = max(1, min(100, score))

        if symbol.is_dunder:
            score = max(0, score - w.magic_name_penalty)
            reasons.append(h.MAGIC_NAME)

        if symbol.kind == SymbolKind.MODULE_VARIABLE:
            reasons.append(h.MODULE_VARIABLE)

        return score, tuple(reasons)

    def _is_entry_name(self, symbol: Symbol) -> bool:
        if symbol.kind == SymbolKind.CLASS:
            return self.rules.is_entry_class(symbol.name)
        if symbol.kind in (SymbolKind.FUNCTION, SymbolKind.METHOD):
            return self.rules.is_entry_function(symbol.name)
        return False
