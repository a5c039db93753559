"""Runs the rule base and the per-connection wire checks over one diagram snapshot."""

import logging
from types import MappingProxyType
from typing import Dict, Iterable, List, Optional, Sequence

from core.components import POWER_CONNECTION_TYPES, Diagram
from core.config import DEFAULT_CONFIG, EngineConfig
from core.models import ComplianceResult, LoadContext, RuleCategory, Severity, Violation
from core.rules import ValidationRule
from core.specs import infer_circuit, parse_component_spec, wire_size_of
from core.timing import MonotonicClock
from standards.nec_logic import WireSizingSolver
from standards.nec_rules import build_rule_base

logger = logging.getLogger(__name__)

CRITICAL_RECOMMENDATION = "Critical: address all error-level violations before proceeding"
COMPONENT_ADVICE = "Review component specifications for NEC compliance"
CONNECTION_ADVICE = "Verify wire sizing and connection specifications"
SYSTEM_ADVICE = "Review overall system design for code compliance"


class _Buckets:
    def __init__(self):
        self.components: Dict[str, List[Violation]] = {}
        self.connections: Dict[str, List[Violation]] = {}
        self.system: List[Violation] = []

    def component(self, component_id: str, violation: Violation):
        self.components.setdefault(component_id, []).append(violation)

    def connection(self, connection_id: str, violation: Violation):
        self.connections.setdefault(connection_id, []).append(violation)

    def route(self, category: RuleCategory, violation: Violation):
        if category is RuleCategory.COMPONENT and violation.component_ids:
            for cid in violation.component_ids:
                self.component(cid, violation)
        elif category is RuleCategory.CONNECTION and violation.connection_ids:
            for cid in violation.connection_ids:
                self.connection(cid, violation)
        else:
            self.system.append(violation)

    def unique(self) -> List[Violation]:
        # A violation tagged with several ids is counted once
        seen = set()
        found = []
        for bucket in list(self.components.values()) + list(self.connections.values()) + [self.system]:
            for v in bucket:
                if id(v) not in seen:
                    seen.add(id(v))
                    found.append(v)
        return found


class DiagramComplianceEvaluator:
    def __init__(self, rules: Optional[Sequence[ValidationRule]] = None, solver: Optional[WireSizingSolver] = None,
                 config: EngineConfig = DEFAULT_CONFIG, clock=None):
        self.config = config
        self.solver = solver or WireSizingSolver(config=config)
        self.rules = tuple(rules) if rules is not None else build_rule_base(self.solver)
        self.clock = clock or MonotonicClock()

    def evaluate(self, diagram: Diagram, loads: Optional[LoadContext] = None) -> ComplianceResult:
        buckets = _Buckets()

        for component in diagram.components:
            _, problems = parse_component_spec(component)
            for v in problems:
                buckets.component(component.id, v)

        for connection in diagram.connections:
            for v in self._check_connection(diagram, connection):
                buckets.connection(connection.id, v)

        for rule in self.rules:
            for v in self._run_rule(rule, diagram, loads):
                buckets.route(rule.category, v)

        return self._result(diagram, buckets)

    def _check_connection(self, diagram: Diagram, connection) -> List[Violation]:
        if connection.type not in POWER_CONNECTION_TYPES:
            return []
        circuit, problems = infer_circuit(diagram, connection, self.config)
        if circuit is None:
            return problems
        wire_size = wire_size_of(connection)
        if wire_size is not None:
            return problems + self.solver.check_conductor(circuit, wire_size)
        return problems + list(self.solver.solve(circuit).violations)

    def _run_rule(self, rule: ValidationRule, diagram: Diagram, loads: Optional[LoadContext]) -> List[Violation]:
        try:
            return list(rule.evaluate(diagram, loads))
        except Exception:
            logger.exception("Rule %s failed on diagram %s", rule.id, diagram.id)
            return []

    def _result(self, diagram: Diagram, buckets: _Buckets) -> ComplianceResult:
        violations = buckets.unique()
        errors = sum(1 for v in violations if v.severity is Severity.ERROR)
        warnings = sum(1 for v in violations if v.severity is Severity.WARNING)
        infos = sum(1 for v in violations if v.severity is Severity.INFO)

        return ComplianceResult(
            overall_compliance=errors == 0,
            total_violations=len(violations),
            error_count=errors,
            warning_count=warnings,
            info_count=infos,
            component_violations=MappingProxyType({k: tuple(v) for k, v in buckets.components.items()}),
            connection_violations=MappingProxyType({k: tuple(v) for k, v in buckets.connections.items()}),
            system_violations=tuple(buckets.system),
            recommendations=tuple(self.recommendations(violations, buckets)),
            score=self.score(errors, warnings, len(violations), len(diagram.components)),
            timestamp=self.clock.now(),
        )

    def score(self, errors: int, warnings: int, total: int, component_count: int) -> float:
        if total == 0:
            return 100.0
        score = 100.0 - errors * self.config.error_penalty - warnings * self.config.warning_penalty
        # Complex diagrams get a little credit
        score += min(component_count / 10.0, 1.0) * self.config.complexity_credit
        return max(0.0, min(100.0, score))

    @staticmethod
    def recommendations(violations: Iterable[Violation], buckets: _Buckets) -> List[str]:
        violations = list(violations)
        recs: List[str] = []

        def add(text):
            if text and text not in recs:
                recs.append(text)

        if any(v.is_error for v in violations):
            add(CRITICAL_RECOMMENDATION)

        seen_sections = set()
        for v in violations:
            if v.section in seen_sections or not v.remediation:
                continue
            seen_sections.add(v.section)
            add(f"{v.section}: {v.remediation}")

        if buckets.components:
            add(COMPONENT_ADVICE)
        if buckets.connections:
            add(CONNECTION_ADVICE)
        if buckets.system:
            add(SYSTEM_ADVICE)
        return recs


def evaluate_diagram(diagram: Diagram, loads: Optional[LoadContext] = None,
                     config: EngineConfig = DEFAULT_CONFIG, clock=None) -> ComplianceResult:
    return DiagramComplianceEvaluator(config=config, clock=clock).evaluate(diagram, loads)
