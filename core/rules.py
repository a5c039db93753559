from abc import ABC, abstractmethod
from typing import List, Optional

from .components import Diagram
from .models import LoadContext, RuleCategory, Severity, Violation


class ValidationRule(ABC):
    """A single code requirement checked against a whole diagram snapshot.

    Rules are stateless: evaluate() must not depend on other rules having run
    and must not mutate the diagram.
    """
    id: str = ""
    title: str = ""
    section: str = ""
    category: RuleCategory = RuleCategory.SYSTEM
    default_severity: Severity = Severity.ERROR

    @abstractmethod
    def evaluate(self, diagram: Diagram, loads: Optional[LoadContext] = None) -> List[Violation]:
        """Returns every violation of this rule found in the diagram."""
        pass

    def violation(self, code: str, description: str, remediation: Optional[str] = None,
                  severity: Optional[Severity] = None, calculation: Optional[dict] = None,
                  component_ids=(), connection_ids=()) -> Violation:
        return Violation(
            code=code,
            section=self.section,
            description=description,
            severity=severity or self.default_severity,
            remediation=remediation,
            calculation=calculation or {},
            rule_id=self.id,
            component_ids=tuple(component_ids),
            connection_ids=tuple(connection_ids),
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id} ({self.section})>"
