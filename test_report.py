import io
import unittest

from openpyxl import load_workbook

from compliance.evaluator import DiagramComplianceEvaluator
from compliance.report import VIOLATION_COLUMNS, export_compliance_workbook, violations_frame
from core.components import Diagram, DiagramComponent
from core.timing import ManualScheduler


class TestReport(unittest.TestCase):
    def setUp(self):
        diagram = Diagram(id="r", name="Report", components=(
            DiagramComponent(id="b1", type="breaker", specifications={"rating": 37}),
            DiagramComponent(id="pv1", type="pv_array"),
        ))
        self.result = DiagramComplianceEvaluator(clock=ManualScheduler()).evaluate(diagram)

    def test_frame(self):
        df = violations_frame(self.result)
        self.assertEqual(list(df.columns), VIOLATION_COLUMNS)
        self.assertEqual(len(df), self.result.total_violations)
        self.assertIn("NEC-240-6-001", set(df["Code"]))
        self.assertEqual(df[df["Code"] == "NEC-240-6-001"]["Target"].iloc[0], "b1")
        self.assertEqual(set(df[df["Scope"] == "system"]["Severity"]), {"error", "warning"})

    def test_workbook(self):
        buffer = io.BytesIO()
        export_compliance_workbook(self.result, buffer, diagram_name="Report")
        buffer.seek(0)
        wb = load_workbook(buffer)
        self.assertEqual(wb.sheetnames, ["Violations", "Summary", "Ref NEC 310.16", "Ref NEC 250.122"])

        ws = wb["Violations"]
        self.assertEqual([c.value for c in ws[1]], VIOLATION_COLUMNS)
        self.assertTrue(ws["A1"].font.bold)
        self.assertEqual(ws.max_row, self.result.total_violations + 1)
        self.assertEqual(wb["Summary"]["B7"].value, "NO")


if __name__ == '__main__':
    unittest.main()
