import unittest

from compliance.evaluator import DiagramComplianceEvaluator
from core.components import diagram_from_dict
from core.timing import ManualScheduler


def factory_payload(press_wire="2"):
    components = [
        {"id": "sd", "type": "service_disconnect", "name": "Service Disconnect"},
        {"id": "ge", "type": "grounding_electrode", "name": "Ground Rod"},
        {"id": "mp", "type": "main_panel", "name": "MDP",
         "specifications": {"busRating": "800A", "mainBreaker": "800A", "circuitDirectory": "yes",
                            "frontClearance": 42, "voltage": "480V"}},
        {"id": "press", "type": "motor", "name": "Big Press"},
    ]
    connections = [
        {"id": "feed", "from": "sd", "to": "mp", "type": "power"},
        {"id": "gec", "from": "ge", "to": "sd", "type": "ground",
         "specifications": {"wireSize": "2", "color": "green"}},
        # 80kW, 480V 3Ph, PF 0.9 -> 106.9 A
        {"id": "w-press", "from": "mp", "to": "press", "type": "power", "voltage": 480, "current": 106.9,
         "specifications": {"wireSize": press_wire, "phases": 3, "colorCode": "BOY", "length": "30 m"}},
    ]
    # 20 small machines: 10kW, 480V 3Ph -> 13.36 A each
    for i in range(20):
        components.append({"id": f"arm{i + 1}", "type": "motor", "name": f"RoboArm_{i + 1}"})
        connections.append({"id": f"w-arm{i + 1}", "from": "mp", "to": f"arm{i + 1}", "type": "power",
                            "voltage": 480, "current": 13.36,
                            "specifications": {"wireSize": "12", "phases": 3, "colorCode": "BOY"}})
    return {"id": "factory", "name": "The Factory", "components": components, "connections": connections}


class TestFactoryScenario(unittest.TestCase):
    def setUp(self):
        self.evaluator = DiagramComplianceEvaluator(clock=ManualScheduler())

    def test_the_factory(self):
        print("\n--- TEST: THE FACTORY ---")
        diagram = diagram_from_dict(factory_payload())
        self.assertEqual(len(diagram.components), 24)

        result = self.evaluator.evaluate(diagram)
        print(result.summary())

        # Big Press: 106.9 * 1.25 = 133.6 A required (NEC 430.22). 2 AWG Cu 75C = 115 A.
        press = result.connection_violations["w-press"]
        self.assertEqual([v.code for v in press], ["WIRE-003"])
        # 1/0 (150 A) is the smallest that fits
        self.assertEqual(press[0].remediation, "Use minimum 1/0 AWG copper conductor")

        # RoboArms: 13.36 * 1.25 = 16.7 A on 12 AWG (25 A). 3Ph VD @ 50ft = 0.48%
        self.assertEqual(list(result.connection_violations), ["w-press"])
        self.assertEqual(result.error_count, 1)
        self.assertFalse(result.overall_compliance)
        # 100 - 20 + full complexity credit (24 components)
        self.assertEqual(result.score, 85)

    def test_the_factory_fixed(self):
        result = self.evaluator.evaluate(diagram_from_dict(factory_payload(press_wire="1/0")))
        self.assertTrue(result.overall_compliance)
        self.assertEqual(result.total_violations, 0)
        self.assertEqual(result.score, 100)


if __name__ == '__main__':
    unittest.main()
