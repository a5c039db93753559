import unittest

from core.models import CircuitSpec, ConductorMaterial, DeratingContext, InsulationRating, Severity
from standards.nec_logic import WireSizingSolver


def circuit(load, voltage=240, length=50, continuous=False, motor=False, **kw):
    derating = DeratingContext(
        conductor_count=kw.pop("count", 3),
        ambient_temp_c=kw.pop("ambient", 30.0),
        is_continuous=continuous,
        is_motor=motor,
    )
    return CircuitSpec(load_amps=load, voltage=voltage, length_ft=length, derating=derating, **kw)


def codes(violations):
    return [v.code for v in violations]


class TestWireSizing(unittest.TestCase):
    def setUp(self):
        self.solver = WireSizingSolver()

    def test_basic_240v_branch(self):
        # 20A @ 240V, 50ft, Cu 75C. 14 AWG (20A) is excluded above 15A at 240V.
        # 12 AWG: 25A >= 20A; VD = 2*12.9*20*50/6530 = 3.95V -> 1.65%
        res = self.solver.solve(circuit(20))
        self.assertEqual(res.gauge, "12")
        self.assertTrue(res.is_compliant)
        self.assertEqual(res.violations, ())
        self.assertAlmostEqual(res.voltage_drop_percent, 1.646, places=2)
        self.assertEqual(res.breaker_rating, 20)
        self.assertEqual(res.grounding_conductor, "12")

    def test_small_240v_load_may_use_14(self):
        # 15A is not above the 15A threshold
        res = self.solver.solve(circuit(15))
        self.assertEqual(res.gauge, "14")

    def test_continuous_load(self):
        # 40A continuous -> 50A required; 10 AWG (35A) too small, 8 AWG (50A) fits
        res = self.solver.solve(circuit(40, continuous=True))
        self.assertEqual(res.gauge, "8")
        self.assertEqual(res.required_ampacity, 50)
        self.assertGreaterEqual(res.ampacity, 50)
        self.assertEqual(res.breaker_rating, 50)
        self.assertEqual(res.grounding_conductor, "10")

    def test_motor_load(self):
        res = self.solver.solve(circuit(40, motor=True))
        self.assertEqual(res.gauge, "8")

    def test_voltage_drop_drives_size(self):
        # 20A @ 120V over 200ft. 6 AWG still drops 3.28%; 4 AWG = 2.06%
        res = self.solver.solve(circuit(20, voltage=120, length=200))
        self.assertEqual(res.gauge, "4")
        self.assertLessEqual(res.voltage_drop_percent, 3.0)

    def test_derating(self):
        # 6 conductors at 40C -> factor 0.704. 8 AWG: 35.2A < 40A; 6 AWG: 45.76A
        res = self.solver.solve(circuit(40, length=10, count=6, ambient=40))
        self.assertEqual(res.gauge, "6")
        self.assertAlmostEqual(res.derating_factor, 0.704, places=3)
        self.assertIn("Derating: 0.70", res.reference_notes)

        plain = self.solver.solve(circuit(40, length=10))
        self.assertEqual(plain.gauge, "8")

    def test_zero_length(self):
        res = self.solver.solve(circuit(20, voltage=120, length=0))
        self.assertEqual(res.gauge, "14")
        self.assertEqual(res.voltage_drop, 0)
        self.assertEqual(res.voltage_drop_percent, 0)

    def test_aluminum_small_gauge_warning(self):
        res = self.solver.solve(circuit(10, voltage=120, length=10, material=ConductorMaterial.ALUMINUM))
        self.assertEqual(res.gauge, "14")
        self.assertIn("WIRE-006", codes(res.violations))
        # Warnings alone do not make the result non-compliant
        self.assertTrue(res.is_compliant)

    def test_60c_insulation_above_100a(self):
        # 110A at 60C: 1 AWG (110A)
        res = self.solver.solve(circuit(110, length=10, insulation_rating=InsulationRating.TEMP_60))
        self.assertEqual(res.gauge, "1")
        self.assertIn("WIRE-004", codes(res.violations))
        self.assertTrue(res.is_compliant)
        self.assertIn("TW/UF", res.reference_notes)

    def test_nothing_fits(self):
        # 500A exceeds 500 kcmil Cu 75C (380A)
        res = self.solver.solve(circuit(500))
        self.assertEqual(res.gauge, "500")
        self.assertFalse(res.is_compliant)
        self.assertIn("WIRE-007", codes(res.violations))

    def test_bad_input_never_raises(self):
        res = self.solver.solve(circuit(20, voltage=0))
        self.assertFalse(res.is_compliant)
        self.assertEqual(codes(res.violations), ["INPUT-002"])

        res = self.solver.solve(circuit(-5, voltage=120, length=-1))
        self.assertEqual(codes(res.violations), ["INPUT-002", "INPUT-002"])

    def test_non_finite_input_is_rejected(self):
        nan = float("nan")
        for spec in (circuit(nan), circuit(20, voltage=nan), circuit(20, length=float("inf")),
                     circuit(20, max_voltage_drop_percent=nan)):
            res = self.solver.solve(spec)
            self.assertFalse(res.is_compliant)
            self.assertEqual(codes(res.violations), ["INPUT-002"])
            self.assertEqual(res.gauge, "500")

        self.assertEqual(codes(self.solver.check_conductor(circuit(nan), "12")), ["INPUT-002"])

    def test_loose_drop_limit_still_avoids_critical_drop(self):
        # 20A @ 120V, 200ft, 8% allowed. 8 AWG: 2*12.9*20*200/16510 = 6.25V -> 5.21% (over 5%)
        # 6 AWG: 2*12.9*20*200/26240 = 3.93V -> 3.28%
        res = self.solver.solve(circuit(20, voltage=120, length=200, max_voltage_drop_percent=8.0))
        self.assertEqual(res.gauge, "6")
        self.assertTrue(res.is_compliant)
        self.assertEqual(res.violations, ())
        self.assertAlmostEqual(res.voltage_drop_percent, 3.28, places=2)

    def test_monotonic_in_load(self):
        previous = -1
        for load in range(1, 300, 3):
            res = self.solver.solve(circuit(load))
            idx = self.solver.table.index(res.gauge)
            self.assertGreaterEqual(idx, previous, f"gauge shrank at {load}A")
            previous = idx

    def test_monotonic_in_length(self):
        previous = -1
        for length in range(0, 1000, 25):
            res = self.solver.solve(circuit(30, voltage=208, length=length))
            idx = self.solver.table.index(res.gauge)
            self.assertGreaterEqual(idx, previous, f"gauge shrank at {length}ft")
            previous = idx

    def test_compliant_results_are_sound(self):
        for load in (5, 16, 32, 48, 80, 125, 200, 300):
            for length in (0, 25, 100, 250):
                for continuous in (False, True):
                    spec = circuit(load, voltage=240, length=length, continuous=continuous)
                    res = self.solver.solve(spec)
                    if not res.is_compliant:
                        continue
                    self.assertGreaterEqual(res.ampacity, self.solver.required_load(spec))
                    self.assertLessEqual(res.voltage_drop_percent, spec.max_voltage_drop_percent)
                    if load > 15:
                        self.assertGreaterEqual(self.solver.table.compare(res.gauge, "12"), 0)


class TestCheckConductor(unittest.TestCase):
    def setUp(self):
        self.solver = WireSizingSolver()

    def test_undersized(self):
        found = self.solver.check_conductor(circuit(40, continuous=True), "10 AWG")
        self.assertEqual(codes(found), ["WIRE-003"])
        self.assertEqual(found[0].remediation, "Use minimum 8 AWG copper conductor")
        self.assertEqual(found[0].severity, Severity.ERROR)
        self.assertEqual(found[0].calculation["requiredLoad"], 50)

    def test_adequate(self):
        self.assertEqual(self.solver.check_conductor(circuit(40, continuous=True), "#6"), [])

    def test_min_size_at_240v(self):
        # 14 AWG carries 20A but is not permitted at 240V above 15A
        found = self.solver.check_conductor(circuit(20), "14")
        self.assertEqual(codes(found), ["WIRE-005"])

    def test_voltage_drop(self):
        # 12 AWG, 20A @ 120V over 200ft -> 13.2%
        found = self.solver.check_conductor(circuit(20, voltage=120, length=200), "12")
        self.assertEqual(codes(found), ["VD-001", "VD-002"])
        self.assertIn("Consider 4 AWG", found[0].remediation)
        self.assertEqual(found[0].severity, Severity.WARNING)
        self.assertEqual(found[1].severity, Severity.ERROR)

    def test_invalid_sizes(self):
        self.assertEqual(codes(self.solver.check_conductor(circuit(20), "banana")), ["INPUT-001"])
        self.assertEqual(codes(self.solver.check_conductor(circuit(20), "#99")), ["WIRE-001"])


if __name__ == '__main__':
    unittest.main()
