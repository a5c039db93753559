import datetime

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill

from core.models import ComplianceResult, Severity
from standards.nec_tables import GROUNDING_TABLE_250_122, NEC_310_16_ALUMINUM, NEC_310_16_COPPER

VIOLATION_COLUMNS = ["Scope", "Target", "Code", "Section", "Severity", "Description", "Remediation"]

SEVERITY_FILLS = {
    Severity.ERROR: PatternFill(start_color="F8CBAD", end_color="F8CBAD", fill_type="solid"),
    Severity.WARNING: PatternFill(start_color="FFE699", end_color="FFE699", fill_type="solid"),
    Severity.INFO: PatternFill(start_color="DDEBF7", end_color="DDEBF7", fill_type="solid"),
}


def _rows(result: ComplianceResult):
    for target, bucket in result.component_violations.items():
        for v in bucket:
            yield "component", target, v
    for target, bucket in result.connection_violations.items():
        for v in bucket:
            yield "connection", target, v
    for v in result.system_violations:
        yield "system", "", v


def violations_frame(result: ComplianceResult) -> pd.DataFrame:
    """One row per (bucket, violation)."""
    data = [{
        "Scope": scope,
        "Target": target,
        "Code": v.code,
        "Section": v.section,
        "Severity": v.severity.value,
        "Description": v.description,
        "Remediation": v.remediation or "",
    } for scope, target, v in _rows(result)]
    return pd.DataFrame(data, columns=VIOLATION_COLUMNS)


def _style_header(ws):
    header_fill = PatternFill(start_color="DDDDDD", end_color="DDDDDD", fill_type="solid")
    header_font = Font(bold=True)
    for cell in ws[1]:
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center")


def export_compliance_workbook(result: ComplianceResult, path_or_buffer, diagram_name: str = ""):
    wb = Workbook()

    # --- Sheet 1: Violations ---
    ws1 = wb.active
    ws1.title = "Violations"
    ws1.append(VIOLATION_COLUMNS)
    _style_header(ws1)
    for scope, target, v in _rows(result):
        ws1.append([scope, target, v.code, v.section, v.severity.value, v.description, v.remediation or ""])
        ws1.cell(row=ws1.max_row, column=5).fill = SEVERITY_FILLS[v.severity]

    widths = {"A": 12, "B": 16, "C": 16, "D": 16, "E": 10, "F": 70, "G": 70}
    for col, width in widths.items():
        ws1.column_dimensions[col].width = width

    # --- Sheet 2: Summary ---
    ws2 = wb.create_sheet("Summary")
    ws2.append(["NEC COMPLIANCE REPORT"])
    ws2["A1"].font = Font(bold=True, size=14)
    ws2.append(["Diagram:", diagram_name])
    ws2.append(["Evaluated:", result.timestamp.strftime("%Y-%m-%d %H:%M")])
    ws2.append(["Generated:", datetime.datetime.now().strftime("%Y-%m-%d %H:%M")])
    ws2.append([])
    ws2.append(["Parameter", "Value"])
    ws2.append(["Compliant", "YES" if result.overall_compliance else "NO"])
    ws2.append(["Score", round(result.score, 1)])
    ws2.append(["Errors", result.error_count])
    ws2.append(["Warnings", result.warning_count])
    ws2.append(["Info", result.info_count])
    ws2.append([])
    ws2.append(["Recommendations"])
    for rec in result.recommendations:
        ws2.append([rec])
    ws2.column_dimensions["A"].width = 30
    ws2.column_dimensions["B"].width = 20

    # --- Sheet 3: NEC reference ---
    ws3 = wb.create_sheet("Ref NEC 310.16")
    ws3.append(["Size", "Cu 60C", "Cu 75C", "Cu 90C", "Al 60C", "Al 75C", "Al 90C"])
    _style_header(ws3)
    for size, cu in NEC_310_16_COPPER.items():
        al = NEC_310_16_ALUMINUM[size]
        ws3.append([size, cu[60], cu[75], cu[90], al[60], al[75], al[90]])

    ws4 = wb.create_sheet("Ref NEC 250.122")
    ws4.append(["OCPD (A)", "Cu EGC (AWG/kcmil)"])
    _style_header(ws4)
    for row in GROUNDING_TABLE_250_122:
        ws4.append(list(row))

    wb.save(path_or_buffer)
    return path_or_buffer
