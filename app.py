import io
import json

import pandas as pd
import streamlit as st

from compliance.evaluator import DiagramComplianceEvaluator
from compliance.report import export_compliance_workbook, violations_frame
from core.components import diagram_from_dict, load_context_from_dict
from core.config import EngineConfig
from core.converters import convert_length_unit, convert_power_to_amps
from core.models import CircuitSpec, ConductorMaterial, DeratingContext, InsulationRating
from standards.nec_logic import WireSizingSolver

# --- Page Config ---
st.set_page_config(
    page_title="NEC Compliance Engine",
    page_icon="⚡",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.markdown("""
<style>
    .main-header { font-family: 'Inter', sans-serif; color: #1E3A8A; font-weight: 700; }
    .stDataFrame { border-radius: 10px; overflow: hidden; }
</style>
""", unsafe_allow_html=True)

CONFIG = EngineConfig.from_env()
SOLVER = WireSizingSolver(config=CONFIG)
EVALUATOR = DiagramComplianceEvaluator(solver=SOLVER, config=CONFIG)

if "sized_circuits" not in st.session_state:
    st.session_state.sized_circuits = []


def size_circuit(name, power, unit, voltage, phases, pf, length, l_unit, is_motor, is_cont,
                 material, rating, ambient, group):
    amps = convert_power_to_amps(power, unit, voltage, phases, pf)
    circuit = CircuitSpec(
        load_amps=amps,
        voltage=voltage,
        length_ft=convert_length_unit(length, l_unit),
        material=ConductorMaterial(material),
        insulation_rating=InsulationRating(int(rating)),
        max_voltage_drop_percent=CONFIG.max_voltage_drop_percent,
        phases=phases,
        derating=DeratingContext(conductor_count=group, ambient_temp_c=ambient,
                                 is_continuous=is_cont, is_motor=is_motor),
    )
    res = SOLVER.solve(circuit)
    return {
        "Name": name,
        "I (Amps)": round(amps, 1),
        "I req.": round(res.required_ampacity, 1),
        "Conductor": SOLVER.table.spec(res.gauge).label,
        "Ampacity": round(res.ampacity, 1),
        "Breaker": res.breaker_rating,
        "EGC": res.grounding_conductor,
        "% VD": float(f"{res.voltage_drop_percent:.2f}"),
        "OK": res.is_compliant,
        "Notes": res.reference_notes,
        "Issues": "; ".join(f"{v.code}: {v.description}" for v in res.violations),
    }


# --- Sidebar ---
with st.sidebar:
    st.title("Diagram Check")
    st.info("Upload a single-line diagram snapshot (JSON) to check it against the NEC rule base.")
    diagram_file = st.file_uploader("Diagram JSON", type=["json"])
    loads_file = st.file_uploader("Load summary JSON (optional)", type=["json"])

# --- Main Area ---
st.markdown("<h1 class='main-header'>⚡ NEC Wire Sizing & Diagram Compliance</h1>", unsafe_allow_html=True)
st.markdown("---")

tab_size, tab_check = st.tabs(["Wire Sizing", "Diagram Compliance"])

with tab_size:
    with st.expander("➕ Size a Circuit", expanded=True):
        name = st.text_input("Circuit name", "Circuit 1")

        st.markdown("##### ⚡ Electrical Data")
        c_p1, c_p2, c_v1, c_v2, c_fp = st.columns([1.5, 0.8, 1.2, 0.8, 1])
        power = c_p1.number_input("Load", 0.0, value=20.0, step=0.1, format="%.2f")
        unit = c_p2.selectbox("Unit", ["A", "W", "KW", "HP", "KVA"])
        voltage = c_v1.number_input("Voltage (V)", 1.0, value=240.0, step=10.0)
        phases = c_v2.radio("Phases", [1, 3], horizontal=True)
        pf = c_fp.number_input("PF", 0.1, 1.0, 1.0, 0.05)

        c_flags = st.columns(4)
        is_motor = c_flags[0].toggle("Motor", False)
        is_cont = c_flags[1].toggle("Continuous Load", False)

        st.markdown("##### 📏 Installation")
        c_L1, c_L2, c_T1, c_T2, c_M = st.columns([1.5, 0.8, 1.2, 1, 1])
        length = c_L1.number_input("Length", 0.0, value=50.0, step=1.0)
        l_unit = c_L2.selectbox("Unit ", ["ft", "m"])
        ambient = c_T1.number_input("Ambient (°C)", value=30.0, step=1.0)
        rating = c_T2.selectbox("Insulation", ["75", "60", "90"])
        material = c_M.selectbox("Material", ["copper", "aluminum"])
        group = st.number_input("Current-carrying conductors in raceway", 1, 60, 3)

        if st.button("Size Conductor", type="primary", use_container_width=True):
            row = size_circuit(name, power, unit, voltage, phases, pf, length, l_unit, is_motor, is_cont,
                               material, rating, ambient, group)
            st.session_state.sized_circuits.append(row)
            st.rerun()

    st.markdown("### 📋 Sized Circuits")
    if st.button("🗑️ Clear", type="secondary"):
        st.session_state.sized_circuits = []
        st.rerun()

    df_sized = pd.DataFrame(st.session_state.sized_circuits)
    if not df_sized.empty:
        st.dataframe(df_sized, use_container_width=True)
        output = io.BytesIO()
        with pd.ExcelWriter(output, engine='openpyxl') as writer:
            df_sized.to_excel(writer, index=False, sheet_name='Circuits')
        st.download_button(
            "📥 Download (Excel)",
            data=output.getvalue(),
            file_name="nec_wire_sizing.xlsx",
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )

with tab_check:
    if diagram_file is None:
        st.caption("Upload a diagram in the sidebar.")
    else:
        try:
            diagram = diagram_from_dict(json.load(diagram_file))
            loads = load_context_from_dict(json.load(loads_file)) if loads_file else None
        except ValueError as e:
            st.error(f"Cannot read diagram: {e}")
            st.stop()

        result = EVALUATOR.evaluate(diagram, loads)

        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Score", f"{result.score:.0f}")
        c2.metric("Errors", result.error_count)
        c3.metric("Warnings", result.warning_count)
        c4.metric("Compliant", "YES" if result.overall_compliance else "NO")

        if result.overall_compliance:
            st.success(result.summary())
        else:
            st.error(result.summary())

        st.dataframe(violations_frame(result), use_container_width=True)

        if result.recommendations:
            st.subheader("Recommendations")
            for rec in result.recommendations:
                st.markdown(f"- {rec}")

        buffer = io.BytesIO()
        export_compliance_workbook(result, buffer, diagram_name=diagram.name or diagram.id)
        st.download_button(
            "📥 Compliance Report (Excel)",
            data=buffer.getvalue(),
            file_name="nec_compliance.xlsx",
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )
