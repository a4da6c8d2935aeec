"""
app.py — Streamlit Entry Point

DataLens: Upload or paste data → Chart it → Get insights

All analysis is delegated to the insight pipeline. The UI only handles
presentation and user interaction.
"""

import html
import logging

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import streamlit as st

from agent.graph import stream_insights
from config.llm_config import LLMError, get_llm, get_llm_status
from config.settings import INSIGHT_SOURCES, configure_logging, load_settings
from tools.data_loader import get_file_info, parse_pasted_text, safe_load_file
from tools.statistics import get_numeric_columns
from tools.validators import mask_api_key, sanitize_question, validate_api_key_format


settings = load_settings()
configure_logging(settings.log_level)
logger = logging.getLogger("datalens.app")


# =============================================================================
# PAGE CONFIG
# =============================================================================

st.set_page_config(
    page_title="DataLens — Data Insights",
    page_icon="🔎",
    layout="wide",
    initial_sidebar_state="expanded",
)


# =============================================================================
# SESSION STATE INITIALIZATION
# =============================================================================

def init_session_state():
    """Initialize session state with default values."""
    defaults = {
        "dataset": None,
        "source_name": None,
        "insight_source": settings.insight_source,
        "api_key": settings.groq_api_key,
        "analysis_result": None,
        "analysis_running": False,
        "chart_type": "bar",
        "selected_columns": [],
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


init_session_state()


# =============================================================================
# CUSTOM CSS
# =============================================================================

st.markdown("""
<style>
    .insight-card {
        background: linear-gradient(135deg, #1e293b 0%, #334155 100%);
        border-left: 4px solid #3b82f6;
        border-radius: 12px;
        padding: 1rem 1.25rem;
        margin-bottom: 0.75rem;
        box-shadow: 0 4px 6px rgba(0,0,0,0.15), 0 2px 4px rgba(0,0,0,0.1);
    }
    .insight-card.fallback {
        border-left-color: #f59e0b;
    }
    .insight-body {
        color: #e2e8f0;
        font-size: 0.9rem;
        line-height: 1.5;
    }
    .main-header {
        text-align: center;
        padding: 1rem 0 1.5rem 0;
    }
    .main-header h1 {
        background: linear-gradient(135deg, #3b82f6 0%, #8b5cf6 100%);
        -webkit-background-clip: text;
        -webkit-text-fill-color: transparent;
        background-clip: text;
        font-size: 2.5rem;
        font-weight: 700;
    }
    #MainMenu {visibility: hidden;}
    footer {visibility: hidden;}
</style>
""", unsafe_allow_html=True)


# =============================================================================
# SIDEBAR
# =============================================================================

def render_sidebar():
    """Render insight source and API key settings."""
    with st.sidebar:
        st.markdown("### 🔎 DataLens")
        st.caption("Charts and automatic insights for tabular data")
        st.markdown("---")

        source = st.radio(
            "💡 Insight source",
            options=list(INSIGHT_SOURCES),
            index=list(INSIGHT_SOURCES).index(st.session_state.insight_source),
            help="Local: statistics computed on your machine. Remote: an AI model. "
                 "Auto: AI model when available, otherwise local.",
        )
        st.session_state.insight_source = source

        if source != "local":
            api_key = st.text_input(
                "🔑 Groq API key (optional)",
                value=st.session_state.api_key,
                type="password",
                help="Without a key, a local Ollama server is used if running.",
            )
            if api_key:
                is_valid, key_error = validate_api_key_format(api_key)
                if is_valid:
                    st.caption(f"Using key {mask_api_key(api_key)}")
                else:
                    st.warning(key_error)
                    api_key = ""
            st.session_state.api_key = api_key

            status = get_llm_status(st.session_state.api_key or None, settings.ollama_base_url)
            if status["groq_available"]:
                llm_label = "🟢 Groq (Cloud)"
            elif status["ollama_available"]:
                llm_label = "🟡 Ollama (Local)"
            else:
                llm_label = "⚪ Stats Only"
            st.markdown(
                f'<div style="color: #64748b; font-size: 0.75rem; text-align: center;">LLM: {llm_label}</div>',
                unsafe_allow_html=True,
            )


# =============================================================================
# DATA INPUT
# =============================================================================

def _set_dataset(dataset: list, source_name: str) -> None:
    st.session_state.dataset = dataset
    st.session_state.source_name = source_name
    st.session_state.analysis_result = None
    st.session_state.selected_columns = []


def render_input_section():
    """Render file upload and paste tabs."""
    upload_tab, paste_tab = st.tabs(["📂 Upload file", "📋 Paste data"])

    with upload_tab:
        uploaded_file = st.file_uploader(
            "Drop a CSV or Excel file here or click to browse",
            type=["csv", "xlsx", "xls"],
            help="Supported: CSV and Excel files up to 100MB",
            key="file_uploader",
        )
        if uploaded_file is not None and uploaded_file.name != st.session_state.source_name:
            info = get_file_info(uploaded_file, uploaded_file.name)
            if not info["is_valid_size"]:
                st.error(f"{uploaded_file.name} is {info['size_mb']}MB, over the 100MB limit")
            else:
                dataset, error = safe_load_file(uploaded_file.read(), uploaded_file.name)
                if error:
                    st.error(f"Could not load {uploaded_file.name}: {error}")
                else:
                    _set_dataset(dataset, uploaded_file.name)

    with paste_tab:
        pasted = st.text_area(
            "Paste CSV (with a header row) or a JSON array of objects",
            height=160,
            key="pasted_text",
        )
        if st.button("Use pasted data", disabled=not pasted):
            dataset, error = parse_pasted_text(pasted)
            if error:
                st.error(error)
            else:
                _set_dataset(dataset, "Pasted data")


def render_data_preview():
    """Render a preview of the current dataset."""
    dataset = st.session_state.dataset
    if not dataset:
        return

    col1, col2 = st.columns([3, 1])
    with col1:
        st.markdown(f"**📊 {st.session_state.source_name}**")
        st.caption(f"{len(dataset):,} rows × {len(dataset[0])} columns")
    with col2:
        if st.button("✕ Remove", type="secondary", use_container_width=True):
            st.session_state.dataset = None
            st.session_state.source_name = None
            st.session_state.analysis_result = None
            st.rerun()

    with st.expander("🗂️ Preview", expanded=False):
        st.dataframe(pd.DataFrame(dataset).head(100), use_container_width=True, hide_index=True)


# =============================================================================
# CHARTS
# =============================================================================

CHART_COLORS = [
    "#3b82f6",  # Primary blue
    "#0ea5e9",  # Sky blue
    "#06b6d4",  # Cyan
    "#60a5fa",  # Light blue
    "#38bdf8",  # Lighter sky
    "#22d3ee",  # Light cyan
    "#93c5fd",  # Very light blue
    "#7dd3fc",  # Pale sky
]

CHART_TYPES = ["bar", "line", "area", "scatter", "pie"]


def _style_figure(fig: go.Figure) -> go.Figure:
    fig.update_layout(
        plot_bgcolor="white",
        paper_bgcolor="white",
        xaxis=dict(showgrid=True, gridcolor="#f1f5f9", title=None),
        yaxis=dict(showgrid=True, gridcolor="#f1f5f9", title=None),
        legend=dict(orientation="h", yanchor="bottom", y=-0.25, xanchor="center", x=0.5),
    )
    return fig


def build_chart(df: pd.DataFrame, chart_type: str, label_col: str, value_cols: list) -> go.Figure:
    """Create a Plotly figure for the selected chart type and columns."""
    if chart_type == "pie":
        return px.pie(
            df,
            names=label_col,
            values=value_cols[0],
            hole=0.5,
            color_discrete_sequence=CHART_COLORS,
        )

    if chart_type == "scatter":
        fig = px.scatter(
            df,
            x=value_cols[0] if len(value_cols) > 1 else label_col,
            y=value_cols[1] if len(value_cols) > 1 else value_cols[0],
            opacity=0.7,
            color_discrete_sequence=CHART_COLORS,
        )
        return _style_figure(fig)

    plot = {"bar": px.bar, "line": px.line, "area": px.area}[chart_type]
    fig = plot(
        df,
        x=label_col,
        y=value_cols,
        color_discrete_sequence=CHART_COLORS,
        **({"barmode": "group"} if chart_type == "bar" else {}),
    )
    return _style_figure(fig)


def render_chart_section():
    """Render chart type and column pickers with the resulting chart."""
    dataset = st.session_state.dataset
    if not dataset:
        return

    df = pd.DataFrame(dataset)
    columns = list(df.columns)
    numeric_columns = get_numeric_columns(dataset)

    st.subheader("📈 Chart")

    if not numeric_columns:
        st.info("No numeric columns to chart.")
        return

    col1, col2, col3 = st.columns([1, 1, 2])
    with col1:
        chart_type = st.selectbox("Chart type", CHART_TYPES, index=CHART_TYPES.index(st.session_state.chart_type))
        st.session_state.chart_type = chart_type
    with col2:
        label_candidates = [c for c in columns if c not in numeric_columns] or columns
        label_col = st.selectbox("Label column", label_candidates)
    with col3:
        default_values = [c for c in st.session_state.selected_columns if c in numeric_columns] or numeric_columns[:1]
        value_cols = st.multiselect("Value columns", numeric_columns, default=default_values)
        st.session_state.selected_columns = value_cols

    if not value_cols:
        st.caption("Select at least one value column.")
        return

    for col in value_cols:
        df[col] = pd.to_numeric(df[col], errors="coerce")

    st.plotly_chart(build_chart(df, chart_type, label_col, value_cols), use_container_width=True)


# =============================================================================
# INSIGHTS
# =============================================================================

def run_insights_with_progress():
    """Execute the insight pipeline with progress updates."""
    st.session_state.analysis_running = True
    progress_bar = st.progress(0, text="Starting analysis...")

    node_names = {
        "ingest_data": "Checking data",
        "analyze_local": "Running statistical analysis",
        "enhance_remote": "Asking the AI model",
        "finalize_insights": "Preparing insights",
        "handle_error": "Handling error",
    }

    final_state = None
    try:
        for node_name, state in stream_insights(
            dataset=st.session_state.dataset,
            insight_source=st.session_state.insight_source,
            api_key=st.session_state.api_key or None,
            ollama_base_url=settings.ollama_base_url,
            llm_model=settings.llm_model,
        ):
            message = state.get("progress_message") or node_names.get(node_name, node_name)
            progress_bar.progress(state.get("progress", 0.0), text=message)
            final_state = state
    finally:
        st.session_state.analysis_running = False

    st.session_state.analysis_result = final_state


def render_insights():
    """Render insight cards, warnings and export actions."""
    result = st.session_state.analysis_result
    if not result:
        return

    insights = result.get("insights") or []
    source_used = result.get("insight_source_used", "local")

    st.subheader("💡 Insights")
    if result.get("error"):
        st.error(f"{result['error']}. {result.get('recovery_hint', '')}")

    st.caption(f"Source: {source_used}")
    card_class = "insight-card fallback" if source_used == "fallback" else "insight-card"
    for insight in insights:
        st.markdown(
            f'<div class="{card_class}"><div class="insight-body">{html.escape(insight)}</div></div>',
            unsafe_allow_html=True,
        )

    for warning in result.get("warnings", []):
        st.warning(warning)

    report_text = f"# DataLens Insights\n\nSource: {st.session_state.source_name}\n\n"
    report_text += "\n".join(f"- {insight}" for insight in insights) + "\n"
    st.download_button(
        "📄 Download insights",
        data=report_text,
        file_name="insights.md",
        mime="text/markdown",
    )


def render_question_box():
    """Let the user ask the AI model a question about the data."""
    if st.session_state.insight_source == "local":
        return

    llm = get_llm(
        api_key=st.session_state.api_key or None,
        model=settings.llm_model,
        base_url=settings.ollama_base_url,
    )
    if llm is None:
        return

    st.subheader("💬 Ask about your data")
    question = sanitize_question(st.text_input("Question", placeholder="Which month had the highest sales?"))
    if question and st.button("Ask"):
        with st.spinner("Thinking..."):
            try:
                st.markdown(llm.answer_question(question, st.session_state.dataset))
            except LLMError as e:
                logger.warning("Question answering failed: %s", e)
                st.error(
                    "I'm having trouble connecting to the analysis service right now, "
                    f"but your data has {len(st.session_state.dataset)} rows."
                )


# =============================================================================
# MAIN
# =============================================================================

def main():
    """Main application flow."""
    st.markdown(
        '<div class="main-header"><h1>DataLens</h1>'
        "<p>Upload data, chart it, and get automatic insights</p></div>",
        unsafe_allow_html=True,
    )

    render_sidebar()
    render_input_section()

    if not st.session_state.dataset:
        return

    render_data_preview()
    render_chart_section()

    st.divider()
    col1, col2, col3 = st.columns([1, 2, 1])
    with col2:
        label = "🔄 Refresh insights" if st.session_state.analysis_result else "🚀 Generate insights"
        clicked = st.button(
            label,
            type="primary",
            use_container_width=True,
            disabled=st.session_state.analysis_running,
        )
    if clicked:
        run_insights_with_progress()

    render_insights()

    if st.session_state.analysis_result:
        render_question_box()

    st.markdown("---")
    st.caption("🔎 DataLens — Powered by LangGraph • Built with Streamlit")


if __name__ == "__main__":
    main()
