# nodes.py — Pipeline steps (individual graph node functions)
# Steps: ingest → analyze locally → enhance remotely (optional) → finalize
"""
nodes.py — LangGraph Pipeline Nodes

Each node takes InsightState and returns state updates.

Node Responsibilities:
- ingest_data_node: Parse file or pasted text, validate the dataset
- analyze_local_node: Run the local insight synthesizer
- enhance_remote_node: Ask an LLM for insights, keeping local ones on failure
- finalize_insights_node: Enforce the insight list contract
- handle_error_node: Substitute fallback insights and describe the error
"""

from __future__ import annotations

import logging

from config.llm_config import DEFAULT_OLLAMA_BASE_URL, LLMError, get_llm
from tools.data_loader import parse_pasted_text, safe_load_file
from tools.insights import AnalysisError, analyze, fallback_insights
from tools.validators import (
    sanitize_insights,
    validate_dataset,
    validate_file_extension,
)


logger = logging.getLogger(__name__)


# =============================================================================
# PROGRESS HELPERS
# =============================================================================

def _emit_progress(
    state: dict,
    node: str,
    progress: float,
    message: str,
    status: str = "running",
) -> None:
    """
    Emit a progress update via the callback if available.

    Args:
        state: Current pipeline state
        node: Current node name
        progress: Progress value (0.0 - 1.0)
        message: Human-readable progress message
        status: "running" | "complete" | "failed"
    """
    callback = state.get("progress_callback")
    if callback and callable(callback):
        try:
            callback({
                "node": node,
                "status": status,
                "progress": progress,
                "message": message,
            })
        except Exception:
            # A broken UI callback must not fail the pipeline
            logger.exception("Progress callback failed in %s", node)


def _create_error_state(
    node: str,
    error_msg: str,
    error_type: str,
    recovery_hint: str,
) -> dict:
    """Create state update for error routing."""
    logger.warning("%s failed (%s): %s", node, error_type, error_msg)
    return {
        "error": error_msg,
        "error_type": error_type,
        "failed_node": node,
        "recovery_hint": recovery_hint,
        "current_node": node,
    }


# =============================================================================
# NODE: INGEST DATA
# =============================================================================

def ingest_data_node(state: dict) -> dict:
    """
    Produce a validated dataset from a file, pasted text, or given rows.

    Output state updates:
        - dataset, row_count, col_count

    On error:
        - error, error_type, failed_node, recovery_hint
    """
    node_name = "ingest_data"
    _emit_progress(state, node_name, 0.05, "Loading your data...")

    dataset = state.get("dataset")
    raw_file = state.get("raw_file")
    pasted_text = state.get("pasted_text")

    if dataset is None and raw_file is not None:
        filename = state.get("filename") or "unknown.csv"

        is_valid_ext, ext_error = validate_file_extension(filename)
        if not is_valid_ext:
            return _create_error_state(
                node_name, ext_error, "DATA_INVALID",
                "Please upload a CSV or Excel file.",
            )

        dataset, load_error = safe_load_file(raw_file, filename)
        if load_error:
            return _create_error_state(
                node_name, load_error, "DATA_INVALID",
                "Check that your file is a valid CSV (UTF-8 or Latin-1) or Excel workbook.",
            )

    elif dataset is None and pasted_text:
        dataset, parse_error = parse_pasted_text(pasted_text)
        if parse_error:
            return _create_error_state(
                node_name, parse_error, "DATA_INVALID",
                "Paste CSV with a header row, or a JSON array of objects.",
            )

    elif dataset is None:
        return _create_error_state(
            node_name, "No data provided", "DATA_MISSING",
            "Please upload a file or paste your data to analyze.",
        )

    is_valid, dataset_error = validate_dataset(dataset)
    if not is_valid:
        return _create_error_state(
            node_name, dataset_error, "DATA_EMPTY",
            "The data appears to be empty. Please check and try again.",
        )

    _emit_progress(state, node_name, 0.20, "Data loaded successfully", "complete")

    return {
        "dataset": dataset,
        "row_count": len(dataset),
        "col_count": len(dataset[0]),
        "current_node": node_name,
        "progress": 0.20,
        "progress_message": f"Loaded {len(dataset):,} rows × {len(dataset[0])} columns",
    }


# =============================================================================
# NODE: LOCAL ANALYSIS
# =============================================================================

def analyze_local_node(state: dict) -> dict:
    """
    Run the local statistical insight synthesizer.

    Output state updates:
        - local_insights: list[str]
    """
    node_name = "analyze_local"
    _emit_progress(state, node_name, 0.40, "Running statistical analysis...")

    try:
        local_insights = analyze(state.get("dataset") or [])
    except AnalysisError as e:
        return _create_error_state(
            node_name, str(e), "ANALYSIS_FAILED",
            "Provide a dataset with at least one row and one column.",
        )

    _emit_progress(state, node_name, 0.70, "Statistical analysis complete", "complete")

    return {
        "local_insights": local_insights,
        "current_node": node_name,
        "progress": 0.70,
        "progress_message": f"Generated {len(local_insights)} insights",
    }


# =============================================================================
# NODE: REMOTE ENHANCEMENT
# =============================================================================

def enhance_remote_node(state: dict) -> dict:
    """
    Replace local insights with LLM insights when a provider is available.

    Local insights are kept whenever the remote path is unavailable or
    fails; failures become warnings, never pipeline errors.
    """
    node_name = "enhance_remote"
    _emit_progress(state, node_name, 0.75, "Asking the AI model for insights...")

    source = state.get("insight_source", "local")
    warnings = list(state.get("warnings", []))

    llm = get_llm(
        api_key=state.get("api_key"),
        model=state.get("llm_model"),
        base_url=state.get("ollama_base_url") or DEFAULT_OLLAMA_BASE_URL,
    )

    if llm is None:
        if source == "remote":
            warnings.append("No AI provider available; showing locally computed insights.")
        return {
            "warnings": warnings,
            "current_node": node_name,
            "progress": 0.90,
        }

    try:
        remote_insights = llm.generate_insights(state.get("dataset") or [])
    except LLMError as e:
        logger.warning("Remote insight generation failed (%s): %s", llm.provider, e)
        warnings.append(f"AI insights unavailable ({llm.provider}); showing locally computed insights.")
        return {
            "warnings": warnings,
            "current_node": node_name,
            "progress": 0.90,
        }

    _emit_progress(state, node_name, 0.90, "AI insights received", "complete")

    return {
        "insights": remote_insights,
        "insight_source_used": llm.provider,
        "warnings": warnings,
        "current_node": node_name,
        "progress": 0.90,
    }


# =============================================================================
# NODE: FINALIZE
# =============================================================================

def finalize_insights_node(state: dict) -> dict:
    """Pick the final insight list and enforce the ≤5 string contract."""
    node_name = "finalize_insights"

    if state.get("insights"):
        insights = sanitize_insights(state["insights"])
        source_used = state.get("insight_source_used") or "local"
    else:
        insights = sanitize_insights(state.get("local_insights"))
        source_used = "local"

    _emit_progress(state, node_name, 1.0, "Insights ready", "complete")

    return {
        "insights": insights,
        "insight_source_used": source_used,
        "current_node": node_name,
        "progress": 1.0,
        "progress_message": f"{len(insights)} insights ready",
    }


# =============================================================================
# NODE: HANDLE ERROR
# =============================================================================

def handle_error_node(state: dict) -> dict:
    """
    Substitute fallback insights after a failure.

    The error fields set by the failing node are kept for the UI.
    """
    node_name = "handle_error"
    _emit_progress(state, node_name, 1.0, "Handling error...", "failed")

    error_type = state.get("error_type", "UNKNOWN")
    dataset = state.get("dataset")
    is_valid, _ = validate_dataset(dataset)

    return {
        "insights": fallback_insights(dataset if is_valid else None),
        "insight_source_used": "fallback",
        "current_node": node_name,
        "progress": 1.0,
        "progress_message": f"Error: {error_type}",
    }
