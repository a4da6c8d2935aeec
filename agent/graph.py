# graph.py — LangGraph workflow definition
# Defines state machine, node edges, and conditional routing
"""
graph.py — LangGraph Workflow Definition

Wires the insight pipeline into a single graph with error routing.

Flow:
    START → ingest → analyze_local ─┬─────────────────→ finalize → END
                ↓          ↓        └→ enhance_remote → finalize → END
              [ERROR] → [ERROR] → handle_error → END

Any node that sets state["error"] routes to handle_error_node, which
substitutes fallback insights.
"""

from __future__ import annotations

from typing import Any, Callable, Literal

from langgraph.graph import END, START, StateGraph

from agent.state import InsightState, create_initial_state
from agent.nodes import (
    ingest_data_node,
    analyze_local_node,
    enhance_remote_node,
    finalize_insights_node,
    handle_error_node,
)
from config.settings import normalize_insight_source


# =============================================================================
# CONDITIONAL ROUTING
# =============================================================================

def route_after_node(state: InsightState) -> Literal["continue", "error"]:
    """
    Conditional router: check if error occurred, route accordingly.
    """
    if state.get("error"):
        return "error"
    return "continue"


def route_after_analysis(state: InsightState) -> Literal["local", "remote", "error"]:
    """
    Source-aware router after local analysis.

    - "remote" / "auto" → enhance_remote → finalize
    - "local"           → finalize
    """
    if state.get("error"):
        return "error"

    if state.get("insight_source") in ("remote", "auto"):
        return "remote"
    return "local"


# =============================================================================
# GRAPH BUILDER
# =============================================================================

def build_insight_graph() -> StateGraph:
    """
    Build the LangGraph workflow for insight generation.

    Returns:
        Uncompiled StateGraph
    """
    workflow = StateGraph(InsightState)

    workflow.add_node("ingest_data", ingest_data_node)
    workflow.add_node("analyze_local", analyze_local_node)
    workflow.add_node("enhance_remote", enhance_remote_node)
    workflow.add_node("finalize_insights", finalize_insights_node)
    workflow.add_node("handle_error", handle_error_node)

    workflow.add_edge(START, "ingest_data")

    workflow.add_conditional_edges(
        "ingest_data",
        route_after_node,
        {
            "continue": "analyze_local",
            "error": "handle_error",
        },
    )

    workflow.add_conditional_edges(
        "analyze_local",
        route_after_analysis,
        {
            "local": "finalize_insights",
            "remote": "enhance_remote",
            "error": "handle_error",
        },
    )

    workflow.add_edge("enhance_remote", "finalize_insights")
    workflow.add_edge("finalize_insights", END)
    workflow.add_edge("handle_error", END)

    return workflow


def compile_insight_graph():
    """
    Build and compile the insight graph.

    Returns:
        Compiled graph ready for .invoke() or .stream()
    """
    return build_insight_graph().compile()


# =============================================================================
# GRAPH EXECUTION
# =============================================================================

def _initial_state(
    raw_file: bytes | None,
    filename: str | None,
    pasted_text: str | None,
    dataset: list[dict[str, Any]] | None,
    insight_source: str,
    api_key: str | None,
    ollama_base_url: str | None,
    llm_model: str | None,
    progress_callback: Callable[[dict], None] | None,
) -> InsightState:
    return create_initial_state(
        raw_file=raw_file,
        filename=filename,
        pasted_text=pasted_text,
        dataset=dataset,
        insight_source=normalize_insight_source(insight_source),
        api_key=api_key,
        ollama_base_url=ollama_base_url,
        llm_model=llm_model,
        progress_callback=progress_callback,
    )


def run_insights(
    raw_file: bytes | None = None,
    filename: str | None = None,
    pasted_text: str | None = None,
    dataset: list[dict[str, Any]] | None = None,
    insight_source: str = "local",
    api_key: str | None = None,
    ollama_base_url: str | None = None,
    llm_model: str | None = None,
    progress_callback: Callable[[dict], None] | None = None,
) -> dict:
    """
    Run the complete insight pipeline.

    This is the main entry point for callers outside the core.

    Returns:
        Final state dict; state["insights"] always holds a list of strings
        (fallback insights when state["error"] is set)

    Example:
        result = run_insights(raw_file=uploaded.read(), filename="sales.csv")
        for insight in result["insights"]:
            print(insight)
    """
    initial_state = _initial_state(
        raw_file, filename, pasted_text, dataset, insight_source,
        api_key, ollama_base_url, llm_model, progress_callback,
    )
    return compile_insight_graph().invoke(initial_state)


def stream_insights(
    raw_file: bytes | None = None,
    filename: str | None = None,
    pasted_text: str | None = None,
    dataset: list[dict[str, Any]] | None = None,
    insight_source: str = "local",
    api_key: str | None = None,
    ollama_base_url: str | None = None,
    llm_model: str | None = None,
    progress_callback: Callable[[dict], None] | None = None,
):
    """
    Stream the pipeline, yielding state after each node.

    Yields:
        Tuple of (node_name, accumulated_state) after each node execution
    """
    initial_state = _initial_state(
        raw_file, filename, pasted_text, dataset, insight_source,
        api_key, ollama_base_url, llm_model, progress_callback,
    )
    graph = compile_insight_graph()

    accumulated_state = dict(initial_state)
    for event in graph.stream(initial_state):
        for node_name, state_update in event.items():
            accumulated_state.update(state_update or {})
            yield node_name, accumulated_state
