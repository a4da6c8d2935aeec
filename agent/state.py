# state.py — Shared InsightState schema
# TypedDict definition for state passed between nodes
"""
state.py — Insight Pipeline State Schema

Defines the TypedDict structure for state passed between LangGraph nodes.
"""

from __future__ import annotations

from typing import Any, Callable, TypedDict


class InsightState(TypedDict, total=False):
    """
    Shared state passed between all pipeline nodes.

    All fields are optional (total=False) to support partial updates.
    """

    # =========================================================================
    # INPUT LAYER
    # =========================================================================
    raw_file: bytes | None  # Raw uploaded file bytes
    filename: str | None  # Original filename
    pasted_text: str | None  # Pasted CSV or JSON
    insight_source: str  # "local" | "remote" | "auto"

    # =========================================================================
    # CONFIGURATION (explicit, never read from globals)
    # =========================================================================
    api_key: str | None
    ollama_base_url: str | None
    llm_model: str | None

    # =========================================================================
    # DATA LAYER
    # =========================================================================
    dataset: list[dict[str, Any]] | None
    row_count: int
    col_count: int

    # =========================================================================
    # INSIGHT LAYER
    # =========================================================================
    local_insights: list[str] | None  # Output of tools.insights.analyze
    insights: list[str] | None  # Final insights shown to the user
    insight_source_used: str | None  # "local" | "groq" | "ollama" | "fallback"
    warnings: list[str]

    # =========================================================================
    # CONTROL LAYER
    # =========================================================================
    current_node: str | None
    progress: float  # 0.0 - 1.0
    progress_message: str | None

    # =========================================================================
    # ERROR LAYER
    # =========================================================================
    error: str | None
    error_type: str | None  # DATA_MISSING | DATA_INVALID | DATA_EMPTY | ANALYSIS_FAILED
    failed_node: str | None
    recovery_hint: str | None

    # =========================================================================
    # CALLBACKS (not persisted)
    # =========================================================================
    progress_callback: Callable[[dict], None] | None


def create_initial_state(
    raw_file: bytes | None = None,
    filename: str | None = None,
    pasted_text: str | None = None,
    dataset: list[dict[str, Any]] | None = None,
    insight_source: str = "local",
    api_key: str | None = None,
    ollama_base_url: str | None = None,
    llm_model: str | None = None,
    progress_callback: Callable[[dict], None] | None = None,
) -> InsightState:
    """
    Create a fresh InsightState with default values.

    Exactly one of raw_file, pasted_text or dataset is expected; an
    already-parsed dataset skips file parsing.
    """
    return InsightState(
        # Input
        raw_file=raw_file,
        filename=filename,
        pasted_text=pasted_text,
        insight_source=insight_source,

        # Configuration
        api_key=api_key,
        ollama_base_url=ollama_base_url,
        llm_model=llm_model,

        # Data
        dataset=dataset,
        row_count=0,
        col_count=0,

        # Insights
        local_insights=None,
        insights=None,
        insight_source_used=None,
        warnings=[],

        # Control
        current_node=None,
        progress=0.0,
        progress_message=None,

        # Error
        error=None,
        error_type=None,
        failed_node=None,
        recovery_hint=None,

        # Callbacks
        progress_callback=progress_callback,
    )
