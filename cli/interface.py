"""
Terminal output and result-file helpers for the figma-namer CLI.
"""

import csv
import io
import json
from pathlib import Path

from contracts.v1.schemas import AnalyzeResult, NamingResult
from namer_platform.flow_controller import FlowState
from namer_platform.flow_state_machine import FlowStatus

CSV_COLUMNS = ("nodeId", "originalName", "suggestedName", "confidence", "markId")


def print_analysis(result: AnalyzeResult):
    """Print the node histogram and page breakdown of an analysis."""
    print("\n" + "=" * 60)
    print(f"ANALYSIS: {result.root_name}")
    print("=" * 60)
    print(f"  Nameable nodes:    {result.total_nodes}")
    print(f"  Estimated batches: {result.estimated_batches}")

    if result.nodes_by_type:
        print("\n  By type:")
        for node_type, count in sorted(result.nodes_by_type.items(), key=lambda kv: (-kv[1], kv[0])):
            print(f"    {node_type:<16} {count}")

    if result.structure_analysis:
        print(f"\n  File type: {result.structure_analysis.file_type}")
        if result.structure_analysis.reasoning:
            print(f"  Reasoning: {result.structure_analysis.reasoning}")

    if result.pages:
        print(f"\n  Pages ({len(result.pages)}):")
        for page in result.pages:
            marker = " (auxiliary)" if page.is_auxiliary else ""
            role = f" [{page.page_role}]" if page.page_role else ""
            print(f"    • {page.name}{role}: {len(page.nodes)} nodes{marker}")


class ProgressPrinter:
    """Flow listener that prints each new progress message once."""

    def __init__(self):
        self._last_message = ""
        self._last_error = None

    def __call__(self, state: FlowState):
        if state.status != FlowStatus.NAMING:
            return
        message = state.progress_message
        if message and message != self._last_message:
            self._last_message = message
            counts = ""
            if state.total_nodes:
                counts = f" [{state.completed_nodes}/{state.total_nodes} nodes]"
            print(f"  … {message}{counts}")
        if state.error and state.error != self._last_error:
            self._last_error = state.error
            print(f"  ✗ {state.error}")


def print_results(results: tuple[NamingResult, ...] | list[NamingResult], limit: int = 20):
    """Print a preview table of naming results."""
    print("\n" + "=" * 60)
    print(f"RESULTS ({len(results)})")
    print("=" * 60)
    for result in list(results)[:limit]:
        print(
            f"  #{result.mark_id:<4} {result.original_name[:28]:<28} → "
            f"{result.suggested_name} ({result.confidence:.0%})"
        )
    if len(results) > limit:
        print(f"  … and {len(results) - limit} more")


def format_results(results, fmt: str) -> str:
    """Render results as ``json`` or ``csv`` text, in the server export's column order."""
    if fmt == "csv":
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_COLUMNS)
        for r in results:
            writer.writerow([r.node_id, r.original_name, r.suggested_name, r.confidence, r.mark_id])
        return buffer.getvalue()

    payload = [r.model_dump(by_alias=True) for r in results]
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


def write_results(results, output_path: Path) -> Path:
    """Write results to ``output_path``; the extension picks CSV or JSON."""
    fmt = "csv" if output_path.suffix.lower() == ".csv" else "json"
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(format_results(results, fmt), encoding="utf-8")
    return output_path
