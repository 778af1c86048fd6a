"""
Test result selection utilities.
"""

from typing import List, Tuple

from .models import FileOutcome, NodeOutcome, ResultKind, RunSummary, SuiteOutcome


def failed_results(
    summary: RunSummary,
) -> List[Tuple[FileOutcome, SuiteOutcome, NodeOutcome]]:
    """
    Select the nodes that FAILED or ERRORED.

    Args:
        summary: RunSummary of a completed or aborted run

    Returns:
        (file, suite, node) triples in run order
    """
    return [
        (file_outcome, suite, node)
        for file_outcome, suite, node in summary.iter_nodes()
        if node.result in (ResultKind.FAILED, ResultKind.ERROR)
    ]
