"""Text views of a plan: a stage graph and a job table.

A plan is given as a sequence of stages, each an iterable of runs. A run's
``str()`` is its job name; it also has ``job_id`` and a ``workflow`` with
``name``, ``file`` and ``on`` (a list of events, or a method returning one).
"""

from __future__ import annotations

import sys
from typing import Any, Iterable, Optional, TextIO

from .draw import Pen, Style

_DUPLICATE_NOTICE = (
    "\nDetected multiple jobs with the same job name, "
    "use `-W` to specify the path to the specific workflow.\n"
)


def draw_graph(stages: Iterable[Iterable[Any]], out: Optional[TextIO] = None) -> None:
    """Draw each stage as a row of boxes, with arrows between stages."""
    out = out if out is not None else sys.stdout
    job_pen = Pen(Style.SINGLE_LINE, 96)
    arrow_pen = Pen(Style.NO_LINE, 97)
    drawings = []
    for index, stage in enumerate(stages):
        if index > 0:
            drawings.append(arrow_pen.draw_arrow())
        drawings.append(job_pen.draw_boxes(*(str(run) for run in stage)))
    max_width = max((drawing.width for drawing in drawings), default=0)
    for drawing in drawings:
        drawing.draw(out, max_width)


def _events(workflow: Any) -> list[str]:
    events = workflow.on
    return list(events() if callable(events) else events)


def print_list(stages: Iterable[Iterable[Any]], out: Optional[TextIO] = None) -> None:
    """Print a table of every job in the plan, one row per job."""
    out = out if out is not None else sys.stdout
    header = ("Stage", "Job ID", "Job name", "Workflow name", "Workflow file", "Events")
    rows: list[tuple[str, ...]] = []
    seen: set[str] = set()
    duplicates = False
    for index, stage in enumerate(stages):
        for run in stage:
            job_id = run.job_id
            if job_id in seen:
                duplicates = True
            seen.add(job_id)
            rows.append(
                (
                    str(index),
                    job_id,
                    str(run),
                    run.workflow.name,
                    run.workflow.file,
                    ",".join(_events(run.workflow)),
                )
            )

    widths = [max(len(row[col]) for row in [header, *rows]) for col in range(len(header))]
    widths = [width + 2 for width in widths[:-1]] + [widths[-1]]
    for row in [header, *rows]:
        out.write("".join(f"{cell:<{width}}" for cell, width in zip(row, widths)) + "\n")
    if duplicates:
        out.write(_DUPLICATE_NOTICE)