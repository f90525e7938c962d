"""Formula session demo runner.

Replays a scripted editing session (typing, picking variables, a
division by zero, backspacing over a whole tag) and writes a
deterministic summary JSON of the formula and result after each step.
No timestamps or session ids are printed.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

_DEMO_DIR = Path(__file__).parent

# (action, argument): "keys" presses each character, "pick" searches and
# presses Enter, "press" sends a single named key.
_SCRIPT: list[tuple[str, str]] = [
    ("keys", "("),
    ("pick", "Revenue"),
    ("keys", "-"),
    ("pick", "Expenses"),
    ("keys", ")*(1-"),
    ("pick", "TaxRate"),
    ("keys", ")"),
    ("keys", "/0"),
    ("press", "Backspace"),
    ("press", "Backspace"),
    ("keys", "/"),
    ("pick", "Employees"),
    ("press", "Backspace"),
    ("keys", "4"),
]


def run_demo(output_dir: Path | None = None) -> dict[str, Any]:
    """Execute the scripted session end-to-end.

    Args:
        output_dir: Directory to write output files. Defaults to the demo directory.

    Returns:
        Summary dict with one entry per script step.
    """
    from tagcalc.session import FormulaSession

    out = output_dir or _DEMO_DIR
    session = FormulaSession(session_id="demo")

    steps: list[dict[str, Any]] = []
    for action, arg in _SCRIPT:
        if action == "keys":
            session.type_keys(arg)
        elif action == "pick":
            session.type_search(arg)
            session.press("Enter")
        else:
            session.press(arg)

        result = session.result
        steps.append({
            "action": f"{action} {arg}",
            "formula": session.text,
            "cursor": session.cursor,
            "tags": [t.name for t in session.buffer.sorted_tags()],
            "display": result.display(),
        })
        print(f"{session.text:<40} -> {result.display()}")

    summary = {
        "demo": "formula_session",
        "final_formula": session.text,
        "final_value": session.result.value,
        "steps": steps,
    }

    summary_path = out / "formula_session_summary.json"
    summary_path.write_text(json.dumps(summary, indent=2, sort_keys=True) + "\n")
    return summary
