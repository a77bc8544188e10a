"""Demo runner: generate a colloquium plan from sample JSON.

This is meant for quick validation of the engine without the UI.

Usage:
    python scripts/run_colloquium_demo.py [path/to/problem.json]

"""

from __future__ import annotations

import logging
from pathlib import Path
import sys

import pandas as pd

# Ensure project root is on PYTHONPATH when running as a script
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from colloquium import compute_metrics, generate_schedule, load_planning_input_from_json
from utils.plan_export import df_to_markdown, plan_df, staff_workload_df


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    problem_path = Path(sys.argv[1]) if len(sys.argv) > 1 else ROOT / "data" / "sample_colloquium_problem.json"
    planning = load_planning_input_from_json(str(problem_path))

    events, conflicts = generate_schedule(
        planning.exams,
        planning.staff,
        planning.room_mappings,
        planning.config,
        "demo",
    )

    print("\n=== Colloquium Plan ===")
    print(df_to_markdown(plan_df(events, planning.exams, planning.staff)))

    print("\n=== Staff Workload ===")
    print(staff_workload_df(events, planning.exams, planning.staff).to_string(index=False))

    print("\n=== Conflicts ===")
    if not conflicts:
        print("none")
    else:
        df = pd.DataFrame(
            [{"severity": c.severity.value, "kind": c.kind.value, "message": c.message} for c in conflicts]
        )
        print(df.to_string(index=False))

    print("\n=== Metrics ===")
    for k, v in compute_metrics(events, planning.exams, planning.config).items():
        print(f"{k}: {v}")


if __name__ == "__main__":
    main()
