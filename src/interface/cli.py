from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from application.service import FinanceAIService, build_service
from domain.schemas import FinanceSnapshot

logger = logging.getLogger(__name__)


def run_snapshot(service: FinanceAIService, snapshot: FinanceSnapshot) -> dict:
    challenge = service.generate_challenge(
        snapshot.transactions, snapshot.budgets, snapshot.completed_challenges
    )
    return {
        "insights": [i.model_dump(mode="json") for i in service.generate_insights(
            snapshot.transactions, snapshot.budgets, snapshot.goals
        )],
        "patterns": [p.model_dump(mode="json") for p in service.analyze_spending_patterns(snapshot.transactions)],
        "anomalies": [a.model_dump(mode="json") for a in service.detect_anomalies(snapshot.transactions)],
        "goal_etas": {
            goal.id: service.calculate_goal_eta(goal, snapshot.transactions).model_dump(mode="json")
            for goal in snapshot.goals
        },
        "challenge": challenge.model_dump(mode="json") if challenge else None,
    }


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print("usage: main.py <snapshot.json>", file=sys.stderr)
        return 2

    path = Path(args[0])
    try:
        snapshot = FinanceSnapshot.model_validate_json(path.read_text(encoding="utf-8"))
    except OSError as exc:
        print(f"[finance-ai] cannot read {path}: {exc}", file=sys.stderr)
        return 1
    except ValidationError as exc:
        print(f"[finance-ai] invalid snapshot {path}: {exc}", file=sys.stderr)
        return 1

    logger.info(
        "CLI analyzing snapshot path=%s transactions=%d budgets=%d goals=%d",
        path, len(snapshot.transactions), len(snapshot.budgets), len(snapshot.goals),
    )
    report = run_snapshot(build_service(), snapshot)
    print(json.dumps(report, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
