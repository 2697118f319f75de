"""Append-only log of evaluation results."""

import json
import sqlite3
import uuid
from datetime import datetime

from deal_board.models.results import EvaluationResult, EvaluationStage, MatchOutcome, MatchState

from .db import SqliteStore


def results_from_outcome(outcome: MatchOutcome) -> list[EvaluationResult]:
    """One record per stage actually run, plus the decision record, all sharing one run id."""
    common = {
        "run_id": uuid.uuid4().hex,
        "deal_id": outcome.deal_id,
        "investor_id": outcome.investor_id,
        "filter_set_version": outcome.filter_set_version,
        "deal_version": outcome.deal_version,
    }
    results: list[EvaluationResult] = []
    if outcome.assessment is not None:
        a = outcome.assessment
        results.append(
            EvaluationResult(
                stage=EvaluationStage.ASSESSMENT,
                passed=a.passed,
                score=a.score,
                reasons=[o.reason for o in a.outcomes if not o.matched],
                **common,
            )
        )
    if outcome.risk is not None:
        results.append(
            EvaluationResult(
                stage=EvaluationStage.RISK,
                passed=outcome.risk.passed,
                reasons=outcome.risk.reasons,
                **common,
            )
        )
    decision_reasons: list[str] = []
    if outcome.state == MatchState.REJECTED:
        decision_reasons = ["status: rejected"]
    elif outcome.risk is not None:
        decision_reasons = outcome.risk.reasons
    elif outcome.assessment is not None and not outcome.assessment.passed:
        decision_reasons = [f"score {outcome.score} below threshold {outcome.assessment.threshold}"]
    results.append(
        EvaluationResult(
            stage=EvaluationStage.DECISION,
            passed=outcome.visible,
            score=outcome.score,
            state=outcome.state,
            reasons=decision_reasons,
            **common,
        )
    )
    return results


class EvaluationLog(SqliteStore):
    """SQLite store of EvaluationResult records. Never updated, only appended."""

    def append(self, results: list[EvaluationResult]) -> None:
        if not results:
            return
        with self._write_transaction() as conn:
            conn.executemany(
                """
                INSERT INTO evaluations (run_id, deal_id, investor_id, stage, passed, score, state, reasons,
                                         filter_set_version, deal_version, evaluated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        r.run_id,
                        r.deal_id,
                        r.investor_id,
                        r.stage.value,
                        None if r.passed is None else int(r.passed),
                        r.score,
                        r.state.value if r.state else None,
                        json.dumps(r.reasons),
                        r.filter_set_version,
                        r.deal_version,
                        r.evaluated_at.isoformat(),
                    )
                    for r in results
                ],
            )

    def record(self, outcome: MatchOutcome) -> None:
        """Append the stage records for one matching run."""
        self.append(results_from_outcome(outcome))

    def _row_to_result(self, row: sqlite3.Row) -> EvaluationResult:
        return EvaluationResult(
            id=row["id"],
            run_id=row["run_id"],
            deal_id=row["deal_id"],
            investor_id=row["investor_id"],
            stage=EvaluationStage(row["stage"]),
            passed=None if row["passed"] is None else bool(row["passed"]),
            score=row["score"],
            state=MatchState(row["state"]) if row["state"] else None,
            reasons=json.loads(row["reasons"]),
            filter_set_version=row["filter_set_version"],
            deal_version=row["deal_version"],
            evaluated_at=datetime.fromisoformat(row["evaluated_at"]),
        )

    def latest(self, deal_id: str, investor_id: str) -> dict[EvaluationStage, EvaluationResult]:
        """
        Records of the newest run for (deal, investor), keyed by stage.
        Newest versions win over insertion order; stages a later run skipped are absent.
        """
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM evaluations WHERE deal_id = ? AND investor_id = ?
                ORDER BY filter_set_version DESC, deal_version DESC, id DESC
                """,
                (deal_id, investor_id),
            ).fetchall()
        latest: dict[EvaluationStage, EvaluationResult] = {}
        if not rows:
            return latest
        run_id = rows[0]["run_id"]
        for row in rows:
            if row["run_id"] != run_id:
                continue
            latest[EvaluationStage(row["stage"])] = self._row_to_result(row)
        return latest

    def latest_decisions(self, deal_id: str, deal_version: int) -> dict[str, EvaluationResult]:
        """Latest decision per investor for the given deal version."""
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM evaluations
                WHERE deal_id = ? AND deal_version = ? AND stage = ?
                ORDER BY filter_set_version DESC, id DESC
                """,
                (deal_id, deal_version, EvaluationStage.DECISION.value),
            ).fetchall()
        decisions: dict[str, EvaluationResult] = {}
        for row in rows:
            decisions.setdefault(row["investor_id"], self._row_to_result(row))
        return decisions

    def history(self, deal_id: str, investor_id: str) -> list[EvaluationResult]:
        """Every record for (deal, investor), oldest first."""
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM evaluations WHERE deal_id = ? AND investor_id = ? ORDER BY id",
                (deal_id, investor_id),
            ).fetchall()
        return [self._row_to_result(r) for r in rows]
