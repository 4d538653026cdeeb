"""
Per-run context passed explicitly to every layer.

Each layer records one StepOutcome per relation it produces; the orchestrator
reads them back from the context instead of any module-level timing state.
"""

import time
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterator, List, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)

SUCCESS = "success"
FAILURE = "failure"


@dataclass
class StepOutcome:
    """Structured outcome of producing one relation."""
    entity: str
    rows_in: int = 0
    rows_out: int = 0
    duration: float = 0.0
    status: str = SUCCESS
    message: str = ""
    layer: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCESS

    def as_dict(self) -> dict:
        return {
            "layer": self.layer,
            "entity": self.entity,
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
            "duration": round(self.duration, 3),
            "status": self.status,
            "message": self.message,
        }


@dataclass
class RunContext:
    """Identity, reference date and accumulated outcomes of one pipeline run."""
    run_id: str = field(default_factory=lambda: str(uuid4())[:8])
    as_of: date = field(default_factory=date.today)
    started_at: datetime = field(default_factory=datetime.now)
    max_workers: int = 1
    outcomes: List[StepOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return all(o.succeeded for o in self.outcomes)

    def outcomes_for(self, layer: str) -> List[StepOutcome]:
        return [o for o in self.outcomes if o.layer == layer]

    def record(self, outcome: StepOutcome) -> StepOutcome:
        self.outcomes.append(outcome)
        log_fn = logger.info if outcome.succeeded else logger.error
        log_fn(
            f"[{outcome.status.upper()}] {outcome.layer}.{outcome.entity}: "
            f"{outcome.rows_in} in, {outcome.rows_out} out "
            f"({outcome.duration:.2f}s){' - ' + outcome.message if outcome.message else ''}"
        )
        return outcome

    @contextmanager
    def track(
        self,
        layer: str,
        entity: str,
        rows_in: int = 0,
        elapsed: float = 0.0,
    ) -> Iterator[StepOutcome]:
        """
        Time a unit of work and record its outcome.

        The caller fills in rows_in/rows_out on the yielded outcome. ``elapsed``
        adds time already spent on the entity elsewhere (e.g. in a worker
        thread). An exception marks the outcome as failed, is recorded, and
        propagates.
        """
        outcome = StepOutcome(entity=entity, layer=layer, rows_in=rows_in)
        start = time.perf_counter()
        try:
            yield outcome
        except Exception as e:
            outcome.status = FAILURE
            outcome.message = str(e)
            raise
        finally:
            outcome.duration = elapsed + (time.perf_counter() - start)
            self.record(outcome)

    def summary(self, layer: Optional[str] = None) -> List[dict]:
        outcomes = self.outcomes_for(layer) if layer else self.outcomes
        return [o.as_dict() for o in outcomes]
