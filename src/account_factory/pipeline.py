"""Simple runner for the ordered per-account provisioning steps."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .errors import StepFailedError

logger = logging.getLogger(__name__)

PipelineContext = Dict[str, object]


@dataclass(slots=True)
class PipelineStep:
    name: str
    action: Callable[[PipelineContext], None]
    when: Optional[Callable[[PipelineContext], bool]] = None


class PipelineRunner:
    """Runs steps strictly in order; the first failure stops the pipeline.

    Nothing is rolled back: remote state stays exactly as far as it progressed.
    """

    def __init__(self) -> None:
        self._log = logger

    def run(self, steps: list[PipelineStep], context: PipelineContext) -> PipelineContext:
        for step in steps:
            if step.when is not None and not step.when(context):
                self._log.debug("Skipping pipeline step '%s'", step.name)
                continue
            self._log.info("Running pipeline step '%s'", step.name)
            try:
                step.action(context)
            except Exception as exc:  # noqa: BLE001 - wrapped with the step name and re-raised
                self._log.error("Pipeline step '%s' failed: %s", step.name, exc)
                raise StepFailedError(step.name, exc) from exc
        return context
