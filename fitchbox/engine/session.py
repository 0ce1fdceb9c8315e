"""
Verification Session for Fitchbox.

Connects an editable Proof to the verifier for an interactive host:

    - Edits mark affected lines UNCHECKED until the next pass finishes
      (an edited line plus every line that transitively cites it; any
      insertion or removal marks the whole proof).
    - Passes run on immutable snapshots, inline or on an executor.
    - Publication is last-write-wins: a pass whose ticket has been
      superseded, or whose snapshot is older than the document, is
      discarded and never shown.

At most one pass per document is expected to be in flight at a time,
but publication stays consistent if several overlap.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Optional

from ..config import VerifierConfig
from ..diagnostics import LineDiagnostic
from ..proof import EditKind, Proof, ProofEdit, ProofStructure
from .verifier import VerificationReport, verify_proof

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PassTicket:
    """Identifies one requested pass and the snapshot it must check."""
    number: int
    structure: ProofStructure
    config: VerifierConfig


class VerificationSession:
    def __init__(self, proof: Proof, config: Optional[VerifierConfig] = None):
        self.proof = proof
        self._config = config or VerifierConfig()
        self._lock = threading.Lock()
        self._latest_ticket = 0
        self._report: Optional[VerificationReport] = None
        self._diagnostics: list[LineDiagnostic] = [
            LineDiagnostic.unchecked(n) for n in range(1, len(proof) + 1)
        ]
        proof.subscribe(self._on_edit)

    # -------------------------------------------------------------------------
    # Displayed state
    # -------------------------------------------------------------------------

    @property
    def config(self) -> VerifierConfig:
        return self._config

    @config.setter
    def config(self, config: VerifierConfig) -> None:
        with self._lock:
            self._config = config
            self._mark_all_unchecked()

    @property
    def report(self) -> Optional[VerificationReport]:
        """The last published report, possibly for an older revision."""
        return self._report

    @property
    def diagnostics(self) -> tuple[LineDiagnostic, ...]:
        """What a host should display right now, one entry per current line."""
        with self._lock:
            return tuple(self._diagnostics)

    def _mark_all_unchecked(self) -> None:
        self._diagnostics = [
            LineDiagnostic.unchecked(n) for n in range(1, len(self.proof) + 1)
        ]

    def _on_edit(self, edit: ProofEdit) -> None:
        with self._lock:
            if edit.kind != EditKind.EDIT or len(self._diagnostics) != len(self.proof):
                self._mark_all_unchecked()
                return

            structure = self.proof.snapshot()
            number = edit.numbers[0]
            for affected in {number} | structure.dependents(number):
                self._diagnostics[affected - 1] = LineDiagnostic.unchecked(affected)

    # -------------------------------------------------------------------------
    # Passes
    # -------------------------------------------------------------------------

    def begin(self) -> PassTicket:
        """Request a pass over the current snapshot, superseding older ones."""
        with self._lock:
            self._latest_ticket += 1
            return PassTicket(
                number=self._latest_ticket,
                structure=self.proof.snapshot(),
                config=self._config,
            )

    def complete(self, ticket: PassTicket, report: VerificationReport) -> bool:
        """
        Publish a finished pass.

        Returns:
            True if published, False if the pass was stale and discarded.
        """
        with self._lock:
            stale = (
                ticket.number != self._latest_ticket
                or ticket.config != self._config
                or report.revision != self.proof.revision
            )
            if stale:
                logger.debug(
                    "Discarding stale pass %d (revision %d, document at %d)",
                    ticket.number,
                    report.revision,
                    self.proof.revision,
                )
                return False

            self._report = report
            self._diagnostics = list(report.diagnostics)
            return True

    def run(self) -> VerificationReport:
        """Verify the current snapshot inline and publish the result."""
        ticket = self.begin()
        report = verify_proof(ticket.structure, ticket.config)
        self.complete(ticket, report)
        return report

    def submit(self, executor: Executor) -> Future:
        """
        Verify on `executor`; the result is published when the pass ends,
        unless a newer pass or an edit has superseded it.
        """
        ticket = self.begin()
        future = executor.submit(verify_proof, ticket.structure, ticket.config)

        def publish(done: Future) -> None:
            if not done.cancelled() and done.exception() is None:
                self.complete(ticket, done.result())

        future.add_done_callback(publish)
        return future
