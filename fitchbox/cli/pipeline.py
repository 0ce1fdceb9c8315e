"""
Document loading and checking for the Fitchbox CLI.

A proof document is JSON:

    {
        "system": "K",            (optional: K, T, S4 or S5)
        "derived": true,          (optional)
        "goal": "□Q",             (optional)
        "lines": [
            {"depth": 0, "sentence": "□(P → Q)", "justification": "PR"},
            [1, "□", ""],
            ...
        ]
    }

Each line is a dict or a `[depth, sentence, justification]` row, with an
optional `opens` of "ordinary" or "modal" (see Proof.from_rows).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from ..config import VerifierConfig
from ..engine.verifier import VerificationReport, verify_proof
from ..modal.worlds import ModalSystem
from ..proof import DocumentError, Proof

logger = logging.getLogger(__name__)


@dataclass
class ProofDocument:
    """A proof together with the configuration it is meant to be checked under."""
    proof: Proof
    config: VerifierConfig
    source: Optional[str] = None


# =============================================================================
# SAMPLE DATA (For Demo Purposes)
# =============================================================================

SAMPLE_DOCUMENT: dict[str, Any] = {
    "system": "K",
    "goal": "□Q",
    "lines": [
        [0, "□(P → Q)", "PR"],
        [0, "□P", "PR"],
        [1, "□", ""],
        [1, "P → Q", "□E 1"],
        [1, "P", "□E 2"],
        [1, "Q", "→E 4, 5"],
        [0, "□Q", "□I 3-6"],
    ],
}


# =============================================================================
# LOADING
# =============================================================================

def document_from_dict(data: Mapping[str, Any], source: Optional[str] = None) -> ProofDocument:
    """
    Build a document from parsed JSON.

    Raises:
        DocumentError: If lines are missing or do not nest.
        ValueError: On an unknown modal system.
        ParseError: On a malformed goal sentence.
    """
    lines = data.get("lines")
    if not isinstance(lines, list):
        raise DocumentError("Document has no 'lines' list")

    proof = Proof.from_rows(lines, goal=data.get("goal") or None)
    return ProofDocument(proof=proof, config=VerifierConfig.from_dict(data), source=source)


def load_document(path: str) -> ProofDocument:
    """
    Read a JSON proof document from disk.

    Raises:
        OSError: If the file cannot be read.
        json.JSONDecodeError: If it is not JSON.
        DocumentError, ValueError, ParseError: See document_from_dict.
    """
    text = Path(path).read_text(encoding="utf-8")
    data = json.loads(text)
    if not isinstance(data, dict):
        raise DocumentError("Document must be a JSON object")
    logger.debug("Loaded %s with %d line(s)", path, len(data.get("lines") or []))
    return document_from_dict(data, source=path)


# =============================================================================
# CHECKING
# =============================================================================

def override_config(
    config: VerifierConfig,
    system: Optional[str] = None,
    no_derived: bool = False,
) -> VerifierConfig:
    """Apply command-line options over a document's own settings."""
    if system:
        config = replace(config, system=ModalSystem.parse(system))
    if no_derived:
        config = replace(config, derived=False)
    return config


def run_check(document: ProofDocument, config: Optional[VerifierConfig] = None) -> VerificationReport:
    return verify_proof(document.proof, config or document.config)
