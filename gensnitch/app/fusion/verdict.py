"""
Signal fusion / verdict engine.

Pure functions over ``AnalysisSignals``: deterministic, no I/O, no hidden
state. Calling them twice with identical inputs always yields identical
outputs.

Verdict precedence (first match wins):

    1. manifest present with any AI assertion
    2. manifest present, generator / issuer / certificate names a
       generative tool
    3. manifest present, a creation action, and generator or issuer names
       a generative tool
    4. metadata AI indicators
    5. PNG text AI indicators
    6. metadata software / creator tool names a generative tool
    7. otherwise NO_EVIDENCE

An unavailable verifier is simply "no provenance signal".

NO_EVIDENCE never means "authentic".
"""

from __future__ import annotations

from typing import List, NamedTuple, Optional

from gensnitch.app.heuristics import HeuristicTables, get_heuristic_tables, matches_any
from gensnitch.app.schemas.report import Confidence, Verdict
from gensnitch.app.schemas.signals import (
    AnalysisSignals,
    ManifestSummary,
    ValidationStatus,
)

# Score weights for AI_EVIDENCE confidence
TOOL_MATCH_WEIGHT = 4
AI_ASSERTION_WEIGHT = 3
VALID_SIGNATURE_WEIGHT = 2
INDICATOR_CAP = 3
SD_PARAMETERS_WEIGHT = 3

HIGH_THRESHOLD = 5
MEDIUM_THRESHOLD = 2

C2PA_DETECTED_NOTE = "C2PA/Content Credentials signature detected in image"
NO_METADATA_NOTE = "No EXIF/XMP metadata found in image"
AI_EVIDENCE_NOTE = (
    "Evidence suggests this image may have been created or modified by AI tools"
)
NO_EVIDENCE_NOTE = (
    "No evidence of AI generation found in available metadata. "
    "This does NOT guarantee the image is authentic."
)


class FusionOutcome(NamedTuple):
    verdict: Verdict
    confidence: Confidence
    notes: List[str]


# ---------------------------------------------------------------------------
# Manifest predicates
# ---------------------------------------------------------------------------

def _summary(signals: AnalysisSignals) -> Optional[ManifestSummary]:
    if not signals.c2pa.present:
        return None
    return signals.c2pa.summary or ManifestSummary()


def manifest_names_tool(
    summary: ManifestSummary,
    tables: HeuristicTables,
    *,
    include_certificate: bool = True,
) -> bool:
    candidates = [summary.claim_generator, summary.issuer]
    if include_certificate and summary.certificate is not None:
        candidates += [summary.certificate.subject, summary.certificate.issuer]
    return any(matches_any(c, tables.generative_tools) for c in candidates)


def has_creation_action(summary: ManifestSummary, tables: HeuristicTables) -> bool:
    return any(
        matches_any(action, tables.creation_action_markers)
        for action in summary.actions
    )


def has_sd_parameters(signals: AnalysisSignals) -> bool:
    """A ``parameters`` chunk carrying a ``steps:`` token."""
    return any(
        chunk.key.lower() == "parameters" and "steps:" in chunk.value.lower()
        for chunk in signals.png_text.chunks
    )


# ---------------------------------------------------------------------------
# Verdict
# ---------------------------------------------------------------------------

def determine_verdict(
    signals: AnalysisSignals,
    tables: Optional[HeuristicTables] = None,
) -> Verdict:
    tables = tables or get_heuristic_tables()
    summary = _summary(signals)

    if summary is not None:
        if summary.ai_assertions:
            return Verdict.AI_EVIDENCE

        if manifest_names_tool(summary, tables):
            return Verdict.AI_EVIDENCE

        if has_creation_action(summary, tables) and manifest_names_tool(
            summary, tables, include_certificate=False
        ):
            return Verdict.AI_EVIDENCE

    if signals.metadata.ai_indicators:
        return Verdict.AI_EVIDENCE

    if signals.png_text.ai_indicators:
        return Verdict.AI_EVIDENCE

    if matches_any(signals.metadata.software, tables.generative_tools) or matches_any(
        signals.metadata.creator_tool, tables.generative_tools
    ):
        return Verdict.AI_EVIDENCE

    return Verdict.NO_EVIDENCE


# ---------------------------------------------------------------------------
# Confidence
# ---------------------------------------------------------------------------

def evidence_score(
    signals: AnalysisSignals,
    tables: Optional[HeuristicTables] = None,
) -> int:
    tables = tables or get_heuristic_tables()
    score = 0

    summary = _summary(signals)
    if summary is not None:
        # Certificate fields decide the verdict but carry no score weight.
        if manifest_names_tool(summary, tables, include_certificate=False):
            score += TOOL_MATCH_WEIGHT
        if summary.ai_assertions:
            score += AI_ASSERTION_WEIGHT
        if signals.c2pa.validated is ValidationStatus.VALID:
            score += VALID_SIGNATURE_WEIGHT

    score += min(len(signals.metadata.ai_indicators), INDICATOR_CAP)
    score += min(len(signals.png_text.ai_indicators), INDICATOR_CAP)

    if has_sd_parameters(signals):
        score += SD_PARAMETERS_WEIGHT

    return score


def calculate_confidence(
    verdict: Verdict,
    signals: AnalysisSignals,
    tables: Optional[HeuristicTables] = None,
) -> Confidence:
    if verdict is Verdict.ERROR:
        return Confidence.LOW

    if verdict is Verdict.NO_EVIDENCE:
        # Confidence in the analysis, not in authenticity.
        if signals.c2pa.present and signals.c2pa.validated is ValidationStatus.VALID:
            return Confidence.HIGH
        if signals.metadata.found or signals.png_text.found:
            return Confidence.MEDIUM
        return Confidence.LOW

    score = evidence_score(signals, tables)
    if score >= HIGH_THRESHOLD:
        return Confidence.HIGH
    if score >= MEDIUM_THRESHOLD:
        return Confidence.MEDIUM
    return Confidence.LOW


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------

def generate_notes(
    signals: AnalysisSignals,
    verdict: Verdict,
    tables: Optional[HeuristicTables] = None,
) -> List[str]:
    """Ordered notes restating the extracted fields, then the verdict."""
    tables = tables or get_heuristic_tables()
    notes: List[str] = list(signals.c2pa.errors)

    summary = _summary(signals)
    if summary is not None:
        notes.append(C2PA_DETECTED_NOTE)
        notes.append(
            f"C2PA signature: {signals.c2pa.validated.value}, "
            f"issuer trust: {signals.c2pa.trust.value}"
        )
        if summary.claim_generator:
            notes.append(f"Claim generator: {summary.claim_generator}")
        if summary.ai_assertions:
            notes.append(f"C2PA AI assertions: {', '.join(summary.ai_assertions)}")

    metadata = signals.metadata
    if metadata.found:
        if metadata.software:
            notes.append(f"Software: {metadata.software}")
        if metadata.creator_tool:
            notes.append(f"Creator Tool: {metadata.creator_tool}")
        if metadata.ai_indicators:
            notes.append(
                f"Metadata AI indicators: {', '.join(metadata.ai_indicators)}"
            )
    else:
        notes.append(NO_METADATA_NOTE)

    png_text = signals.png_text
    if png_text.found:
        notable = [
            chunk
            for chunk in png_text.chunks
            if chunk.key.lower() in tables.notable_png_keys
        ]
        if notable:
            notes.append(f"Found {len(notable)} relevant PNG text chunk(s)")
        if png_text.ai_indicators:
            notes.append(
                f"PNG text AI indicators: {', '.join(png_text.ai_indicators)}"
            )

    if verdict is Verdict.AI_EVIDENCE:
        notes.append(AI_EVIDENCE_NOTE)
    elif verdict is Verdict.NO_EVIDENCE:
        notes.append(NO_EVIDENCE_NOTE)

    return notes


def fuse(
    signals: AnalysisSignals,
    tables: Optional[HeuristicTables] = None,
) -> FusionOutcome:
    tables = tables or get_heuristic_tables()
    verdict = determine_verdict(signals, tables)
    return FusionOutcome(
        verdict=verdict,
        confidence=calculate_confidence(verdict, signals, tables),
        notes=generate_notes(signals, verdict, tables),
    )
