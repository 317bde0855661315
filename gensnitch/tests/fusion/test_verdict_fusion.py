"""
Tests for signal fusion.

Fusion is pure: every test builds signals by hand and inspects the
verdict, confidence bucket and notes.
"""

import pytest

from gensnitch.app.fusion.verdict import (
    AI_EVIDENCE_NOTE,
    C2PA_DETECTED_NOTE,
    NO_EVIDENCE_NOTE,
    NO_METADATA_NOTE,
    determine_verdict,
    evidence_score,
    fuse,
)
from gensnitch.app.schemas.report import Confidence, Verdict
from gensnitch.app.schemas.signals import (
    AnalysisSignals,
    C2PAResult,
    CertificateInfo,
    ManifestSummary,
    MetadataResult,
    PngTextResult,
    TextChunk,
    TrustLevel,
    ValidationStatus,
)


def signals(c2pa=None, metadata=None, png_text=None) -> AnalysisSignals:
    return AnalysisSignals(
        c2pa=c2pa or C2PAResult(available=True, present=False),
        metadata=metadata or MetadataResult(found=False),
        png_text=png_text or PngTextResult(found=False),
    )


def manifest(
    validated=ValidationStatus.UNKNOWN,
    trust=TrustLevel.UNKNOWN,
    **summary,
) -> C2PAResult:
    return C2PAResult(
        available=True,
        present=True,
        validated=validated,
        trust=trust,
        summary=ManifestSummary(**summary),
    )


def sd_chunks() -> PngTextResult:
    return PngTextResult(
        found=True,
        chunks=[TextChunk(key="parameters", value="a cat\nSteps: 20, Sampler: Euler")],
        ai_indicators=["PNG key: parameters", "steps:", "sampler:"],
    )


# ---------------------------------------------------------------------------
# Verdict precedence
# ---------------------------------------------------------------------------

def test_nothing_found_is_no_evidence_with_low_confidence():
    outcome = fuse(signals())

    assert outcome.verdict is Verdict.NO_EVIDENCE
    assert outcome.confidence is Confidence.LOW
    assert outcome.notes == [NO_METADATA_NOTE, NO_EVIDENCE_NOTE]


def test_ai_assertion_wins_even_without_other_evidence():
    result = signals(c2pa=manifest(ai_assertions=["c2pa.ai_generated"]))

    assert determine_verdict(result) is Verdict.AI_EVIDENCE


@pytest.mark.parametrize(
    "summary",
    [
        {"claim_generator": "Adobe Firefly 2.1"},
        {"issuer": "OpenAI"},
        {"certificate": CertificateInfo(subject="CN=Midjourney Signing")},
        {"certificate": CertificateInfo(issuer="Stability AI Root CA")},
    ],
)
def test_manifest_naming_a_generative_tool(summary):
    assert determine_verdict(signals(c2pa=manifest(**summary))) is Verdict.AI_EVIDENCE


def test_manifest_from_ordinary_tool_is_not_evidence():
    result = signals(
        c2pa=manifest(
            validated=ValidationStatus.VALID,
            trust=TrustLevel.UNTRUSTED,
            claim_generator="Photoshop 25.0",
            actions=["c2pa.created", "c2pa.edited"],
        )
    )

    assert determine_verdict(result) is Verdict.NO_EVIDENCE


def test_metadata_indicator_alone_is_evidence():
    result = signals(
        metadata=MetadataResult(found=True, ai_indicators=["Description: ai generated"])
    )

    assert determine_verdict(result) is Verdict.AI_EVIDENCE


def test_png_indicator_alone_is_evidence():
    assert determine_verdict(signals(png_text=sd_chunks())) is Verdict.AI_EVIDENCE


@pytest.mark.parametrize(
    "metadata",
    [
        MetadataResult(found=True, software="Midjourney v6"),
        MetadataResult(found=True, creator_tool="ComfyUI"),
    ],
)
def test_metadata_tool_name_is_evidence(metadata):
    assert determine_verdict(signals(metadata=metadata)) is Verdict.AI_EVIDENCE


def test_unavailable_verifier_is_no_provenance_signal():
    result = signals(
        c2pa=C2PAResult(
            available=False,
            present=False,
            errors=["C2PA initialization failed: boom"],
        )
    )

    outcome = fuse(result)

    assert outcome.verdict is Verdict.NO_EVIDENCE
    assert outcome.confidence is Confidence.LOW
    assert outcome.notes[0] == "C2PA initialization failed: boom"


# ---------------------------------------------------------------------------
# Confidence
# ---------------------------------------------------------------------------

def test_ai_assertion_with_valid_signature_is_high():
    result = signals(
        c2pa=manifest(
            validated=ValidationStatus.VALID,
            ai_assertions=["c2pa.ai_generated"],
        )
    )

    assert evidence_score(result) == 5
    assert fuse(result).confidence is Confidence.HIGH


def test_tool_named_in_unverified_manifest_is_medium():
    result = signals(c2pa=manifest(claim_generator="DALL-E 3"))

    assert evidence_score(result) == 4
    assert fuse(result).confidence is Confidence.MEDIUM


def test_tool_named_only_in_certificate_scores_no_tool_weight():
    result = signals(
        c2pa=manifest(
            validated=ValidationStatus.VALID,
            claim_generator="Photoshop 25",
            certificate=CertificateInfo(subject="OpenAI Signing"),
        )
    )

    outcome = fuse(result)

    assert outcome.verdict is Verdict.AI_EVIDENCE
    assert evidence_score(result) == 2
    assert outcome.confidence is Confidence.MEDIUM


def test_single_metadata_indicator_is_low():
    result = signals(
        metadata=MetadataResult(found=True, ai_indicators=["Software: steps:"])
    )

    assert fuse(result).confidence is Confidence.LOW


def test_indicator_contribution_is_capped():
    result = signals(
        metadata=MetadataResult(
            found=True,
            ai_indicators=[f"Description: marker {i}" for i in range(10)],
        )
    )

    assert evidence_score(result) == 3


def test_sd_parameters_push_png_evidence_to_high():
    result = signals(png_text=sd_chunks())

    assert evidence_score(result) == 6
    assert fuse(result).confidence is Confidence.HIGH


def test_tool_name_in_software_with_no_indicators_is_low():
    result = signals(metadata=MetadataResult(found=True, software="Midjourney v6"))

    outcome = fuse(result)

    assert outcome.verdict is Verdict.AI_EVIDENCE
    assert outcome.confidence is Confidence.LOW


def test_no_evidence_with_valid_manifest_is_high():
    result = signals(
        c2pa=manifest(
            validated=ValidationStatus.VALID,
            trust=TrustLevel.TRUSTED,
            claim_generator="Leica M11",
        )
    )

    outcome = fuse(result)

    assert outcome.verdict is Verdict.NO_EVIDENCE
    assert outcome.confidence is Confidence.HIGH


def test_no_evidence_with_plain_metadata_is_medium():
    result = signals(metadata=MetadataResult(found=True, make="Canon"))

    assert fuse(result).confidence is Confidence.MEDIUM


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------

def test_notes_restate_manifest_then_metadata_then_verdict():
    result = signals(
        c2pa=manifest(
            validated=ValidationStatus.VALID,
            trust=TrustLevel.UNTRUSTED,
            claim_generator="Adobe Firefly",
            ai_assertions=["c2pa.ai_generated"],
        ),
        metadata=MetadataResult(found=True, software="Adobe Firefly", creator_tool="Firefly"),
    )

    assert fuse(result).notes == [
        C2PA_DETECTED_NOTE,
        "C2PA signature: valid, issuer trust: untrusted",
        "Claim generator: Adobe Firefly",
        "C2PA AI assertions: c2pa.ai_generated",
        "Software: Adobe Firefly",
        "Creator Tool: Firefly",
        AI_EVIDENCE_NOTE,
    ]


def test_notes_count_relevant_png_chunks():
    result = signals(
        png_text=PngTextResult(
            found=True,
            chunks=[
                TextChunk(key="parameters", value="Steps: 20"),
                TextChunk(key="Comment", value="hello"),
                TextChunk(key="Title", value="cat"),
            ],
            ai_indicators=["PNG key: parameters", "steps:"],
        )
    )

    notes = fuse(result).notes

    assert "Found 2 relevant PNG text chunk(s)" in notes
    assert "PNG text AI indicators: PNG key: parameters, steps:" in notes


def test_c2pa_errors_lead_the_notes():
    result = signals(
        c2pa=C2PAResult(
            available=True,
            present=False,
            errors=["C2PA error: bad box"],
        )
    )

    assert fuse(result).notes[0] == "C2PA error: bad box"


def test_fusion_is_deterministic():
    result = signals(
        c2pa=manifest(claim_generator="ChatGPT"),
        metadata=MetadataResult(found=True, ai_indicators=["Artist: ai-generated"]),
        png_text=sd_chunks(),
    )

    assert fuse(result) == fuse(result)
