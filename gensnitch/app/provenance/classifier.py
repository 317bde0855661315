"""
Manifest trust classifier.

Turns the raw manifest store reported by the external verification
library into the two orthogonal axes callers need:

    validated  - was the signature intact (tamper evidence)?
    trust      - is the signer a member of a trust registry?

The verifier reports a single coarse tri-state (Trusted / Valid /
Invalid) in which "Invalid" conflates "tampered" with "signer not
recognized". The structured success/failure code lists are used to
decompose it:

    state     signature ok   only trust failures   validated   trust
    -------   ------------   -------------------   ---------   ---------
    Trusted   -              -                     valid       trusted
    Valid     -              -                     valid       untrusted
    Invalid   yes            yes                   valid       untrusted
    Invalid   yes            no                    valid       unknown
    Invalid   no             -                     invalid     unknown

Without a tri-state, the flat ``validation_status`` code list is used: a
code naming a signature error/invalidity means ``invalid`` (else
``valid``), a code naming ``untrusted`` means ``untrusted`` (else
``unknown``). Any other, unrecognized, state degrades to unknown/unknown.

Mixed failures (a tamper-related code next to a trust-related one) yield
valid/unknown.
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from gensnitch.app.heuristics import HeuristicTables, get_heuristic_tables, matches_any
from gensnitch.app.provenance.trust_list import normalize_fingerprint
from gensnitch.app.schemas.signals import (
    C2PAResult,
    CertificateInfo,
    ManifestSummary,
    TrustLevel,
    ValidationStatus,
)

SIGNATURE_SUCCESS_CODES = frozenset(
    {
        "claimSignature.validated",
        "claimSignature.insideValidity",
    }
)

MAX_INGREDIENTS = 5
UNKNOWN_INGREDIENT = "Unknown ingredient"

# Signature-info keys under which a verifier may report the signing
# certificate's SHA-256 fingerprint.
FINGERPRINT_KEYS = ("cert_sha256", "cert_fingerprint", "certificate_sha256")


# ---------------------------------------------------------------------------
# Result constructors
# ---------------------------------------------------------------------------

def unavailable_result(error: str) -> C2PAResult:
    """Verification capability could not be used (soft failure)."""
    return C2PAResult(available=False, present=False, errors=[error])


def absent_result() -> C2PAResult:
    """Verification ran and found no manifest."""
    return C2PAResult(available=True, present=False)


def read_error_result(error: str) -> C2PAResult:
    """Verification ran but the manifest could not be read."""
    return C2PAResult(available=True, present=False, errors=[f"C2PA error: {error}"])


# ---------------------------------------------------------------------------
# Validation decomposition
# ---------------------------------------------------------------------------

def _codes(entries: Optional[Iterable[Any]]) -> List[str]:
    if not entries:
        return []
    return [
        str(entry.get("code"))
        for entry in entries
        if isinstance(entry, dict) and entry.get("code")
    ]


def _active_results(store: Dict[str, Any]) -> Dict[str, Any]:
    results = store.get("validation_results")
    if not isinstance(results, dict):
        return {}
    active = results.get("activeManifest")
    return active if isinstance(active, dict) else {}


def classify_validation(
    store: Dict[str, Any],
) -> Tuple[ValidationStatus, TrustLevel]:
    """Apply the decision table to a manifest store."""
    state = store.get("validation_state")

    if state is None:
        return _classify_from_status_list(store.get("validation_status"))

    if state == "Trusted":
        return ValidationStatus.VALID, TrustLevel.TRUSTED

    if state == "Valid":
        return ValidationStatus.VALID, TrustLevel.UNTRUSTED

    if state == "Invalid":
        active = _active_results(store)
        success_codes = _codes(active.get("success"))
        failures = active.get("failure")

        signature_valid = any(c in SIGNATURE_SUCCESS_CODES for c in success_codes)
        only_trust_failures = failures is not None and all(
            "untrusted" in code or "trust" in code for code in _codes(failures)
        )

        if signature_valid and only_trust_failures:
            return ValidationStatus.VALID, TrustLevel.UNTRUSTED
        if signature_valid:
            return ValidationStatus.VALID, TrustLevel.UNKNOWN
        return ValidationStatus.INVALID, TrustLevel.UNKNOWN

    return ValidationStatus.UNKNOWN, TrustLevel.UNKNOWN


def _classify_from_status_list(
    status_list: Optional[Iterable[Any]],
) -> Tuple[ValidationStatus, TrustLevel]:
    if status_list is None:
        return ValidationStatus.UNKNOWN, TrustLevel.UNKNOWN

    codes = [code.lower() for code in _codes(status_list)]

    signature_failure = any(
        "signature" in code and ("error" in code or "invalid" in code)
        for code in codes
    )
    untrusted = any("untrusted" in code for code in codes)

    return (
        ValidationStatus.INVALID if signature_failure else ValidationStatus.VALID,
        TrustLevel.UNTRUSTED if untrusted else TrustLevel.UNKNOWN,
    )


def _signer_fingerprint(manifest: Dict[str, Any]) -> Optional[str]:
    signature_info = manifest.get("signature_info") or {}
    for key in FINGERPRINT_KEYS:
        value = signature_info.get(key)
        if value:
            return normalize_fingerprint(str(value))
    return None


# ---------------------------------------------------------------------------
# Summary extraction
# ---------------------------------------------------------------------------

def active_manifest(store: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    manifests = store.get("manifests") or {}
    label = store.get("active_manifest")
    if label is None:
        return None
    manifest = manifests.get(label)
    return manifest if isinstance(manifest, dict) else None


def _dedupe(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(values))


def _claim_generator(manifest: Dict[str, Any]) -> Optional[str]:
    if manifest.get("claim_generator"):
        return manifest["claim_generator"]

    info = manifest.get("claim_generator_info") or []
    if not info or not isinstance(info[0], dict) or not info[0].get("name"):
        return None

    name = info[0]["name"]
    version = info[0].get("version")
    return f"{name}/{version}" if version else name


def _agent_name(agent: Any) -> Optional[str]:
    if isinstance(agent, dict):
        return agent.get("name")
    if isinstance(agent, str):
        return agent
    return None


def summarize_manifest(
    manifest: Dict[str, Any],
    tables: Optional[HeuristicTables] = None,
) -> ManifestSummary:
    """Project the active manifest onto the human-readable summary."""
    tables = tables or get_heuristic_tables()

    actions: List[str] = []
    ai_assertions: List[str] = []

    for assertion in manifest.get("assertions") or []:
        label = assertion.get("label") or ""

        if matches_any(label, tables.ai_assertion_label_markers):
            ai_assertions.append(label)

        data = assertion.get("data")
        if "action" not in label.lower() or not isinstance(data, dict):
            continue

        for act in data.get("actions") or []:
            if not isinstance(act, dict):
                continue

            if act.get("action"):
                actions.append(act["action"])

            source_type = act.get("digitalSourceType")
            if matches_any(source_type, tables.ai_digital_source_types):
                ai_assertions.append(f"digitalSourceType: {source_type}")

            agent = _agent_name(act.get("softwareAgent"))
            if matches_any(agent, tables.ai_software_agent_fragments):
                ai_assertions.append(f"softwareAgent: {agent}")

    signature_info = manifest.get("signature_info") or {}
    issuer = signature_info.get("issuer") or None
    subject = signature_info.get("common_name") or None

    certificate = None
    if subject or issuer:
        certificate = CertificateInfo(
            subject=subject,
            issuer=issuer,
            serial_number=signature_info.get("cert_serial_number") or None,
        )

    ingredients = [
        (ingredient.get("title") if isinstance(ingredient, dict) else None)
        or UNKNOWN_INGREDIENT
        for ingredient in (manifest.get("ingredients") or [])[:MAX_INGREDIENTS]
    ]

    return ManifestSummary(
        claim_generator=_claim_generator(manifest),
        issuer=issuer,
        certificate=certificate,
        actions=_dedupe(actions),
        ai_assertions=_dedupe(ai_assertions),
        ingredients=ingredients,
    )


def _raw_projection(
    store: Dict[str, Any], manifest: Optional[Dict[str, Any]]
) -> Dict[str, Any]:
    raw: Dict[str, Any] = {
        "validation_state": store.get("validation_state"),
        "active_manifest": store.get("active_manifest"),
    }
    if manifest:
        raw["claim_generator"] = manifest.get("claim_generator")
        raw["title"] = manifest.get("title")
        raw["format"] = manifest.get("format")
        if manifest.get("signature_info"):
            raw["signature_info"] = manifest["signature_info"]
    return raw


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def classify_manifest_store(
    store: Dict[str, Any],
    trust_list: FrozenSet[str] = frozenset(),
) -> C2PAResult:
    """
    Classify a present manifest store.

    A signer whose certificate fingerprint is on the local trust list is
    upgraded to ``trusted``, but only when the signature itself is valid.
    """
    validated, trust = classify_validation(store)
    manifest = active_manifest(store)

    if manifest is not None and validated is ValidationStatus.VALID:
        fingerprint = _signer_fingerprint(manifest)
        if fingerprint and fingerprint in trust_list:
            trust = TrustLevel.TRUSTED

    return C2PAResult(
        available=True,
        present=True,
        validated=validated,
        trust=trust,
        summary=summarize_manifest(manifest) if manifest is not None else ManifestSummary(),
        raw=_raw_projection(store, manifest),
    )
