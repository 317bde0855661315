"""
Manifest store documents shaped like ``c2pa.Reader(...).json()`` output.
"""

from typing import Any, Dict, List, Optional

ACTIVE_LABEL = "urn:uuid:6f0a5c1e-0000-4000-8000-000000000001"


def action_assertion(*actions: Dict[str, Any]) -> Dict[str, Any]:
    return {"label": "c2pa.actions", "data": {"actions": list(actions)}}


def manifest_store(
    *,
    validation_state: Optional[str] = "Valid",
    claim_generator: Optional[str] = "Adobe_Photoshop/25.0 c2pa-rs/0.28",
    issuer: str = "Adobe Inc.",
    common_name: str = "Adobe Content Credentials",
    assertions: Optional[List[Dict[str, Any]]] = None,
    ingredients: Optional[List[Dict[str, Any]]] = None,
    success: Optional[List[str]] = None,
    failure: Optional[List[str]] = None,
    signature_extra: Optional[Dict[str, Any]] = None,
    **manifest_extra: Any,
) -> Dict[str, Any]:
    signature_info = {
        "alg": "Es256",
        "issuer": issuer,
        "common_name": common_name,
        "cert_serial_number": "1234567890",
        "time": "2025-01-01T00:00:00+00:00",
    }
    signature_info.update(signature_extra or {})

    manifest: Dict[str, Any] = {
        "title": "image.jpg",
        "format": "image/jpeg",
        "instance_id": "xmp:iid:0000",
        "signature_info": signature_info,
        "assertions": assertions
        if assertions is not None
        else [
            action_assertion({"action": "c2pa.opened"}, {"action": "c2pa.color_adjustments"}),
            {"label": "c2pa.hash.data", "data": {}},
        ],
        "ingredients": ingredients or [],
    }
    if claim_generator is not None:
        manifest["claim_generator"] = claim_generator
    manifest.update(manifest_extra)

    store: Dict[str, Any] = {
        "active_manifest": ACTIVE_LABEL,
        "manifests": {ACTIVE_LABEL: manifest},
    }

    if validation_state is not None:
        store["validation_state"] = validation_state

    if success is not None or failure is not None:
        active: Dict[str, Any] = {}
        if success is not None:
            active["success"] = [{"code": c, "explanation": ""} for c in success]
        if failure is not None:
            active["failure"] = [{"code": c, "explanation": ""} for c in failure]
        store["validation_results"] = {"activeManifest": active}

    return store
