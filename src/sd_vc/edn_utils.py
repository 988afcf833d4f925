"""Diagnostic notation (EDN) for serialized credentials and presentations.

Thin wrapper over the cbor-diag library, used by ``sd-vc show`` and by the
tests to write wire documents by hand.
"""

import cbor_diag  # type: ignore[import-untyped]


def cbor_to_diag(cbor_data: bytes) -> str:
    """Render CBOR bytes in diagnostic notation."""
    return cbor_diag.cbor2diag(cbor_data)  # type: ignore[no-any-return]


def diag_to_cbor(diag_str: str) -> bytes:
    """Parse diagnostic notation, e.g. ``{"version": "9"}``, into CBOR bytes."""
    return cbor_diag.diag2cbor(diag_str)  # type: ignore[no-any-return]
