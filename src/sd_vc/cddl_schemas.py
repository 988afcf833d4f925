"""CDDL schemas for the sd-vc wire format.

pycddl validates against the first rule of a schema, so each document type
gets its own schema string with its root rule on top, followed by the shared
definitions.
"""

# Definitions shared by credentials and presentations
COMMON_CDDL = """
credential = {
  "@context": [+ tstr],
  "version": tstr,
  "schema": tstr,
  "issuanceDate": int,
  ? "expirationDate": int,
  "credentialSubject": claims / bstr,
  ? "credentialSubjectHashes": field-hashes,
  ? "credentialSubjectNonceMap": nonce-map,
  "issuer": tstr,
  "holder": tstr,
  "hasher": [tstr, tstr],
  "digest": bstr,
  "proof": proof
}

claims = { * tstr => any }

; empty once reduced to digest-only form
field-hashes = [] / [+ bstr]
nonce-map = [] / [+ nonce-entry]

; [claim path, nonce]
nonce-entry = [[+ tstr], bstr]

proof = {
  "type": tstr,
  "created": int,
  "verificationMethod": tstr,
  "proofPurpose": tstr,
  "proofValue": bstr
}
"""

CREDENTIAL_CDDL = COMMON_CDDL

PRESENTATION_CDDL = (
    """
presentation = {
  "@context": [+ tstr],
  "version": tstr,
  "type": [+ tstr],
  "verifiableCredential": [+ credential],
  "id": bstr,
  "proof": proof,
  "hasher": tstr,
  ? "challenge": tstr
}
"""
    + COMMON_CDDL
)