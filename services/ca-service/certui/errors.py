"""Issuance engine errors.

Every error carries a stable ``code`` plus a ``kind`` that separates
client-correctable input problems from backend failures. The API renders
them as ``{"error": code, "kind": kind, "detail": message}``.
"""


class CaServiceError(Exception):
    """Base class for all issuance engine errors."""

    code = "CaServiceError"
    kind = "operational"
    status_code = 500
    default_detail = "Certificate authority operation failed"

    def __init__(self, detail: str | None = None, status_code: int | None = None):
        self.detail = detail or self.default_detail
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.detail)


# Validation (4xx, client-correctable)
class ValidationError(CaServiceError):
    kind = "validation"
    status_code = 400


class InvalidProfile(ValidationError):
    code = "InvalidProfile"
    default_detail = "Invalid preset. Use server_tls, client_tls, or code_signing"


class MissingCommonName(ValidationError):
    code = "MissingCommonName"
    default_detail = "Common Name is required"


class InvalidSubjectAltName(ValidationError):
    code = "InvalidSubjectAltName"
    default_detail = "Invalid Subject Alternative Name entry"


class InvalidCertificate(ValidationError):
    code = "InvalidCertificate"
    default_detail = "Invalid certificate PEM"


class ExportPasswordRequired(ValidationError):
    code = "ExportPasswordRequired"
    default_detail = "Password is required for PKCS#12 export"


class KeyUnavailable(ValidationError):
    code = "KeyUnavailable"
    default_detail = "Private key not available for this certificate"


class CaNotInitialized(ValidationError):
    code = "CaNotInitialized"
    default_detail = "CA is not initialized. Please initialize the CA first."


# Not found
class NotFoundError(CaServiceError):
    kind = "not_found"
    status_code = 404


class RequestNotFound(NotFoundError):
    code = "RequestNotFound"
    default_detail = "CSR not found"


class CertificateNotFound(NotFoundError):
    code = "CertificateNotFound"
    default_detail = "Certificate not found"


class ChainUnavailable(NotFoundError):
    code = "ChainUnavailable"
    default_detail = "Certificate chain not available"


# Conflicts with current record state
class ConflictError(CaServiceError):
    kind = "conflict"
    status_code = 409


class AlreadySigned(ConflictError):
    code = "AlreadySigned"
    default_detail = "CSR has already been signed"


class CaAlreadyInitialized(ConflictError):
    code = "CaAlreadyInitialized"
    default_detail = "CA is already initialized; re-initialization requires force"


class RequestHasCertificates(ConflictError):
    code = "RequestHasCertificates"
    default_detail = "CSR has issued certificates and cannot be deleted"


# Backend failures
class GenerationFailed(CaServiceError):
    code = "GenerationFailed"
    default_detail = "Key or certificate generation failed"


class ExportFailed(CaServiceError):
    code = "ExportFailed"
    default_detail = "Failed to create export bundle"
