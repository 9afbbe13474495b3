from fastapi import Response

PEM_MEDIA_TYPE = "application/x-pem-file"
PKCS12_MEDIA_TYPE = "application/x-pkcs12"


def attachment(content, filename: str, media_type: str = PEM_MEDIA_TYPE) -> Response:
    """File download response."""
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
