"""File-backed storage for the CA private key and certificate.

The store holds no cached key material. Every operation resolves a fresh
``CaMaterial`` so that concurrent workers see the artifacts as they are on
disk at that moment.
"""

import logging
import os
import tempfile
import time
from dataclasses import dataclass

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from certui.config import get_settings
from certui.errors import CaNotInitialized, GenerationFailed

logger = logging.getLogger(__name__)

KEY_FILENAME = "ca.key.pem"
CERT_FILENAME = "ca.cert.pem"
TEMP_PREFIX = ".tmp-"
LOAD_ATTEMPTS = 3
LOAD_RETRY_DELAY = 0.05


@dataclass(frozen=True)
class CaMaterial:
    private_key: rsa.RSAPrivateKey
    certificate: x509.Certificate
    cert_pem: str

    def key_matches_certificate(self) -> bool:
        return self.private_key.public_key().public_numbers() == self.certificate.public_key().public_numbers()


class CaArtifactStore:
    def __init__(self, directory: str):
        self.directory = directory

    @property
    def key_path(self) -> str:
        return os.path.join(self.directory, KEY_FILENAME)

    @property
    def cert_path(self) -> str:
        return os.path.join(self.directory, CERT_FILENAME)

    def exists(self) -> bool:
        return os.path.isfile(self.key_path) and os.path.isfile(self.cert_path)

    def read_cert_pem(self, status_code: int | None = None) -> str:
        try:
            with open(self.cert_path, "r", encoding="ascii") as f:
                return f.read()
        except FileNotFoundError:
            raise CaNotInitialized("CA certificate not found. Initialize the CA first.", status_code=status_code)

    def _read(self) -> CaMaterial:
        try:
            with open(self.key_path, "rb") as f:
                private_key = serialization.load_pem_private_key(f.read(), password=None)
            cert_pem = self.read_cert_pem()
            certificate = x509.load_pem_x509_certificate(cert_pem.encode("ascii"))
        except FileNotFoundError:
            # Removed between the existence check and the read
            raise CaNotInitialized()
        except (ValueError, TypeError) as e:
            logger.error("CA artifacts in %s are unreadable: %s", self.directory, e)
            raise GenerationFailed("CA artifacts are unreadable")
        return CaMaterial(private_key=private_key, certificate=certificate, cert_pem=cert_pem)

    def load(self) -> CaMaterial:
        """Read the CA key and certificate currently on disk.

        The two files are replaced one after the other, so a reader can see
        a new key next to the old certificate. Such a pair is read again
        until it matches; one that never matches raises GenerationFailed.
        """
        if not self.exists():
            raise CaNotInitialized()
        for attempt in range(LOAD_ATTEMPTS):
            if attempt:
                time.sleep(LOAD_RETRY_DELAY)
            material = self._read()
            if material.key_matches_certificate():
                return material
            logger.warning("CA key and certificate in %s do not match, reading again", self.directory)
        raise GenerationFailed("CA key and certificate do not match")

    def _write_temp(self, data: str, mode: int) -> str:
        fd, path = tempfile.mkstemp(dir=self.directory, prefix=TEMP_PREFIX)
        try:
            os.fchmod(fd, mode)
            with os.fdopen(fd, "w", encoding="ascii") as f:
                f.write(data)
        except BaseException:
            os.unlink(path)
            raise
        return path

    def write(self, key_pem: str, cert_pem: str) -> None:
        """Replace both artifacts.

        Both files are fully written to temp files in the CA directory
        before either is moved into place. Each rename is atomic, the pair
        is not; ``load`` rejects a mismatched pair. Temp files never outlive
        the call.
        """
        os.makedirs(self.directory, exist_ok=True)
        temp_paths = []
        try:
            key_tmp = self._write_temp(key_pem, 0o600)
            temp_paths.append(key_tmp)
            cert_tmp = self._write_temp(cert_pem, 0o644)
            temp_paths.append(cert_tmp)

            os.replace(key_tmp, self.key_path)
            os.replace(cert_tmp, self.cert_path)
        finally:
            for path in temp_paths:
                if os.path.exists(path):
                    os.unlink(path)
        logger.info("CA artifacts written to %s", self.directory)


def get_ca_store() -> CaArtifactStore:
    """Dependency: artifact store at the configured location."""
    return CaArtifactStore(get_settings().ca_dir)
