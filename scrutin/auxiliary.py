import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from Crypto.Cipher import PKCS1_OAEP
from Crypto.Hash import SHA256
from Crypto.PublicKey import RSA

from scrutin.config import load_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuxiliaryKeyPair:
    """Paire de clés du canal auxiliaire, sérialisées (PEM pour RSA)"""

    secret_key: str
    public_key: str


@dataclass(frozen=True)
class AuxiliaryPublicKey:
    """Clé publique auxiliaire annoncée par un gardien"""

    owner_id: str
    sequence_order: int
    key: str


class AuxiliaryChannel(Protocol):
    """
    Canal de transport des sauvegardes de clés entre gardiens

    Aucune méthode ne lève d'exception : un échec est signalé par None.
    """

    def generate_key_pair(self) -> AuxiliaryKeyPair:
        ...

    def encrypt(self, message: str, public_key: str) -> Optional[bytes]:
        ...

    def decrypt(self, encrypted_message: bytes, secret_key: str) -> Optional[str]:
        ...


class RsaAuxiliaryChannel:
    """Canal auxiliaire par défaut : RSA-OAEP (SHA-256)"""

    def __init__(self, key_size: Optional[int] = None):
        """
        Args:
            key_size: Taille des clés RSA en bits (au moins 1024), par défaut celle des réglages
        """
        if key_size is None:
            key_size = load_settings().rsa_key_size
        if key_size < 1024:
            raise ValueError("Taille de clé RSA insuffisante")
        self.key_size = key_size

    def generate_key_pair(self) -> AuxiliaryKeyPair:
        """Génère une paire de clés RSA"""
        key = RSA.generate(self.key_size)
        return AuxiliaryKeyPair(
            secret_key=key.export_key().decode("ascii"),
            public_key=key.publickey().export_key().decode("ascii"),
        )

    def encrypt(self, message: str, public_key: str) -> Optional[bytes]:
        """
        Chiffre un message court pour le détenteur de public_key

        Returns:
            Optional[bytes]: Le chiffré, ou None en cas d'échec
        """
        try:
            cipher = PKCS1_OAEP.new(RSA.import_key(public_key), hashAlgo=SHA256)
            return cipher.encrypt(message.encode("utf-8"))
        except (ValueError, TypeError, IndexError) as error:
            logger.warning("Échec du chiffrement auxiliaire : %s", error)
            return None

    def decrypt(self, encrypted_message: bytes, secret_key: str) -> Optional[str]:
        """
        Déchiffre un message reçu par le canal auxiliaire

        Returns:
            Optional[str]: Le message, ou None en cas d'échec
        """
        try:
            cipher = PKCS1_OAEP.new(RSA.import_key(secret_key), hashAlgo=SHA256)
            return cipher.decrypt(encrypted_message).decode("utf-8")
        except (ValueError, TypeError, IndexError) as error:
            logger.warning("Échec du déchiffrement auxiliaire : %s", error)
            return None
