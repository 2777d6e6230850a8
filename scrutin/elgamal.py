import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from scrutin.dlog import DiscreteLog
from scrutin.errors import InvalidElementError
from scrutin.group import (
    ElementModP,
    ElementModQ,
    ONE_MOD_P,
    TWO_MOD_Q,
    div_p,
    g_pow_p,
    int_to_q,
    mult_p,
    pow_p,
    rand_range_q,
)
from scrutin.hash import hash_elems

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ElGamalKeyPair:
    """Paire de clés ElGamal ; invariant : public_key = g^secret_key mod p"""

    secret_key: ElementModQ
    public_key: ElementModP


@dataclass(frozen=True)
class ElGamalCiphertext:
    """
    Chiffré ElGamal exponentiel (pad, data) = (g^r, K^r * g^m)

    Le produit composante par composante de deux chiffrés chiffre la somme des messages.
    """

    pad: ElementModP
    data: ElementModP

    def decrypt_known_product(self, product: ElementModP, dlog: DiscreteLog) -> int:
        """
        Déchiffre à partir du produit connu K^r (ou du produit des déchiffrements partiels)

        Args:
            product: Le facteur de masquage à retirer de data
            dlog: La table de logarithmes discrets de la session

        Returns:
            int: Le message en clair
        """
        return dlog.discrete_log(div_p(self.data, product))

    def decrypt(self, secret_key: ElementModQ, dlog: DiscreteLog) -> int:
        """Déchiffre avec la clé secrète complète"""
        return self.decrypt_known_product(pow_p(self.pad, secret_key), dlog)

    def decrypt_known_nonce(self, public_key: ElementModP, nonce: ElementModQ, dlog: DiscreteLog) -> int:
        """Déchiffre avec le nonce ayant servi au chiffrement"""
        return self.decrypt_known_product(pow_p(public_key, nonce), dlog)

    def partial_decrypt(self, secret_share: ElementModQ) -> ElementModP:
        """
        Contribution d'un gardien au déchiffrement : pad^s

        Args:
            secret_share: La part secrète du gardien

        Returns:
            ElementModP: pad^secret_share mod p
        """
        return pow_p(self.pad, secret_share)

    def is_valid_residue(self) -> bool:
        return self.pad.is_valid_residue() and self.data.is_valid_residue()

    def crypto_hash(self) -> ElementModQ:
        return hash_elems(self.pad, self.data)


def elgamal_keypair_from_secret(secret: ElementModQ) -> ElGamalKeyPair:
    """
    Construit une paire de clés à partir d'un secret

    Raises:
        InvalidElementError: Si le secret est inférieur à 2
    """
    if secret.elem < 2:
        raise InvalidElementError("La clé secrète doit être supérieure à 1")
    return ElGamalKeyPair(secret, g_pow_p(secret))


def elgamal_keypair_random() -> ElGamalKeyPair:
    """Génère une paire de clés de manière cryptographiquement sûre"""
    return elgamal_keypair_from_secret(rand_range_q(TWO_MOD_Q))


def elgamal_encrypt(
    message: int, nonce: ElementModQ, public_key: ElementModP
) -> Optional[ElGamalCiphertext]:
    """
    Chiffre un petit entier avec ElGamal (version additive)

    Args:
        message: Le message à chiffrer, entier positif ou nul
        nonce: Le nonce r, non nul
        public_key: La clé publique K

    Returns:
        Optional[ElGamalCiphertext]: (g^r, K^r * g^m), ou None si le nonce est nul
    """
    if message < 0:
        raise InvalidElementError("Message invalide")

    if nonce.elem == 0:
        logger.warning("Chiffrement refusé : nonce nul")
        return None

    pad = g_pow_p(nonce)
    data = mult_p(pow_p(public_key, nonce), g_pow_p(int_to_q(message)))
    return ElGamalCiphertext(pad, data)


def elgamal_add(*ciphertexts: ElGamalCiphertext) -> ElGamalCiphertext:
    """
    Additionne homomorphiquement des chiffrés

    Raises:
        InvalidElementError: Si aucun chiffré n'est fourni
    """
    if not ciphertexts:
        raise InvalidElementError("Aucun chiffré à additionner")

    pad = ONE_MOD_P
    data = ONE_MOD_P
    for c in ciphertexts:
        pad = mult_p(pad, c.pad)
        data = mult_p(data, c.data)
    return ElGamalCiphertext(pad, data)


def elgamal_combine_public_keys(keys: Iterable[ElementModP]) -> ElementModP:
    """Clé publique conjointe : produit des clés publiques des gardiens"""
    return mult_p(*keys)


def elgamal_zero() -> ElGamalCiphertext:
    """Élément neutre de l'addition homomorphe"""
    return ElGamalCiphertext(ONE_MOD_P, ONE_MOD_P)

