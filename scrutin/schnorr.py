import logging
from dataclasses import dataclass

from scrutin.elgamal import ElGamalKeyPair
from scrutin.group import ElementModP, ElementModQ, a_plus_bc_q, g_pow_p, mult_p, pow_p
from scrutin.hash import hash_elems
from scrutin.proof import ProofUsage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchnorrProof:
    """
    Preuve non interactive de connaissance de la clé secrète associée à public_key

    commitment h = g^r, challenge c = H(K, h), response u = r + s * c mod q
    """

    public_key: ElementModP
    commitment: ElementModP
    challenge: ElementModQ
    response: ElementModQ
    usage: ProofUsage = ProofUsage.SecretValue

    def is_valid(self) -> bool:
        """
        Vérifie la preuve

        Returns:
            bool: True si toutes les vérifications passent ; aucune validation partielle
        """
        k = self.public_key
        h = self.commitment
        u = self.response

        valid_public_key = k.is_valid_residue()
        in_bounds_h = h.is_in_bounds()
        in_bounds_u = u.is_in_bounds()
        valid_challenge = self.challenge == hash_elems(k, h)
        valid_proof = g_pow_p(u) == mult_p(h, pow_p(k, self.challenge))

        success = valid_public_key and in_bounds_h and in_bounds_u and valid_challenge and valid_proof
        if not success:
            logger.info(
                "Preuve de Schnorr invalide : clé=%s h=%s u=%s défi=%s preuve=%s",
                valid_public_key, in_bounds_h, in_bounds_u, valid_challenge, valid_proof,
            )
        return success


def make_schnorr_proof(keypair: ElGamalKeyPair, r: ElementModQ) -> SchnorrProof:
    """
    Construit une preuve de Schnorr

    Args:
        keypair: La paire de clés dont on prouve la connaissance du secret
        r: Un aléa de Z_q

    Returns:
        SchnorrProof: La preuve
    """
    k = keypair.public_key
    h = g_pow_p(r)
    c = hash_elems(k, h)
    u = a_plus_bc_q(r, keypair.secret_key, c)
    return SchnorrProof(k, h, c, u)
