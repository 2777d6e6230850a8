from dataclasses import dataclass

from scrutin.config import CeremonyDetails
from scrutin.group import G, P, Q, ElementModP, ElementModQ, int_to_hex
from scrutin.hash import hash_elems
from scrutin.key_ceremony import ElectionJointKey


@dataclass(frozen=True)
class CiphertextElectionContext:
    """
    Contexte cryptographique de l'élection

    crypto_base_hash Q = H(p, q, g, n, k, hachage du manifeste) ;
    crypto_extended_base_hash Q̄ = H(Q, hachage des engagements des gardiens).
    """

    number_of_guardians: int
    quorum: int
    elgamal_public_key: ElementModP
    description_hash: ElementModQ
    crypto_base_hash: ElementModQ
    crypto_extended_base_hash: ElementModQ


def make_crypto_base_hash(
    number_of_guardians: int, quorum: int, description_hash: ElementModQ
) -> ElementModQ:
    # Les constantes du groupe sont hachées en hexadécimal, comme des éléments
    return hash_elems(
        int_to_hex(P), int_to_hex(Q), int_to_hex(G), number_of_guardians, quorum, description_hash
    )


def make_ciphertext_election_context(
    ceremony_details: CeremonyDetails,
    joint_key: ElectionJointKey,
    description_hash: ElementModQ,
) -> CiphertextElectionContext:
    """
    Construit le contexte à partir du résultat de la cérémonie des clés

    Args:
        ceremony_details: Les paramètres N et K
        joint_key: La clé conjointe et le hachage des engagements
        description_hash: Le hachage du manifeste de l'élection

    Returns:
        CiphertextElectionContext: Le contexte
    """
    crypto_base_hash = make_crypto_base_hash(
        ceremony_details.number_of_guardians, ceremony_details.quorum, description_hash
    )
    crypto_extended_base_hash = hash_elems(crypto_base_hash, joint_key.commitment_hash)
    return CiphertextElectionContext(
        ceremony_details.number_of_guardians,
        ceremony_details.quorum,
        joint_key.joint_public_key,
        description_hash,
        crypto_base_hash,
        crypto_extended_base_hash,
    )
