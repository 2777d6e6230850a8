from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from scrutin.elgamal import ElGamalKeyPair
from scrutin.errors import InvalidElementError
from scrutin.group import (
    ONE_MOD_P,
    Q,
    ZERO_MOD_Q,
    ElementModP,
    ElementModQ,
    add_q,
    div_q,
    g_pow_p,
    int_to_q_unchecked,
    mult_p,
    mult_q,
    pow_p,
    rand_q,
)
from scrutin.schnorr import SchnorrProof, make_schnorr_proof


@dataclass(frozen=True)
class ElectionPolynomial:
    """
    Polynôme secret de degré K - 1 d'un gardien

    Le terme constant est la clé secrète du gardien ; les engagements g^a_j et leurs
    preuves de Schnorr sont publics.
    """

    coefficients: Tuple[ElementModQ, ...]
    coefficient_commitments: Tuple[ElementModP, ...]
    coefficient_proofs: Tuple[SchnorrProof, ...]


def generate_polynomial(
    number_of_coefficients: int, nonce: Optional[ElementModQ] = None
) -> ElectionPolynomial:
    """
    Génère un polynôme secret, ses engagements et ses preuves

    Args:
        number_of_coefficients: Nombre de coefficients, égal au quorum
        nonce: Si fourni, les coefficients valent nonce + i (reproductible, pour les tests)

    Returns:
        ElectionPolynomial: Le polynôme
    """
    if number_of_coefficients < 1:
        raise InvalidElementError("Un polynôme doit avoir au moins un coefficient")

    coefficients = []
    commitments = []
    proofs = []
    for i in range(number_of_coefficients):
        coefficient = rand_q() if nonce is None else add_q(nonce, i)
        commitment = g_pow_p(coefficient)
        proof = make_schnorr_proof(ElGamalKeyPair(coefficient, commitment), rand_q())
        coefficients.append(coefficient)
        commitments.append(commitment)
        proofs.append(proof)
    return ElectionPolynomial(tuple(coefficients), tuple(commitments), tuple(proofs))


def compute_polynomial_coordinate(
    exponent_modifier: int, polynomial: ElectionPolynomial
) -> ElementModQ:
    """
    Évalue le polynôme en x = exponent_modifier

    Args:
        exponent_modifier: Le point d'évaluation, rang d'un gardien, dans [1, Q)
        polynomial: Le polynôme

    Returns:
        ElementModQ: Σ a_j * x^j mod q

    Raises:
        InvalidElementError: Si x est hors de [1, Q)
    """
    if not 0 < exponent_modifier < Q:
        raise InvalidElementError("Point d'évaluation hors de [1, Q)")

    computed_value = ZERO_MOD_Q
    for j, coefficient in enumerate(polynomial.coefficients):
        factor = mult_q(coefficient, pow(exponent_modifier, j, Q))
        computed_value = add_q(computed_value, factor)
    return computed_value


def compute_lagrange_coefficient(coordinate: int, *degrees: int) -> ElementModQ:
    """
    Coefficient de Lagrange en 0 pour le nœud coordinate

    Args:
        coordinate: Le rang du gardien dont on calcule le poids
        degrees: Les rangs des autres gardiens disponibles

    Returns:
        ElementModQ: Π degrees / Π (degree - coordinate) mod q
    """
    numerator = 1
    denominator = 1
    for degree in degrees:
        numerator = numerator * degree % Q
        denominator = denominator * (degree - coordinate) % Q
    return div_q(int_to_q_unchecked(numerator), int_to_q_unchecked(denominator))


def compute_commitment_product(
    exponent_modifier: int, commitments: Sequence[ElementModP]
) -> ElementModP:
    """Calcule Π K_j^(x^j) mod p, la contrepartie publique de l'évaluation en x"""
    result = ONE_MOD_P
    for j, commitment in enumerate(commitments):
        result = mult_p(result, pow_p(commitment, pow(exponent_modifier, j, Q)))
    return result


def verify_polynomial_coordinate(
    coordinate: ElementModQ, exponent_modifier: int, commitments: Sequence[ElementModP]
) -> bool:
    """
    Vérifie qu'une évaluation est cohérente avec les engagements publics

    Args:
        coordinate: La valeur P(x) à vérifier
        exponent_modifier: Le point x
        commitments: Les engagements g^a_j

    Returns:
        bool: True si g^P(x) = Π K_j^(x^j)
    """
    return g_pow_p(coordinate) == compute_commitment_product(exponent_modifier, commitments)
