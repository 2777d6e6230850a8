import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from scrutin.elgamal import ElGamalCiphertext
from scrutin.errors import InvalidElementError
from scrutin.group import (
    ElementModP,
    ElementModQ,
    a_minus_b_q,
    a_plus_bc_q,
    add_q,
    g_pow_p,
    mult_p,
    mult_q,
    negate_q,
    pow_p,
)
from scrutin.hash import hash_elems
from scrutin.nonces import Nonces
from scrutin.proof import ProofUsage

logger = logging.getLogger(__name__)

# Borne des constantes prouvables par ConstantChaumPedersenProof
MAX_CONSTANT = 1_000_000_000


@dataclass(frozen=True)
class DisjunctiveChaumPedersenProof:
    """
    Preuve qu'un chiffré ElGamal chiffre une valeur de {0, ..., limit} sans révéler laquelle

    Une branche (a_i, b_i, c_i, v_i) par valeur autorisée : la branche de la vraie valeur
    est authentique, les autres sont simulées. Le défi global c = H(Q̄, α, β, a_0, b_0, a_1, b_1, ...)
    doit être la somme des défis de branche. Avec limit = 1 on retrouve la preuve 0/1 classique.
    """

    proof_pads: Tuple[ElementModP, ...]
    proof_datas: Tuple[ElementModP, ...]
    proof_challenges: Tuple[ElementModQ, ...]
    proof_responses: Tuple[ElementModQ, ...]
    challenge: ElementModQ
    usage: ProofUsage = ProofUsage.SelectionValue

    @property
    def limit(self) -> int:
        return len(self.proof_pads) - 1

    def is_valid(
        self, message: ElGamalCiphertext, k: ElementModP, q_bar: ElementModQ
    ) -> bool:
        """
        Vérifie la preuve

        Args:
            message: Le chiffré de la sélection
            k: La clé publique de l'élection
            q_bar: Le hachage de base étendu de l'élection

        Returns:
            bool: True si toutes les vérifications passent
        """
        alpha, beta = message.pad, message.data
        branches = len(self.proof_pads)

        well_formed = (
            branches >= 2
            and len(self.proof_datas) == branches
            and len(self.proof_challenges) == branches
            and len(self.proof_responses) == branches
        )
        if not well_formed:
            logger.info("Preuve disjonctive mal formée : %d branches", branches)
            return False

        in_bounds = (
            alpha.is_valid_residue()
            and beta.is_valid_residue()
            and k.is_valid_residue()
            and all(a.is_in_bounds() for a in self.proof_pads)
            and all(b.is_in_bounds() for b in self.proof_datas)
            and all(c.is_in_bounds() for c in self.proof_challenges)
            and all(v.is_in_bounds() for v in self.proof_responses)
        )

        consistent_c = add_q(*self.proof_challenges) == self.challenge
        consistent_hash = self.challenge == hash_elems(
            q_bar, alpha, beta, *_interleave(self.proof_pads, self.proof_datas)
        )

        valid_branches = True
        for i in range(branches):
            a, b = self.proof_pads[i], self.proof_datas[i]
            c, v = self.proof_challenges[i], self.proof_responses[i]
            # g^v_i = a_i * α^c_i
            pad_ok = g_pow_p(v) == mult_p(a, pow_p(alpha, c))
            # g^(i * c_i) * K^v_i = b_i * β^c_i
            data_ok = mult_p(g_pow_p(mult_q(i, c)), pow_p(k, v)) == mult_p(b, pow_p(beta, c))
            valid_branches = valid_branches and pad_ok and data_ok

        success = in_bounds and consistent_c and consistent_hash and valid_branches
        if not success:
            logger.info(
                "Preuve disjonctive invalide : bornes=%s somme=%s hachage=%s branches=%s",
                in_bounds, consistent_c, consistent_hash, valid_branches,
            )
        return success


@dataclass(frozen=True)
class ChaumPedersenProof:
    """
    Preuve qu'un déchiffrement partiel M = α^s est cohérent avec la clé publique K = g^s

    Sert aussi pour les déchiffrements compensés : s est alors la part reconstituée
    et K la clé publique de recouvrement.
    """

    pad: ElementModP
    data: ElementModP
    challenge: ElementModQ
    response: ElementModQ
    usage: ProofUsage = ProofUsage.SecretValue

    def is_valid(
        self,
        message: ElGamalCiphertext,
        k: ElementModP,
        m: ElementModP,
        q_bar: ElementModQ,
    ) -> bool:
        """
        Vérifie la preuve

        Args:
            message: Le chiffré déchiffré partiellement
            k: La clé publique (ou de recouvrement) du gardien
            m: Le déchiffrement partiel publié
            q_bar: Le hachage de base étendu de l'élection

        Returns:
            bool: True si toutes les vérifications passent
        """
        alpha, beta = message.pad, message.data
        a, b = self.pad, self.data
        c, v = self.challenge, self.response

        in_bounds = (
            alpha.is_valid_residue()
            and beta.is_valid_residue()
            and a.is_in_bounds()
            and b.is_in_bounds()
            and v.is_in_bounds()
            and k.is_valid_residue()
            and m.is_valid_residue()
        )
        same_c = c == hash_elems(q_bar, alpha, beta, a, b, m)
        # g^v = a * K^c
        consistent_gv = g_pow_p(v) == mult_p(a, pow_p(k, c))
        # α^v = b * M^c
        consistent_av = pow_p(alpha, v) == mult_p(b, pow_p(m, c))

        success = in_bounds and same_c and consistent_gv and consistent_av
        if not success:
            logger.info(
                "Preuve de déchiffrement invalide : bornes=%s défi=%s gv=%s av=%s",
                in_bounds, same_c, consistent_gv, consistent_av,
            )
        return success


@dataclass(frozen=True)
class ConstantChaumPedersenProof:
    """Preuve qu'un chiffré (total d'une contest) chiffre exactement constant"""

    pad: ElementModP
    data: ElementModP
    challenge: ElementModQ
    response: ElementModQ
    constant: int
    usage: ProofUsage = ProofUsage.SelectionLimit

    def is_valid(
        self, message: ElGamalCiphertext, k: ElementModP, q_bar: ElementModQ
    ) -> bool:
        alpha, beta = message.pad, message.data
        a, b = self.pad, self.data
        c, v = self.challenge, self.response

        in_bounds = (
            alpha.is_valid_residue()
            and beta.is_valid_residue()
            and a.is_in_bounds()
            and b.is_in_bounds()
            and c.is_in_bounds()
            and v.is_in_bounds()
            and 0 <= self.constant < MAX_CONSTANT
        )
        if not in_bounds:
            logger.info("Preuve de constante hors bornes")
            return False

        same_c = c == hash_elems(q_bar, alpha, beta, a, b)
        # g^v = a * α^c
        consistent_gv = g_pow_p(v) == mult_p(a, pow_p(alpha, c))
        # g^(c * L) * K^v = b * β^c
        consistent_kv = mult_p(g_pow_p(mult_q(c, self.constant)), pow_p(k, v)) == mult_p(
            b, pow_p(beta, c)
        )

        success = same_c and consistent_gv and consistent_kv
        if not success:
            logger.info(
                "Preuve de constante invalide : défi=%s gv=%s kv=%s",
                same_c, consistent_gv, consistent_kv,
            )
        return success


def _interleave(pads: Tuple[ElementModP, ...], datas: Tuple[ElementModP, ...]) -> List[ElementModP]:
    result: List[ElementModP] = []
    for a, b in zip(pads, datas):
        result.extend((a, b))
    return result


def make_disjunctive_chaum_pedersen(
    message: ElGamalCiphertext,
    r: ElementModQ,
    k: ElementModP,
    q_bar: ElementModQ,
    seed: ElementModQ,
    plaintext: int,
    limit: int = 1,
) -> DisjunctiveChaumPedersenProof:
    """
    Construit une preuve disjonctive que message chiffre plaintext, parmi {0, ..., limit}

    Args:
        message: Le chiffré
        r: Le nonce du chiffrement
        k: La clé publique de l'élection
        q_bar: Le hachage de base étendu
        seed: Graine des nonces de la preuve
        plaintext: La valeur réellement chiffrée
        limit: La plus grande valeur autorisée

    Returns:
        DisjunctiveChaumPedersenProof: La preuve

    Raises:
        InvalidElementError: Si plaintext n'est pas dans {0, ..., limit}
    """
    if limit < 1:
        raise InvalidElementError("La limite doit être au moins 1")
    if not 0 <= plaintext <= limit:
        raise InvalidElementError(f"Valeur hors de l'ensemble autorisé : {plaintext}")

    alpha, beta = message.pad, message.data
    nonces = Nonces(seed, "disjoint-chaum-pedersen-proof")

    branches = limit + 1
    pads: List[Optional[ElementModP]] = [None] * branches
    datas: List[Optional[ElementModP]] = [None] * branches
    challenges: List[Optional[ElementModQ]] = [None] * branches
    responses: List[Optional[ElementModQ]] = [None] * branches

    # Branches simulées : (c_i, v_i) tirés de la suite de nonces, dans l'ordre des valeurs
    simulated = 0
    for i in range(branches):
        if i == plaintext:
            continue
        c_i = nonces.get(2 * simulated)
        v_i = nonces.get(2 * simulated + 1)
        simulated += 1
        pads[i] = mult_p(g_pow_p(v_i), pow_p(alpha, negate_q(c_i)))
        datas[i] = mult_p(pow_p(k, v_i), g_pow_p(mult_q(i, c_i)), pow_p(beta, negate_q(c_i)))
        challenges[i] = c_i
        responses[i] = v_i

    # Branche authentique
    u = nonces.get(2 * limit)
    pads[plaintext] = g_pow_p(u)
    datas[plaintext] = pow_p(k, u)

    c = hash_elems(q_bar, alpha, beta, *_interleave(tuple(pads), tuple(datas)))
    c_real = a_minus_b_q(c, add_q(*(x for i, x in enumerate(challenges) if i != plaintext)))
    challenges[plaintext] = c_real
    responses[plaintext] = a_plus_bc_q(u, c_real, r)

    return DisjunctiveChaumPedersenProof(
        tuple(pads), tuple(datas), tuple(challenges), tuple(responses), c
    )


def make_chaum_pedersen(
    message: ElGamalCiphertext,
    s: ElementModQ,
    m: ElementModP,
    seed: ElementModQ,
    q_bar: ElementModQ,
) -> ChaumPedersenProof:
    """
    Construit une preuve de déchiffrement partiel correct

    Args:
        message: Le chiffré
        s: La part secrète (ou reconstituée) du gardien
        m: Le déchiffrement partiel α^s
        seed: Graine du nonce de la preuve
        q_bar: Le hachage de base étendu

    Returns:
        ChaumPedersenProof: La preuve
    """
    alpha, beta = message.pad, message.data
    u = Nonces(seed, "constant-chaum-pedersen-proof").get(0)
    a = g_pow_p(u)
    b = pow_p(alpha, u)
    c = hash_elems(q_bar, alpha, beta, a, b, m)
    v = a_plus_bc_q(u, c, s)
    return ChaumPedersenProof(a, b, c, v)


def make_constant_chaum_pedersen(
    message: ElGamalCiphertext,
    constant: int,
    r: ElementModQ,
    k: ElementModP,
    seed: ElementModQ,
    q_bar: ElementModQ,
) -> ConstantChaumPedersenProof:
    """
    Construit une preuve que message chiffre exactement constant

    Args:
        message: Le chiffré, de nonce agrégé r
        constant: La valeur chiffrée
        r: Le nonce (somme des nonces des sélections)
        k: La clé publique de l'élection
        seed: Graine du nonce de la preuve
        q_bar: Le hachage de base étendu

    Returns:
        ConstantChaumPedersenProof: La preuve
    """
    alpha, beta = message.pad, message.data
    u = Nonces(seed, "constant-chaum-pedersen-proof").get(0)
    a = g_pow_p(u)
    b = pow_p(k, u)
    c = hash_elems(q_bar, alpha, beta, a, b)
    v = a_plus_bc_q(u, c, r)
    return ConstantChaumPedersenProof(a, b, c, v, constant)
