from dataclasses import dataclass
from secrets import randbelow
from typing import Optional, Union

from scrutin.config import load_settings
from scrutin.errors import InvalidElementError

# Paramètres du groupe ElectionGuard : p premier sûr de 4096 bits, sous-groupe d'ordre q (256 bits)
Q = pow(2, 256) - 189

P = 1044388881413152506691752710716624382579964249047383780384233483283953907971553643537729993126875883902173634017777416360502926082946377942955704498542097614841825246773580689398386320439747911160897731551074903967243883427132918813748016269754522343505285898816777211761912392772914485521155521641049273446207578961939840619466145806859275053476560973295158703823395710210329314709715239251736552384080845836048778667318931418338422443891025911884723433084701207771901944593286624979917391350564662632723703007964229849154756196890615252286533089643184902706926081744149289517418249153634178342075381874131646013444796894582106870531535803666254579602632453103741452569793905551901541856173251385047414840392753585581909950158046256810542678368121278509960520957624737942914600310646609792665012858397381435755902851312071248102599442308951327039250818892493767423329663783709190716162023529669217300939783171415808233146823000766917789286154006042281423733706462905243774854543127239500245873582012663666430583862778167369547603016344242729592244544608279405999759391099775667746401633668308698186721172238255007962658564443858927634850415775348839052026675785694826386930175303143450046575460843879941791946313299322976993405829119

G = 14245109091294741386751154342323521003543059865261911603340669522218159898070093327838595045175067897363301047764229640327930333001123401070596314469603183633790452807428416775717923182949583875381833912370889874572112086966300498607364501764494811956017881198827400327403252039184448888877644781610594801053753235453382508543906993571248387749420874609737451803650021788641249940534081464232937193671929586747339353451021712752406225276255010281004857233043241332527821911604413582442915993833774890228705495787357234006932755876972632840760599399514028393542345035433135159511099877773857622699742816228063106927776147867040336649025152771036361273329385354927395836330206311072577683892664475070720408447257635606891920123791602538518516524873664205034698194561673019535564273204744076336022130453963648114321050173994259620611015189498335966173440411967562175734606706258335095991140827763942280037063180207172918769921712003400007923888084296685269233298371143630883011213745082207405479978418089917768242592557172834921185990876960527013386693909961093302289646193295725135238595082039133488721800071459503353417574248679728577942863659802016004283193163470835709405666994892499382890912238098413819320185166580019604608311466

# Cofacteur : p - 1 = q * r
R = ((P - 1) * pow(Q, -1, P)) % P

Q_MINUS_ONE = Q - 1


def validate_params(p: int = P, q: int = Q, g: int = G) -> bool:
    """
    Vérifie que les paramètres du groupe sont valides
    """
    if p < 2 or q < 2:
        return False

    # Vérifie que g est un générateur valide
    if g <= 1 or g >= p:
        return False

    # Vérifie que q divise p - 1
    if (p - 1) % q != 0:
        return False

    # Vérifie que g^q ≡ 1 (mod p)
    if pow(g, q, p) != 1:
        return False

    return True


def is_prime(n: int, iterations: Optional[int] = None) -> bool:
    """
    Test de primalité de Miller-Rabin

    Args:
        n: L'entier à tester
        iterations: Nombre de témoins aléatoires ; la probabilité d'erreur est au plus 4^-iterations,
            par défaut celui des réglages

    Returns:
        bool: True si n est probablement premier
    """
    if iterations is None:
        iterations = load_settings().miller_rabin_iterations
    if n < 2:
        return False
    for small in (2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37):
        if n % small == 0:
            return n == small

    # Écrit n - 1 = 2^s * d avec d impair
    s, d = 0, n - 1
    while d % 2 == 0:
        s += 1
        d //= 2

    for _ in range(iterations):
        a = randbelow(n - 3) + 2
        x = pow(a, d, n)
        if x == 1 or x == n - 1:
            continue
        for _ in range(s - 1):
            x = pow(x, 2, n)
            if x == n - 1:
                break
        else:
            return False
    return True


def int_to_hex(value: int) -> str:
    """
    Représentation hexadécimale majuscule, complétée à une longueur paire
    """
    h = format(value, "02X")
    if len(h) % 2:
        h = "0" + h
    return h


@dataclass(frozen=True)
class ElementModQ:
    """Un élément de Z_q, c'est-à-dire dans [0, Q)"""

    elem: int

    def __post_init__(self) -> None:
        if not isinstance(self.elem, int) or not 0 <= self.elem < Q:
            raise InvalidElementError(f"Élément hors de [0, Q) : {self.elem}")

    def to_hex(self) -> str:
        return int_to_hex(self.elem)

    def to_int(self) -> int:
        return self.elem

    def is_in_bounds(self) -> bool:
        return 0 <= self.elem < Q

    def is_in_bounds_no_zero(self) -> bool:
        return 0 < self.elem < Q

    def __str__(self) -> str:
        return self.to_hex()


@dataclass(frozen=True)
class ElementModP:
    """Un élément de Z_p, c'est-à-dire dans [0, P)"""

    elem: int

    def __post_init__(self) -> None:
        if not isinstance(self.elem, int) or not 0 <= self.elem < P:
            raise InvalidElementError("Élément hors de [0, P)")

    def to_hex(self) -> str:
        return int_to_hex(self.elem)

    def to_int(self) -> int:
        return self.elem

    def is_in_bounds(self) -> bool:
        return 0 <= self.elem < P

    def is_in_bounds_no_zero(self) -> bool:
        return 0 < self.elem < P

    def is_valid_residue(self) -> bool:
        """
        Vérifie l'appartenance au sous-groupe d'ordre q : v^q ≡ 1 (mod p)

        À appeler avant de faire confiance à une clé publique ou à un chiffré reçu de l'extérieur.
        """
        return self.is_in_bounds_no_zero() and pow(self.elem, Q, P) == 1

    def __str__(self) -> str:
        return self.to_hex()


ElementModPOrQ = Union[ElementModP, ElementModQ]
ElementModQorInt = Union[ElementModQ, int]
ElementModPorInt = Union[ElementModP, int]

ZERO_MOD_Q = ElementModQ(0)
ONE_MOD_Q = ElementModQ(1)
TWO_MOD_Q = ElementModQ(2)

ZERO_MOD_P = ElementModP(0)
ONE_MOD_P = ElementModP(1)
TWO_MOD_P = ElementModP(2)


def _as_int(value: Union[ElementModPOrQ, int]) -> int:
    if isinstance(value, int):
        return value
    return value.elem


def hex_to_q(value: str) -> ElementModQ:
    """
    Convertit une chaîne hexadécimale en élément de Z_q

    Raises:
        InvalidElementError: Si la chaîne n'est pas hexadécimale ou hors de [0, Q)
    """
    try:
        parsed = int(value, 16)
    except (TypeError, ValueError) as error:
        raise InvalidElementError(f"Hexadécimal invalide : {value!r}") from error
    return ElementModQ(parsed)


def int_to_q(value: int) -> ElementModQ:
    """Construit un élément de Z_q ; rejette les valeurs hors de [0, Q)"""
    return ElementModQ(value)


def int_to_p(value: int) -> ElementModP:
    """Construit un élément de Z_p ; rejette les valeurs hors de [0, P)"""
    return ElementModP(value)


def int_to_q_unchecked(value: int) -> ElementModQ:
    return ElementModQ(value % Q)


def int_to_p_unchecked(value: int) -> ElementModP:
    return ElementModP(value % P)


def add_q(*elems: ElementModQorInt) -> ElementModQ:
    """Additionne des éléments modulo q"""
    total = 0
    for e in elems:
        total = (total + _as_int(e)) % Q
    return ElementModQ(total)


def a_minus_b_q(a: ElementModQorInt, b: ElementModQorInt) -> ElementModQ:
    """Calcule (a - b) mod q"""
    return ElementModQ((_as_int(a) - _as_int(b)) % Q)


def negate_q(a: ElementModQorInt) -> ElementModQ:
    """Calcule (q - a) mod q"""
    return ElementModQ((Q - _as_int(a)) % Q)


def a_plus_bc_q(a: ElementModQorInt, b: ElementModQorInt, c: ElementModQorInt) -> ElementModQ:
    """Calcule (a + b * c) mod q"""
    return ElementModQ((_as_int(a) + _as_int(b) * _as_int(c)) % Q)


def mult_q(*elems: ElementModQorInt) -> ElementModQ:
    """Multiplie des éléments modulo q"""
    product = 1
    for e in elems:
        product = (product * _as_int(e)) % Q
    return ElementModQ(product)


def div_q(a: ElementModQorInt, b: ElementModQorInt) -> ElementModQ:
    """
    Calcule a / b mod q

    Raises:
        InvalidElementError: Si b n'est pas inversible
    """
    b_int = _as_int(b) % Q
    if b_int == 0:
        raise InvalidElementError("Division par zéro modulo q")
    return ElementModQ((_as_int(a) * pow(b_int, -1, Q)) % Q)


def pow_q(b: ElementModQorInt, e: ElementModQorInt) -> ElementModQ:
    """Calcule b^e mod q"""
    return ElementModQ(pow(_as_int(b), _as_int(e), Q))


def mult_p(*elems: ElementModPorInt) -> ElementModP:
    """Multiplie des éléments modulo p"""
    product = 1
    for e in elems:
        product = (product * _as_int(e)) % P
    return ElementModP(product)


def mult_inv_p(e: ElementModPOrQ) -> ElementModP:
    """
    Calcule l'inverse multiplicatif modulo p

    Raises:
        InvalidElementError: Si e est nul
    """
    e_int = _as_int(e) % P
    if e_int == 0:
        raise InvalidElementError("Zéro n'a pas d'inverse modulo p")
    return ElementModP(pow(e_int, -1, P))


def div_p(a: ElementModPOrQ, b: ElementModPOrQ) -> ElementModP:
    """Calcule a / b mod p"""
    return mult_p(_as_int(a), mult_inv_p(b))


def pow_p(b: ElementModPOrQ, e: ElementModPOrQ) -> ElementModP:
    """
    Calcule b^e mod p

    Args:
        b: La base
        e: L'exposant

    Returns:
        ElementModP: b^e mod p
    """
    return ElementModP(pow(_as_int(b), _as_int(e), P))


def g_pow_p(e: ElementModPOrQ) -> ElementModP:
    """Calcule g^e mod p"""
    return pow_p(G, e)


def rand_q() -> ElementModQ:
    """Tire un élément aléatoire de Z_q de manière cryptographiquement sûre"""
    return ElementModQ(randbelow(Q))


def rand_range_q(start: ElementModQorInt) -> ElementModQ:
    """Tire un élément aléatoire dans [start, Q)"""
    start_int = _as_int(start)
    if not 0 <= start_int < Q:
        raise InvalidElementError("Borne inférieure invalide")
    return ElementModQ(start_int + randbelow(Q - start_int))
