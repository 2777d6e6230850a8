from dataclasses import replace

import pytest

from scrutin.context import make_crypto_base_hash
from scrutin.elgamal import elgamal_add
from scrutin.encrypt import (
    BallotEncrypter,
    EncryptionDevice,
    PlaintextBallot,
    encrypt_ballot,
    encrypt_contest,
    encrypt_selection,
)
from scrutin.errors import InvalidElementError
from scrutin.group import G, P, Q, ElementModP, ElementModQ, int_to_hex, rand_q
from scrutin.hash import hash_elems
from scrutin.tracker import get_first_tracker_seed, get_hash_for_device, get_rotating_tracker_hash


def test_context(context, ceremony_details, ceremony):
    _, joint_key = ceremony
    assert context.elgamal_public_key == joint_key.joint_public_key
    assert context.crypto_base_hash == make_crypto_base_hash(5, 3, context.description_hash)
    assert context.crypto_extended_base_hash == hash_elems(
        context.crypto_base_hash, joint_key.commitment_hash
    )


def test_base_hash_uses_hex_constants():
    """P, Q et G entrent dans le hachage de base sous forme hexadécimale, G comme un élément de Z_p"""
    description_hash = ElementModQ(7)
    expected = hash_elems(int_to_hex(P), int_to_hex(Q), ElementModP(G), 5, 3, description_hash)
    assert make_crypto_base_hash(5, 3, description_hash) == expected
    assert make_crypto_base_hash(5, 3, description_hash) != hash_elems(P, Q, G, 5, 3, description_hash)
    assert int_to_hex(10) == "0A"


def test_encrypt_selection(context, contest_descriptions):
    description = contest_descriptions[0].selections[0]
    seed = rand_q()
    selection = encrypt_selection(
        description, 1, context.elgamal_public_key, context.crypto_extended_base_hash, seed
    )
    assert selection.description_hash == description.crypto_hash()
    assert selection.is_valid_encryption(
        description.crypto_hash(), context.elgamal_public_key, context.crypto_extended_base_hash
    )
    assert not selection.is_valid_encryption(
        hash_elems("autre"), context.elgamal_public_key, context.crypto_extended_base_hash
    )
    # Même graine, même chiffré
    again = encrypt_selection(
        description, 1, context.elgamal_public_key, context.crypto_extended_base_hash, seed
    )
    assert again.ciphertext == selection.ciphertext
    with pytest.raises(InvalidElementError):
        encrypt_selection(description, 2, context.elgamal_public_key, context.crypto_extended_base_hash, seed)


def test_encrypt_contest_adds_placeholders(context, contest_descriptions):
    """Les sélections fictives portent le total à votes_allowed"""
    description = contest_descriptions[1]
    contest = encrypt_contest(
        description,
        {"conseil-petit": 1},
        context.elgamal_public_key,
        context.crypto_extended_base_hash,
        rand_q(),
    )
    placeholders = [s for s in contest.ballot_selections if s.is_placeholder_selection]
    assert len(contest.ballot_selections) == 3 + description.votes_allowed
    assert len(placeholders) == description.votes_allowed
    assert contest.proof.constant == description.votes_allowed
    assert contest.encrypted_total == elgamal_add(*(s.ciphertext for s in contest.ballot_selections))
    assert contest.is_valid_encryption(
        description.crypto_hash(), context.elgamal_public_key, context.crypto_extended_base_hash
    )


def test_encrypt_contest_rejects_overvote_and_unknown(context, contest_descriptions):
    description = contest_descriptions[0]
    with pytest.raises(InvalidElementError):
        encrypt_contest(
            description,
            {"maire-dupont": 1, "maire-martin": 1},
            context.elgamal_public_key,
            context.crypto_extended_base_hash,
            rand_q(),
        )
    with pytest.raises(InvalidElementError):
        encrypt_contest(
            description,
            {"inconnu": 1},
            context.elgamal_public_key,
            context.crypto_extended_base_hash,
            rand_q(),
        )


def test_encrypt_ballot_is_valid(context, contest_descriptions):
    ballot = PlaintextBallot("bulletin-1", "style-1", {"maire": {"maire-martin": 1}})
    previous = rand_q()
    encrypted = encrypt_ballot(ballot, contest_descriptions, context, previous, timestamp=1700000000)
    assert encrypted.previous_tracking_hash == previous
    assert encrypted.tracking_hash == get_rotating_tracker_hash(previous, 1700000000, encrypted.crypto_hash)
    assert encrypted.is_valid_encryption(
        context.description_hash, context.elgamal_public_key, context.crypto_extended_base_hash
    )
    assert not encrypted.is_valid_encryption(
        hash_elems("autre manifeste"), context.elgamal_public_key, context.crypto_extended_base_hash
    )


def test_encrypt_ballot_is_reproducible_with_nonce(context, contest_descriptions):
    ballot = PlaintextBallot("bulletin-2", "style-1", {"conseil": {"conseil-leroy": 1}})
    nonce = ElementModQ(123456789)
    first = encrypt_ballot(ballot, contest_descriptions, context, ElementModQ(1), nonce, 10)
    second = encrypt_ballot(ballot, contest_descriptions, context, ElementModQ(1), nonce, 10)
    assert first == second


def test_tampered_ballot_is_invalid(context, contest_descriptions):
    """Remplacer le chiffré d'une sélection casse le hachage et les preuves"""
    ballot = PlaintextBallot("bulletin-3", "style-1", {"maire": {"maire-dupont": 1}})
    encrypted = encrypt_ballot(ballot, contest_descriptions, context, rand_q())
    contest = encrypted.contests[0]
    first, second = contest.ballot_selections[0], contest.ballot_selections[1]
    swapped = replace(first, ciphertext=second.ciphertext)
    tampered_contest = replace(contest, ballot_selections=(swapped,) + contest.ballot_selections[1:])
    tampered = replace(encrypted, contests=(tampered_contest,) + encrypted.contests[1:])
    assert not tampered.is_valid_encryption(
        context.description_hash, context.elgamal_public_key, context.crypto_extended_base_hash
    )


def test_encrypt_ballot_rejects_unknown_contest(context, contest_descriptions):
    ballot = PlaintextBallot("bulletin-4", "style-1", {"référendum": {"oui": 1}})
    with pytest.raises(InvalidElementError):
        encrypt_ballot(ballot, contest_descriptions, context, rand_q())


def test_tracking_hash_chain(context, contest_descriptions):
    """Chaque code de suivi enchaîne le précédent, à partir de H(Q̄, appareil)"""
    device = EncryptionDevice(42, "bureau-de-vote-7")
    encrypter = BallotEncrypter(context, contest_descriptions, device)
    first_seed = get_first_tracker_seed(
        context.crypto_extended_base_hash, get_hash_for_device(42, "bureau-de-vote-7")
    )
    assert encrypter.tracking_hash == first_seed

    first = encrypter.encrypt(PlaintextBallot("suivi-1", "style-1"))
    second = encrypter.encrypt(PlaintextBallot("suivi-2", "style-1"))
    assert first.previous_tracking_hash == first_seed
    assert second.previous_tracking_hash == first.tracking_hash
    assert encrypter.tracking_hash == second.tracking_hash
    assert second.tracking_hash == get_rotating_tracker_hash(
        first.tracking_hash, second.timestamp, second.crypto_hash
    )
    assert set(encrypter.encrypted) == {"suivi-1", "suivi-2"}
