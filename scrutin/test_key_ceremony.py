from dataclasses import replace
from types import MappingProxyType

import pytest

from scrutin.config import CeremonyDetails
from scrutin.elgamal import elgamal_combine_public_keys
from scrutin.errors import CeremonyError
from scrutin.guardian import Guardian, GuardianStatus
from scrutin.key_ceremony import (
    combine_election_public_keys,
    generate_election_partial_key_backup,
    generate_election_partial_key_challenge,
    verify_election_partial_key_backup,
    verify_election_partial_key_challenge,
)
from scrutin.mediator import KeyCeremonyMediator
from scrutin.polynomial import compute_polynomial_coordinate


def corrupt_received_backup(mediator: KeyCeremonyMediator, owner_id: str, designated_id: str) -> None:
    """Altère le chiffré d'une sauvegarde déjà livrée au destinataire"""
    designated = mediator.guardians[designated_id]
    backup = designated.received_backups[owner_id]
    encrypted = backup.encrypted_value
    corrupted = replace(backup, encrypted_value=bytes([encrypted[0] ^ 1]) + encrypted[1:])
    backups = dict(designated.received_backups)
    backups[owner_id] = corrupted
    mediator.guardians[designated_id] = replace(designated, received_backups=MappingProxyType(backups))


def test_guardian_creation(new_guardians, ceremony_details):
    guardian = new_guardians[0]
    assert guardian.status == GuardianStatus.KEYS_GENERATED
    assert guardian.share_public_keys().is_valid()
    assert list(guardian.guardian_public_keys) == [guardian.object_id]
    assert len(guardian.election_keys.polynomial.coefficients) == ceremony_details.quorum


def test_guardian_rejects_invalid_sequence_order(ceremony_details, channel):
    with pytest.raises(CeremonyError):
        Guardian.create("gardien-x", 0, ceremony_details, channel)
    with pytest.raises(CeremonyError):
        Guardian.create("gardien-x", 6, ceremony_details, channel)


def test_guardian_rejects_invalid_public_keys(new_guardians):
    first, second = new_guardians[0], new_guardians[1]
    key_set = second.share_public_keys()
    forged = replace(key_set, election_public_key=first.election_public_key())
    with pytest.raises(CeremonyError):
        first.receive_public_keys(forged)
    duplicate_order = replace(key_set, owner_id="usurpateur", sequence_order=first.sequence_order)
    with pytest.raises(CeremonyError):
        first.receive_public_keys(duplicate_order)


def test_transitions_are_enforced(new_guardians, channel):
    """Les étapes hors séquence sont refusées, l'instantané d'origine reste intact"""
    guardian = new_guardians[0]
    with pytest.raises(CeremonyError):
        guardian.generate_backups(channel)
    with pytest.raises(CeremonyError):
        guardian.combine_joint_key()
    with pytest.raises(CeremonyError):
        guardian.verify_backups(channel)
    assert guardian.status == GuardianStatus.KEYS_GENERATED


def test_backup_round_trip(new_guardians, channel):
    owner, designated = new_guardians[0], new_guardians[1]
    backup = generate_election_partial_key_backup(
        owner.object_id,
        owner.election_keys.polynomial,
        designated.share_public_keys().auxiliary(),
        channel,
    )
    assert backup.designated_sequence_order == designated.sequence_order
    verification = verify_election_partial_key_backup(
        designated.object_id, backup, designated.auxiliary_keys, channel, designated.sequence_order
    )
    assert verification.verified
    # Déchiffrée avec les clés d'un autre gardien, la sauvegarde est rejetée
    assert not verify_election_partial_key_backup(
        designated.object_id,
        backup,
        new_guardians[2].auxiliary_keys,
        channel,
        designated.sequence_order,
    ).verified


def test_challenge_reveals_verifiable_value(new_guardians, channel):
    owner, designated = new_guardians[0], new_guardians[1]
    backup = generate_election_partial_key_backup(
        owner.object_id,
        owner.election_keys.polynomial,
        designated.share_public_keys().auxiliary(),
        channel,
    )
    challenge = generate_election_partial_key_challenge(backup, owner.election_keys.polynomial)
    assert challenge.value == compute_polynomial_coordinate(
        designated.sequence_order, owner.election_keys.polynomial
    )
    assert verify_election_partial_key_challenge("gardien-3", challenge, designated.sequence_order).verified
    wrong = replace(challenge, value=new_guardians[2].election_keys.key_pair.secret_key)
    assert not verify_election_partial_key_challenge("gardien-3", wrong, designated.sequence_order).verified


def test_backup_checked_at_receiver_sequence_order(new_guardians, start_ceremony, channel):
    """Une sauvegarde P(3) étiquetée rang 3 mais livrée au gardien de rang 2 est refusée"""
    owner, designated = new_guardians[0], new_guardians[1]
    mislabeled_key = replace(designated.share_public_keys().auxiliary(), sequence_order=3)
    forged = generate_election_partial_key_backup(
        owner.object_id, owner.election_keys.polynomial, mislabeled_key, channel
    )
    assert forged.designated_id == designated.object_id
    assert not verify_election_partial_key_backup(
        designated.object_id, forged, designated.auxiliary_keys, channel, designated.sequence_order
    ).verified

    challenge = generate_election_partial_key_challenge(forged, owner.election_keys.polynomial)
    assert not verify_election_partial_key_challenge(
        "gardien-3", challenge, designated.sequence_order
    ).verified

    mediator = start_ceremony()
    with pytest.raises(CeremonyError):
        mediator.guardians[designated.object_id].receive_backup(forged)


def test_full_ceremony(ceremony, new_guardians):
    """Cinq gardiens, quorum de trois : la clé conjointe est le produit des clés publiques"""
    mediator, joint_key = ceremony
    expected = elgamal_combine_public_keys(g.election_public_key() for g in new_guardians)
    assert joint_key.joint_public_key == expected
    for guardian in mediator.guardians.values():
        assert guardian.status == GuardianStatus.JOINT_KEY_COMBINED
        assert guardian.joint_key == joint_key
        assert len(guardian.received_backups) == 4
        assert guardian.all_backups_verified()


def test_joint_key_is_independent_of_order(new_guardians):
    key_sets = [g.share_public_keys() for g in new_guardians]
    assert combine_election_public_keys(key_sets) == combine_election_public_keys(reversed(key_sets))


def test_mediator_rejects_bad_announcements(new_guardians, channel, ceremony_details):
    mediator = KeyCeremonyMediator(ceremony_details, channel)
    mediator.announce(new_guardians[0])
    with pytest.raises(CeremonyError):
        mediator.announce(new_guardians[0])
    with pytest.raises(CeremonyError):
        mediator.orchestrate()

    other_details = CeremonyDetails(number_of_guardians=5, quorum=2)
    with pytest.raises(CeremonyError):
        KeyCeremonyMediator(other_details, channel).announce(new_guardians[1])


def test_corrupted_backup_fails_only_that_backup(start_ceremony):
    """Une sauvegarde altérée échoue seule ; la republier débloque la cérémonie"""
    mediator = start_ceremony()
    corrupt_received_backup(mediator, "gardien-2", "gardien-4")

    failures = mediator.verify()
    assert [(f.owner_id, f.designated_id) for f in failures] == [("gardien-2", "gardien-4")]
    assert mediator.guardian("gardien-4").status == GuardianStatus.PENDING_VERIFICATION
    assert mediator.guardian("gardien-1").status == GuardianStatus.BACKUPS_VERIFIED
    assert not mediator.all_backups_verified()
    assert mediator.publish_joint_key() is None

    mediator.reissue_backups(failures)
    assert mediator.attempts("gardien-2", "gardien-4") == 2
    assert mediator.verify() == []
    assert mediator.all_backups_verified()
    assert mediator.publish_joint_key() is not None


def test_backup_retry_budget(start_ceremony):
    """Au-delà du budget de tentatives, la cérémonie est abandonnée"""
    mediator = start_ceremony(max_backup_attempts=1)
    corrupt_received_backup(mediator, "gardien-1", "gardien-3")
    failures = mediator.verify()
    assert len(failures) == 1
    with pytest.raises(CeremonyError):
        mediator.reissue_backups(failures)


def test_challenge_resolves_disputed_backup(start_ceremony):
    mediator = start_ceremony()
    corrupt_received_backup(mediator, "gardien-5", "gardien-2")
    failures = mediator.verify()
    assert len(failures) == 1

    verdict = mediator.challenge(failures[0])
    assert verdict.verified
    assert mediator.guardian("gardien-2").status == GuardianStatus.BACKUPS_VERIFIED
    assert "gardien-5" in mediator.guardian("gardien-2").challenged_values
    assert mediator.publish_joint_key() is not None
