import logging

import pytest
from pydantic import ValidationError

from scrutin.auxiliary import RsaAuxiliaryChannel
from scrutin.config import CeremonyDetails, ScrutinSettings, load_settings
from scrutin.dlog import DiscreteLog
from scrutin.logs import ROOT_LOGGER, configure_logging
from scrutin.mediator import KeyCeremonyMediator
from scrutin.scheduler import Scheduler


def test_ceremony_details():
    details = CeremonyDetails(number_of_guardians=5, quorum=3)
    assert details.max_missing == 2
    with pytest.raises(ValidationError):
        CeremonyDetails(number_of_guardians=3, quorum=4)
    with pytest.raises(ValidationError):
        CeremonyDetails(number_of_guardians=0, quorum=0)
    with pytest.raises(ValidationError):
        details.quorum = 2


def test_default_settings():
    settings = ScrutinSettings()
    assert settings.rsa_key_size == 4096
    assert settings.max_backup_attempts == 3
    assert settings.scheduler_max_workers is None


def test_load_settings_from_environment(monkeypatch):
    """Les variables SCRUTIN_* sont lues ; les valeurs explicites priment"""
    monkeypatch.setenv("SCRUTIN_RSA_KEY_SIZE", "2048")
    monkeypatch.setenv("SCRUTIN_DLOG_MAX_EXPONENT", "500")
    settings = load_settings(dlog_max_exponent=10)
    assert settings.rsa_key_size == 2048
    assert settings.dlog_max_exponent == 10


def test_load_settings_rejects_invalid_values(monkeypatch):
    monkeypatch.setenv("SCRUTIN_RSA_KEY_SIZE", "512")
    with pytest.raises(ValidationError):
        load_settings()


def test_configure_logging_installs_one_handler():
    logger = configure_logging("WARNING")
    handlers = len(logger.handlers)
    assert configure_logging("DEBUG") is logger
    assert len(logger.handlers) == handlers == 1
    assert logger.name == ROOT_LOGGER
    assert logger.level == logging.DEBUG


def test_components_read_environment_when_built(monkeypatch, ceremony_details, channel):
    """Les valeurs par défaut sont relues à la construction, pas figées à l'import"""
    monkeypatch.setenv("SCRUTIN_RSA_KEY_SIZE", "2048")
    monkeypatch.setenv("SCRUTIN_DLOG_MAX_EXPONENT", "25")
    monkeypatch.setenv("SCRUTIN_MAX_BACKUP_ATTEMPTS", "7")
    monkeypatch.setenv("SCRUTIN_SCHEDULER_MAX_WORKERS", "2")
    assert RsaAuxiliaryChannel().key_size == 2048
    assert DiscreteLog().max_exponent == 25
    assert KeyCeremonyMediator(ceremony_details, channel).max_backup_attempts == 7
    assert Scheduler().max_workers == 2
    # Une valeur explicite prime sur l'environnement
    assert DiscreteLog(max_exponent=3).max_exponent == 3
