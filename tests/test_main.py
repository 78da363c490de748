"""
Tests for the command-line entrypoint (main.py).
"""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

import main
from backend_vetting.core.exceptions import Timeout

from conftest import MINT, TOKEN_KEY


def test_vet_prints_envelope(vetting_env, service, capsys):
    with patch("backend_vetting.vetting.service.VettingService.from_settings", return_value=service):
        code = main.main(["vet", MINT])

    assert code == 0
    out = json.loads(capsys.readouterr().out)
    assert out["success"] is True
    assert out["tokenId"] == TOKEN_KEY
    assert out["verdict"]["status"] == "pass"


def test_vet_failure_exit_code(vetting_env, service, fake_client, capsys):
    fake_client.error = Timeout("dexscreener timed out")
    with patch("backend_vetting.vetting.service.VettingService.from_settings", return_value=service):
        code = main.main(["vet", MINT, "--force"])

    assert code == 1
    assert json.loads(capsys.readouterr().out)["error"]["kind"] == "Timeout"


def test_command_is_required():
    with pytest.raises(SystemExit):
        main.main([])
