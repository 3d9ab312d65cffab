from __future__ import annotations

import asyncio

import pytest
from nio import LoginError

import client
from core.config import MatrixConfig


class DummyLoginResponse:
    def __init__(self, device_id: str) -> None:
        self.user_id = "@bridge:hs"
        self.device_id = device_id


class FakeMatrixClient:
    def __init__(self, response) -> None:
        self.access_token = ""
        self.user_id = ""
        self.device_id = None
        self.logins: list[tuple[str, str, "str | None"]] = []
        self._response = response

    async def login(self, password: str, device_name: str = ""):
        self.logins.append((password, device_name, self.device_id))
        return self._response


def _config(tmp_path) -> MatrixConfig:
    return MatrixConfig(
        homeserver="https://hs",
        user_id="@bridge:hs",
        device_id_file=str(tmp_path / "state" / "device_id"),
    )


@pytest.fixture(autouse=True)
def _no_dotenv(monkeypatch) -> None:
    monkeypatch.setattr(client, "load_dotenv", lambda: None)
    for name in ("MATRIX_ACCESS_TOKEN", "MATRIX_PASSWORD", "TELEGRAM_BOT_TOKEN"):
        monkeypatch.delenv(name, raising=False)


def test_password_login_persists_device_id(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("MATRIX_PASSWORD", "secret")
    config = _config(tmp_path)
    fake = FakeMatrixClient(DummyLoginResponse("DEVICE1"))

    asyncio.run(client.login_matrix(fake, config))

    assert fake.logins == [("secret", "mxtg-bridge", None)]
    with open(config.device_id_file, encoding="utf-8") as handle:
        assert handle.read() == "DEVICE1"


def test_password_login_reuses_stored_device_id(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("MATRIX_PASSWORD", "secret")
    config = _config(tmp_path)
    (tmp_path / "state").mkdir()
    (tmp_path / "state" / "device_id").write_text("DEVICE1\n", encoding="utf-8")
    fake = FakeMatrixClient(DummyLoginResponse("DEVICE1"))

    asyncio.run(client.login_matrix(fake, config))

    assert fake.logins[0][2] == "DEVICE1"


def test_access_token_skips_password_login(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("MATRIX_ACCESS_TOKEN", "syt_token")
    fake = FakeMatrixClient(DummyLoginResponse("unused"))

    asyncio.run(client.login_matrix(fake, _config(tmp_path)))

    assert fake.logins == []
    assert fake.access_token == "syt_token"
    assert fake.user_id == "@bridge:hs"


def test_failed_login_raises(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("MATRIX_PASSWORD", "wrong")
    fake = FakeMatrixClient(LoginError("Invalid password", "M_FORBIDDEN"))

    with pytest.raises(RuntimeError):
        asyncio.run(client.login_matrix(fake, _config(tmp_path)))


def test_missing_credentials_raise(tmp_path) -> None:
    with pytest.raises(RuntimeError):
        asyncio.run(client.login_matrix(FakeMatrixClient(None), _config(tmp_path)))
    with pytest.raises(RuntimeError):
        client.load_telegram_token()


def test_matrix_client_leaves_retries_to_the_bridge(tmp_path) -> None:
    matrix_client = client.build_matrix_client(_config(tmp_path))

    assert matrix_client.homeserver == "https://hs"
    assert matrix_client.user == "@bridge:hs"
    assert matrix_client.config.max_timeouts == 0
    assert matrix_client.config.max_limit_exceeded == 0
    assert matrix_client.config.encryption_enabled is False
