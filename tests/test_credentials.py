import os
import stat
import sys

import pytest

from takeout_tv.backend.auth.credentials import (
    Credentials,
    FileCredentialStore,
    RefreshTokens,
    UserInfo,
)

from conftest import BASE, CREDS


@pytest.fixture
def file_store(tmp_path):
    return FileCredentialStore(tmp_path / "tokens")


def test_file_store_round_trip(file_store):
    info = UserInfo.from_credentials(CREDS, endpoint=BASE, display_name="alice")

    file_store.write(info)

    loaded = file_store.read()
    assert loaded == info
    assert loaded.credentials() == CREDS


@pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX permissions")
def test_file_store_is_owner_only(file_store):
    file_store.write(UserInfo.from_credentials(CREDS, endpoint=BASE))

    assert stat.S_IMODE(os.stat(file_store.path).st_mode) == 0o600


def test_file_store_ignores_corrupt_payload(file_store):
    file_store.path.write_text("{not json", encoding="utf-8")
    assert file_store.read() is None

    file_store.path.write_text('{"endpoint": "x"}', encoding="utf-8")
    assert file_store.read() is None


def test_file_store_clear_is_idempotent(file_store):
    file_store.write(UserInfo.from_credentials(CREDS, endpoint=BASE))

    file_store.clear()
    file_store.clear()

    assert file_store.read() is None


def test_credentials_parse_wire_names_and_hide_tokens():
    creds = Credentials.model_validate(
        {"AccessToken": "tok-access", "MediaToken": "tok-media", "RefreshToken": "tok-refresh", "Extra": 1}
    )

    assert creds.valid()
    assert "tok-" not in repr(creds)
    assert not Credentials(access_token="a", refresh_token="r").valid()


def test_refresh_keeps_media_token():
    refreshed = CREDS.with_refresh(RefreshTokens(access_token="a2", refresh_token="r2"))

    assert (refreshed.access_token, refreshed.media_token, refreshed.refresh_token) == ("a2", "media-1", "r2")
    assert CREDS.access_token == "access-1"
