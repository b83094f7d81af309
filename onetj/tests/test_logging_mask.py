import logging

import pytest

from onetj.core import token_store
from onetj.core.config import settings
from onetj.middlewares.logging import logger as access_logger, mask_secrets, set_access_log_level


def test_mask_secrets_nested():
    body = {
        "code": "auth-code",
        "data": [{"access_token": "T", "name": "张三"}],
        "Authorization": "Bearer x",
        "expires_in": 3600,
    }
    assert mask_secrets(body) == {
        "code": "***",
        "data": [{"access_token": "***", "name": "张三"}],
        "Authorization": "***",
        "expires_in": 3600,
    }


def test_get_token_store_backends(monkeypatch):
    monkeypatch.setattr(settings, "tongji_token_backend", "memory")
    assert isinstance(token_store.get_token_store(), token_store.MemoryTokenStore)

    monkeypatch.setattr(settings, "tongji_token_backend", "sqlite")
    with pytest.raises(RuntimeError):
        token_store.get_token_store()


def test_access_log_level_follows_setting():
    try:
        set_access_log_level("debug")
        assert access_logger.isEnabledFor(logging.DEBUG)

        set_access_log_level("WARNING")
        assert not access_logger.isEnabledFor(logging.INFO)
    finally:
        set_access_log_level(settings.log_level)
