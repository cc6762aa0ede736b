from __future__ import annotations

import pytest

from rentflow.config import Settings


def test_scheduler_mode_is_normalised():
    assert Settings(move_in_scheduler_mode=" Celery ").move_in_scheduler_mode == "celery"


def test_unknown_scheduler_mode_is_rejected():
    with pytest.raises(ValueError):
        Settings(move_in_scheduler_mode="cron")


def test_prod_refuses_dev_auth():
    with pytest.raises(ValueError):
        Settings(app_env="prod", auth_mode="dev", jwt_secret="x" * 40)
    with pytest.raises(ValueError):
        Settings(app_env="prod", auth_mode="jwt", jwt_secret="dev-change-me")
    s = Settings(app_env="prod", auth_mode="jwt", jwt_secret="x" * 40)
    assert s.auth_mode == "jwt"
