"""Tests for the per-request context."""

from __future__ import annotations

import dataclasses

import pytest

from fight_genie.context import RequestContext
from fight_genie.predictions.base import ModelName


def test_from_settings(settings):
    ctx = RequestContext.from_settings(settings, guild_id="g1")
    assert ctx.guild_id == "g1"
    assert ctx.model is ModelName.GPT
    assert ctx.admin_server_id == "admin-guild"
    assert ctx.allows_command()


def test_with_model_returns_new_context(settings):
    ctx = RequestContext.from_settings(settings, guild_id="g1")
    claude = ctx.with_model("claude")
    assert claude.model is ModelName.CLAUDE
    assert ctx.model is ModelName.GPT
    with pytest.raises(dataclasses.FrozenInstanceError):
        ctx.model = ModelName.CLAUDE  # type: ignore[misc]


def test_admin_mode_only_serves_admin_server():
    ctx = RequestContext(guild_id="g1", admin_mode=True, admin_server_id="admin-guild")
    assert not ctx.allows_command()
    assert RequestContext(guild_id="admin-guild", admin_mode=True, admin_server_id="admin-guild").allows_command()
    assert not RequestContext(guild_id=None, admin_mode=True, admin_server_id=None).allows_command()


def test_invalid_model_rejected(settings):
    with pytest.raises(ValueError):
        RequestContext.from_settings(settings).with_model("llama")
