"""Tests for the resource ownership contract."""
import uuid
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from eportfolio.core.exceptions import AuthorizationError, NotFoundError
from eportfolio.core.security import ensure_owner, get_owned_or_404
from eportfolio.models import Profile

OWNER_ID = uuid.uuid4()
STRANGER_ID = uuid.uuid4()


def test_owner_gets_resource():
    resource = SimpleNamespace(user_id=OWNER_ID)

    assert ensure_owner(resource, OWNER_ID) is resource
    assert ensure_owner(resource, str(OWNER_ID)) is resource


def test_non_owner_is_forbidden():
    with pytest.raises(AuthorizationError):
        ensure_owner(SimpleNamespace(user_id=OWNER_ID), STRANGER_ID, "Achievement")


def test_missing_resource_is_not_found_even_for_non_owner():
    with pytest.raises(NotFoundError) as exc_info:
        ensure_owner(None, STRANGER_ID, "Achievement")

    assert exc_info.value.message == "Achievement not found"


async def _profile_of(database, user_id):
    async with database.session() as session:
        result = await session.execute(select(Profile).where(Profile.user_id == user_id))
        return result.scalar_one()


async def test_get_owned_profile(database, registered):
    profile = await _profile_of(database, registered.user.id)

    async with database.session() as session:
        owned = await get_owned_or_404(session, Profile, profile.id, registered.user.id)
        assert owned.id == profile.id

        with pytest.raises(AuthorizationError):
            await get_owned_or_404(session, Profile, profile.id, STRANGER_ID)


@pytest.mark.parametrize("resource_id", [lambda: uuid.uuid4(), lambda: "not-a-uuid"])
async def test_unknown_id_is_not_found_before_ownership(database, registered, resource_id):
    async with database.session() as session:
        with pytest.raises(NotFoundError):
            await get_owned_or_404(session, Profile, resource_id(), STRANGER_ID)
