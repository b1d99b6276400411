"""Tests for reviewer profiles.

Tests cover:
- Idempotent seeding of the built-in profiles
- Reviewer resolution: personal profile over system, custom ownership
- Read-only system profiles
- Custom profile CRUD with per-user unique names
"""

import pytest
from sqlalchemy import func, select

from betareader.db.models import AIProfile
from betareader.errors import ApiErrorCode, ConflictError, ForbiddenError, NotFoundError
from betareader.schemas.profiles import (
    CreateAIProfileRequest,
    CreateCustomProfileRequest,
    UpdateCustomProfileRequest,
)
from betareader.services import profiles as profiles_service
from betareader.services.profiles import CustomReviewer, SystemReviewer
from tests.helpers import auth_headers, create_test_sub


class TestSeeding:
    def test_seed_is_idempotent(self, db_session):
        profiles_service.seed_system_profiles(db_session)
        profiles_service.seed_system_profiles(db_session)

        count = db_session.scalar(
            select(func.count(AIProfile.id)).where(AIProfile.is_system.is_(True))
        )
        assert count == len(profiles_service.SYSTEM_PROFILES)

    def test_system_profiles_listed_first(self, db_session, viewer_id):
        profiles_service.create_ai_profile(
            db_session,
            viewer_id,
            CreateAIProfileRequest(name="Aardvark", tone_key="mine", system_prompt="Be brief."),
        )

        profiles = profiles_service.list_ai_profiles(db_session, viewer_id)

        assert [p.is_system for p in profiles] == [True, True, True, False]
        assert profiles[-1].name == "Aardvark"


class TestResolveReviewer:
    def test_system_profile_by_tone(self, db_session, viewer_id):
        reviewer = profiles_service.resolve_reviewer(db_session, viewer_id, "editorial", None)

        assert isinstance(reviewer, SystemReviewer)
        assert reviewer.name == "Editorial Notes"

    def test_personal_profile_shadows_system_profile(self, db_session, viewer_id):
        personal = profiles_service.create_ai_profile(
            db_session,
            viewer_id,
            CreateAIProfileRequest(
                name="My Editor", tone_key="editorial", system_prompt="Only pacing notes."
            ),
        )

        reviewer = profiles_service.resolve_reviewer(db_session, viewer_id, "editorial", None)

        assert reviewer.profile_id == personal.id
        assert reviewer.system_prompt == "Only pacing notes."

    def test_other_users_personal_profile_is_invisible(
        self, db_session, viewer_id, other_viewer_id
    ):
        profiles_service.create_ai_profile(
            db_session,
            other_viewer_id,
            CreateAIProfileRequest(name="Theirs", tone_key="secret", system_prompt="x"),
        )

        with pytest.raises(NotFoundError) as exc_info:
            profiles_service.resolve_reviewer(db_session, viewer_id, "secret", None)

        assert exc_info.value.code == ApiErrorCode.E_PROFILE_NOT_FOUND

    def test_custom_profile(self, db_session, viewer_id):
        custom = profiles_service.create_custom_profile(
            db_session,
            viewer_id,
            CreateCustomProfileRequest(name="Skeptic", description="Doubts everything."),
        )

        reviewer = profiles_service.resolve_reviewer(db_session, viewer_id, None, custom.id)

        assert isinstance(reviewer, CustomReviewer)
        assert "Doubts everything." in reviewer.system_prompt

    def test_custom_profile_of_another_user_is_not_found(
        self, db_session, viewer_id, other_viewer_id
    ):
        custom = profiles_service.create_custom_profile(
            db_session,
            other_viewer_id,
            CreateCustomProfileRequest(name="Skeptic", description="Doubts everything."),
        )

        with pytest.raises(NotFoundError):
            profiles_service.resolve_reviewer(db_session, viewer_id, None, custom.id)


class TestAIProfiles:
    def test_system_profile_is_read_only(self, db_session, viewer_id):
        system = profiles_service.list_ai_profiles(db_session, viewer_id)[0]

        with pytest.raises(ForbiddenError) as exc_info:
            profiles_service.delete_ai_profile(db_session, viewer_id, system.id)

        assert exc_info.value.code == ApiErrorCode.E_SYSTEM_PROFILE_READONLY

    def test_duplicate_tone_key_conflicts(self, db_session, viewer_id):
        req = CreateAIProfileRequest(name="A", tone_key="mine", system_prompt="x")
        profiles_service.create_ai_profile(db_session, viewer_id, req)

        with pytest.raises(ConflictError):
            profiles_service.create_ai_profile(db_session, viewer_id, req)

    def test_delete_personal_profile(self, db_session, viewer_id):
        profile = profiles_service.create_ai_profile(
            db_session,
            viewer_id,
            CreateAIProfileRequest(name="A", tone_key="mine", system_prompt="x"),
        )

        profiles_service.delete_ai_profile(db_session, viewer_id, profile.id)

        assert db_session.get(AIProfile, profile.id) is None


class TestCustomProfiles:
    def test_crud(self, db_session, viewer_id):
        created = profiles_service.create_custom_profile(
            db_session,
            viewer_id,
            CreateCustomProfileRequest(name="  Skeptic  ", description="Doubts."),
        )
        assert created.name == "Skeptic"

        updated = profiles_service.update_custom_profile(
            db_session,
            viewer_id,
            created.id,
            UpdateCustomProfileRequest(description="Doubts everything."),
        )
        assert updated.name == "Skeptic"
        assert updated.description == "Doubts everything."

        profiles_service.delete_custom_profile(db_session, viewer_id, created.id)
        assert profiles_service.list_custom_profiles(db_session, viewer_id) == []

    def test_duplicate_name_conflicts(self, db_session, viewer_id):
        req = CreateCustomProfileRequest(name="Skeptic", description="Doubts.")
        profiles_service.create_custom_profile(db_session, viewer_id, req)

        with pytest.raises(ConflictError):
            profiles_service.create_custom_profile(db_session, viewer_id, req)

    def test_same_name_for_different_users(self, db_session, viewer_id, other_viewer_id):
        req = CreateCustomProfileRequest(name="Skeptic", description="Doubts.")
        profiles_service.create_custom_profile(db_session, viewer_id, req)
        profiles_service.create_custom_profile(db_session, other_viewer_id, req)

        assert len(profiles_service.list_custom_profiles(db_session, other_viewer_id)) == 1

    def test_rename_to_existing_name_conflicts(self, db_session, viewer_id):
        profiles_service.create_custom_profile(
            db_session, viewer_id, CreateCustomProfileRequest(name="A", description="x")
        )
        b = profiles_service.create_custom_profile(
            db_session, viewer_id, CreateCustomProfileRequest(name="B", description="x")
        )

        with pytest.raises(ConflictError):
            profiles_service.update_custom_profile(
                db_session, viewer_id, b.id, UpdateCustomProfileRequest(name="A")
            )


class TestProfileRoutes:
    def test_ai_profile_routes(self, client):
        headers = auth_headers(create_test_sub())

        listed = client.get("/ai-profiles", headers=headers).json()["data"]
        assert sorted(p["tone_key"] for p in listed) == ["editorial", "fanficnet", "line-notes"]

        response = client.delete(f"/ai-profiles/{listed[0]['id']}", headers=headers)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "E_SYSTEM_PROFILE_READONLY"

        response = client.post(
            "/ai-profiles",
            json={"name": "Mine", "tone_key": "mine", "system_prompt": "Be kind."},
            headers=headers,
        )
        assert response.status_code == 201
        profile_id = response.json()["data"]["id"]
        assert client.delete(f"/ai-profiles/{profile_id}", headers=headers).status_code == 204

    def test_custom_profile_routes(self, client):
        headers = auth_headers(create_test_sub())
        body = {"name": "Skeptic", "description": "Doubts."}

        response = client.post("/custom-profiles", json=body, headers=headers)
        assert response.status_code == 201
        profile_id = response.json()["data"]["id"]

        assert client.post("/custom-profiles", json=body, headers=headers).status_code == 409

        response = client.patch(
            f"/custom-profiles/{profile_id}", json={"name": "Cynic"}, headers=headers
        )
        assert response.json()["data"]["name"] == "Cynic"

        other = auth_headers(create_test_sub())
        assert client.get("/custom-profiles", headers=other).json()["data"] == []
        assert client.delete(f"/custom-profiles/{profile_id}", headers=other).status_code == 403

        assert client.delete(f"/custom-profiles/{profile_id}", headers=headers).status_code == 204
