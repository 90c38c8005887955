"""
NoteDock Backend - Note Service Tests
======================================

What:  NoteService orchestration over the SQL store and the fake embedder.

What we test:
    ✅ Create: round trip, validation, workspace write capability
    ✅ Create with the provider down: stored with a null embedding and still searchable
    ✅ Update: partial, author-only, re-embeds only on content change
    ✅ Delete: author-only, returns the removed note
    ✅ Read: author or workspace member only, outsiders get AccessDeniedError
    ✅ Search: requires membership and the workspace/type parameters
"""

import uuid

import pytest

from notedock.exceptions import AccessDeniedError, NotFoundError, ValidationError
from notedock.schemas.note import FieldKind, NoteField, NoteType, NoteUpdate


class TestCreateNote:
    @pytest.mark.asyncio
    async def test_round_trip(self, service, seed, make_payload):
        payload = make_payload(
            title="  Recipe  ",
            fields=[
                NoteField(label="Ingredients", type=FieldKind.TEXTBOX, content="flour, eggs"),
                NoteField(label="Servings", type=FieldKind.NUMBER, content=4),
            ],
            tags=["food", " food ", "", "weekend"],
            note_type=NoteType.TEMPLATE,
        )

        created = await service.create_note(seed.owner, payload)
        loaded = await service.get_note(created.id, seed.owner)

        assert loaded.author_id == seed.owner
        assert loaded.workspace_id == seed.home
        assert loaded.note_type == NoteType.TEMPLATE
        assert loaded.title == "Recipe"
        assert [(f.label, f.type, f.content) for f in loaded.fields] == [
            ("Ingredients", FieldKind.TEXTBOX, "flour, eggs"),
            ("Servings", FieldKind.NUMBER, "4"),
        ]
        assert loaded.tags == ["food", "weekend"]
        assert loaded.version == 1

    @pytest.mark.asyncio
    async def test_embeds_title_and_labelled_fields(self, service, embedder, seed, make_payload):
        created = await service.create_note(seed.owner, make_payload(title="Plan", content="ship it"))

        assert created.embedding is not None
        assert len(created.embedding) == embedder.dimensions
        assert embedder.calls[-1][0] == "Plan\nBody: ship it"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"title": "   "}, "title"),
            ({"fields": []}, "fields"),
            ({"fields": [NoteField(label=" ", content="x")]}, "fields"),
        ],
    )
    async def test_invalid_content_rejected(self, service, seed, make_payload, overrides, field):
        with pytest.raises(ValidationError) as exc_info:
            await service.create_note(seed.owner, make_payload(**overrides))
        assert exc_info.value.field == field

    @pytest.mark.asyncio
    async def test_missing_workspace_or_type_rejected(self, service, seed, make_payload):
        payload = make_payload()
        with pytest.raises(ValidationError):
            await service.create_note(seed.owner, payload.model_copy(update={"workspace_id": None}))
        with pytest.raises(ValidationError):
            await service.create_note(seed.owner, payload.model_copy(update={"note_type": None}))

    @pytest.mark.asyncio
    async def test_viewer_cannot_create(self, service, seed, make_payload):
        with pytest.raises(AccessDeniedError) as exc_info:
            await service.create_note(seed.viewer, make_payload(workspace_id=seed.team))
        assert exc_info.value.reason == "read_only"

    @pytest.mark.asyncio
    async def test_unknown_workspace(self, service, seed, make_payload):
        with pytest.raises(NotFoundError) as exc_info:
            await service.create_note(seed.owner, make_payload(workspace_id=uuid.uuid4()))
        assert exc_info.value.resource == "workspace"

    @pytest.mark.asyncio
    async def test_provider_outage_stores_null_embedding(self, service, embedder, seed, make_payload):
        embedder.available = False

        created = await service.create_note(seed.owner, make_payload(title="Offline idea", content="sketch"))

        assert created.embedding is None
        results = await service.get_notes(seed.owner, seed.home, NoteType.CONTENT, frozenset(), "offline")
        assert [n.id for n in results] == [created.id]


class TestUpdateNote:
    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_fields(self, service, seed, make_payload):
        created = await service.create_note(seed.owner, make_payload(tags=["a"]))

        updated = await service.update_note(created.id, seed.owner, NoteUpdate(title="Renamed"))

        assert updated.title == "Renamed"
        assert updated.fields == created.fields
        assert updated.tags == ["a"]
        assert updated.version == created.version + 1

    @pytest.mark.asyncio
    async def test_tags_only_update_keeps_embedding(self, service, embedder, seed, make_payload):
        created = await service.create_note(seed.owner, make_payload())
        embedder.calls.clear()

        updated = await service.update_note(created.id, seed.owner, NoteUpdate(tags=["x", "x", "y"]))

        assert updated.tags == ["x", "y"]
        assert updated.embedding == created.embedding
        assert embedder.calls == []

    @pytest.mark.asyncio
    async def test_content_change_re_embeds(self, service, embedder, seed, make_payload):
        created = await service.create_note(seed.owner, make_payload(content="alpha"))
        embedder.calls.clear()

        updated = await service.update_note(
            created.id,
            seed.owner,
            NoteUpdate(fields=[NoteField(label="Body", type=FieldKind.TEXTBOX, content="omega")]),
        )

        assert len(embedder.calls) == 1
        assert embedder.calls[0][0].endswith("Body: omega")
        assert updated.fields[0].content == "omega"

    @pytest.mark.asyncio
    async def test_update_by_non_author_denied(self, service, seed, make_payload):
        created = await service.create_note(seed.owner, make_payload(workspace_id=seed.team))

        with pytest.raises(AccessDeniedError):
            await service.update_note(created.id, seed.editor, NoteUpdate(title="Mine now"))

        assert (await service.get_note(created.id, seed.owner)).title == created.title

    @pytest.mark.asyncio
    async def test_update_cannot_blank_title(self, service, seed, make_payload):
        created = await service.create_note(seed.owner, make_payload())
        with pytest.raises(ValidationError):
            await service.update_note(created.id, seed.owner, NoteUpdate(title=""))


class TestDeleteNote:
    @pytest.mark.asyncio
    async def test_author_deletes(self, service, seed, make_payload):
        created = await service.create_note(seed.owner, make_payload())

        deleted = await service.delete_note(created.id, seed.owner)

        assert deleted.id == created.id
        with pytest.raises(NotFoundError):
            await service.get_note(created.id, seed.owner)

    @pytest.mark.asyncio
    async def test_non_author_cannot_delete(self, service, seed, make_payload):
        created = await service.create_note(seed.editor, make_payload(workspace_id=seed.team))

        with pytest.raises(AccessDeniedError) as exc_info:
            await service.delete_note(created.id, seed.owner)

        assert exc_info.value.reason == "not_author"
        assert (await service.get_note(created.id, seed.owner)).id == created.id


class TestGetNote:
    @pytest.mark.asyncio
    async def test_workspace_member_can_read(self, service, seed, make_payload):
        created = await service.create_note(seed.editor, make_payload(workspace_id=seed.team))

        loaded = await service.get_note(created.id, seed.viewer)

        assert loaded.id == created.id

    @pytest.mark.asyncio
    async def test_outsider_cannot_read_or_resolve(self, service, seed, make_payload):
        created = await service.create_note(seed.owner, make_payload())

        with pytest.raises(AccessDeniedError):
            await service.get_note(created.id, seed.outsider)
        with pytest.raises(AccessDeniedError):
            await service.get_workspaces_for_note(created.id, seed.outsider)

    @pytest.mark.asyncio
    async def test_missing_note(self, service, seed):
        with pytest.raises(NotFoundError) as exc_info:
            await service.get_note(uuid.uuid4(), seed.owner)
        assert exc_info.value.resource == "note"


class TestGetNotes:
    @pytest.mark.asyncio
    async def test_member_can_search(self, service, seed, make_payload):
        created = await service.create_note(seed.editor, make_payload(workspace_id=seed.team))

        results = await service.get_notes(seed.viewer, seed.team, NoteType.CONTENT)

        assert [n.id for n in results] == [created.id]

    @pytest.mark.asyncio
    async def test_non_member_cannot_search(self, service, seed):
        with pytest.raises(AccessDeniedError):
            await service.get_notes(seed.outsider, seed.team, NoteType.CONTENT)

    @pytest.mark.asyncio
    async def test_required_parameters(self, service, seed):
        with pytest.raises(ValidationError):
            await service.get_notes(seed.owner, None, NoteType.CONTENT)
        with pytest.raises(ValidationError):
            await service.get_notes(seed.owner, seed.home, None)

    @pytest.mark.asyncio
    async def test_share_and_copy_require_destination(self, service, seed, make_payload):
        created = await service.create_note(seed.owner, make_payload())
        with pytest.raises(ValidationError):
            await service.share_note(created.id, seed.owner, None)
        with pytest.raises(ValidationError):
            await service.copy_note(created.id, seed.owner, None)
