"""Tests for the participant registry."""

import pytest
from inbox.exceptions import InvalidArgument, NotFoundError
from inbox.models import ConversationParticipant
from inbox.services.conversation_service import ConversationService
from inbox.services.participant_service import ParticipantService


@pytest.fixture
def conversation(db_session, users):
    """A ride conversation owned by the rider."""
    conversation = ConversationService.create(
        db_session,
        owner_user_id=users["rider"],
        conversation_type="ride",
        title_ar="رحلة",
        title_en="Ride"
    )
    db_session.commit()
    return conversation


def active_rows(db_session, conversation_id, user_id):
    return db_session.query(ConversationParticipant).filter(
        ConversationParticipant.conversation_id == conversation_id,
        ConversationParticipant.user_id == user_id,
        ConversationParticipant.is_active == True
    ).count()


class TestParticipantAdd:
    """Test adding participants."""

    def test_add_twice_keeps_single_active_row(self, db_session, users, conversation):
        """Test that adding the same user twice yields one active membership."""
        first = ParticipantService.add(db_session, conversation.id, users["driver"])
        second = ParticipantService.add(db_session, conversation.id, users["driver"], role="admin")

        assert first.id == second.id
        assert second.role == "participant"
        assert active_rows(db_session, conversation.id, users["driver"]) == 1

    def test_add_reactivates_left_participant(self, db_session, users, conversation):
        """Test that re-adding a participant who left reactivates the same row."""
        membership = ParticipantService.add(db_session, conversation.id, users["driver"])
        assert ParticipantService.remove(db_session, conversation.id, users["driver"]) is True

        again = ParticipantService.add(db_session, conversation.id, users["driver"])

        assert again.id == membership.id
        assert again.is_active is True
        assert again.left_at is None
        assert active_rows(db_session, conversation.id, users["driver"]) == 1

    def test_add_to_missing_conversation(self, db_session, users):
        """Test that adding to an unknown conversation fails with NotFound."""
        with pytest.raises(NotFoundError):
            ParticipantService.add(db_session, "no-such-conversation", users["driver"])

    def test_bulk_add_collapses_duplicates(self, db_session, users, conversation):
        """Test that duplicate user ids in a batch produce one row each."""
        added = ParticipantService.bulk_add(
            db_session,
            conversation.id,
            [
                {"user_id": users["driver"], "role": "admin"},
                {"user_id": users["driver"], "role": "support"},
                {"user_id": users["outsider"]},
            ]
        )

        assert len(added) == 2
        assert added[0].role == "admin"
        assert added[1].role == "participant"
        assert ParticipantService.get_participant_count(db_session, conversation.id) == 3


class TestParticipantRemoval:
    """Test soft removal and membership checks."""

    def test_remove_is_soft(self, db_session, users, conversation):
        """Test that removal keeps the row with leftAt stamped."""
        ParticipantService.add(db_session, conversation.id, users["driver"])

        assert ParticipantService.remove(db_session, conversation.id, users["driver"]) is True

        row = ParticipantService.find_by_conversation_and_user(db_session, conversation.id, users["driver"])
        assert row is not None
        assert row.is_active is False
        assert row.left_at is not None

    def test_remove_non_member_returns_false(self, db_session, users, conversation):
        """Test removing someone who never joined."""
        assert ParticipantService.remove(db_session, conversation.id, users["outsider"]) is False

    def test_is_participant_respects_active_only(self, db_session, users, conversation):
        """Test the authorization predicate for active and former members."""
        ParticipantService.add(db_session, conversation.id, users["driver"])
        ParticipantService.remove(db_session, conversation.id, users["driver"])

        assert ParticipantService.is_participant(db_session, conversation.id, users["rider"]) is True
        assert ParticipantService.is_participant(db_session, conversation.id, users["driver"]) is False
        assert ParticipantService.is_participant(
            db_session, conversation.id, users["driver"], active_only=False
        ) is True
        assert ParticipantService.is_participant(db_session, conversation.id, users["outsider"]) is False


class TestParticipantQueries:
    """Test listing, roles and statistics."""

    def test_find_by_conversation_id_in_join_order(self, db_session, users, conversation):
        """Test that members are listed oldest join first."""
        ParticipantService.add(db_session, conversation.id, users["driver"])
        ParticipantService.add(db_session, conversation.id, users["outsider"])

        members = ParticipantService.find_by_conversation_id(db_session, conversation.id)

        assert [m.user_id for m in members] == [users["rider"], users["driver"], users["outsider"]]
        joined = [m.joined_at for m in members]
        assert joined == sorted(joined)

    def test_find_by_conversation_id_pagination(self, db_session, users, conversation):
        """Test limit and offset on the member list."""
        ParticipantService.add(db_session, conversation.id, users["driver"])
        ParticipantService.add(db_session, conversation.id, users["outsider"])

        page = ParticipantService.find_by_conversation_id(db_session, conversation.id, limit=1, offset=1)

        assert [m.user_id for m in page] == [users["driver"]]

    def test_participant_carries_user_display_fields(self, db_session, users, conversation):
        """Test that the user directory is joined into the response."""
        participant = ParticipantService.add(db_session, conversation.id, users["driver"])
        db_session.commit()

        response = ParticipantService.participant_to_response(participant)

        assert response.name == "Driver Two"
        assert response.email == "driver@example.com"
        assert response.phone == "+966500000002"

    def test_participant_without_directory_entry(self, db_session, conversation):
        """Test that unknown users still list, without display fields."""
        participant = ParticipantService.add(db_session, conversation.id, "ghost-user")
        db_session.commit()

        response = ParticipantService.participant_to_response(participant)

        assert response.user_id == "ghost-user"
        assert response.name is None

    def test_find_by_user_id(self, db_session, users, conversation):
        """Test listing a user's memberships across conversations."""
        other = ConversationService.create(
            db_session, users["driver"], "support", "دعم", "Support",
            participants=[{"user_id": users["rider"]}]
        )

        memberships = ParticipantService.find_by_user_id(db_session, users["rider"])

        assert {m.conversation_id for m in memberships} == {conversation.id, other.id}

    def test_update_role(self, db_session, users, conversation):
        """Test changing a role to one of the known roles."""
        ParticipantService.add(db_session, conversation.id, users["driver"])

        updated = ParticipantService.update_role(db_session, conversation.id, users["driver"], "support")

        assert updated.role == "support"
        support = ParticipantService.find_by_role(db_session, conversation.id, "support")
        assert [p.user_id for p in support] == [users["driver"]]

    def test_update_role_rejects_unknown_role(self, db_session, users, conversation):
        """Test that roles outside the known set are rejected."""
        ParticipantService.add(db_session, conversation.id, users["driver"])

        with pytest.raises(InvalidArgument):
            ParticipantService.update_role(db_session, conversation.id, users["driver"], "captain")

    def test_update_role_missing_participant(self, db_session, users, conversation):
        """Test changing the role of someone who is not a member."""
        with pytest.raises(NotFoundError):
            ParticipantService.update_role(db_session, conversation.id, users["outsider"], "admin")

    def test_statistics_per_role(self, db_session, users, conversation):
        """Test active and inactive counts grouped by role."""
        ParticipantService.add(db_session, conversation.id, users["driver"], role="support")
        ParticipantService.add(db_session, conversation.id, users["outsider"])
        ParticipantService.remove(db_session, conversation.id, users["outsider"])

        stats = {row["role"]: row for row in ParticipantService.get_statistics(db_session, conversation.id)}

        assert stats["participant"]["total_participants"] == 2
        assert stats["participant"]["active_participants"] == 1
        assert stats["participant"]["inactive_participants"] == 1
        assert stats["support"]["active_participants"] == 1
        assert ParticipantService.get_participant_count(db_session, conversation.id) == 2
        assert ParticipantService.get_participant_count(db_session, conversation.id, active_only=False) == 3
