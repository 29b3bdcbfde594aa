"""Tests for the message store."""

import pytest
from datetime import datetime, timedelta
from inbox.exceptions import ValidationError, InvalidArgument, NotFoundError
from inbox.models import MessageStatus
from inbox.services.conversation_service import ConversationService
from inbox.services.participant_service import ParticipantService
from inbox.services.message_service import MessageService


@pytest.fixture
def room(db_session, users):
    """A support conversation between the rider and the driver."""
    conversation = ConversationService.create(
        db_session,
        owner_user_id=users["rider"],
        conversation_type="support",
        title_ar="محادثة دعم",
        title_en="Support Conversation",
        participants=[{"user_id": users["driver"]}]
    )
    db_session.commit()
    return conversation.id


def send(db_session, room_id, sender_id, text, **kwargs):
    return MessageService.create(
        db_session,
        room_id=room_id,
        sender_id=sender_id,
        message_text=text,
        message_ar=f"{text} (ar)",
        message_en=text,
        **kwargs
    )


@pytest.fixture
def timeline(db_session, users, room):
    """Five messages one minute apart, oldest first."""
    base = datetime(2026, 1, 1, 8, 0, 0)
    messages = []
    for i in range(5):
        message = send(db_session, room, users["rider"], f"message {i}")
        message.created_at = base + timedelta(minutes=i)
        messages.append(message)
    db_session.commit()
    return messages


class TestMessageCreation:
    """Test message creation and delivery fan-out."""

    def test_create_fans_out_sent_status(self, db_session, users, room):
        """Test that every active participant gets one 'sent' delivery row."""
        message = send(db_session, room, users["rider"], "hello")

        statuses = db_session.query(MessageStatus).filter(MessageStatus.message_id == message.id).all()

        assert sorted(s.user_id for s in statuses) == sorted([users["rider"], users["driver"]])
        assert {s.status for s in statuses} == {"sent"}
        assert len({s.id for s in statuses}) == 2

    def test_create_skips_former_participants(self, db_session, users, room):
        """Test that members who left receive no delivery row."""
        ParticipantService.remove(db_session, room, users["driver"])

        message = send(db_session, room, users["rider"], "anyone there?")

        assert MessageService.get_message_status(db_session, message.id, users["driver"]) is None
        assert MessageService.get_message_status(db_session, message.id, users["rider"]) is not None

    def test_create_text_requires_all_fields(self, db_session, users, room):
        """Test that a text message needs all three text fields."""
        with pytest.raises(ValidationError) as exc_info:
            MessageService.create(db_session, room, users["rider"], message_text="hi")

        assert "messageAr" in exc_info.value.message

    def test_create_rejects_unknown_type(self, db_session, users, room):
        """Test that message types outside the known set are rejected."""
        with pytest.raises(InvalidArgument):
            send(db_session, room, users["rider"], "hi", message_type="sticker")

    def test_create_location_message(self, db_session, users, room):
        """Test that structured location data is stored as given."""
        message = send(
            db_session, room, users["driver"], "I am here",
            message_type="location",
            location_data={"lat": 24.7136, "lng": 46.6753}
        )
        db_session.commit()

        stored = MessageService.find_by_id(db_session, message.id)
        assert stored.message_type == "location"
        assert stored.location_data == {"lat": 24.7136, "lng": 46.6753}

    def test_response_includes_sender_fields(self, db_session, users, room):
        """Test that sender display fields come from the user directory."""
        message = send(db_session, room, users["driver"], "on my way")
        db_session.commit()

        response = MessageService.message_to_response(message)

        assert response.sender_name == "Driver Two"
        assert response.sender_email == "driver@example.com"


class TestMessageRetrieval:
    """Test ordering and pagination."""

    def test_room_page_is_chronological(self, db_session, room, timeline):
        """Test that the newest page comes back oldest first."""
        page = MessageService.find_by_room_id(db_session, room, limit=3)

        assert [m.message_text for m in page] == ["message 2", "message 3", "message 4"]

    def test_older_page_via_offset(self, db_session, room, timeline):
        """Test that offset walks back into history and stays chronological."""
        page = MessageService.find_by_room_id(db_session, room, limit=3, offset=3)

        assert [m.message_text for m in page] == ["message 0", "message 1"]

    def test_before_date(self, db_session, room, timeline):
        """Test that beforeDate excludes the cutoff and everything after it."""
        page = MessageService.find_by_room_id(db_session, room, before_date=timeline[2].created_at)

        assert [m.message_text for m in page] == ["message 0", "message 1"]

    def test_find_by_sender_id(self, db_session, users, room, timeline):
        """Test that a sender's messages come newest first."""
        send(db_session, room, users["driver"], "driver says hi")

        rider_messages = MessageService.find_by_sender_id(db_session, users["rider"], limit=2)

        assert [m.message_text for m in rider_messages] == ["message 4", "message 3"]


class TestMessageEditAndDelete:
    """Test edits and soft deletion."""

    def test_update_marks_edited(self, db_session, users, room):
        """Test that editing text stamps isEdited and editedAt."""
        message = send(db_session, room, users["rider"], "helo")

        updated = MessageService.update(db_session, message.id, message_text="hello", message_en="hello")

        assert updated.message_text == "hello"
        assert updated.is_edited is True
        assert updated.edited_at is not None

    def test_update_without_known_fields(self, db_session, users, room):
        """Test that an edit with no recognised field is rejected."""
        message = send(db_session, room, users["rider"], "hello")

        with pytest.raises(InvalidArgument):
            MessageService.update(db_session, message.id, media_url="http://example.com/x.png")

    def test_update_rejects_empty_text(self, db_session, users, room):
        """Test that a text message keeps all three text fields non-empty."""
        message = send(db_session, room, users["rider"], "hello")

        with pytest.raises(ValidationError):
            MessageService.update(db_session, message.id, message_ar="")

        assert message.message_ar == "hello (ar)"
        assert message.is_edited is False

    def test_update_missing_message(self, db_session):
        """Test editing a message that does not exist."""
        with pytest.raises(NotFoundError):
            MessageService.update(db_session, "missing", message_text="x")

    def test_soft_deleted_message_is_hidden(self, db_session, users, room, timeline):
        """Test that deleted messages disappear from every read path."""
        target = timeline[1]
        assert MessageService.delete(db_session, target.id) is True

        assert MessageService.find_by_id(db_session, target.id) is None
        assert target.id not in [m.id for m in MessageService.find_by_room_id(db_session, room)]
        assert MessageService.search(db_session, room, "message 1") == []
        assert MessageService.get_statistics(db_session, room)["total_messages"] == 4

    def test_delete_twice(self, db_session, users, room):
        """Test that a second delete reports nothing changed."""
        message = send(db_session, room, users["rider"], "bye")

        assert MessageService.delete(db_session, message.id) is True
        assert MessageService.delete(db_session, message.id) is False


class TestDeliveryStatus:
    """Test per-recipient read state."""

    def test_mark_single_message_read(self, db_session, users, room):
        """Test that 'read' stamps readAt for that recipient only."""
        message = send(db_session, room, users["rider"], "hello")

        assert MessageService.update_message_status(db_session, message.id, users["driver"], "read") is True

        driver_status = MessageService.get_message_status(db_session, message.id, users["driver"])
        rider_status = MessageService.get_message_status(db_session, message.id, users["rider"])
        assert driver_status.status == "read"
        assert driver_status.read_at is not None
        assert rider_status.status == "sent"

    def test_status_can_move_backwards(self, db_session, users, room):
        """Test that transitions are not order-checked."""
        message = send(db_session, room, users["rider"], "hello")
        MessageService.update_message_status(db_session, message.id, users["driver"], "read")

        MessageService.update_message_status(db_session, message.id, users["driver"], "sent")

        assert MessageService.get_message_status(db_session, message.id, users["driver"]).status == "sent"

    def test_invalid_status(self, db_session, users, room):
        """Test that unknown statuses are rejected."""
        message = send(db_session, room, users["rider"], "hello")

        with pytest.raises(InvalidArgument):
            MessageService.update_message_status(db_session, message.id, users["driver"], "seen")

    def test_mark_room_as_read(self, db_session, users, room, timeline):
        """Test bulk read for one user in a room."""
        assert MessageService.get_unread_count(db_session, room, users["driver"]) == 5

        updated = MessageService.mark_as_read(db_session, room, users["driver"])

        assert updated == 5
        assert MessageService.get_unread_count(db_session, room, users["driver"]) == 0
        assert MessageService.get_unread_count(db_session, room, users["rider"]) == 5

    def test_mark_room_as_read_before_date(self, db_session, users, room, timeline):
        """Test that the cutoff bounds the bulk read."""
        updated = MessageService.mark_as_read(db_session, room, users["driver"], before_date=timeline[1].created_at)

        assert updated == 2
        assert MessageService.get_unread_count(db_session, room, users["driver"]) == 3

    def test_unread_across_rooms(self, db_session, users, room, timeline):
        """Test the multi-room unread count used by the inbox total."""
        assert MessageService.get_unread_count_for_rooms(db_session, [room], users["driver"]) == 5
        assert MessageService.get_unread_count_for_rooms(db_session, [], users["driver"]) == 0


class TestMessageSearchAndStatistics:
    """Test search and aggregates."""

    def test_search_is_case_insensitive_and_newest_first(self, db_session, users, room, timeline):
        """Test substring search across the text fields."""
        results = MessageService.search(db_session, room, "MESSAGE")

        assert [m.message_text for m in results] == [f"message {i}" for i in (4, 3, 2, 1, 0)]

    def test_search_matches_arabic_field(self, db_session, users, room, timeline):
        """Test that the Arabic body is searched too."""
        results = MessageService.search(db_session, room, "(ar)", limit=2)

        assert len(results) == 2

    def test_search_treats_wildcards_literally(self, db_session, users, room):
        """Test that % and _ in a search term are not wildcards."""
        send(db_session, room, users["rider"], "50% off")
        send(db_session, room, users["rider"], "500 off")

        results = MessageService.search(db_session, room, "50%")

        assert [m.message_text for m in results] == ["50% off"]

    def test_statistics(self, db_session, users, room, timeline):
        """Test counts by type and the first/last timestamps."""
        image = send(db_session, room, users["driver"], "photo", message_type="image", media_url="http://cdn/x.jpg")
        image.created_at = datetime(2026, 1, 1, 9, 0, 0)
        MessageService.update(db_session, timeline[0].id, message_text="edited")

        stats = MessageService.get_statistics(db_session, room)

        assert stats["total_messages"] == 6
        assert stats["text_messages"] == 5
        assert stats["image_messages"] == 1
        assert stats["edited_messages"] == 1
        assert stats["first_message_at"] == timeline[0].created_at
        assert stats["last_message_at"] == datetime(2026, 1, 1, 9, 0, 0)
