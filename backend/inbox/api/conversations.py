import logging
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime
from inbox.config import get_settings
from inbox.database import get_db
from inbox.exceptions import InboxError
from inbox.schemas import (
    ApiResponse,
    ConversationCreate,
    ConversationUpdate,
    ConversationResponse,
    MessageCreate,
    MessageResponse,
    ParticipantInput,
    ParticipantRoleUpdate,
    ParticipantResponse,
)
from inbox.services.conversation_service import ConversationService
from inbox.services.participant_service import ParticipantService
from inbox.services.message_service import MessageService
from inbox.services.inbox_service import InboxService
from inbox.utils.security import authenticate
from inbox.api.pagination import clamp_limit, page_info

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/inbox/conversations", tags=["Conversations"])


@router.get(
    "",
    response_model=ApiResponse[List[ConversationResponse]],
    response_model_exclude_unset=True
)
def get_conversations(
    conversation_type: Optional[str] = Query(None, alias="conversationType"),
    is_archived: bool = Query(False, alias="isArchived"),
    is_muted: bool = Query(False, alias="isMuted"),
    limit: int = Query(settings.DEFAULT_CONVERSATION_PAGE_SIZE, ge=1),
    offset: int = Query(0, ge=0),
    sort_by: str = Query("last_message_at", alias="sortBy"),
    sort_order: str = Query("DESC", alias="sortOrder"),
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """
    Get the caller's conversations.

    - **conversationType**: Optional type filter (ride, support, system, marketing)
    - **isArchived** / **isMuted**: Flag filters, both default to false
    - **sortBy**: last_message_at, created_at or unread_count
    - **sortOrder**: ASC or DESC
    """
    limit = clamp_limit(limit)
    logger.info(
        f"API request: Get conversations for user {user_id} "
        f"(type={conversation_type}, archived={is_archived}, muted={is_muted}, "
        f"limit={limit}, offset={offset}, sort={sort_by} {sort_order})"
    )
    try:
        conversations = InboxService.list_conversations(
            db,
            user_id,
            conversation_type=conversation_type,
            is_archived=is_archived,
            is_muted=is_muted,
            limit=limit,
            offset=offset,
            sort_by=sort_by,
            sort_order=sort_order
        )
        logger.info(f"API response: Returning {len(conversations)} conversation(s) for user {user_id}")
        return ApiResponse(
            success=True,
            data=[ConversationService.conversation_to_response(c) for c in conversations],
            pagination=page_info(conversations, limit, offset)
        )
    except InboxError as e:
        logger.error(f"API error: Failed to get conversations for user {user_id}: {e.status_code} - {e.message}")
        raise
    except Exception as e:
        logger.exception(f"API unexpected error: Failed to get conversations for user {user_id}: {str(e)}")
        raise


@router.post(
    "",
    response_model=ApiResponse[ConversationResponse],
    response_model_exclude_unset=True,
    status_code=status.HTTP_201_CREATED
)
def create_conversation(
    conversation_data: ConversationCreate,
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """
    Create a conversation owned by the caller.

    - **conversationType**: One of ride, support, system, marketing
    - **titleAr** / **titleEn**: Bilingual titles, both required
    - **participants**: Optional list of `{userId, role?}`; the caller is always added
    """
    logger.info(
        f"API request: Create conversation by user {user_id} "
        f"(type={conversation_data.conversation_type}, participants={len(conversation_data.participants)})"
    )
    logger.debug(f"Conversation data: {conversation_data.model_dump()}")
    try:
        conversation = InboxService.create_conversation(
            db,
            user_id,
            conversation_type=conversation_data.conversation_type,
            title_ar=conversation_data.title_ar,
            title_en=conversation_data.title_en,
            participants=[p.model_dump() for p in conversation_data.participants]
        )
        logger.info(f"API response: Created conversation {conversation.id} for user {user_id}")
        return ApiResponse(
            success=True,
            data=ConversationService.conversation_to_response(conversation),
            message="Conversation created successfully"
        )
    except InboxError as e:
        logger.error(f"API error: Failed to create conversation for user {user_id}: {e.status_code} - {e.message}")
        raise
    except Exception as e:
        logger.exception(f"API unexpected error: Failed to create conversation for user {user_id}: {str(e)}")
        raise


@router.get(
    "/{conversation_id}",
    response_model=ApiResponse[ConversationResponse],
    response_model_exclude_unset=True
)
def get_conversation(
    conversation_id: str,
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """
    Get a conversation by ID. Any active participant may read it.
    """
    logger.info(f"API request: Get conversation {conversation_id} for user {user_id}")
    try:
        conversation = InboxService.get_conversation(db, conversation_id, user_id)
        logger.info(f"API response: Returning conversation {conversation_id} for user {user_id}")
        return ApiResponse(
            success=True,
            data=ConversationService.conversation_to_response(conversation)
        )
    except InboxError as e:
        logger.error(
            f"API error: Failed to get conversation {conversation_id} for user {user_id}: "
            f"{e.status_code} - {e.message}"
        )
        raise
    except Exception as e:
        logger.exception(f"API unexpected error: Failed to get conversation {conversation_id}: {str(e)}")
        raise


@router.put(
    "/{conversation_id}",
    response_model=ApiResponse[ConversationResponse],
    response_model_exclude_unset=True
)
def update_conversation(
    conversation_id: str,
    update_data: ConversationUpdate,
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """
    Update a conversation's titles. Owner only.

    - **titleAr** / **titleEn**: At least one is required
    """
    logger.info(f"API request: Update conversation {conversation_id} by user {user_id}")
    try:
        conversation = InboxService.update_conversation(
            db,
            conversation_id,
            user_id,
            update_data.model_dump(by_alias=True, exclude_none=True)
        )
        logger.info(f"API response: Conversation {conversation_id} updated by user {user_id}")
        return ApiResponse(
            success=True,
            data=ConversationService.conversation_to_response(conversation),
            message="Conversation updated successfully"
        )
    except InboxError as e:
        logger.error(
            f"API error: Failed to update conversation {conversation_id}: {e.status_code} - {e.message}"
        )
        raise
    except Exception as e:
        logger.exception(f"API unexpected error: Failed to update conversation {conversation_id}: {str(e)}")
        raise


# Owner-only flag toggles share one handler shape
FLAG_ACTIONS = {
    "archive": (InboxService.archive_conversation, "Conversation archived successfully"),
    "unarchive": (InboxService.unarchive_conversation, "Conversation unarchived successfully"),
    "mute": (InboxService.mute_conversation, "Conversation muted successfully"),
    "unmute": (InboxService.unmute_conversation, "Conversation unmuted successfully"),
}


def _toggle_flag(action: str, conversation_id: str, user_id: str, db: Session) -> ApiResponse:
    operation, success_message = FLAG_ACTIONS[action]
    logger.info(f"API request: {action.capitalize()} conversation {conversation_id} by user {user_id}")
    try:
        conversation = operation(db, conversation_id, user_id)
        logger.info(f"API response: Conversation {conversation_id} {action}d by user {user_id}")
        return ApiResponse(
            success=True,
            data=ConversationService.conversation_to_response(conversation),
            message=success_message
        )
    except InboxError as e:
        logger.error(
            f"API error: Failed to {action} conversation {conversation_id} for user {user_id}: "
            f"{e.status_code} - {e.message}"
        )
        raise
    except Exception as e:
        logger.exception(f"API unexpected error: Failed to {action} conversation {conversation_id}: {str(e)}")
        raise


@router.put(
    "/{conversation_id}/archive",
    response_model=ApiResponse[ConversationResponse],
    response_model_exclude_unset=True
)
def archive_conversation(
    conversation_id: str,
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """Archive a conversation. Owner only."""
    return _toggle_flag("archive", conversation_id, user_id, db)


@router.put(
    "/{conversation_id}/unarchive",
    response_model=ApiResponse[ConversationResponse],
    response_model_exclude_unset=True
)
def unarchive_conversation(
    conversation_id: str,
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """Unarchive a conversation. Owner only."""
    return _toggle_flag("unarchive", conversation_id, user_id, db)


@router.put(
    "/{conversation_id}/mute",
    response_model=ApiResponse[ConversationResponse],
    response_model_exclude_unset=True
)
def mute_conversation(
    conversation_id: str,
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """Mute a conversation. Owner only."""
    return _toggle_flag("mute", conversation_id, user_id, db)


@router.put(
    "/{conversation_id}/unmute",
    response_model=ApiResponse[ConversationResponse],
    response_model_exclude_unset=True
)
def unmute_conversation(
    conversation_id: str,
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """Unmute a conversation. Owner only."""
    return _toggle_flag("unmute", conversation_id, user_id, db)


@router.delete("/{conversation_id}", response_model=ApiResponse, response_model_exclude_unset=True)
def delete_conversation(
    conversation_id: str,
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """
    Delete a conversation. Owner only.

    Membership rows are removed with it; messages are kept.
    """
    logger.info(f"API request: Delete conversation {conversation_id} by user {user_id}")
    try:
        InboxService.delete_conversation(db, conversation_id, user_id)
        logger.info(f"API response: Conversation {conversation_id} deleted by user {user_id}")
        return ApiResponse(success=True, message="Conversation deleted successfully")
    except InboxError as e:
        logger.error(
            f"API error: Failed to delete conversation {conversation_id} for user {user_id}: "
            f"{e.status_code} - {e.message}"
        )
        raise
    except Exception as e:
        logger.exception(f"API unexpected error: Failed to delete conversation {conversation_id}: {str(e)}")
        raise


@router.post("/{conversation_id}/read", response_model=ApiResponse[dict], response_model_exclude_unset=True)
def mark_conversation_as_read(
    conversation_id: str,
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """
    Mark every message in a conversation as read for the caller.
    Resets the unread counter when the caller owns the conversation.
    """
    logger.info(f"API request: Mark conversation {conversation_id} as read by user {user_id}")
    try:
        updated = InboxService.mark_conversation_as_read(db, conversation_id, user_id)
        logger.info(
            f"API response: Conversation {conversation_id} marked as read for user {user_id} "
            f"({updated} message(s))"
        )
        return ApiResponse(
            success=True,
            data={"markedCount": updated},
            message="Conversation marked as read successfully"
        )
    except InboxError as e:
        logger.error(
            f"API error: Failed to mark conversation {conversation_id} as read: "
            f"{e.status_code} - {e.message}"
        )
        raise
    except Exception as e:
        logger.exception(f"API unexpected error: Failed to mark conversation {conversation_id} as read: {str(e)}")
        raise


@router.get(
    "/{conversation_id}/messages",
    response_model=ApiResponse[List[MessageResponse]],
    response_model_exclude_unset=True
)
def get_messages(
    conversation_id: str,
    limit: int = Query(settings.DEFAULT_MESSAGE_PAGE_SIZE, ge=1),
    offset: int = Query(0, ge=0),
    before_date: Optional[datetime] = Query(None, alias="beforeDate"),
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """
    Get messages in a conversation, oldest first within the page.

    - **limit** / **offset**: Page window counted from the newest message
    - **beforeDate**: Only messages created before this timestamp
    """
    limit = clamp_limit(limit)
    logger.info(
        f"API request: Get messages for conversation {conversation_id} by user {user_id} "
        f"(limit={limit}, offset={offset}, before={before_date})"
    )
    try:
        messages = InboxService.list_messages(
            db, conversation_id, user_id, limit=limit, offset=offset, before_date=before_date
        )
        logger.info(f"API response: Returning {len(messages)} message(s) for conversation {conversation_id}")
        return ApiResponse(
            success=True,
            data=[MessageService.message_to_response(m) for m in messages],
            pagination=page_info(messages, limit, offset)
        )
    except InboxError as e:
        logger.error(
            f"API error: Failed to get messages for conversation {conversation_id}: "
            f"{e.status_code} - {e.message}"
        )
        raise
    except Exception as e:
        logger.exception(f"API unexpected error: Failed to get messages for conversation {conversation_id}: {str(e)}")
        raise


@router.post(
    "/{conversation_id}/messages",
    response_model=ApiResponse[MessageResponse],
    response_model_exclude_unset=True,
    status_code=status.HTTP_201_CREATED
)
def send_message(
    conversation_id: str,
    message_data: MessageCreate,
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """
    Send a message to a conversation.

    - **messageText**, **messageAr**, **messageEn**: All three are required
    - **messageType**: text (default), image, file, location or system
    - **mediaUrl**, **mediaType**, **fileSize**, **locationData**: Optional attachment fields
    """
    logger.info(
        f"API request: Send message to conversation {conversation_id} by user {user_id} "
        f"(type={message_data.message_type})"
    )
    try:
        message = InboxService.send_message(
            db,
            conversation_id,
            user_id,
            message_text=message_data.message_text,
            message_ar=message_data.message_ar,
            message_en=message_data.message_en,
            message_type=message_data.message_type,
            media_url=message_data.media_url,
            media_type=message_data.media_type,
            file_size=message_data.file_size,
            location_data=message_data.location_data
        )
        logger.info(f"API response: Message {message.id} sent to conversation {conversation_id}")
        return ApiResponse(
            success=True,
            data=MessageService.message_to_response(message),
            message="Message sent successfully"
        )
    except InboxError as e:
        logger.error(
            f"API error: Failed to send message to conversation {conversation_id}: "
            f"{e.status_code} - {e.message}"
        )
        raise
    except Exception as e:
        logger.exception(f"API unexpected error: Failed to send message to conversation {conversation_id}: {str(e)}")
        raise


@router.get(
    "/{conversation_id}/messages/search",
    response_model=ApiResponse[List[MessageResponse]],
    response_model_exclude_unset=True
)
def search_messages(
    conversation_id: str,
    query: Optional[str] = Query(None),
    limit: int = Query(settings.DEFAULT_CONVERSATION_PAGE_SIZE, ge=1),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """
    Search message text in a conversation, newest first.
    """
    limit = clamp_limit(limit)
    logger.info(f"API request: Search messages in conversation {conversation_id} by user {user_id}")
    try:
        messages = InboxService.search_messages(db, conversation_id, user_id, query, limit=limit, offset=offset)
        logger.info(f"API response: Found {len(messages)} message(s) in conversation {conversation_id}")
        return ApiResponse(
            success=True,
            data=[MessageService.message_to_response(m) for m in messages],
            pagination=page_info(messages, limit, offset)
        )
    except InboxError as e:
        logger.error(
            f"API error: Failed to search messages in conversation {conversation_id}: "
            f"{e.status_code} - {e.message}"
        )
        raise
    except Exception as e:
        logger.exception(f"API unexpected error: Failed to search messages in conversation {conversation_id}: {str(e)}")
        raise


@router.get(
    "/{conversation_id}/participants",
    response_model=ApiResponse[List[ParticipantResponse]],
    response_model_exclude_unset=True
)
def get_participants(
    conversation_id: str,
    active_only: bool = Query(True, alias="activeOnly"),
    limit: int = Query(settings.DEFAULT_PARTICIPANT_PAGE_SIZE, ge=1),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """
    Get the members of a conversation in join order.
    """
    limit = clamp_limit(limit)
    logger.info(f"API request: Get participants of conversation {conversation_id} by user {user_id}")
    try:
        participants = InboxService.list_participants(
            db, conversation_id, user_id, active_only=active_only, limit=limit, offset=offset
        )
        logger.info(
            f"API response: Returning {len(participants)} participant(s) for conversation {conversation_id}"
        )
        return ApiResponse(
            success=True,
            data=[ParticipantService.participant_to_response(p) for p in participants],
            pagination=page_info(participants, limit, offset)
        )
    except InboxError as e:
        logger.error(
            f"API error: Failed to get participants of conversation {conversation_id}: "
            f"{e.status_code} - {e.message}"
        )
        raise
    except Exception as e:
        logger.exception(f"API unexpected error: Failed to get participants of conversation {conversation_id}: {str(e)}")
        raise


@router.post(
    "/{conversation_id}/participants",
    response_model=ApiResponse[ParticipantResponse],
    response_model_exclude_unset=True,
    status_code=status.HTTP_201_CREATED
)
def add_participant(
    conversation_id: str,
    participant_data: ParticipantInput,
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """
    Add a member to a conversation. Owner only.

    Adding an existing member returns the current membership; a member who
    left is reactivated.
    """
    logger.info(
        f"API request: Add participant {participant_data.user_id} to conversation {conversation_id} "
        f"by user {user_id}"
    )
    try:
        participant = InboxService.add_participant(
            db, conversation_id, user_id, participant_data.user_id, participant_data.role
        )
        logger.info(f"API response: Participant {participant.user_id} active in conversation {conversation_id}")
        return ApiResponse(
            success=True,
            data=ParticipantService.participant_to_response(participant),
            message="Participant added successfully"
        )
    except InboxError as e:
        logger.error(
            f"API error: Failed to add participant to conversation {conversation_id}: "
            f"{e.status_code} - {e.message}"
        )
        raise
    except Exception as e:
        logger.exception(f"API unexpected error: Failed to add participant to conversation {conversation_id}: {str(e)}")
        raise


@router.delete(
    "/{conversation_id}/participants/{participant_user_id}",
    response_model=ApiResponse,
    response_model_exclude_unset=True
)
def remove_participant(
    conversation_id: str,
    participant_user_id: str,
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """
    Remove a member from a conversation.
    The owner may remove anyone but themselves; members may remove themselves.
    """
    logger.info(
        f"API request: Remove participant {participant_user_id} from conversation {conversation_id} "
        f"by user {user_id}"
    )
    try:
        InboxService.remove_participant(db, conversation_id, user_id, participant_user_id)
        logger.info(f"API response: Participant {participant_user_id} removed from conversation {conversation_id}")
        return ApiResponse(success=True, message="Participant removed successfully")
    except InboxError as e:
        logger.error(
            f"API error: Failed to remove participant {participant_user_id} from conversation {conversation_id}: "
            f"{e.status_code} - {e.message}"
        )
        raise
    except Exception as e:
        logger.exception(f"API unexpected error: Failed to remove participant from conversation {conversation_id}: {str(e)}")
        raise


@router.put(
    "/{conversation_id}/participants/{participant_user_id}/role",
    response_model=ApiResponse[ParticipantResponse],
    response_model_exclude_unset=True
)
def update_participant_role(
    conversation_id: str,
    participant_user_id: str,
    role_data: ParticipantRoleUpdate,
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """
    Change a member's role. Owner only.

    - **role**: participant, admin or support
    """
    logger.info(
        f"API request: Set role of {participant_user_id} in conversation {conversation_id} "
        f"to {role_data.role} by user {user_id}"
    )
    try:
        participant = InboxService.update_participant_role(
            db, conversation_id, user_id, participant_user_id, role_data.role
        )
        logger.info(f"API response: Participant {participant_user_id} is now {participant.role}")
        return ApiResponse(
            success=True,
            data=ParticipantService.participant_to_response(participant),
            message="Participant role updated successfully"
        )
    except InboxError as e:
        logger.error(
            f"API error: Failed to update role in conversation {conversation_id}: "
            f"{e.status_code} - {e.message}"
        )
        raise
    except Exception as e:
        logger.exception(f"API unexpected error: Failed to update role in conversation {conversation_id}: {str(e)}")
        raise
