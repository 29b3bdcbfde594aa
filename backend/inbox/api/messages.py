import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from inbox.database import get_db
from inbox.exceptions import InboxError
from inbox.schemas import ApiResponse, MessageEdit, MessageResponse
from inbox.services.message_service import MessageService
from inbox.services.inbox_service import InboxService
from inbox.utils.security import authenticate

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/inbox/messages", tags=["Messages"])


@router.put("/{message_id}/read", response_model=ApiResponse, response_model_exclude_unset=True)
def mark_message_as_read(
    message_id: str,
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """
    Mark a message as read for the caller.
    Also resets the unread counter of the message's conversation.
    """
    logger.info(f"API request: Mark message {message_id} as read by user {user_id}")
    try:
        InboxService.mark_message_as_read(db, message_id, user_id)
        logger.info(f"API response: Message {message_id} marked as read for user {user_id}")
        return ApiResponse(success=True, message="Message marked as read successfully")
    except InboxError as e:
        logger.error(f"API error: Failed to mark message {message_id} as read: {e.status_code} - {e.message}")
        raise
    except Exception as e:
        logger.exception(f"API unexpected error: Failed to mark message {message_id} as read: {str(e)}")
        raise


@router.put("/{message_id}", response_model=ApiResponse[MessageResponse], response_model_exclude_unset=True)
def update_message(
    message_id: str,
    message_data: MessageEdit,
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """Edit a message's text. Sender only."""
    logger.info(f"API request: Edit message {message_id} by user {user_id}")
    try:
        message = InboxService.edit_message(
            db, message_id, user_id, **message_data.model_dump(exclude_none=True)
        )
        logger.info(f"API response: Message {message_id} edited by user {user_id}")
        return ApiResponse(
            success=True,
            data=MessageService.message_to_response(message),
            message="Message updated successfully"
        )
    except InboxError as e:
        logger.error(f"API error: Failed to edit message {message_id}: {e.status_code} - {e.message}")
        raise
    except Exception as e:
        logger.exception(f"API unexpected error: Failed to edit message {message_id}: {str(e)}")
        raise


@router.delete("/{message_id}", response_model=ApiResponse, response_model_exclude_unset=True)
def delete_message(
    message_id: str,
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """Delete a message. Sender only; the row is kept and hidden from reads."""
    logger.info(f"API request: Delete message {message_id} by user {user_id}")
    try:
        room_id, _ = InboxService.delete_message(db, message_id, user_id)
        logger.info(f"API response: Message {message_id} deleted from conversation {room_id}")
        return ApiResponse(success=True, message="Message deleted successfully")
    except InboxError as e:
        logger.error(f"API error: Failed to delete message {message_id}: {e.status_code} - {e.message}")
        raise
    except Exception as e:
        logger.exception(f"API unexpected error: Failed to delete message {message_id}: {str(e)}")
        raise
