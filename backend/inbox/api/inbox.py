import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from inbox.config import get_settings
from inbox.database import get_db
from inbox.exceptions import InboxError
from inbox.schemas import (
    ApiResponse,
    ConversationResponse,
    ConversationStatistics,
    UnreadCountResponse,
)
from inbox.services.conversation_service import ConversationService
from inbox.services.inbox_service import InboxService
from inbox.utils.security import authenticate
from inbox.api.pagination import clamp_limit, page_info

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/inbox", tags=["Inbox"])


@router.get(
    "/search",
    response_model=ApiResponse[List[ConversationResponse]],
    response_model_exclude_unset=True
)
def search_conversations(
    query: Optional[str] = Query(None),
    limit: int = Query(settings.DEFAULT_CONVERSATION_PAGE_SIZE, ge=1),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """
    Search the caller's conversations by title or last message.

    - **query**: Required, matched case-insensitively anywhere in the text
    """
    limit = clamp_limit(limit)
    logger.info(f"API request: Search conversations for user {user_id} (query={query!r})")
    try:
        conversations = InboxService.search_conversations(db, user_id, query, limit=limit, offset=offset)
        logger.info(f"API response: Found {len(conversations)} conversation(s) for user {user_id}")
        return ApiResponse(
            success=True,
            data=[ConversationService.conversation_to_response(c) for c in conversations],
            pagination=page_info(conversations, limit, offset)
        )
    except InboxError as e:
        logger.error(f"API error: Failed to search conversations for user {user_id}: {e.status_code} - {e.message}")
        raise
    except Exception as e:
        logger.exception(f"API unexpected error: Failed to search conversations for user {user_id}: {str(e)}")
        raise


@router.get(
    "/unread-count",
    response_model=ApiResponse[UnreadCountResponse],
    response_model_exclude_unset=True
)
def get_unread_count(
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """
    Get the caller's unread total over conversations that are neither archived nor muted.
    """
    logger.info(f"API request: Get unread count for user {user_id}")
    try:
        unread_count = InboxService.get_unread_count(db, user_id)
        logger.info(f"API response: User {user_id} has {unread_count} unread")
        return ApiResponse(success=True, data=UnreadCountResponse(unread_count=unread_count))
    except InboxError as e:
        logger.error(f"API error: Failed to get unread count for user {user_id}: {e.status_code} - {e.message}")
        raise
    except Exception as e:
        logger.exception(f"API unexpected error: Failed to get unread count for user {user_id}: {str(e)}")
        raise


@router.get(
    "/statistics",
    response_model=ApiResponse[List[ConversationStatistics]],
    response_model_exclude_unset=True
)
def get_statistics(
    user_id: str = Depends(authenticate),
    db: Session = Depends(get_db)
):
    """
    Get per-type totals for the caller's inbox.
    """
    logger.info(f"API request: Get inbox statistics for user {user_id}")
    try:
        statistics = InboxService.get_statistics(db, user_id)
        logger.info(f"API response: Returning statistics for {len(statistics)} conversation type(s)")
        return ApiResponse(
            success=True,
            data=[ConversationStatistics(**row) for row in statistics]
        )
    except InboxError as e:
        logger.error(f"API error: Failed to get inbox statistics for user {user_id}: {e.status_code} - {e.message}")
        raise
    except Exception as e:
        logger.exception(f"API unexpected error: Failed to get inbox statistics for user {user_id}: {str(e)}")
        raise
