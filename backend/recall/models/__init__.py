from recall.models.conversation import (
    ChatReply,
    ChatRequest,
    Conversation,
    ConversationCreate,
    ConversationDetail,
    ConversationUpdate,
    Message,
)
from recall.models.memory import Memory, MemoryRefresh, MemoryUpdate
from recall.models.note import DueNote, Note, NoteCreate, NoteList, NoteStatus, NoteUpdate
from recall.models.review import (
    AnswerRequest,
    AnswerResult,
    ChatTurn,
    Evaluation,
    FollowupReply,
    FollowupRequest,
    RateRequest,
    Review,
    ReviewStart,
    ReviewStarted,
    Scheduling,
)

__all__ = [
    "AnswerRequest",
    "AnswerResult",
    "ChatReply",
    "ChatRequest",
    "ChatTurn",
    "Conversation",
    "ConversationCreate",
    "ConversationDetail",
    "ConversationUpdate",
    "DueNote",
    "Evaluation",
    "FollowupReply",
    "FollowupRequest",
    "Memory",
    "MemoryRefresh",
    "MemoryUpdate",
    "Message",
    "Note",
    "NoteCreate",
    "NoteList",
    "NoteStatus",
    "NoteUpdate",
    "RateRequest",
    "Review",
    "ReviewStart",
    "ReviewStarted",
    "Scheduling",
]
