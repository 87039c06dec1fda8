"""Live board: view model, change events, merger, ranking and intents."""

from amalive.live.events import (
    AnswerInserted,
    AnswerVoteChanged,
    ChangeEvent,
    FollowUpInserted,
    QuestionDeleted,
    QuestionInserted,
    QuestionUpdated,
    VoteChanged,
)
from amalive.live.intents import IntentResult, QuestionActions, can_follow_up
from amalive.live.loader import load_ama, load_snapshot
from amalive.live.merger import FeedMerger, apply_event
from amalive.live.models import Ama, Answer, FeedSnapshot, FollowUp, MergedRow, Question
from amalive.live.normalizer import normalize
from amalive.live.ranking import SortMode, rank
from amalive.live.view import LiveQuestionView

__all__ = [
    "Ama",
    "Answer",
    "AnswerInserted",
    "AnswerVoteChanged",
    "ChangeEvent",
    "FeedMerger",
    "FeedSnapshot",
    "FollowUp",
    "FollowUpInserted",
    "IntentResult",
    "LiveQuestionView",
    "MergedRow",
    "Question",
    "QuestionActions",
    "QuestionDeleted",
    "QuestionInserted",
    "QuestionUpdated",
    "SortMode",
    "VoteChanged",
    "apply_event",
    "can_follow_up",
    "load_ama",
    "load_snapshot",
    "normalize",
    "rank",
]
