"""Domain error taxonomy.

Every error raised by a service carries the HTTP status it maps to and a
stable machine-readable ``code``. The global handler in
``questclash.middleware.error_handler`` renders them as
``{"detail": ..., "code": ...}``.
"""

from __future__ import annotations


class QuestClashError(Exception):
    """Base class for all domain errors."""

    status_code: int = 400
    code: str = "error"
    default_detail: str = "Request failed"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


# --- 422 ---


class ValidationError(QuestClashError):
    status_code = 422
    code = "validation_error"
    default_detail = "Invalid input"


# --- 404 ---


class NotFound(QuestClashError):
    status_code = 404
    code = "not_found"
    default_detail = "Not found"


class UserNotFound(NotFound):
    code = "user_not_found"
    default_detail = "User not found"


class QuestNotFound(NotFound):
    code = "quest_not_found"
    default_detail = "Quest not found"


class SubmissionNotFound(NotFound):
    code = "submission_not_found"
    default_detail = "Submission not found"


class RewardNotFound(NotFound):
    code = "reward_not_found"
    default_detail = "Reward not found"


# --- 401 / 403 ---


class Unauthorized(QuestClashError):
    status_code = 401
    code = "unauthorized"
    default_detail = "Unauthorized"


class Forbidden(QuestClashError):
    status_code = 403
    code = "forbidden"
    default_detail = "Not allowed"


# --- 409 ---


class Conflict(QuestClashError):
    status_code = 409
    code = "conflict"
    default_detail = "Conflict"


class AlreadyJoined(Conflict):
    code = "already_joined"
    default_detail = "You have already joined this quest"


class QuestFull(Conflict):
    code = "quest_full"
    default_detail = "Quest is full"


class NotJoined(Conflict):
    code = "not_joined"
    default_detail = "You must join the quest before submitting evidence"


class AlreadySubmitted(Conflict):
    code = "already_submitted"
    default_detail = "Evidence has already been submitted for this quest"


class AlreadyVoted(Conflict):
    code = "already_voted"
    default_detail = "You have already voted on this submission"


class SubmissionClosed(Conflict):
    code = "submission_closed"
    default_detail = "Voting on this submission is closed"


class RewardAlreadyClaimed(Conflict):
    code = "reward_already_claimed"
    default_detail = "Reward already claimed"


# --- Business rules ---


class InsufficientFunds(QuestClashError):
    status_code = 400
    code = "insufficient_funds"
    default_detail = "Insufficient reward points"


# --- Store ---


class StoreUnavailable(QuestClashError):
    status_code = 503
    code = "store_unavailable"
    default_detail = "Data store unavailable, try again later"


class StoreTimeout(StoreUnavailable):
    status_code = 504
    code = "store_timeout"
    default_detail = "Data store timed out"
