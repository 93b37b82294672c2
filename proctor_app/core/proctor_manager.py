"""Composition root shared by the API server and the tests."""

from __future__ import annotations

from proctor_app.core.services.access_policy import AccessPolicy, ActivationListPolicy
from proctor_app.core.services.activity_log import ActivitySink, LoggingActivitySink
from proctor_app.core.services.attempt_repository import AttemptRepository
from proctor_app.core.services.attempt_service import AttemptService
from proctor_app.core.services.quiz_repository import QuizRepository
from proctor_app.core.services.quiz_service import QuizService
from proctor_app.core.services.recording_registry import RecordingRegistry
from proctor_app.core.services.review_service import ReviewService
from proctor_app.core.services.score_recalculator import ScoreRecalculator
from proctor_app.utils.time_utils import Clock, utc_now


class ProctorManager:
    """Facade over the stores and services: Attempts, Reviews, Quizzes, Recordings."""

    def __init__(
        self,
        clock: Clock = utc_now,
        access_policy: AccessPolicy | None = None,
        activity_sink: ActivitySink | None = None,
    ) -> None:
        self.clock = clock
        access_policy = access_policy or ActivationListPolicy()

        # Stores
        self.quiz_repository = QuizRepository()
        self.attempt_repository = AttemptRepository()
        self.recordings = RecordingRegistry(clock=clock)

        # Services
        self.recalculator = ScoreRecalculator(self.quiz_repository, self.attempt_repository)
        self.attempts = AttemptService(
            self.quiz_repository,
            self.attempt_repository,
            self.recordings,
            access_policy=access_policy,
            activity_sink=activity_sink or LoggingActivitySink(),
            clock=clock,
        )
        self.reviews = ReviewService(self.quiz_repository, self.attempt_repository, clock=clock)
        self.quizzes = QuizService(self.quiz_repository, self.recalculator, access_policy=access_policy)
