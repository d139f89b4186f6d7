"""
RecommendationGenerator: orchestrates the collectors and persists the scored
batch for one user.
"""
import logging
import threading
import weakref
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from django.conf import settings
from django.utils import timezone

from recommendations.collectors import CandidateCollector, default_collectors
from recommendations.dtos import Candidate, ScoringWeights, UserTarget, parse_object_id
from recommendations.exceptions import GenerationFailure, GenerationInProgress, UpstreamFailure, UserNotFound
from recommendations.models import (
    ContextualInfo, LocationSnapshot, Recommendation, RecommendationMetadata, UserInteraction
)
from recommendations.scoring_service import ScoringService, clamp_score
from user.models import UserProfile

logger = logging.getLogger(__name__)

# One in-flight generation per user within this process. Entries vanish once
# no generation holds or waits on the lock.
_locks_guard = threading.Lock()
_user_locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()


def _generation_lock(user_id) -> threading.Lock:
    with _locks_guard:
        lock = _user_locks.get(str(user_id))
        if lock is None:
            lock = _user_locks[str(user_id)] = threading.Lock()
        return lock


class RecommendationGenerator:
    """
    Orchestrator that builds a user's recommendation set.

    Steps:
    1. Load the user profile
    2. Sweep the user's expired recommendations
    3. Run every collector concurrently and join them under a deadline
    4. Clamp, de-duplicate and upsert the candidates
    """

    def __init__(
        self,
        collectors: Optional[List[CandidateCollector]] = None,
        scoring: Optional[ScoringService] = None,
        clock: Callable[[], datetime] = timezone.now,
        max_workers: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        config = settings.RECOMMENDATIONS
        self.clock = clock
        self.scoring = scoring or ScoringService(ScoringWeights.from_settings())
        self.collectors = collectors if collectors is not None else default_collectors(self.scoring, clock)
        self.max_workers = max_workers or config['COLLECTOR_WORKERS']
        self.timeout = timeout if timeout is not None else config['GENERATION_TIMEOUT']
        self.ttl = timedelta(days=config['TTL_DAYS'])

    def generate(self, user_id, timeout: Optional[float] = None,
                 purge_older_than: Optional[timedelta] = None) -> List[Recommendation]:
        """
        Generates and stores recommendations for a user.

        Args:
            user_id: Id of the UserProfile
            timeout: Seconds to wait for the per-user lock and for the
                collectors; defaults to GENERATION_TIMEOUT
            purge_older_than: When given, the user's rows created longer ago
                than this are deleted first, inside the same lock hold

        Returns:
            List[Recommendation]: The rows written by this run

        Raises:
            UserNotFound: the user does not exist
            GenerationInProgress: another generation for the user holds the lock
            GenerationFailure: any other unexpected error
        """
        timeout = self.timeout if timeout is None else timeout
        user = self.load_user(user_id)

        lock = _generation_lock(user.id)
        if not lock.acquire(timeout=timeout):
            raise GenerationInProgress()

        try:
            now = self.clock()
            if purge_older_than is not None:
                self.purge_created_before(user, now - purge_older_than)
            self.sweep_expired(user, now)
            candidates = self.collect_candidates(user, timeout)
            batch = self.persist(user, candidates, now)
        except GenerationFailure:
            raise
        except Exception as e:
            logger.exception("Recommendation generation failed for user %s", user.id)
            raise GenerationFailure() from e
        finally:
            lock.release()

        logger.info("Generated %d recommendations for user %s", len(batch), user.id)
        return batch

    def refresh(self, user_id, older_than: timedelta, timeout: Optional[float] = None) -> List[Recommendation]:
        """Drops the user's rows older than `older_than` and regenerates, under one lock hold."""
        return self.generate(user_id, timeout=timeout, purge_older_than=older_than)

    def load_user(self, user_id) -> UserProfile:
        object_id = parse_object_id(user_id)
        user = UserProfile.objects(id=object_id).first() if object_id else None
        if user is None:
            raise UserNotFound(f"User {user_id} not found")
        return user

    def sweep_expired(self, user: UserProfile, now: datetime) -> int:
        """Deletes the user's recommendations whose expiry has passed."""
        removed = Recommendation.objects(user=user, expires_at__lte=now).delete()
        if removed:
            logger.debug("Swept %d expired recommendations for user %s", removed, user.id)
        return removed

    def purge_created_before(self, user: UserProfile, cutoff: datetime) -> int:
        """Deletes the user's recommendations created before `cutoff`."""
        removed = Recommendation.objects(user=user, created_at__lt=cutoff).delete()
        logger.info("Purged %d recommendations older than %s for user %s", removed, cutoff, user.id)
        return removed

    def collect_candidates(self, user: UserProfile, timeout: float) -> List[Candidate]:
        """
        Runs all collectors on a thread pool and waits for them together.
        A collector that raises or misses the deadline contributes nothing.
        """
        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix='collector')
        futures = {executor.submit(self._run_collector, collector, user): collector for collector in self.collectors}
        try:
            _, pending = wait(futures, timeout=timeout)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        candidates: List[Candidate] = []
        for future, collector in futures.items():
            if future in pending:
                logger.warning("Collector %s timed out after %ss for user %s", collector.name, timeout, user.id)
                continue
            candidates.extend(future.result())
        return candidates

    def persist(self, user: UserProfile, candidates: Iterable[Candidate], now: datetime) -> List[Recommendation]:
        """
        Upserts one row per (user, target, reason): score, metadata,
        contextual info and expiry are replaced, interaction state and
        creation time are kept.
        """
        batch = []
        for candidate in self._prepare(user, candidates):
            row = self._to_row(user, candidate, now)
            row.validate()

            existing = Recommendation.objects(user=user, target_id=row.target_id, reason=row.reason)
            existing.update_one(
                upsert=True,
                set__type=row.type,
                set__target_model=row.target_model,
                set__score=row.score,
                set__metadata=row.metadata,
                set__contextual_info=row.contextual_info,
                set__updated_at=now,
                set__expires_at=row.expires_at,
                set_on_insert__created_at=now,
                set_on_insert__user_interaction=UserInteraction(),
            )
            batch.append(existing.first())
        return batch

    def _run_collector(self, collector: CandidateCollector, user: UserProfile) -> List[Candidate]:
        try:
            return collector.collect(user)
        except Exception as e:
            failure = UpstreamFailure(collector.name, e)
            logger.warning("%s; continuing without its candidates", failure, exc_info=True)
            return []

    def _prepare(self, user: UserProfile, candidates: Iterable[Candidate]) -> List[Candidate]:
        # Keep the best score per (target, reason), in first-seen order
        best: Dict[tuple, Candidate] = {}
        for candidate in candidates:
            if isinstance(candidate.target, UserTarget) and candidate.target.id == user.id:
                continue
            candidate.score = clamp_score(candidate.score)
            kept = best.get(candidate.key)
            if kept is None or candidate.score > kept.score:
                best[candidate.key] = candidate
        return list(best.values())

    def _to_row(self, user: UserProfile, candidate: Candidate, now: datetime) -> Recommendation:
        location = None
        if user.location:
            location = LocationSnapshot(country=user.location.country, city=user.location.city)

        return Recommendation(
            user=user,
            type=candidate.target.type,
            target_id=candidate.target.id,
            target_model=candidate.target.model,
            reason=candidate.reason,
            score=candidate.score,
            metadata=RecommendationMetadata(
                confidence=candidate.confidence,
                factors=candidate.factors,
                generated_at=now,
            ),
            contextual_info=ContextualInfo(
                user_location=location,
                trending=candidate.trending,
                personalized_reason=candidate.personalized_reason,
            ),
            created_at=now,
            updated_at=now,
            expires_at=now + self.ttl,
        )
