"""
Forgery service for reused Lamport keys.

A forged signature only verifies when every slot its message selects has
already leaked; a guessed block would need a hash preimage. The search
therefore varies a random suffix until the message digest happens to
select leaked slots only. Expected work grows exponentially with the
number of bit positions where just one row has leaked.
"""

import logging
import multiprocessing as mp
import queue
import time
from typing import Callable, Iterable, List, NamedTuple, Optional, Tuple

from lamport_forge.config import get_settings
from lamport_forge.crypto import (
    BLOCK_SIZE,
    ForgeCancelled,
    ForgeError,
    ForgeExhausted,
    RandomSource,
    RandomSourceError,
    bit_at,
    digest_message,
    generate_random_bytes,
    generate_random_string,
    slot_index,
)
from lamport_forge.models import ForgeResult, PartialSecretKey, PublicKey, Signature
from lamport_forge.services.aggregator import estimate_success_probability
from lamport_forge.services.verifier import verify

logger = logging.getLogger(__name__)


class SearchHit(NamedTuple):
    message: str
    digest: bytes
    signature: Signature


def assemble_signature(
    digest: bytes,
    partial_key: PartialSecretKey,
    random_source: Optional[RandomSource] = None
) -> Tuple[Signature, int]:
    """
    Build a candidate signature for digest from leaked blocks.

    Slots that have not leaked are filled with fresh random blocks.

    Returns:
        Tuple of (signature, number of guessed blocks)
    """
    bits = partial_key.bits
    preimages = []
    guessed = 0
    for i in range(bits):
        block = partial_key.get(slot_index(i, bit_at(digest, i), bits))
        if block is None:
            block = generate_random_bytes(BLOCK_SIZE, random_source)
            guessed += 1
        preimages.append(block)
    return Signature(preimages=tuple(preimages)), guessed


def search_candidates(
    public_key: PublicKey,
    partial_key: PartialSecretKey,
    prefix: str,
    known_messages: frozenset,
    budget: int,
    suffix_length: int = 8,
    random_source: Optional[RandomSource] = None,
    should_stop: Optional[Callable[[], bool]] = None
) -> Tuple[Optional[SearchHit], int]:
    """
    Try up to budget random candidates.

    The stop callback is checked between iterations.

    Returns:
        Tuple of (hit or None, attempts made)

    Raises:
        RandomSourceError: If the random source fails
    """
    bits = public_key.bits
    algorithm = public_key.hash_algorithm
    attempts = 0

    while attempts < budget:
        if should_stop is not None and should_stop():
            break
        attempts += 1

        candidate = prefix + generate_random_string(suffix_length, random_source)
        if candidate in known_messages:
            continue

        digest = digest_message(candidate, bits, algorithm)
        signature, guessed = assemble_signature(digest, partial_key, random_source)
        if verify(digest, public_key, signature):
            return SearchHit(candidate, digest, signature), attempts

        logger.debug(f"Candidate {candidate!r} rejected ({guessed} guessed blocks)")

    return None, attempts


def split_budget(total: int, workers: int) -> List[int]:
    """Split an iteration budget across workers, remainder to the first ones."""
    share, extra = divmod(total, workers)
    return [share + (1 if i < extra else 0) for i in range(workers)]


def worker_source(random_source: Optional[RandomSource], worker_id: int) -> Optional[RandomSource]:
    """
    Byte source for one worker.

    The default ``secrets`` source is independent per process. An injected
    source must provide ``for_worker(worker_id)`` to yield its own stream.
    """
    if random_source is None:
        return None
    for_worker = getattr(random_source, "for_worker", None)
    if for_worker is None:
        raise ValueError("random_source must provide for_worker() when using several workers")
    return for_worker(worker_id)


def drain_reports(result_queue):
    """Yield the reports already queued, without blocking."""
    while True:
        try:
            yield result_queue.get_nowait()
        except queue.Empty:
            return


# ============================================================================
# WORKER FUNCTIONS
# ============================================================================

def _search_worker(
    worker_id: int,
    public_key: PublicKey,
    partial_key: PartialSecretKey,
    prefix: str,
    known_messages: frozenset,
    budget: int,
    suffix_length: int,
    random_source: Optional[RandomSource],
    stop_event,
    result_queue
):
    """Worker process: search its share of the budget and report once."""
    try:
        hit, attempts = search_candidates(
            public_key, partial_key, prefix, known_messages, budget,
            suffix_length, random_source, stop_event.is_set
        )
    except RandomSourceError as e:
        stop_event.set()
        result_queue.put(("random-error", worker_id, str(e), 0))
        return
    except Exception as e:
        stop_event.set()
        result_queue.put(("error", worker_id, f"{type(e).__name__}: {e}", 0))
        return

    if hit is not None:
        stop_event.set()
        result_queue.put(("found", worker_id, hit, attempts))
    else:
        result_queue.put(("done", worker_id, None, attempts))


# ============================================================================
# FORGER
# ============================================================================

class Forger:
    """
    Search for a forged signature under a reused Lamport key.

    Handles:
    - Candidate generation from a fixed prefix and a random suffix
    - Single-process or multi-process search
    - Iteration cap, caller cancellation token and deadline
    """

    def __init__(
        self,
        public_key: PublicKey,
        partial_key: PartialSecretKey,
        prefix: Optional[str] = None,
        known_messages: Iterable[str] = (),
        marker: Optional[str] = None,
        max_iterations: Optional[int] = None,
        workers: Optional[int] = None,
        suffix_length: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        cancel_token=None,
        random_source: Optional[RandomSource] = None,
        poll_interval: Optional[float] = None
    ):
        settings = get_settings()

        self.public_key = public_key
        self.partial_key = partial_key
        self.prefix = settings.forge_prefix if prefix is None else prefix
        self.marker = settings.forge_marker if marker is None else marker
        self.known_messages = frozenset(known_messages)
        self.max_iterations = settings.max_iterations if max_iterations is None else max_iterations
        self.workers = settings.workers if workers is None else workers
        self.suffix_length = settings.suffix_length if suffix_length is None else suffix_length
        self.timeout_seconds = settings.timeout_seconds if timeout_seconds is None else timeout_seconds
        self.cancel_token = cancel_token
        self.random_source = random_source
        self.poll_interval = settings.poll_interval_seconds if poll_interval is None else poll_interval

        if partial_key.bits != public_key.bits:
            raise ValueError(
                f"Partial key is {partial_key.bits}-bit but public key is {public_key.bits}-bit"
            )
        if not self.prefix:
            raise ValueError("Forged message prefix must not be empty")
        if self.marker not in self.prefix:
            raise ValueError(f"Forged message prefix must contain '{self.marker}'")
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        if self.workers < 1:
            raise ValueError("workers must be at least 1")
        if self.suffix_length < 1:
            raise ValueError("suffix_length must be at least 1")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.workers > 1 and random_source is not None and not hasattr(random_source, "for_worker"):
            raise ValueError("random_source must provide for_worker() when using several workers")

    def _stop_requested(self, deadline: Optional[float]) -> bool:
        if self.cancel_token is not None and self.cancel_token.is_set():
            return True
        return deadline is not None and time.monotonic() >= deadline

    def forge(self) -> ForgeResult:
        """
        Run the search.

        Returns:
            ForgeResult whose signature verifies under the public key

        Raises:
            ForgeExhausted: Iteration cap reached without a forgery
            ForgeCancelled: Cancellation token set or deadline passed
            RandomSourceError: The secure random source failed
            ForgeError: A worker failed for any other reason
        """
        coverage = self.partial_key.coverage
        probability = estimate_success_probability(self.partial_key)
        expected = f"{1 / probability:.3g}" if probability > 0 else "inf"
        logger.info(
            f"Searching with {coverage}/{2 * self.partial_key.bits} leaked blocks, "
            f"p(success)={probability:.3g} per attempt, ~{expected} attempts expected, "
            f"{self.workers} worker(s), cap {self.max_iterations}"
        )

        start = time.monotonic()
        deadline = start + self.timeout_seconds if self.timeout_seconds is not None else None

        if self.workers == 1:
            hit, attempts, worker_id = self._forge_in_process(deadline)
        else:
            hit, attempts, worker_id = self._forge_multiprocess(deadline)

        elapsed = time.monotonic() - start
        logger.info(f"Forged signature on {hit.message!r} after {attempts} attempts in {elapsed:.1f}s")

        return ForgeResult(
            message=hit.message,
            digest=hit.digest,
            signature=hit.signature,
            iterations=attempts,
            worker_id=worker_id,
            elapsed_seconds=elapsed,
            coverage=coverage,
        )

    def _forge_in_process(self, deadline: Optional[float]) -> Tuple[SearchHit, int, int]:
        hit, attempts = search_candidates(
            self.public_key,
            self.partial_key,
            self.prefix,
            self.known_messages,
            self.max_iterations,
            self.suffix_length,
            self.random_source,
            lambda: self._stop_requested(deadline),
        )
        if hit is not None:
            return hit, attempts, 0
        if attempts < self.max_iterations:
            raise ForgeCancelled(f"Search cancelled after {attempts} attempts", attempts)
        raise ForgeExhausted(f"No forgery found in {attempts} attempts", attempts)

    def _forge_multiprocess(self, deadline: Optional[float]) -> Tuple[SearchHit, int, int]:
        ctx = mp.get_context()
        stop_event = ctx.Event()
        result_queue = ctx.Queue()

        processes = []
        for worker_id, budget in enumerate(split_budget(self.max_iterations, self.workers)):
            if budget == 0:
                continue
            p = ctx.Process(
                target=_search_worker,
                args=(
                    worker_id, self.public_key, self.partial_key, self.prefix,
                    self.known_messages, budget, self.suffix_length,
                    worker_source(self.random_source, worker_id), stop_event, result_queue
                ),
                daemon=True,
            )
            p.start()
            processes.append(p)

        logger.debug(f"Started {len(processes)} search workers")

        pending = len(processes)
        total_attempts = 0
        silent_polls = 0

        def handle(report) -> Optional[Tuple[SearchHit, int, int]]:
            nonlocal pending, total_attempts
            kind, worker_id, payload, attempts = report
            pending -= 1
            total_attempts += attempts

            if kind == "found":
                return payload, attempts, worker_id
            if kind == "random-error":
                raise RandomSourceError(f"Worker {worker_id}: {payload}")
            if kind == "error":
                raise ForgeError(f"Worker {worker_id} failed: {payload}", total_attempts)
            return None

        try:
            while pending:
                if self._stop_requested(deadline):
                    # A report already queued still wins over cancellation
                    for report in drain_reports(result_queue):
                        found = handle(report)
                        if found is not None:
                            return found
                    raise ForgeCancelled(
                        f"Search cancelled after {total_attempts} reported attempts",
                        total_attempts,
                    )

                try:
                    report = result_queue.get(timeout=self.poll_interval)
                except queue.Empty:
                    if any(p.is_alive() for p in processes):
                        continue
                    silent_polls += 1
                    if silent_polls > 1:
                        raise ForgeError(
                            f"{pending} worker(s) exited without reporting",
                            total_attempts,
                        )
                    continue

                found = handle(report)
                if found is not None:
                    return found

            raise ForgeExhausted(f"No forgery found in {total_attempts} attempts", total_attempts)

        finally:
            stop_event.set()
            for p in processes:
                p.join(timeout=1)
                if p.is_alive():
                    p.terminate()
                    p.join()
            result_queue.close()
