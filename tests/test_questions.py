import pytest

from conftest import T0, at, confused_reply

from workflow_observer.config import ObservationConfig
from workflow_observer.errors import QuestionNotFoundError, SessionStateError
from workflow_observer.models import ConfusionSignal, ConfusionType, QuestionStatus
from workflow_observer.services.context import SessionContextAggregator
from workflow_observer.services.questions import ConfusionEvaluator, QuestionThrottler


QUESTIONS = [
    "Why are you copying vendor numbers into the spreadsheet?",
    "What is the purple approval form used for?",
    "Which report feeds the month-end reconciliation?",
    "How do you decide which invoices get flagged?",
    "Who receives the exported payroll file?",
    "When does the travel budget get locked?",
]


def signal(question, confidence=0.9):
    return ConfusionSignal(
        type=ConfusionType.UNCLEAR_PURPOSE,
        confidence=confidence,
        trigger_context="copying values",
        suggested_question=question,
    )


@pytest.fixture
def aggregator():
    return SessionContextAggregator("session-1", T0)


@pytest.fixture
def throttler(aggregator, config):
    counter = iter(range(1, 100))
    return QuestionThrottler("session-1", aggregator, config, id_factory=lambda: f"q-{next(counter)}")


# ----------------------------------------------------------------------
# Confusion evaluation
# ----------------------------------------------------------------------
def test_unparseable_reply_yields_no_signal_and_keeps_theory(aggregator):
    aggregator.set_task_theory("Reconciling invoices")
    evaluator = ConfusionEvaluator(aggregator)

    assert evaluator.evaluate("I think the user is busy.") is None
    assert evaluator.evaluate('{"confused": "maybe"}') is None
    assert evaluator.evaluate('{"confused": true, "confidence": 0.9}') is None
    assert aggregator.context.current_task_theory == "Reconciling invoices"


def test_not_confused_reply_updates_theory(aggregator):
    evaluator = ConfusionEvaluator(aggregator)

    result = evaluator.evaluate('```json\n{"confused": false, "understanding": "Preparing the Q3 budget"}\n```')

    assert result is None
    assert aggregator.context.current_task_theory == "Preparing the Q3 budget"


def test_confident_reply_becomes_signal(aggregator):
    evaluator = ConfusionEvaluator(aggregator, threshold=0.7)

    result = evaluator.evaluate(confused_reply("Why copy these values?", confidence=0.85, kind="manual_entry"))

    assert result == ConfusionSignal(
        type=ConfusionType.MANUAL_ENTRY,
        confidence=0.85,
        trigger_context="copying values between systems",
        suggested_question="Why copy these values?",
    )
    assert evaluator.evaluate(confused_reply("Why copy these values?", confidence=0.5)) is None


# ----------------------------------------------------------------------
# Throttling
# ----------------------------------------------------------------------
def test_hourly_limit_caps_questions(throttler):
    accepted = [throttler.offer(signal(QUESTIONS[n]), now=at(n * 300)) for n in range(5)]
    assert all(question is not None for question in accepted)

    assert throttler.offer(signal(QUESTIONS[5]), now=at(25 * 60)) is None
    assert throttler.questions_in_window(at(25 * 60)) == 5

    # the first question has aged out of the window
    assert throttler.offer(signal(QUESTIONS[5]), now=at(61 * 60)) is not None


def test_minimum_spacing_between_questions(throttler):
    assert throttler.offer(signal(QUESTIONS[0]), now=at(0)) is not None
    assert throttler.offer(signal(QUESTIONS[1]), now=at(299)) is None
    assert throttler.offer(signal(QUESTIONS[1]), now=at(300)) is not None


def test_dismissed_questions_still_count_against_limit(throttler):
    config = ObservationConfig(max_questions_per_hour=1)
    first = throttler.accept(signal(QUESTIONS[0]), now=at(0))
    throttler.dismiss(first.id, at=at(10))

    assert not throttler.should_ask(signal(QUESTIONS[1]), config, now=at(600))


def test_near_duplicate_questions_are_suppressed(throttler, aggregator):
    throttler.offer(signal("Why are you copying vendor numbers into the spreadsheet?"), now=at(0))

    assert throttler.offer(signal("why are you copying vendor numbers into the spreadsheet"), now=at(600)) is None
    assert throttler.offer(signal("Why are you copying vendor numbers?"), now=at(600)) is None
    assert aggregator.context.questions_asked == ["Why are you copying vendor numbers into the spreadsheet?"]


def test_low_confidence_or_blank_question_is_rejected(throttler):
    assert not throttler.should_ask(signal(QUESTIONS[0], confidence=0.5), now=at(0))
    assert not throttler.should_ask(signal("   "), now=at(0))


# ----------------------------------------------------------------------
# Lifecycle
# ----------------------------------------------------------------------
def test_answer_moves_question_out_of_pending(throttler):
    question = throttler.accept(signal(QUESTIONS[0]), now=at(0))
    assert throttler.current() is question

    answered = throttler.answer(question.id, "  Vendor master is out of date ", at=at(60))

    assert answered.status == QuestionStatus.ANSWERED
    assert answered.answer == "Vendor master is out of date"
    assert answered.answered_at == at(60)
    assert throttler.pending() == []
    assert throttler.answered() == [answered]


def test_deferred_question_can_resurface(throttler):
    question = throttler.accept(signal(QUESTIONS[0]), now=at(0))
    throttler.defer(question.id, at=at(30))
    assert throttler.deferred() == [question]
    assert throttler.current() is None

    throttler.resurface(question.id, at=at(900))

    assert question.status == QuestionStatus.PENDING
    assert question.resurfaced_at == at(900)
    assert question.timestamp == at(0)


def test_invalid_transitions_raise(throttler):
    question = throttler.accept(signal(QUESTIONS[0]), now=at(0))
    throttler.answer(question.id, "Because", at=at(10))

    with pytest.raises(SessionStateError):
        throttler.dismiss(question.id, at=at(20))
    with pytest.raises(SessionStateError):
        throttler.resurface(question.id, at=at(20))
    with pytest.raises(QuestionNotFoundError):
        throttler.get("q-missing")
