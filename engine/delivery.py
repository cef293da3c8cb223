"""Question selection and option shuffling for a single attempt."""
from __future__ import annotations

import logging
import random
from typing import Sequence, TypeVar

from engine.errors import NoQuestionsAvailable
from engine.models import (
    OPTIONS_PER_QUESTION,
    DeliveredQuestion,
    Question,
    TestDefinition,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def shuffled(items: Sequence[T], rng: random.Random) -> list[T]:
    """Return a Fisher-Yates shuffled copy of `items`."""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = rng.randint(0, i)
        result[i], result[j] = result[j], result[i]
    return result


def shuffle_options(question: Question, rng: random.Random) -> DeliveredQuestion:
    """
    Reorder the options of a question and remap its correct index.

    Questions that do not have exactly four options are passed through
    unchanged.
    """
    if len(question.options) != OPTIONS_PER_QUESTION:
        logger.debug(
            f"Question {question.id} has {len(question.options)} options, "
            "delivering without shuffle"
        )
        return DeliveredQuestion.from_question(question)

    order = shuffled(range(OPTIONS_PER_QUESTION), rng)
    return DeliveredQuestion(
        source_id=question.id,
        prompt=question.prompt,
        options=tuple(question.options[i] for i in order),
        correct_option_index=order.index(question.correct_option_index),
        weight=question.weight,
    )


class DeliverySelector:
    """Builds the delivered question set for an attempt."""

    def __init__(self, rng: random.Random | None = None):
        # A fresh generator is seeded from OS entropy
        self.rng = rng if rng is not None else random.Random()

    def select(self, test: TestDefinition) -> tuple[DeliveredQuestion, ...]:
        pool = test.eligible_pool()
        if not pool:
            raise NoQuestionsAvailable(test.id)

        count = test.resolved_questions_to_show()
        chosen = shuffled(pool, self.rng)[:count]

        if test.shuffle_options:
            delivered = tuple(shuffle_options(q, self.rng) for q in chosen)
        else:
            delivered = tuple(DeliveredQuestion.from_question(q) for q in chosen)

        logger.info(
            f"Selected {len(delivered)} of {len(pool)} eligible questions for test {test.id}"
        )
        return delivered


def select_delivery(
    test: TestDefinition, rng: random.Random | None = None
) -> tuple[DeliveredQuestion, ...]:
    """Select and shuffle the questions served to one attempt."""
    return DeliverySelector(rng).select(test)
