import random

import pytest

from conftest import make_question, make_test
from engine.delivery import DeliverySelector, select_delivery, shuffle_options, shuffled
from engine.errors import NoQuestionsAvailable


def test_shuffled_keeps_all_items() -> None:
    items = list(range(10))
    result = shuffled(items, random.Random(3))
    assert sorted(result) == items
    assert items == list(range(10))


def test_shuffle_options_keeps_correct_text() -> None:
    question = make_question("q1", correct=2)
    for seed in range(25):
        delivered = shuffle_options(question, random.Random(seed))
        assert sorted(delivered.options) == sorted(question.options)
        assert delivered.options[delivered.correct_option_index] == question.correct_option
        assert delivered.source_id == "q1"


def test_shuffle_options_reorders_for_some_seed() -> None:
    question = make_question("q1")
    orders = {shuffle_options(question, random.Random(seed)).options for seed in range(25)}
    assert len(orders) > 1


def test_question_without_four_options_is_not_shuffled() -> None:
    question = make_question("tf", correct=1, options=2)
    delivered = shuffle_options(question, random.Random(0))
    assert delivered.options == question.options
    assert delivered.correct_option_index == 1


def test_select_respects_questions_to_show() -> None:
    test = make_test(count=10, questions_to_show=3)
    delivered = select_delivery(test, random.Random(1))
    assert len(delivered) == 3
    assert len({question.source_id for question in delivered}) == 3


def test_select_caps_questions_to_show_at_pool_size() -> None:
    test = make_test(count=2, questions_to_show=5)
    assert len(select_delivery(test, random.Random(1))) == 2


def test_select_uses_only_approved_questions() -> None:
    bank = [make_question(f"b{i}") for i in range(5)]
    test = make_test(
        question_bank=bank,
        approved_question_ids=["b1", "b3"],
        questions=[make_question("legacy")],
    )
    delivered = select_delivery(test, random.Random(7))
    assert {question.source_id for question in delivered} == {"b1", "b3"}


def test_select_falls_back_to_legacy_questions() -> None:
    test = make_test(
        question_bank=[make_question("b0")],
        questions=[make_question("legacy")],
    )
    delivered = select_delivery(test, random.Random(7))
    assert [question.source_id for question in delivered] == ["legacy"]


def test_select_without_option_shuffle_keeps_order() -> None:
    test = make_test(count=4, shuffle_options=False)
    delivered = select_delivery(test, random.Random(2))
    for question in delivered:
        original = test.questions[int(question.source_id[1:])]
        assert question.options == original.options
        assert question.correct_option_index == original.correct_option_index


def test_select_empty_pool_raises() -> None:
    test = make_test(questions=[])
    with pytest.raises(NoQuestionsAvailable):
        DeliverySelector(random.Random(0)).select(test)


def test_seeded_selection_is_reproducible() -> None:
    test = make_test(count=8, questions_to_show=4)
    first = select_delivery(test, random.Random(42))
    second = select_delivery(test, random.Random(42))
    assert first == second
