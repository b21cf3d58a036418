from datetime import UTC, datetime, timedelta

from conftest import make_record, subject_config, year_config

from quiz_engine.domain.models import SessionState, percentage_of
from quiz_engine.services.normalizer import normalize_records
from quiz_engine.services.scoring import build_result, category_breakdown, summarize_attempt, tally

T0 = datetime(2024, 5, 1, 9, 0, tzinfo=UTC)


def _questions(*records):
    questions, _ = normalize_records(list(records))
    return tuple(questions)


def test_two_question_scoring() -> None:
    questions = _questions(make_record("q1", correct="B"), make_record("q2", correct="B"))
    state = SessionState(started_at=T0, answers={"q1": "B", "q2": "A"})

    result = build_result(state, questions, subject_config(), completed_at=T0 + timedelta(seconds=90))

    assert (result.correct, result.incorrect, result.unanswered) == (1, 1, 0)
    assert result.answered == 2
    assert result.percentage == 50
    assert result.passed is True
    assert result.elapsed_seconds == 90
    assert result.trigger == "manual"


def test_unanswered_count_against_total() -> None:
    questions = _questions(
        make_record("q1", correct="A"), make_record("q2", correct="A"), make_record("q3", correct="A")
    )
    state = SessionState(started_at=T0, answers={"q1": "A"})

    result = build_result(state, questions, subject_config(mode="exam"), trigger="timer", completed_at=T0)

    assert result.correct + result.incorrect + result.unanswered == result.total == 3
    assert result.unanswered == 2
    assert result.percentage == 33
    assert result.passed is False
    assert result.trigger == "timer"
    assert [row.user_answer for row in result.review] == ["A", None, None]


def test_answers_outside_pool_are_ignored() -> None:
    questions = _questions(make_record("q1", correct="A"))
    state = SessionState(started_at=T0, answers={"q1": "A", "stray": "B"})

    result = build_result(state, questions, subject_config(), completed_at=T0)

    assert result.answers == {"q1": "A"}
    assert result.correct == 1


def test_percentage_rounds_half_up() -> None:
    assert percentage_of(1, 8) == 13
    assert percentage_of(2, 3) == 67
    assert percentage_of(1, 3) == 33
    assert percentage_of(5, 5) == 100
    assert percentage_of(0, 0) == 0


def test_result_counts_match_answer_map() -> None:
    records = [make_record(f"q{i}", correct="ABCD"[i % 4]) for i in range(8)]
    questions = _questions(*records)
    answer_maps = [
        {},
        {"q0": "A", "q1": "B", "q2": "C", "q3": "D"},
        {f"q{i}": "A" for i in range(8)},
        {"q5": "B", "q7": "D", "q6": "A"},
    ]

    for answers in answer_maps:
        state = SessionState(started_at=T0, answers=answers)
        result = build_result(state, questions, subject_config(), completed_at=T0)

        expected_correct = sum(1 for q in questions if answers.get(q.id) == q.correct)
        expected_unanswered = sum(1 for q in questions if q.id not in answers)
        assert result.correct == expected_correct
        assert result.unanswered == expected_unanswered
        assert result.correct + result.incorrect + result.unanswered == result.total
        assert result.percentage == percentage_of(expected_correct, len(questions))
        assert sum(row.is_correct for row in result.review) == result.correct


def test_tally() -> None:
    questions = _questions(make_record("q1", correct="A"), make_record("q2", correct="B"))
    assert tally(questions, {"q1": "A", "q2": "C"}) == (1, 1, 0)
    assert tally(questions, {}) == (0, 0, 2)


def test_year_breakdown_groups_by_subject() -> None:
    questions = _questions(
        make_record("m1", subject="mathematics", correct="A", year=2020),
        make_record("m2", subject="mathematics", correct="A", year=2020),
        make_record("e1", subject="english", correct="B", year=2020),
        make_record("x1", topics=None, subject_slug=None, year=2020),
    )
    answers = {"m1": "A", "m2": "C", "e1": "B"}

    breakdown = category_breakdown(questions, answers, year_config(2020))

    assert set(breakdown) == {"Mathematics", "English", "Unknown"}
    assert (breakdown["Mathematics"].correct, breakdown["Mathematics"].total) == (1, 2)
    assert breakdown["Mathematics"].percentage == 50
    assert (breakdown["English"].correct, breakdown["English"].total) == (1, 1)
    assert breakdown["Unknown"].total == 1
    assert sum(score.total for score in breakdown.values()) == len(questions)


def test_subject_breakdown_groups_by_topic() -> None:
    questions = _questions(
        make_record("q1", topic="Algebra"),
        make_record("q2", topic="Geometry"),
        make_record("q3", topic="Algebra"),
    )

    breakdown = category_breakdown(questions, {}, subject_config())

    assert {label: score.total for label, score in breakdown.items()} == {"Algebra": 2, "Geometry": 1}


def test_summarize_attempt() -> None:
    questions = _questions(
        make_record("q1", correct="A"), make_record("q2", correct="A"), make_record("q3", correct="A")
    )
    state = SessionState(started_at=T0, answers={"q1": "A", "q2": "B"})
    result = build_result(state, questions, subject_config(), completed_at=T0 + timedelta(minutes=2))

    summary = summarize_attempt(result, user_id="user-9")

    assert summary.user_id == "user-9"
    assert summary.quiz_mode == "PRACTICE"
    assert summary.quiz_mode_identifier == "practice-subject"
    assert summary.subject_slug == "mathematics"
    assert summary.total_questions == 3
    assert summary.correct_answers == 1
    assert summary.incorrect_answers == 2
    assert summary.score_percentage == 33.33
    assert summary.time_taken_seconds == 120
    assert summary.questions_data[1] == {
        "question_id": "q2",
        "user_answer": "B",
        "correct_answer": "A",
        "is_correct": False,
    }


def test_exam_attempt_maps_to_mock_exam() -> None:
    questions = _questions(make_record("q1", correct="A"))
    state = SessionState(started_at=T0)
    result = build_result(state, questions, year_config(2020, mode="exam"), completed_at=T0)

    summary = summarize_attempt(result)

    assert summary.quiz_mode == "MOCK_EXAM"
    assert summary.quiz_mode_identifier == "exam-year"
    assert summary.exam_year == 2020
    assert summary.subject_slug is None
