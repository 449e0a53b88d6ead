from datetime import datetime, timedelta, timezone

import pytest

from fman.database import File
from fman.evaluator import (
    Evaluator,
    RuleEvaluationError,
    parse_duration,
    parse_size,
    parse_time,
)
from fman.rule_types import (
    OP_CONTAINS,
    OP_ENDS_WITH,
    OP_EQUAL,
    OP_GREATER_THAN,
    OP_GREATER_THAN_OR_EQUAL,
    OP_LESS_THAN,
    OP_LESS_THAN_OR_EQUAL,
    OP_MATCHES,
    OP_NOT_EQUAL,
    OP_STARTS_WITH,
    Condition,
    ConditionType,
    Rule,
)


@pytest.fixture
def evaluator():
    return Evaluator(False)


def test_extension_conditions(evaluator):
    file = File(path="/test/file.txt")
    condition = Condition(type=ConditionType.EXTENSION, operator=OP_EQUAL, value=".txt")
    assert evaluator.evaluate_condition(condition, file) is True

    condition = Condition(type=ConditionType.EXTENSION, operator=OP_NOT_EQUAL, value=".pdf")
    assert evaluator.evaluate_condition(condition, file) is True

    condition = Condition(type=ConditionType.EXTENSION, operator=OP_GREATER_THAN, value=".pdf")
    with pytest.raises(RuleEvaluationError, match="unsupported operator"):
        evaluator.evaluate_condition(condition, file)


def test_extension_without_dot_and_case(evaluator):
    file = File(path="/test/PHOTO.JPG")
    condition = Condition(type=ConditionType.EXTENSION, value="jpg")
    assert evaluator.evaluate_condition(condition, file) is True


def test_size_conditions(evaluator):
    file = File(path="/test/file.txt", size=1024)
    condition = Condition(type=ConditionType.SIZE, operator=OP_GREATER_THAN, value="500")
    assert evaluator.evaluate_condition(condition, file) is True

    condition = Condition(type=ConditionType.SIZE, operator=OP_LESS_THAN, value="2048")
    assert evaluator.evaluate_condition(condition, file) is True

    condition = Condition(type=ConditionType.SIZE, operator=OP_LESS_THAN, value="invalid")
    with pytest.raises(RuleEvaluationError, match="invalid size value"):
        evaluator.evaluate_condition(condition, file)


@pytest.mark.parametrize(
    "operator, value, expected",
    [
        ("", "1K", False),
        (OP_GREATER_THAN_OR_EQUAL, "1K", True),
        (OP_LESS_THAN_OR_EQUAL, "1K", True),
        (OP_EQUAL, "1024", True),
        (OP_NOT_EQUAL, "1024", False),
    ],
)
def test_size_operators(evaluator, operator, value, expected):
    file = File(path="/f.bin", size=1024)
    condition = Condition(type=ConditionType.SIZE, operator=operator, value=value)
    assert evaluator.evaluate_condition(condition, file) is expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("500", 500),
        ("1K", 1024),
        ("1.5k", 1536),
        ("100M", 104857600),
        ("1G", 1073741824),
        ("1T", 1099511627776),
        (" 2K ", 2048),
    ],
)
def test_parse_size(text, expected):
    assert parse_size(text) == expected


@pytest.mark.parametrize("text", ["", "   ", "abc", "M", "1_000", "inf"])
def test_parse_size_errors(text):
    with pytest.raises(RuleEvaluationError):
        parse_size(text)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("90s", timedelta(seconds=90)),
        ("5m", timedelta(minutes=5)),
        ("2h", timedelta(hours=2)),
        ("30d", timedelta(days=30)),
        ("1.5D", timedelta(hours=36)),
        ("1w", timedelta(days=7)),
        ("1y", timedelta(days=365)),
    ],
)
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected


def test_parse_duration_errors():
    with pytest.raises(RuleEvaluationError, match="empty duration"):
        parse_duration("")
    with pytest.raises(RuleEvaluationError, match="unknown duration unit"):
        parse_duration("10x")
    with pytest.raises(RuleEvaluationError, match="invalid duration format"):
        parse_duration("abcd")


@pytest.mark.parametrize(
    "text, expected",
    [
        ("2024-06-01", datetime(2024, 6, 1, tzinfo=timezone.utc)),
        ("2024-06-01 12:30:45", datetime(2024, 6, 1, 12, 30, 45, tzinfo=timezone.utc)),
        ("2024-06-01T12:30:45Z", datetime(2024, 6, 1, 12, 30, 45, tzinfo=timezone.utc)),
        ("2024-06-01T14:30:45+02:00", datetime(2024, 6, 1, 12, 30, 45, tzinfo=timezone.utc)),
    ],
)
def test_parse_time_absolute(text, expected):
    assert parse_time(text) == expected


def test_parse_time_relative():
    later = parse_time("+1d")
    earlier = parse_time("-1w")
    now = datetime.now(timezone.utc)
    assert abs((later - now) - timedelta(days=1)) < timedelta(seconds=5)
    assert abs((now - earlier) - timedelta(days=7)) < timedelta(seconds=5)


@pytest.mark.parametrize("text", ["", "yesterday", "2024-6-1", "+3q"])
def test_parse_time_errors(text):
    with pytest.raises(RuleEvaluationError):
        parse_time(text)


@pytest.mark.parametrize(
    "operator, value, expected",
    [
        ("", "Screen", True),
        (OP_CONTAINS, "shot", True),
        (OP_EQUAL, "Screenshot 1.png", True),
        (OP_NOT_EQUAL, "Screenshot 1.png", False),
        (OP_STARTS_WITH, "Screen", True),
        (OP_ENDS_WITH, ".jpg", False),
        (OP_MATCHES, r"^Screenshot \d+\.png$", True),
    ],
)
def test_name_pattern(evaluator, operator, value, expected):
    file = File(path="/home/user/Desktop/Screenshot 1.png")
    condition = Condition(type=ConditionType.NAME_PATTERN, operator=operator, value=value)
    assert evaluator.evaluate_condition(condition, file) is expected


def test_name_pattern_errors(evaluator):
    file = File(path="/x/a.txt")
    bad_regex = Condition(type=ConditionType.NAME_PATTERN, operator=OP_MATCHES, value="(")
    with pytest.raises(RuleEvaluationError, match="invalid regex pattern"):
        evaluator.evaluate_condition(bad_regex, file)
    bad_op = Condition(type=ConditionType.NAME_PATTERN, operator=">", value="a")
    with pytest.raises(RuleEvaluationError, match="for name_pattern"):
        evaluator.evaluate_condition(bad_op, file)


def test_path_relative_to_base_dir(evaluator):
    file = File(path="/home/user/docs/report.pdf")
    starts = Condition(type=ConditionType.PATH, operator=OP_STARTS_WITH, value="docs")
    assert evaluator.evaluate_condition(starts, file, "/home/user") is True
    equal = Condition(type=ConditionType.PATH, operator=OP_EQUAL, value="docs/report.pdf")
    assert evaluator.evaluate_condition(equal, file, "/home/user") is True
    assert evaluator.evaluate_condition(equal, file) is False
    contains = Condition(type=ConditionType.PATH, value="/docs/")
    assert evaluator.evaluate_condition(contains, file) is True


@pytest.mark.parametrize(
    "path, operator, value, expected",
    [
        ("/p/photo.JPG", OP_EQUAL, "image", True),
        ("/p/photo.jpg", OP_NOT_EQUAL, "image", False),
        ("/p/movie.mp4", "", "image", False),
        ("/p/movie.mp4", OP_NOT_EQUAL, "Image", True),
        ("/p/main.go", OP_EQUAL, "code", True),
        ("/p/a.xyz", OP_EQUAL, ".xyz", True),
        ("/p/a.xyz", OP_NOT_EQUAL, ".xyz", False),
    ],
)
def test_file_type(evaluator, path, operator, value, expected):
    condition = Condition(type=ConditionType.FILE_TYPE, operator=operator, value=value)
    assert evaluator.evaluate_condition(condition, File(path=path)) is expected


def test_file_type_errors(evaluator):
    file = File(path="/p/a.jpg")
    with pytest.raises(RuleEvaluationError, match="unknown file type"):
        evaluator.evaluate_condition(Condition(type=ConditionType.FILE_TYPE, value="spreadsheet"), file)
    with pytest.raises(RuleEvaluationError, match="unknown file type"):
        evaluator.evaluate_condition(
            Condition(type=ConditionType.FILE_TYPE, operator=OP_GREATER_THAN, value="image"), file
        )


def test_mime_type_raises(evaluator):
    condition = Condition(type=ConditionType.MIME_TYPE, value="image/png")
    with pytest.raises(RuleEvaluationError, match="mime_type"):
        evaluator.evaluate_condition(condition, File(path="/a.png"))


def test_age(evaluator):
    file = File(path="/a.png", modified_at=datetime.now() - timedelta(days=40))
    older = Condition(type=ConditionType.AGE, operator=OP_GREATER_THAN, value="30d")
    younger = Condition(type=ConditionType.AGE, operator=OP_LESS_THAN, value="30d")
    assert evaluator.evaluate_condition(older, file) is True
    assert evaluator.evaluate_condition(younger, file) is False
    bad = Condition(type=ConditionType.AGE, value="30q")
    with pytest.raises(RuleEvaluationError, match="invalid age value"):
        evaluator.evaluate_condition(bad, file)


@pytest.mark.parametrize(
    "operator, value, expected",
    [
        ("", "2024-01-01", True),
        (OP_LESS_THAN, "2024-01-01", False),
        (OP_EQUAL, "2024-06-01", True),
        (OP_EQUAL, "2024-06-01T02:00:00+02:00", True),
        (OP_GREATER_THAN_OR_EQUAL, "2024-06-01 00:00:00", True),
        (OP_LESS_THAN_OR_EQUAL, "2024-05-31T23:59:59Z", False),
        (OP_NOT_EQUAL, "2024-06-01", False),
    ],
)
def test_modified(evaluator, operator, value, expected):
    file = File(path="/a.txt", modified_at=datetime(2024, 6, 1, tzinfo=timezone.utc))
    condition = Condition(type=ConditionType.MODIFIED, operator=operator, value=value)
    assert evaluator.evaluate_condition(condition, file) is expected


def test_modified_relative(evaluator):
    file = File(path="/a.txt", modified_at=datetime.now())
    condition = Condition(type=ConditionType.MODIFIED, value="-1d")
    assert evaluator.evaluate_condition(condition, file) is True


def test_unsupported_condition_type(evaluator):
    with pytest.raises(RuleEvaluationError, match="unsupported condition type: colour"):
        evaluator.evaluate_condition(Condition(type="colour", value="red"), File(path="/a"))


def _rule(enabled=True):
    return Rule(
        name="r",
        enabled=enabled,
        conditions=[
            Condition(type=ConditionType.EXTENSION, value="txt"),
            Condition(type=ConditionType.SIZE, operator=OP_GREATER_THAN, value="1K"),
        ],
    )


def test_evaluate_rule(evaluator):
    big = File(path="/d/notes.txt", size=4096)
    small = File(path="/d/notes.txt", size=10)
    assert evaluator.evaluate_rule(_rule(), big) is True
    assert evaluator.evaluate_rule(_rule(), small) is False
    assert evaluator.evaluate_rule(_rule(enabled=False), big) is False


def test_evaluate_rule_wraps_errors(evaluator):
    rule = Rule(
        name="r",
        enabled=True,
        conditions=[Condition(type=ConditionType.SIZE, value="lots")],
    )
    with pytest.raises(RuleEvaluationError, match="^failed to evaluate condition: invalid size value"):
        evaluator.evaluate_rule(rule, File(path="/a", size=1))


def test_verbose_reports_failed_condition(capsys):
    Evaluator(True).evaluate_rule(_rule(), File(path="/d/notes.txt", size=10))
    out = capsys.readouterr().out
    assert "File /d/notes.txt does not match condition: size > 1K" in out