import pytest

from migration.domain import InputRecord
from migration.errors import InputFormatError
from migration.input_records import load_input_records, parse_input_rows

from conftest import STAR_WARS_PATH

COMIC_RELIEF_PATH = "assets/DAM/Designs/Licensed Designs/STRW - Star Wars/Comic Relief comp.psd"


def test_load_quoted_listing(tmp_path):
    listing = tmp_path / "binaries.csv"
    listing.write_text(
        f'"11086581","{STAR_WARS_PATH}"\n'
        f'"9393405","{COMIC_RELIEF_PATH}"\n',
        encoding="utf-8",
    )

    records = load_input_records(listing)

    assert records == [
        InputRecord(11086581, STAR_WARS_PATH, line_number=1),
        InputRecord(9393405, COMIC_RELIEF_PATH, line_number=2),
    ]


def test_blank_lines_are_skipped(tmp_path):
    listing = tmp_path / "binaries.csv"
    listing.write_text('\n"1","a/b"\n\n"2","c/d"\n', encoding="utf-8")

    records = load_input_records(listing)

    assert [(r.line_number, r.source_path) for r in records] == [(2, "a/b"), (4, "c/d")]


def test_quoted_commas_stay_in_path():
    records = parse_input_rows([["5", "designs/red, blue.psd"]])
    assert records[0].source_path == "designs/red, blue.psd"


@pytest.mark.parametrize(
    "row, message",
    [
        (["abc", "a/b"], "not an integer"),
        (["-1", "a/b"], "negative"),
        (["1", ""], "empty"),
        (["1"], "expected 2 columns"),
        (["1", "a", "b"], "expected 2 columns"),
    ],
)
def test_malformed_rows_raise_with_line_number(row, message):
    with pytest.raises(InputFormatError) as excinfo:
        parse_input_rows([["1", "ok"], row])

    assert excinfo.value.line_number == 2
    assert message in str(excinfo.value)


def test_empty_listing_returns_no_records(tmp_path):
    listing = tmp_path / "empty.csv"
    listing.write_text("", encoding="utf-8")
    assert load_input_records(listing) == []
