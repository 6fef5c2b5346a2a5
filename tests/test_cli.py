import pytest

from blinkit_scraper.cli import build_parser, main


def test_parser_flags():
    args = build_parser().parse_args([
        "--query", "milk", "--results-wanted", "20", "--lat", "28.4", "--lon", "77.0",
        "--no-headless", "--verbose",
    ])
    assert args.query == "milk"
    assert args.results_wanted == "20"
    assert args.no_headless is True
    assert args.verbose is True


def test_invalid_input_exits_with_status_2(capsys):
    assert main(["--url", "blinkit.com/s/?q=milk"]) == 2
    assert "Invalid input" in capsys.readouterr().err


def test_missing_query_and_url_is_a_usage_error():
    with pytest.raises(SystemExit) as exc:
        main([])
    assert exc.value.code == 2
