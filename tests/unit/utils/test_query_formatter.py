"""Tests for arXiv query string helpers."""

from datetime import date, datetime

from deep_synthesis.schemas.brief import DateConstraint, DateConstraintType
from deep_synthesis.utils.query_formatter import (
    apply_date_filter,
    build_date_filter,
    fallback_query,
    format_arxiv_query,
    format_date_for_arxiv,
    sanitize_query,
)


class TestSanitizeQuery:

    def test_and_inside_groups_becomes_or(self):
        assert sanitize_query("(a AND b) AND (c AND d)") == "(a OR b) AND (c OR d)"

    def test_nested_groups(self):
        assert sanitize_query("((a AND b) AND c) AND d") == "((a OR b) OR c) AND d"

    def test_case_insensitive(self):
        assert sanitize_query("(llm and agents)") == "(llm OR agents)"

    def test_top_level_untouched(self):
        assert sanitize_query("ti:llm AND abs:agents") == "ti:llm AND abs:agents"

    def test_words_containing_and_are_kept(self):
        assert sanitize_query("(android AND sandbox)") == "(android OR sandbox)"


class TestFormatArxivQuery:

    def test_quotes_bare_field_terms(self):
        assert format_arxiv_query("ti:transformer AND abs:attention") == (
            'ti:"transformer" AND abs:"attention"'
        )

    def test_leaves_quoted_terms(self):
        assert format_arxiv_query('ti:"deep learning"') == 'ti:"deep learning"'

    def test_smart_quotes_are_normalized(self):
        assert format_arxiv_query("abs:“large language”") == 'abs:"large language"'

    def test_terms_inside_groups(self):
        assert format_arxiv_query("(ti:llm OR abs:llm)") == '(ti:"llm" OR abs:"llm")'

    def test_operator_spacing(self):
        assert format_arxiv_query('ti:"a"   AND    abs:"b"  ANDNOT au:"c"') == (
            'ti:"a" AND abs:"b" ANDNOT au:"c"'
        )


class TestDates:

    def test_format_date(self):
        assert format_date_for_arxiv("2023-05-06") == "20230506"
        assert format_date_for_arxiv("2023-05-06T12:00:00Z") == "20230506"
        assert format_date_for_arxiv(date(2020, 1, 2)) == "20200102"
        assert format_date_for_arxiv(datetime(2021, 12, 31, 8, 0)) == "20211231"

    def test_before(self):
        constraint = DateConstraint(type=DateConstraintType.BEFORE, before_date="2023-01-01")

        assert build_date_filter(constraint) == " AND submittedDate:[* TO 20230101]"

    def test_after(self):
        constraint = DateConstraint(type="after", afterDate="2020-06-15")

        assert build_date_filter(constraint) == " AND submittedDate:[20200615 TO *]"

    def test_between(self):
        constraint = DateConstraint(type="between", afterDate="2019-01-01", beforeDate="2021-12-31")

        assert build_date_filter(constraint) == " AND submittedDate:[20190101 TO 20211231]"

    def test_incomplete_or_empty_constraints(self):
        assert build_date_filter(None) == ""
        assert build_date_filter(DateConstraint()) == ""
        assert build_date_filter(DateConstraint(type="between", afterDate="2019-01-01")) == ""

    def test_apply_wraps_the_whole_query(self):
        constraint = DateConstraint(type="after", afterDate="2020-01-01")

        assert apply_date_filter('ti:"a" OR ti:"b"', constraint) == (
            '(ti:"a" OR ti:"b") AND submittedDate:[20200101 TO *]'
        )
        assert apply_date_filter('ti:"a"', None) == 'ti:"a"'


def test_fallback_query_searches_all_fields():
    params = fallback_query("  quantum (error AND correction) ")

    assert params.query == "all:quantum (error OR correction)"
    assert params.max_results == 100
    assert params.sort_by == "relevance"
    assert params.sort_order == "descending"
