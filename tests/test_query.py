"""
Tests for query parsing, matching, sorting and projection.
"""

import pytest

from docstore.models.exceptions import InvalidQueryError, QueryTypeMismatchError
from docstore.query.matcher import QueryMatcher
from docstore.query.options import FindOptions, project_entities, sort_entities
from docstore.query.predicate import Operator, Predicate, Query


class TestQueryParse:
    """Tests for Query.parse validation."""

    def test_field_predicates(self):
        """Test parsing plain field predicates."""
        query = Query.parse({"age": {"$gt": 30}, "city": {"$in": ["Oslo", "Rome"]}})

        assert query.fields["age"] == Predicate(Operator.GT, 30)
        assert query.fields["city"] == Predicate(Operator.IN, ("Oslo", "Rome"))
        assert query.or_ is None
        assert query.text is None

    def test_operators(self):
        """Test parsing $and, $or and $text."""
        query = Query.parse({
            "$and": [{"age": {"$gt": 20}}, {"age": {"$lt": 40}}],
            "$or": [{"city": {"$eq": "Oslo"}}],
            "$text": "chess",
        })

        assert len(query.and_) == 2
        assert query.and_[1].fields["age"] == Predicate(Operator.LT, 40)
        assert query.or_[0].fields["city"] == Predicate(Operator.EQ, "Oslo")
        assert query.text == "chess"

    def test_empty_query(self):
        """Test None and {} both match everything."""
        assert Query.parse(None).is_empty()
        assert Query.parse({}).is_empty()

    def test_parsed_query_passes_through(self):
        """Test that an already parsed Query is returned as is."""
        query = Query.parse({"age": {"$eq": 1}})
        assert Query.parse(query) is query

    @pytest.mark.parametrize(
        "raw",
        [
            {"age": 30},
            {"age": {}},
            {"age": {"$gt": 1, "$lt": 5}},
            {"age": {"$gte": 1}},
            {"age": {"$in": 5}},
            {"name": {"$in": "abc"}},
            {"$nor": []},
            {"$and": {"age": {"$eq": 1}}},
            {"$or": ["age"]},
            {"$or": [{"$text": "x"}]},
            {"$and": [{"$or": [{"age": {"$eq": 1}}]}]},
            {"$text": 5},
            ["age"],
        ],
    )
    def test_invalid_queries(self, raw):
        """Test malformed queries are rejected before matching."""
        with pytest.raises(InvalidQueryError):
            Query.parse(raw)

    def test_known_fields(self):
        """Test unknown fields are rejected when a field set is given."""
        known = {"_id", "name"}
        Query.parse({"name": {"$eq": "x"}, "$or": [{"_id": {"$eq": 1}}]}, known)

        with pytest.raises(InvalidQueryError, match="agee"):
            Query.parse({"$or": [{"agee": {"$eq": 1}}]}, known)


class TestQueryMatcher:
    """Tests for the filter pipeline."""

    @pytest.fixture
    def matcher(self):
        return QueryMatcher(["name", "bio"])

    def _ids(self, matcher, raw, entities):
        return [e["_id"] for e in matcher.filter(Query.parse(raw), entities)]

    def test_match_all(self, matcher, people):
        """Test an empty query keeps every entity in order."""
        assert self._ids(matcher, {}, people) == [1, 2, 3, 4]

    def test_empty_query_returns_input(self, matcher, people):
        assert matcher.filter(Query.parse({}), people) is people

    def test_eq(self, matcher, people):
        assert self._ids(matcher, {"city": {"$eq": "Oslo"}}, people) == [1, 3]

    def test_gt_lt(self, matcher, people):
        assert self._ids(matcher, {"age": {"$gt": 30}}, people) == [1, 2, 4]
        assert self._ids(matcher, {"age": {"$lt": 31}}, people) == [3]

    def test_in(self, matcher, people):
        assert self._ids(matcher, {"city": {"$in": ["Rome", "Lima"]}}, people) == [2, 4]

    def test_plain_predicates_are_conjunctive(self, matcher, people):
        """Test that all top-level predicates must hold."""
        assert self._ids(matcher, {"age": {"$eq": 45}, "city": {"$eq": "Lima"}}, people) == [4]

    def test_eq_is_strict(self, matcher):
        """Test booleans never equal numbers."""
        entities = [{"_id": 1, "flag": True}, {"_id": 2, "flag": 1}, {"_id": 3, "flag": 1.0}]

        assert self._ids(matcher, {"flag": {"$eq": 1}}, entities) == [2, 3]
        assert self._ids(matcher, {"flag": {"$eq": True}}, entities) == [1]
        assert self._ids(matcher, {"flag": {"$in": [True]}}, entities) == [1]

    def test_missing_field_never_matches(self, matcher):
        entities = [{"_id": 1}, {"_id": 2, "score": None}]

        assert self._ids(matcher, {"score": {"$eq": None}}, entities) == [2]
        assert self._ids(matcher, {"score": {"$in": [None, 1]}}, entities) == [2]

    def test_and(self, matcher, people):
        """Test every $and sub-query must hold."""
        raw = {"$and": [{"age": {"$gt": 26}}, {"age": {"$lt": 40}}, {"city": {"$eq": "Oslo"}}]}
        assert self._ids(matcher, raw, people) == [1, 3]

    def test_or(self, matcher, people):
        """Test at least one $or sub-query must hold."""
        raw = {"$or": [{"city": {"$eq": "Rome"}}, {"age": {"$lt": 30}}]}
        assert self._ids(matcher, raw, people) == [2, 3]

    def test_or_branch_requires_all_predicates(self, matcher, people):
        """Test a branch with two predicates counts only when both hold."""
        raw = {"$or": [{"city": {"$eq": "Oslo"}, "age": {"$gt": 40}}]}
        assert self._ids(matcher, raw, people) == []

        raw = {"$or": [{"city": {"$eq": "Oslo"}, "age": {"$gt": 30}}]}
        assert self._ids(matcher, raw, people) == [1]

    def test_empty_or_matches_nothing(self, matcher, people):
        assert self._ids(matcher, {"$or": []}, people) == []

    def test_stages_combine(self, matcher, people):
        """Test $and, $or, $text and plain predicates all narrow the result."""
        raw = {
            "$and": [{"age": {"$gt": 20}}],
            "$or": [{"city": {"$eq": "Oslo"}}, {"city": {"$eq": "Lima"}}],
            "$text": "chess",
            "age": {"$lt": 30},
        }
        assert self._ids(matcher, raw, people) == [3]

    def test_text_whole_word(self, matcher):
        """Test $text matches whole words only."""
        entities = [{"_id": 1, "name": "x", "bio": "a cat sat"}]

        assert self._ids(matcher, {"$text": "cat"}, entities) == [1]
        assert self._ids(matcher, {"$text": "ca"}, entities) == []

    def test_text_case_insensitive(self, matcher, people):
        assert self._ids(matcher, {"$text": "CHESS"}, people) == [1, 3]

    def test_text_every_word_any_field(self, matcher, people):
        """Test every word must appear, each in any full-text field."""
        assert self._ids(matcher, {"$text": "ann chess"}, people) == [1]
        assert self._ids(matcher, {"$text": "cat gardener"}, people) == [2]
        assert self._ids(matcher, {"$text": "cat chess"}, people) == []

    def test_text_ignores_other_fields(self, matcher, people):
        """Test fields outside the full-text set are not searched."""
        assert self._ids(matcher, {"$text": "oslo"}, people) == []

    def test_text_escapes_words(self, matcher):
        entities = [{"_id": 1, "name": "a.b", "bio": "axb"}]

        assert self._ids(matcher, {"$text": "a.b"}, entities) == [1]
        assert self._ids(matcher, {"$text": "x.b"}, entities) == []

    def test_text_skips_non_string_fields(self, matcher):
        entities = [{"_id": 1, "name": 42}, {"_id": 2, "name": "42"}]
        assert self._ids(matcher, {"$text": "42"}, entities) == [2]

    def test_empty_text_ignored(self, matcher, people):
        assert self._ids(matcher, {"$text": ""}, people) == [1, 2, 3, 4]

    def test_text_search_keeps_no_state(self, matcher, people):
        """Test many distinct $text words leave the matcher unchanged."""
        for i in range(500):
            assert self._ids(matcher, {"$text": f"word{i}"}, people) == []

        assert set(vars(matcher)) == {"full_text_fields"}
        assert self._ids(matcher, {"$text": "chess"}, people) == [1, 3]

    def test_gt_lt_bool_against_number_raises(self, matcher):
        """Test booleans are not ordered against numbers."""
        entities = [{"_id": 1, "flag": True}]

        with pytest.raises(QueryTypeMismatchError):
            matcher.filter(Query.parse({"flag": {"$gt": 0}}), entities)
        with pytest.raises(QueryTypeMismatchError):
            matcher.filter(Query.parse({"flag": {"$lt": 2}}), [{"_id": 1, "flag": 1}, {"_id": 2, "flag": False}])

    def test_gt_lt_between_booleans(self, matcher):
        entities = [{"_id": 1, "flag": True}, {"_id": 2, "flag": False}]
        assert self._ids(matcher, {"flag": {"$gt": False}}, entities) == [1]

    def test_incomparable_types_raise(self, matcher):
        """Test ordering operators on incomparable values propagate an error."""
        entities = [{"_id": 1, "age": "old"}]

        with pytest.raises(QueryTypeMismatchError) as exc_info:
            matcher.filter(Query.parse({"age": {"$gt": 3}}), entities)
        assert exc_info.value.field == "age"
        assert exc_info.value.op == "$gt"


class TestFindOptions:
    """Tests for FindOptions parsing."""

    def test_defaults(self):
        opts = FindOptions.parse(None)
        assert opts.sort is None
        assert opts.projection is None
        assert opts.deleted is False

    def test_parse(self):
        opts = FindOptions.parse({"sort": {"a": 1, "b": -1}, "projection": {"name": 1}, "deleted": True})

        assert opts.sort == (("a", 1), ("b", -1))
        assert opts.projection == ("name",)
        assert opts.deleted is True

    def test_projection_as_list(self):
        assert FindOptions.parse({"projection": ["name", "age", "name"]}).projection == ("name", "age")

    @pytest.mark.parametrize(
        "raw",
        [
            {"sort": {"a": 0}},
            {"sort": {"a": "asc"}},
            {"sort": {"a": True}},
            {"sort": ["a"]},
            {"projection": "name"},
            {"projection": [1]},
            {"limit": 5},
        ],
    )
    def test_invalid_options(self, raw):
        with pytest.raises(InvalidQueryError):
            FindOptions.parse(raw)


class TestSortAndProjection:
    """Tests for the sort and projection stages."""

    def test_sort_tie_break(self):
        """Test the second field breaks ties of the first."""
        entities = [{"_id": 2, "a": 1, "b": 1}, {"_id": 1, "a": 1, "b": 2}]

        result = sort_entities((("a", 1), ("b", -1)), entities)

        assert [e["_id"] for e in result] == [1, 2]

    def test_sort_directions(self, people):
        ascending = sort_entities((("age", 1),), people)
        descending = sort_entities((("age", -1),), people)

        assert [e["age"] for e in ascending] == [27, 31, 45, 45]
        assert [e["age"] for e in descending] == [45, 45, 31, 27]

    def test_sort_is_stable_on_ties(self, people):
        """Test equal values keep their original order."""
        result = sort_entities((("age", -1),), people)
        assert [e["_id"] for e in result] == [2, 4, 1, 3]

    def test_sort_missing_values_last(self):
        entities = [{"_id": 1, "a": 2}, {"_id": 2}, {"_id": 3, "a": 1}]
        result = sort_entities((("a", 1), ("_id", -1)), entities)
        assert [e["_id"] for e in result] == [3, 1, 2]

    @pytest.mark.parametrize("direction,expected", [(1, [3, 1, 2]), (-1, [1, 3, 2])])
    def test_sort_single_field_with_missing_value_between(self, direction, expected):
        """Test a missing value in the middle does not block ordering of its neighbours."""
        entities = [{"_id": 1, "a": 50}, {"_id": 2}, {"_id": 3, "a": 20}]

        result = sort_entities((("a", direction),), entities)

        assert [e["_id"] for e in result] == expected

    def test_sort_missing_values_keep_order(self):
        entities = [{"_id": 1}, {"_id": 2, "a": 5}, {"_id": 3}]
        result = sort_entities((("a", -1),), entities)
        assert [e["_id"] for e in result] == [2, 1, 3]

    def test_sort_incomparable_raises(self):
        with pytest.raises(QueryTypeMismatchError):
            sort_entities((("a", 1),), [{"_id": 1, "a": 1}, {"_id": 2, "a": "x"}])

    def test_sort_bool_against_number_raises(self):
        with pytest.raises(QueryTypeMismatchError):
            sort_entities((("a", 1),), [{"_id": 1, "a": True}, {"_id": 2, "a": 0}])

    def test_sort_booleans(self):
        entities = [{"_id": 1, "a": True}, {"_id": 2, "a": False}]
        result = sort_entities((("a", 1),), entities)
        assert [e["_id"] for e in result] == [2, 1]

    def test_no_sort(self, people):
        assert sort_entities(None, people) is people

    def test_projection(self, people):
        """Test only projected keys are kept."""
        result = project_entities(("name",), people)

        assert result[0] == {"name": "Ann Lee"}
        assert all(set(e) == {"name"} for e in result)

    def test_projection_omits_missing_fields(self):
        assert project_entities(("name", "age"), [{"_id": 1, "name": "x"}]) == [{"name": "x"}]

    def test_no_projection(self, people):
        assert project_entities(None, people) is people
