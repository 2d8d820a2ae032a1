"""
Query parsing and evaluation: filters, sorting and projection.
"""

from docstore.query.matcher import QueryMatcher
from docstore.query.options import FindOptions, project_entities, sort_entities
from docstore.query.predicate import Operator, Predicate, Query

__all__ = [
    "FindOptions",
    "Operator",
    "Predicate",
    "Query",
    "QueryMatcher",
    "project_entities",
    "sort_entities",
]
