"""Record store lookups used by the worker and the direct search route."""

from slackbridge.lookup.airtable import SEARCH_FIELDS, AirtableLookup, RecordLookup, build_formula

__all__ = ["SEARCH_FIELDS", "AirtableLookup", "RecordLookup", "build_formula"]
