"""Medication aggregation and interaction analysis engine.

This package merges candidate medications from several sources (manual
entry, AI suggestions, rule-engine suggestions, ad-hoc additions) into one
deduplicated set, resolves reference details for each drug, and checks
the set for drug-drug interactions with severity classification.
"""
