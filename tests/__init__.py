"""Test suite for formengine.

This package contains tests for:
- Field model and kind table (serialization, default value shapes)
- Schema store edits (reorder invariants, kind seeding, publish preconditions)
- Step partitioning (losslessness, titles, empty forms)
- Rendering and validation (required gating, formats, options)
- Wizard state machine and event stream
- Submission assembly (upload atomicity, retries, concurrency)
- Builder and wizard controllers end to end
- Response viewing and CSV export
"""
