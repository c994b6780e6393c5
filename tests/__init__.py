"""Test suite for SATORI Forms.

This package contains tests for:
- Schema model and decoding
- Schema authoring validation (rule order and rejection reasons)
- Submission validation (required, types, sanitization, lengths, unknown fields)
- Sanitizers and placeholder rendering
- Notifications, events, configuration
- Integration scenarios through FormsRuntime
"""
