"""nlcal Test Suite

Test organization:
- unit/: Unit tests for individual modules
  - parser/: Intent, temporal, entity extraction, confidence, command parser
  - scheduling/: Validator, resolver, dispatcher, confirmation text
  - gateway/: In-memory gateway and retry wrapper
  - interpret/: Anthropic interpreter (mocked client)
- integration/: Text-to-calendar flows through the engine and the CLI

Running tests:
    # All tests
    pytest

    # Specific module
    pytest tests/unit/parser/

    # With coverage
    pytest --cov=nlcal --cov-report=term-missing
"""
