"""
Wake Pipeline Tests
===================

Unit and scenario tests for the wake word front-end.

Test Structure:
- fakes.py: Manual scheduler, fake recognition provider and command session, pipeline rig
- test_vad.py / test_matcher.py / test_phonetics.py: Pure components
- test_recognition_session.py / test_sherpa_provider.py: Recognition lifecycle
- test_orchestrator.py / test_end_to_end.py: State machine and full scenarios
- conftest.py: Shared test fixtures and setup

To run tests:
    pytest tests/

To run specific test file:
    pytest tests/test_orchestrator.py
"""
